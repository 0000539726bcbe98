"""Job dispatcher interface and asyncio task-per-job implementation.

Each submitted job runs on its own ``asyncio.Task``, started fire-and-forget
so the submitting request never waits on any pipeline stage. No external
dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class JobDispatcher(ABC):
    """Abstract interface for job dispatching (local or cloud)."""

    @abstractmethod
    def submit(self, job_id: str) -> None:
        """Start processing a job in the background. Never blocks on the work."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, abandoning in-flight jobs."""
        ...


class TaskPerJobDispatcher(JobDispatcher):
    """Runs every job concurrently on its own supervised asyncio task."""

    def __init__(self, worker_fn: Callable[[str], Awaitable[None]]):
        """
        worker_fn: async callable(job_id) -> None
            Drives one job to a terminal state. It records its own failures
            on the job; anything escaping it is logged here.
        """
        self._worker_fn = worker_fn
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, job_id: str) -> None:
        if not self._running:
            raise RuntimeError("Dispatcher is not running")
        task = asyncio.create_task(self._supervise(job_id), name=f"job-{job_id}")
        # Event loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Abandoning %d in-flight job(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every job submitted so far has finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)
            if timeout is not None:
                break

    async def _supervise(self, job_id: str) -> None:
        try:
            await self._worker_fn(job_id)
        except asyncio.CancelledError:
            logger.warning("[%s] Job cancelled during shutdown", job_id)
            raise
        except Exception:
            logger.exception("[%s] Unhandled error escaped the job pipeline", job_id)
