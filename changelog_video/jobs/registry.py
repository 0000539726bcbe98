"""Job registry interface and in-memory implementation.

The registry is the only shared mutable structure in the service. The
in-memory store loses every job on restart; swap in a durable
``JobRegistry`` implementation without touching the pipeline.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from changelog_video.errors import InternalFault, NotFoundError
from changelog_video.jobs.models import JobStatus, VideoJob

JobMutator = Callable[[VideoJob], VideoJob]


class JobRegistry(ABC):
    """Abstract keyed store of job records."""

    @abstractmethod
    async def create(self, job: VideoJob) -> str:
        """Store a new record. Returns its id."""
        ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[VideoJob]:
        """Return the record, or None for an unknown id."""
        ...

    @abstractmethod
    async def update(self, job_id: str, mutator: JobMutator) -> VideoJob:
        """Atomically replace a record with ``mutator(record)``."""
        ...

    @abstractmethod
    async def discard(self, job_id: str) -> None:
        """Drop a record that was never started (creation rollback)."""
        ...


class InMemoryJobRegistry(JobRegistry):
    """Dict-backed registry. Records are never evicted."""

    def __init__(self):
        self._jobs: Dict[str, VideoJob] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: VideoJob) -> str:
        if job.status != JobStatus.QUEUED:
            raise InternalFault(f"New job {job.id} must start queued, got {job.status.value}")
        async with self._lock:
            if job.id in self._jobs:
                raise InternalFault(f"Job id {job.id} already exists")
            self._jobs[job.id] = job
        return job.id

    async def get(self, job_id: str) -> Optional[VideoJob]:
        async with self._lock:
            return self._jobs.get(job_id)

    async def update(self, job_id: str, mutator: JobMutator) -> VideoJob:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise NotFoundError(f"Job {job_id} not found")
            updated = mutator(current)
            if updated.id != job_id:
                raise InternalFault(f"Mutator changed job id {job_id} -> {updated.id}")
            self._jobs[job_id] = updated
            return updated

    async def discard(self, job_id: str) -> None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and job.status != JobStatus.QUEUED:
                raise InternalFault(f"Job {job_id} already started, cannot discard")
            self._jobs.pop(job_id, None)
