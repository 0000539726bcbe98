import asyncio
import logging

import pytest

from changelog_video.jobs.dispatcher import TaskPerJobDispatcher

pytestmark = pytest.mark.anyio


async def test_submit_returns_before_work_runs():
    started = []
    release = asyncio.Event()

    async def worker(job_id):
        started.append(job_id)
        await release.wait()

    dispatcher = TaskPerJobDispatcher(worker)
    await dispatcher.start()

    dispatcher.submit("a")
    assert started == []
    assert dispatcher.in_flight == 1

    await asyncio.sleep(0)
    assert started == ["a"]

    release.set()
    await dispatcher.drain()
    assert dispatcher.in_flight == 0


async def test_jobs_run_concurrently():
    order = []
    gate = asyncio.Event()

    async def worker(job_id):
        if job_id == "slow":
            await gate.wait()
        order.append(job_id)
        if job_id == "fast":
            gate.set()

    dispatcher = TaskPerJobDispatcher(worker)
    await dispatcher.start()
    dispatcher.submit("slow")
    dispatcher.submit("fast")
    await dispatcher.drain()

    assert order == ["fast", "slow"]


async def test_escaping_errors_are_logged_not_raised(caplog):
    async def worker(job_id):
        raise RuntimeError("registry offline")

    dispatcher = TaskPerJobDispatcher(worker)
    await dispatcher.start()

    with caplog.at_level(logging.ERROR):
        dispatcher.submit("job-1")
        await dispatcher.drain()

    assert "job-1" in caplog.text
    assert "registry offline" in caplog.text


async def test_stop_abandons_in_flight_jobs():
    cancelled = []

    async def worker(job_id):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.append(job_id)
            raise

    dispatcher = TaskPerJobDispatcher(worker)
    await dispatcher.start()
    dispatcher.submit("a")
    dispatcher.submit("b")
    await asyncio.sleep(0)

    await dispatcher.stop()

    assert sorted(cancelled) == ["a", "b"]
    assert dispatcher.in_flight == 0


async def test_submit_requires_running_dispatcher():
    async def worker(job_id):
        pass

    dispatcher = TaskPerJobDispatcher(worker)

    with pytest.raises(RuntimeError):
        dispatcher.submit("a")
