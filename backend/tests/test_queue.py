"""Tests for the work queue and progress reporting."""
import asyncio

import pytest

from cliphunter.models.job import ProcessingStage
from cliphunter.workers.progress import JobProgressReporter
from cliphunter.workers.queue import WorkQueue

URL = "https://www.youtube.com/watch?v=abc123"


@pytest.mark.asyncio
async def test_enqueue_creates_queued_job(job_store):
    queue = WorkQueue(job_store)
    job = await queue.enqueue(URL)

    assert (await job_store.get_job(job.id)).status == "queued"
    assert not queue.is_queue_busy()


@pytest.mark.asyncio
async def test_single_slot(job_store):
    queue = WorkQueue(job_store)
    first = await queue.enqueue(URL)
    await asyncio.sleep(0.01)
    await queue.enqueue(URL)

    job = await queue.dequeue()
    assert job.id == first.id
    assert queue.is_queue_busy()

    # Busy: nothing else is handed out
    assert await queue.dequeue() is None

    await queue.complete(job.id)
    assert not queue.is_queue_busy()


@pytest.mark.asyncio
async def test_concurrent_dequeue_hands_out_one_job(job_store):
    queue = WorkQueue(job_store)
    await queue.enqueue(URL)
    await queue.enqueue(URL)

    results = await asyncio.gather(queue.dequeue(), queue.dequeue())
    assert sum(1 for job in results if job is not None) == 1


@pytest.mark.asyncio
async def test_empty_queue_stays_idle(job_store):
    queue = WorkQueue(job_store)
    assert await queue.dequeue() is None
    assert not queue.is_queue_busy()


@pytest.mark.asyncio
async def test_fail_releases_slot(job_store):
    queue = WorkQueue(job_store)
    await queue.enqueue(URL)
    job = await queue.dequeue()

    await queue.fail(job.id)
    assert not queue.is_queue_busy()


class TestJobProgressReporter:
    """Tests for progress clamping and monotonicity."""

    @pytest.mark.asyncio
    async def test_clamps_and_rounds(self, job_store):
        job = await job_store.create_job(URL)
        reporter = JobProgressReporter(job_store, job.id)

        await reporter.report(ProcessingStage.DOWNLOADING, 12.6, "Downloading video...")
        assert (await job_store.get_job(job.id)).progress.percentage == 13

        await reporter.report(ProcessingStage.DONE, 140, "done")
        assert (await job_store.get_job(job.id)).progress.percentage == 100

    @pytest.mark.asyncio
    async def test_never_decreases(self, job_store):
        job = await job_store.create_job(URL)
        reporter = JobProgressReporter(job_store, job.id)

        await reporter.report(ProcessingStage.GENERATING, 70, "Generating clip 2/3...")
        await reporter.report(ProcessingStage.GENERATING, 65, "Generating clip 2/3...")

        progress = (await job_store.get_job(job.id)).progress
        assert progress.percentage == 70
        assert reporter.percentage == 70

    @pytest.mark.asyncio
    async def test_negative_clamped_to_zero(self, job_store):
        job = await job_store.create_job(URL)
        reporter = JobProgressReporter(job_store, job.id)

        await reporter.report(ProcessingStage.DOWNLOADING, -5, "start")
        assert (await job_store.get_job(job.id)).progress.percentage == 0
