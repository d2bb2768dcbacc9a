"""Single-slot work queue backed by the job store."""
import logging
from typing import Optional

from cliphunter.models.types import Job, JobOptions
from cliphunter.services.job_store import JobStore

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Hands out queued jobs one at a time.

    The busy flag lives in this process only; queued jobs themselves are
    the rows in the job store.
    """

    def __init__(self, job_store: JobStore):
        self.job_store = job_store
        self._busy = False

    async def enqueue(self, source_url: str, options: Optional[JobOptions] = None) -> Job:
        job = await self.job_store.create_job(source_url, options)
        logger.info(f"Job enqueued: {job.id}")
        return job

    async def dequeue(self) -> Optional[Job]:
        """Next queued job, or None while a job is in flight or none is queued."""
        if self._busy:
            return None

        # Claim the slot before awaiting the store so concurrent callers see it
        self._busy = True
        try:
            job = await self.job_store.get_next_queued_job()
        except Exception:
            self._busy = False
            raise

        if job:
            logger.info(f"Job dequeued: {job.id}")
        else:
            self._busy = False
        return job

    async def complete(self, job_id: str):
        self._busy = False
        logger.info(f"Job processing complete: {job_id}")

    async def fail(self, job_id: str):
        self._busy = False
        logger.info(f"Job processing failed: {job_id}")

    def is_queue_busy(self) -> bool:
        return self._busy
