"""Progress reporting for a single processing run."""
import logging

from cliphunter.models.job import ProcessingStage
from cliphunter.models.types import JobProgress
from cliphunter.services.job_store import JobStore

logger = logging.getLogger(__name__)


class JobProgressReporter:
    """
    Writes a job's progress to the store.

    Percentages are clamped to [0, 100], rounded, and never move backwards
    within one run.
    """

    def __init__(self, job_store: JobStore, job_id: str):
        self.job_store = job_store
        self.job_id = job_id
        self._last_percentage = 0
        self._last = None

    @property
    def percentage(self) -> int:
        return self._last_percentage

    async def report(self, stage: ProcessingStage, percentage: float, message: str = ""):
        value = int(round(min(100.0, max(0.0, percentage))))
        value = max(value, self._last_percentage)

        progress = JobProgress(stage=stage, percentage=value, message=message)
        # Skip identical writes (ffmpeg reports far more often than the value changes)
        if progress == self._last:
            return

        self._last_percentage = value
        self._last = progress
        await self.job_store.update_job_progress(self.job_id, progress)
        logger.debug(f"Job {self.job_id} progress: {stage.value} {value}% {message}")
