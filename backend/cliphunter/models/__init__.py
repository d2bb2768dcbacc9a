# Models module
from cliphunter.models.job import JobRecord, JobStatus, ProcessingStage
from cliphunter.models.types import Job, JobOptions, JobProgress, JobResult, JobError, ClipInfo

__all__ = [
    "JobRecord",
    "JobStatus",
    "ProcessingStage",
    "Job",
    "JobOptions",
    "JobProgress",
    "JobResult",
    "JobError",
    "ClipInfo",
]
