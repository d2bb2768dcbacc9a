"""Job store: persistence for clip generation jobs."""
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cliphunter.models.codec import dump_blob, load_blob, CorruptRecordError
from cliphunter.models.job import JobRecord, JobStatus, ProcessingStage
from cliphunter.models.types import Job, JobOptions, JobProgress, JobResult, JobError

logger = logging.getLogger(__name__)


def record_to_job(record: JobRecord) -> Job:
    """
    Decode a stored row into a Job.

    Raises:
        CorruptRecordError: If any blob column cannot be decoded
    """
    progress = load_blob(record.progress, JobProgress, "progress")
    options = load_blob(record.options, JobOptions, "options")
    if progress is None or options is None:
        raise CorruptRecordError(f"Job {record.id} is missing progress or options")

    return Job(
        id=record.id,
        source_url=record.source_url,
        status=record.status,
        progress=progress,
        options=options,
        result=load_blob(record.result, JobResult, "result"),
        error=load_blob(record.error, JobError, "error"),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class JobStore:
    """Durable record of every job, its status and its result."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create_job(self, source_url: str, options: Optional[JobOptions] = None) -> Job:
        """
        Admit a new job in the queued state.

        Args:
            source_url: Validated source URL
            options: Job options (defaults applied when omitted)

        Returns:
            The created job
        """
        now = datetime.utcnow()
        progress = JobProgress(
            stage=ProcessingStage.DOWNLOADING,
            percentage=0,
            message="Job queued",
        )
        record = JobRecord(
            id=str(uuid.uuid4()),
            source_url=source_url,
            status=JobStatus.QUEUED,
            progress=dump_blob(progress),
            options=dump_blob(options or JobOptions()),
            created_at=now,
            updated_at=now,
        )

        async with self._session_maker() as session:
            session.add(record)
            await session.commit()

        logger.info(f"Created job {record.id} for {source_url}")
        return record_to_job(record)

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by id, or None."""
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            return record_to_job(record) if record else None

    async def get_status(self, job_id: str) -> Optional[JobStatus]:
        """Current status only, without decoding blobs."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(JobRecord.status).where(JobRecord.id == job_id)
            )
            return result.scalar_one_or_none()

    async def list_jobs(self, limit: int = 100, status: Optional[JobStatus] = None) -> List[Job]:
        """Most recent jobs first."""
        query = select(JobRecord).order_by(JobRecord.created_at.desc()).limit(limit)
        if status is not None:
            query = query.where(JobRecord.status == status)

        async with self._session_maker() as session:
            result = await session.execute(query)
            return [record_to_job(record) for record in result.scalars().all()]

    async def get_next_queued_job(self) -> Optional[Job]:
        """Oldest queued job, or None."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(JobRecord)
                .where(JobRecord.status == JobStatus.QUEUED)
                .order_by(JobRecord.created_at.asc())
                .limit(1)
            )
            record = result.scalar_one_or_none()
            return record_to_job(record) if record else None

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: Optional[JobProgress] = None
    ) -> bool:
        """Set the status (and optionally the progress). Returns False if missing."""
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False

            record.status = status
            if progress is not None:
                record.progress = dump_blob(progress)
            record.updated_at = datetime.utcnow()
            await session.commit()

        return True

    async def update_job_progress(self, job_id: str, progress: JobProgress) -> bool:
        """Replace the progress of a job. Returns False if missing."""
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False

            record.progress = dump_blob(progress)
            record.updated_at = datetime.utcnow()
            await session.commit()

        return True

    async def complete_job(self, job_id: str, result: JobResult) -> bool:
        """
        Mark a job completed with its result.

        Returns:
            False if the job is missing or already terminal (e.g. cancelled)
        """
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False
            if record.status.is_terminal:
                logger.info(f"Job {job_id} is {record.status.value}, not completing it")
                return False

            record.status = JobStatus.COMPLETED
            record.result = dump_blob(result)
            record.error = None
            record.progress = dump_blob(JobProgress(
                stage=ProcessingStage.DONE,
                percentage=100,
                message="Clips generated successfully",
            ))
            record.updated_at = datetime.utcnow()
            await session.commit()

        logger.info(f"Job {job_id} completed with {len(result.clips)} clips")
        return True

    async def fail_job(self, job_id: str, error: JobError) -> bool:
        """Mark a job failed; a job that is already terminal is left as it is."""
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False
            if record.status.is_terminal:
                logger.info(f"Job {job_id} is {record.status.value}, not failing it")
                return False

            record.status = JobStatus.FAILED
            record.error = dump_blob(error)
            record.result = None
            record.progress = dump_blob(JobProgress(
                stage=ProcessingStage.ERROR,
                percentage=0,
                message=error.message,
            ))
            record.updated_at = datetime.utcnow()
            await session.commit()

        logger.info(f"Job {job_id} failed: {error.code} {error.message}")
        return True

    async def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a queued or processing job.

        Returns:
            False if the job does not exist or already completed or failed
        """
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False
            if record.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                return False

            record.status = JobStatus.CANCELLED
            record.updated_at = datetime.utcnow()
            await session.commit()

        logger.info(f"Job {job_id} cancelled")
        return True

    async def update_clip_title(self, job_id: str, clip_id: str, title: str) -> bool:
        """
        Patch the title of one clip in a job result.

        Clip order and every other field are left as they were.

        Returns:
            False if the job, its result or the clip does not exist
        """
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            if not record:
                return False

            result = load_blob(record.result, JobResult, "result")
            if result is None:
                return False

            for clip in result.clips:
                if clip.id == clip_id:
                    clip.title = title
                    break
            else:
                return False

            record.result = dump_blob(result)
            record.updated_at = datetime.utcnow()
            await session.commit()

        return True
