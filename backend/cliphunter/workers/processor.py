"""Background worker that runs queued jobs through the clip pipeline."""
import asyncio
import logging
from typing import List, Optional

from cliphunter.config import settings
from cliphunter.models.job import JobStatus, ProcessingStage
from cliphunter.models.types import ClipInfo, Job, JobError, JobProgress, JobResult
from cliphunter.pipeline.renderer import ClipRenderer, GeneratedClip, RenderOptions
from cliphunter.pipeline.scenes import SceneAnalyzer
from cliphunter.services.ai_service import AIService
from cliphunter.services.job_store import JobStore
from cliphunter.services.source_service import DownloadedVideo, SourceService
from cliphunter.services.storage import LocalStorage
from cliphunter.services.subtitle_service import SubtitleService
from cliphunter.workers.progress import JobProgressReporter
from cliphunter.workers.queue import WorkQueue

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Failed to process video"
GENERIC_ERROR_CODE = "PROCESSING_ERROR"

# Progress milestones (percent of the whole job)
DOWNLOAD_SHARE = 0.25
ANALYZING_PROGRESS = 25
TITLES_PROGRESS = 45
SUBTITLES_PROGRESS = 50
GENERATING_PROGRESS = 60
GENERATING_SPAN = 35


class JobCancelledError(Exception):
    """The job was cancelled while it was being processed."""
    pass


class NoClipsGeneratedError(Exception):
    """Every selected scene failed to render."""
    code = "NO_CLIPS_GENERATED"


def describe_error(error: Exception) -> JobError:
    """
    Map an exception to the error stored on a failed job.

    Errors that carry a ``code`` are user-facing and keep their message;
    anything else gets a generic message.
    """
    code = getattr(error, "code", None)
    if code:
        return JobError(
            message=str(error) or GENERIC_ERROR_MESSAGE,
            code=code,
            details={"type": type(error).__name__},
        )
    return JobError(message=GENERIC_ERROR_MESSAGE, code=GENERIC_ERROR_CODE)


class VideoProcessor:
    """Polls the work queue and processes one job at a time."""

    def __init__(
        self,
        job_store: JobStore,
        queue: WorkQueue,
        source: SourceService,
        analyzer: SceneAnalyzer,
        renderer: ClipRenderer,
        subtitles: SubtitleService,
        ai: AIService,
        storage: LocalStorage,
        poll_interval: Optional[float] = None
    ):
        self.job_store = job_store
        self.queue = queue
        self.source = source
        self.analyzer = analyzer
        self.renderer = renderer
        self.subtitles = subtitles
        self.ai = ai
        self.storage = storage
        self.poll_interval = poll_interval if poll_interval is not None else settings.queue_poll_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start polling; the first poll happens immediately."""
        if self.is_running:
            logger.warning("Worker already running")
            return

        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Video processor worker started (poll interval {self.poll_interval}s)")

    async def stop(self):
        """Stop polling and wait for the loop to exit."""
        if not self._task:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Video processor worker stopped")

    async def _poll_loop(self):
        while True:
            try:
                await self.process_next_job()
            except Exception:
                logger.exception("Error in job processing loop")
            await asyncio.sleep(self.poll_interval)

    async def process_next_job(self) -> bool:
        """
        Take the next queued job, if any, and run it to a terminal state.

        Returns:
            True if a job was processed
        """
        if self.queue.is_queue_busy():
            return False

        job = await self.queue.dequeue()
        if not job:
            return False

        await self._process(job)
        return True

    async def _checkpoint(self, job_id: str):
        if await self.job_store.get_status(job_id) == JobStatus.CANCELLED:
            raise JobCancelledError(job_id)

    async def _process(self, job: Job):
        logger.info(f"Processing job {job.id}: {job.source_url}")

        reporter = JobProgressReporter(self.job_store, job.id)
        downloaded: Optional[DownloadedVideo] = None
        succeeded = False

        try:
            # Cancelled between dequeue and start
            await self._checkpoint(job.id)

            await self.job_store.update_job_status(
                job.id,
                JobStatus.PROCESSING,
                JobProgress(stage=ProcessingStage.DOWNLOADING, percentage=0, message="Downloading video..."),
            )

            async def download_progress(percent: float, message: str):
                await reporter.report(ProcessingStage.DOWNLOADING, percent * DOWNLOAD_SHARE, message)

            downloaded = await self.source.download_video(job.source_url, job.id, download_progress)
            await self._checkpoint(job.id)

            await reporter.report(ProcessingStage.ANALYZING, ANALYZING_PROGRESS, "Analyzing video...")
            scenes = await self.analyzer.analyze_video(
                downloaded.local_path,
                job.options.max_clips,
                job.options.clip_duration,
            )
            await self._checkpoint(job.id)

            await reporter.report(ProcessingStage.TRANSCRIBING, TITLES_PROGRESS, "Generating clip titles...")
            titles = await self._generate_titles(downloaded.title, len(scenes))

            await reporter.report(ProcessingStage.TRANSCRIBING, SUBTITLES_PROGRESS, "Generating subtitles...")
            job_dir = self.storage.ensure_job_dir(job.id)
            subtitle_path = None
            if job.options.include_subtitles:
                subtitle_path = await self.subtitles.generate_subtitles(downloaded.local_path, job_dir / "subtitles")
            await self._checkpoint(job.id)

            await reporter.report(ProcessingStage.GENERATING, GENERATING_PROGRESS, "Generating clips...")
            total = len(scenes)

            async def clip_progress(index: int, percent: float):
                share = GENERATING_SPAN / total
                await reporter.report(
                    ProcessingStage.GENERATING,
                    GENERATING_PROGRESS + index * share + percent / 100 * share,
                    f"Generating clip {index + 1}/{total}...",
                )

            clips = await self.renderer.generate_clips(
                downloaded.local_path,
                scenes,
                job_dir,
                RenderOptions(
                    quality=settings.default_quality,
                    include_subtitles=job.options.include_subtitles,
                    subtitle_path=subtitle_path,
                    titles=titles or None,
                ),
                clip_progress,
            )

            if scenes and not clips:
                raise NoClipsGeneratedError(f"None of the {len(scenes)} selected clips could be rendered")
            await self._checkpoint(job.id)

            result = JobResult(
                source_title=downloaded.title,
                source_duration=downloaded.duration,
                clips=self._clip_infos(clips),
            )
            if not await self.job_store.complete_job(job.id, result):
                # Cancelled after the last checkpoint
                raise JobCancelledError(job.id)
            succeeded = True

            logger.info(f"Job {job.id} completed successfully ({len(clips)} clips)")

        except JobCancelledError:
            logger.info(f"Job {job.id} was cancelled, discarding its outputs")
            self.storage.delete_job_files(job.id)

        except Exception as e:
            error = describe_error(e)
            if error.code == GENERIC_ERROR_CODE:
                logger.exception(f"Job {job.id} failed")
            else:
                logger.error(f"Job {job.id} failed: {error.code} {error.message}")

            self.storage.delete_job_files(job.id)
            await self.job_store.fail_job(job.id, error)

        finally:
            if downloaded:
                await self.source.cleanup(downloaded.local_path)
            if succeeded:
                await self.queue.complete(job.id)
            else:
                await self.queue.fail(job.id)

    async def _generate_titles(self, source_title: str, count: int) -> List[str]:
        """Overlay titles when AI is configured; any failure means no titles."""
        if not self.ai.enabled:
            logger.info("AI not configured, skipping title generation")
            return []
        if count == 0:
            return []

        try:
            return await self.ai.generate_clip_titles(source_title, count)
        except Exception as e:
            logger.warning(f"Failed to generate clip titles, continuing without titles: {e}")
            return []

    def _clip_infos(self, clips: List[GeneratedClip]) -> List[ClipInfo]:
        return [
            ClipInfo(
                id=clip.id,
                start_time=clip.start_time,
                end_time=clip.end_time,
                duration=clip.duration,
                score=clip.score,
                thumbnail_url=self.storage.get_file_url(self.storage.key_for(clip.thumbnail_path)),
                video_url=self.storage.get_file_url(self.storage.key_for(clip.video_path)),
                title=clip.title,
            )
            for clip in clips
        ]
