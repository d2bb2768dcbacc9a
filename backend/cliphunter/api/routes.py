"""API routes."""
import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from cliphunter.container import AppContainer
from cliphunter.models.job import JobStatus
from cliphunter.models.types import Job, JobOptions
from cliphunter.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from cliphunter.utils.ytdlp import check_ytdlp_available, is_youtube_url
from cliphunter.api.schemas import (
    CreateJobRequest,
    CreateJobResponse,
    CancelJobResponse,
    RegenerateClipRequest,
    RegenerateClipResponse,
    RegeneratedClip,
    MetadataRequest,
    MetadataResponse,
    HealthResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

MAX_TITLE_LENGTH = 100


def get_container(request: Request) -> AppContainer:
    """Components built in the application lifespan."""
    return request.app.state.container


def api_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"message": message, "code": code})


async def _get_job_or_404(container: AppContainer, job_id: str) -> Job:
    if not UUID_PATTERN.match(job_id):
        raise api_error(400, "INVALID_JOB_ID", "Invalid job ID")

    job = await container.job_store.get_job(job_id)
    if not job:
        raise api_error(404, "JOB_NOT_FOUND", "Job not found")
    return job


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(container: AppContainer = Depends(get_container)):
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()
    ytdlp_ok = check_ytdlp_available()

    all_ok = ffmpeg_ok and ffprobe_ok and ytdlp_ok

    message = None
    if not all_ok:
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        if not ytdlp_ok:
            missing.append("yt-dlp")
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        ytdlp_available=ytdlp_ok,
        ai_enabled=container.ai.enabled,
        message=message
    )


# =============================================================================
# Jobs
# =============================================================================

@router.post("/jobs", response_model=CreateJobResponse, status_code=201)
async def create_job(
    request: CreateJobRequest,
    container: AppContainer = Depends(get_container)
):
    """Admit a new clip generation job."""
    source_url = request.source_url.strip()
    if not is_youtube_url(source_url):
        raise api_error(400, "INVALID_URL", "Invalid YouTube URL")

    job = await container.queue.enqueue(source_url, request.options or JobOptions())
    logger.info(f"Job created via API: {job.id} ({source_url})")

    return CreateJobResponse(job_id=job.id, status=job.status, created_at=job.created_at)


@router.get("/jobs", response_model=List[Job])
async def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    status: Optional[JobStatus] = None,
    container: AppContainer = Depends(get_container)
):
    """List recent jobs, newest first."""
    return await container.job_store.list_jobs(limit=limit, status=status)


@router.get("/jobs/{job_id}", response_model=Job)
async def get_job(job_id: str, container: AppContainer = Depends(get_container)):
    """Get a job with its progress, result or error."""
    return await _get_job_or_404(container, job_id)


@router.get("/jobs/{job_id}/status", response_model=Job)
async def get_job_status(job_id: str, container: AppContainer = Depends(get_container)):
    """Polling endpoint for job progress."""
    return await _get_job_or_404(container, job_id)


@router.post("/jobs/{job_id}/cancel", response_model=CancelJobResponse)
async def cancel_job(job_id: str, container: AppContainer = Depends(get_container)):
    """Cancel a queued or running job."""
    job = await _get_job_or_404(container, job_id)

    if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
        raise api_error(409, "JOB_ALREADY_COMPLETED", "Job already completed")

    if not await container.job_store.cancel_job(job_id):
        # Finished between the read and the cancel
        raise api_error(409, "JOB_ALREADY_COMPLETED", "Job already completed")

    return CancelJobResponse(job_id=job_id, status=JobStatus.CANCELLED)


# =============================================================================
# Clips
# =============================================================================

@router.post("/jobs/{job_id}/clips/{clip_id}/regenerate", response_model=RegenerateClipResponse)
async def regenerate_clip(
    job_id: str,
    clip_id: str,
    request: RegenerateClipRequest,
    container: AppContainer = Depends(get_container)
):
    """Replace the title burned into a clip of a completed job."""
    title = request.title.strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise api_error(400, "INVALID_TITLE", f"Title must be between 1 and {MAX_TITLE_LENGTH} characters")

    job = await _get_job_or_404(container, job_id)

    if job.status != JobStatus.COMPLETED:
        raise api_error(409, "JOB_NOT_COMPLETED", "Clips can only be regenerated for completed jobs")

    clip = job.find_clip(clip_id)
    if not clip:
        raise api_error(404, "CLIP_NOT_FOUND", "Clip not found")

    clip_path = container.storage.get_local_path(f"{job_id}/clips/{clip.id}.mp4")
    logger.info(f"Regenerating clip {clip_id} of job {job_id} with title {title!r}")

    try:
        await container.renderer.add_title_to_clip(clip_path, title)
    except Exception:
        logger.exception(f"Failed to regenerate clip {clip_id} of job {job_id}")
        raise api_error(500, "REGENERATION_ERROR", "Failed to regenerate clip")

    await container.job_store.update_clip_title(job_id, clip_id, title)

    return RegenerateClipResponse(
        clip=RegeneratedClip(id=clip.id, title=title, video_url=clip.video_url)
    )


# =============================================================================
# Metadata
# =============================================================================

@router.post("/metadata", response_model=MetadataResponse)
async def generate_metadata(
    request: MetadataRequest,
    container: AppContainer = Depends(get_container)
):
    """Title, description and tags for publishing a clip."""
    metadata = await container.ai.generate_metadata(
        request.source_title,
        request.clip_number,
        request.total_clips,
    )
    return MetadataResponse(
        title=metadata.title,
        description=metadata.description,
        tags=metadata.tags,
    )
