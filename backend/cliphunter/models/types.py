"""Domain types shared by the store, the worker and the API."""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from cliphunter.config import settings
from cliphunter.models.job import JobStatus, ProcessingStage


class JobProgress(BaseModel):
    """Current stage and completion of a job."""
    stage: ProcessingStage
    percentage: int = Field(0, ge=0, le=100)
    message: str = ""


class JobOptions(BaseModel):
    """User-selected options for a job."""
    max_clips: int = Field(settings.default_max_clips, ge=1, le=settings.max_clips_per_video)
    clip_duration: Optional[float] = Field(
        None,
        ge=settings.min_clip_seconds,
        le=settings.max_clip_seconds,
        description="Preferred clip length in seconds",
    )
    include_subtitles: bool = True


class ClipInfo(BaseModel):
    """A rendered clip as exposed in a job result."""
    id: str
    start_time: float
    end_time: float
    duration: float
    score: float
    thumbnail_url: str
    video_url: str
    title: Optional[str] = None


class JobResult(BaseModel):
    """Result attached to a completed job."""
    source_title: str
    source_duration: float
    clips: List[ClipInfo] = Field(default_factory=list)


class JobError(BaseModel):
    """Structured failure attached to a failed job."""
    message: str
    code: str
    details: Optional[Any] = None


class Job(BaseModel):
    """A clip generation job."""
    id: str
    source_url: str
    status: JobStatus
    progress: JobProgress
    options: JobOptions
    result: Optional[JobResult] = None
    error: Optional[JobError] = None
    created_at: datetime
    updated_at: datetime

    def find_clip(self, clip_id: str) -> Optional[ClipInfo]:
        """Look up a clip of the result by id."""
        if not self.result:
            return None
        for clip in self.result.clips:
            if clip.id == clip_id:
                return clip
        return None
