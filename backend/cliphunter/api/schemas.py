"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from cliphunter.models.job import JobStatus
from cliphunter.models.types import JobOptions


# =============================================================================
# Jobs
# =============================================================================

class CreateJobRequest(BaseModel):
    """Request to create a clip generation job."""
    source_url: str = Field(..., description="YouTube video URL")
    options: Optional[JobOptions] = Field(None, description="Job options (defaults apply when omitted)")


class CreateJobResponse(BaseModel):
    """Response for a newly admitted job."""
    job_id: str
    status: JobStatus
    created_at: datetime


class CancelJobResponse(BaseModel):
    """Response for a cancelled job."""
    job_id: str
    status: JobStatus


# =============================================================================
# Clips
# =============================================================================

class RegenerateClipRequest(BaseModel):
    """Request to replace a clip's title overlay."""
    title: str = Field(..., description="New title (1-100 characters after trimming)")


class RegeneratedClip(BaseModel):
    id: str
    title: str
    video_url: str


class RegenerateClipResponse(BaseModel):
    """Response for a regenerated clip."""
    success: bool = True
    clip: RegeneratedClip


# =============================================================================
# Metadata
# =============================================================================

class MetadataRequest(BaseModel):
    """Request for upload metadata of one clip."""
    source_title: str = Field(..., min_length=1)
    clip_number: int = Field(..., ge=1)
    total_clips: int = Field(..., ge=1)


class MetadataResponse(BaseModel):
    """Generated upload metadata."""
    title: str
    description: str
    tags: List[str]


# =============================================================================
# Health
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    ytdlp_available: bool
    ai_enabled: bool
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    """Body of an error response, under ``detail``."""
    message: str
    code: str
    details: Optional[list] = None
