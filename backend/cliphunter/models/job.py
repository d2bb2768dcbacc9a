"""Job model for tracking clip generation runs."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Enum, Text, Index

from cliphunter.db.database import Base


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProcessingStage(str, enum.Enum):
    """Pipeline stage reported in job progress."""
    DOWNLOADING = "downloading"
    ANALYZING = "analyzing"
    TRANSCRIBING = "transcribing"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


class JobRecord(Base):
    """Persisted job row; nested fields are versioned JSON blobs."""

    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_status_created", "status", "created_at"),
        Index("idx_jobs_updated", "updated_at"),
    )

    id = Column(String(36), primary_key=True)
    source_url = Column(String(2048), nullable=False)
    status = Column(Enum(JobStatus), default=JobStatus.QUEUED, nullable=False)

    # JSON blobs (see cliphunter.models.codec)
    progress = Column(Text, nullable=False)
    result = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    options = Column(Text, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<JobRecord(id={self.id}, status={self.status})>"
