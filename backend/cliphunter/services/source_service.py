"""Source acquisition: fetch YouTube videos into the temp directory."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from cliphunter.config import settings
from cliphunter.utils import ytdlp
from cliphunter.utils.ytdlp import YtdlpError, extract_video_id, is_youtube_url, sanitize_filename

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base class for source acquisition failures."""
    code = "DOWNLOAD_FAILED"


class InvalidVideoUrlError(SourceError):
    code = "INVALID_URL"

    def __init__(self, message: str = "Invalid YouTube URL"):
        super().__init__(message)


class VideoTooLongError(SourceError):
    code = "VIDEO_TOO_LONG"


class DownloadError(SourceError):
    code = "DOWNLOAD_FAILED"


@dataclass
class SourceInfo:
    """Metadata about a remote video."""
    title: str
    duration: float
    thumbnail: str = ""


@dataclass
class DownloadedVideo:
    """A source video available on local disk."""
    id: str
    title: str
    duration: float
    local_path: Path
    thumbnail: str = ""


class SourceService:
    """Downloads source videos with yt-dlp."""

    def __init__(self, temp_dir: Optional[Path] = None, max_duration: Optional[float] = None):
        self.temp_dir = Path(temp_dir or settings.temp_dir)
        self.max_duration = max_duration if max_duration is not None else settings.max_video_duration
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    async def get_video_info(self, url: str) -> SourceInfo:
        """
        Fetch title, duration and thumbnail without downloading.

        Raises:
            InvalidVideoUrlError: If the URL is not a YouTube video URL
            DownloadError: If yt-dlp cannot read the video
        """
        if not is_youtube_url(url):
            raise InvalidVideoUrlError()

        try:
            info = await ytdlp.get_video_info_ytdlp(url)
        except YtdlpError as e:
            logger.error(f"Failed to get video info for {url}: {e}")
            raise DownloadError(f"Failed to get video information: {e}") from e

        return SourceInfo(
            title=sanitize_filename(info.get("title") or "Unknown"),
            duration=float(info.get("duration") or 0),
            thumbnail=info.get("thumbnail") or "",
        )

    async def download_video(
        self,
        url: str,
        job_id: str,
        on_progress: Optional[Callable[[float, str], Awaitable[None]]] = None
    ) -> DownloadedVideo:
        """
        Download a video for a job.

        Args:
            url: YouTube URL
            job_id: Job the download belongs to (prefixes the filename)
            on_progress: Optional async callback(percent 0-100, message)

        Returns:
            The downloaded video

        Raises:
            InvalidVideoUrlError: If the URL is not a YouTube video URL
            VideoTooLongError: If the video exceeds max_video_duration
            DownloadError: If the download fails
        """
        video_id = extract_video_id(url) if is_youtube_url(url) else None
        if not video_id:
            raise InvalidVideoUrlError()

        logger.info(f"Starting video download for job {job_id}: {url}")

        info = await self.get_video_info(url)
        if self.max_duration and info.duration > self.max_duration:
            raise VideoTooLongError(
                f"Video exceeds maximum duration ({info.duration:.0f}s > {self.max_duration:.0f}s)"
            )

        filename = sanitize_filename(f"{job_id}_{video_id}")
        try:
            local_path = await ytdlp.download_video(url, self.temp_dir, filename, on_progress)
        except YtdlpError as e:
            logger.error(f"Video download failed for {url}: {e}")
            raise DownloadError(f"Failed to download video: {e}") from e

        logger.info(f"Video downloaded successfully: {local_path}")
        return DownloadedVideo(
            id=video_id,
            title=info.title,
            duration=info.duration,
            local_path=local_path,
            thumbnail=info.thumbnail,
        )

    async def cleanup(self, path: Optional[str | Path]):
        """Delete a downloaded file. Failures are logged, never raised."""
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
            logger.debug(f"Cleaned up video file {path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup video file {path}: {e}")
