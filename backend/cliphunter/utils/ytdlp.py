"""yt-dlp utilities for YouTube video download."""
import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from cliphunter.config import settings

logger = logging.getLogger(__name__)

YOUTUBE_URL_PATTERNS = [
    r"^https?://(?:www\.)?youtube\.com/watch\?v=[\w-]+",
    r"^https?://youtu\.be/[\w-]+",
    r"^https?://(?:www\.)?youtube\.com/shorts/[\w-]+",
]

VIDEO_EXTENSIONS = ("mp4", "mkv", "webm", "mov")


class YtdlpError(Exception):
    """yt-dlp related error."""
    pass


def check_ytdlp_available() -> bool:
    """Check if yt-dlp is available."""
    return shutil.which(settings.ytdlp_path) is not None


def is_youtube_url(url: str) -> bool:
    """Check if a URL is a valid YouTube URL."""
    return any(re.match(pattern, url) for pattern in YOUTUBE_URL_PATTERNS)


def extract_video_id(url: str) -> Optional[str]:
    """Extract the YouTube video id from a watch, short-link or Shorts URL."""
    for pattern in (r"[?&]v=([^&#]+)", r"youtu\.be/([^?&#/]+)", r"/shorts/([^?&#/]+)"):
        match = re.search(pattern, url)
        if match:
            return match.group(1)
    return None


def sanitize_filename(filename: str) -> str:
    """Replace anything but safe filename characters, limited to 255 chars."""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    cleaned = re.sub(r"\.+", ".", cleaned)
    return cleaned[:255]


async def get_video_info_ytdlp(url: str) -> dict:
    """
    Get video information from YouTube without downloading.

    Args:
        url: YouTube URL

    Returns:
        Dictionary with video metadata
    """
    cmd = [
        settings.ytdlp_path,
        "--dump-json",
        "--no-download",
        "--no-playlist",
        url
    ]

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        error_msg = stderr.decode(errors="ignore").strip()
        raise YtdlpError(f"Failed to get video info: {error_msg}")

    try:
        return json.loads(stdout.decode())
    except json.JSONDecodeError as e:
        raise YtdlpError(f"Failed to parse video info: {e}")


def _remove_partials(output_dir: Path, prefix: str):
    """Delete leftovers of an interrupted download for this prefix."""
    for pattern in (f"{prefix}*.part", f"{prefix}*.ytdl"):
        for partial in output_dir.glob(pattern):
            try:
                partial.unlink()
            except OSError as e:
                logger.warning(f"Could not remove partial download {partial}: {e}")


def _find_downloaded_file(output_dir: Path, prefix: str) -> Optional[Path]:
    """Locate the finished download for a filename prefix (prefers .mp4)."""
    for ext in VIDEO_EXTENSIONS:
        for candidate in sorted(output_dir.glob(f"{prefix}*.{ext}")):
            # Make sure it's not a stub
            if candidate.stat().st_size > 1000:
                return candidate
    return None


async def download_video(
    url: str,
    output_dir: Path,
    filename: str,
    progress_callback: Optional[Callable[[float, str], Awaitable[None]]] = None
) -> Path:
    """
    Download a YouTube video, capped at 1080p.

    Args:
        url: YouTube URL
        output_dir: Directory to save the video
        filename: Base filename without extension
        progress_callback: Optional async callback(progress: float, message: str)

    Returns:
        Path to downloaded video file

    Raises:
        YtdlpError: If yt-dlp fails or no video file is produced
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    _remove_partials(output_dir, filename)

    output_template = str(output_dir / f"{filename}.%(ext)s")

    cmd = [
        settings.ytdlp_path,
        "-f", "bv*[height<=1080][ext=mp4]+ba[ext=m4a]/b[ext=mp4]/bv*+ba/b",
        "--merge-output-format", "mp4",
        "-o", output_template,
        "--no-playlist",
        "--progress",
        "--newline",
        "--force-overwrites",
        url
    ]

    logger.info(f"Running yt-dlp command: {' '.join(cmd)}")

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT
    )

    merged_path: Optional[Path] = None
    output_lines: List[str] = []

    while True:
        line = await proc.stdout.readline()
        if not line:
            break

        line_str = line.decode("utf-8", errors="ignore").strip()
        output_lines.append(line_str)

        if progress_callback:
            # Match download progress like "[download]  50.0% of 123.45MiB at 2.00MiB/s"
            progress_match = re.search(r"\[download\]\s+(\d+\.?\d*)%", line_str)
            if progress_match:
                progress = float(progress_match.group(1))
                speed_match = re.search(r"at\s+(\S+/s)", line_str)
                speed = f" ({speed_match.group(1)})" if speed_match else ""
                await progress_callback(progress * 0.9, f"Downloading video... {progress:.0f}%{speed}")
            elif "Merging formats" in line_str:
                await progress_callback(92, "Merging video and audio...")

        if "Merging formats into" in line_str:
            merge_match = re.search(r'Merging formats into "(.+)"', line_str)
            if merge_match:
                merged_path = Path(merge_match.group(1))

    await proc.wait()

    if proc.returncode != 0:
        logger.error("yt-dlp failed with output:\n" + "\n".join(output_lines[-20:]))
        raise YtdlpError("Download failed - check URL and try again")

    if merged_path and merged_path.exists():
        final_path = merged_path
    else:
        final_path = _find_downloaded_file(output_dir, filename)

    if not final_path:
        logger.error("Last yt-dlp output:\n" + "\n".join(output_lines[-20:]))
        raise YtdlpError("Download completed but video file not found")

    if progress_callback:
        await progress_callback(100, "Download complete, processing...")

    logger.info(f"Downloaded video to {final_path}")
    return final_path
