"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from cliphunter.config import settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], Awaitable[None]]


@dataclass
class VideoInfo:
    """Video metadata container."""
    duration: float
    width: int
    height: int
    fps: float
    codec: str
    audio_codec: Optional[str]
    format_name: str
    bitrate: Optional[int]
    title: Optional[str] = None


@dataclass
class EncodePreset:
    """Encoder parameters for one quality profile."""
    video_bitrate: str
    audio_bitrate: str
    preset: str

    @classmethod
    def for_quality(cls, quality: str) -> "EncodePreset":
        """Look up a named quality profile from settings."""
        try:
            values = settings.quality_presets[quality]
        except KeyError:
            raise ValueError(f"Unknown quality profile: {quality}")
        return cls(**values)


class FFmpegError(Exception):
    """FFmpeg related error, carrying the tool output for diagnosis."""

    code = "MEDIA_ERROR"

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


def format_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm for ffmpeg."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:06.3f}"


def parse_timemark(timemark: str) -> Optional[float]:
    """Parse an HH:MM:SS.ms timemark into seconds (None if unparseable)."""
    parts = timemark.strip().split(":")
    if len(parts) != 3:
        return None
    try:
        hours, mins, secs = (float(p) for p in parts)
    except ValueError:
        return None
    return hours * 3600 + mins * 60 + secs


async def get_video_info(video_path: str | Path) -> VideoInfo:
    """
    Get video metadata using ffprobe.

    Args:
        video_path: Path to video file

    Returns:
        VideoInfo with video metadata

    Raises:
        FFmpegError: If ffprobe fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")

    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            raise FFmpegError("ffprobe failed", stdout.decode(errors="ignore"), stderr.decode(errors="ignore"))

        data = json.loads(stdout.decode())

        # Find video stream
        video_stream = None
        audio_stream = None
        for stream in data.get("streams", []):
            if stream.get("codec_type") == "video" and video_stream is None:
                video_stream = stream
            elif stream.get("codec_type") == "audio" and audio_stream is None:
                audio_stream = stream

        if not video_stream:
            raise FFmpegError("No video stream found")

        # Parse frame rate
        fps_str = video_stream.get("r_frame_rate", "30/1")
        if "/" in fps_str:
            num, den = fps_str.split("/")
            fps = float(num) / float(den) if float(den) > 0 else 30.0
        else:
            fps = float(fps_str)

        # Get duration
        format_data = data.get("format", {})
        duration = float(format_data.get("duration", 0))
        if duration == 0:
            duration = float(video_stream.get("duration", 0))

        return VideoInfo(
            duration=duration,
            width=int(video_stream.get("width", 0)),
            height=int(video_stream.get("height", 0)),
            fps=fps,
            codec=video_stream.get("codec_name", "unknown"),
            audio_codec=audio_stream.get("codec_name") if audio_stream else None,
            format_name=format_data.get("format_name", "unknown"),
            bitrate=int(format_data.get("bit_rate", 0)) or None,
            title=format_data.get("tags", {}).get("title"),
        )
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")
    except Exception as e:
        if isinstance(e, FFmpegError):
            raise
        raise FFmpegError(f"ffprobe error: {e}")


async def detect_scene_changes(
    video_path: str | Path,
    threshold: float = None,
    progress_callback: Optional[ProgressCallback] = None,
    total_duration: Optional[float] = None,
) -> List[float]:
    """
    Detect scene changes in a video using FFmpeg.

    Only every 5th frame is compared, which is enough for highlight
    boundaries and keeps long sources fast.

    Args:
        video_path: Path to video file
        threshold: Scene detection threshold (0-1), lower = more sensitive
        progress_callback: Optional async callback(progress: float)
        total_duration: Source duration, required for progress reporting

    Returns:
        Sorted list of timestamps (in seconds) where scene changes occur

    Raises:
        FFmpegError: If ffmpeg exits with an error
    """
    video_path = Path(video_path)
    if threshold is None:
        threshold = settings.scene_threshold

    cmd = [
        settings.ffmpeg_path,
        "-hide_banner",
        "-i", str(video_path),
        "-vf", f"select='not(mod(n,5))*gt(scene,{threshold})',showinfo",
        "-vsync", "vfr",
        "-f", "null",
        "-"
    ]

    timestamps: List[float] = []
    tail: List[str] = []

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE
    )

    # FFmpeg writes showinfo and stats to stderr
    last_progress = 0.0
    while True:
        line = await proc.stderr.readline()
        if not line:
            break

        line_str = line.decode("utf-8", errors="ignore")
        tail.append(line_str)
        if len(tail) > 50:
            tail.pop(0)

        if "pts_time:" in line_str:
            for part in line_str.split():
                if part.startswith("pts_time:"):
                    try:
                        timestamps.append(float(part.split(":", 1)[1]))
                    except ValueError:
                        pass
                    break

        if progress_callback and total_duration and "time=" in line_str:
            for part in line_str.split():
                if part.startswith("time="):
                    current_time = parse_timemark(part.split("=", 1)[1])
                    if current_time is not None:
                        progress = min(100.0, (current_time / total_duration) * 100)
                        if progress - last_progress >= 1:
                            await progress_callback(progress)
                            last_progress = progress
                    break

    await proc.wait()

    if proc.returncode != 0:
        raise FFmpegError("Scene detection failed", stderr="".join(tail))

    return sorted(set(timestamps))


async def _run_ffmpeg_with_progress(
    cmd: List[str],
    duration: float,
    progress_callback: Optional[ProgressCallback],
    error_message: str,
):
    """Run an ffmpeg command that writes `-progress pipe:1` output.

    stdout is parsed line by line for the `out_time` timemark while stderr
    is drained concurrently so a chatty encoder cannot fill the pipe.
    """
    logger.debug(f"Running ffmpeg: {' '.join(cmd)}")

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stderr_task = asyncio.create_task(proc.stderr.read())

    stdout_lines: List[str] = []
    last_progress = 0.0
    while True:
        line = await proc.stdout.readline()
        if not line:
            break

        line_str = line.decode("utf-8", errors="ignore").strip()
        stdout_lines.append(line_str)
        if len(stdout_lines) > 100:
            stdout_lines.pop(0)

        if progress_callback and duration > 0 and line_str.startswith("out_time="):
            current_time = parse_timemark(line_str.split("=", 1)[1])
            if current_time is None:
                continue
            progress = min(100.0, (current_time / duration) * 100)
            if progress - last_progress >= 1:
                await progress_callback(progress)
                last_progress = progress

    await proc.wait()
    stderr = (await stderr_task).decode("utf-8", errors="ignore")

    if proc.returncode != 0:
        raise FFmpegError(error_message, "\n".join(stdout_lines), stderr)

    if progress_callback and last_progress < 100:
        await progress_callback(100.0)


async def render_clip(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    duration: float,
    video_filters: List[str],
    preset: EncodePreset,
    progress_callback: Optional[ProgressCallback] = None
) -> Path:
    """
    Cut, filter and encode a clip from the source video.

    Args:
        source_path: Path to source video
        output_path: Path for output file
        start_time: Start time in seconds
        duration: Clip length in seconds
        video_filters: Filters joined into the -vf chain
        preset: Encoder parameters
        progress_callback: Optional async callback(progress: float)

    Returns:
        Path to rendered clip

    Raises:
        FFmpegError: If the encode fails
    """
    source_path = Path(source_path)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-ss", format_time(start_time),
        "-i", str(source_path),
        "-t", f"{duration:.3f}",
        "-vf", ",".join(video_filters),
        "-r", str(settings.output_fps),
        "-c:v", settings.video_codec,
        "-b:v", preset.video_bitrate,
        "-preset", preset.preset,
        "-c:a", settings.audio_codec,
        "-b:a", preset.audio_bitrate,
        "-threads", str(settings.ffmpeg_threads),
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        "-nostats",
        str(output_path)
    ]

    await _run_ffmpeg_with_progress(cmd, duration, progress_callback, "Clip render failed")
    return output_path


async def apply_video_filters(
    input_path: str | Path,
    output_path: str | Path,
    video_filters: List[str],
    preset: EncodePreset,
    duration: float,
    progress_callback: Optional[ProgressCallback] = None
) -> Path:
    """
    Re-encode a whole video through a filter chain, copying the audio.

    Args:
        input_path: Video to filter
        output_path: Destination file
        video_filters: Filters joined into the -vf chain
        preset: Encoder parameters
        duration: Input duration, for progress reporting
        progress_callback: Optional async callback(progress: float)

    Returns:
        Path to filtered video
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(input_path),
        "-vf", ",".join(video_filters),
        "-c:v", settings.video_codec,
        "-b:v", preset.video_bitrate,
        "-preset", preset.preset,
        "-c:a", "copy",
        "-threads", str(settings.ffmpeg_threads),
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        "-nostats",
        str(output_path)
    ]

    await _run_ffmpeg_with_progress(cmd, duration, progress_callback, "Filter pass failed")
    return output_path


async def generate_thumbnail(
    video_path: str | Path,
    output_path: str | Path,
    timestamp: float,
    width: int = None,
    height: int = None
) -> Path:
    """
    Generate a thumbnail from a video at a specific timestamp.

    Args:
        video_path: Path to video file
        output_path: Path to save thumbnail
        timestamp: Time in seconds to capture
        width: Optional thumbnail width
        height: Optional thumbnail height

    Returns:
        Path to generated thumbnail
    """
    video_path = Path(video_path)
    output_path = Path(output_path)

    width = width or settings.thumbnail_width
    height = height or settings.thumbnail_height

    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",  # Overwrite
        "-ss", str(timestamp),
        "-i", str(video_path),
        "-vframes", "1",
        "-vf", f"scale={width}:{height}:force_original_aspect_ratio=decrease,pad={width}:{height}:(ow-iw)/2:(oh-ih)/2",
        "-q:v", "2",
        str(output_path)
    ]

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError("Thumbnail generation failed", stdout.decode(errors="ignore"), stderr.decode(errors="ignore"))

    return output_path


async def extract_audio(
    video_path: str | Path,
    output_path: str | Path,
    sample_rate: int = 16000
) -> Path:
    """
    Extract a mono, low-bitrate audio track for transcription.

    Args:
        video_path: Path to video file
        output_path: Destination audio file (.mp3)
        sample_rate: Output sample rate

    Returns:
        Path to extracted audio
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-i", str(video_path),
        "-vn",
        "-ac", "1",
        "-ar", str(sample_rate),
        "-b:a", "32k",
        str(output_path)
    ]

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError("Audio extraction failed", stdout.decode(errors="ignore"), stderr.decode(errors="ignore"))

    return output_path
