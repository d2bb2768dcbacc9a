"""Application configuration."""
from pathlib import Path
from typing import Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "Cliphunter"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/cliphunter.db"

    # Data directories
    data_dir: Path = Path("./data")
    output_dir: Path = Path("./data/outputs")
    temp_dir: Path = Path("./data/temp")
    output_url_prefix: str = "/outputs"

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ytdlp_path: str = "yt-dlp"
    ffmpeg_threads: int = 2

    # Source limits
    max_video_duration: float = 3600.0  # Seconds
    max_clips_per_video: int = 10
    default_max_clips: int = 5

    # Scene analysis
    scene_threshold: float = 0.4  # FFmpeg scene detection threshold
    min_clip_seconds: float = 15.0
    max_clip_seconds: float = 60.0
    default_clip_seconds: float = 30.0  # Fallback window length
    ideal_clip_seconds: float = 60.0
    clip_padding_before: float = 2.0  # Lead-in before a scene change
    clip_padding_after: float = 3.0  # Lead-out after the next change
    min_time_between_clips: float = 5.0
    fallback_scene_score: float = 0.3

    # Rendering
    output_width: int = 1080
    output_height: int = 1920
    output_fps: int = 30
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    default_quality: str = "medium"
    quality_presets: Dict[str, Dict[str, str]] = {
        "low": {"video_bitrate": "500k", "audio_bitrate": "64k", "preset": "veryfast"},
        "medium": {"video_bitrate": "1000k", "audio_bitrate": "128k", "preset": "fast"},
        "high": {"video_bitrate": "2500k", "audio_bitrate": "192k", "preset": "medium"},
    }

    # Title overlay
    title_max_chars: int = 18
    title_regenerate_max_chars: int = 20
    title_max_lines: int = 3
    title_font: str = "Arial Black"
    title_font_file: Optional[str] = None  # Overrides title_font when set
    title_font_size: int = 72
    title_border_width: int = 6
    title_top_offset: int = 150
    title_line_spacing: int = 90
    title_visible_seconds: float = 9.0
    title_fade_seconds: float = 1.0

    # Thumbnail settings
    thumbnail_width: int = 1080
    thumbnail_height: int = 1920
    thumbnail_format: str = "jpg"

    # Subtitle styling
    subtitle_font: str = "Arial"
    subtitle_font_size: int = 24

    # Worker
    queue_poll_interval: float = 5.0  # Seconds
    run_worker: bool = True

    # AI (optional, enabled by presence of an API key)
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_transcription_model: str = "whisper-1"
    openai_timeout_seconds: float = 30.0

    # Frontend
    frontend_url: str = "http://localhost:3000"


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.output_dir.mkdir(parents=True, exist_ok=True)
settings.temp_dir.mkdir(parents=True, exist_ok=True)
