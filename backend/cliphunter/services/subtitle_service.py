"""Subtitle generation from the source audio track."""
import logging
from pathlib import Path
from typing import List, Optional

import httpx

from cliphunter.config import settings
from cliphunter.pipeline.subtitles import SubtitleSegment, build_srt
from cliphunter.utils.ffmpeg import FFmpegError, extract_audio

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """The transcription request failed."""
    pass


class SubtitleService:
    """
    Produces an SRT file for a video using the OpenAI transcription API.

    Without an API key the service is disabled and returns None, so clips
    are rendered without subtitles.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key
        self.model = model or settings.openai_transcription_model
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        # Uploading a full audio track takes longer than a chat completion
        self.timeout = httpx.Timeout(timeout or settings.openai_timeout_seconds * 10, connect=10.0)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def generate_subtitles(self, video_path: str | Path, output_dir: str | Path) -> Optional[Path]:
        """
        Transcribe a video and write ``subtitles.srt`` into output_dir.

        Returns:
            Path to the SRT file, or None when disabled or on any failure
        """
        if not self.enabled:
            logger.info("Subtitle generation skipped: no transcription API key configured")
            return None

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        audio_path = output_dir / "audio.mp3"
        srt_path = output_dir / "subtitles.srt"

        logger.info(f"Generating subtitles for {video_path}")

        try:
            await extract_audio(video_path, audio_path)
            segments = await self.transcribe(audio_path)
            srt_path.write_text(build_srt(segments), encoding="utf-8")
        except FFmpegError as e:
            logger.error(f"Audio extraction failed for {video_path}: {e}\n{e.stderr}")
            return None
        except (TranscriptionError, OSError) as e:
            logger.error(f"Subtitle generation failed for {video_path}: {e}")
            return None
        finally:
            audio_path.unlink(missing_ok=True)

        logger.info(f"Subtitles generated: {srt_path} ({len(segments)} cues)")
        return srt_path

    async def transcribe(self, audio_path: Path) -> List[SubtitleSegment]:
        """
        Send an audio file for transcription and return timed segments.

        Raises:
            TranscriptionError: On transport errors or an unusable response
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data={"model": self.model, "response_format": "verbose_json"},
                    files={"file": (audio_path.name, audio_path.read_bytes(), "audio/mpeg")},
                )
        except httpx.TimeoutException as exc:
            raise TranscriptionError("Transcription request timed out") from exc
        except httpx.RequestError as exc:
            raise TranscriptionError(f"Unable to reach transcription API: {exc}") from exc

        if response.status_code != 200:
            raise TranscriptionError(f"Transcription API returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Invalid transcription response") from exc

        segments = []
        for item in payload.get("segments") or []:
            text = (item.get("text") or "").strip()
            if not text:
                continue
            segments.append(SubtitleSegment(
                start_time=float(item.get("start", 0)),
                end_time=float(item.get("end", 0)),
                text=text,
            ))
        return segments
