"""Clip rendering: vertical crop, burned-in subtitles and titles, thumbnails.

Each clip is rendered in two steps. The first cuts the scene out of the
source, crops it to 9:16 and burns in subtitles, producing an untitled
master under ``masters/``. The second draws the title on top of the master
and writes ``clips/<id>.mp4``. Keeping the master means a title can be
replaced later without stacking overlays.
"""
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from cliphunter.config import settings
from cliphunter.pipeline.scenes import Scene
from cliphunter.pipeline.subtitles import SubtitleSegment, build_srt, parse_srt, slice_segments
from cliphunter.pipeline.titles import build_title_filters
from cliphunter.utils.ffmpeg import (
    EncodePreset,
    FFmpegError,
    ProgressCallback,
    apply_video_filters,
    generate_thumbnail,
    get_video_info,
    render_clip,
)

logger = logging.getLogger(__name__)

ClipProgressCallback = Callable[[int, float], Awaitable[None]]

# Share of a titled clip's progress spent on the master render
MASTER_PROGRESS_SHARE = 70.0


@dataclass
class RenderOptions:
    """Options applied to every clip of a batch."""
    quality: str = "medium"
    include_subtitles: bool = True
    subtitle_path: Optional[Path] = None
    titles: Optional[List[str]] = None


@dataclass
class GeneratedClip:
    """A clip written to disk."""
    id: str
    video_path: Path
    thumbnail_path: Path
    start_time: float
    end_time: float
    duration: float
    score: float
    title: Optional[str] = None


def _escape_filter_path(path: Path) -> str:
    return str(path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def build_base_filters(width: int = None, height: int = None) -> List[str]:
    """Crop a 9:16 window anchored on frame height, then scale to output size."""
    width = width or settings.output_width
    height = height or settings.output_height
    return [
        "crop=ih*9/16:ih",
        f"scale={width}:{height}",
    ]


def build_subtitle_filter(srt_path: Path) -> str:
    """Burn an SRT file in with bottom-centred bold white text."""
    style = (
        f"FontName={settings.subtitle_font},"
        f"FontSize={settings.subtitle_font_size},"
        "PrimaryColour=&H00FFFFFF,"
        "OutlineColour=&H00000000,"
        "Bold=1,"
        "Alignment=2"
    )
    return f"subtitles='{_escape_filter_path(srt_path)}':force_style='{style}'"


class ClipRenderer:
    """Renders selected scenes into vertical clips."""

    async def generate_clips(
        self,
        source_path: str | Path,
        scenes: List[Scene],
        output_dir: str | Path,
        options: Optional[RenderOptions] = None,
        on_progress: Optional[ClipProgressCallback] = None
    ) -> List[GeneratedClip]:
        """
        Render every scene; a failing clip is logged and left out.

        Args:
            source_path: Downloaded source video
            scenes: Scenes to render, in presentation order
            output_dir: Job directory (with clips/, thumbnails/, subtitles/)
            options: Quality, subtitles and per-clip titles
            on_progress: Optional async callback(clip_index, percent)

        Returns:
            Clips that rendered successfully, in scene order
        """
        options = options or RenderOptions()
        preset = EncodePreset.for_quality(options.quality)
        output_dir = Path(output_dir)

        cues: List[SubtitleSegment] = []
        if options.include_subtitles and options.subtitle_path and Path(options.subtitle_path).exists():
            cues = parse_srt(Path(options.subtitle_path).read_text(encoding="utf-8"))

        logger.info(f"Generating {len(scenes)} clips from {source_path}")

        clips: List[GeneratedClip] = []
        for i, scene in enumerate(scenes):
            clip_id = str(uuid.uuid4())
            title = options.titles[i] if options.titles and i < len(options.titles) else None

            async def clip_progress(percent: float, index: int = i):
                if on_progress:
                    await on_progress(index, percent)

            try:
                clip = await self.generate_clip(
                    source_path,
                    scene,
                    clip_id,
                    output_dir,
                    preset,
                    title=title,
                    subtitle_segments=slice_segments(cues, scene.start_time, scene.end_time),
                    on_progress=clip_progress,
                )
            except FFmpegError as e:
                logger.error(f"Failed to generate clip {i + 1}/{len(scenes)} ({scene}): {e}\n{e.stderr}")
                continue
            except Exception:
                logger.exception(f"Failed to generate clip {i + 1}/{len(scenes)} ({scene})")
                continue

            clips.append(clip)
            logger.info(f"Clip {i + 1}/{len(scenes)} generated: {clip_id}")

        logger.info(f"All clips generated: {len(clips)}/{len(scenes)}")
        return clips

    async def generate_clip(
        self,
        source_path: str | Path,
        scene: Scene,
        clip_id: str,
        output_dir: str | Path,
        preset: EncodePreset,
        title: Optional[str] = None,
        subtitle_segments: Optional[List[SubtitleSegment]] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> GeneratedClip:
        """
        Render a single scene into a vertical clip and its thumbnail.

        Raises:
            FFmpegError: If any encode step fails
        """
        output_dir = Path(output_dir)
        master_path = output_dir / "masters" / f"{clip_id}.mp4"
        clip_path = output_dir / "clips" / f"{clip_id}.mp4"
        thumbnail_path = output_dir / "thumbnails" / f"{clip_id}.{settings.thumbnail_format}"

        filters = build_base_filters()
        if subtitle_segments:
            srt_path = output_dir / "subtitles" / f"{clip_id}.srt"
            srt_path.parent.mkdir(parents=True, exist_ok=True)
            srt_path.write_text(build_srt(subtitle_segments), encoding="utf-8")
            filters.append(build_subtitle_filter(srt_path))

        title_filters = build_title_filters(title)
        master_share = MASTER_PROGRESS_SHARE if title_filters else 100.0

        async def master_progress(percent: float):
            if on_progress:
                await on_progress(percent * master_share / 100)

        async def title_progress(percent: float):
            if on_progress:
                await on_progress(master_share + percent * (100 - master_share) / 100)

        await render_clip(
            source_path,
            master_path,
            scene.start_time,
            scene.duration,
            filters,
            preset,
            master_progress,
        )

        if title_filters:
            await self._render_over(master_path, clip_path, title_filters, preset, scene.duration, title_progress)
        else:
            clip_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(master_path, clip_path)

        await generate_thumbnail(clip_path, thumbnail_path, 0)

        return GeneratedClip(
            id=clip_id,
            video_path=clip_path,
            thumbnail_path=thumbnail_path,
            start_time=scene.start_time,
            end_time=scene.end_time,
            duration=scene.duration,
            score=scene.score,
            title=title,
        )

    async def add_title_to_clip(
        self,
        clip_path: str | Path,
        title: str,
        on_progress: Optional[ProgressCallback] = None,
        quality: Optional[str] = None
    ) -> Path:
        """
        Replace the title burned into an existing clip.

        The clip is re-rendered from its untitled master, written to a
        temporary file and swapped in atomically, so repeated calls leave
        exactly one title. The thumbnail is refreshed as well.

        Args:
            clip_path: Path to clips/<id>.mp4
            title: New title text
            on_progress: Optional async callback(percent)
            quality: Quality profile (defaults to settings.default_quality)

        Returns:
            The clip path

        Raises:
            FileNotFoundError: If the clip does not exist
            FFmpegError: If the re-render fails
        """
        clip_path = Path(clip_path)
        if not clip_path.exists():
            raise FileNotFoundError(f"Clip not found: {clip_path}")

        job_dir = clip_path.parent.parent
        master_path = job_dir / "masters" / clip_path.name
        if master_path.exists():
            source = master_path
        else:
            # Clips rendered without a master can only be drawn over
            logger.warning(f"No master for {clip_path.name}, drawing over the rendered clip")
            source = clip_path

        preset = EncodePreset.for_quality(quality or settings.default_quality)
        info = await get_video_info(source)
        title_filters = build_title_filters(title, max_chars=settings.title_regenerate_max_chars)

        logger.info(f"Re-rendering {clip_path.name} with title {title!r}")
        await self._render_over(source, clip_path, title_filters, preset, info.duration, on_progress)

        thumbnail_path = job_dir / "thumbnails" / f"{clip_path.stem}.{settings.thumbnail_format}"
        await generate_thumbnail(clip_path, thumbnail_path, 0)

        return clip_path

    async def _render_over(
        self,
        source: Path,
        destination: Path,
        filters: List[str],
        preset: EncodePreset,
        duration: float,
        on_progress: Optional[ProgressCallback]
    ):
        """Filter source into a temp file next to destination, then swap it in."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_path = destination.with_name(f".{destination.stem}.tmp{destination.suffix}")

        try:
            if filters:
                await apply_video_filters(source, temp_path, filters, preset, duration, on_progress)
            else:
                shutil.copyfile(source, temp_path)
            os.replace(temp_path, destination)
        finally:
            temp_path.unlink(missing_ok=True)
