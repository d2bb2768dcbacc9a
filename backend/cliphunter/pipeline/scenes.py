"""Scene analysis: detect, score and select highlight candidates.

Scene changes from ffmpeg become padded intervals, every interval gets a
heuristic engagement score, and a greedy pass picks the best
non-overlapping, well-spaced subset for rendering.
"""
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from cliphunter.config import settings
from cliphunter.utils.ffmpeg import VideoInfo, FFmpegError, detect_scene_changes, get_video_info

logger = logging.getLogger(__name__)

# Tolerance for float noise when comparing gaps
GAP_EPSILON = 1e-6


@dataclass
class Scene:
    """A candidate time interval in the source video."""
    start_time: float
    end_time: float
    score: float = 0.5

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def overlaps(self, other: "Scene") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time

    def gap_to(self, other: "Scene") -> float:
        """Seconds between the two intervals (negative when they overlap)."""
        if self.end_time <= other.start_time:
            return other.start_time - self.end_time
        if other.end_time <= self.start_time:
            return self.start_time - other.end_time
        return -min(self.end_time, other.end_time) + max(self.start_time, other.start_time)

    def __repr__(self):
        return f"Scene({self.start_time:.2f}-{self.end_time:.2f}, dur={self.duration:.2f}s, score={self.score:.2f})"


@dataclass
class AnalysisConfig:
    """Tunables for scene analysis."""
    scene_threshold: float = 0.4
    min_duration: float = 15.0
    max_duration: float = 60.0
    default_duration: float = 30.0
    ideal_duration: float = 60.0
    padding_before: float = 2.0
    padding_after: float = 3.0
    min_time_between_clips: float = 5.0
    fallback_score: float = 0.3

    @classmethod
    def from_settings(cls) -> "AnalysisConfig":
        return cls(
            scene_threshold=settings.scene_threshold,
            min_duration=settings.min_clip_seconds,
            max_duration=settings.max_clip_seconds,
            default_duration=settings.default_clip_seconds,
            ideal_duration=settings.ideal_clip_seconds,
            padding_before=settings.clip_padding_before,
            padding_after=settings.clip_padding_after,
            min_time_between_clips=settings.min_time_between_clips,
            fallback_score=settings.fallback_scene_score,
        )


class SceneDetectionError(Exception):
    """The external scene detector could not be run."""
    pass


def scenes_from_timestamps(
    timestamps: List[float],
    total_duration: float,
    config: AnalysisConfig
) -> List[Scene]:
    """
    Turn scene-change timestamps into padded, length-clamped intervals.

    Args:
        timestamps: Scene change times in seconds (any order)
        total_duration: Source duration
        config: Analysis configuration

    Returns:
        One scene per consecutive pair of boundaries, each within
        [0, total_duration] and [min_duration, max_duration]
    """
    if total_duration <= 0:
        return []

    # Bracket the changes with the start and end of the source
    boundaries = sorted({t for t in timestamps if 0 < t < total_duration})
    boundaries = [0.0] + boundaries + [total_duration]

    scenes = []
    for i in range(len(boundaries) - 1):
        start = max(0.0, boundaries[i] - config.padding_before)
        end = min(boundaries[i + 1] + config.padding_after, total_duration)

        if end - start < config.min_duration:
            end = min(start + config.min_duration, total_duration)
            # Near the end of the source, grow backwards instead
            start = max(0.0, end - config.min_duration)
        elif end - start > config.max_duration:
            end = start + config.max_duration

        if end - start < config.min_duration:
            continue

        scenes.append(Scene(start_time=start, end_time=end))

    return scenes


class SceneAnalyzer:
    """Media analysis engine: finds the scenes worth rendering."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        probe: Callable[[Path], Awaitable[VideoInfo]] = get_video_info,
        detector: Callable[..., Awaitable[List[float]]] = detect_scene_changes,
    ):
        self.config = config or AnalysisConfig.from_settings()
        self._probe = probe
        self._detector = detector

    async def detect_scenes(
        self,
        video_path: str | Path,
        threshold: Optional[float] = None,
        total_duration: Optional[float] = None
    ) -> List[Scene]:
        """
        Detect scenes with the ffmpeg frame-difference detector.

        Raises:
            SceneDetectionError: If the detector or the probe fails
        """
        threshold = threshold if threshold is not None else self.config.scene_threshold
        logger.info(f"Starting scene detection on {video_path} (threshold={threshold})")

        try:
            if total_duration is None:
                total_duration = (await self._probe(Path(video_path))).duration
            timestamps = await self._detector(video_path, threshold=threshold)
        except FFmpegError as e:
            raise SceneDetectionError(f"Scene detection failed: {e}") from e

        scenes = scenes_from_timestamps(timestamps, total_duration, self.config)
        logger.info(f"Scene detection completed: {len(timestamps)} changes, {len(scenes)} scenes")
        return scenes

    def score_scenes(
        self,
        scenes: List[Scene],
        total_duration: float,
        ideal_duration: Optional[float] = None
    ) -> List[Scene]:
        """Score scenes in [0, 1] by position and length; returns new objects."""
        ideal = ideal_duration or self.config.ideal_duration
        scored = []

        for scene in scenes:
            score = 0.5

            # Intros and outros rarely hold the highlight
            position = scene.start_time / total_duration if total_duration > 0 else 0.0
            if 0.15 < position < 0.85:
                score += 0.15
            if 0.3 < position < 0.7:
                score += 0.1

            duration_diff = abs(scene.duration - ideal)
            score += max(0.0, 1 - duration_diff / ideal) * 0.25

            if scene.duration >= ideal:
                score += 0.1

            scored.append(replace(scene, score=max(0.0, min(score, 1.0))))

        return scored

    def select_best_scenes(self, scenes: List[Scene], max_clips: int) -> List[Scene]:
        """
        Greedily pick the highest scoring, well-separated scenes.

        A candidate is skipped if it overlaps a selected scene or sits
        closer than min_time_between_clips to one, on either side.
        """
        min_spacing = self.config.min_time_between_clips
        ranked = sorted(scenes, key=lambda s: s.score, reverse=True)

        selected: List[Scene] = []
        for scene in ranked:
            if len(selected) >= max_clips:
                break

            too_close = any(
                scene.overlaps(chosen) or scene.gap_to(chosen) < min_spacing - GAP_EPSILON
                for chosen in selected
            )
            if not too_close:
                selected.append(scene)

        return sorted(selected, key=lambda s: s.start_time)

    def create_fallback_scenes(
        self,
        total_duration: float,
        count: int,
        duration: Optional[float] = None
    ) -> List[Scene]:
        """
        Evenly spaced windows for sources where detection came up short.

        Windows never drop below min_duration. When the source cannot hold
        ``count`` of them with min_time_between_clips gaps, fewer windows are
        returned; a source shorter than min_duration gets none.
        """
        min_duration = self.config.min_duration
        spacing = self.config.min_time_between_clips

        if count <= 0 or total_duration < min_duration:
            return []

        while count > 1 and count * min_duration + (count + 1) * spacing > total_duration:
            count -= 1

        window = min(max(duration or self.config.default_duration, min_duration), self.config.max_duration)
        if count * window + (count + 1) * spacing > total_duration:
            window = max(min_duration, (total_duration - (count + 1) * spacing) / count)
        window = min(window, total_duration)

        gap = max(0.0, (total_duration - count * window) / (count + 1))

        scenes = []
        for i in range(count):
            start = gap + i * (window + gap)
            end = min(start + window, total_duration)
            scenes.append(Scene(start_time=start, end_time=end, score=self.config.fallback_score))

        return scenes

    async def analyze_video(
        self,
        video_path: str | Path,
        max_clips: int,
        clip_duration: Optional[float] = None
    ) -> List[Scene]:
        """
        Analyze a video and return the scenes to render, in time order.

        Args:
            video_path: Path to the downloaded source
            max_clips: Maximum number of scenes to return
            clip_duration: Optional preferred clip length

        Returns:
            Selected scenes sorted by start time
        """
        logger.info(f"Analyzing video {video_path} (max_clips={max_clips})")

        metadata = await self._probe(Path(video_path))

        try:
            detected = await self.detect_scenes(video_path, total_duration=metadata.duration)
        except SceneDetectionError as e:
            logger.warning(f"{e}; using fallback scenes")
            detected = []

        candidates = self.score_scenes(detected, metadata.duration, clip_duration)

        if len(candidates) < max_clips:
            logger.warning(
                f"Only {len(candidates)} scenes detected for {max_clips} clips, adding fallback scenes"
            )
            candidates += self.create_fallback_scenes(metadata.duration, max_clips, clip_duration)

        best = self.select_best_scenes(candidates, max_clips)
        logger.info(f"Video analysis completed: {len(best)} scenes selected")
        return best
