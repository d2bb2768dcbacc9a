"""Tests for scene analysis."""
import pytest

from cliphunter.pipeline.scenes import (
    AnalysisConfig,
    Scene,
    SceneAnalyzer,
    scenes_from_timestamps,
)
from cliphunter.utils.ffmpeg import FFmpegError, VideoInfo


def _info(duration: float) -> VideoInfo:
    return VideoInfo(
        duration=duration,
        width=1920,
        height=1080,
        fps=30.0,
        codec="h264",
        audio_codec="aac",
        format_name="mp4",
        bitrate=None,
    )


def _analyzer(duration: float = 120.0, timestamps=None, detector_error=None) -> SceneAnalyzer:
    async def probe(path):
        return _info(duration)

    async def detector(path, threshold=None):
        if detector_error:
            raise detector_error
        return list(timestamps or [])

    return SceneAnalyzer(AnalysisConfig(), probe=probe, detector=detector)


def _assert_well_separated(scenes, spacing=5.0):
    ordered = sorted(scenes, key=lambda s: s.start_time)
    for a, b in zip(ordered, ordered[1:]):
        assert not a.overlaps(b)
        assert b.start_time - a.end_time >= spacing - 1e-6


class TestScene:
    """Tests for the Scene dataclass."""

    def test_duration(self):
        assert Scene(10.0, 25.0).duration == 15.0

    def test_repr(self):
        scene = Scene(0.0, 10.0, 0.75)
        assert "0.00-10.00" in repr(scene)
        assert "score=0.75" in repr(scene)

    def test_gap_and_overlap(self):
        a = Scene(0.0, 30.0)
        b = Scene(35.0, 60.0)
        c = Scene(20.0, 40.0)
        assert a.gap_to(b) == 5.0
        assert b.gap_to(a) == 5.0
        assert not a.overlaps(b)
        assert a.overlaps(c)
        assert a.gap_to(c) < 0

    def test_touching_scenes_do_not_overlap(self):
        assert not Scene(0.0, 30.0).overlaps(Scene(30.0, 60.0))


class TestScenesFromTimestamps:
    """Tests for turning scene changes into candidate intervals."""

    def test_no_changes_gives_one_capped_scene(self):
        scenes = scenes_from_timestamps([], 120.0, AnalysisConfig())
        assert len(scenes) == 1
        assert scenes[0].start_time == 0.0
        assert scenes[0].end_time == 60.0

    def test_bounds_and_durations(self):
        config = AnalysisConfig()
        scenes = scenes_from_timestamps([30.0, 35.0, 90.0], 120.0, config)
        assert len(scenes) == 4
        for scene in scenes:
            assert 0.0 <= scene.start_time < scene.end_time <= 120.0
            assert config.min_duration <= scene.duration <= config.max_duration
            assert scene.score == 0.5

    def test_padding(self):
        scenes = scenes_from_timestamps([30.0, 60.0], 120.0, AnalysisConfig())
        # 30 -> 60 padded by 2s before and 3s after
        assert scenes[1].start_time == 28.0
        assert scenes[1].end_time == 63.0

    def test_short_scene_extended(self):
        scenes = scenes_from_timestamps([30.0, 35.0], 120.0, AnalysisConfig())
        short = scenes[1]
        assert short.start_time == 28.0
        assert short.duration == 15.0

    def test_short_scene_near_end_grows_backwards(self):
        scenes = scenes_from_timestamps([115.0], 120.0, AnalysisConfig())
        last = scenes[-1]
        assert last.end_time == 120.0
        assert last.start_time == 105.0

    def test_unsorted_and_duplicate_timestamps(self):
        a = scenes_from_timestamps([90.0, 30.0, 30.0, 60.0], 120.0, AnalysisConfig())
        b = scenes_from_timestamps([30.0, 60.0, 90.0], 120.0, AnalysisConfig())
        assert a == b

    def test_source_shorter_than_minimum(self):
        assert scenes_from_timestamps([], 10.0, AnalysisConfig()) == []

    def test_zero_duration(self):
        assert scenes_from_timestamps([1.0, 2.0], 0.0, AnalysisConfig()) == []


class TestScoreScenes:
    """Tests for the engagement heuristic."""

    def test_ideal_middle_scene_scores_max(self):
        analyzer = _analyzer()
        [scored] = analyzer.score_scenes([Scene(70.0, 130.0)], 200.0)
        assert scored.score == pytest.approx(1.0)

    def test_short_intro_scene(self):
        analyzer = _analyzer()
        [scored] = analyzer.score_scenes([Scene(0.0, 15.0)], 200.0)
        # base 0.5 + 0.25 * (1 - 45/60)
        assert scored.score == pytest.approx(0.5625)

    def test_scores_stay_in_bounds(self):
        analyzer = _analyzer()
        scenes = [Scene(float(s), float(s + d)) for s in range(0, 180, 20) for d in (15, 30, 60)]
        for scene in analyzer.score_scenes(scenes, 200.0):
            assert 0.0 <= scene.score <= 1.0

    def test_input_untouched(self):
        analyzer = _analyzer()
        scenes = [Scene(50.0, 110.0)]
        analyzer.score_scenes(scenes, 200.0)
        assert scenes[0].score == 0.5

    def test_custom_ideal_duration(self):
        analyzer = _analyzer()
        [at_ideal] = analyzer.score_scenes([Scene(0.0, 30.0)], 200.0, ideal_duration=30.0)
        [off_ideal] = analyzer.score_scenes([Scene(0.0, 30.0)], 200.0)
        assert at_ideal.score > off_ideal.score


class TestSelectBestScenes:
    """Tests for greedy scene selection."""

    def test_spacing_rejects_close_scene(self):
        analyzer = _analyzer()
        a = Scene(10.0, 40.0, 0.9)
        too_close = Scene(42.0, 70.0, 0.8)
        spaced = Scene(45.0, 75.0, 0.7)
        later = Scene(80.0, 100.0, 0.6)

        selected = analyzer.select_best_scenes([later, too_close, a, spaced], max_clips=2)
        assert selected == [a, spaced]

    def test_sorted_by_start_time(self):
        analyzer = _analyzer()
        scenes = [Scene(100.0, 130.0, 0.9), Scene(0.0, 30.0, 0.8), Scene(50.0, 80.0, 0.7)]
        selected = analyzer.select_best_scenes(scenes, max_clips=3)
        assert [s.start_time for s in selected] == [0.0, 50.0, 100.0]

    def test_respects_max_clips(self):
        analyzer = _analyzer()
        scenes = [Scene(float(i * 40), float(i * 40 + 30), 0.5) for i in range(10)]
        assert len(analyzer.select_best_scenes(scenes, max_clips=3)) == 3

    def test_invariants_on_dense_candidates(self):
        analyzer = _analyzer()
        scenes = [
            Scene(float(s), float(s + 30), 0.4 + (s % 7) / 20)
            for s in range(0, 300, 4)
        ]
        selected = analyzer.select_best_scenes(scenes, max_clips=5)
        assert 0 < len(selected) <= 5
        _assert_well_separated(selected)

    def test_empty(self):
        assert _analyzer().select_best_scenes([], max_clips=3) == []


class TestFallbackScenes:
    """Tests for evenly spaced fallback windows."""

    def test_three_windows_in_two_minutes(self):
        scenes = _analyzer().create_fallback_scenes(120.0, 3)
        assert [(s.start_time, s.end_time) for s in scenes] == [
            (7.5, 37.5),
            (45.0, 75.0),
            (82.5, 112.5),
        ]
        assert all(s.score == 0.3 for s in scenes)
        _assert_well_separated(scenes)

    def test_windows_shrink_to_fit(self):
        scenes = _analyzer().create_fallback_scenes(60.0, 3)
        # Three 15s windows need 65s with spacing, so two 22.5s windows remain
        assert [(s.start_time, s.end_time) for s in scenes] == [(5.0, 27.5), (32.5, 55.0)]
        _assert_well_separated(scenes)

    @pytest.mark.parametrize("total", [15.0, 20.0, 40.0, 60.0, 64.0, 90.0])
    def test_windows_never_below_min_duration(self, total):
        config = AnalysisConfig()
        scenes = _analyzer().create_fallback_scenes(total, 5)
        assert scenes
        _assert_well_separated(scenes)
        for scene in scenes:
            assert config.min_duration - 1e-6 <= scene.duration <= config.max_duration
            assert 0.0 <= scene.start_time < scene.end_time <= total

    def test_single_window_for_short_source(self):
        [scene] = _analyzer().create_fallback_scenes(40.0, 3)
        assert (scene.start_time, scene.end_time) == (5.0, 35.0)

    def test_source_shorter_than_min_duration(self):
        assert _analyzer().create_fallback_scenes(10.0, 3) == []
        assert _analyzer().create_fallback_scenes(14.9, 1) == []

    def test_custom_duration(self):
        scenes = _analyzer().create_fallback_scenes(600.0, 2, duration=45.0)
        assert all(s.duration == pytest.approx(45.0) for s in scenes)

    def test_no_windows(self):
        assert _analyzer().create_fallback_scenes(120.0, 0) == []
        assert _analyzer().create_fallback_scenes(0.0, 3) == []


class TestAnalyzeVideo:
    """Tests for the full analysis entry point."""

    @pytest.mark.asyncio
    async def test_uses_detected_scenes(self):
        analyzer = _analyzer(duration=600.0, timestamps=[60, 120, 180, 240, 300, 360, 420, 480, 540])
        scenes = await analyzer.analyze_video("video.mp4", max_clips=3)
        assert len(scenes) == 3
        _assert_well_separated(scenes)
        # Detected scenes outrank the 0.3 fallback score
        assert all(s.score > 0.3 for s in scenes)

    @pytest.mark.asyncio
    async def test_detection_failure_falls_back(self):
        analyzer = _analyzer(duration=120.0, detector_error=FFmpegError("boom", stderr="bad input"))
        scenes = await analyzer.analyze_video("video.mp4", max_clips=3)
        assert len(scenes) == 3
        assert all(s.score == 0.3 for s in scenes)
        _assert_well_separated(scenes)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [10.0, 40.0, 60.0])
    async def test_short_source_respects_duration_bounds(self, duration):
        analyzer = _analyzer(duration=duration, detector_error=FFmpegError("boom", stderr="bad input"))
        scenes = await analyzer.analyze_video("video.mp4", max_clips=3)
        for scene in scenes:
            assert 15.0 - 1e-6 <= scene.duration <= 60.0
        if duration < 15.0:
            assert scenes == []

    @pytest.mark.asyncio
    async def test_few_detections_padded_with_fallback(self):
        analyzer = _analyzer(duration=300.0, timestamps=[])
        scenes = await analyzer.analyze_video("video.mp4", max_clips=4)
        assert 1 <= len(scenes) <= 4
        _assert_well_separated(scenes)
        for scene in scenes:
            assert 0.0 <= scene.start_time < scene.end_time <= 300.0
