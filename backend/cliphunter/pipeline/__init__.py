# Clip pipeline
"""
Clip Pipeline: scene analysis and vertical rendering

1. Scene analysis: ffmpeg scene changes become padded candidate intervals
2. Scoring: position and length heuristics rank the candidates
3. Selection: greedy pick of non-overlapping, well-spaced scenes
4. Rendering: 9:16 crop, subtitles, title overlay, thumbnail
"""
from .scenes import Scene, SceneAnalyzer, AnalysisConfig
from .renderer import ClipRenderer, GeneratedClip, RenderOptions

__all__ = [
    "Scene",
    "SceneAnalyzer",
    "AnalysisConfig",
    "ClipRenderer",
    "GeneratedClip",
    "RenderOptions",
]
