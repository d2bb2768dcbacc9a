"""SRT subtitle helpers."""
import re
from dataclasses import dataclass
from typing import List

_TIMING_RE = re.compile(
    r"(\d+):(\d{2}):(\d{2})[,.](\d{3})\s*-->\s*(\d+):(\d{2}):(\d{2})[,.](\d{3})"
)


@dataclass
class SubtitleSegment:
    """A single subtitle cue."""
    start_time: float
    end_time: float
    text: str


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm)."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def build_srt(segments: List[SubtitleSegment]) -> str:
    """Render cues as SRT text, numbered from 1."""
    blocks = []
    for i, segment in enumerate(segments):
        blocks.append(
            f"{i + 1}\n"
            f"{format_srt_time(segment.start_time)} --> {format_srt_time(segment.end_time)}\n"
            f"{segment.text.strip()}\n"
        )
    return "\n".join(blocks)


def parse_srt(content: str) -> List[SubtitleSegment]:
    """Parse SRT text; malformed blocks are skipped."""
    segments = []
    for block in re.split(r"\n\s*\n", content.replace("\r\n", "\n").strip()):
        lines = block.strip().split("\n")
        for i, line in enumerate(lines):
            match = _TIMING_RE.search(line)
            if not match:
                continue
            g = [int(x) for x in match.groups()]
            start = g[0] * 3600 + g[1] * 60 + g[2] + g[3] / 1000
            end = g[4] * 3600 + g[5] * 60 + g[6] + g[7] / 1000
            text = "\n".join(lines[i + 1:]).strip()
            if text:
                segments.append(SubtitleSegment(start, end, text))
            break
    return segments


def slice_segments(
    segments: List[SubtitleSegment],
    start_time: float,
    end_time: float
) -> List[SubtitleSegment]:
    """
    Cues visible within [start_time, end_time], re-timed relative to start_time.

    Cues crossing the window edges are trimmed to it.
    """
    sliced = []
    for segment in segments:
        if segment.end_time <= start_time or segment.start_time >= end_time:
            continue
        sliced.append(SubtitleSegment(
            start_time=max(segment.start_time, start_time) - start_time,
            end_time=min(segment.end_time, end_time) - start_time,
            text=segment.text,
        ))
    return sliced
