"""Title overlay layout for rendered clips."""
from typing import List, Optional

from cliphunter.config import settings


def split_title_into_lines(title: str, max_chars: int = 18, max_lines: int = 3) -> List[str]:
    """
    Greedily pack words into lines of at most max_chars characters.

    Words are never split; a single word longer than max_chars gets a
    line of its own. Anything past max_lines is dropped.
    """
    lines: List[str] = []
    current = ""

    for word in title.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word

    if current:
        lines.append(current)

    return lines[:max_lines]


def escape_drawtext_text(text: str) -> str:
    """Escape a single line for use as a drawtext text value."""
    text = text.replace("\r", "").replace("\n", "")
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace(":", "\\:")
        .replace("%", "\\%")
    )


def _escape_drawtext_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace(":", "\\:")


def title_alpha_expression(visible_seconds: float, fade_seconds: float) -> str:
    """Opaque until visible_seconds, then a linear fade to zero."""
    end = visible_seconds + fade_seconds
    return (
        f"if(lt(t,{visible_seconds:g}),1,"
        f"if(lt(t,{end:g}),({end:g}-t)/{fade_seconds:g},0))"
    )


def build_title_filters(
    title: Optional[str],
    max_chars: Optional[int] = None,
    max_lines: Optional[int] = None,
) -> List[str]:
    """
    Build the drawtext filters that burn a title into the opening seconds.

    Lines are stacked from a fixed top offset, centred horizontally, white
    with a thick black outline, and shown only while the alpha expression
    is above zero.

    Args:
        title: Title text (None or blank yields no filters)
        max_chars: Characters per line
        max_lines: Maximum number of lines

    Returns:
        List of drawtext filter strings, one per line
    """
    if not title or not title.strip():
        return []

    max_chars = max_chars or settings.title_max_chars
    max_lines = max_lines or settings.title_max_lines
    lines = split_title_into_lines(title, max_chars, max_lines)

    if settings.title_font_file:
        font_option = f"fontfile='{_escape_drawtext_value(settings.title_font_file)}'"
    else:
        font_option = f"font='{settings.title_font}'"

    end = settings.title_visible_seconds + settings.title_fade_seconds
    alpha = title_alpha_expression(settings.title_visible_seconds, settings.title_fade_seconds)

    filters = []
    for i, line in enumerate(lines):
        y = settings.title_top_offset + i * settings.title_line_spacing
        parts = [
            font_option,
            f"text='{escape_drawtext_text(line)}'",
            f"fontsize={settings.title_font_size}",
            "fontcolor=white",
            "bordercolor=black",
            f"borderw={settings.title_border_width}",
            "x=(w-text_w)/2",
            f"y={y}",
            f"enable='between(t,0,{end:g})'",
            f"alpha='{alpha}'",
        ]
        filters.append(f"drawtext={':'.join(parts)}")

    return filters
