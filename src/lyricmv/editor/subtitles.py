"""ASS subtitle generation for burned-in lyrics."""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..models import LyricSegment
from ..utils import write_atomically

# Fade in / fade out applied to every line, in milliseconds
FADE_MS = 200


@dataclass
class SubtitleStyle:
    """Configuration for lyric subtitle styling.

    Colours use the ASS ``&HAABBGGRR`` notation.
    """

    font_name: str = "PingFang SC"
    font_size: int = 48
    primary_color: str = "&H00FFFFFF"
    outline_color: str = "&H00000000"
    back_color: str = "&H80000000"
    outline: int = 2
    shadow: int = 1
    alignment: int = 2
    margin_v: int = 50
    special_color: str = "&H0000FFFF"


# Preset styles
STYLES = {
    "default": SubtitleStyle(),
    "large": SubtitleStyle(font_size=64, outline=3, margin_v=70),
    "minimal": SubtitleStyle(back_color="&H00000000", shadow=0, outline=1),
    "top": SubtitleStyle(alignment=8, margin_v=40),
}


def get_style(name: str) -> SubtitleStyle:
    """Get a subtitle style by name.

    Raises:
        ValueError: If style not found.
    """
    if name not in STYLES:
        raise ValueError(f"Unknown style: {name}. Available: {list(STYLES.keys())}")
    return STYLES[name]


def format_ass_time(seconds: float) -> str:
    """Format seconds as ASS ``H:MM:SS.cc``."""
    seconds = max(0.0, seconds)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    centis = int(math.floor(round((seconds % 1) * 100, 6)))
    return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"


def escape_ass_text(text: str) -> str:
    """Escape characters with a meaning in ASS dialogue text."""
    return (
        text.replace("\\", "\\\\")
        .replace("{", "\\{")
        .replace("}", "\\}")
        .replace("\n", "\\N")
    )


def _style_line(name: str, style: SubtitleStyle, font_size: int, color: str, italic: int) -> str:
    return (
        f"Style: {name},{style.font_name},{font_size},{color},&H000000FF,"
        f"{style.outline_color},{style.back_color},0,{italic},0,0,100,100,0,0,1,"
        f"{style.outline},{style.shadow},{style.alignment},10,10,{style.margin_v},1"
    )


def build_ass_document(
    lyrics: Sequence[LyricSegment],
    style: Optional[SubtitleStyle] = None,
    width: int = 1920,
    height: int = 1080,
) -> str:
    """Build an ASS document with one dialogue event per lyric line.

    Special segments (intro, interlude, ...) use the ``Special`` style.
    """
    style = style or STYLES["default"]

    lines = [
        "[Script Info]",
        "Title: MV Subtitles",
        "ScriptType: v4.00+",
        "WrapStyle: 0",
        "ScaledBorderAndShadow: yes",
        f"PlayResX: {width}",
        f"PlayResY: {height}",
        "",
        "[V4+ Styles]",
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
        "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
        "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding",
        _style_line("Default", style, style.font_size, style.primary_color, 0),
        _style_line("Special", style, int(style.font_size * 0.8), style.special_color, 1),
        "",
        "[Events]",
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
    ]

    for lyric in lyrics:
        style_name = "Special" if lyric.is_special else "Default"
        lines.append(
            f"Dialogue: 0,{format_ass_time(lyric.start_time)},{format_ass_time(lyric.end_time)},"
            f"{style_name},,0,0,0,,{{\\fad({FADE_MS},{FADE_MS})}}{escape_ass_text(lyric.text)}"
        )

    return "\n".join(lines) + "\n"


def write_ass_subtitles(
    lyrics: Sequence[LyricSegment],
    output_path: Path,
    style: Optional[SubtitleStyle] = None,
    width: int = 1920,
    height: int = 1080,
) -> Path:
    """Write the ASS subtitle file for ``lyrics`` to ``output_path``."""
    write_atomically(output_path, build_ass_document(lyrics, style, width, height))
    return output_path
