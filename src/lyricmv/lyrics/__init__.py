"""Lyric sheet parsing and timeline slicing."""

from .lrc import (
    ParsedLyrics,
    parse_lrc,
    generate_lrc,
    parse_timestamp,
    format_timestamp,
    detect_language,
    detect_special_segment,
)
from .slicer import slice_lyrics

__all__ = [
    "ParsedLyrics",
    "parse_lrc",
    "generate_lrc",
    "parse_timestamp",
    "format_timestamp",
    "detect_language",
    "detect_special_segment",
    "slice_lyrics",
]
