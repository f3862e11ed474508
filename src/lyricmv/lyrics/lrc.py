"""LRC lyric sheet parsing.

Supports the standard ``[mm:ss.xx]`` timestamp format, several timestamps on
one line, and the common metadata tags.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models import LyricSegment, SpecialType

logger = logging.getLogger(__name__)

# Trailing lines without a successor are given this duration
DEFAULT_LAST_LINE_DURATION = 5.0

METADATA_TAGS = {
    "ti": "title",
    "ar": "artist",
    "al": "album",
    "au": "author",
    "by": "creator",
    "offset": "offset",
    "length": "length",
}

_TIMESTAMP = re.compile(r"(\d+):(\d+)(?:\.(\d+))?")
_TIMESTAMP_TAG = re.compile(r"\[(\d+:\d+(?:\.\d+)?)\]")
_METADATA_LINE = re.compile(r"^\[([a-z]+):(.+)\]$", re.IGNORECASE)

_OPEN = r"^[\[【\(（]?"
_CLOSE = r"[\]】\)）]?$"
SPECIAL_PATTERNS = {
    SpecialType.PRELUDE: re.compile(_OPEN + r"(前奏|intro|prelude|opening)" + _CLOSE, re.IGNORECASE),
    SpecialType.INTERLUDE: re.compile(
        _OPEN + r"(间奏|interlude|instrumental|music)" + _CLOSE, re.IGNORECASE
    ),
    SpecialType.OUTRO: re.compile(_OPEN + r"(尾奏|outro|ending|尾声)" + _CLOSE, re.IGNORECASE),
    SpecialType.BRIDGE: re.compile(_OPEN + r"(桥段|bridge)" + _CLOSE, re.IGNORECASE),
    SpecialType.CHORUS: re.compile(_OPEN + r"(副歌|chorus|hook)" + _CLOSE, re.IGNORECASE),
}

_CHINESE = re.compile(r"[\u4e00-\u9fa5]")
_JAPANESE = re.compile(r"[\u3040-\u30ff\u31f0-\u31ff]")
_KOREAN = re.compile(r"[\uac00-\ud7af\u1100-\u11ff]")


@dataclass
class ParsedLyrics:
    """Result of parsing an LRC document."""

    metadata: Dict[str, str] = field(default_factory=dict)
    language: str = "unknown"
    lyrics: List[LyricSegment] = field(default_factory=list)

    @property
    def total_lyrics(self) -> int:
        return len(self.lyrics)


def parse_timestamp(value: str) -> float:
    """Parse ``mm:ss``, ``mm:ss.xx`` or ``mm:ss.xxx`` into seconds.

    Fractions are read as milliseconds after padding or cutting to three
    digits. Unparseable input yields 0.
    """
    match = _TIMESTAMP.search(value)
    if not match:
        return 0.0

    minutes = int(match.group(1))
    seconds = int(match.group(2))
    fraction = match.group(3)
    millis = int(fraction.ljust(3, "0")[:3]) if fraction else 0

    return minutes * 60 + seconds + millis / 1000


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``mm:ss.xx``."""
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    hundredths = int((seconds % 1) * 100)
    return f"{minutes:02d}:{secs:02d}.{hundredths:02d}"


def parse_metadata(line: str) -> Optional[Dict[str, str]]:
    """Return ``{name: value}`` for a known metadata tag line, else None."""
    match = _METADATA_LINE.match(line)
    if not match:
        return None

    tag = match.group(1).lower()
    if tag not in METADATA_TAGS:
        return None
    return {METADATA_TAGS[tag]: match.group(2).strip()}


def detect_language(text: str) -> str:
    """Guess the dominant language of a lyric sheet from its characters."""
    total = len(re.sub(r"\s", "", text))
    if total == 0:
        return "unknown"

    if len(_JAPANESE.findall(text)) / total > 0.1:
        return "japanese"
    if len(_KOREAN.findall(text)) / total > 0.2:
        return "korean"
    if len(_CHINESE.findall(text)) / total > 0.3:
        return "chinese"
    return "english"


def detect_special_segment(text: str) -> Optional[SpecialType]:
    """Recognize bracketed markers such as ``[Intro]`` or ``【间奏】``."""
    stripped = text.strip().lower()
    for special_type, pattern in SPECIAL_PATTERNS.items():
        if pattern.match(stripped):
            return special_type
    return None


def parse_lrc(content: str, total_duration: Optional[float] = None) -> ParsedLyrics:
    """Parse an LRC document into timed lyric segments.

    Each line ends where the next one starts. The last line ends at
    ``total_duration`` when given, otherwise five seconds after it starts.

    Args:
        content: LRC file content.
        total_duration: Audio length in seconds.

    Returns:
        ParsedLyrics with metadata, language and 1-based segments.
    """
    metadata: Dict[str, str] = {}
    entries = []

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        meta = parse_metadata(line)
        if meta:
            metadata.update(meta)
            continue

        stamps = _TIMESTAMP_TAG.findall(line)
        if not stamps:
            continue

        text = _TIMESTAMP_TAG.sub("", line).strip()
        if not text:
            continue

        special_type = detect_special_segment(text)
        for stamp in stamps:
            entries.append((parse_timestamp(stamp), text, special_type))

    # Stable: lines sharing a timestamp keep their file order
    entries.sort(key=lambda entry: entry[0])

    lyrics: List[LyricSegment] = []
    for position, (start_time, text, special_type) in enumerate(entries):
        if position < len(entries) - 1:
            end_time = entries[position + 1][0]
        else:
            end_time = total_duration or start_time + DEFAULT_LAST_LINE_DURATION

        lyrics.append(LyricSegment(
            index=position + 1,
            text=text,
            start_time=start_time,
            end_time=end_time,
            special_type=special_type,
        ))

    language = detect_language("".join(segment.text for segment in lyrics))
    logger.debug(f"Parsed {len(lyrics)} lyric lines, language: {language}")

    return ParsedLyrics(metadata=metadata, language=language, lyrics=lyrics)


def generate_lrc(parsed: ParsedLyrics) -> str:
    """Render parsed lyrics back to LRC text."""
    reverse_tags = {
        name: tag for tag, name in METADATA_TAGS.items()
        if name not in ("offset", "length")
    }
    lines = [
        f"[{reverse_tags[key]}:{value}]"
        for key, value in parsed.metadata.items()
        if key in reverse_tags
    ]
    lines.extend(f"[{format_timestamp(segment.start_time)}]{segment.text}" for segment in parsed.lyrics)
    return "\n".join(lines)
