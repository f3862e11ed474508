"""Fill the instrumental gaps of a lyric timeline.

Every second of the song needs a segment, otherwise the clips drift away
from the audio and the subtitles. Silence before the first line becomes a
prelude, long gaps between lines become interludes and audio left after the
last line becomes an outro.
"""

import logging
from typing import List, Optional, Sequence

from ..models import LyricSegment, SpecialType

logger = logging.getLogger(__name__)

# Leading or trailing silence longer than this gets its own segment
EDGE_GAP_THRESHOLD = 0.5
# Gaps between lines longer than this become an interlude
INTERLUDE_GAP_THRESHOLD = 5.0

SLICE_MARKERS = {
    SpecialType.PRELUDE: "[Intro]",
    SpecialType.INTERLUDE: "[Interlude]",
    SpecialType.OUTRO: "[Outro]",
}


def _special(special_type: SpecialType, start_time: float, end_time: float) -> LyricSegment:
    # Renumbered once the timeline is complete
    return LyricSegment(
        index=1,
        text=SLICE_MARKERS[special_type],
        start_time=start_time,
        end_time=end_time,
        special_type=special_type,
    )


def slice_lyrics(
    lyrics: Sequence[LyricSegment],
    audio_duration: Optional[float] = None,
) -> List[LyricSegment]:
    """Insert prelude, interlude and outro segments around the lyric lines.

    Args:
        lyrics: Lyric lines ordered by start time.
        audio_duration: Song length in seconds. Without it no outro is added.

    Returns:
        New segments covering the song, renumbered 1..N.
    """
    if not lyrics:
        return []

    slices: List[LyricSegment] = []

    first = lyrics[0]
    if first.start_time > EDGE_GAP_THRESHOLD:
        slices.append(_special(SpecialType.PRELUDE, 0.0, first.start_time))

    for position, lyric in enumerate(lyrics):
        slices.append(lyric)
        if position + 1 < len(lyrics):
            following = lyrics[position + 1]
            if following.start_time - lyric.end_time > INTERLUDE_GAP_THRESHOLD:
                slices.append(_special(SpecialType.INTERLUDE, lyric.end_time, following.start_time))

    last = lyrics[-1]
    if audio_duration and audio_duration - last.end_time > EDGE_GAP_THRESHOLD:
        slices.append(_special(SpecialType.OUTRO, last.end_time, audio_duration))

    added = len(slices) - len(lyrics)
    if added:
        logger.info(f"Added {added} instrumental segments to {len(lyrics)} lyric lines")

    return [
        segment if segment.index == number else segment.model_copy(update={"index": number})
        for number, segment in enumerate(slices, start=1)
    ]
