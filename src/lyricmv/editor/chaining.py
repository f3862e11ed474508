"""Generation-time chaining of several video calls into one segment clip."""

import logging
import math
import shutil
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import media
from ..config import config
from ..exceptions import GenerationError
from ..models import ClassifiedSegment, VideoResult
from ..services.base import VideoGenerationOptions, VideoGenerator
from ..utils import padded_index

logger = logging.getLogger(__name__)


def requested_duration(segment: ClassifiedSegment) -> float:
    """Duration to ask a single generation call for."""
    if segment.video_duration is not None:
        return segment.video_duration
    return min(
        max(segment.duration, config.video_min_clip_duration),
        config.video_max_clip_duration,
    )


def plan_chain(
    target: float,
    max_clip_duration: Optional[float] = None,
    long_segment_threshold: Optional[float] = None,
) -> int:
    """Number of generation calls needed for a segment of ``target`` seconds.

    Segments longer than both the long-segment threshold and the per-call
    maximum take ``ceil(target / max_clip_duration)`` calls; all others take one.
    """
    max_clip = max_clip_duration or config.video_max_clip_duration
    threshold = long_segment_threshold or config.long_segment_threshold

    if target > threshold and target > max_clip:
        return math.ceil(target / max_clip)
    return 1


def generate_segment_video(
    generator: VideoGenerator,
    segment: ClassifiedSegment,
    image_path: Path,
    output_path: Path,
    options: Optional[VideoGenerationOptions] = None,
) -> VideoResult:
    """Generate the clip for one segment, chaining calls for long segments.

    Each call after the first is seeded with the last frame of the previous
    call's output. Parts are concatenated in order into ``output_path``.

    Returns:
        The VideoResult of the single call, or of the concatenated chain.

    Raises:
        GenerationError: If any part of a chain fails. Every temporary part
            and frame is deleted first and no partial clip is kept.
    """
    options = options or VideoGenerationOptions(aspect_ratio=config.aspect_ratio)
    calls = plan_chain(segment.duration)

    if calls == 1:
        return generator.generate(
            segment, image_path, output_path,
            replace(options, duration=requested_duration(segment)),
        )

    max_clip = config.video_max_clip_duration
    logger.info(
        f"Segment {segment.index} lasts {segment.duration:.2f}s, "
        f"chaining {calls} generation calls of {max_clip:.0f}s"
    )

    work_dir = output_path.parent / f".chain_{padded_index(segment.index)}"
    work_dir.mkdir(parents=True, exist_ok=True)
    parts: List[Path] = []
    reference = image_path

    try:
        for call in range(1, calls + 1):
            part = work_dir / f"part_{call:02d}.mp4"
            result = generator.generate(
                segment, reference, part, replace(options, duration=max_clip)
            )
            if not result.success:
                raise GenerationError(
                    f"Chained clip {call}/{calls} failed for segment {segment.index}",
                    details=result.error,
                )
            parts.append(part)
            logger.debug(f"Segment {segment.index}: part {call}/{calls} done")

            if call < calls:
                reference = media.extract_last_frame(part, work_dir / f"last_frame_{call:02d}.png")

        media.concat_clips(parts, output_path)
    except Exception:
        output_path.unlink(missing_ok=True)
        raise
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    return VideoResult(
        index=segment.index,
        success=True,
        path=str(output_path),
        duration=media.probe_duration(output_path),
        clip_count=calls,
    )
