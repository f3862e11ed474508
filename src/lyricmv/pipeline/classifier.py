"""Segment classification: decides how expensively each lyric line is rendered.

Every function here is pure. Segments come in, new segment objects go out;
nothing is mutated in place.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import config
from ..models import (
    ClassificationStats,
    ClassifiedSegment,
    EstimatedCost,
    LyricSegment,
    Priority,
    RenderType,
    Storyboard,
)

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

# Normalized song position treated as the chorus/climax window
CLIMAX_WINDOW = (0.5, 0.8)
LONG_LINE_SECONDS = 6.0


@dataclass
class Budget:
    """Upper bounds on paid generation calls."""

    max_videos: int = 10
    max_images: int = 50


@dataclass
class ClassifyOptions:
    """Options for classification.

    Attributes:
        all_video: Render every segment as AI video.
        force_type: Render every segment with this tier.
        budget: Cap on VIDEO-tier segments, applied after classification.
        merge_short: Merge adjacent short non-video segments.
        merge_threshold: Duration below which segments may merge.
        min_video_threshold: Minimum duration for VIDEO (config default).
        min_animation_threshold: Minimum duration for ANIMATION (config default).
    """

    all_video: bool = False
    force_type: Optional[RenderType] = None
    budget: Optional[Budget] = None
    merge_short: bool = False
    merge_threshold: Optional[float] = None
    min_video_threshold: Optional[float] = None
    min_animation_threshold: Optional[float] = None

    @property
    def video_threshold(self) -> float:
        if self.min_video_threshold is not None:
            return self.min_video_threshold
        return config.min_video_threshold

    @property
    def animation_threshold(self) -> float:
        if self.min_animation_threshold is not None:
            return self.min_animation_threshold
        return config.min_animation_threshold


def analyze_priority(segment: LyricSegment, index: int, total: int) -> Priority:
    """Rate how important a segment is.

    Args:
        segment: The lyric segment.
        index: 0-based position of the segment in the song.
        total: Number of segments in the song.

    Returns:
        Priority of the segment.
    """
    if segment.is_special:
        return Priority.LOW

    position = index / total if total else 0.0
    if CLIMAX_WINDOW[0] <= position <= CLIMAX_WINDOW[1]:
        return Priority.HIGH

    # Opening and closing lines
    if index <= 2 or index >= total - 2:
        return Priority.MEDIUM

    if segment.duration >= LONG_LINE_SECONDS:
        return Priority.HIGH

    return Priority.MEDIUM


def determine_render_type(
    segment: LyricSegment,
    priority: Priority,
    options: Optional[ClassifyOptions] = None,
) -> RenderType:
    """Pick the rendering tier for a segment."""
    options = options or ClassifyOptions()
    duration = segment.duration
    video_threshold = options.video_threshold
    animation_threshold = options.animation_threshold

    if options.all_video:
        return RenderType.VIDEO

    if options.force_type is not None:
        return RenderType(options.force_type)

    if segment.is_special:
        return RenderType.ANIMATION if duration >= animation_threshold else RenderType.STATIC

    if priority == Priority.HIGH and duration >= video_threshold:
        return RenderType.VIDEO

    if priority == Priority.MEDIUM and duration >= video_threshold * 1.5:
        return RenderType.VIDEO

    if duration >= animation_threshold:
        return RenderType.ANIMATION

    return RenderType.STATIC


def calculate_video_duration(lyric_duration: float, max_duration: float = 10.0) -> float:
    """Duration to request from video generation: clamp(d, 3, max_duration)."""
    return min(max(lyric_duration, config.video_min_clip_duration), max_duration)


def classify_segments(
    lyrics: Sequence[LyricSegment],
    storyboard: Optional[Storyboard],
    options: Optional[ClassifyOptions] = None,
) -> List[ClassifiedSegment]:
    """Assign priority, tier and storyboard fields to every lyric segment."""
    options = options or ClassifyOptions()
    total = len(lyrics)
    classified: List[ClassifiedSegment] = []

    for position, lyric in enumerate(lyrics):
        index = position + 1
        scene = storyboard.scene_for(index) if storyboard else None

        priority = analyze_priority(lyric, position, total)
        render_type = determine_render_type(lyric, priority, options)
        video_duration = (
            calculate_video_duration(lyric.duration, config.video_max_clip_duration)
            if render_type == RenderType.VIDEO
            else None
        )

        classified.append(ClassifiedSegment(
            index=index,
            text=lyric.text,
            start_time=lyric.start_time,
            end_time=lyric.end_time,
            duration=lyric.duration,
            special_type=lyric.special_type,
            priority=priority,
            render_type=render_type,
            video_duration=video_duration,
            prompt=scene.prompt if scene else "",
            scene_type=scene.scene_type if scene else "unknown",
            has_character=scene.has_character if scene else False,
        ))

    return classified


def get_classification_stats(classified: Sequence[ClassifiedSegment]) -> ClassificationStats:
    """Count segments per tier and priority and estimate generation calls."""
    by_render_type = {render_type.value: 0 for render_type in RenderType}
    by_priority = {priority.value: 0 for priority in Priority}
    cost = EstimatedCost()

    for item in classified:
        by_render_type[item.render_type.value] += 1
        by_priority[item.priority.value] += 1
        # Video segments need their first-frame image too
        cost.image_count += 1
        if item.render_type == RenderType.VIDEO:
            cost.video_count += 1

    return ClassificationStats(
        total=len(classified),
        by_render_type=by_render_type,
        by_priority=by_priority,
        estimated_cost=cost,
    )


def optimize_for_budget(
    classified: Sequence[ClassifiedSegment],
    budget: Optional[Budget] = None,
) -> List[ClassifiedSegment]:
    """Downgrade VIDEO segments beyond ``budget.max_videos`` to ANIMATION.

    Videos are kept in order of priority (HIGH first), then longer duration;
    equal keys keep their original relative order.
    """
    budget = budget or Budget()
    segments = list(classified)
    video_positions = [
        pos for pos, segment in enumerate(segments)
        if segment.render_type == RenderType.VIDEO
    ]

    if len(video_positions) <= budget.max_videos:
        return segments

    ranked = sorted(
        video_positions,
        key=lambda pos: (PRIORITY_ORDER[segments[pos].priority], -segments[pos].duration),
    )
    downgraded = ranked[max(budget.max_videos, 0):]

    logger.info(
        f"Budget allows {budget.max_videos} videos, downgrading "
        f"{len(downgraded)} of {len(video_positions)} to animation"
    )

    for pos in downgraded:
        segments[pos] = segments[pos].model_copy(
            update={"render_type": RenderType.ANIMATION, "video_duration": None}
        )

    return segments


def merge_adjacent_segments(
    classified: Sequence[ClassifiedSegment],
    threshold: float = 2.0,
) -> List[ClassifiedSegment]:
    """Merge adjacent short segments that share a non-video tier.

    Two neighbours merge only when neither is special, both have the same
    tier, that tier is not VIDEO and both are shorter than ``threshold``.
    The result is renumbered 1..N.
    """
    merged: List[ClassifiedSegment] = []
    buffer: Optional[ClassifiedSegment] = None

    for item in classified:
        if buffer is None:
            buffer = item
            continue

        can_merge = (
            buffer.render_type == item.render_type
            and buffer.render_type != RenderType.VIDEO
            and buffer.duration < threshold
            and item.duration < threshold
            and not buffer.is_special
            and not item.is_special
        )

        if can_merge:
            buffer = buffer.model_copy(update={
                "text": f"{buffer.text} {item.text}",
                "prompt": f"{buffer.prompt}; {item.prompt}",
                "end_time": item.end_time,
                "duration": item.end_time - buffer.start_time,
            })
        else:
            merged.append(buffer)
            buffer = item

    if buffer is not None:
        merged.append(buffer)

    return [
        segment.model_copy(update={"index": position + 1})
        for position, segment in enumerate(merged)
    ]
