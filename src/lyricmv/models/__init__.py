"""Data models for the lyric music video pipeline."""

from .segment import (
    SpecialType,
    Priority,
    RenderType,
    LyricSegment,
    ClassifiedSegment,
    StoryboardScene,
    Storyboard,
)
from .media import ImageResult, VideoResult, AnimationResult, VideoSegment, ComposedOutput
from .project import (
    ProjectStatus,
    ConfirmationSet,
    ClassificationStats,
    EstimatedCost,
    ProjectData,
    ProjectState,
    ProjectSnapshot,
    StatusReport,
    SNAPSHOT_SCHEMA_VERSION,
)

__all__ = [
    "SpecialType",
    "Priority",
    "RenderType",
    "LyricSegment",
    "ClassifiedSegment",
    "StoryboardScene",
    "Storyboard",
    "ImageResult",
    "VideoResult",
    "AnimationResult",
    "VideoSegment",
    "ComposedOutput",
    "ProjectStatus",
    "ConfirmationSet",
    "ClassificationStats",
    "EstimatedCost",
    "ProjectData",
    "ProjectState",
    "ProjectSnapshot",
    "StatusReport",
    "SNAPSHOT_SCHEMA_VERSION",
]
