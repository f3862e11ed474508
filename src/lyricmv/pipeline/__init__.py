"""Project pipeline: classification, state machine, persistence and orchestration."""

from .classifier import (
    Budget,
    ClassifyOptions,
    analyze_priority,
    determine_render_type,
    calculate_video_duration,
    classify_segments,
    get_classification_stats,
    optimize_for_budget,
    merge_adjacent_segments,
)
from .events import EventBus, EventKind, PipelineEvent
from .state import Gate, check_transition, reduce, reduce_all
from .store import ProjectRegistry, ProjectStore
from .orchestrator import (
    AnimationOptions,
    Collaborators,
    ImageReview,
    MVPipeline,
    VideoOptions,
)

__all__ = [
    # Classifier
    "Budget",
    "ClassifyOptions",
    "analyze_priority",
    "determine_render_type",
    "calculate_video_duration",
    "classify_segments",
    "get_classification_stats",
    "optimize_for_budget",
    "merge_adjacent_segments",
    # State
    "Gate",
    "check_transition",
    "reduce",
    "reduce_all",
    "EventBus",
    "EventKind",
    "PipelineEvent",
    "ProjectStore",
    "ProjectRegistry",
    # Orchestration
    "AnimationOptions",
    "Collaborators",
    "ImageReview",
    "MVPipeline",
    "VideoOptions",
]
