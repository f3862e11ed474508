"""Video editing and assembly module."""

from .compositor import (
    TransitionType,
    CompositionOptions,
    resolve_clip,
    collect_segments,
    concat_clips,
    concat_with_transitions,
    build_xfade_filter,
    burn_subtitles,
    compose_mv,
)
from .reconcile import (
    ReconcileMethod,
    ReconcileResult,
    plan_reconciliation,
    reconcile_clip,
)
from .chaining import generate_segment_video, plan_chain
from .subtitles import (
    SubtitleStyle,
    STYLES,
    get_style,
    build_ass_document,
    write_ass_subtitles,
    format_ass_time,
    escape_ass_text,
)
from .audio import MuxResult, mux_audio, get_audio_duration
from .animator import AnimationEffect, KenBurnsAnimator, effect_for_position

__all__ = [
    # Compositor
    "TransitionType",
    "CompositionOptions",
    "resolve_clip",
    "collect_segments",
    "concat_clips",
    "concat_with_transitions",
    "build_xfade_filter",
    "burn_subtitles",
    "compose_mv",
    # Reconciliation
    "ReconcileMethod",
    "ReconcileResult",
    "plan_reconciliation",
    "reconcile_clip",
    "generate_segment_video",
    "plan_chain",
    # Subtitles
    "SubtitleStyle",
    "STYLES",
    "get_style",
    "build_ass_document",
    "write_ass_subtitles",
    "format_ass_time",
    "escape_ass_text",
    # Audio
    "MuxResult",
    "mux_audio",
    "get_audio_duration",
    # Animation
    "AnimationEffect",
    "KenBurnsAnimator",
    "effect_for_position",
]
