"""Project state transitions.

A project is an immutable ``ProjectState``. Every change is described by an
action and applied by ``reduce``, which either returns a new state or raises
without touching the old one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from ..exceptions import ConfirmationGateError, ValidationError
from ..models import ConfirmationSet, ProjectState, ProjectStatus


class Gate(str, Enum):
    """The two human confirmation gates."""
    IMAGES = "images"
    VIDEOS = "videos"

    @property
    def field(self) -> str:
        return "image_confirmation" if self is Gate.IMAGES else "video_confirmation"


@dataclass(frozen=True)
class SetStatus:
    status: ProjectStatus
    progress: Optional[int] = None


@dataclass(frozen=True)
class SetProgress:
    progress: int


@dataclass(frozen=True)
class UpdateData:
    """Replace fields of ``ProjectData``."""
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SeedConfirmation:
    """Start a gate over freshly generated artifacts, all pending."""
    gate: Gate
    indices: Iterable[int]


@dataclass(frozen=True)
class ConfirmIndex:
    gate: Gate
    index: int


@dataclass(frozen=True)
class ConfirmAll:
    gate: Gate


@dataclass(frozen=True)
class StartRegeneration:
    gate: Gate
    index: int


@dataclass(frozen=True)
class FinishRegeneration:
    gate: Gate
    index: int
    success: bool


@dataclass(frozen=True)
class Fail:
    error: str


Action = Union[
    SetStatus,
    SetProgress,
    UpdateData,
    SeedConfirmation,
    ConfirmIndex,
    ConfirmAll,
    StartRegeneration,
    FinishRegeneration,
    Fail,
]


# Stages no transition may jump over. An empty confirmation set only means
# something once the stage that seeds it has run.
CHECKPOINTS = (ProjectStatus.AWAITING_IMAGE_CONFIRM, ProjectStatus.GENERATING_VIDEOS)


def gate_set(state: ProjectState, gate: Gate) -> ConfirmationSet:
    return getattr(state.data, gate.field)


def check_transition(state: ProjectState, target: ProjectStatus) -> None:
    """Raise if ``state`` may not move to ``target``.

    Transitions move forward or stay put. FAILED is reachable from any
    non-terminal state. Neither checkpoint stage may be jumped over. Moving
    past AWAITING_IMAGE_CONFIRM needs a complete image gate and reaching
    COMPOSING_MV needs a complete video gate.

    Raises:
        ValidationError: For backward moves, skipped checkpoints or moves
            out of a terminal state.
        ConfirmationGateError: When a gate is still open.
    """
    current = state.status

    if current.is_terminal:
        raise ValidationError(
            f"Project {state.id} is {current.value} and cannot change state"
        )

    if target is ProjectStatus.FAILED or target is current:
        return

    if target.rank < current.rank:
        raise ValidationError(
            f"Illegal transition {current.value} -> {target.value}",
            details="project status only moves forward",
        )

    for checkpoint in CHECKPOINTS:
        if current.rank < checkpoint.rank < target.rank:
            raise ValidationError(
                f"Illegal transition {current.value} -> {target.value}",
                details=f"the project must pass through {checkpoint.value}",
            )

    awaiting = ProjectStatus.AWAITING_IMAGE_CONFIRM
    if current.rank <= awaiting.rank < target.rank:
        images = state.data.image_confirmation
        if not images.is_complete:
            raise ConfirmationGateError(
                "All images must be confirmed before continuing",
                details=f"pending={images.pending} regenerating={images.regenerating}",
            )

    composing = ProjectStatus.COMPOSING_MV
    if current.rank < composing.rank <= target.rank:
        videos = state.data.video_confirmation
        if not videos.is_complete:
            raise ConfirmationGateError(
                "All videos must be confirmed before composing",
                details=f"pending={videos.pending} regenerating={videos.regenerating}",
            )


def _with(state: ProjectState, **changes: Any) -> ProjectState:
    return state.model_copy(update=changes)


def _with_data(state: ProjectState, **changes: Any) -> ProjectState:
    return _with(state, data=state.data.model_copy(update=changes))


def _with_gate(state: ProjectState, gate: Gate, confirmation: ConfirmationSet) -> ProjectState:
    return _with_data(state, **{gate.field: confirmation})


def _advance(current: int, requested: Optional[int]) -> int:
    if requested is None:
        return current
    return max(current, min(100, int(requested)))


def _set_status(state: ProjectState, action: SetStatus) -> ProjectState:
    check_transition(state, action.status)
    return _with(state, status=action.status, progress=_advance(state.progress, action.progress))


def _set_progress(state: ProjectState, action: SetProgress) -> ProjectState:
    return _with(state, progress=_advance(state.progress, action.progress))


def _update_data(state: ProjectState, action: UpdateData) -> ProjectState:
    unknown = set(action.changes) - set(type(state.data).model_fields)
    if unknown:
        raise ValidationError(f"Unknown project data fields: {sorted(unknown)}")
    return _with_data(state, **dict(action.changes))


def _seed(state: ProjectState, action: SeedConfirmation) -> ProjectState:
    return _with_gate(state, action.gate, ConfirmationSet.seeded(action.indices))


def _confirm(state: ProjectState, action: ConfirmIndex) -> ProjectState:
    return _with_gate(state, action.gate, gate_set(state, action.gate).confirm(action.index))


def _confirm_all(state: ProjectState, action: ConfirmAll) -> ProjectState:
    return _with_gate(state, action.gate, gate_set(state, action.gate).confirm_all())


def _start_regeneration(state: ProjectState, action: StartRegeneration) -> ProjectState:
    confirmation = gate_set(state, action.gate).start_regeneration(action.index)
    return _with_gate(state, action.gate, confirmation)


def _finish_regeneration(state: ProjectState, action: FinishRegeneration) -> ProjectState:
    confirmation = gate_set(state, action.gate).finish_regeneration(action.index, action.success)
    return _with_gate(state, action.gate, confirmation)


def _fail(state: ProjectState, action: Fail) -> ProjectState:
    check_transition(state, ProjectStatus.FAILED)
    return _with(state, status=ProjectStatus.FAILED, error=action.error)


_HANDLERS: Dict[type, Callable[[ProjectState, Any], ProjectState]] = {
    SetStatus: _set_status,
    SetProgress: _set_progress,
    UpdateData: _update_data,
    SeedConfirmation: _seed,
    ConfirmIndex: _confirm,
    ConfirmAll: _confirm_all,
    StartRegeneration: _start_regeneration,
    FinishRegeneration: _finish_regeneration,
    Fail: _fail,
}


def reduce(state: ProjectState, action: Action) -> ProjectState:
    """Apply one action to a state and return the new state.

    Args:
        state: Current project state (left untouched).
        action: Action to apply.

    Returns:
        The next project state.

    Raises:
        ValidationError: If the action is not allowed in ``state``.
    """
    if state.status.is_terminal:
        raise ValidationError(
            f"Project {state.id} is {state.status.value} and cannot change state"
        )

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise ValidationError(f"Unknown action: {type(action).__name__}")
    return handler(state, action)


def reduce_all(state: ProjectState, actions: Iterable[Action]) -> ProjectState:
    """Apply actions in order; nothing is applied if any of them fails."""
    for action in actions:
        state = reduce(state, action)
    return state
