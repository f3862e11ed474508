"""Project state models."""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..exceptions import ValidationError
from .media import AnimationResult, ImageResult, VideoResult
from .segment import ClassifiedSegment, LyricSegment, Storyboard

SNAPSHOT_SCHEMA_VERSION = 1


class ProjectStatus(str, Enum):
    """Project state enum, in order of normal progress."""
    CREATED = "created"
    RECOGNIZING_LYRICS = "recognizing_lyrics"
    LYRICS_READY = "lyrics_ready"
    GENERATING_STORYBOARD = "generating_storyboard"
    GENERATING_IMAGES = "generating_images"
    AWAITING_IMAGE_CONFIRM = "awaiting_image_confirm"
    GENERATING_VIDEOS = "generating_videos"
    ANIMATING_IMAGES = "animating_images"
    COMPOSING_MV = "composing_mv"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        """Position in the normal progress order (FAILED ranks last)."""
        return list(ProjectStatus).index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.FAILED)


class ConfirmationSet(BaseModel):
    """Human approval state of the artifacts produced for one gate.

    ``confirmed``, ``pending`` and ``regenerating`` are pairwise disjoint;
    together they hold every index that currently has a generated artifact.
    All operations return a new set and leave ``self`` untouched.
    """

    confirmed: List[int] = Field(default_factory=list)
    pending: List[int] = Field(default_factory=list)
    regenerating: List[int] = Field(default_factory=list)

    class Config:
        """Pydantic config."""
        frozen = True

    @classmethod
    def seeded(cls, indices: Iterable[int]) -> "ConfirmationSet":
        """Start a gate with every index pending."""
        return cls(pending=sorted(set(indices)))

    @property
    def tracked(self) -> set:
        return set(self.confirmed) | set(self.pending) | set(self.regenerating)

    @property
    def is_complete(self) -> bool:
        """True when nothing is pending or regenerating."""
        return not self.pending and not self.regenerating

    def confirm(self, index: int) -> "ConfirmationSet":
        """Move one index from pending to confirmed (no-op if already confirmed)."""
        if index in self.confirmed:
            return self
        if index in self.regenerating:
            raise ValidationError(f"Segment {index} is being regenerated and cannot be confirmed yet")
        if index not in self.pending:
            raise ValidationError(f"Segment {index} has no generated artifact to confirm")
        return ConfirmationSet(
            confirmed=sorted(self.confirmed + [index]),
            pending=[i for i in self.pending if i != index],
            regenerating=list(self.regenerating),
        )

    def confirm_all(self) -> "ConfirmationSet":
        """Confirm every pending index."""
        return ConfirmationSet(
            confirmed=sorted(set(self.confirmed) | set(self.pending)),
            pending=[],
            regenerating=list(self.regenerating),
        )

    def start_regeneration(self, index: int) -> "ConfirmationSet":
        """Move an index into regenerating, whatever list held it before."""
        if index in self.regenerating:
            raise ValidationError(f"Segment {index} is already being regenerated")
        return ConfirmationSet(
            confirmed=[i for i in self.confirmed if i != index],
            pending=[i for i in self.pending if i != index],
            regenerating=sorted(self.regenerating + [index]),
        )

    def finish_regeneration(self, index: int, success: bool) -> "ConfirmationSet":
        """Leave regenerating: back to pending on success, out of the gate on failure."""
        if index not in self.regenerating:
            raise ValidationError(f"Segment {index} is not being regenerated")
        pending = list(self.pending)
        if success:
            pending = sorted(pending + [index])
        return ConfirmationSet(
            confirmed=list(self.confirmed),
            pending=pending,
            regenerating=[i for i in self.regenerating if i != index],
        )

    def summary(self) -> Dict[str, int]:
        return {
            "confirmed": len(self.confirmed),
            "pending": len(self.pending),
            "regenerating": len(self.regenerating),
        }


class EstimatedCost(BaseModel):
    """Generation calls a classification implies."""

    video_count: int = 0
    image_count: int = 0


class ClassificationStats(BaseModel):
    """Counts per tier and priority."""

    total: int = 0
    by_render_type: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    estimated_cost: EstimatedCost = Field(default_factory=EstimatedCost)


class ProjectData(BaseModel):
    """Outputs of every pipeline stage."""

    audio_path: Optional[str] = None
    language: Optional[str] = None
    lyric_metadata: Dict[str, str] = Field(default_factory=dict)
    lyrics: List[LyricSegment] = Field(default_factory=list)
    storyboard: Optional[Storyboard] = None
    classified_segments: List[ClassifiedSegment] = Field(default_factory=list)
    classification_stats: Optional[ClassificationStats] = None
    image_results: List[ImageResult] = Field(default_factory=list)
    image_confirmation: ConfirmationSet = Field(default_factory=ConfirmationSet)
    video_results: List[VideoResult] = Field(default_factory=list)
    video_confirmation: ConfirmationSet = Field(default_factory=ConfirmationSet)
    animation_results: List[AnimationResult] = Field(default_factory=list)
    output_path: Optional[str] = None
    output_duration: Optional[float] = None
    subtitle_path: Optional[str] = None
    missing_segments: List[int] = Field(default_factory=list)

    class Config:
        """Pydantic config."""
        frozen = True

    def segment(self, index: int) -> Optional[ClassifiedSegment]:
        for segment in self.classified_segments:
            if segment.index == index:
                return segment
        return None


class ProjectState(BaseModel):
    """Immutable view of one project at a point in time."""

    id: str = Field(..., description="Opaque project id")
    status: ProjectStatus = Field(default=ProjectStatus.CREATED)
    progress: int = Field(default=0, ge=0, le=100)
    error: Optional[str] = Field(None, description="Terminal error message")
    data: ProjectData = Field(default_factory=ProjectData)

    class Config:
        """Pydantic config."""
        frozen = True


class ProjectSnapshot(BaseModel):
    """Versioned on-disk form of a project."""

    schema_version: int = Field(default=SNAPSHOT_SCHEMA_VERSION)
    id: str
    status: ProjectStatus
    progress: int
    error: Optional[str] = None
    data: ProjectData
    saved_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_state(cls, state: ProjectState) -> "ProjectSnapshot":
        return cls(
            id=state.id,
            status=state.status,
            progress=state.progress,
            error=state.error,
            data=state.data,
        )

    def to_state(self) -> ProjectState:
        return ProjectState(
            id=self.id,
            status=self.status,
            progress=self.progress,
            error=self.error,
            data=self.data,
        )


class StatusReport(BaseModel):
    """Read-only projection returned by ``get_status``."""

    id: str
    status: ProjectStatus
    progress: int
    error: Optional[str] = None
    lyrics_count: int = 0
    storyboard_count: int = 0
    classification_stats: Optional[ClassificationStats] = None
    image_confirmation: ConfirmationSet = Field(default_factory=ConfirmationSet)
    video_confirmation: ConfirmationSet = Field(default_factory=ConfirmationSet)
    output_path: Optional[str] = None
    output_duration: Optional[float] = None
