"""Generation results and composition records."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class ImageResult(BaseModel):
    """Outcome of generating the image for one segment."""

    index: int = Field(..., ge=1)
    success: bool = Field(...)
    path: Optional[str] = Field(None, description="Generated image path")
    error: Optional[str] = Field(None, description="Failure message")


class VideoResult(BaseModel):
    """Outcome of generating the AI video for one segment."""

    index: int = Field(..., ge=1)
    success: bool = Field(...)
    path: Optional[str] = Field(None, description="Generated video path")
    error: Optional[str] = Field(None, description="Failure message")
    duration: Optional[float] = Field(None, description="Measured clip duration")
    clip_count: int = Field(default=1, description="Generation calls chained into this clip")
    skipped: bool = Field(default=False, description="Existing output reused")
    fallback_animation: Optional[str] = Field(
        None, description="Animation rendered in place of a failed video"
    )


class AnimationResult(BaseModel):
    """Outcome of animating the still image of one segment."""

    index: Optional[int] = Field(None, ge=1, description="Segment index, set by the pipeline")
    success: bool = Field(...)
    path: Optional[str] = Field(None)
    error: Optional[str] = Field(None)
    effect: Optional[str] = Field(None, description="Animation effect used")


@dataclass
class VideoSegment:
    """A resolved clip taking part in composition."""

    index: int
    path: Path
    duration: float
    adjusted: bool = False
    method: Optional[str] = None


@dataclass
class ComposedOutput:
    """Final composed music video."""

    path: Path
    duration: float
    subtitle_path: Optional[Path] = None
    segments: List[VideoSegment] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)
