"""Lyric segment and storyboard data models."""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator


class SpecialType(str, Enum):
    """Non-lyric segment markers detected in the lyric sheet."""
    PRELUDE = "prelude"
    INTERLUDE = "interlude"
    OUTRO = "outro"
    BRIDGE = "bridge"
    CHORUS = "chorus"


class Priority(str, Enum):
    """Importance of a segment within the song."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RenderType(str, Enum):
    """Cost tier used to render a segment."""
    VIDEO = "video"
    ANIMATION = "animation"
    STATIC = "static"


class LyricSegment(BaseModel):
    """One timed lyric line (or synthesized prelude/interlude/outro)."""

    index: int = Field(..., description="1-based position in the song", ge=1)
    text: str = Field(default="", description="Lyric text")
    start_time: float = Field(..., description="Start time in seconds", ge=0)
    end_time: float = Field(..., description="End time in seconds", ge=0)
    duration: float = Field(default=0.0, description="end_time - start_time", ge=0)
    special_type: Optional[SpecialType] = Field(None, description="Special segment marker")

    class Config:
        """Pydantic config."""
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _fill_duration(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("duration") is None:
            start = data.get("start_time")
            end = data.get("end_time")
            if start is not None and end is not None:
                data = {**data, "duration": max(0.0, float(end) - float(start))}
        return data

    @property
    def is_special(self) -> bool:
        return self.special_type is not None


class ClassifiedSegment(LyricSegment):
    """Lyric segment with its rendering tier and storyboard fields."""

    priority: Priority = Field(..., description="Segment priority")
    render_type: RenderType = Field(..., description="Rendering tier")
    video_duration: Optional[float] = Field(
        None, description="Requested generation duration (VIDEO tier only)"
    )
    prompt: str = Field(default="", description="Storyboard prompt")
    scene_type: str = Field(default="unknown", description="Storyboard scene type")
    has_character: bool = Field(default=False, description="Whether the scene shows the character")


class StoryboardScene(BaseModel):
    """Visual description for one lyric line."""

    index: int = Field(..., description="Lyric index this scene illustrates", ge=1)
    prompt: str = Field(default="", description="Image/video prompt")
    scene_type: str = Field(default="unknown", description="Scene category")
    has_character: bool = Field(default=False, description="Whether the character appears")


class Storyboard(BaseModel):
    """Storyboard for a whole song."""

    scenes: List[StoryboardScene] = Field(default_factory=list)
    global_style: dict = Field(default_factory=dict, description="Shared visual style hints")
    character_description: Optional[str] = Field(None, description="Main character look")

    def scene_for(self, index: int) -> Optional[StoryboardScene]:
        """Return the scene for a lyric index, if any."""
        for scene in self.scenes:
            if scene.index == index:
                return scene
        return None
