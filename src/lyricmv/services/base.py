"""Collaborator interfaces consumed by the pipeline.

Concrete adapters live next to this module; tests supply fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..models import (
    AnimationResult,
    ClassifiedSegment,
    ImageResult,
    LyricSegment,
    Storyboard,
    VideoResult,
)


@dataclass
class StyleContext:
    """Shared visual context passed to image generation."""

    global_style: dict = field(default_factory=dict)
    character_description: Optional[str] = None

    @classmethod
    def from_storyboard(cls, storyboard: Optional[Storyboard]) -> "StyleContext":
        if storyboard is None:
            return cls()
        return cls(
            global_style=dict(storyboard.global_style),
            character_description=storyboard.character_description,
        )

    def build_prompt(self, prompt: str, has_character: bool) -> str:
        """Expand a scene prompt with character and global style hints."""
        full_prompt = prompt
        if has_character:
            if self.character_description:
                full_prompt = (
                    f"{self.character_description}, same character, "
                    f"consistent appearance, {full_prompt}"
                )
            ethnicity = self.global_style.get("ethnicity")
            if ethnicity:
                full_prompt = f"{ethnicity}, {full_prompt}"
        else:
            full_prompt = f"{full_prompt}, no people, no person, no human figure, empty scene"

        style_parts = [
            self.global_style[key]
            for key in ("quality", "color_tone", "aesthetic")
            if self.global_style.get(key)
        ]
        if style_parts:
            full_prompt = f"{full_prompt}, {', '.join(style_parts)}"

        return full_prompt


@dataclass
class VideoGenerationOptions:
    """Per-call options for a video generation request."""

    duration: float = 10.0
    aspect_ratio: str = "16:9"
    prompt: Optional[str] = None


class LyricsRecognizer(ABC):
    """Speech recognition producing timed lyric lines."""

    @abstractmethod
    def recognize(self, audio_path: Path) -> List[LyricSegment]:
        ...


class Storyboarder(ABC):
    """Turns lyric lines into per-line visual scenes."""

    @abstractmethod
    def generate(self, lyrics: Sequence[LyricSegment], language: str) -> Storyboard:
        ...


class ImageGenerator(ABC):
    """Generates the still image of each segment."""

    @abstractmethod
    def generate(
        self,
        segments: Sequence[ClassifiedSegment],
        output_dir: Path,
        style: StyleContext,
    ) -> List[ImageResult]:
        """Generate ``image_<NNN>.png`` for every segment into ``output_dir``.

        Failures are reported in the returned results, one per segment.
        """
        ...


class VideoGenerator(ABC):
    """Generates an AI video clip from a reference image."""

    @abstractmethod
    def generate(
        self,
        segment: ClassifiedSegment,
        image_path: Path,
        output_path: Path,
        options: VideoGenerationOptions,
    ) -> VideoResult:
        """Generate one clip seeded by ``image_path``.

        May be called repeatedly for the same segment with different
        reference images when a segment is generated in several parts.
        """
        ...


class Animator(ABC):
    """Renders a still image as a short animated clip."""

    @abstractmethod
    def animate(
        self,
        image_path: Path,
        output_path: Path,
        duration: float,
        effect: Optional[str] = None,
    ) -> AnimationResult:
        ...
