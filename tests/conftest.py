"""Shared fixtures: in-memory generators and a temporary project store."""

from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from lyricmv.models import (
    AnimationResult,
    ClassifiedSegment,
    ImageResult,
    LyricSegment,
    Priority,
    RenderType,
    Storyboard,
    StoryboardScene,
    VideoResult,
)
from lyricmv.pipeline import Collaborators, EventBus, MVPipeline, ProjectStore
from lyricmv.services.base import (
    Animator,
    ImageGenerator,
    Storyboarder,
    StyleContext,
    VideoGenerationOptions,
    VideoGenerator,
)
from lyricmv.utils import image_filename

# Ten lines of 4.5s each; the last ends at the 45s audio length
SAMPLE_LRC = """[ti:Night Drive]
[ar:Test Artist]
[00:00.00]City lights are calling
[00:04.50]Engines humming low
[00:09.00]You and I keep driving
[00:13.50]Nowhere left to go
[00:18.00]Hold on to the moment
[00:22.50]Radio is on
[00:27.00]Singing to the skyline
[00:31.50]Till the night is gone
[00:36.00]Morning in the mirror
[00:40.50]Fading into dawn
"""

SAMPLE_AUDIO_DURATION = 45.0


class FakeImageGenerator(ImageGenerator):
    """Writes a small placeholder file per segment."""

    def __init__(self, fail: Optional[Sequence[int]] = None) -> None:
        self.fail = set(fail or [])
        self.calls: List[int] = []
        self.prompts: List[str] = []

    def generate(
        self,
        segments: Sequence[ClassifiedSegment],
        output_dir: Path,
        style: StyleContext,
    ) -> List[ImageResult]:
        results = []
        for segment in segments:
            self.calls.append(segment.index)
            self.prompts.append(style.build_prompt(segment.prompt or segment.text, segment.has_character))
            if segment.index in self.fail:
                results.append(ImageResult(index=segment.index, success=False, error="quota exceeded"))
                continue
            path = output_dir / image_filename(segment.index)
            path.write_bytes(f"image {segment.index} {len(self.calls)}".encode())
            results.append(ImageResult(index=segment.index, success=True, path=str(path)))
        return results


class FakeVideoGenerator(VideoGenerator):
    """Writes a placeholder clip; fails for the indices in ``fail``."""

    def __init__(self, fail: Optional[Sequence[int]] = None, size: int = 64) -> None:
        self.fail = set(fail or [])
        self.size = size
        self.calls: List[int] = []
        self.references: List[Path] = []
        self.durations: List[float] = []

    def generate(
        self,
        segment: ClassifiedSegment,
        image_path: Path,
        output_path: Path,
        options: VideoGenerationOptions,
    ) -> VideoResult:
        self.calls.append(segment.index)
        self.references.append(image_path)
        self.durations.append(options.duration)
        if segment.index in self.fail:
            return VideoResult(index=segment.index, success=False, error="generation timed out")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"\0" * self.size)
        return VideoResult(
            index=segment.index,
            success=True,
            path=str(output_path),
            duration=options.duration,
        )


class FakeAnimator(Animator):
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def animate(
        self,
        image_path: Path,
        output_path: Path,
        duration: float,
        effect: Optional[str] = None,
    ) -> AnimationResult:
        self.calls.append((image_path.name, output_path.name, duration, effect))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"animated")
        return AnimationResult(success=True, path=str(output_path), effect=effect)


class FakeStoryboarder(Storyboarder):
    def __init__(self) -> None:
        self.calls = 0

    def generate(self, lyrics: Sequence[LyricSegment], language: str) -> Storyboard:
        self.calls += 1
        return Storyboard(
            scenes=[
                StoryboardScene(
                    index=lyric.index,
                    prompt=f"scene for {lyric.text}",
                    scene_type="character" if lyric.index % 2 else "landscape",
                    has_character=bool(lyric.index % 2),
                )
                for lyric in lyrics
            ],
            global_style={"aesthetic": "neon noir", "color_tone": "teal and orange"},
            character_description="young driver with short black hair",
        )


def make_lyric(index: int, start: float, end: float, text: str = "", special_type=None) -> LyricSegment:
    return LyricSegment(
        index=index,
        text=text or f"line {index}",
        start_time=start,
        end_time=end,
        special_type=special_type,
    )


def make_segment(
    index: int,
    duration: float,
    render_type: RenderType = RenderType.ANIMATION,
    priority: Priority = Priority.MEDIUM,
    start: Optional[float] = None,
    **kwargs,
) -> ClassifiedSegment:
    start = (index - 1) * 5.0 if start is None else start
    return ClassifiedSegment(
        index=index,
        text=kwargs.pop("text", f"line {index}"),
        start_time=start,
        end_time=start + duration,
        duration=duration,
        priority=priority,
        render_type=render_type,
        video_duration=kwargs.pop("video_duration", duration if render_type == RenderType.VIDEO else None),
        **kwargs,
    )


@pytest.fixture
def sample_lrc() -> str:
    return SAMPLE_LRC


@pytest.fixture
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(tmp_path / "projects")


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def video_generator() -> FakeVideoGenerator:
    return FakeVideoGenerator()


@pytest.fixture
def animator() -> FakeAnimator:
    return FakeAnimator()


@pytest.fixture
def storyboarder() -> FakeStoryboarder:
    return FakeStoryboarder()


@pytest.fixture
def collaborators(image_generator, video_generator, animator, storyboarder) -> Collaborators:
    return Collaborators(
        storyboarder=storyboarder,
        image_generator=image_generator,
        video_generator=video_generator,
        animator=animator,
    )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def pipeline(store, collaborators, bus):
    mv = MVPipeline.create(store, collaborators, bus, project_id="demo")
    yield mv
    mv.close()


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "song.mp3"
    path.write_bytes(b"ID3")
    return path
