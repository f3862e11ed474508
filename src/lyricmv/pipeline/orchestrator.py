"""Pipeline orchestrator: runs the stages of one project.

Every change to the project goes through ``_apply``, which reduces the
actions, persists the snapshot and only then publishes the new state and its
events. Stage operations run synchronously when called directly; ``dispatch``
queues them on the project's single worker and returns a ``Future``.
"""

import logging
import os
import shutil
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .classifier import (
    ClassifyOptions,
    calculate_video_duration,
    classify_segments as classify,
    get_classification_stats,
    merge_adjacent_segments,
    optimize_for_budget,
)
from .events import EventBus, diff_events
from .state import (
    Action,
    ConfirmAll,
    ConfirmIndex,
    Fail,
    FinishRegeneration,
    Gate,
    SeedConfirmation,
    SetProgress,
    SetStatus,
    StartRegeneration,
    UpdateData,
    reduce_all,
)
from .store import ProjectStore
from ..config import config
from ..editor.animator import AnimationEffect, KenBurnsAnimator, effect_for_position
from ..editor.chaining import generate_segment_video
from ..editor.compositor import CompositionOptions, compose_mv as compose
from ..exceptions import (
    CompositionError,
    ConfirmationGateError,
    GenerationError,
    LyricMVError,
    ValidationError,
)
from ..lyrics import detect_language, parse_lrc, slice_lyrics
from ..models import (
    AnimationResult,
    ClassifiedSegment,
    ImageResult,
    ProjectState,
    ProjectStatus,
    RenderType,
    StatusReport,
    VideoResult,
)
from ..services.base import (
    Animator,
    ImageGenerator,
    LyricsRecognizer,
    Storyboarder,
    StyleContext,
    VideoGenerationOptions,
    VideoGenerator,
)
from ..utils import animated_filename, image_filename, video_filename

logger = logging.getLogger(__name__)

# Existing videos at least this large are reused on re-runs
MIN_EXISTING_VIDEO_BYTES = 10 * 1024

OUTPUT_FILENAME = "mv_final.mp4"

# Progress milestones
PROGRESS_LYRICS = 10
PROGRESS_STORYBOARD = 20
PROGRESS_CLASSIFIED = 25
PROGRESS_IMAGES_DONE = 60
PROGRESS_VIDEOS_DONE = 85
PROGRESS_ANIMATION_DONE = 90
PROGRESS_COMPLETED = 100

# Operations that may be queued with ``dispatch``
DISPATCHABLE = frozenset({
    "recognize_lyrics",
    "load_lyrics",
    "generate_storyboard",
    "classify_segments",
    "generate_images",
    "regenerate_image",
    "generate_videos",
    "regenerate_video",
    "animate_images",
    "compose_mv",
    "run_until_image_confirmation",
    "continue_after_image_confirmation",
    "continue_after_video_confirmation",
})


@dataclass
class Collaborators:
    """External generators used by the pipeline. Any of them may be absent
    until the stage that needs it runs."""

    recognizer: Optional[LyricsRecognizer] = None
    storyboarder: Optional[Storyboarder] = None
    image_generator: Optional[ImageGenerator] = None
    video_generator: Optional[VideoGenerator] = None
    animator: Optional[Animator] = None


@dataclass
class VideoOptions:
    """Options for video generation.

    Attributes:
        all_video: Generate a video for every segment, not only the VIDEO tier.
        skip_existing: Reuse ``video_<NNN>.mp4`` files already on disk.
        concurrency: Parallel generations (config default).
        aspect_ratio: Requested aspect ratio (config default).
        fallback_animation: Animate the image of segments whose video failed.
    """

    all_video: bool = False
    skip_existing: bool = True
    concurrency: Optional[int] = None
    aspect_ratio: Optional[str] = None
    fallback_animation: bool = True


@dataclass
class AnimationOptions:
    """Options for animating stills. ``effect`` overrides the rotation."""

    effect: Optional[AnimationEffect] = None


@dataclass
class ImageReview:
    """One row of the image confirmation view."""

    index: int
    text: str
    prompt: str
    render_type: RenderType
    path: Optional[str]
    state: str
    error: Optional[str] = None


def _replace_result(results: Sequence[Any], result: Any) -> List[Any]:
    """Replace the result with the same index, keeping index order."""
    others = [r for r in results if r.index != result.index]
    return sorted(others + [result], key=lambda r: r.index)


class MVPipeline:
    """Music video pipeline for one project.

    Holds the current immutable ``ProjectState``. Stage operations check the
    project status, call the collaborators and apply the resulting actions.
    """

    def __init__(
        self,
        state: ProjectState,
        store: ProjectStore,
        collaborators: Optional[Collaborators] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._state = state
        self.store = store
        self.collaborators = collaborators or Collaborators()
        self.bus = bus or EventBus()
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def create(
        cls,
        store: ProjectStore,
        collaborators: Optional[Collaborators] = None,
        bus: Optional[EventBus] = None,
        project_id: Optional[str] = None,
    ) -> "MVPipeline":
        """Start a new project and persist its first snapshot.

        Raises:
            ValidationError: If a project with ``project_id`` already exists.
        """
        project_id = project_id or uuid.uuid4().hex[:12]
        if store.exists(project_id):
            raise ValidationError(f"Project already exists: {project_id}")

        state = ProjectState(id=project_id)
        store.save(state)
        logger.info(f"Created project {project_id}")
        return cls(state, store, collaborators, bus)

    @classmethod
    def open(
        cls,
        store: ProjectStore,
        project_id: str,
        collaborators: Optional[Collaborators] = None,
        bus: Optional[EventBus] = None,
    ) -> "MVPipeline":
        """Resume a project from its last snapshot.

        Raises:
            NotFoundError: If the project does not exist.
        """
        return cls(store.load(project_id), store, collaborators, bus)

    # ------------------------------------------------------------------
    # State plumbing

    @property
    def state(self) -> ProjectState:
        return self._state

    @property
    def project_id(self) -> str:
        return self._state.id

    @property
    def project_dir(self) -> Path:
        return self.store.project_dir(self.project_id)

    @property
    def images_dir(self) -> Path:
        return self.project_dir / "images"

    @property
    def videos_dir(self) -> Path:
        return self.project_dir / "videos"

    @property
    def output_dir(self) -> Path:
        return self.project_dir / "output"

    def _apply(self, *actions: Action, message: str = "") -> ProjectState:
        """Reduce, persist and publish. Nothing changes if any action is rejected."""
        with self._lock:
            before = self._state
            after = reduce_all(before, actions)
            self.store.save(after)
            self._state = after

        for event in diff_events(before, after, message):
            self.bus.emit(event)
        return after

    def _fail(self, error: Exception) -> None:
        logger.error(f"Project {self.project_id} failed: {error}")
        self._apply(Fail(error=str(error)), message="failed")

    def _require(self, name: str) -> Any:
        collaborator = getattr(self.collaborators, name)
        if collaborator is None:
            raise ValidationError(f"No {name.replace('_', ' ')} configured")
        return collaborator

    def _require_status(self, lowest: ProjectStatus, highest: ProjectStatus, operation: str) -> None:
        status = self._state.status
        if status.is_terminal or not lowest.rank <= status.rank <= highest.rank:
            raise ValidationError(
                f"Cannot {operation} while project is {status.value}",
                details=f"allowed from {lowest.value} to {highest.value}",
            )

    def _require_segment(self, index: int) -> ClassifiedSegment:
        segment = self._state.data.segment(index)
        if segment is None:
            raise ValidationError(f"Segment {index} does not exist")
        return segment

    def _require_segments(self) -> List[ClassifiedSegment]:
        segments = list(self._state.data.classified_segments)
        if not segments:
            raise ValidationError("Segments have not been classified")
        return segments

    # ------------------------------------------------------------------
    # Lyrics and storyboard

    def recognize_lyrics(self, audio_path: Path, audio_duration: Optional[float] = None) -> ProjectState:
        """Run speech recognition on the song.

        Instrumental gaps are filled with prelude, interlude and outro
        segments. The outro needs ``audio_duration``.

        Raises:
            ValidationError: If no recognizer is configured or the project
                is past the lyrics stage.
            GenerationError: If recognition fails (the project is FAILED).
        """
        recognizer: LyricsRecognizer = self._require("recognizer")
        self._require_status(ProjectStatus.CREATED, ProjectStatus.RECOGNIZING_LYRICS, "recognize lyrics")

        self._apply(
            SetStatus(ProjectStatus.RECOGNIZING_LYRICS),
            UpdateData({"audio_path": str(audio_path)}),
            message="recognizing lyrics",
        )

        try:
            lyrics = recognizer.recognize(Path(audio_path))
        except GenerationError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = GenerationError(f"Lyrics recognition failed: {e}")
            self._fail(error)
            raise error from e

        if not lyrics:
            error = GenerationError("Lyrics recognition returned no lines")
            self._fail(error)
            raise error

        language = detect_language(" ".join(lyric.text for lyric in lyrics))
        logger.info(f"Recognized {len(lyrics)} lyric lines ({language})")
        lyrics = slice_lyrics(lyrics, audio_duration)

        return self._apply(
            UpdateData({"lyrics": list(lyrics), "language": language}),
            SetStatus(ProjectStatus.LYRICS_READY, PROGRESS_LYRICS),
            message="lyrics ready",
        )

    def load_lyrics(
        self,
        lrc_content: str,
        audio_duration: Optional[float] = None,
        audio_path: Optional[Path] = None,
    ) -> ProjectState:
        """Use an LRC lyric sheet instead of recognition.

        Raises:
            ValidationError: If the sheet has no timed lines or the project
                is past the lyrics stage.
        """
        self._require_status(ProjectStatus.CREATED, ProjectStatus.LYRICS_READY, "load lyrics")

        parsed = parse_lrc(lrc_content, total_duration=audio_duration)
        if not parsed.lyrics:
            raise ValidationError("No timed lyric lines found")
        lyrics = slice_lyrics(parsed.lyrics, audio_duration)

        changes: Dict[str, Any] = {
            "lyrics": lyrics,
            "language": parsed.language,
            "lyric_metadata": parsed.metadata,
        }
        if audio_path is not None:
            changes["audio_path"] = str(audio_path)

        logger.info(f"Loaded {parsed.total_lyrics} lyric lines as {len(lyrics)} segments ({parsed.language})")
        return self._apply(
            UpdateData(changes),
            SetStatus(ProjectStatus.LYRICS_READY, PROGRESS_LYRICS),
            message="lyrics ready",
        )

    def generate_storyboard(self) -> ProjectState:
        """Generate the storyboard. Without a storyboarder the stage is skipped.

        Raises:
            GenerationError: If the storyboarder fails (the project is FAILED).
        """
        self._require_status(ProjectStatus.LYRICS_READY, ProjectStatus.GENERATING_STORYBOARD, "generate storyboard")
        lyrics = self._state.data.lyrics
        if not lyrics:
            raise ValidationError("No lyrics loaded")

        storyboarder = self.collaborators.storyboarder
        if storyboarder is None:
            logger.warning("No storyboarder configured, segments will use their lyric text as prompts")
            return self._apply(SetProgress(PROGRESS_STORYBOARD), message="storyboard skipped")

        self._apply(SetStatus(ProjectStatus.GENERATING_STORYBOARD), message="generating storyboard")

        try:
            storyboard = storyboarder.generate(lyrics, self._state.data.language or "unknown")
        except GenerationError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = GenerationError(f"Storyboard generation failed: {e}")
            self._fail(error)
            raise error from e

        logger.info(f"Storyboard has {len(storyboard.scenes)} scenes")
        return self._apply(
            UpdateData({"storyboard": storyboard}),
            SetProgress(PROGRESS_STORYBOARD),
            message="storyboard ready",
        )

    # ------------------------------------------------------------------
    # Classification

    def classify_segments(self, options: Optional[ClassifyOptions] = None) -> ProjectState:
        """Classify every lyric line, then apply the budget and merging.

        Does not change the project status.
        """
        self._require_status(ProjectStatus.LYRICS_READY, ProjectStatus.GENERATING_STORYBOARD, "classify segments")
        options = options or ClassifyOptions()
        data = self._state.data
        if not data.lyrics:
            raise ValidationError("No lyrics loaded")

        segments = classify(data.lyrics, data.storyboard, options)
        if options.budget is not None:
            segments = optimize_for_budget(segments, options.budget)
        if options.merge_short:
            threshold = options.merge_threshold if options.merge_threshold is not None else config.merge_threshold
            segments = merge_adjacent_segments(segments, threshold)

        stats = get_classification_stats(segments)
        logger.info(
            f"Classified {stats.total} segments: "
            + ", ".join(f"{name}={count}" for name, count in stats.by_render_type.items())
        )

        return self._apply(
            UpdateData({"classified_segments": segments, "classification_stats": stats}),
            SetProgress(PROGRESS_CLASSIFIED),
            message="segments classified",
        )

    def update_prompt(self, index: int, prompt: str) -> ProjectState:
        """Replace the storyboard prompt of one segment."""
        segment = self._require_segment(index)
        updated = segment.model_copy(update={"prompt": prompt})
        return self._apply(UpdateData({
            "classified_segments": _replace_result(self._state.data.classified_segments, updated),
        }))

    # ------------------------------------------------------------------
    # Images

    def _style(self) -> StyleContext:
        return StyleContext.from_storyboard(self._state.data.storyboard)

    def _generate_image(self, generator: ImageGenerator, segment: ClassifiedSegment, output_dir: Path) -> ImageResult:
        try:
            results = generator.generate([segment], output_dir, self._style())
        except Exception as e:
            logger.error(f"Image {segment.index} failed: {e}")
            return ImageResult(index=segment.index, success=False, error=str(e))

        for result in results:
            if result.index == segment.index:
                return result
        return ImageResult(index=segment.index, success=False, error="No result returned")

    def generate_images(self) -> ProjectState:
        """Generate the image of every segment and open the image gate.

        Failed indices stay out of the gate and are reported in
        ``image_results``.
        """
        generator: ImageGenerator = self._require("image_generator")
        self._require_status(ProjectStatus.LYRICS_READY, ProjectStatus.GENERATING_IMAGES, "generate images")
        segments = self._require_segments()

        self._apply(SetStatus(ProjectStatus.GENERATING_IMAGES, PROGRESS_CLASSIFIED), message="generating images")
        self.images_dir.mkdir(parents=True, exist_ok=True)

        results: List[ImageResult] = []
        span = PROGRESS_IMAGES_DONE - PROGRESS_CLASSIFIED
        for done, segment in enumerate(segments, start=1):
            results.append(self._generate_image(generator, segment, self.images_dir))
            self._apply(SetProgress(PROGRESS_CLASSIFIED + span * done // len(segments)))

        succeeded = [r.index for r in results if r.success]
        logger.info(f"Generated {len(succeeded)}/{len(results)} images")

        return self._apply(
            UpdateData({"image_results": results}),
            SeedConfirmation(Gate.IMAGES, succeeded),
            SetStatus(ProjectStatus.AWAITING_IMAGE_CONFIRM, PROGRESS_IMAGES_DONE),
            message="awaiting image confirmation",
        )

    def confirm_image(self, index: int) -> ProjectState:
        return self._apply(ConfirmIndex(Gate.IMAGES, index), message=f"image {index} confirmed")

    def confirm_all_images(self) -> ProjectState:
        return self._apply(ConfirmAll(Gate.IMAGES), message="all images confirmed")

    def is_all_images_confirmed(self) -> bool:
        return self._state.data.image_confirmation.is_complete

    def regenerate_image(self, index: int, new_prompt: Optional[str] = None) -> ImageResult:
        """Regenerate one image; the new image must be confirmed again.

        On failure the previous image file is left in place and the index
        leaves the gate.
        """
        generator: ImageGenerator = self._require("image_generator")
        self._require_status(
            ProjectStatus.AWAITING_IMAGE_CONFIRM, ProjectStatus.AWAITING_IMAGE_CONFIRM, "regenerate images"
        )
        segment = self._require_segment(index)

        actions: List[Action] = [StartRegeneration(Gate.IMAGES, index)]
        if new_prompt:
            segment = segment.model_copy(update={"prompt": new_prompt})
            actions.append(UpdateData({
                "classified_segments": _replace_result(self._state.data.classified_segments, segment),
            }))
        self._apply(*actions, message=f"regenerating image {index}")

        work_dir = self.images_dir / ".regenerate"
        work_dir.mkdir(parents=True, exist_ok=True)
        try:
            result = self._generate_image(generator, segment, work_dir)
            if result.success:
                target = self.images_dir / image_filename(index)
                try:
                    os.replace(work_dir / image_filename(index), target)
                except OSError as e:
                    result = ImageResult(index=index, success=False, error=str(e))
                else:
                    result = result.model_copy(update={"path": str(target)})
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        self._apply(
            UpdateData({"image_results": _replace_result(self._state.data.image_results, result)}),
            FinishRegeneration(Gate.IMAGES, index, result.success),
            message=f"image {index} regenerated" if result.success else f"image {index} regeneration failed",
        )
        return result

    def get_images_for_confirmation(self) -> List[ImageReview]:
        """Every segment with its image and where it stands in the gate."""
        data = self._state.data
        gate = data.image_confirmation
        results = {r.index: r for r in data.image_results}
        reviews: List[ImageReview] = []

        for segment in data.classified_segments:
            result = results.get(segment.index)
            if segment.index in gate.confirmed:
                state = "confirmed"
            elif segment.index in gate.pending:
                state = "pending"
            elif segment.index in gate.regenerating:
                state = "regenerating"
            else:
                state = "failed" if result is not None else "missing"

            reviews.append(ImageReview(
                index=segment.index,
                text=segment.text,
                prompt=segment.prompt,
                render_type=segment.render_type,
                path=result.path if result else None,
                state=state,
                error=result.error if result else None,
            ))

        return reviews

    # ------------------------------------------------------------------
    # Videos

    def _animate(self, segment: ClassifiedSegment, effect: Optional[AnimationEffect]) -> AnimationResult:
        animator: Animator = self.collaborators.animator or KenBurnsAnimator()
        if effect is None:
            if segment.render_type == RenderType.STATIC:
                effect = AnimationEffect.STATIC
            else:
                effect = effect_for_position(segment.index - 1)

        image_path = self.images_dir / image_filename(segment.index)
        output_path = self.videos_dir / animated_filename(segment.index)
        try:
            result = animator.animate(image_path, output_path, segment.duration, effect.value)
        except Exception as e:
            logger.error(f"Animation {segment.index} failed: {e}")
            result = AnimationResult(success=False, error=str(e), effect=effect.value)
        return result.model_copy(update={"index": segment.index})

    def _generate_video(
        self,
        generator: VideoGenerator,
        segment: ClassifiedSegment,
        options: VideoOptions,
        output_path: Path,
    ) -> VideoResult:
        image_path = self.images_dir / image_filename(segment.index)
        if not image_path.exists():
            return VideoResult(index=segment.index, success=False, error=f"Image not found: {image_path.name}")

        generation_options = VideoGenerationOptions(aspect_ratio=options.aspect_ratio or config.aspect_ratio)
        try:
            return generate_segment_video(generator, segment, image_path, output_path, generation_options)
        except Exception as e:
            logger.error(f"Video {segment.index} failed: {e}")
            return VideoResult(index=segment.index, success=False, error=str(e))

    def _video_for_segment(
        self,
        generator: VideoGenerator,
        segment: ClassifiedSegment,
        options: VideoOptions,
    ) -> VideoResult:
        output_path = self.videos_dir / video_filename(segment.index)

        if options.skip_existing and output_path.exists() and output_path.stat().st_size > MIN_EXISTING_VIDEO_BYTES:
            logger.info(f"Video {segment.index} exists, skipping")
            return VideoResult(index=segment.index, success=True, path=str(output_path), skipped=True)

        result = self._generate_video(generator, segment, options, output_path)
        if result.success or not options.fallback_animation:
            return result

        logger.warning(f"Video {segment.index} failed, animating its image instead")
        animation = self._animate(segment, None)
        if animation.success:
            result = result.model_copy(update={"fallback_animation": animation.path})
        return result

    def _force_all_video(self) -> List[ClassifiedSegment]:
        """Promote every segment to the VIDEO tier."""
        segments = [
            segment if segment.render_type == RenderType.VIDEO else segment.model_copy(update={
                "render_type": RenderType.VIDEO,
                "video_duration": calculate_video_duration(segment.duration, config.video_max_clip_duration),
            })
            for segment in self._state.data.classified_segments
        ]
        self._apply(UpdateData({
            "classified_segments": segments,
            "classification_stats": get_classification_stats(segments),
        }))
        return segments

    def generate_videos(self, options: Optional[VideoOptions] = None) -> ProjectState:
        """Generate the AI videos and open the video gate.

        Nothing is generated while the image gate is open. In normal mode
        only VIDEO-tier segments get a video; ``all_video`` covers every
        segment.

        Raises:
            ConfirmationGateError: If any image is pending or regenerating.
            ValidationError: If images have not been generated yet.
        """
        options = options or VideoOptions()
        generator: VideoGenerator = self._require("video_generator")

        if not self.is_all_images_confirmed():
            gate = self._state.data.image_confirmation
            raise ConfirmationGateError(
                "All images must be confirmed before generating videos",
                details=f"pending={gate.pending} regenerating={gate.regenerating}",
            )
        self._require_status(ProjectStatus.AWAITING_IMAGE_CONFIRM, ProjectStatus.GENERATING_VIDEOS, "generate videos")
        self._require_segments()

        self._apply(SetStatus(ProjectStatus.GENERATING_VIDEOS, PROGRESS_IMAGES_DONE), message="generating videos")

        segments = self._force_all_video() if options.all_video else self._state.data.classified_segments
        targets = [s for s in segments if s.render_type == RenderType.VIDEO]
        logger.info(f"Generating {len(targets)} videos{' (all-video mode)' if options.all_video else ''}")

        self.videos_dir.mkdir(parents=True, exist_ok=True)
        results: List[VideoResult] = []
        span = PROGRESS_VIDEOS_DONE - PROGRESS_IMAGES_DONE

        if targets:
            workers = max(1, options.concurrency or config.video_concurrency)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"video-{self.project_id}") as pool:
                futures = [pool.submit(self._video_for_segment, generator, s, options) for s in targets]
                for done, future in enumerate(as_completed(futures), start=1):
                    results.append(future.result())
                    self._apply(SetProgress(PROGRESS_IMAGES_DONE + span * done // len(targets)))

        results.sort(key=lambda r: r.index)
        succeeded = [r.index for r in results if r.success]
        logger.info(f"Generated {len(succeeded)}/{len(results)} videos")

        return self._apply(
            UpdateData({"video_results": results}),
            SeedConfirmation(Gate.VIDEOS, succeeded),
            SetProgress(PROGRESS_VIDEOS_DONE),
            message="awaiting video confirmation",
        )

    def confirm_video(self, index: int) -> ProjectState:
        return self._apply(ConfirmIndex(Gate.VIDEOS, index), message=f"video {index} confirmed")

    def confirm_all_videos(self) -> ProjectState:
        return self._apply(ConfirmAll(Gate.VIDEOS), message="all videos confirmed")

    def is_all_videos_confirmed(self) -> bool:
        return self._state.data.video_confirmation.is_complete

    def regenerate_video(self, index: int, new_prompt: Optional[str] = None) -> VideoResult:
        """Regenerate one video; the new clip must be confirmed again.

        On failure the previous clip is left in place and the index leaves
        the gate.
        """
        generator: VideoGenerator = self._require("video_generator")
        self._require_status(ProjectStatus.GENERATING_VIDEOS, ProjectStatus.ANIMATING_IMAGES, "regenerate videos")
        segment = self._require_segment(index)

        actions: List[Action] = [StartRegeneration(Gate.VIDEOS, index)]
        if new_prompt:
            segment = segment.model_copy(update={"prompt": new_prompt})
            actions.append(UpdateData({
                "classified_segments": _replace_result(self._state.data.classified_segments, segment),
            }))
        self._apply(*actions, message=f"regenerating video {index}")

        target = self.videos_dir / video_filename(index)
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        work_path = self.videos_dir / f".regenerate_{video_filename(index)}"
        try:
            result = self._generate_video(generator, segment, VideoOptions(), work_path)
            if result.success:
                try:
                    os.replace(work_path, target)
                except OSError as e:
                    result = VideoResult(index=index, success=False, error=str(e))
                else:
                    result = result.model_copy(update={"path": str(target)})
        finally:
            work_path.unlink(missing_ok=True)

        self._apply(
            UpdateData({"video_results": _replace_result(self._state.data.video_results, result)}),
            FinishRegeneration(Gate.VIDEOS, index, result.success),
            message=f"video {index} regenerated" if result.success else f"video {index} regeneration failed",
        )
        return result

    # ------------------------------------------------------------------
    # Animation and composition

    def animate_images(self, options: Optional[AnimationOptions] = None) -> ProjectState:
        """Animate the stills of ANIMATION and STATIC segments.

        Skipped when every segment already has a video.
        """
        options = options or AnimationOptions()
        self._require_status(ProjectStatus.GENERATING_VIDEOS, ProjectStatus.ANIMATING_IMAGES, "animate images")
        segments = self._require_segments()

        with_video = {r.index for r in self._state.data.video_results if r.success}
        if all(segment.index in with_video for segment in segments):
            logger.info("Every segment has a video, skipping animation")
            return self._apply(SetProgress(PROGRESS_ANIMATION_DONE), message="animation skipped")

        targets = [s for s in segments if s.render_type in (RenderType.ANIMATION, RenderType.STATIC)]
        self._apply(SetStatus(ProjectStatus.ANIMATING_IMAGES, PROGRESS_VIDEOS_DONE), message="animating images")
        self.videos_dir.mkdir(parents=True, exist_ok=True)

        results: List[AnimationResult] = []
        span = PROGRESS_ANIMATION_DONE - PROGRESS_VIDEOS_DONE
        for done, segment in enumerate(targets, start=1):
            results.append(self._animate(segment, options.effect))
            self._apply(SetProgress(PROGRESS_VIDEOS_DONE + span * done // len(targets)))

        logger.info(f"Animated {sum(1 for r in results if r.success)}/{len(results)} images")
        return self._apply(
            UpdateData({"animation_results": results}),
            SetProgress(PROGRESS_ANIMATION_DONE),
            message="animation done",
        )

    def compose_mv(
        self,
        audio_path: Optional[Path] = None,
        options: Optional[CompositionOptions] = None,
    ) -> ProjectState:
        """Compose the final video.

        Raises:
            ValidationError: If the video stage has not run yet.
            ConfirmationGateError: If any video is pending or regenerating.
            CompositionError: If composition fails (the project is FAILED).
        """
        self._require_status(ProjectStatus.GENERATING_VIDEOS, ProjectStatus.COMPOSING_MV, "compose")
        segments = self._require_segments()
        audio = audio_path or self._state.data.audio_path
        if not audio:
            raise ValidationError("No audio file given")

        self._apply(SetStatus(ProjectStatus.COMPOSING_MV, PROGRESS_ANIMATION_DONE), message="composing")

        try:
            output = compose(
                segments,
                self._state.data.lyrics,
                self.videos_dir,
                Path(audio),
                self.output_dir / OUTPUT_FILENAME,
                options,
            )
        except CompositionError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = CompositionError(f"Composition failed: {e}")
            self._fail(error)
            raise error from e

        return self._apply(
            UpdateData({
                "audio_path": str(audio),
                "output_path": str(output.path),
                "output_duration": output.duration,
                "subtitle_path": str(output.subtitle_path) if output.subtitle_path else None,
                "missing_segments": output.missing,
            }),
            SetStatus(ProjectStatus.COMPLETED, PROGRESS_COMPLETED),
            message="completed",
        )

    # ------------------------------------------------------------------
    # Whole-flow helpers

    def run_until_image_confirmation(
        self,
        lrc_content: Optional[str] = None,
        audio_path: Optional[Path] = None,
        audio_duration: Optional[float] = None,
        classify_options: Optional[ClassifyOptions] = None,
    ) -> StatusReport:
        """Run lyrics, storyboard, classification and images, stopping at the image gate."""
        if lrc_content is not None:
            self.load_lyrics(lrc_content, audio_duration=audio_duration, audio_path=audio_path)
        elif audio_path is not None:
            self.recognize_lyrics(audio_path, audio_duration)
        else:
            raise ValidationError("Either lyrics or an audio file is required")

        self.generate_storyboard()
        self.classify_segments(classify_options)
        self.generate_images()
        return self.get_status()

    def continue_after_image_confirmation(self, options: Optional[VideoOptions] = None) -> StatusReport:
        """Generate a video for every segment, stopping at the video gate."""
        options = replace(options or VideoOptions(), all_video=True)
        self.generate_videos(options)
        return self.get_status()

    def continue_after_video_confirmation(
        self,
        audio_path: Optional[Path] = None,
        options: Optional[CompositionOptions] = None,
    ) -> StatusReport:
        """Animate what has no video, then compose."""
        self.animate_images()
        self.compose_mv(audio_path, options)
        return self.get_status()

    def get_status(self) -> StatusReport:
        state = self._state
        data = state.data
        return StatusReport(
            id=state.id,
            status=state.status,
            progress=state.progress,
            error=state.error,
            lyrics_count=len(data.lyrics),
            storyboard_count=len(data.storyboard.scenes) if data.storyboard else 0,
            classification_stats=data.classification_stats,
            image_confirmation=data.image_confirmation,
            video_confirmation=data.video_confirmation,
            output_path=data.output_path,
            output_duration=data.output_duration,
        )

    # ------------------------------------------------------------------
    # Background execution

    def dispatch(self, operation: str, *args: Any, **kwargs: Any) -> Future:
        """Queue a stage operation on this project's worker and return at once.

        Operations run one at a time in submission order. Completion is
        observed through the event bus or ``get_status``.

        Raises:
            ValidationError: If ``operation`` is not a stage operation.
        """
        if operation not in DISPATCHABLE:
            raise ValidationError(f"Unknown operation: {operation}")

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"mv-{self.project_id}")
            future = self._executor.submit(getattr(self, operation), *args, **kwargs)

        def _log_failure(done: Future) -> None:
            error = done.exception()
            if isinstance(error, LyricMVError):
                logger.warning(f"{operation} on {self.project_id} failed: {error}")
            elif error is not None:
                logger.error(f"{operation} on {self.project_id} crashed: {error!r}")

        future.add_done_callback(_log_failure)
        return future

    def close(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
