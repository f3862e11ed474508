"""Music video compositor: clip resolution, concatenation, subtitles and audio."""

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import media
from .audio import mux_audio
from .ffmpeg import quote_concat_path, quote_filter_path, run_ffmpeg
from .reconcile import reconcile_clip
from .subtitles import SubtitleStyle, write_ass_subtitles
from ..config import config
from ..exceptions import CompositionError, FFmpegError, NotFoundError, ReconciliationError
from ..models import ClassifiedSegment, ComposedOutput, LyricSegment, RenderType, VideoSegment
from ..utils import animated_filename, padded_index, video_filename

logger = logging.getLogger(__name__)

# Clips further than this from their target duration are reconciled
RECONCILE_THRESHOLD = 0.2


class TransitionType(str, Enum):
    NONE = "none"
    CROSSFADE = "crossfade"
    FADE_BLACK = "fade_black"
    FADE_WHITE = "fade_white"
    WIPE_LEFT = "wipe_left"
    WIPE_RIGHT = "wipe_right"


# ffmpeg xfade transition names
XFADE_TRANSITIONS = {
    TransitionType.CROSSFADE: "fade",
    TransitionType.FADE_BLACK: "fadeblack",
    TransitionType.FADE_WHITE: "fadewhite",
    TransitionType.WIPE_LEFT: "wipeleft",
    TransitionType.WIPE_RIGHT: "wiperight",
}


@dataclass
class CompositionOptions:
    """Options for composing the final video.

    Attributes:
        transition: Transition between clips; NONE concatenates directly.
        transition_duration: Length of each transition in seconds.
        subtitle_style: Style for burned-in lyrics.
        width: Output width for transition rendering.
        height: Output height for transition rendering.
        fps: Output frame rate for transition rendering.
        timeout: Deadline for each ffmpeg invocation.
    """

    transition: TransitionType = TransitionType.NONE
    transition_duration: float = field(default_factory=lambda: config.transition_duration)
    subtitle_style: Optional[SubtitleStyle] = None
    width: int = field(default_factory=lambda: config.output_width)
    height: int = field(default_factory=lambda: config.output_height)
    fps: int = field(default_factory=lambda: config.output_fps)
    timeout: Optional[float] = None


def resolve_clip(segment: ClassifiedSegment, video_dir: Path) -> Optional[Path]:
    """Find the clip for a segment, preferring the file of its own tier.

    VIDEO segments prefer ``video_<NNN>.mp4`` and fall back to the animation;
    other tiers prefer ``animated_<NNN>.mp4`` and fall back to the video.
    """
    ai_video = video_dir / video_filename(segment.index)
    animated = video_dir / animated_filename(segment.index)

    if segment.render_type == RenderType.VIDEO:
        candidates = (ai_video, animated)
    else:
        candidates = (animated, ai_video)

    for candidate in candidates:
        if candidate.exists():
            if candidate != candidates[0]:
                logger.info(f"Segment {segment.index}: using fallback clip {candidate.name}")
            return candidate
    return None


def collect_segments(
    segments: Sequence[ClassifiedSegment],
    video_dir: Path,
    adjusted_dir: Path,
) -> Tuple[List[VideoSegment], List[int]]:
    """Resolve and reconcile the clip of every segment, in index order.

    Returns:
        The usable clips and the indices of segments with no clip at all.
    """
    clips: List[VideoSegment] = []
    missing: List[int] = []

    for segment in sorted(segments, key=lambda s: s.index):
        path = resolve_clip(segment, video_dir)
        if path is None:
            logger.warning(
                f"Segment {segment.index} has no clip, skipping "
                f"{segment.start_time:.2f}s-{segment.end_time:.2f}s ({segment.duration:.2f}s gap)"
            )
            missing.append(segment.index)
            continue

        actual = media.probe_duration(path)
        target = segment.duration

        if abs(actual - target) <= RECONCILE_THRESHOLD:
            clips.append(VideoSegment(index=segment.index, path=path, duration=actual))
            continue

        adjusted_path = adjusted_dir / f"adjusted_{padded_index(segment.index)}.mp4"
        try:
            result = reconcile_clip(path, adjusted_path, target, actual=actual)
        except ReconciliationError as e:
            logger.warning(f"Segment {segment.index}: keeping unreconciled clip ({e})")
            clips.append(VideoSegment(index=segment.index, path=path, duration=actual))
            continue

        clips.append(VideoSegment(
            index=segment.index,
            path=result.path,
            duration=target,
            adjusted=True,
            method=result.method.value,
        ))

    return clips, missing


def concat_clips(clip_paths: Sequence[Path], output_path: Path, timeout: Optional[float] = None) -> Path:
    """Concatenate clips with the concat demuxer, copying streams.

    Raises:
        CompositionError: If no clips are given.
        FFmpegError: If ffmpeg fails.
    """
    if not clip_paths:
        raise CompositionError("No clips to concatenate")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    list_path = output_path.with_name(f"{output_path.stem}_list.txt")
    list_path.write_text(
        "\n".join(quote_concat_path(path) for path in clip_paths) + "\n",
        encoding="utf-8",
    )

    try:
        run_ffmpeg(
            ["-f", "concat", "-safe", "0", "-i", str(list_path), "-c", "copy", str(output_path)],
            timeout=timeout,
        )
    finally:
        list_path.unlink(missing_ok=True)

    return output_path


def build_xfade_filter(
    durations: Sequence[float],
    transition: TransitionType,
    transition_duration: float,
    width: int,
    height: int,
    fps: int,
) -> Tuple[str, str]:
    """Build the filtergraph chaining every input with xfade.

    Each transition starts where the running output ends minus the
    transition length, so offsets accumulate over the preceding clips.

    Returns:
        The filtergraph and the label of its final output.
    """
    name = XFADE_TRANSITIONS.get(transition, "fade")
    filters = [
        f"[{i}:v]scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,setsar=1,fps={fps}[v{i}]"
        for i in range(len(durations))
    ]

    previous = "[v0]"
    timeline = durations[0]
    for i in range(1, len(durations)):
        offset = timeline - transition_duration
        label = f"[x{i}]"
        filters.append(
            f"{previous}[v{i}]xfade=transition={name}:"
            f"duration={transition_duration:.3f}:offset={offset:.3f}{label}"
        )
        timeline = offset + durations[i]
        previous = label

    return ";".join(filters), previous


def concat_with_transitions(
    clips: Sequence[VideoSegment],
    output_path: Path,
    options: CompositionOptions,
) -> Path:
    """Concatenate clips with xfade transitions, falling back to plain concat."""
    if not clips:
        raise CompositionError("No clips to concatenate")

    if len(clips) == 1:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(clips[0].path, output_path)
        return output_path

    graph, final_label = build_xfade_filter(
        [clip.duration for clip in clips],
        options.transition,
        options.transition_duration,
        options.width,
        options.height,
        options.fps,
    )

    args: List[str] = []
    for clip in clips:
        args.extend(["-i", str(clip.path)])
    args.extend([
        "-filter_complex", graph,
        "-map", final_label,
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", "23",
        "-pix_fmt", "yuv420p",
        str(output_path),
    ])

    try:
        run_ffmpeg(args, timeout=options.timeout)
        return output_path
    except FFmpegError as e:
        logger.warning(f"Transition render failed, falling back to plain concat: {e}")
        output_path.unlink(missing_ok=True)

    return concat_clips([clip.path for clip in clips], output_path, timeout=options.timeout)


def burn_subtitles(
    video_path: Path,
    subtitle_path: Path,
    output_path: Path,
    timeout: Optional[float] = None,
) -> Path:
    """Render an ASS subtitle file into the video frames."""
    run_ffmpeg(
        [
            "-i", str(video_path),
            "-vf", f"ass={quote_filter_path(subtitle_path)}",
            "-c:a", "copy",
            "-c:v", "libx264",
            "-preset", "medium",
            "-crf", "23",
            str(output_path),
        ],
        timeout=timeout,
    )
    return output_path


def compose_mv(
    segments: Sequence[ClassifiedSegment],
    lyrics: Sequence[LyricSegment],
    video_dir: Path,
    audio_path: Path,
    output_path: Path,
    options: Optional[CompositionOptions] = None,
) -> ComposedOutput:
    """Compose the final music video.

    Steps: resolve and reconcile clips, concatenate (optionally with
    transitions), write and burn the lyric subtitles, then mux the song.
    The concatenated and subtitled intermediates are deleted afterwards;
    the ``.ass`` file is kept next to the output.

    Args:
        segments: Classified segments in any order.
        lyrics: Lyric lines for the subtitles.
        video_dir: Directory holding ``video_<NNN>.mp4`` / ``animated_<NNN>.mp4``.
        audio_path: The original song.
        output_path: Final video path.
        options: Composition options.

    Returns:
        ComposedOutput with the measured duration and the missing indices.

    Raises:
        CompositionError: If no clip could be resolved, or concatenation,
            subtitle burn-in or muxing fails.
    """
    options = options or CompositionOptions()
    output_dir = output_path.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    base_name = output_path.stem

    logger.info("Collecting and reconciling clips...")
    clips, missing = collect_segments(segments, video_dir, output_dir / "adjusted")
    if not clips:
        raise CompositionError("No video segments found", details=f"searched {video_dir}")

    adjusted_count = sum(1 for clip in clips if clip.adjusted)
    logger.info(f"Found {len(clips)} clips, adjusted {adjusted_count}, missing {len(missing)}")

    concat_path = output_dir / f"{base_name}_concat.mp4"
    subtitled_path = output_dir / f"{base_name}_subtitled.mp4"
    subtitle_path = output_dir / f"{base_name}.ass"

    try:
        logger.info("Concatenating clips...")
        if options.transition != TransitionType.NONE:
            concat_with_transitions(clips, concat_path, options)
        else:
            concat_clips([clip.path for clip in clips], concat_path, timeout=options.timeout)

        logger.info("Writing subtitles...")
        write_ass_subtitles(lyrics, subtitle_path, options.subtitle_style, options.width, options.height)

        logger.info("Burning subtitles...")
        burn_subtitles(concat_path, subtitle_path, subtitled_path, timeout=options.timeout)

        logger.info("Adding audio track...")
        muxed = mux_audio(subtitled_path, Path(audio_path), output_path, timeout=options.timeout)
    except CompositionError:
        raise
    except NotFoundError as e:
        raise CompositionError(e.message, details=e.details) from e
    except (OSError, ValueError) as e:
        raise CompositionError(f"Composition failed: {e}") from e
    finally:
        concat_path.unlink(missing_ok=True)
        subtitled_path.unlink(missing_ok=True)

    logger.info(f"Composed {output_path} ({muxed.duration:.2f}s)")

    return ComposedOutput(
        path=output_path,
        duration=muxed.duration,
        subtitle_path=subtitle_path,
        segments=clips,
        missing=missing,
    )
