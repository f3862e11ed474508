"""Clip-level media primitives built on moviepy.

Each function reads from and writes to files so the callers can chain them
and tests can replace them one by one.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from moviepy import ImageClip, VideoFileClip, concatenate_videoclips, vfx
from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos

from ..exceptions import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_FPS = 24.0
VIDEO_CODEC = "libx264"


def _require(path: Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"Media file not found: {path}")
    return path


def _write(clip, output_path: Path, fps: float) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    clip.write_videofile(
        str(output_path),
        fps=fps,
        codec=VIDEO_CODEC,
        audio=False,
        logger=None,
    )
    return output_path


def probe_duration(path: Path) -> float:
    """Measure the duration of a media file in seconds.

    Raises:
        NotFoundError: If the file does not exist.
    """
    infos = ffmpeg_parse_infos(str(_require(path)))
    return float(infos.get("duration") or 0.0)


def probe_fps(path: Path, default: float = DEFAULT_FPS) -> float:
    """Detect the native frame rate of a video, or ``default`` if unknown."""
    infos = ffmpeg_parse_infos(str(_require(path)))
    fps = infos.get("video_fps")
    return float(fps) if fps else default


def copy_clip(input_path: Path, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(_require(input_path), output_path)
    return output_path


def trim_clip(input_path: Path, output_path: Path, duration: float) -> Path:
    """Re-encode the first ``duration`` seconds of a clip."""
    with VideoFileClip(str(_require(input_path))) as clip:
        fps = clip.fps or DEFAULT_FPS
        return _write(clip.subclipped(0, duration), output_path, fps)


def stretch_clip(input_path: Path, output_path: Path, duration: float) -> Path:
    """Slow a clip down so that it plays over exactly ``duration`` seconds."""
    with VideoFileClip(str(_require(input_path))) as clip:
        fps = clip.fps or DEFAULT_FPS
        stretched = clip.with_effects([vfx.MultiplySpeed(final_duration=duration)])
        return _write(stretched, output_path, fps)


def extract_last_frame(input_path: Path, output_path: Path) -> Path:
    """Save the final frame of a video as an image."""
    with VideoFileClip(str(_require(input_path))) as clip:
        fps = clip.fps or DEFAULT_FPS
        # The frame at exactly t=duration is past the end of the stream
        t = max(0.0, clip.duration - 1.0 / fps)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        clip.save_frame(str(output_path), t=t)
    return output_path


def still_clip(image_path: Path, output_path: Path, duration: float, fps: float) -> Path:
    """Render a still image as a video of ``duration`` seconds at ``fps``."""
    with ImageClip(str(_require(image_path))) as clip:
        return _write(clip.with_duration(duration).with_fps(fps), output_path, fps)


def concat_clips(input_paths: List[Path], output_path: Path) -> Path:
    """Concatenate clips end to end, re-encoding to a common format.

    Raises:
        ValueError: If no clips are given.
    """
    if not input_paths:
        raise ValueError("No clips provided")

    clips = [VideoFileClip(str(_require(path))) for path in input_paths]
    try:
        fps = clips[0].fps or DEFAULT_FPS
        return _write(concatenate_videoclips(clips, method="compose"), output_path, fps)
    finally:
        for clip in clips:
            clip.close()
