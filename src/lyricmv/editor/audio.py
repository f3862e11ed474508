"""Audio track handling for the final music video."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from moviepy import AudioFileClip

from . import media
from .ffmpeg import run_ffmpeg
from ..exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Video shorter than the audio by more than this is padded with its last frame
PAD_THRESHOLD = 0.5
AUDIO_BITRATE = "192k"


@dataclass
class MuxResult:
    """Outcome of muxing the song onto the video."""

    path: Path
    duration: float
    padded_seconds: float = 0.0


def load_audio(audio_path: Path) -> AudioFileClip:
    """Load an audio file.

    Raises:
        NotFoundError: If audio file doesn't exist.
    """
    if not audio_path.exists():
        raise NotFoundError(f"Audio file not found: {audio_path}")

    return AudioFileClip(str(audio_path))


def get_audio_duration(audio_path: Path) -> float:
    """Get the duration of an audio file in seconds."""
    audio = load_audio(Path(audio_path))
    duration = audio.duration
    audio.close()
    return duration


def mux_audio(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    timeout: Optional[float] = None,
) -> MuxResult:
    """Put the song under the video, using the song as the duration authority.

    A video shorter than the audio by more than half a second is extended by
    holding its last frame; otherwise it is cut at the audio's length.

    Args:
        video_path: Subtitled video without usable audio.
        audio_path: The original song.
        output_path: Final output path.
        timeout: ffmpeg deadline in seconds.

    Returns:
        MuxResult with the measured output duration.

    Raises:
        NotFoundError: If either input is missing.
        FFmpegError: If ffmpeg fails.
    """
    if not video_path.exists():
        raise NotFoundError(f"Video not found: {video_path}")

    video_duration = media.probe_duration(video_path)
    audio_duration = get_audio_duration(audio_path)
    logger.info(f"Video {video_duration:.2f}s, audio {audio_duration:.2f}s")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    padded = 0.0

    if video_duration < audio_duration - PAD_THRESHOLD:
        padded = audio_duration - video_duration
        logger.warning(f"Video is {padded:.2f}s shorter than the audio, holding the last frame")
        args = [
            "-i", str(video_path),
            "-i", str(audio_path),
            "-filter_complex", f"[0:v]tpad=stop_mode=clone:stop_duration={padded:.2f}[v]",
            "-map", "[v]",
            "-map", "1:a:0",
            "-c:v", "libx264",
            "-preset", "fast",
            "-crf", "23",
            "-c:a", "aac",
            "-b:a", AUDIO_BITRATE,
            "-t", f"{audio_duration:.3f}",
            str(output_path),
        ]
    else:
        args = [
            "-i", str(video_path),
            "-i", str(audio_path),
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", AUDIO_BITRATE,
            "-t", f"{audio_duration:.3f}",
            "-map", "0:v:0",
            "-map", "1:a:0",
            str(output_path),
        ]

    run_ffmpeg(args, timeout=timeout)

    return MuxResult(
        path=output_path,
        duration=media.probe_duration(output_path),
        padded_seconds=padded,
    )
