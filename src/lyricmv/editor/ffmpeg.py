"""Thin wrapper around the ffmpeg binary for stream-level operations."""

import functools
import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

import imageio_ffmpeg

from ..config import config
from ..exceptions import FFmpegError

logger = logging.getLogger(__name__)

# Lines of stderr kept in error details
STDERR_TAIL_LINES = 15


@functools.lru_cache(maxsize=1)
def get_ffmpeg_binary() -> str:
    """Return the ffmpeg executable: the system one if on PATH, else the bundled one."""
    system_ffmpeg = shutil.which("ffmpeg")
    if system_ffmpeg:
        return system_ffmpeg
    return imageio_ffmpeg.get_ffmpeg_exe()


def run_ffmpeg(args: Sequence[str], timeout: Optional[float] = None) -> None:
    """Run ffmpeg with the given arguments.

    Args:
        args: Arguments after the executable (``-y`` is prepended).
        timeout: Deadline in seconds. Defaults to ``config.ffmpeg_timeout``.

    Raises:
        FFmpegError: If ffmpeg exits non-zero or exceeds the deadline.
    """
    cmd: List[str] = [get_ffmpeg_binary(), "-y", "-hide_banner", "-loglevel", "error", *args]
    deadline = timeout if timeout is not None else config.ffmpeg_timeout
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=deadline)
    except subprocess.TimeoutExpired as e:
        raise FFmpegError(f"ffmpeg timed out after {deadline:.0f}s", details=" ".join(cmd)) from e
    except OSError as e:
        raise FFmpegError("Could not start ffmpeg", details=str(e)) from e

    if result.returncode != 0:
        tail = "\n".join(result.stderr.strip().splitlines()[-STDERR_TAIL_LINES:])
        raise FFmpegError(f"ffmpeg exited with code {result.returncode}", details=tail)


def quote_concat_path(path: Path) -> str:
    """Format one line of a concat-demuxer list file."""
    escaped = str(Path(path).resolve()).replace("\\", "/").replace("'", "'\\''")
    return f"file '{escaped}'"


def quote_filter_path(path: Path) -> str:
    """Quote a path for use inside a filtergraph option value."""
    escaped = str(Path(path).resolve()).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")
    return f"'{escaped}'"
