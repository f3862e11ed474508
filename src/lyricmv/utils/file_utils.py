"""File helpers for atomic writes and project file naming."""

import os
from pathlib import Path
from typing import Union


def write_atomically(path: Path, content: Union[str, bytes]) -> None:
    """Atomically write content to a file.

    The content goes to a temp file in the same directory, is flushed and
    fsynced, then moved over the target with ``os.replace`` so readers only
    ever see the previous or the new version.

    Args:
        path: Target file path.
        content: Content to write (str or bytes).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")

    try:
        if isinstance(content, bytes):
            with open(tmp, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        else:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def padded_index(index: int) -> str:
    """Return the 3-digit zero-padded form used in artifact file names."""
    return f"{index:03d}"


def image_filename(index: int) -> str:
    return f"image_{padded_index(index)}.png"


def video_filename(index: int) -> str:
    return f"video_{padded_index(index)}.mp4"


def animated_filename(index: int) -> str:
    return f"animated_{padded_index(index)}.mp4"
