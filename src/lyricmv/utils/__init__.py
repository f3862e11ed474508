"""Shared utilities."""

from .file_utils import (
    write_atomically,
    padded_index,
    image_filename,
    video_filename,
    animated_filename,
)

__all__ = [
    "write_atomically",
    "padded_index",
    "image_filename",
    "video_filename",
    "animated_filename",
]
