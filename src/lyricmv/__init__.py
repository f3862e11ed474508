"""lyric-mv: turn a song and its timed lyrics into a subtitled music video."""

__version__ = "0.1.0"
