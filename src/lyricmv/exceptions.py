"""Exception hierarchy for lyric-mv.

Each class maps to one failure kind of the pipeline: validation failures are
rejected before any state changes, generation failures are recorded per
segment, reconciliation failures degrade to the unreconciled clip, and
composition failures end the project in the FAILED state.
"""

from typing import Optional


class LyricMVError(Exception):
    """Base exception for all lyric-mv errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        """Initialize the exception.

        Args:
            message: User-facing error message.
            details: Additional technical details for debugging.
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


class ValidationError(LyricMVError):
    """Raised when a request is malformed or not allowed in the current state."""


class ConfirmationGateError(ValidationError):
    """Raised when a gated stage runs before every artifact is confirmed."""


class NotFoundError(LyricMVError):
    """Raised when a project, segment or file does not exist."""


class GenerationError(LyricMVError):
    """Raised when an external generation collaborator fails."""


class ReconciliationError(LyricMVError):
    """Raised when every duration reconciliation strategy fails."""


class CompositionError(LyricMVError):
    """Raised when concatenation, subtitle burn-in or audio muxing fails."""


class FFmpegError(CompositionError):
    """Raised when an ffmpeg process exits non-zero or times out."""
