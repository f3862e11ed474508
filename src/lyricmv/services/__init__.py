"""External service integrations."""

from .anthropic import AnthropicClient, extract_json
from .base import (
    Animator,
    ImageGenerator,
    LyricsRecognizer,
    Storyboarder,
    StyleContext,
    VideoGenerationOptions,
    VideoGenerator,
)
from .imagen import ImagenClient, ImagenImageGenerator
from .veo import VeoClient, VeoVideoGenerator, GenerationStatus, GenerationResult

__all__ = [
    "AnthropicClient",
    "extract_json",
    "Animator",
    "ImageGenerator",
    "LyricsRecognizer",
    "Storyboarder",
    "StyleContext",
    "VideoGenerationOptions",
    "VideoGenerator",
    "ImagenClient",
    "ImagenImageGenerator",
    "VeoClient",
    "VeoVideoGenerator",
    "GenerationStatus",
    "GenerationResult",
]
