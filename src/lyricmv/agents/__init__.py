"""AI agents for storyboard generation."""

from .base import BaseAgent
from .storyboard import StoryboardAgent, StoryboardInput

__all__ = ["BaseAgent", "StoryboardAgent", "StoryboardInput"]
