"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (storyboard generation)"
    )
    google_application_credentials: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_APPLICATION_CREDENTIALS", ""),
        description="Path to Google Cloud service account JSON"
    )
    google_cloud_project: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        description="Google Cloud project ID"
    )
    veo_output_bucket: str = Field(
        default_factory=lambda: os.getenv("VEO_OUTPUT_BUCKET", ""),
        description="GCS bucket for Veo output"
    )

    # Paths
    workspace: Path = Field(
        default_factory=lambda: Path(os.getenv("LYRICMV_WORKSPACE", ".")),
        description="Workspace directory"
    )

    # Model settings
    default_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Default Claude model for storyboards"
    )
    imagen_model: str = Field(
        default_factory=lambda: os.getenv("IMAGEN_MODEL", "imagen-3.0-generate-001"),
        description="Imagen model name"
    )
    veo_model: str = Field(
        default_factory=lambda: os.getenv("VEO_MODEL", "veo-3.0-generate-001"),
        description="Veo model name"
    )
    google_cloud_location: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1"),
        description="Vertex AI region"
    )

    # Segmentation
    min_video_threshold: float = Field(
        default_factory=lambda: _env_float("MIN_VIDEO_THRESHOLD", 4.0),
        description="Minimum segment duration (seconds) for AI video"
    )
    min_animation_threshold: float = Field(
        default_factory=lambda: _env_float("MIN_ANIMATION_THRESHOLD", 2.0),
        description="Minimum segment duration (seconds) for animation"
    )
    merge_threshold: float = Field(
        default=2.0,
        description="Segments shorter than this may be merged with a neighbour"
    )
    max_videos: int = Field(
        default_factory=lambda: _env_int("MAX_VIDEOS", 10),
        description="Default budget: maximum VIDEO-tier segments"
    )
    max_images: int = Field(
        default=50,
        description="Default budget: maximum generated images"
    )

    # Generation
    video_max_clip_duration: float = Field(
        default=10.0,
        description="Longest clip a single video generation call can produce"
    )
    video_min_clip_duration: float = Field(
        default=3.0,
        description="Shortest clip duration requested from video generation"
    )
    long_segment_threshold: float = Field(
        default=15.0,
        description="Segments longer than this are generated as chained clips"
    )
    video_concurrency: int = Field(
        default_factory=lambda: _env_int("VIDEO_CONCURRENCY", 3),
        description="Maximum concurrent video generations"
    )
    aspect_ratio: str = Field(default="16:9", description="Output aspect ratio")

    # Composition
    output_width: int = Field(default=1920, description="Output width in pixels")
    output_height: int = Field(default=1080, description="Output height in pixels")
    output_fps: int = Field(default=30, description="Output frame rate")
    transition_duration: float = Field(default=0.5, description="Transition length in seconds")
    default_transition: str = Field(default="crossfade", description="Default transition type")
    ffmpeg_timeout: float = Field(
        default=600.0,
        description="Deadline in seconds for a single ffmpeg invocation"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def projects_dir(self) -> Path:
        """Directory holding one sub-directory per project."""
        return self.workspace / "projects"

    def validate_required(self) -> None:
        """Validate that required credentials are set."""
        if not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY not set")

    def validate_veo_required(self) -> None:
        """Validate that Veo 3 / Google Cloud credentials are set.

        Raises:
            ValueError: If any required Veo configuration is missing.
        """
        missing: list[str] = []

        if not self.google_cloud_project:
            missing.append("GOOGLE_CLOUD_PROJECT")
        if not self.veo_output_bucket:
            missing.append("VEO_OUTPUT_BUCKET")

        if missing:
            raise ValueError(
                f"Missing required Veo configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

        if self.veo_output_bucket and not self.veo_output_bucket.startswith("gs://"):
            raise ValueError(
                f"VEO_OUTPUT_BUCKET must be a GCS URI starting with 'gs://'. "
                f"Got: {self.veo_output_bucket}"
            )


# Global config instance
config = Config()
