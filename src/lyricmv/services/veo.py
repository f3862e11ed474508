"""Google Veo API client wrapper via Vertex AI."""

import base64
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import requests
from google.api_core import exceptions as google_exceptions
from google.cloud import storage

from .base import VideoGenerationOptions, VideoGenerator
from .vertex import auth_headers, model_url
from ..config import config
from ..models import ClassifiedSegment, VideoResult

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    """Status of a Veo generation operation."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GenerationResult:
    """Result of a Veo generation operation."""

    operation_id: str
    status: GenerationStatus
    output_uri: Optional[str] = None
    local_path: Optional[Path] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)


class VeoClient:
    """Client wrapper for Google Veo image-to-video generation via Vertex AI.

    This client handles:
    - Submitting long-running generation requests seeded by a reference image
    - Polling for operation completion
    - Downloading generated videos, inline or from GCS
    """

    DEFAULT_POLL_INTERVAL = 10.0  # seconds
    DEFAULT_MAX_POLL_TIME = 600.0  # 10 minutes
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_DELAY = 2.0
    # Longest clip a single Veo call produces
    MAX_DURATION = 8

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        output_bucket: Optional[str] = None,
        model: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_time: float = DEFAULT_MAX_POLL_TIME,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the Veo client.

        Args:
            project_id: Google Cloud project ID. Defaults to GOOGLE_CLOUD_PROJECT env var.
            location: GCP region for Vertex AI. Defaults to GOOGLE_CLOUD_LOCATION.
            output_bucket: GCS bucket for output videos. Defaults to VEO_OUTPUT_BUCKET env var.
            model: Veo model name. Defaults to VEO_MODEL.
            poll_interval: Seconds between polling checks.
            max_poll_time: Maximum seconds to wait for generation.
            max_retries: Maximum retry attempts for downloads.
            retry_delay: Base delay between retries (exponential backoff).
        """
        self._project_id = project_id or config.google_cloud_project
        self._location = location or config.google_cloud_location
        self._output_bucket = output_bucket or config.veo_output_bucket
        self._model = model or config.veo_model
        self._poll_interval = poll_interval
        self._max_poll_time = max_poll_time
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        self._validate_config()
        self._storage_client = storage.Client(project=self._project_id)
        logger.info(
            f"Initialized Veo client for project {self._project_id} "
            f"in {self._location}"
        )

    def _validate_config(self) -> None:
        """Validate that required configuration is set."""
        missing = []
        if not self._project_id:
            missing.append("GOOGLE_CLOUD_PROJECT")
        if not self._output_bucket:
            missing.append("VEO_OUTPUT_BUCKET")

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

        if not self._output_bucket.startswith("gs://"):
            raise ValueError(
                f"VEO_OUTPUT_BUCKET must be a GCS URI starting with 'gs://'. "
                f"Got: {self._output_bucket}"
            )

    @property
    def project_id(self) -> str:
        """Return the Google Cloud project ID."""
        return self._project_id

    @property
    def output_bucket(self) -> str:
        """Return the output GCS bucket."""
        return self._output_bucket

    def generate_clip(
        self,
        prompt: str,
        image_path: Path,
        output_path: Path,
        duration: float = 8.0,
        aspect_ratio: str = "16:9",
        clip_id: Optional[str] = None,
    ) -> GenerationResult:
        """Generate a video clip from a prompt and a reference image.

        Args:
            prompt: Text description of the motion and scene.
            image_path: First frame of the clip.
            output_path: Local path to save the generated video.
            duration: Desired duration in seconds, clamped to what Veo supports.
            aspect_ratio: Video aspect ratio ('16:9' or '9:16').
            clip_id: Optional identifier for tracking.

        Returns:
            GenerationResult with operation details and status.

        Raises:
            ValueError: If prompt is empty or parameters are invalid.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        if aspect_ratio not in ("16:9", "9:16"):
            raise ValueError(f"Invalid aspect_ratio: {aspect_ratio}. Must be '16:9' or '9:16'")

        seconds = int(max(4, min(self.MAX_DURATION, round(duration))))

        operation_id = f"veo-{clip_id or 'clip'}-{int(time.time())}"
        result = GenerationResult(
            operation_id=operation_id,
            status=GenerationStatus.PENDING,
            started_at=datetime.now(),
            metadata={
                "prompt": prompt,
                "duration": seconds,
                "aspect_ratio": aspect_ratio,
                "image": str(image_path),
            },
        )

        try:
            logger.info(f"Starting Veo generation: {operation_id}")
            logger.debug(f"Prompt: {prompt[:100]}...")

            bucket_name = self._output_bucket.replace("gs://", "").rstrip("/")
            storage_uri = f"gs://{bucket_name}/{operation_id}/"

            operation_name = self._submit_generation_request(
                prompt=prompt,
                image_path=image_path,
                duration=seconds,
                aspect_ratio=aspect_ratio,
                storage_uri=storage_uri,
            )
            result.status = GenerationStatus.PROCESSING

            response = self._poll_operation(operation_name)
            self._save_video(response, output_path, result)

            result.status = GenerationStatus.COMPLETED
            result.local_path = output_path
            logger.info(f"Downloaded generated video to {output_path}")

        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"GCS error: {e}")
            result.status = GenerationStatus.FAILED
            result.error_message = str(e)

        except (requests.RequestException, RuntimeError, TimeoutError, OSError, ValueError) as e:
            logger.error(f"Veo generation failed: {e}")
            result.status = GenerationStatus.FAILED
            result.error_message = str(e)

        result.completed_at = datetime.now()
        return result

    def _submit_generation_request(
        self,
        prompt: str,
        image_path: Path,
        duration: int,
        aspect_ratio: str,
        storage_uri: str,
    ) -> str:
        """Submit a long-running image-to-video request.

        Returns:
            The operation name to poll.
        """
        mime_type = "image/png" if image_path.suffix.lower() == ".png" else "image/jpeg"
        image_b64 = base64.b64encode(image_path.read_bytes()).decode("utf-8")

        request_body = {
            "instances": [
                {
                    "prompt": prompt,
                    "image": {
                        "bytesBase64Encoded": image_b64,
                        "mimeType": mime_type,
                    },
                }
            ],
            "parameters": {
                "aspectRatio": aspect_ratio,
                "durationSeconds": duration,
                "sampleCount": 1,
                "storageUri": storage_uri,
            },
        }

        response = requests.post(
            model_url(self._project_id, self._location, self._model, "predictLongRunning"),
            json=request_body,
            headers=auth_headers(),
            timeout=60,
        )
        if response.status_code != 200:
            raise RuntimeError(f"Veo submit error {response.status_code}: {response.text[:500]}")

        operation_name = response.json().get("name")
        if not operation_name:
            raise RuntimeError("Veo returned no operation name")

        return operation_name

    def _poll_operation(self, operation_name: str) -> dict:
        """Poll an operation until it is done.

        Returns:
            The operation's ``response`` payload.

        Raises:
            TimeoutError: If the operation outlives ``max_poll_time``.
            RuntimeError: If the operation finishes with an error.
        """
        fetch_url = model_url(self._project_id, self._location, self._model, "fetchPredictOperation")
        start_time = time.time()
        poll_count = 0

        while time.time() - start_time < self._max_poll_time:
            time.sleep(self._poll_interval)
            poll_count += 1
            logger.debug(f"Polling operation (attempt {poll_count}): {operation_name}")

            try:
                response = requests.post(
                    fetch_url,
                    json={"operationName": operation_name},
                    headers=auth_headers(),
                    timeout=60,
                )
            except requests.RequestException as e:
                logger.warning(f"Error checking operation status: {e}")
                continue

            if response.status_code != 200:
                logger.warning(f"Operation status check returned {response.status_code}")
                continue

            data = response.json()
            if not data.get("done"):
                continue

            if "error" in data:
                raise RuntimeError(f"Veo operation failed: {data['error']}")

            logger.info(f"Operation {operation_name} completed")
            return data.get("response", {})

        raise TimeoutError(f"Operation timed out after {self._max_poll_time}s")

    def _save_video(self, response: dict, output_path: Path, result: GenerationResult) -> None:
        """Write the first generated video, inline bytes or a GCS object."""
        videos = response.get("videos") or [
            sample.get("video", {}) for sample in response.get("generatedSamples", [])
        ]
        if not videos:
            raise RuntimeError("No video in Veo response")

        video = videos[0]
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if video.get("bytesBase64Encoded"):
            output_path.write_bytes(base64.b64decode(video["bytesBase64Encoded"]))
            return

        gcs_uri = video.get("gcsUri") or video.get("uri")
        if not gcs_uri:
            raise RuntimeError("Veo video has neither bytes nor a GCS URI")

        result.output_uri = gcs_uri
        self._download_from_gcs(gcs_uri, output_path)

    def _download_from_gcs(self, gcs_uri: str, local_path: Path) -> None:
        """Download a file from GCS to local path.

        Args:
            gcs_uri: GCS URI (gs://bucket/path/to/file).
            local_path: Local path to save the file.
        """
        if not gcs_uri.startswith("gs://"):
            raise ValueError(f"Invalid GCS URI: {gcs_uri}")

        uri_parts = gcs_uri[5:].split("/", 1)
        if len(uri_parts) != 2:
            raise ValueError(f"Invalid GCS URI format: {gcs_uri}")

        bucket_name, blob_name = uri_parts
        local_path.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(self._max_retries):
            try:
                bucket = self._storage_client.bucket(bucket_name)
                blob = bucket.blob(blob_name)
                blob.download_to_filename(str(local_path))
                logger.debug(f"Downloaded {gcs_uri} to {local_path}")
                return

            except google_exceptions.NotFound:
                logger.error(f"File not found in GCS: {gcs_uri}")
                raise

            except google_exceptions.GoogleAPICallError as e:
                delay = self._retry_delay * (2**attempt)
                logger.warning(f"Download failed (attempt {attempt + 1}): {e}. Retrying in {delay}s...")
                if attempt == self._max_retries - 1:
                    raise
                time.sleep(delay)


class VeoVideoGenerator(VideoGenerator):
    """Generates segment clips with Veo, seeded by the segment image."""

    def __init__(self, client: Optional[VeoClient] = None) -> None:
        self._client = client or VeoClient()

    def generate(
        self,
        segment: ClassifiedSegment,
        image_path: Path,
        output_path: Path,
        options: VideoGenerationOptions,
    ) -> VideoResult:
        prompt = options.prompt or segment.prompt or segment.text
        result = self._client.generate_clip(
            prompt=prompt,
            image_path=image_path,
            output_path=output_path,
            duration=options.duration,
            aspect_ratio=options.aspect_ratio,
            clip_id=f"seg{segment.index}",
        )

        if result.status != GenerationStatus.COMPLETED:
            return VideoResult(index=segment.index, success=False, error=result.error_message)

        return VideoResult(
            index=segment.index,
            success=True,
            path=str(output_path),
            duration=float(result.metadata["duration"]),
        )
