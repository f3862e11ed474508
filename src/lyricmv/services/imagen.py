"""Google Imagen API client wrapper via Vertex AI."""

import base64
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import requests

from .base import ImageGenerator, StyleContext
from .vertex import auth_headers, model_url
from ..config import config
from ..exceptions import GenerationError
from ..models import ClassifiedSegment, ImageResult
from ..utils import image_filename

logger = logging.getLogger(__name__)

NEGATIVE_PROMPT = "text, watermark, subtitles, logo, blurry, distorted face"


class ImagenClient:
    """Client wrapper for Google Imagen image generation via Vertex AI."""

    DEFAULT_MODEL = "imagen-3.0-generate-001"

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the Imagen client.

        Args:
            project_id: Google Cloud project ID.
            location: GCP region for Vertex AI.
            model: Imagen model name.
            timeout: HTTP timeout per request in seconds.
        """
        self._project_id = project_id or config.google_cloud_project
        self._location = location or config.google_cloud_location
        self._model = model or config.imagen_model or self.DEFAULT_MODEL
        self._timeout = timeout

        if not self._project_id:
            raise ValueError("GOOGLE_CLOUD_PROJECT not set")

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def model(self) -> str:
        return self._model

    def generate_image(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str = "16:9",
        negative_prompt: Optional[str] = None,
    ) -> Path:
        """Generate an image from a text prompt and save it.

        Args:
            prompt: Text description of the image to generate.
            output_path: Local path to save the generated image.
            aspect_ratio: Image aspect ratio ('1:1', '16:9', '9:16', '4:3', '3:4').
            negative_prompt: Things to avoid in the image.

        Returns:
            The path of the saved image.

        Raises:
            GenerationError: If the API call fails or returns no image.
        """
        request_body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": aspect_ratio,
            },
        }
        if negative_prompt:
            request_body["parameters"]["negativePrompt"] = negative_prompt

        logger.info(f"Generating image with Imagen: {prompt[:50]}...")

        try:
            response = requests.post(
                model_url(self._project_id, self._location, self._model, "predict"),
                json=request_body,
                headers=auth_headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise GenerationError("Imagen request failed", details=str(e)) from e

        if response.status_code != 200:
            raise GenerationError(
                f"Imagen API error {response.status_code}",
                details=response.text[:500],
            )

        predictions = response.json().get("predictions", [])
        if not predictions:
            raise GenerationError("No predictions in Imagen response")

        image_data = predictions[0].get("bytesBase64Encoded")
        if not image_data:
            raise GenerationError("No image data in Imagen response")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(base64.b64decode(image_data))
        logger.info(f"Saved image to {output_path}")

        return output_path


class ImagenImageGenerator(ImageGenerator):
    """Generates one still per segment with Imagen."""

    def __init__(
        self,
        client: Optional[ImagenClient] = None,
        aspect_ratio: Optional[str] = None,
    ) -> None:
        self._client = client or ImagenClient()
        self._aspect_ratio = aspect_ratio or config.aspect_ratio

    def generate(
        self,
        segments: Sequence[ClassifiedSegment],
        output_dir: Path,
        style: StyleContext,
    ) -> List[ImageResult]:
        results: List[ImageResult] = []

        for segment in segments:
            output_path = output_dir / image_filename(segment.index)
            prompt = style.build_prompt(segment.prompt or segment.text, segment.has_character)

            try:
                self._client.generate_image(
                    prompt,
                    output_path,
                    aspect_ratio=self._aspect_ratio,
                    negative_prompt=NEGATIVE_PROMPT,
                )
                results.append(ImageResult(index=segment.index, success=True, path=str(output_path)))
            except GenerationError as e:
                logger.error(f"Image {segment.index} failed: {e}")
                results.append(ImageResult(index=segment.index, success=False, error=str(e)))

        return results
