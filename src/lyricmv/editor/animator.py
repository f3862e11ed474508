"""Ken Burns style animation of still images."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
from moviepy import VideoClip
from PIL import Image

from . import media
from ..config import config
from ..models import AnimationResult
from ..services.base import Animator

logger = logging.getLogger(__name__)

ZOOM_START = 1.0
ZOOM_END = 1.2
PAN_ZOOM = 1.1


class AnimationEffect(str, Enum):
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    PAN_LEFT = "pan_left"
    PAN_RIGHT = "pan_right"
    PAN_UP = "pan_up"
    PAN_DOWN = "pan_down"
    ZOOM_IN_PAN_LEFT = "zoom_in_pan_left"
    ZOOM_IN_PAN_RIGHT = "zoom_in_pan_right"
    ZOOM_OUT_PAN_LEFT = "zoom_out_pan_left"
    ZOOM_OUT_PAN_RIGHT = "zoom_out_pan_right"
    STATIC = "static"


# Effects cycled through by segment position
EFFECT_ROTATION = [effect for effect in AnimationEffect if effect is not AnimationEffect.STATIC]


def effect_for_position(position: int) -> AnimationEffect:
    return EFFECT_ROTATION[position % len(EFFECT_ROTATION)]


def camera_window(
    effect: AnimationEffect,
    progress: float,
    width: float,
    height: float,
) -> Tuple[float, float, float, float]:
    """Visible window ``(x, y, w, h)`` of an image at ``progress`` in [0, 1]."""
    p = min(max(progress, 0.0), 1.0)
    name = effect.value

    if name.startswith("zoom_in"):
        zoom = ZOOM_START + (ZOOM_END - ZOOM_START) * p
    elif name.startswith("zoom_out"):
        zoom = ZOOM_END - (ZOOM_END - ZOOM_START) * p
    elif effect is AnimationEffect.STATIC:
        zoom = 1.0
    else:
        zoom = PAN_ZOOM

    w = width / zoom
    h = height / zoom

    # Position of the window within the slack, 0.5 is centred
    fx = fy = 0.5
    if name.endswith("pan_left"):
        fx = 1.0 - p
    elif name.endswith("pan_right"):
        fx = p
    elif name.endswith("pan_up"):
        fy = 1.0 - p
    elif name.endswith("pan_down"):
        fy = p

    return (width - w) * fx, (height - h) * fy, w, h


def fit_to_aspect(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Centre-crop an image array to the ``width:height`` aspect ratio."""
    img_h, img_w = image.shape[:2]
    target = width / height

    if img_w / img_h > target:
        new_w = int(img_h * target)
        x0 = (img_w - new_w) // 2
        return image[:, x0:x0 + new_w]

    new_h = int(img_w / target)
    y0 = (img_h - new_h) // 2
    return image[y0:y0 + new_h, :]


class KenBurnsAnimator(Animator):
    """Animates stills with slow zoom and pan moves."""

    def __init__(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fps: Optional[int] = None,
    ) -> None:
        self.width = width or config.output_width
        self.height = height or config.output_height
        self.fps = fps or config.output_fps

    def _render(self, image_path: Path, output_path: Path, duration: float, effect: AnimationEffect) -> None:
        with Image.open(image_path) as img:
            source = fit_to_aspect(np.asarray(img.convert("RGB")), self.width, self.height)
        src_h, src_w = source.shape[:2]

        def make_frame(t: float) -> np.ndarray:
            x, y, w, h = camera_window(effect, t / duration, src_w, src_h)
            window = source[int(y):int(y + h), int(x):int(x + w)]
            frame = Image.fromarray(window).resize(
                (self.width, self.height), Image.Resampling.LANCZOS
            )
            return np.asarray(frame)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        clip = VideoClip(make_frame, duration=duration)
        clip.write_videofile(
            str(output_path), fps=self.fps, codec=media.VIDEO_CODEC, audio=False, logger=None
        )
        clip.close()

    def animate(
        self,
        image_path: Path,
        output_path: Path,
        duration: float,
        effect: Optional[str] = None,
    ) -> AnimationResult:
        """Render ``image_path`` as a ``duration`` second clip.

        Failures are reported in the result rather than raised.
        """
        chosen = AnimationEffect(effect) if effect else AnimationEffect.ZOOM_IN

        try:
            if duration <= 0:
                raise ValueError(f"Cannot animate a segment lasting {duration}s")
            if not image_path.exists():
                raise FileNotFoundError(f"Image not found: {image_path}")

            self._render(image_path, output_path, duration, chosen)

            logger.info(f"Animated {image_path.name} -> {output_path.name} ({chosen.value})")
            return AnimationResult(success=True, path=str(output_path), effect=chosen.value)

        except Exception as e:
            logger.error(f"Animation failed for {image_path.name}: {e}")
            output_path.unlink(missing_ok=True)
            return AnimationResult(success=False, error=str(e), effect=chosen.value)
