"""Image loading helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from before_after.errors import ConfigurationError
from before_after.models import ImageAsset


def to_bgr(pixels: np.ndarray, background_color: Tuple[int, int, int] = (255, 255, 255)) -> Optional[np.ndarray]:
    """Normalise a decoded image to 8-bit BGR, flattening alpha onto ``background_color``."""
    if pixels is None:
        return None
    if pixels.dtype == np.uint16:
        pixels = (pixels // 257).astype(np.uint8)
    elif pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)

    if pixels.ndim == 2 or pixels.shape[2] == 1:
        return cv2.cvtColor(pixels, cv2.COLOR_GRAY2BGR)
    if pixels.shape[2] == 3:
        return pixels
    if pixels.shape[2] != 4:
        return None

    color = pixels[:, :, :3].astype(np.float32)
    alpha = pixels[:, :, 3].astype(np.float32)[..., None] / 255.0
    background = np.array(background_color, dtype=np.float32)
    flattened = color * alpha + background * (1.0 - alpha)
    return np.clip(flattened, 0, 255).astype(np.uint8)


def load_image(path: Path | str) -> ImageAsset:
    """Decode an image file into an :class:`ImageAsset`."""
    image_path = Path(path)
    if not image_path.is_file():
        raise ConfigurationError(f"Image not found: {image_path}")

    decoded = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    pixels = to_bgr(decoded)
    if pixels is None:
        raise ConfigurationError(f"Unable to decode image: {image_path}")

    return ImageAsset(pixels=np.ascontiguousarray(pixels), source=image_path)


__all__ = ["load_image", "to_bgr"]
