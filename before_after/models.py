"""Data models used across the before/after renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from before_after.config import AnimationConfig


@dataclass(frozen=True)
class OutputDimensions:
    """Pixel size of the output canvas."""

    width: int
    height: int

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.height, self.width, 3)


@dataclass(frozen=True, eq=False)
class ImageAsset:
    """Decoded BGR raster image held through a read-only view of its pixels."""

    pixels: np.ndarray
    source: Optional[Path] = None

    def __post_init__(self) -> None:
        frozen = self.pixels.view()
        frozen.setflags(write=False)
        object.__setattr__(self, "pixels", frozen)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class Layout:
    """Rectangle (in canvas units) at which both images are drawn."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def pixel_bounds(self) -> Tuple[int, int, int, int]:
        """Integer ``(x0, y0, x1, y1)`` bounds used when rasterising."""
        x0 = int(round(self.x))
        y0 = int(round(self.y))
        return (x0, y0, max(x0 + 1, int(round(self.right))), max(y0 + 1, int(round(self.bottom))))


@dataclass(frozen=True)
class FrameState:
    """Per-tick animation state; a pure function of the frame index."""

    frame_index: int
    wipe_fraction: float


@dataclass(frozen=True)
class RenderRequest:
    """Everything a single render needs. Built by the caller, never mutated."""

    before: Optional[ImageAsset]
    after: Optional[ImageAsset]
    animation: "AnimationConfig"
    dimensions: OutputDimensions


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class VideoAsset:
    """Assembled encoder output tagged with its negotiated media type."""

    data: bytes
    media_type: str
    frame_count: int
    fps: int
    chunk_count: int = field(default=0)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.fps if self.fps else 0.0


__all__ = [
    "FrameState",
    "ImageAsset",
    "Layout",
    "OutputDimensions",
    "RenderRequest",
    "SessionState",
    "VideoAsset",
]
