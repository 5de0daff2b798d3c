"""Frame composition for the before/after wipe animation."""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from before_after.config import AnimationConfig
from before_after.models import ImageAsset, Layout, OutputDimensions

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
CAPTION_COLOR = (51, 51, 51)


class FrameCompositor:
    """Draw one composited wipe frame onto a BGR surface.

    Both images are scaled into the shared layout rectangle once, at
    construction; :meth:`draw` only copies pixels and strokes the divider.
    Drawing order is fixed: background, "before", clipped "after", divider,
    caption. Each step occludes the previous ones.
    """

    OUTLINE_EXTRA_WIDTH = 4
    OUTLINE_OPACITY = 0.2
    LINE_OVERSHOOT = 10
    GLOW_WIDTH = 2
    GLOW_OVERSHOOT = 5
    GLOW_BLUR = 10
    CAPTION_HEIGHT = 100
    CAPTION_BASELINE_OFFSET = 120
    CAPTION_THICKNESS = 6
    CAPTION_FONT = cv2.FONT_HERSHEY_DUPLEX

    def __init__(
        self,
        before: ImageAsset,
        after: ImageAsset,
        layout: Layout,
        dimensions: OutputDimensions,
        config: AnimationConfig,
    ) -> None:
        self.layout = layout
        self.dimensions = dimensions
        self.config = config

        x0, y0, x1, y1 = layout.pixel_bounds()
        self._bounds = (
            max(0, x0),
            max(0, y0),
            min(dimensions.width, x1),
            min(dimensions.height, y1),
        )
        self._before = self._scale_to_bounds(before.pixels)
        self._after = self._scale_to_bounds(after.pixels)
        self._caption = self._prepare_caption() if config.caption_enabled else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def bounds(self) -> Tuple[int, int, int, int]:
        """Pixel bounds ``(x0, y0, x1, y1)`` the images occupy."""
        return self._bounds

    def new_surface(self) -> np.ndarray:
        return np.full(self.dimensions.shape, self.config.background_color, dtype=np.uint8)

    def draw(self, surface: np.ndarray, line_x: float) -> np.ndarray:
        surface[:] = self.config.background_color
        self._draw_before(surface)
        self._draw_after_right_of(surface, line_x)
        self._draw_divider(surface, line_x)
        if self._caption is not None:
            self._draw_caption(surface)
        return surface

    # ------------------------------------------------------------------
    # Drawing steps
    # ------------------------------------------------------------------

    def _draw_before(self, surface: np.ndarray) -> None:
        x0, y0, x1, y1 = self._bounds
        surface[y0:y1, x0:x1] = self._before

    def _draw_after_right_of(self, surface: np.ndarray, line_x: float) -> None:
        x0, y0, x1, y1 = self._bounds
        clip_x = min(x1, max(x0, int(round(line_x))))
        if clip_x >= x1:
            return
        surface[y0:y1, clip_x:x1] = self._after[:, clip_x - x0:]

    def _draw_divider(self, surface: np.ndarray, line_x: float) -> None:
        _, y0, _, y1 = self._bounds
        width = surface.shape[1]
        center = int(round(line_x))
        outline_width = self.config.line_width + self.OUTLINE_EXTRA_WIDTH

        # Work on a vertical band around the line; nothing outside it changes.
        pad = outline_width + self.GLOW_BLUR * 3
        band_x0 = max(0, center - pad)
        band_x1 = min(width, center + pad + 1)
        if band_x0 >= band_x1:
            return
        band = surface[:, band_x0:band_x1].copy()
        local_x = center - band_x0

        line_top = (local_x, y0 - self.LINE_OVERSHOOT)
        line_bottom = (local_x, y1 + self.LINE_OVERSHOOT)

        outline = band.copy()
        cv2.line(outline, line_top, line_bottom, BLACK, outline_width, cv2.LINE_AA)
        band = cv2.addWeighted(outline, self.OUTLINE_OPACITY, band, 1.0 - self.OUTLINE_OPACITY, 0)

        cv2.line(band, line_top, line_bottom, WHITE, self.config.line_width, cv2.LINE_AA)

        glow_top = (local_x, y0 - self.GLOW_OVERSHOOT)
        glow_bottom = (local_x, y1 + self.GLOW_OVERSHOOT)
        glow = np.zeros_like(band)
        cv2.line(glow, glow_top, glow_bottom, WHITE, self.GLOW_WIDTH, cv2.LINE_AA)
        glow = cv2.GaussianBlur(glow, (0, 0), sigmaX=self.GLOW_BLUR / 2)
        band = cv2.add(band, glow)
        cv2.line(band, glow_top, glow_bottom, WHITE, self.GLOW_WIDTH, cv2.LINE_AA)

        surface[:, band_x0:band_x1] = band

    def _draw_caption(self, surface: np.ndarray) -> None:
        text, origin, scale, thickness = self._caption
        cv2.putText(
            surface,
            text,
            origin,
            self.CAPTION_FONT,
            scale,
            CAPTION_COLOR,
            thickness,
            cv2.LINE_AA,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scale_to_bounds(self, pixels: np.ndarray) -> np.ndarray:
        x0, y0, x1, y1 = self._bounds
        target = (x1 - x0, y1 - y0)
        shrinking = target[0] < pixels.shape[1] or target[1] < pixels.shape[0]
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_CUBIC
        return cv2.resize(pixels, target, interpolation=interpolation)

    def _prepare_caption(self) -> Tuple[str, Tuple[int, int], float, int]:
        """Font scale and baseline origin centring the caption near the bottom edge."""
        text = self.config.caption_text
        font = self.CAPTION_FONT
        thickness = self.CAPTION_THICKNESS
        scale = cv2.getFontScaleFromHeight(font, self.CAPTION_HEIGHT, thickness)

        (text_width, text_height), _ = cv2.getTextSize(text, font, scale, thickness)
        max_width = self.dimensions.width - self.config.margin * 2
        if text_width > max_width > 0:
            ratio = max_width / text_width
            scale *= ratio
            thickness = max(1, int(round(thickness * ratio)))
            (text_width, text_height), _ = cv2.getTextSize(text, font, scale, thickness)

        middle_y = self.dimensions.height - self.CAPTION_BASELINE_OFFSET
        origin = (
            (self.dimensions.width - text_width) // 2,
            middle_y + text_height // 2,
        )
        return text, origin, scale, thickness


__all__ = ["FrameCompositor"]
