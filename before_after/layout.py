"""Aspect-preserving placement of the source images on the output canvas."""

from __future__ import annotations

from before_after.errors import ConfigurationError
from before_after.models import Layout, OutputDimensions


def fit_layout(
    image_width: int,
    image_height: int,
    dimensions: OutputDimensions,
    *,
    margin: int,
    caption_reserve: int = 0,
) -> Layout:
    """Fit an image into the margin-bounded area of the canvas.

    The available area is the canvas minus ``margin`` on every side and minus
    ``caption_reserve`` at the bottom. Images wider than that area are fitted
    to its width and centred vertically inside it; all others are fitted to
    its height, pinned to the top margin and centred across the full canvas
    width.
    """
    if image_width <= 0 or image_height <= 0:
        raise ConfigurationError(f"Invalid image size {image_width}x{image_height}")

    area_width = dimensions.width - margin * 2
    area_height = dimensions.height - margin * 2 - caption_reserve
    if area_width <= 0 or area_height <= 0:
        raise ConfigurationError(
            f"No drawing area left on a {dimensions.width}x{dimensions.height} canvas "
            f"with margin {margin} and caption reserve {caption_reserve}"
        )

    image_aspect = image_width / image_height
    container_aspect = area_width / area_height

    if image_aspect > container_aspect:
        width = float(area_width)
        height = width / image_aspect
        x = float(margin)
        y = margin + (area_height - height) / 2
    else:
        height = float(area_height)
        width = height * image_aspect
        x = (dimensions.width - width) / 2
        y = float(margin)

    return Layout(x=x, y=y, width=width, height=height)


__all__ = ["fit_layout"]
