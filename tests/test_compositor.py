import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from before_after.compositor import FrameCompositor
from before_after.config import AnimationConfig
from before_after.layout import fit_layout
from before_after.models import ImageAsset, OutputDimensions

RED = (0, 0, 255)
BLUE = (255, 0, 0)
WHITE = (255, 255, 255)


def solid_image(color, width=100, height=100) -> ImageAsset:
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:] = color
    return ImageAsset(pixels=pixels)


def build_compositor(dimensions=OutputDimensions(200, 300), **config_kwargs) -> FrameCompositor:
    config = AnimationConfig(**{"margin": 10, **config_kwargs})
    before = solid_image(RED)
    after = solid_image(BLUE)
    layout = fit_layout(
        before.width,
        before.height,
        dimensions,
        margin=config.margin,
        caption_reserve=config.reserved_caption_height,
    )
    return FrameCompositor(before, after, layout, dimensions, config)


def pixel(surface, x, y):
    return tuple(int(channel) for channel in surface[y, x])


def dark_pixels(surface, top):
    region = surface[top:]
    ys, xs = np.nonzero(np.all(region < 128, axis=2))
    return ys + top, xs


def test_images_share_layout_bounds():
    compositor = build_compositor()

    # 180x180 square centred in the 180x280 area below a 10px margin.
    assert compositor.bounds == (10, 60, 190, 240)


def test_line_at_left_edge_reveals_after_image():
    compositor = build_compositor()
    surface = compositor.draw(compositor.new_surface(), compositor.layout.x)

    assert pixel(surface, 150, 150) == BLUE
    assert pixel(surface, 150, 100) == BLUE


def test_line_at_right_edge_shows_before_image():
    compositor = build_compositor()
    surface = compositor.draw(compositor.new_surface(), compositor.layout.right)

    assert pixel(surface, 100, 150) == RED
    assert pixel(surface, 30, 150) == RED


def test_mid_wipe_splits_images_and_draws_white_divider_on_top():
    compositor = build_compositor()
    surface = compositor.draw(compositor.new_surface(), 100.0)

    assert pixel(surface, 40, 150) == RED
    assert pixel(surface, 160, 150) == BLUE
    assert pixel(surface, 100, 150) == WHITE


def test_divider_effects_stay_inside_band_around_line():
    compositor = build_compositor()
    surface = compositor.draw(compositor.new_surface(), 100.0)

    # Columns well away from the line are exactly the plain images on white.
    for x in (15, 185):
        column = surface[:, x]
        expected = np.empty_like(column)
        expected[:] = WHITE
        expected[60:240] = RED if x < 100 else BLUE
        assert np.array_equal(column, expected)


def test_divider_outline_darkens_next_to_core_line():
    compositor = build_compositor()
    surface = compositor.draw(compositor.new_surface(), 100.0)

    # Past the anti-aliased white core the soft black outline tints the image.
    outline_pixel = surface[150, 106].astype(int)
    assert outline_pixel[0] < 255
    assert outline_pixel[0] > 150


def test_draw_clears_previous_frame():
    compositor = build_compositor()
    surface = compositor.new_surface()
    surface[:] = (0, 255, 0)

    compositor.draw(surface, 100.0)

    assert pixel(surface, 5, 5) == WHITE
    assert not np.any(np.all(surface == (0, 255, 0), axis=2))


def test_caption_drawn_centred_near_bottom_above_imagery():
    dimensions = OutputDimensions(400, 600)
    compositor = build_compositor(dimensions, margin=20, caption_enabled=True)

    # Caption reserve pushes the image bottom up to 405 at most.
    assert compositor.bounds[3] <= 600 - 20 - 150 + 1
    surface = compositor.draw(compositor.new_surface(), compositor.layout.x)

    ys, xs = dark_pixels(surface, top=compositor.bounds[3] + 15)
    assert len(xs) > 0
    assert xs.mean() == pytest.approx(200, abs=20)
    assert ys.min() <= 600 - 120 <= ys.max()


def test_no_caption_when_disabled():
    dimensions = OutputDimensions(400, 600)
    compositor = build_compositor(dimensions, margin=20)
    surface = compositor.draw(compositor.new_surface(), compositor.layout.x)

    ys, _ = dark_pixels(surface, top=compositor.bounds[3] + 15)
    assert len(ys) == 0


def test_source_images_are_not_modified():
    before = solid_image(RED)
    after = solid_image(BLUE)
    dimensions = OutputDimensions(200, 300)
    config = AnimationConfig(margin=10)
    layout = fit_layout(100, 100, dimensions, margin=10)
    compositor = FrameCompositor(before, after, layout, dimensions, config)

    compositor.draw(compositor.new_surface(), 100.0)

    assert not before.pixels.flags.writeable
    assert np.all(before.pixels == RED)
    assert np.all(after.pixels == BLUE)
