"""Looping wipe-line timing."""

from __future__ import annotations

import math

from before_after.config import AnimationConfig
from before_after.models import FrameState, Layout


def wipe_fraction(frame_index: int, total_frames: int, cycle_count: int) -> float:
    """Eased wipe position in ``[0, 1]``.

    A raised cosine: 0 at frame 0, 1 half way through each cycle, and
    periodic with period ``total_frames / cycle_count`` so the clip loops
    without a jump.
    """
    normalized_time = frame_index / total_frames
    fraction = (1 - math.cos(normalized_time * 2 * math.pi * cycle_count)) / 2
    return min(1.0, max(0.0, fraction))


def wipe_x(fraction: float, layout: Layout) -> float:
    return layout.x + fraction * layout.width


def frame_state(frame_index: int, config: AnimationConfig) -> FrameState:
    return FrameState(
        frame_index=frame_index,
        wipe_fraction=wipe_fraction(frame_index, config.total_frames, config.cycle_count),
    )


__all__ = ["frame_state", "wipe_fraction", "wipe_x"]
