"""Animation driver: lays out the images once and renders every frame in order."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, Tuple

import numpy as np

from before_after.compositor import FrameCompositor
from before_after.errors import AssetMissingError
from before_after.layout import fit_layout
from before_after.models import FrameState, Layout, RenderRequest
from before_after.scheduler import FrameScheduler, Sleep
from before_after.timing import frame_state, wipe_x

FrameConsumer = Callable[[np.ndarray], Awaitable[None]]


def require_assets(request: RenderRequest) -> None:
    """Reject a request that does not carry both images."""
    missing = [
        name
        for name, asset in (("before", request.before), ("after", request.after))
        if asset is None
    ]
    if missing:
        raise AssetMissingError(f"Missing image(s): {', '.join(missing)}")


def plan_layout(request: RenderRequest) -> Layout:
    """Layout shared by both images, derived from the "before" image."""
    require_assets(request)
    config = request.animation
    return fit_layout(
        request.before.width,
        request.before.height,
        request.dimensions,
        margin=config.margin,
        caption_reserve=config.reserved_caption_height,
    )


class AnimationDriver:
    """Render the wipe animation frame by frame."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.logger = logger
        self._sleep = sleep

    def prepare(self, request: RenderRequest) -> Tuple[Layout, FrameCompositor]:
        layout = plan_layout(request)
        compositor = FrameCompositor(
            request.before,
            request.after,
            layout,
            request.dimensions,
            request.animation,
        )
        self.logger.debug(
            "Layout for %sx%s canvas: x=%.1f y=%.1f w=%.1f h=%.1f",
            request.dimensions.width,
            request.dimensions.height,
            layout.x,
            layout.y,
            layout.width,
            layout.height,
        )
        return layout, compositor

    def iter_frames(self, request: RenderRequest) -> Iterator[Tuple[FrameState, np.ndarray]]:
        """Yield every frame without pacing. Each surface is a fresh array."""
        layout, compositor = self.prepare(request)
        config = request.animation
        for frame_index in range(config.total_frames):
            state = frame_state(frame_index, config)
            surface = compositor.new_surface()
            compositor.draw(surface, wipe_x(state.wipe_fraction, layout))
            yield state, surface

    async def run(self, request: RenderRequest, consumer: FrameConsumer) -> int:
        """Render all frames at the configured rate, handing each to ``consumer``.

        The same surface is redrawn for every frame, so the consumer must be
        done with it when its awaitable completes.
        """
        layout, compositor = self.prepare(request)
        config = request.animation
        surface = compositor.new_surface()

        self.logger.info(
            "Rendering %s frames at %s fps (%0.1fs, %s cycles) on %sx%s canvas",
            config.total_frames,
            config.fps,
            config.duration_seconds,
            config.cycle_count,
            request.dimensions.width,
            request.dimensions.height,
        )

        async def produce(frame_index: int) -> None:
            state = frame_state(frame_index, config)
            compositor.draw(surface, wipe_x(state.wipe_fraction, layout))
            await consumer(surface)

        scheduler = FrameScheduler(
            config.fps,
            logger=self.logger,
            sleep=self._sleep,
            label=f"{request.dimensions.width}x{request.dimensions.height}",
        )
        return await scheduler.run(config.total_frames, produce)


__all__ = ["AnimationDriver", "FrameConsumer", "plan_layout", "require_assets"]
