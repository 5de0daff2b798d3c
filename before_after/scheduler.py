"""Fixed-rate frame scheduling on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Awaitable, Callable, Optional

from before_after.progress import eta_string, progress_interval

FrameProducer = Callable[[int], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]


class FrameScheduler:
    """Call a frame producer once per tick, yielding to the loop between frames.

    Frames are produced strictly in order; the producer for frame ``n + 1``
    never starts before the one for frame ``n`` has finished. After every
    frame the scheduler suspends for ``1 / fps`` seconds, which is the only
    point where other tasks (the encoder pipes) get to run.
    """

    def __init__(
        self,
        fps: int,
        *,
        logger: Optional[logging.Logger] = None,
        sleep: Sleep = asyncio.sleep,
        label: str = "render",
    ) -> None:
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.fps = fps
        self.logger = logger or logging.getLogger(__name__)
        self.label = label
        self._sleep = sleep

    @property
    def interval(self) -> float:
        return 1.0 / self.fps

    async def run(self, total_frames: int, produce: FrameProducer) -> int:
        """Produce ``total_frames`` frames and return how many were produced."""
        if total_frames <= 0:
            return 0

        log_every = progress_interval(total_frames)
        started = perf_counter()

        for frame_index in range(total_frames):
            await produce(frame_index)
            await self._sleep(self.interval)

            completed = frame_index + 1
            if completed % log_every == 0 or completed == total_frames:
                self.logger.info(
                    "Frame progress for %s: %s/%s frames (%0.1f%%, %s)",
                    self.label,
                    completed,
                    total_frames,
                    completed / total_frames * 100.0,
                    eta_string(perf_counter() - started, completed, total_frames),
                )

        return total_frames


__all__ = ["FrameProducer", "FrameScheduler"]
