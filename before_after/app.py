"""Render facade for the before/after wipe video generator."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from before_after.config import Config, resolve_dimensions, with_overrides
from before_after.images import load_image
from before_after.models import ImageAsset, RenderRequest, VideoAsset
from before_after.recording import FfmpegSink, RecordingSession
from before_after.rendering import AnimationDriver, require_assets
from before_after.scheduler import Sleep


class BeforeAfterGenerator:
    """Turn two still images into a looping wipe video.

    The generator holds configuration only. Every call to :meth:`render`
    builds its own recording session and encoder, so a failed render leaves
    nothing behind for the next one.
    """

    DOWNLOAD_PREFIX = "before-after"
    # Always .mp4, whatever container was negotiated; players sniff the content.
    DOWNLOAD_EXTENSION = ".mp4"

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        logger: Optional[logging.Logger] = None,
        sink_factory: Optional[Callable[[], object]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or Config()
        self.logger = logger or logging.getLogger("before_after")
        self.sink_factory = sink_factory or (
            lambda: FfmpegSink(self.config.encoder, logger=self.logger)
        )
        self.driver = AnimationDriver(logger=self.logger, sleep=sleep)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def build_request(
        self,
        before: Optional[ImageAsset],
        after: Optional[ImageAsset],
        *,
        aspect: Optional[str] = None,
        caption_enabled: Optional[bool] = None,
    ) -> RenderRequest:
        config = with_overrides(self.config, caption_enabled=caption_enabled)
        return RenderRequest(
            before=before,
            after=after,
            animation=config.animation,
            dimensions=resolve_dimensions(aspect or config.aspect),
        )

    def request_from_files(
        self,
        before_path: Path | str,
        after_path: Path | str,
        **kwargs,
    ) -> RenderRequest:
        before = load_image(before_path)
        after = load_image(after_path)
        self.logger.info(
            "Loaded before image %s (%sx%s) and after image %s (%sx%s)",
            before_path,
            before.width,
            before.height,
            after_path,
            after.width,
            after.height,
        )
        return self.build_request(before, after, **kwargs)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def new_session(self) -> RecordingSession:
        return RecordingSession(self.sink_factory(), logger=self.logger)

    async def render(self, request: RenderRequest) -> VideoAsset:
        """Render ``request`` and return the encoded video.

        Raises :class:`AssetMissingError` before any work when an image is
        missing. Cancelling the awaiting task aborts the encoder and discards
        the partial recording.
        """
        require_assets(request)

        session = self.new_session()
        await session.start(
            request.dimensions,
            request.animation.fps,
            self.config.encoder.codec_candidates,
        )

        try:
            await self.driver.run(request, session.capture)
        except BaseException:
            self.logger.warning("Render interrupted; discarding partial recording")
            await session.abort()
            raise

        return await session.finalize()

    def render_blocking(self, request: RenderRequest) -> VideoAsset:
        return asyncio.run(self.render(request))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def download_filename(self, timestamp_ms: Optional[int] = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{self.DOWNLOAD_PREFIX}-{timestamp_ms}{self.DOWNLOAD_EXTENSION}"

    def save_video(
        self,
        asset: Optional[VideoAsset],
        output_dir: Optional[Path] = None,
        *,
        timestamp_ms: Optional[int] = None,
    ) -> Optional[Path]:
        """Write ``asset`` to ``output_dir``; a missing or empty asset is a no-op."""
        if asset is None or asset.size == 0:
            self.logger.warning("No recorded video to save yet")
            return None

        target_dir = Path(output_dir or self.config.output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        output_path = target_dir / self.download_filename(timestamp_ms)

        temp_path = output_path.with_name(f".tmp_{output_path.name}")
        temp_path.write_bytes(asset.data)
        temp_path.replace(output_path)

        self.logger.info(
            "Saved %0.1fs video (%s, %s bytes) to %s",
            asset.duration_seconds,
            asset.media_type,
            asset.size,
            output_path,
        )
        return output_path


__all__ = ["BeforeAfterGenerator"]
