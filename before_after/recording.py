"""Recording session and ffmpeg encoding sink.

The session bridges rendered surfaces to an encoding sink. A sink is any
object with this interface:

``supports(media_type) -> bool``
    Whether the sink can produce the given ``video/<container>;codecs=<codec>``
    type.
``async start(media_type, dimensions, fps, on_chunk)``
    Begin encoding; ``on_chunk(bytes)`` is called for every encoded buffer,
    in encode order.
``async write(surface)``
    Encode one frame.
``async stop()``
    Flush, wait for the encoder to exit and raise on failure.
``async abort()``
    Tear the encoder down without flushing.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from contextlib import suppress
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from before_after.config import DEFAULT_CODEC_CANDIDATES, FALLBACK_MEDIA_TYPE, EncoderSettings
from before_after.errors import BeforeAfterError, DependencyMissingError, EncodingFailureError
from before_after.models import OutputDimensions, SessionState, VideoAsset

ChunkCallback = Callable[[bytes], None]

CONTAINER_MUXERS: Dict[str, str] = {
    "mp4": "mp4",
    "webm": "webm",
}

ENCODERS: Dict[Tuple[str, Optional[str]], str] = {
    ("mp4", None): "libx264",
    ("mp4", "h264"): "libx264",
    ("mp4", "avc1"): "libx264",
    ("mp4", "mp4v"): "mpeg4",
    ("webm", None): "libvpx-vp9",
    ("webm", "vp9"): "libvpx-vp9",
    ("webm", "vp8"): "libvpx",
}

ENCODER_ARGS: Dict[str, List[str]] = {
    "libx264": ["-preset", "medium", "-profile:v", "high"],
    "libvpx-vp9": ["-deadline", "realtime", "-cpu-used", "8", "-row-mt", "1"],
    "libvpx": ["-deadline", "realtime", "-cpu-used", "8"],
}

MUXER_ARGS: Dict[str, List[str]] = {
    # A plain MP4 needs a seekable output for its index; fragment it so it streams.
    "mp4": ["-movflags", "frag_keyframe+empty_moov+default_base_moof"],
    "webm": [],
}


@dataclass(frozen=True)
class CodecChoice:
    """A media type resolved to an ffmpeg muxer and encoder."""

    media_type: str
    container: str
    codec: Optional[str]
    muxer: Optional[str]
    encoder: Optional[str]

    @property
    def usable(self) -> bool:
        return self.muxer is not None and self.encoder is not None

    @classmethod
    def parse(cls, media_type: str) -> "CodecChoice":
        """Parse ``video/<container>[;codecs=<codec>]``."""
        main, _, params = media_type.partition(";")
        _, _, container = main.strip().lower().partition("/")
        codec: Optional[str] = None
        for param in params.split(";"):
            key, _, value = param.partition("=")
            if key.strip().lower() == "codecs" and value.strip():
                codec = value.strip().strip('"').lower().split(".")[0]
        return cls(
            media_type=media_type,
            container=container,
            codec=codec,
            muxer=CONTAINER_MUXERS.get(container),
            encoder=ENCODERS.get((container, codec)),
        )


def _parse_capability_listing(output: str) -> FrozenSet[str]:
    """Names from ``ffmpeg -encoders``/``-muxers`` output (entries after the ``--`` rule)."""
    names: set[str] = set()
    in_table = False
    for line in output.splitlines():
        stripped = line.strip()
        if not in_table:
            in_table = stripped.startswith("--")
            continue
        parts = stripped.split()
        if len(parts) >= 2:
            names.update(parts[1].split(","))
    return frozenset(names)


class FfmpegSink:
    """Encode raw BGR frames with an ffmpeg subprocess, streaming its output."""

    def __init__(self, settings: EncoderSettings, *, logger: logging.Logger) -> None:
        self.settings = settings
        self.logger = logger
        self._capabilities: Optional[Tuple[FrozenSet[str], FrozenSet[str]]] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stdout_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._frame_shape: Optional[Tuple[int, int, int]] = None
        self._command: List[str] = []

    # ------------------------------------------------------------------
    # Capability probing
    # ------------------------------------------------------------------

    def ensure_available(self) -> str:
        binary = shutil.which(self.settings.ffmpeg_path)
        if binary is None:
            raise DependencyMissingError(
                f"ffmpeg not found ('{self.settings.ffmpeg_path}'). "
                "Install ffmpeg with libx264 or libvpx-vp9 support."
            )
        return binary

    def _probe(self, flag: str) -> FrozenSet[str]:
        proc = subprocess.run(
            [self.ensure_available(), "-hide_banner", flag],
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            self.logger.warning("ffmpeg %s probe failed: %s", flag, proc.stderr.strip())
            return frozenset()
        return _parse_capability_listing(proc.stdout)

    def capabilities(self) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        """``(encoders, muxers)`` reported by the local ffmpeg, probed once."""
        if self._capabilities is None:
            self._capabilities = (self._probe("-encoders"), self._probe("-muxers"))
        return self._capabilities

    def supports(self, media_type: str) -> bool:
        choice = CodecChoice.parse(media_type)
        if not choice.usable:
            return False
        encoders, muxers = self.capabilities()
        return choice.encoder in encoders and choice.muxer in muxers

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def build_command(self, choice: CodecChoice, dimensions: OutputDimensions, fps: int) -> List[str]:
        if not choice.usable:
            raise EncodingFailureError(f"No ffmpeg encoder for media type '{choice.media_type}'")
        return [
            self.settings.ffmpeg_path,
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "rawvideo",
            "-pix_fmt",
            "bgr24",
            "-s",
            f"{dimensions.width}x{dimensions.height}",
            "-r",
            str(fps),
            "-i",
            "-",
            "-an",
            "-c:v",
            choice.encoder,
            *ENCODER_ARGS.get(choice.encoder, []),
            "-b:v",
            str(self.settings.video_bitrate),
            "-g",
            str(fps),
            "-pix_fmt",
            "yuv420p",
            *MUXER_ARGS.get(choice.muxer, []),
            "-f",
            choice.muxer,
            "pipe:1",
        ]

    async def start(
        self,
        media_type: str,
        dimensions: OutputDimensions,
        fps: int,
        on_chunk: ChunkCallback,
    ) -> None:
        self.ensure_available()
        self._command = self.build_command(CodecChoice.parse(media_type), dimensions, fps)
        self._frame_shape = dimensions.shape
        self.logger.debug("ffmpeg cmd: %s", " ".join(self._command))

        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._stdout_task = asyncio.create_task(self._pump_stdout(on_chunk))
        self._stderr_task = asyncio.create_task(self._process.stderr.read())

    async def _pump_stdout(self, on_chunk: ChunkCallback) -> None:
        assert self._process is not None and self._process.stdout is not None
        while True:
            data = await self._process.stdout.read(self.settings.read_chunk_size)
            if not data:
                break
            on_chunk(data)

    async def _stderr_text(self) -> str:
        if self._stderr_task is None:
            return ""
        if not self._stderr_task.done():
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(asyncio.shield(self._stderr_task), timeout=1.0)
        if not self._stderr_task.done() or self._stderr_task.cancelled():
            return ""
        return self._stderr_task.result().decode("utf-8", errors="replace").strip()

    async def write(self, surface: np.ndarray) -> None:
        if self._process is None or self._process.stdin is None:
            raise EncodingFailureError("Encoder has not been started")
        if surface.shape != self._frame_shape or surface.dtype != np.uint8:
            raise EncodingFailureError(
                f"Frame shape {surface.shape} does not match encoder input {self._frame_shape}"
            )

        try:
            self._process.stdin.write(surface.tobytes())
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            await self._process.wait()
            raise EncodingFailureError(
                f"ffmpeg stopped accepting frames (exit status {self._process.returncode}): "
                f"{await self._stderr_text()}"
            ) from exc

    async def stop(self) -> None:
        if self._process is None or self._process.stdin is None:
            raise EncodingFailureError("Encoder has not been started")

        self._process.stdin.close()
        with suppress(BrokenPipeError, ConnectionResetError):
            await self._process.stdin.wait_closed()

        assert self._stdout_task is not None
        await self._stdout_task
        return_code = await self._process.wait()
        stderr_text = await self._stderr_text()

        if return_code != 0:
            raise EncodingFailureError(
                f"ffmpeg exited with status {return_code}: {stderr_text or 'no error output'}"
            )
        if stderr_text:
            self.logger.warning("ffmpeg reported: %s", stderr_text)

    async def abort(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            process.kill()
            await process.wait()
        for task in (self._stdout_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task


class RecordingSession:
    """One capture-and-encode run: ``IDLE -> RECORDING -> FINALIZING -> READY``.

    Any failure moves the session to ``FAILED`` and drops the chunks
    collected so far. A session is used for exactly one render.
    """

    def __init__(self, sink, *, logger: logging.Logger) -> None:
        self.sink = sink
        self.logger = logger
        self.state = SessionState.IDLE
        self.media_type: Optional[str] = None
        self.frames_captured = 0
        self._fps = 0
        self._chunks: List[bytes] = []

    @property
    def chunks(self) -> Tuple[bytes, ...]:
        return tuple(self._chunks)

    def negotiate(self, candidates: Sequence[str] = DEFAULT_CODEC_CANDIDATES) -> str:
        """Return the first candidate the sink supports, or the fallback type."""
        for candidate in candidates:
            if self.sink.supports(candidate):
                self.logger.info("Selected recording format %s", candidate)
                return candidate
        self.logger.warning(
            "None of %s supported by the encoder; falling back to %s",
            ", ".join(candidates) or "<no candidates>",
            FALLBACK_MEDIA_TYPE,
        )
        return FALLBACK_MEDIA_TYPE

    async def start(
        self,
        dimensions: OutputDimensions,
        fps: int,
        candidates: Sequence[str] = DEFAULT_CODEC_CANDIDATES,
    ) -> str:
        self._require(SessionState.IDLE, "start")
        try:
            self.media_type = self.negotiate(candidates)
            await self.sink.start(self.media_type, dimensions, fps, self.on_chunk)
        except (BeforeAfterError, OSError) as exc:
            self._fail()
            if isinstance(exc, BeforeAfterError):
                raise
            raise EncodingFailureError(f"Failed to start encoder: {exc}") from exc

        self._fps = fps
        self.state = SessionState.RECORDING
        return self.media_type

    def on_chunk(self, buffer: bytes) -> None:
        """Append an encoded buffer. Arrival order is the playback order."""
        if not buffer:
            return
        if self.state not in (SessionState.RECORDING, SessionState.FINALIZING):
            self.logger.debug("Dropping %s byte chunk received while %s", len(buffer), self.state.value)
            return
        self._chunks.append(bytes(buffer))

    async def capture(self, surface: np.ndarray) -> None:
        self._require(SessionState.RECORDING, "capture")
        try:
            await self.sink.write(surface)
        except (EncodingFailureError, OSError) as exc:
            await self._abort_sink()
            if isinstance(exc, EncodingFailureError):
                raise
            raise EncodingFailureError(f"Failed to capture frame: {exc}") from exc
        self.frames_captured += 1

    async def finalize(self) -> VideoAsset:
        """Flush the sink and assemble the chunks into one asset."""
        self._require(SessionState.RECORDING, "finalize")
        self.state = SessionState.FINALIZING
        try:
            await self.sink.stop()
        except (EncodingFailureError, OSError) as exc:
            await self._abort_sink()
            if isinstance(exc, EncodingFailureError):
                raise
            raise EncodingFailureError(f"Failed to finalize recording: {exc}") from exc

        asset = VideoAsset(
            data=b"".join(self._chunks),
            media_type=self.media_type or FALLBACK_MEDIA_TYPE,
            frame_count=self.frames_captured,
            fps=self._fps,
            chunk_count=len(self._chunks),
        )
        self.state = SessionState.READY
        self.logger.info(
            "Recording ready: %s frames, %s chunks, %s bytes (%s)",
            asset.frame_count,
            asset.chunk_count,
            asset.size,
            asset.media_type,
        )
        return asset

    async def abort(self) -> None:
        """Stop the sink without finalizing and discard collected chunks."""
        if self.state in (SessionState.READY, SessionState.FAILED):
            return
        await self._abort_sink()

    async def _abort_sink(self) -> None:
        try:
            await self.sink.abort()
        finally:
            self._fail()

    def _fail(self) -> None:
        self._chunks.clear()
        self.state = SessionState.FAILED

    def _require(self, expected: SessionState, action: str) -> None:
        if self.state is not expected:
            raise BeforeAfterError(
                f"Cannot {action} a recording session in state '{self.state.value}'"
            )


__all__ = ["CodecChoice", "FfmpegSink", "RecordingSession"]
