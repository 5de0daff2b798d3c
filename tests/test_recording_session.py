import asyncio
import logging
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from before_after.config import DEFAULT_CODEC_CANDIDATES, FALLBACK_MEDIA_TYPE
from before_after.errors import BeforeAfterError, EncodingFailureError
from before_after.models import OutputDimensions, SessionState
from before_after.recording import RecordingSession

LOGGER = logging.getLogger("before-after-tests")
DIMENSIONS = OutputDimensions(8, 6)


class FakeSink:
    def __init__(self, supported=(), *, fail_on_frame=None, fail_on_stop=False, fail_on_start=None):
        self.supported = set(supported)
        self.fail_on_frame = fail_on_frame
        self.fail_on_stop = fail_on_stop
        self.fail_on_start = fail_on_start
        self.probed = []
        self.started_with = None
        self.frames = 0
        self.aborted = False
        self.stopped = False
        self.on_chunk = None

    def supports(self, media_type):
        self.probed.append(media_type)
        return media_type in self.supported

    async def start(self, media_type, dimensions, fps, on_chunk):
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.started_with = (media_type, dimensions, fps)
        self.on_chunk = on_chunk

    async def write(self, surface):
        if self.fail_on_frame is not None and self.frames == self.fail_on_frame:
            raise EncodingFailureError("encoder crashed")
        self.frames += 1
        self.on_chunk(f"<frame{self.frames}>".encode())

    async def stop(self):
        if self.fail_on_stop:
            raise EncodingFailureError("flush failed")
        self.stopped = True
        self.on_chunk(b"<trailer>")

    async def abort(self):
        self.aborted = True


def surface():
    return np.zeros(DIMENSIONS.shape, dtype=np.uint8)


async def record(session, frames):
    await session.start(DIMENSIONS, 30)
    for _ in range(frames):
        await session.capture(surface())
    return await session.finalize()


def test_negotiation_picks_first_supported_candidate_in_order():
    sink = FakeSink(supported={"video/mp4", "video/webm"})
    session = RecordingSession(sink, logger=LOGGER)

    assert session.negotiate(DEFAULT_CODEC_CANDIDATES) == "video/mp4"
    assert sink.probed == list(DEFAULT_CODEC_CANDIDATES[:3])


def test_fully_unsupported_candidates_fall_back_without_error():
    sink = FakeSink(supported=())
    session = RecordingSession(sink, logger=LOGGER)

    media_type = asyncio.run(session.start(DIMENSIONS, 30))

    assert media_type == FALLBACK_MEDIA_TYPE
    assert sink.started_with == (FALLBACK_MEDIA_TYPE, DIMENSIONS, 30)
    assert session.state is SessionState.RECORDING


def test_chunks_assembled_in_arrival_order_and_tagged_with_media_type():
    sink = FakeSink(supported={"video/mp4;codecs=avc1"})
    session = RecordingSession(sink, logger=LOGGER)

    asset = asyncio.run(record(session, 3))

    assert session.state is SessionState.READY
    assert asset.data == b"<frame1><frame2><frame3><trailer>"
    assert asset.media_type == "video/mp4;codecs=avc1"
    assert asset.frame_count == 3
    assert asset.chunk_count == 4
    assert asset.duration_seconds == pytest.approx(0.1)


def test_empty_chunks_and_chunks_outside_recording_are_ignored():
    session = RecordingSession(FakeSink(supported={"video/webm"}), logger=LOGGER)
    session.on_chunk(b"too-early")
    assert session.chunks == ()

    async def scenario():
        await session.start(DIMENSIONS, 30)
        session.on_chunk(b"")
        session.on_chunk(b"abc")
        return await session.finalize()

    asset = asyncio.run(scenario())

    assert asset.data == b"abc<trailer>"
    session.on_chunk(b"too-late")
    assert session.chunks == (b"abc", b"<trailer>")


def test_sink_failure_during_capture_discards_chunks_and_fails():
    sink = FakeSink(supported={"video/webm"}, fail_on_frame=2)
    session = RecordingSession(sink, logger=LOGGER)

    with pytest.raises(EncodingFailureError):
        asyncio.run(record(session, 5))

    assert session.state is SessionState.FAILED
    assert session.chunks == ()
    assert sink.aborted


def test_sink_failure_during_finalize_discards_chunks_and_fails():
    sink = FakeSink(supported={"video/webm"}, fail_on_stop=True)
    session = RecordingSession(sink, logger=LOGGER)

    with pytest.raises(EncodingFailureError):
        asyncio.run(record(session, 2))

    assert session.state is SessionState.FAILED
    assert session.chunks == ()


def test_os_error_on_start_surfaces_as_encoding_failure():
    sink = FakeSink(supported={"video/webm"}, fail_on_start=FileNotFoundError("ffmpeg"))
    session = RecordingSession(sink, logger=LOGGER)

    with pytest.raises(EncodingFailureError):
        asyncio.run(session.start(DIMENSIONS, 30))
    assert session.state is SessionState.FAILED


def test_operations_out_of_order_are_rejected():
    session = RecordingSession(FakeSink(), logger=LOGGER)

    with pytest.raises(BeforeAfterError):
        asyncio.run(session.capture(surface()))
    with pytest.raises(BeforeAfterError):
        asyncio.run(session.finalize())
    assert session.state is SessionState.IDLE


def test_abort_discards_partial_recording():
    sink = FakeSink(supported={"video/webm"})
    session = RecordingSession(sink, logger=LOGGER)

    async def scenario():
        await session.start(DIMENSIONS, 30)
        await session.capture(surface())
        await session.abort()

    asyncio.run(scenario())

    assert sink.aborted
    assert session.state is SessionState.FAILED
    assert session.chunks == ()
