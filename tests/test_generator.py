import asyncio
import logging
import re
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from before_after import BeforeAfterGenerator
from before_after.config import AnimationConfig, Config
from before_after.errors import AssetMissingError, EncodingFailureError
from before_after.models import ImageAsset, OutputDimensions, RenderRequest, VideoAsset

from test_recording_session import FakeSink

LOGGER = logging.getLogger("before-after-tests")


async def no_sleep(_delay):
    await asyncio.sleep(0)


def solid_image(color, width=32, height=18) -> ImageAsset:
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:] = color
    return ImageAsset(pixels=pixels)


def small_request(**config_kwargs) -> RenderRequest:
    return RenderRequest(
        before=solid_image((0, 0, 255)),
        after=solid_image((255, 0, 0)),
        animation=AnimationConfig(**{"margin": 4, "total_frames": 6, **config_kwargs}),
        dimensions=OutputDimensions(96, 64),
    )


def make_generator(sinks, tmp_path=None, sleep=no_sleep) -> BeforeAfterGenerator:
    queue = list(sinks)
    config = Config(output_dir=tmp_path or Path("output"))
    return BeforeAfterGenerator(
        config,
        logger=LOGGER,
        sink_factory=lambda: queue.pop(0),
        sleep=sleep,
    )


def test_render_streams_every_frame_into_a_fresh_session():
    sink = FakeSink(supported={"video/mp4;codecs=h264"})
    generator = make_generator([sink])

    asset = generator.render_blocking(small_request())

    assert sink.frames == 6
    assert sink.started_with == ("video/mp4;codecs=h264", OutputDimensions(96, 64), 30)
    assert sink.stopped
    assert asset.media_type == "video/mp4;codecs=h264"
    assert asset.frame_count == 6
    assert asset.data.startswith(b"<frame1>")


def test_missing_image_rejected_before_session_is_created():
    created = []
    generator = BeforeAfterGenerator(
        Config(),
        logger=LOGGER,
        sink_factory=lambda: created.append(True) or FakeSink(),
        sleep=no_sleep,
    )
    request = RenderRequest(
        before=None,
        after=solid_image((255, 0, 0)),
        animation=AnimationConfig(total_frames=6),
        dimensions=OutputDimensions(96, 64),
    )

    with pytest.raises(AssetMissingError):
        generator.render_blocking(request)
    assert created == []


def test_failed_render_does_not_affect_next_render():
    failing = FakeSink(supported={"video/webm"}, fail_on_frame=3)
    healthy = FakeSink(supported={"video/webm"})
    generator = make_generator([failing, healthy])

    with pytest.raises(EncodingFailureError):
        generator.render_blocking(small_request())
    asset = generator.render_blocking(small_request())

    assert failing.aborted
    assert asset.frame_count == 6
    assert healthy.frames == 6


def test_cancelling_render_aborts_encoder():
    sink = FakeSink(supported={"video/webm"})
    generator = make_generator([sink], sleep=asyncio.sleep)

    async def scenario():
        task = asyncio.create_task(generator.render(small_request(total_frames=1000)))
        while sink.frames < 2:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert sink.aborted
    assert not sink.stopped
    assert sink.frames < 1000


def test_build_request_uses_preset_and_caption_flag():
    generator = make_generator([])
    image = solid_image((0, 0, 0))

    request = generator.build_request(image, image, aspect="4x5", caption_enabled=True)

    assert request.dimensions == OutputDimensions(2160, 2700)
    assert request.animation.caption_enabled
    assert request.animation.reserved_caption_height == 150
    assert generator.config.animation.caption_enabled is False


def test_download_filename_uses_millisecond_timestamp_and_mp4_extension():
    generator = make_generator([])

    assert generator.download_filename(1700000000123) == "before-after-1700000000123.mp4"
    assert re.fullmatch(r"before-after-\d{13}\.mp4", generator.download_filename())


def test_save_video_writes_asset(tmp_path):
    generator = make_generator([], tmp_path)
    asset = VideoAsset(data=b"webm-bytes", media_type="video/webm", frame_count=120, fps=30)

    output_path = generator.save_video(asset, timestamp_ms=42)

    assert output_path == tmp_path / "before-after-42.mp4"
    assert output_path.read_bytes() == b"webm-bytes"
    assert [path.name for path in tmp_path.iterdir()] == ["before-after-42.mp4"]


def test_save_before_anything_was_recorded_is_a_no_op(tmp_path):
    generator = make_generator([], tmp_path)
    empty = VideoAsset(data=b"", media_type="video/webm", frame_count=0, fps=30)

    assert generator.save_video(None) is None
    assert generator.save_video(empty) is None
    assert list(tmp_path.iterdir()) == []
