"""Configuration dataclasses and loading helpers for the before/after renderer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from before_after.errors import ConfigurationError
from before_after.models import OutputDimensions

ENV_PREFIX = "BEFORE_AFTER_"

ASPECT_PRESETS: dict[str, OutputDimensions] = {
    "9x16": OutputDimensions(width=2160, height=3840),
    "4x5": OutputDimensions(width=2160, height=2700),
}
DEFAULT_ASPECT = "9x16"

DEFAULT_CAPTION_TEXT = "LR PRESETS LINKED IN BIO"

# Ordered preference list; first candidate the sink supports wins.
DEFAULT_CODEC_CANDIDATES: Tuple[str, ...] = (
    "video/mp4;codecs=h264",
    "video/mp4;codecs=avc1",
    "video/mp4",
    "video/webm;codecs=h264",
    "video/webm;codecs=vp9",
    "video/webm",
)
# ffmpeg's native MPEG-4 Part 2 encoder, present in every build.
FALLBACK_MEDIA_TYPE = "video/mp4;codecs=mp4v"

WHITE = (255, 255, 255)


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_non_negative_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def _parse_background_color(value: Any, default: Tuple[int, int, int] = WHITE) -> Tuple[int, int, int]:
    """Parse ``#rrggbb`` strings or ``[r, g, b]`` lists into a BGR tuple."""
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            r, g, b = (max(0, min(255, int(channel))) for channel in value)
        except (TypeError, ValueError):
            return default
        return (b, g, r)

    if isinstance(value, str):
        hex_value = value.strip().lstrip("#")
        if len(hex_value) == 6:
            try:
                r = int(hex_value[0:2], 16)
                g = int(hex_value[2:4], 16)
                b = int(hex_value[4:6], 16)
            except ValueError:
                return default
            return (b, g, r)

    return default


@dataclass(frozen=True)
class AnimationConfig:
    """Timing and decoration parameters for one render."""

    total_frames: int = 120
    fps: int = 30
    cycle_count: int = 2
    margin: int = 100
    caption_enabled: bool = False
    caption_text: str = DEFAULT_CAPTION_TEXT
    caption_reserve: int = 150
    line_width: int = 8
    background_color: Tuple[int, int, int] = WHITE

    def __post_init__(self) -> None:
        for name in ("total_frames", "fps", "cycle_count", "line_width"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.margin < 0 or self.caption_reserve < 0:
            raise ConfigurationError("margin and caption_reserve must not be negative")

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps

    @property
    def reserved_caption_height(self) -> int:
        return self.caption_reserve if self.caption_enabled else 0


@dataclass(frozen=True)
class EncoderSettings:
    """Settings for the ffmpeg encoding sink."""

    ffmpeg_path: str = "ffmpeg"
    video_bitrate: int = 8_000_000
    codec_candidates: Tuple[str, ...] = DEFAULT_CODEC_CANDIDATES
    read_chunk_size: int = 64 * 1024


@dataclass(frozen=True)
class Config:
    """Root configuration object for the renderer."""

    animation: AnimationConfig = field(default_factory=AnimationConfig)
    encoder: EncoderSettings = field(default_factory=EncoderSettings)
    aspect: str = DEFAULT_ASPECT
    output_dir: Path = Path("output")


def resolve_dimensions(aspect: str) -> OutputDimensions:
    """Map an aspect preset name (``9x16`` or ``4x5``) to pixel dimensions."""
    key = aspect.strip().lower().replace(":", "x")
    try:
        return ASPECT_PRESETS[key]
    except KeyError:
        supported = ", ".join(sorted(ASPECT_PRESETS))
        raise ConfigurationError(
            f"Unsupported aspect preset '{aspect}'. Supported presets: {supported}"
        ) from None


def _parse_animation(raw: Mapping[str, Any]) -> AnimationConfig:
    default = AnimationConfig()
    if not isinstance(raw, Mapping):
        return default
    return AnimationConfig(
        total_frames=_parse_positive_int(raw.get("total_frames"), default.total_frames),
        fps=_parse_positive_int(raw.get("fps"), default.fps),
        cycle_count=_parse_positive_int(raw.get("cycle_count"), default.cycle_count),
        margin=_parse_non_negative_int(raw.get("margin"), default.margin),
        caption_enabled=_parse_bool(raw.get("caption_enabled"), default.caption_enabled),
        caption_text=str(raw.get("caption_text") or default.caption_text),
        caption_reserve=_parse_non_negative_int(raw.get("caption_reserve"), default.caption_reserve),
        line_width=_parse_positive_int(raw.get("line_width"), default.line_width),
        background_color=_parse_background_color(raw.get("background_color")),
    )


def _parse_encoder(raw: Mapping[str, Any]) -> EncoderSettings:
    default = EncoderSettings()
    if not isinstance(raw, Mapping):
        return default

    candidates = raw.get("codec_candidates")
    if isinstance(candidates, (list, tuple)) and candidates:
        parsed_candidates = tuple(str(candidate).strip() for candidate in candidates)
    else:
        parsed_candidates = default.codec_candidates

    return EncoderSettings(
        ffmpeg_path=str(raw.get("ffmpeg_path") or default.ffmpeg_path),
        video_bitrate=_parse_positive_int(raw.get("video_bitrate"), default.video_bitrate),
        codec_candidates=parsed_candidates,
        read_chunk_size=_parse_positive_int(raw.get("read_chunk_size"), default.read_chunk_size),
    )


def _build_config(data: Mapping[str, Any]) -> Config:
    aspect = str(data.get("aspect") or DEFAULT_ASPECT)
    resolve_dimensions(aspect)
    return Config(
        animation=_parse_animation(data.get("animation", {})),
        encoder=_parse_encoder(data.get("encoder", {})),
        aspect=aspect,
        output_dir=Path(data.get("output_dir") or "output"),
    )


def _config_from_env(env: Mapping[str, str]) -> Config:
    """Build configuration from ``BEFORE_AFTER_*`` environment variables."""

    def get(name: str) -> Optional[str]:
        return env.get(f"{ENV_PREFIX}{name}")

    candidates = get("CODEC_CANDIDATES")
    return _build_config(
        {
            "aspect": get("ASPECT"),
            "output_dir": get("OUTPUT_DIR"),
            "animation": {
                "total_frames": get("TOTAL_FRAMES"),
                "fps": get("FPS"),
                "cycle_count": get("CYCLE_COUNT"),
                "margin": get("MARGIN"),
                "caption_enabled": get("CAPTION"),
                "caption_text": get("CAPTION_TEXT"),
                "caption_reserve": get("CAPTION_RESERVE"),
                "line_width": get("LINE_WIDTH"),
                "background_color": get("BACKGROUND_COLOR"),
            },
            "encoder": {
                "ffmpeg_path": get("FFMPEG"),
                "video_bitrate": get("VIDEO_BITRATE"),
                "codec_candidates": candidates.split(",") if candidates else None,
            },
        }
    )


def load_config(config_path: Path | str | None = None, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from a JSON file, or from the environment when it is absent."""
    source_env = os.environ if env is None else env
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
            if not isinstance(data, Mapping):
                raise ConfigurationError(f"Expected a JSON object in {path}")
            return _build_config(data)

    return _config_from_env(source_env)


def with_overrides(config: Config, **animation_overrides: Any) -> Config:
    """Return ``config`` with the given animation fields replaced (``None`` values skipped)."""
    changes = {key: value for key, value in animation_overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, animation=replace(config.animation, **changes))


__all__ = [
    "ASPECT_PRESETS",
    "AnimationConfig",
    "Config",
    "DEFAULT_CODEC_CANDIDATES",
    "EncoderSettings",
    "FALLBACK_MEDIA_TYPE",
    "load_config",
    "resolve_dimensions",
    "with_overrides",
]
