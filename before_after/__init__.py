"""
Render looping before/after wipe videos from two still images.
"""

from .app import BeforeAfterGenerator
from .config import AnimationConfig, Config, EncoderSettings, load_config
from .errors import (
    AssetMissingError,
    BeforeAfterError,
    ConfigurationError,
    DependencyMissingError,
    EncodingFailureError,
)
from .models import ImageAsset, Layout, OutputDimensions, RenderRequest, VideoAsset

__all__ = [
    "AnimationConfig",
    "AssetMissingError",
    "BeforeAfterError",
    "BeforeAfterGenerator",
    "Config",
    "ConfigurationError",
    "DependencyMissingError",
    "EncoderSettings",
    "EncodingFailureError",
    "ImageAsset",
    "Layout",
    "OutputDimensions",
    "RenderRequest",
    "VideoAsset",
    "load_config",
]
