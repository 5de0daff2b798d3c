"""Exception types raised by the before/after renderer."""

from __future__ import annotations


class BeforeAfterError(RuntimeError):
    """Base class for failures local to a single render attempt."""


class ConfigurationError(BeforeAfterError):
    """Raised when render parameters or input images are invalid."""


class DependencyMissingError(BeforeAfterError):
    """Raised when a required external binary is not available."""


class AssetMissingError(BeforeAfterError):
    """Raised when a render is requested before both images are loaded."""


class EncodingFailureError(BeforeAfterError):
    """Raised when the encoding sink fails during capture or finalization."""


__all__ = [
    "AssetMissingError",
    "BeforeAfterError",
    "ConfigurationError",
    "DependencyMissingError",
    "EncodingFailureError",
]
