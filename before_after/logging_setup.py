"""Logging configuration helpers for the before/after renderer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOGGER_NAME = "before_after"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _open_file_handler(log_file: Union[str, Path]) -> tuple[Optional[logging.Handler], Optional[str]]:
    """Create a file handler for ``log_file``, falling back to the working directory."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), None
    except OSError as exc:
        fallback_path = Path.cwd() / log_path.name
        try:
            handler = logging.FileHandler(fallback_path, encoding="utf-8")
        except OSError as fallback_exc:
            return None, (
                f"Failed to open log file at '{log_path}' "
                f"and fallback '{fallback_path}'. Reason: {fallback_exc}"
            )
        return handler, (
            f"Failed to open log file at '{log_path}'. Falling back to '{fallback_path}'. "
            f"Reason: {exc}"
        )


def configure_logging(
    logger_name: Optional[str] = None,
    *,
    level: int = logging.INFO,
    log_file: Union[str, Path, None] = None,
    include_stream: bool = True,
) -> logging.Logger:
    """Configure application logging and return the renderer logger.

    Parameters
    ----------
    logger_name:
        Name of the logger to return. Defaults to ``"before_after"``.
    level:
        Logging level applied to the root configuration and the returned logger.
    log_file:
        Optional path of a log file. ``None`` disables file logging.
    include_stream:
        Attach a `logging.StreamHandler` for console feedback.
    """

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = []
    pending_warning: Optional[str] = None

    if log_file:
        file_handler, pending_warning = _open_file_handler(log_file)
        if file_handler is not None:
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

    if include_stream:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    logger = logging.getLogger(logger_name or DEFAULT_LOGGER_NAME)
    logger.setLevel(level)

    if pending_warning:
        logger.warning(pending_warning)

    return logger


__all__ = ["configure_logging"]
