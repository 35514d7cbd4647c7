"""Logging configuration for the image craft service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOGGER_NAME = "imagecraft"


def _prepare_file_handler(log_file: Union[str, Path]) -> tuple[Optional[logging.Handler], Optional[str]]:
    """Create a file handler for the given path, returning an optional warning."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), None
    except OSError as exc:
        return None, f"Failed to open log file at '{log_path}', logging to stderr only. Reason: {exc}"


def configure_logging(
    logger_name: Optional[str] = None,
    *,
    level: Union[int, str] = logging.INFO,
    log_file: Union[str, Path, None] = None,
    include_stream: bool = True,
) -> logging.Logger:
    """Configure application logging and return a ready-to-use logger.

    Parameters
    ----------
    logger_name:
        Name of the logger to return. Defaults to ``"imagecraft"``.
    level:
        Logging level (number or name) applied to the handlers.
    log_file:
        Optional path to a log file. ``None`` or ``""`` disables file logging.
    include_stream:
        When ``True`` (default) attach a `logging.StreamHandler`.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handlers: list[logging.Handler] = []
    pending_warning: Optional[str] = None
    if log_file:
        file_handler, pending_warning = _prepare_file_handler(log_file)
        if file_handler:
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
