"""
Client logging policy.

This module centralizes client logging setup and nekoctl version injection into
log message formats.
"""

from __future__ import annotations

import logging

from nekoctl import __version__

__all__ = ["NOISY_LOGGERS", "logging_setup"]

# WebRTC/WebSocket stacks log every packet at DEBUG
NOISY_LOGGERS: tuple[str, ...] = ("aiortc", "aioice", "websockets")


def logging_setup(level: str, log_format: str, log_file: str | None) -> None:
    """
    Configure client logging handlers and format.

    Args:
        level:
            Log level name.
        log_format:
            Base logging format string.
        log_file:
            Optional log-file path.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    enhanced_format: str = log_format.replace("%(asctime)s", f"%(asctime)s [v{__version__}]")
    numeric_level: int = getattr(logging, level.upper())
    logging.basicConfig(
        level=numeric_level,
        format=enhanced_format,
        handlers=handlers,
    )

    library_level: int = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(library_level, numeric_level))
