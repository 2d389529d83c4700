"""Logging helpers for mimestream.

Library modules log through plain ``logging.getLogger(__name__)`` loggers
under the ``mimestream`` namespace. Applications call :func:`init_logging`
once to attach handlers to that namespace.
"""

from __future__ import annotations

import logging
from typing import Any

from mimestream.logging.manager import (
    FALLBACK_DEFAULTS,
    FALLBACK_PRESETS,
    SUCCESS_LEVEL,
    TRACE_LEVEL,
    LogManager,
)

_root_logger: LogManager | None = None


def init_logging(*, preset: str | None = None, config: dict[str, Any] | None = None) -> LogManager:
    """Configure the ``mimestream`` logger namespace.

    Handlers built by a :class:`LogManager` are attached to the standard
    ``mimestream`` logger so records from every module reach them.

    Args:
        preset: Logging preset name (``dev``, ``debug``, ``prod``).
        config: Explicit configuration overriding the preset.

    Returns:
        The :class:`LogManager` holding the handlers.
    """
    global _root_logger  # pylint: disable=global-statement

    manager = LogManager(name="mimestream", preset=preset, config=config)
    std_logger = logging.getLogger("mimestream")
    for handler in list(std_logger.handlers):
        std_logger.removeHandler(handler)
    for handler in manager.handlers:
        std_logger.addHandler(handler)
    std_logger.setLevel(TRACE_LEVEL)
    _root_logger = manager
    return manager


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a standard logger below the ``mimestream`` namespace."""
    if not name or name == "mimestream":
        return logging.getLogger("mimestream")
    if name.startswith("mimestream."):
        return logging.getLogger(name)
    return logging.getLogger(f"mimestream.{name}")


__all__ = [
    "FALLBACK_DEFAULTS",
    "FALLBACK_PRESETS",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "LogManager",
    "get_logger",
    "init_logging",
]
