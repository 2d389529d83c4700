"""Logger with presets, rich console output and structured context.

:class:`LogManager` is a :class:`logging.Logger` subclass. The logger itself
accepts every level (``TRACE``); handlers do the filtering, so switching a
preset only changes which handlers are attached and at what level.

Configuration is read from ``logger.defaults`` and ``logger.presets`` in the
global configuration, falling back to :data:`FALLBACK_DEFAULTS` and
:data:`FALLBACK_PRESETS` when no configuration can be loaded.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from box import Box
from rich.console import Console
from rich.logging import RichHandler

from mimestream.config import deep_merge, get_config

TRACE_LEVEL = 5
SUCCESS_LEVEL = 25

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

FALLBACK_DEFAULTS: dict[str, Any] = {
    "output": "console",
    "console": {"level": "WARNING", "show_path": False},
    "file": {
        "level": "DEBUG",
        "log_path": ".",
        "log_dir": "logs",
        "log_name": "mimestream.log",
    },
}

FALLBACK_PRESETS: dict[str, dict[str, Any]] = {
    "dev": {"output": "console", "console": {"level": "DEBUG"}},
    "debug": {"output": "both", "console": {"level": "TRACE"}, "file": {"level": "TRACE"}},
    "prod": {"output": "file", "file": {"level": "INFO"}},
}

_RESERVED_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _level_value(level: str | int) -> int:
    """Translate a level name (including TRACE and SUCCESS) to its number."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _global_logger_section() -> tuple[dict[str, Any], dict[str, Any]]:
    """Return ``(defaults, presets)`` from the global config, or empty dicts."""
    try:
        section = get_config().logger
    except (OSError, ValueError) as e:
        logging.getLogger(__name__).debug("Logger configuration unavailable: %s", e)
        return {}, {}
    defaults = section.get("defaults") or {}
    presets = section.get("presets") or {}
    return dict(defaults), dict(presets)


class LogManager(logging.Logger):
    """Logger configured from presets or an explicit configuration mapping.

    Args:
        name: Logger name.
        preset: Name of a preset (``dev``, ``debug``, ``prod`` or one defined in
            configuration). Unknown presets are ignored.
        config: Explicit configuration merged over defaults and preset.

    Examples:
        >>> logger = LogManager(name="demo", preset="dev")
        >>> logger.success("Message sent", recipient="a@example.com")  # doctest: +SKIP
    """

    def __init__(
        self,
        name: str = "mimestream",
        *,
        preset: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(name, TRACE_LEVEL)
        self._config = self._resolve_config(preset, config)
        self._configure_handlers()

    @staticmethod
    def _resolve_config(preset: str | None, config: dict[str, Any] | None) -> Box:
        global_defaults, global_presets = _global_logger_section()
        merged = deep_merge(FALLBACK_DEFAULTS, global_defaults)

        if preset is not None:
            presets = deep_merge(FALLBACK_PRESETS, global_presets)
            merged = deep_merge(merged, presets.get(preset, {}))

        if config:
            merged = deep_merge(merged, config)

        return Box(merged, default_box=True)

    def _configure_handlers(self) -> None:
        output = self._config.output
        if output in ("console", "both"):
            console_cfg = self._config.console
            handler = RichHandler(
                console=Console(stderr=True),
                show_path=bool(console_cfg.get("show_path", False)),
                rich_tracebacks=True,
            )
            handler.setLevel(_level_value(console_cfg.get("level", "WARNING")))
            self.addHandler(handler)

        if output in ("file", "both"):
            file_cfg = self._config.file
            log_dir = Path(file_cfg.get("log_path", ".")) / file_cfg.get("log_dir", "logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / file_cfg.get("log_name", "mimestream.log"), encoding="utf-8")
            file_handler.setLevel(_level_value(file_cfg.get("level", "DEBUG")))
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            self.addHandler(file_handler)

    def _log(  # type: ignore[override]  # pylint: disable=arguments-differ
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **context: Any,
    ) -> None:
        """Append keyword context as ``key=value`` pairs before emitting."""
        if context:
            rendered = " ".join(f"{key}={value!r}" for key, value in context.items() if key not in _RESERVED_KWARGS)
            msg = f"{msg} | {rendered}"
        super()._log(level, msg, args, exc_info=exc_info, extra=extra, stack_info=stack_info, stacklevel=stacklevel)

    def trace(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at TRACE level."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, msg, args, **kwargs)

    def success(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at SUCCESS level."""
        if self.isEnabledFor(SUCCESS_LEVEL):
            self._log(SUCCESS_LEVEL, msg, args, **kwargs)

    def traceback(self, exc: BaseException, msg: str = "Unhandled exception") -> None:
        """Log ``exc`` with its traceback at ERROR level."""
        self.error("%s: %s", msg, exc, exc_info=(type(exc), exc, exc.__traceback__))


__all__ = [
    "FALLBACK_DEFAULTS",
    "FALLBACK_PRESETS",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "LogManager",
]
