"""Tests for the logging manager module.

Covers LogManager presets, configuration, output modes, structured
context, and the namespace helpers in ``mimestream.logging``.
"""

import logging
from pathlib import Path
from typing import Any

import pytest
from box import Box
from pytest import MonkeyPatch
from rich.logging import RichHandler

from mimestream.config import ConfigFormatError
from mimestream.logging import LogManager, get_logger, init_logging
from mimestream.logging import manager as logging_manager_module
from mimestream.logging.manager import SUCCESS_LEVEL, TRACE_LEVEL


class ListHandler(logging.Handler):
    """Handler keeping formatted messages in memory."""

    def __init__(self) -> None:
        """Accept every level."""
        super().__init__(TRACE_LEVEL)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        """Store the record."""
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        """Return rendered messages."""
        return [record.getMessage() for record in self.records]


def _collecting(logger: LogManager) -> ListHandler:
    handler = ListHandler()
    logger.addHandler(handler)
    return handler


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _file_config(tmp_path: Path, **extra: Any) -> dict[str, Any]:
    return {
        "output": "file",
        "file": {"log_path": str(tmp_path), "log_dir": "logs", "log_name": "test.log", **extra},
    }


def test_logmanager_default_creation() -> None:
    """Test creating LogManager with default settings."""
    logger = LogManager(name="test_default")

    assert logger.name == "test_default"
    assert isinstance(logger, logging.Logger)
    assert logger.level == TRACE_LEVEL  # Logger allows all levels, handlers filter
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)
    assert logger.handlers[0].level == logging.WARNING


def test_logmanager_with_preset_dev() -> None:
    """Dev preset logs DEBUG to the console."""
    logger = LogManager(name="test_dev", preset="dev")

    assert logger.level == TRACE_LEVEL
    assert [type(h) for h in logger.handlers] == [RichHandler]
    assert logger.handlers[0].level == logging.DEBUG


def test_logmanager_with_preset_prod(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    """Prod preset writes INFO to a file only."""
    monkeypatch.chdir(tmp_path)
    logger = LogManager(name="test_prod", preset="prod")
    try:
        assert [type(h) for h in logger.handlers] == [logging.FileHandler]
        assert logger.handlers[0].level == logging.INFO
        assert (tmp_path / "logs").is_dir()
    finally:
        _close(logger)


def test_logmanager_with_preset_debug(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    """Debug preset writes TRACE to both console and file."""
    monkeypatch.chdir(tmp_path)
    logger = LogManager(name="test_debug", preset="debug")
    try:
        assert len(logger.handlers) == 2
        assert {h.level for h in logger.handlers} == {TRACE_LEVEL}
    finally:
        _close(logger)


def test_logmanager_with_custom_config() -> None:
    """Test LogManager with custom configuration."""
    logger = LogManager(name="test_custom", config={"output": "console", "console": {"level": "ERROR"}})

    assert logger.level == TRACE_LEVEL
    assert logger.handlers[0].level == logging.ERROR


def test_custom_config_overrides_preset() -> None:
    """Explicit configuration wins over the preset."""
    logger = LogManager(name="test_override", preset="dev", config={"console": {"level": "CRITICAL"}})
    assert logger.handlers[0].level == logging.CRITICAL


def test_logmanager_invalid_preset() -> None:
    """Unknown presets fall back to the defaults."""
    logger = LogManager(name="test_invalid", preset="does-not-exist")
    assert logger.handlers[0].level == logging.WARNING


def test_logmanager_file_output(tmp_path: Path) -> None:
    """File output honours path, directory and name settings."""
    logger = LogManager(name="test_file", config=_file_config(tmp_path, level="INFO"))
    try:
        logger.debug("hidden")
        logger.info("visible message")
        logger.success("delivered", recipient="a@example.com")
    finally:
        _close(logger)

    content = (tmp_path / "logs" / "test.log").read_text(encoding="utf-8")
    assert "hidden" not in content
    assert "INFO" in content
    assert "visible message" in content
    assert "SUCCESS" in content
    assert "delivered | recipient='a@example.com'" in content


def test_logmanager_structured_logging() -> None:
    """Keyword context is appended to the message."""
    logger = LogManager(name="test_structured")
    handler = _collecting(logger)

    logger.info("Message sent", recipient="a@example.com", size=42)
    logger.info("plain %s", "args")

    assert handler.messages == ["Message sent | recipient='a@example.com' size=42", "plain args"]


def test_logmanager_reserved_kwargs_passthrough() -> None:
    """exc_info and friends are not treated as context."""
    logger = LogManager(name="test_reserved")
    handler = _collecting(logger)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.error("failed", exc_info=True)

    assert handler.messages == ["failed"]
    assert handler.records[0].exc_info is not None


def test_logmanager_success_and_trace_levels() -> None:
    """SUCCESS and TRACE are registered and emitted."""
    assert logging.getLevelName(SUCCESS_LEVEL) == "SUCCESS"
    assert logging.getLevelName(TRACE_LEVEL) == "TRACE"

    logger = LogManager(name="test_levels")
    handler = _collecting(logger)
    logger.success("done")
    logger.trace("detail %d", 1, step="relay")

    assert [r.levelno for r in handler.records] == [SUCCESS_LEVEL, TRACE_LEVEL]
    assert handler.messages[1] == "detail 1 | step='relay'"


def test_logmanager_traceback() -> None:
    """traceback() logs the exception with its traceback at ERROR."""
    logger = LogManager(name="test_traceback")
    handler = _collecting(logger)

    try:
        raise ValueError("bad value")
    except ValueError as e:
        logger.traceback(e, "Relay crashed")

    record = handler.records[0]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "Relay crashed: bad value"
    assert record.exc_info is not None and record.exc_info[0] is ValueError


def test_logmanager_uses_global_config(monkeypatch: MonkeyPatch) -> None:
    """Defaults and presets come from the logger section of the configuration."""
    config = Box(
        {
            "logger": {
                "defaults": {"console": {"level": "INFO"}},
                "presets": {"quiet": {"console": {"level": "ERROR"}}},
            }
        },
        default_box=True,
    )
    monkeypatch.setattr(logging_manager_module, "get_config", lambda: config)

    assert LogManager(name="test_global").handlers[0].level == logging.INFO
    assert LogManager(name="test_global_preset", preset="quiet").handlers[0].level == logging.ERROR


def test_logmanager_handles_missing_global_config(monkeypatch: MonkeyPatch) -> None:
    """An unreadable configuration falls back to built-in defaults."""

    def broken() -> Box:
        raise ConfigFormatError("Invalid YAML in mimestream.conf.yml")

    monkeypatch.setattr(logging_manager_module, "get_config", broken)
    logger = LogManager(name="test_missing", preset="dev")
    assert logger.handlers[0].level == logging.DEBUG


def test_unknown_level_name_defaults_to_info() -> None:
    logger = LogManager(name="test_level_name", config={"console": {"level": "LOUD"}})
    assert logger.handlers[0].level == logging.INFO


def test_init_logging_configures_namespace(tmp_path: Path) -> None:
    """init_logging attaches handlers to the std mimestream logger."""
    manager = init_logging(config=_file_config(tmp_path, level="DEBUG"))
    std_logger = logging.getLogger("mimestream")

    assert isinstance(manager, LogManager)
    assert std_logger.level == TRACE_LEVEL
    assert list(std_logger.handlers) == list(manager.handlers)

    logging.getLogger("mimestream.mail.composer").debug("Started message to %s", "a@example.com")
    for handler in std_logger.handlers:
        handler.flush()
    content = (tmp_path / "logs" / "test.log").read_text(encoding="utf-8")
    assert "mimestream.mail.composer: Started message to a@example.com" in content


def test_init_logging_replaces_handlers(tmp_path: Path) -> None:
    """Calling init_logging again does not stack handlers."""
    init_logging(preset="dev")
    second = init_logging(preset="dev")
    assert list(logging.getLogger("mimestream").handlers) == list(second.handlers)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        (None, "mimestream"),
        ("mimestream", "mimestream"),
        ("mail", "mimestream.mail"),
        ("mimestream.mail.pipe", "mimestream.mail.pipe"),
    ],
)
def test_get_logger(name: str | None, expected: str) -> None:
    """Loggers are always below the mimestream namespace."""
    assert get_logger(name).name == expected
