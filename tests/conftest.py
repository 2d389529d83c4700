"""Shared pytest fixtures for the mimestream test suite."""

from __future__ import annotations

# Disable Rich colors and force wide terminal BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["COLUMNS"] = "200"  # Prevent text wrapping in log output

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

# Import private internals for testing purposes
import mimestream.config.loader as _cfg_loader

# pylint: disable=redefined-outer-name

# Smallest valid PNG (1x1 transparent pixel).
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d00000000"
    "49454e44ae426082"
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep user configuration files out of the tests and reset the cache."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("MIMESTREAM_CONFIG", raising=False)
    _cfg_loader.clear_config()
    yield
    _cfg_loader.clear_config()


@pytest.fixture(autouse=True)
def reset_mimestream_logger() -> Iterator[None]:
    """Undo handlers and level set by ``init_logging`` during a test."""
    std_logger = logging.getLogger("mimestream")
    handlers = list(std_logger.handlers)
    level = std_logger.level
    yield
    for handler in list(std_logger.handlers):
        if handler not in handlers:
            std_logger.removeHandler(handler)
            handler.close()
    std_logger.setLevel(level)


@pytest.fixture
def cfg_loader() -> Any:
    """Expose the config loader module for tests of private helpers."""
    return _cfg_loader


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    """Write a tiny PNG image named ``logo.png``."""
    path = tmp_path / "logo.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def binary_file(tmp_path: Path) -> Path:
    """Write a file holding every byte value several times, without a known extension."""
    path = tmp_path / "blob.bin"
    path.write_bytes(bytes(range(256)) * 37)
    return path
