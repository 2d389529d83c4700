"""Configuration loading for mimestream.

Configuration is plain YAML. The file shipped inside the package provides the
defaults; a user file named ``mimestream.conf.yml`` found in the current
working directory (then in the home directory) is deep-merged over them.
Results are exposed as :class:`box.Box` objects for attribute access.

Examples:
    >>> from mimestream.config import get_config
    >>> config = get_config()  # doctest: +SKIP
    >>> config.mail.smtp.port  # doctest: +SKIP
    25
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from box import Box

from mimestream.config.exceptions import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigNotLoadedError,
)

log = logging.getLogger(__name__)

DEFAULT_FILENAME = "mimestream.conf.yml"
DEFAULT_ENV_VAR = "MIMESTREAM_CONFIG"
_PACKAGED_CONFIG = Path(__file__).resolve().parent.parent / DEFAULT_FILENAME
_YAML_SUFFIXES = (".yml", ".yaml")

_config: Box | None = None
_loaded_at: float | None = None
_lock = threading.Lock()


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested mappings are merged key by key; any other value in ``override``
    replaces the one in ``base``.

    Args:
        base: Mapping providing default values.
        override: Mapping whose values win.

    Returns:
        A new dictionary; neither input is modified.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Parse a YAML file into a dictionary.

    Raises:
        ConfigFormatError: If the YAML is invalid or its root is not a mapping.
    """
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as e:
        raise ConfigFormatError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFormatError(f"Config root must be a mapping in {path}, got {type(data).__name__}")
    return data


def _load_any_config_file(path: Path) -> dict[str, Any]:
    """Load a configuration file, dispatching on its extension."""
    if path.suffix.lower() not in _YAML_SUFFIXES:
        raise ConfigFormatError(f"Unsupported config file type: {path.suffix or path.name}")
    return _load_yaml_file(path)


def _load_default_config() -> dict[str, Any]:
    """Return the configuration packaged with mimestream."""
    return _load_yaml_file(_PACKAGED_CONFIG)


class ConfigLoader:
    """Locate and load mimestream configuration files.

    Args:
        filename: Name of the user configuration file to look for.
        search_paths: Directories searched in order for ``filename``.
            Defaults to the current working directory, then the home directory.

    Examples:
        >>> loader = ConfigLoader()
        >>> config = loader.load()  # doctest: +SKIP
    """

    def __init__(
        self,
        filename: str = DEFAULT_FILENAME,
        search_paths: list[Path] | None = None,
    ) -> None:
        self.filename = filename
        self._search_paths = search_paths

    @property
    def search_paths(self) -> list[Path]:
        """Return the directories searched for the user file."""
        if self._search_paths is not None:
            return list(self._search_paths)
        return [Path.cwd(), Path.home()]

    def find(self) -> Path | None:
        """Return the first existing user configuration file, if any."""
        for directory in self.search_paths:
            candidate = directory / self.filename
            if candidate.is_file():
                return candidate
        return None

    def load(self, path: str | Path | None = None) -> Box:
        """Load defaults and merge the user configuration over them.

        Args:
            path: Explicit configuration file. When given it must exist.

        Returns:
            The merged configuration.

        Raises:
            ConfigFileNotFoundError: If ``path`` is given and does not exist.
            ConfigFormatError: If a file is not valid YAML.
        """
        data = _load_default_config()

        if path is not None:
            user_path = Path(path).expanduser()
            if not user_path.is_file():
                raise ConfigFileNotFoundError(f"Config file not found: {user_path}")
        else:
            user_path = self.find()

        if user_path is not None:
            log.debug("Loading configuration from %s", user_path)
            data = deep_merge(data, _load_any_config_file(user_path))

        return Box(data, default_box=True)


def load_config(filename: str = DEFAULT_FILENAME, path: str | Path | None = None) -> Box:
    """Load configuration without touching the cached global instance."""
    return ConfigLoader(filename=filename).load(path)


def load_from_file(path: str | Path) -> Box:
    """Load configuration from an explicit file path."""
    return ConfigLoader().load(path)


def load_from_env(env_var: str = DEFAULT_ENV_VAR) -> Box:
    """Load configuration from the file named by an environment variable.

    Raises:
        ValueError: If the variable is not set or empty.
    """
    value = os.environ.get(env_var)
    if not value:
        raise ValueError(f"Environment variable '{env_var}' is not set or empty")
    return load_from_file(value)


def get_config(*, force_reload: bool = False, max_age: float | None = None) -> Box:
    """Return the process-wide configuration, loading it on first use.

    Args:
        force_reload: Reload from disk even if a cached instance exists.
        max_age: Reload when the cached instance is older than this many seconds.

    Returns:
        The cached configuration.
    """
    global _config, _loaded_at  # pylint: disable=global-statement

    with _lock:
        stale = max_age is not None and _loaded_at is not None and time.monotonic() - _loaded_at > max_age
        if _config is None or force_reload or stale:
            _config = load_config()
            _loaded_at = time.monotonic()
        return _config


def require_config() -> Box:
    """Return the cached configuration without loading it.

    Raises:
        ConfigNotLoadedError: If :func:`get_config` has not run yet.
    """
    if _config is None:
        raise ConfigNotLoadedError("Configuration not loaded yet, call get_config() first")
    return _config


def clear_config() -> None:
    """Drop the cached configuration."""
    global _config, _loaded_at  # pylint: disable=global-statement

    with _lock:
        _config = None
        _loaded_at = None


__all__ = [
    "DEFAULT_ENV_VAR",
    "DEFAULT_FILENAME",
    "ConfigLoader",
    "clear_config",
    "deep_merge",
    "get_config",
    "load_config",
    "load_from_env",
    "load_from_file",
    "require_config",
]
