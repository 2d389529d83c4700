"""Exceptions raised by the mimestream.config module.

Exception hierarchy::

    MimestreamError
        ConfigError (base for all configuration errors)
            ConfigFileNotFoundError (also FileNotFoundError)
            ConfigFormatError (unsupported or malformed file, also ValueError)
            ConfigNotLoadedError (accessed before loading)
"""

from __future__ import annotations


class MimestreamError(Exception):
    """Root exception for every error raised by mimestream."""


class ConfigError(MimestreamError):
    """Base exception for configuration errors."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """An explicitly requested configuration file does not exist."""


class ConfigFormatError(ConfigError, ValueError):
    """A configuration file has an unsupported extension or invalid content."""


class ConfigNotLoadedError(ConfigError):
    """The configuration was required before anything loaded it."""


__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigNotLoadedError",
    "MimestreamError",
]
