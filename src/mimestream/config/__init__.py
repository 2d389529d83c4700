"""YAML configuration for mimestream, exposed as :class:`box.Box` objects."""

from mimestream.config.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigNotLoadedError,
    MimestreamError,
)
from mimestream.config.loader import (
    ConfigLoader,
    clear_config,
    deep_merge,
    get_config,
    load_config,
    load_from_env,
    load_from_file,
    require_config,
)

__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigNotLoadedError",
    "MimestreamError",
    "clear_config",
    "deep_merge",
    "get_config",
    "load_config",
    "load_from_env",
    "load_from_file",
    "require_config",
]
