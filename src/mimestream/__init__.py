"""mimestream: stream multipart emails with inline images onto SMTP."""

from mimestream.config import (
    ConfigLoader,
    clear_config,
    get_config,
    load_config,
    load_from_env,
    load_from_file,
    require_config,
)
from mimestream.logging import LogManager, init_logging
from mimestream.mail import StreamingMail
from mimestream.meta import __version__

__all__ = [
    "ConfigLoader",
    "LogManager",
    "StreamingMail",
    "__version__",
    "clear_config",
    "get_config",
    "init_logging",
    "load_config",
    "load_from_env",
    "load_from_file",
    "require_config",
]
