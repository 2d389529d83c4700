"""Project metadata for mimestream."""

__app_name__ = "mimestream"
__author__ = "mimestream contributors"
__version__ = "0.3.0"
__description__ = "Stream multipart/alternative emails with inline images straight onto an SMTP connection."

__all__ = ["__app_name__", "__author__", "__description__", "__version__"]
