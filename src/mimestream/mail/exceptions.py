"""Exceptions raised by the mimestream.mail module.

Exception hierarchy::

    MimestreamError
        MailError (base for all mail errors)
            MailConfigurationError (invalid transport settings, also ValueError)
            MailValidationError (invalid message input, also ValueError)
            MailUsageError (operations called out of order, also RuntimeError)
            MailTransportError (SMTP, relay or body stream failure)
            MailAttachmentError (attachment source unreadable, also OSError)
        PipeClosedError (pipe used after close, also OSError)

``MailUsageError`` marks a programming mistake by the caller: retrying the
same call can never succeed. Every other mail error is environmental.
"""

from __future__ import annotations

from mimestream.config.exceptions import MimestreamError


class MailError(MimestreamError):
    """Base exception for all mail module errors."""


class MailConfigurationError(MailError, ValueError):
    """Transport or composer settings are invalid."""


class MailValidationError(MailError, ValueError):
    """Message input (addresses, headers) is invalid."""


class MailUsageError(MailError, RuntimeError):
    """Composer operations were called in an invalid order.

    Raised when the HTML alternative is added twice, when an inline file is
    added before the HTML alternative, or when a sent message is reused.
    Nothing is written to the message when this error is raised.
    """


class MailTransportError(MailError):
    """The transport failed to open, write or complete the message."""


class MailAttachmentError(MailError, OSError):
    """An inline attachment source could not be opened or read.

    Attributes:
        path: Path of the attachment that failed.
    """

    def __init__(self, path: str, reason: str) -> None:
        """Initialize MailAttachmentError.

        Args:
            path: Path of the attachment that failed.
            reason: Description of the failure.
        """
        super().__init__(f"Cannot inline '{path}': {reason}")
        self.path = path
        self.reason = reason


class PipeClosedError(MimestreamError, OSError):
    """A pipe end was used after the pipe was closed."""


__all__ = [
    "MailAttachmentError",
    "MailConfigurationError",
    "MailError",
    "MailTransportError",
    "MailUsageError",
    "MailValidationError",
    "PipeClosedError",
]
