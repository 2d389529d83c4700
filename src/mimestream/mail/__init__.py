"""Streamed composition of multipart/alternative emails.

Examples:
    >>> from mimestream.mail import StreamingMail
    >>> mail = StreamingMail("smtp.example.com", "me@example.com", "you@example.com", "Hi")  # doctest: +SKIP
    >>> mail.text("hello").html("<b>hello</b>")  # doctest: +SKIP
    >>> mail.send()  # doctest: +SKIP
"""

from mimestream.mail.composer import StreamingMail, inline_content_type
from mimestream.mail.exceptions import (
    MailAttachmentError,
    MailConfigurationError,
    MailError,
    MailTransportError,
    MailUsageError,
    MailValidationError,
    PipeClosedError,
)
from mimestream.mail.multipart import Base64Writer, MultipartWriter, Part
from mimestream.mail.pipe import Pipe, Relay
from mimestream.mail.transport import BodyStream, MailTransport
from mimestream.mail.transports import SMTPSecurity, SMTPTransport

__all__ = [
    "Base64Writer",
    "BodyStream",
    "MailAttachmentError",
    "MailConfigurationError",
    "MailError",
    "MailTransport",
    "MailTransportError",
    "MailUsageError",
    "MailValidationError",
    "MultipartWriter",
    "Part",
    "Pipe",
    "PipeClosedError",
    "Relay",
    "SMTPSecurity",
    "SMTPTransport",
    "StreamingMail",
    "inline_content_type",
]
