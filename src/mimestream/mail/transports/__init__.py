"""Transport implementations for streamed mail delivery.

Available transports:
    - SMTPTransport: SMTP ``DATA`` streaming over :mod:`smtplib` (sync)
"""

from mimestream.mail.transports.smtp import SMTPDataStream, SMTPSecurity, SMTPTransport, parse_server

__all__ = [
    "SMTPDataStream",
    "SMTPSecurity",
    "SMTPTransport",
    "parse_server",
]
