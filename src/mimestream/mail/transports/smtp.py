"""SMTP transport streaming the message body through ``DATA``.

:class:`SMTPTransport` runs the envelope handshake (``EHLO``, optional
``STARTTLS``, ``MAIL FROM``, ``RCPT TO``, ``DATA``) with :mod:`smtplib` and
returns an :class:`SMTPDataStream`. Bytes written to the stream go straight to
the socket after line endings are normalised to CRLF and lines starting with
a period are dot-stuffed. Closing the stream sends the terminating ``.``
line, checks the server reply and quits.

Examples:
    >>> transport = SMTPTransport("mail.example.com", port=25)
    >>> stream = transport.open("me@example.com", "you@example.com")  # doctest: +SKIP
    >>> stream.write(b"Subject: hi\\n\\nhello\\n")  # doctest: +SKIP
    >>> stream.close()  # doctest: +SKIP
"""

from __future__ import annotations

import io
import logging
import re
import smtplib
import ssl
from collections.abc import Iterator
from contextlib import contextmanager, redirect_stderr
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mimestream.logging import TRACE_LEVEL
from mimestream.mail.exceptions import MailConfigurationError, MailTransportError
from mimestream.mail.transport import BodyStream, MailTransport

if TYPE_CHECKING:
    from box import Box

__all__ = ["DEFAULT_SERVER", "SMTPDataStream", "SMTPSecurity", "SMTPTransport", "parse_server"]

log = logging.getLogger(__name__)

DEFAULT_SERVER = "localhost:25"
_DEFAULT_PORT = 25

_EOL_RE = re.compile(rb"\r\n|\r|\n")
_DOT_RE = re.compile(rb"\r\n\.")


@dataclass(frozen=True, slots=True)
class SMTPSecurity:
    """TLS settings for the SMTP connection.

    Attributes:
        use_ssl: Connect with implicit TLS (SMTPS, usually port 465).
        use_starttls: Upgrade a plain connection with ``STARTTLS``. Ignored
            when ``use_ssl`` is set.
        verify_certificates: Validate the server certificate and hostname.
    """

    use_ssl: bool = False
    use_starttls: bool = False
    verify_certificates: bool = True

    def ssl_context(self) -> ssl.SSLContext:
        """Build the SSL context matching these settings."""
        context = ssl.create_default_context()
        if not self.verify_certificates:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


def parse_server(server: str | None) -> tuple[str, int]:
    """Split ``host[:port]`` into its parts.

    An empty value selects ``localhost:25``. IPv6 hosts must be bracketed
    when a port is given (``[::1]:2525``).

    Raises:
        MailConfigurationError: If the port is not a valid integer.

    Examples:
        >>> parse_server("smtp.example.com:587")
        ('smtp.example.com', 587)
        >>> parse_server("")
        ('localhost', 25)
    """
    server = (server or DEFAULT_SERVER).strip()
    if server.startswith("["):
        host, _, rest = server[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif server.count(":") == 1:
        host, _, port_text = server.partition(":")
    else:
        host, port_text = server, ""

    if not host:
        host = "localhost"
    if not port_text:
        return host, _DEFAULT_PORT
    try:
        port = int(port_text)
    except ValueError:
        raise MailConfigurationError(f"Invalid SMTP port in {server!r}") from None
    if not 0 < port < 65536:
        raise MailConfigurationError(f"SMTP port out of range in {server!r}")
    return host, port


@contextmanager
def _capture_smtp_debug() -> Iterator[io.StringIO]:
    """Collect what :mod:`smtplib` prints to stderr at debug level 1."""
    buffer = io.StringIO()
    with redirect_stderr(buffer):
        yield buffer


def _log_smtp_debug_output(buffer: io.StringIO) -> None:
    """Re-emit captured :mod:`smtplib` debug lines as TRACE records."""
    if not log.isEnabledFor(TRACE_LEVEL):
        return
    for raw_line in buffer.getvalue().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("send:"):
            log.log(TRACE_LEVEL, "[SMTP] >>> %s", line[5:].strip())
        elif line.startswith("reply:"):
            log.log(TRACE_LEVEL, "[SMTP] <<< %s", line[6:].strip())
        else:
            log.log(TRACE_LEVEL, "[SMTP] %s", line)


def _extract_ssl_info(sock: Any) -> dict[str, Any]:
    """Return TLS version and cipher details of a connected socket."""
    if sock is None:
        return {}
    info: dict[str, Any] = {}
    try:
        info["version"] = sock.version() or "unknown"
    except (AttributeError, ssl.SSLError, ValueError):
        info["version"] = "unknown"
    try:
        cipher = sock.cipher()
    except (AttributeError, ssl.SSLError, ValueError):
        cipher = None
    if cipher:
        info["cipher_name"], info["cipher_protocol"], info["cipher_bits"] = cipher
    return info


class SMTPDataStream(BodyStream):
    """Body stream writing into an open SMTP ``DATA`` command.

    Body writes never go through smtplib's debug printing, which writes to
    stderr outside of logging. Debugging is only switched back on while
    :meth:`close` captures the end of the session.

    Args:
        client: Connected client whose ``DATA`` command was accepted (354).
    """

    def __init__(self, client: smtplib.SMTP) -> None:
        client.set_debuglevel(0)
        self._client = client
        self._closed = False
        self._at_line_start = True
        self._pending_cr = False
        self.bytes_sent = 0

    @property
    def closed(self) -> bool:
        """Return True once the stream was closed or aborted."""
        return self._closed

    def _send(self, data: bytes) -> None:
        try:
            self._client.send(data)
        except (smtplib.SMTPException, OSError) as e:
            raise MailTransportError(f"SMTP write failed: {e}") from e
        self.bytes_sent += len(data)

    def write(self, data: bytes) -> int:
        """Send ``data`` with CRLF line endings and dot-stuffing applied.

        A trailing ``\\r`` is held back until the next write so a CRLF split
        across two writes is not doubled.
        """
        if self._closed:
            raise MailTransportError("Cannot write to a closed SMTP data stream")
        if not data:
            return 0

        text = bytes(data)
        if self._pending_cr:
            text = b"\r" + text
        self._pending_cr = text.endswith(b"\r")
        if self._pending_cr:
            text = text[:-1]
        if not text:
            return len(data)

        text = _EOL_RE.sub(b"\r\n", text)
        stuffed = _DOT_RE.sub(b"\r\n..", text)
        if self._at_line_start and stuffed.startswith(b"."):
            stuffed = b"." + stuffed
        self._at_line_start = text.endswith(b"\r\n")

        self._send(stuffed)
        return len(data)

    def close(self) -> None:
        """Terminate ``DATA``, check the server accepted the message and quit.

        Raises:
            MailTransportError: If sending fails or the server does not reply 250.
        """
        if self._closed:
            return
        self._closed = True

        trace_enabled = log.isEnabledFor(TRACE_LEVEL)
        tail = b"\r\n" if self._pending_cr or not self._at_line_start else b""
        try:
            with _capture_smtp_debug() as debug_buffer:
                if trace_enabled:
                    self._client.set_debuglevel(1)
                try:
                    self._client.send(tail + b".\r\n")
                    code, reply = self._client.getreply()
                except (smtplib.SMTPException, OSError) as e:
                    self._client.close()
                    raise MailTransportError(f"SMTP DATA completion failed: {e}") from e

                if code != 250:
                    self._client.close()
                    raise MailTransportError(f"SMTP server rejected message: {code} {reply!r}")

                try:
                    self._client.quit()
                except smtplib.SMTPServerDisconnected:
                    pass
                finally:
                    self._client.close()
        finally:
            if trace_enabled:
                _log_smtp_debug_output(debug_buffer)

        log.debug("SMTP message accepted (%d bytes)", self.bytes_sent + len(tail) + 3)
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] Message sent successfully: %s", reply.decode(errors="replace"))

    def abort(self) -> None:
        """Drop the connection without terminating ``DATA``.

        The server never sees the end-of-data marker and discards the
        transaction.
        """
        if self._closed:
            return
        self._closed = True
        log.debug("Aborting SMTP message after %d bytes", self.bytes_sent)
        self._client.close()


class SMTPTransport(MailTransport):
    """Streaming transport over SMTP.

    Authentication is not supported; the transport targets relays that accept
    mail from the connecting host.

    Args:
        host: SMTP server hostname.
        port: SMTP server port.
        security: TLS settings.
        timeout: Socket timeout in seconds, applied to every socket operation.
        local_hostname: Name announced in ``EHLO``; the FQDN when omitted.

    Raises:
        MailConfigurationError: If ``host`` is empty or ``timeout`` is not positive.

    Examples:
        >>> transport = SMTPTransport.from_address("smtp.example.com:2525")
        >>> transport.port
        2525
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = _DEFAULT_PORT,
        *,
        security: SMTPSecurity | None = None,
        timeout: float = 30.0,
        local_hostname: str | None = None,
    ) -> None:
        if not host:
            raise MailConfigurationError("SMTP host is required")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")
        self.host = host
        self.port = port
        self.security = security or SMTPSecurity()
        self.timeout = timeout
        self.local_hostname = local_hostname

    @classmethod
    def from_address(cls, server: str | None, **kwargs: Any) -> SMTPTransport:
        """Build a transport from a ``host[:port]`` string."""
        host, port = parse_server(server)
        return cls(host, port, **kwargs)

    @classmethod
    def from_config(cls, config: Box | None = None) -> SMTPTransport:
        """Build a transport from the ``mail.smtp`` configuration section.

        Args:
            config: Loaded configuration; the global configuration when omitted.
        """
        if config is None:
            from mimestream.config import get_config

            config = get_config()
        smtp_cfg = config.mail.smtp
        security = SMTPSecurity(
            use_ssl=bool(smtp_cfg.get("use_ssl", False)),
            use_starttls=bool(smtp_cfg.get("starttls", False)),
            verify_certificates=bool(smtp_cfg.get("verify_certificates", True)),
        )
        return cls(
            smtp_cfg.get("host") or "localhost",
            int(smtp_cfg.get("port") or _DEFAULT_PORT),
            security=security,
            timeout=float(smtp_cfg.get("timeout") or 30.0),
            local_hostname=smtp_cfg.get("local_hostname") or None,
        )

    def _connect(self) -> smtplib.SMTP:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "timeout": self.timeout,
            "local_hostname": self.local_hostname,
        }
        if self.security.use_ssl:
            return smtplib.SMTP_SSL(context=self.security.ssl_context(), **kwargs)
        return smtplib.SMTP(**kwargs)

    def _handshake(self, client: smtplib.SMTP, sender: str, recipient: str) -> None:
        """Run EHLO, optional STARTTLS, MAIL FROM, RCPT TO and DATA.

        Nothing is logged here: this runs while smtplib debug output is
        being captured.
        """
        client.ehlo()

        if self.security.use_starttls and not self.security.use_ssl:
            if not client.has_extn("STARTTLS"):
                raise MailTransportError(f"SMTP server {self.host} does not support STARTTLS")
            client.starttls(context=self.security.ssl_context())
            client.ehlo()

        code, reply = client.mail(sender)
        if code != 250:
            raise MailTransportError(f"SMTP server refused sender {sender}: {code} {reply!r}")

        code, reply = client.rcpt(recipient)
        if code not in (250, 251):
            raise MailTransportError(f"SMTP server refused recipient {recipient}: {code} {reply!r}")

        code, reply = client.docmd("DATA")
        if code != 354:
            raise MailTransportError(f"SMTP server refused DATA: {code} {reply!r}")

    def open(self, sender: str, recipient: str) -> SMTPDataStream:
        """Connect, run the envelope handshake and start ``DATA``.

        Args:
            sender: Envelope sender address.
            recipient: Envelope recipient address.

        Returns:
            Stream for the message content.

        Raises:
            MailTransportError: If connecting or any handshake step fails.
        """
        trace_enabled = log.isEnabledFor(TRACE_LEVEL)
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d (timeout=%ss)", self.host, self.port, self.timeout)
            if self.security.use_starttls and not self.security.use_ssl:
                log.log(TRACE_LEVEL, "[SMTP] STARTTLS requested")
            log.log(TRACE_LEVEL, "[SMTP] MAIL FROM: %s", sender)
            log.log(TRACE_LEVEL, "[SMTP] RCPT TO: %s", recipient)

        client: smtplib.SMTP | None = None
        try:
            with _capture_smtp_debug() as debug_buffer:
                client = self._connect()
                if trace_enabled:
                    client.set_debuglevel(1)
                self._handshake(client, sender, recipient)
                client.set_debuglevel(0)
        except MailTransportError:
            if client is not None:
                client.close()
            raise
        except (smtplib.SMTPException, OSError) as e:
            if client is not None:
                client.close()
            raise MailTransportError(f"SMTP handshake with {self.host}:{self.port} failed: {e}") from e
        finally:
            if trace_enabled:
                _log_smtp_debug_output(debug_buffer)

        if trace_enabled and (self.security.use_ssl or self.security.use_starttls):
            log.log(TRACE_LEVEL, "[SMTP] TLS: %s", _extract_ssl_info(getattr(client, "sock", None)))
        log.debug("SMTP DATA opened on %s:%d for %s", self.host, self.port, recipient)
        return SMTPDataStream(client)
