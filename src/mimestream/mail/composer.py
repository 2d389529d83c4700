"""Streaming composer for ``multipart/alternative`` emails.

:class:`StreamingMail` writes a message straight onto a transport's body
stream while it is being built. The structure it produces is::

    multipart/alternative
        text/plain                  (text(), optional)
        multipart/related           (html(), optional)
            text/html
            image/...               (inline_file(), zero or more)

The ``multipart/related`` body is written by a second multipart writer whose
boundary has to be in the outer part's headers before that part exists. The
inner writer therefore writes into a bounded :class:`~mimestream.mail.pipe.Pipe`
and a :class:`~mimestream.mail.pipe.Relay` thread copies the pipe into the
outer part once it is open. :meth:`StreamingMail.send` closes the inner writer,
waits for the relay to drain, then closes the outer writer and the stream.

Examples:
    >>> mail = StreamingMail("localhost:25", "me@example.com", "you@example.com", "Hi")  # doctest: +SKIP
    >>> mail.text("hello").html('<img src="cid:logo.png">').inline_file("logo.png")  # doctest: +SKIP
    >>> mail.send()  # doctest: +SKIP

Note:
    Bytes already written cannot be taken back. If an operation fails halfway
    the message is left partially written; call :meth:`StreamingMail.abort`
    to make the transport discard it, or :meth:`StreamingMail.send` to deliver
    what was written.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

from mimestream.mail.exceptions import (
    MailAttachmentError,
    MailError,
    MailTransportError,
    MailUsageError,
    MailValidationError,
    PipeClosedError,
)
from mimestream.mail.multipart import Base64Writer, MultipartWriter
from mimestream.mail.pipe import DEFAULT_CAPACITY, Pipe, Relay
from mimestream.mail.transports.smtp import SMTPTransport

if TYPE_CHECKING:
    from box import Box

    from mimestream.mail.transport import BodyStream, MailTransport

__all__ = ["DEFAULT_CHUNK_SIZE", "PREAMBLE", "StreamingMail", "inline_content_type"]

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8 * 1024
PREAMBLE = "This is a multi-part message in MIME format."

# Anything not listed, including a missing extension, is sent as image/jpg.
_INLINE_CONTENT_TYPES = {
    "png": "image/png",
    "gif": "image/gif",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}
_FALLBACK_CONTENT_TYPE = "image/jpg"


def inline_content_type(filename: str) -> str:
    """Return the content type used for an inline file.

    Examples:
        >>> inline_content_type("logo.PNG")
        'image/png'
        >>> inline_content_type("chart.svg")
        'image/jpg'
    """
    _, dot, extension = filename.rpartition(".")
    if not dot:
        return _FALLBACK_CONTENT_TYPE
    return _INLINE_CONTENT_TYPES.get(extension.lower(), _FALLBACK_CONTENT_TYPE)


def _check_header_value(name: str, value: str) -> None:
    if "\r" in value or "\n" in value:
        raise MailValidationError(f"{name} must not contain line breaks: {value!r}")


def _check_parameter_value(name: str, value: str) -> None:
    """Reject values that cannot sit inside a quoted MIME parameter."""
    _check_header_value(name, value)
    if '"' in value or "\\" in value:
        raise MailValidationError(f"{name} must not contain quotes or backslashes: {value!r}")


class _State(Enum):
    OPEN = "open"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    ABORTED = "aborted"


class StreamingMail:
    """Message being streamed onto a transport.

    Creating the object connects, runs the envelope handshake and writes the
    top-level headers. Parts are then added in order: :meth:`text`,
    :meth:`html`, :meth:`inline_file`. :meth:`send` finishes the message.

    Args:
        server: SMTP server as ``host[:port]``; ``localhost:25`` when empty.
            Ignored when ``transport`` is given.
        sender: Envelope sender address.
        to: Recipient address, used for the envelope and the ``To`` header.
        subject: ``Subject`` header value.
        transport: Transport to use instead of SMTP to ``server``.
        pipe_capacity: Bytes buffered between the related writer and the relay.
        chunk_size: Bytes read from an inline file per iteration.

    Raises:
        MailValidationError: If a header value contains a line break.
        MailTransportError: If connecting, the handshake or the header write fails.

    Examples:
        Used as a context manager, the message is sent when the block ends and
        aborted when it raises::

            with StreamingMail(None, "me@example.com", "you@example.com", "Report") as mail:
                mail.text("See the HTML version.")
                mail.html('<p>Chart:</p><img src="cid:chart.png">')
                mail.inline_file("/tmp/chart.png")
    """

    def __init__(
        self,
        server: str | None,
        sender: str,
        to: str,
        subject: str,
        *,
        transport: MailTransport | None = None,
        pipe_capacity: int = DEFAULT_CAPACITY,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        _check_header_value("Sender", sender)
        _check_header_value("To", to)
        _check_header_value("Subject", subject)
        if pipe_capacity <= 0 or chunk_size <= 0:
            raise MailValidationError("pipe_capacity and chunk_size must be positive")

        if transport is None:
            transport = SMTPTransport.from_address(server)

        self._to = to
        self._pipe_capacity = pipe_capacity
        self._chunk_size = chunk_size
        self._pipe: Pipe | None = None
        self._relay: Relay | None = None
        self._related: MultipartWriter | None = None
        self._has_text = False
        self._state = _State.OPEN

        self._data: BodyStream = transport.open(sender, to)
        self._alternative = MultipartWriter(self._data)

        headers = (
            f"To: <{to}>\n"
            f"Subject: {subject}\n"
            "MIME-Version: 1.0\n"
            f"Content-Type: {self._alternative.content_type('alternative')}\n"
            "\n"
            f"{PREAMBLE}\n"
        )
        try:
            self._data.write(headers.encode("utf-8"))
        except MailError:
            self._data.abort()
            raise
        log.debug("Started message to %s (boundary=%s)", to, self._alternative.boundary)

    @classmethod
    def from_config(
        cls,
        sender: str,
        to: str,
        subject: str,
        *,
        config: Box | None = None,
    ) -> StreamingMail:
        """Create a message using the ``mail`` configuration section.

        Args:
            sender: Envelope sender address.
            to: Recipient address.
            subject: Subject header value.
            config: Loaded configuration; the global configuration when omitted.
        """
        if config is None:
            from mimestream.config import get_config

            config = get_config()
        stream_cfg = config.mail.stream
        return cls(
            None,
            sender,
            to,
            subject,
            transport=SMTPTransport.from_config(config),
            pipe_capacity=int(stream_cfg.get("pipe_capacity") or DEFAULT_CAPACITY),
            chunk_size=int(stream_cfg.get("chunk_size") or DEFAULT_CHUNK_SIZE),
        )

    @property
    def boundary(self) -> str:
        """Return the ``multipart/alternative`` boundary."""
        return self._alternative.boundary

    @property
    def related_boundary(self) -> str | None:
        """Return the ``multipart/related`` boundary, once :meth:`html` ran."""
        return self._related.boundary if self._related is not None else None

    @property
    def sent(self) -> bool:
        """Return True once :meth:`send` completed."""
        return self._state is _State.SENT

    def _ensure_open(self) -> None:
        if self._state is _State.FAILED:
            raise MailUsageError(f"Sending the message to {self._to} failed; call abort() to discard it")
        if self._state is not _State.OPEN:
            raise MailUsageError(f"Message to {self._to} is already {self._state.value}")

    @contextmanager
    def _through_relay(self) -> Iterator[None]:
        """Turn a pipe failure into the relay's underlying error."""
        try:
            yield
        except PipeClosedError as e:
            cause = self._relay.error if self._relay is not None and self._relay.error is not None else e
            raise MailTransportError(f"Relay to the message stream failed: {cause}") from cause

    def text(self, content: str) -> StreamingMail:
        """Add the plain-text alternative.

        Raises:
            MailUsageError: If called twice, if :meth:`html` was already called,
                or the message is finished.
            MailTransportError: If the transport write fails.
        """
        self._ensure_open()
        if self._has_text:
            raise MailUsageError("The text alternative can only be added once")
        if self._related is not None:
            raise MailUsageError("The text alternative must be added before the HTML alternative")
        self._has_text = True
        part = self._alternative.create_part({"Content-Type": "text/plain; charset=utf-8"})
        part.write(content.encode("utf-8") + b"\n")
        log.debug("Added text/plain alternative (%d chars)", len(content))
        return self

    def html(self, content: str) -> StreamingMail:
        """Add the HTML alternative inside a new ``multipart/related`` part.

        Starts the relay thread that carries every later :meth:`inline_file`
        part to the transport.

        Raises:
            MailUsageError: If called twice, or the message is finished.
            MailTransportError: If the transport or the relay fails.
        """
        self._ensure_open()
        if self._related is not None:
            raise MailUsageError("The HTML alternative can only be added once")

        pipe = Pipe(self._pipe_capacity)
        related = MultipartWriter(pipe.writer)
        outer = self._alternative.create_part({"Content-Type": related.content_type("related")})
        relay = Relay(pipe.reader, outer, name=f"mimestream-relay-{related.boundary[:8]}")
        relay.start()
        self._pipe, self._related, self._relay = pipe, related, relay

        with self._through_relay():
            part = related.create_part({"Content-Type": "text/html"})
            part.write(content.encode("utf-8") + b"\n")
        log.debug("Added multipart/related HTML alternative (boundary=%s)", related.boundary)
        return self

    def inline_file(self, path: str | Path) -> StreamingMail:
        """Stream a file as a base64 inline part of the related section.

        The file's name is used as display name and as content-id, so the
        HTML references it as ``cid:<name>``.

        Raises:
            MailUsageError: If :meth:`html` was not called, or the message is finished.
            MailValidationError: If the file name contains a line break, quote or backslash.
            MailAttachmentError: If the file cannot be opened or read.
            MailTransportError: If the transport or the relay fails.
        """
        self._ensure_open()
        if self._related is None:
            raise MailUsageError("html() must be called before inline_file()")

        name = Path(path).name
        _check_parameter_value("Inline file name", name)
        content_type = inline_content_type(name)
        headers = {
            "Content-Type": f'{content_type}; name="{name}"',
            "Content-ID": f"<{name}>",
            "Content-Disposition": f'inline; filename="{name}"',
            "Content-Transfer-Encoding": "base64",
        }

        try:
            handle = open(path, "rb")  # noqa: SIM115  # pylint: disable=consider-using-with
        except OSError as e:
            raise MailAttachmentError(str(path), e.strerror or str(e)) from e

        size = 0
        with handle, self._through_relay():
            encoder = Base64Writer(self._related.create_part(headers))
            while True:
                try:
                    chunk = handle.read(self._chunk_size)
                except OSError as e:
                    raise MailAttachmentError(str(path), e.strerror or str(e)) from e
                if not chunk:
                    break
                encoder.write(chunk)
                size += len(chunk)
            encoder.close()

        log.debug("Inlined %s as %s (%d bytes)", name, content_type, size)
        return self

    def send(self) -> None:
        """Close every writer innermost first, then the body stream.

        A failed send cannot be retried: the message is left partially
        written and every later call except :meth:`abort` raises
        :class:`MailUsageError`. Call :meth:`abort` to discard it.

        Raises:
            MailUsageError: If the message is already finished, or a previous send failed.
            MailTransportError: If any close step fails; later steps are skipped.
        """
        self._ensure_open()
        self._state = _State.SENDING

        try:
            if self._related is not None and self._pipe is not None and self._relay is not None:
                with self._through_relay():
                    self._related.close()
                self._pipe.writer.close()
                try:
                    self._relay.wait()
                except (MailError, OSError) as e:
                    raise MailTransportError(f"Relay to the message stream failed: {e}") from e

            self._alternative.close()
            self._data.close()
        except BaseException:
            self._state = _State.FAILED
            raise
        self._state = _State.SENT
        log.debug("Message to %s sent", self._to)

    def abort(self) -> None:
        """Abandon the message; the transport discards what was written.

        Safe to call at any point, including after a failed :meth:`send`.
        Does nothing once the message was sent or aborted.
        """
        if self._state in (_State.SENT, _State.ABORTED):
            return
        self._state = _State.ABORTED

        if self._pipe is not None:
            self._pipe.writer.close(MailTransportError("message aborted"))
        self._data.abort()
        if self._relay is not None:
            self._relay.join()
        log.debug("Message to %s aborted", self._to)

    def __enter__(self) -> StreamingMail:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.send()
        else:
            self.abort()
