"""Transport abstractions for streamed message delivery.

A transport performs the envelope handshake for one message and hands back a
:class:`BodyStream`. Everything written to that stream is the message itself
(headers and MIME body); closing it completes delivery.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

__all__ = ["BodyStream", "MailTransport"]


class BodyStream(ABC):
    """Write-only stream carrying one message to the transport.

    Lines may end with ``\\n`` or ``\\r\\n``; transports normalise them to what
    their protocol requires.
    """

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Return True once the stream was closed or aborted."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write message bytes.

        Raises:
            MailTransportError: If the transport cannot accept the bytes.
        """

    @abstractmethod
    def close(self) -> None:
        """Complete the message and hand it to the transport for delivery.

        Raises:
            MailTransportError: If the transport rejects the message.
        """

    @abstractmethod
    def abort(self) -> None:
        """Abandon the message so the transport discards it. Idempotent."""

    def __enter__(self) -> BodyStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


class MailTransport(ABC):
    """Abstract base class for streaming mail transports."""

    @abstractmethod
    def open(self, sender: str, recipient: str) -> BodyStream:
        """Start a message from ``sender`` to ``recipient``.

        Args:
            sender: Envelope sender address.
            recipient: Envelope recipient address.

        Returns:
            Stream accepting the message content.

        Raises:
            MailTransportError: If the connection or envelope handshake fails.
        """
