"""Streaming MIME multipart writer and base64 encoder.

:class:`MultipartWriter` writes RFC 2046 multipart framing straight to an
underlying stream: nothing is buffered, each part's body goes to the stream
as it is written. The boundary exists as soon as the writer does, which lets
callers put it in a ``Content-Type`` header before the first part is opened.

Framing produced for a writer with boundary ``B`` and two parts::

    --B\\r\\n
    Content-Type: text/plain\\r\\n
    \\r\\n
    first body
    \\r\\n--B\\r\\n
    Content-Type: text/html\\r\\n
    \\r\\n
    second body
    \\r\\n--B--\\r\\n
"""

from __future__ import annotations

import base64
import re
import secrets
from collections.abc import Mapping

from mimestream.mail.exceptions import MailUsageError, MailValidationError
from mimestream.mail.pipe import Writable

__all__ = ["BASE64_LINE_LENGTH", "Base64Writer", "MultipartWriter", "Part", "random_boundary"]

CRLF = b"\r\n"
BASE64_LINE_LENGTH = 76
# 57 input bytes encode to exactly one 76 character line.
_BASE64_BLOCK = BASE64_LINE_LENGTH // 4 * 3

_BOUNDARY_RE = re.compile(r"^[0-9A-Za-z'()+_,\-./:=? ]{0,69}[0-9A-Za-z'()+_,\-./:=?]$")


def random_boundary() -> str:
    """Return a fresh 60 character hexadecimal boundary."""
    return secrets.token_hex(30)


def _check_header(name: str, value: str) -> None:
    if not name or any(c in name for c in ":\r\n ") or "\r" in value or "\n" in value:
        raise MailValidationError(f"Invalid MIME header {name!r}: {value!r}")


class Part:
    """Body stream of one part created by :meth:`MultipartWriter.create_part`.

    A part is finished when its writer opens the next part or is closed;
    writing to a finished part raises :class:`MailUsageError`.
    """

    def __init__(self, writer: MultipartWriter) -> None:
        self._writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the part is finished."""
        return self._closed

    def write(self, data: bytes) -> int:
        """Write body bytes for this part to the underlying stream."""
        if self._closed:
            raise MailUsageError("Cannot write to a finished multipart part")
        self._writer._stream.write(data)  # pylint: disable=protected-access
        return len(data)

    def close(self) -> None:
        """Mark the part as finished."""
        self._closed = True


class MultipartWriter:
    """Write a multipart body part by part.

    Args:
        stream: Destination receiving the framed body.
        boundary: Explicit boundary; a random one is generated when omitted.

    Raises:
        MailValidationError: If ``boundary`` is not a valid RFC 2046 boundary.

    Examples:
        >>> import io
        >>> out = io.BytesIO()
        >>> writer = MultipartWriter(out, boundary="b1")
        >>> part = writer.create_part({"Content-Type": "text/plain"})
        >>> part.write(b"hi")
        2
        >>> writer.close()
        >>> out.getvalue()
        b'--b1\\r\\nContent-Type: text/plain\\r\\n\\r\\nhi\\r\\n--b1--\\r\\n'
    """

    def __init__(self, stream: Writable, boundary: str | None = None) -> None:
        if boundary is None:
            boundary = random_boundary()
        elif not _BOUNDARY_RE.match(boundary):
            raise MailValidationError(f"Invalid multipart boundary: {boundary!r}")
        self._stream = stream
        self._boundary = boundary
        self._last_part: Part | None = None
        self._closed = False

    @property
    def boundary(self) -> str:
        """Return the boundary delimiting this writer's parts."""
        return self._boundary

    @property
    def closed(self) -> bool:
        """Return True once the closing delimiter has been written."""
        return self._closed

    def content_type(self, subtype: str) -> str:
        """Return the ``Content-Type`` value announcing this writer's body.

        Examples:
            >>> MultipartWriter(io.BytesIO(), boundary="xyz").content_type("related")  # doctest: +SKIP
            'multipart/related; boundary="xyz"'
        """
        return f'multipart/{subtype}; boundary="{self._boundary}"'

    def create_part(self, headers: Mapping[str, str]) -> Part:
        """Finish the current part and open a new one.

        Header lines are written in sorted key order.

        Args:
            headers: Part headers.

        Returns:
            Stream for the new part's body.

        Raises:
            MailUsageError: If the writer is closed.
            MailValidationError: If a header name or value is malformed.
        """
        if self._closed:
            raise MailUsageError("Cannot create a part on a closed multipart writer")
        for name, value in headers.items():
            _check_header(name, value)

        delimiter = f"--{self._boundary}\r\n".encode("ascii")
        if self._last_part is not None:
            self._last_part.close()
            delimiter = CRLF + delimiter

        lines = [delimiter]
        lines.extend(f"{name}: {headers[name]}\r\n".encode() for name in sorted(headers))
        lines.append(CRLF)
        self._stream.write(b"".join(lines))

        part = Part(self)
        self._last_part = part
        return part

    def close(self) -> None:
        """Finish the current part and write the closing delimiter.

        The underlying stream is left open. Closing twice is a no-op.
        """
        if self._closed:
            return
        if self._last_part is not None:
            self._last_part.close()
        self._closed = True
        self._stream.write(f"\r\n--{self._boundary}--\r\n".encode("ascii"))


class Base64Writer:
    """Base64-encode bytes on the fly into CRLF-terminated 76 character lines.

    Input is buffered only up to one line's worth (57 bytes).
    :meth:`close` flushes the final, possibly padded, line and leaves the
    destination open.

    Args:
        stream: Destination receiving encoded lines.
    """

    def __init__(self, stream: Writable) -> None:
        self._stream = stream
        self._pending = b""
        self._closed = False

    def write(self, data: bytes) -> int:
        """Encode ``data``, writing every complete line immediately."""
        if self._closed:
            raise MailUsageError("Cannot write to a closed base64 encoder")
        pending = self._pending + bytes(data)
        full = len(pending) - len(pending) % _BASE64_BLOCK
        if full:
            self._stream.write(
                b"".join(
                    base64.b64encode(pending[start : start + _BASE64_BLOCK]) + CRLF
                    for start in range(0, full, _BASE64_BLOCK)
                )
            )
        self._pending = pending[full:]
        return len(data)

    def close(self) -> None:
        """Flush the remaining input with padding."""
        if self._closed:
            return
        self._closed = True
        if self._pending:
            self._stream.write(base64.b64encode(self._pending) + CRLF)
            self._pending = b""
