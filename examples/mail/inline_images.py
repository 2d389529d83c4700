"""Stream a message with inline images into memory and print it.

A small :class:`BodyStream` collecting bytes stands in for an SMTP server, so
the example runs without network access and shows the exact MIME structure
:class:`StreamingMail` produces.

Usage:
    python examples/mail/inline_images.py
"""

from __future__ import annotations

import sys
from base64 import b64decode
from pathlib import Path
from tempfile import TemporaryDirectory

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mimestream.mail import StreamingMail
from mimestream.mail.transport import BodyStream, MailTransport

_LOGO_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAusB9Y9dOAoAAAAASUVORK5CYII="


class PrintingStream(BodyStream):
    """Collect the message and print it once complete."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        self._buffer += data
        return len(data)

    def close(self) -> None:
        self._closed = True
        print(self._buffer.decode("utf-8"))

    def abort(self) -> None:
        self._closed = True
        print(f"(aborted after {len(self._buffer)} bytes)")


class PrintingTransport(MailTransport):
    """Transport printing the message instead of delivering it."""

    def open(self, sender: str, recipient: str) -> BodyStream:
        print(f"MAIL FROM:<{sender}> RCPT TO:<{recipient}>")
        return PrintingStream()


def main() -> None:
    """Build a text + HTML message with two inline images."""
    with TemporaryDirectory() as tmp_dir:
        workdir = Path(tmp_dir)
        logo = workdir / "logo.png"
        logo.write_bytes(b64decode(_LOGO_BASE64))
        banner = workdir / "banner.gif"
        banner.write_bytes(b"GIF89a" + bytes(64))

        with StreamingMail(
            None,
            "reports@example.com",
            "ops@example.com",
            "Daily metrics",
            transport=PrintingTransport(),
        ) as mail:
            mail.text("Daily metrics: 42 conversions")
            mail.html('<img src="cid:banner.gif"><p>Daily metrics: <b>42</b></p><img src="cid:logo.png">')
            mail.inline_file(banner)
            mail.inline_file(logo)


if __name__ == "__main__":  # pragma: no cover - manual example
    main()
