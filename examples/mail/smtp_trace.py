#!/usr/bin/env python3
"""Demonstrate SMTP TRACE-level logging while streaming a message.

Every command of the SMTP conversation is logged, including the smtplib
debug output captured during the handshake and the end of ``DATA``.

Setup:
    Run a local debugging SMTP server, for example::

        pip install aiosmtpd
        python -m aiosmtpd -n -l localhost:1025

    or point ``MIMESTREAM_SMTP`` at any relay that accepts mail from this host.

Usage:
    MIMESTREAM_SMTP=localhost:1025 python examples/mail/smtp_trace.py logo.png
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mimestream.logging import init_logging
from mimestream.mail import MailError, StreamingMail


def main() -> int:
    """Send a message with TRACE logging enabled."""
    server = os.getenv("MIMESTREAM_SMTP", "localhost:1025")
    images = [Path(arg) for arg in sys.argv[1:]]

    # init_logging() attaches handlers to every mimestream.* logger
    log = init_logging(config={"console": {"level": "TRACE"}})
    log.info("TRACE logging enabled", server=server, images=len(images))

    try:
        with StreamingMail(server, "sender@example.com", "recipient@example.com", "TRACE demo") as mail:
            mail.text("Plain text alternative.")
            html = "".join(f'<img src="cid:{image.name}">' for image in images)
            mail.html(f"<p>HTML alternative</p>{html}")
            for image in images:
                mail.inline_file(image)
    except MailError as e:
        log.traceback(e, "Sending failed")
        return 1

    log.success("Message sent", server=server)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual example
    sys.exit(main())
