"""Bounded in-process byte pipe and the relay thread that drains it.

A :class:`Pipe` connects one producer thread to one consumer thread. The
producer writes into :attr:`Pipe.writer`, the consumer reads from
:attr:`Pipe.reader`. At most ``capacity`` bytes are buffered: once the buffer
is full, writes block until the consumer catches up, so the whole chain
streams at the pace of its slowest sink instead of accumulating in memory.

A :class:`Relay` is the consumer used by the composer. It copies everything
read from a pipe into a destination stream until the producer closes the
write end, and exposes its completion through :meth:`Relay.wait`.

Examples:
    >>> import io
    >>> pipe = Pipe(capacity=4)
    >>> sink = io.BytesIO()
    >>> relay = Relay(pipe.reader, sink)
    >>> relay.start()
    >>> pipe.writer.write(b"hello world")
    11
    >>> pipe.writer.close()
    >>> relay.wait()
    >>> sink.getvalue()
    b'hello world'

Note:
    Neither side has a deadline. If the destination blocks forever, the
    producer blocks forever once the buffer is full.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from mimestream.mail.exceptions import PipeClosedError

__all__ = ["DEFAULT_CAPACITY", "Pipe", "PipeReader", "PipeWriter", "Relay", "Writable"]

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 64 * 1024
DEFAULT_RELAY_CHUNK = 16 * 1024


class Writable(Protocol):
    """Anything bytes can be written to."""

    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes accepted."""


class Pipe:
    """Bounded blocking single-producer/single-consumer byte channel.

    Args:
        capacity: Maximum number of buffered bytes. Must be positive.

    Raises:
        ValueError: If ``capacity`` is not positive.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"Pipe capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._write_closed = False
        self._read_closed = False
        self._write_error: BaseException | None = None
        self._read_error: BaseException | None = None
        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    @property
    def capacity(self) -> int:
        """Return the buffer capacity in bytes."""
        return self._capacity

    def _write(self, data: bytes) -> int:
        view = memoryview(data)
        with self._cond:
            while view:
                while len(self._buffer) >= self._capacity and not self._read_closed and not self._write_closed:
                    self._cond.wait()
                if self._read_closed:
                    raise PipeClosedError("write on pipe whose reader is closed") from self._read_error
                if self._write_closed:
                    raise PipeClosedError("write on closed pipe")
                room = self._capacity - len(self._buffer)
                self._buffer += view[:room]
                view = view[room:]
                self._cond.notify_all()
        return len(data)

    def _read(self, size: int) -> bytes:
        with self._cond:
            while not self._buffer and not self._write_closed and not self._read_closed:
                self._cond.wait()
            if self._read_closed:
                raise PipeClosedError("read on closed pipe")
            if self._buffer:
                if size < 0 or size >= len(self._buffer):
                    chunk = bytes(self._buffer)
                    self._buffer.clear()
                else:
                    chunk = bytes(self._buffer[:size])
                    del self._buffer[:size]
                self._cond.notify_all()
                return chunk
            if self._write_error is not None:
                raise PipeClosedError("pipe writer closed with an error") from self._write_error
            return b""

    def _close_write(self, error: BaseException | None) -> None:
        with self._cond:
            if not self._write_closed:
                self._write_closed = True
                self._write_error = error
            self._cond.notify_all()

    def _close_read(self, error: BaseException | None) -> None:
        with self._cond:
            if not self._read_closed:
                self._read_closed = True
                self._read_error = error
                self._buffer.clear()
            self._cond.notify_all()


class PipeWriter:
    """Write end of a :class:`Pipe`."""

    def __init__(self, pipe: Pipe) -> None:
        self._pipe = pipe

    @property
    def closed(self) -> bool:
        """Return True once this end has been closed."""
        return self._pipe._write_closed  # pylint: disable=protected-access

    def write(self, data: bytes) -> int:
        """Write ``data``, blocking while the buffer is full.

        Raises:
            PipeClosedError: If either end of the pipe is closed. When the
                reader closed with an error, that error is chained.
        """
        return self._pipe._write(bytes(data))  # pylint: disable=protected-access

    def close(self, error: BaseException | None = None) -> None:
        """Close the write end.

        Buffered bytes remain readable; the reader then sees end-of-stream, or
        a :class:`PipeClosedError` chained to ``error`` when one is given.
        """
        self._pipe._close_write(error)  # pylint: disable=protected-access


class PipeReader:
    """Read end of a :class:`Pipe`."""

    def __init__(self, pipe: Pipe) -> None:
        self._pipe = pipe

    @property
    def closed(self) -> bool:
        """Return True once this end has been closed."""
        return self._pipe._read_closed  # pylint: disable=protected-access

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, blocking until data or end-of-stream.

        Returns:
            Buffered bytes, or ``b""`` once the writer closed cleanly and the
            buffer is drained.

        Raises:
            PipeClosedError: If this end is closed, or the writer closed with
                an error.
        """
        return self._pipe._read(size)  # pylint: disable=protected-access

    def close(self, error: BaseException | None = None) -> None:
        """Close the read end; pending and future writes fail with ``error`` chained."""
        self._pipe._close_read(error)  # pylint: disable=protected-access


class Relay(threading.Thread):
    """Daemon thread copying a pipe's read end into a destination stream.

    The relay stops when the writer closes the pipe. If reading or writing
    fails, the failure is kept in :attr:`error` and the read end is closed
    with it, so the producer's next write fails instead of blocking.

    Args:
        source: Read end to drain.
        destination: Stream receiving every byte, in order.
        chunk_size: Maximum bytes moved per iteration.
        name: Thread name.
    """

    def __init__(
        self,
        source: PipeReader,
        destination: Writable,
        *,
        chunk_size: int = DEFAULT_RELAY_CHUNK,
        name: str = "mimestream-relay",
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._source = source
        self._destination = destination
        self._chunk_size = chunk_size
        self.error: BaseException | None = None
        self.bytes_relayed = 0

    def run(self) -> None:
        try:
            while chunk := self._source.read(self._chunk_size):
                self._destination.write(chunk)
                self.bytes_relayed += len(chunk)
        except Exception as e:  # pylint: disable=broad-except
            self.error = e
            self._source.close(e)
            log.debug("Relay %s stopped after %d bytes: %s", self.name, self.bytes_relayed, e)
        else:
            log.debug("Relay %s drained %d bytes", self.name, self.bytes_relayed)

    def wait(self, timeout: float | None = None) -> None:
        """Block until the relay finishes.

        Args:
            timeout: Seconds to wait; ``None`` waits indefinitely.

        Raises:
            TimeoutError: If the relay is still running after ``timeout``.
            BaseException: The failure recorded by the relay, re-raised.
        """
        self.join(timeout)
        if self.is_alive():
            raise TimeoutError(f"Relay {self.name} still running after {timeout}s")
        if self.error is not None:
            raise self.error
