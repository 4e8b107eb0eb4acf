"""
Bounded in-memory byte pipe between the guard and an upload worker.

The producer side blocks in write() while ``capacity`` bytes are pending,
so peak memory stays bounded no matter how large the transcript grows.
The consumer side is either an iterator of chunks or a file-like
read(size), and both end when the producer closes.
"""

import threading
from typing import Iterator

DEFAULT_CAPACITY = 64 * 1024


class ConduitClosedError(BrokenPipeError):
    """Raised when writing to a conduit whose reader has gone away."""

    pass


class Conduit:
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._write_closed = False
        self._read_closed = False
        self.peak = 0

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._buffer)

    # --- producer side ---

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        written = 0
        with self._cond:
            while written < len(view):
                if self._write_closed:
                    raise ValueError("write to closed conduit")
                if self._read_closed:
                    raise ConduitClosedError("conduit reader closed")
                room = self.capacity - len(self._buffer)
                if room <= 0:
                    self._cond.wait()
                    continue
                chunk = view[written : written + room]
                self._buffer.extend(chunk)
                written += len(chunk)
                self.peak = max(self.peak, len(self._buffer))
                self._cond.notify_all()
        return written

    def flush(self) -> None:
        pass

    def close(self) -> None:
        """Signal end-of-stream to the reader."""
        with self._cond:
            self._write_closed = True
            self._cond.notify_all()

    # --- consumer side ---

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; return b"" at end-of-stream.

        Without a size, returns whatever is pending once anything is.
        With a size, keeps draining until ``size`` bytes arrived or the
        stream ended, so a short result always means end-of-stream.
        """
        if size is None or size < 0:
            return self._take(-1)
        data = bytearray()
        while len(data) < size:
            chunk = self._take(size - len(data))
            if not chunk:
                break
            data.extend(chunk)
        return bytes(data)

    def _take(self, size: int) -> bytes:
        with self._cond:
            while not self._buffer and not self._write_closed and not self._read_closed:
                self._cond.wait()
            if self._read_closed:
                return b""
            if size < 0 or size >= len(self._buffer):
                data = bytes(self._buffer)
                self._buffer.clear()
            else:
                data = bytes(self._buffer[:size])
                del self._buffer[:size]
            self._cond.notify_all()
            return data

    def close_reader(self) -> None:
        """Stop consuming; blocked and future writes raise ConduitClosedError."""
        with self._cond:
            self._read_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read()
            if not chunk:
                return
            yield chunk
