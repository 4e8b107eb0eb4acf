"""
Transcript framing and writer plumbing.

A transcript is:

    # This log is generated dy github.com/mashiike/ichigeki.Hissatsu
    name: <name>
    start: <RFC3339>
    ---
    <raw output>

    ---
    end: <RFC3339>
    error: <message>      (failure only)
"""

import threading
from datetime import datetime
from typing import BinaryIO, Iterable, List, Optional, Union

from ichigeki.core.clock import format_rfc3339

GENERATOR_LINE = "# This log is generated dy github.com/mashiike/ichigeki.Hissatsu"
SEPARATOR = "---"


class MultiWriter:
    """Duplicates every write to each member writer, in order.

    The first member that raises aborts the write and the error propagates.
    """

    def __init__(self, writers: Iterable[BinaryIO]):
        self.writers: List[BinaryIO] = list(writers)

    def write(self, data: bytes) -> int:
        for writer in self.writers:
            writer.write(data)
        return len(data)

    def flush(self) -> None:
        for writer in self.writers:
            flush = getattr(writer, "flush", None)
            if flush is not None:
                flush()


def _flatten(writer: BinaryIO) -> List[BinaryIO]:
    if isinstance(writer, MultiWriter):
        flat: List[BinaryIO] = []
        for member in writer.writers:
            flat.extend(_flatten(member))
        return flat
    return [writer]


def banner_writer(*writers: BinaryIO) -> BinaryIO:
    """Writer reaching each underlying channel of ``writers`` exactly once.

    A channel shared between stdout and stderr, directly or inside a
    MultiWriter, must not receive the header and footer twice.
    """
    channels: List[BinaryIO] = []
    seen = set()
    for writer in writers:
        for channel in _flatten(writer):
            if id(channel) not in seen:
                seen.add(id(channel))
                channels.append(channel)
    if len(channels) == 1:
        return channels[0]
    return MultiWriter(channels)


class ScriptWriter:
    """Writer handed to the wrapped script.

    Accepts ``bytes`` or ``str`` (encoded as UTF-8), forwards to the
    transcript channel and echoes to the operator's stream. Writes are
    serialized so concurrent pumps cannot interleave within one chunk.
    """

    def __init__(
        self,
        channel: BinaryIO,
        echo: Optional[BinaryIO] = None,
        lock: Optional[threading.Lock] = None,
    ):
        self.channel = channel
        self.echo = echo
        self._lock = lock or threading.Lock()

    def write(self, data: Union[bytes, str]) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            self.channel.write(data)
            if self.echo is not None:
                self.echo.write(data)
                self.echo.flush()
        return len(data)

    def flush(self) -> None:
        with self._lock:
            flush = getattr(self.channel, "flush", None)
            if flush is not None:
                flush()


def _line(writer: BinaryIO, text: str) -> None:
    writer.write(text.encode("utf-8") + b"\n")


def write_header(writer: BinaryIO, name: str, start: datetime) -> None:
    _line(writer, GENERATOR_LINE)
    _line(writer, f"name: {name}")
    _line(writer, f"start: {format_rfc3339(start)}")
    _line(writer, SEPARATOR)


def write_footer(writer: BinaryIO, end: datetime, error: Optional[BaseException] = None) -> None:
    writer.write(b"\n")
    _line(writer, SEPARATOR)
    _line(writer, f"end: {format_rfc3339(end)}")
    if error is not None:
        _line(writer, f"error: {error}")