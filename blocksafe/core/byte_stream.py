"""Byte-level I/O primitives used by the sanitizing engines.

The engines consume input one byte at a time and emit output incrementally,
but issuing one ``await source.read(1)`` per byte would be needlessly slow.
:class:`PushbackReader` therefore pulls fixed-size chunks from the source and
serves single bytes out of the current chunk, and :class:`ByteWriter`
collects output until a chunk fills before handing it to the sink.  Memory
stays bounded by the chunk sizes regardless of the stream length.

:class:`PushbackReader` also provides the pending-byte buffer the engines
need for footer detection: a byte read ahead of the current decision point is
returned with :meth:`PushbackReader.unread` and handed out again by the next
:meth:`PushbackReader.read_byte`.

Sources and sinks may be asynchronous (anything with ``async read(n)`` /
``async write(data)``, e.g. Starlette's ``UploadFile``) or ordinary binary
file objects such as :class:`io.BytesIO`, which are adapted by
:func:`as_source` / :func:`as_sink`.

Cancellation is cooperative: when a cancellation :class:`asyncio.Event` is
supplied, it is checked before every byte-level read and write and
:class:`asyncio.CancelledError` is raised once it is set.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, BinaryIO, Protocol, runtime_checkable

#: Default number of bytes requested from the source per read.
DEFAULT_READ_CHUNK_SIZE = 64 * 1024

#: Default number of output bytes collected before the sink is written.
DEFAULT_WRITE_CHUNK_SIZE = 64 * 1024

#: Bytes treated as whitespace between and around blocks.
WHITESPACE: frozenset[int] = frozenset(b" \n\r\t")


def is_whitespace(byte: int) -> bool:
    """Return ``True`` for space, ``\\n``, ``\\r`` and ``\\t``."""
    return byte in WHITESPACE


@runtime_checkable
class ByteSource(Protocol):
    """Asynchronous, read-once byte source."""

    async def read(self, size: int = -1) -> bytes:
        ...


@runtime_checkable
class ByteSink(Protocol):
    """Asynchronous byte sink accepting ordered writes."""

    async def write(self, data: bytes) -> Any:
        ...


class _SyncSource:
    def __init__(self, fileobj: BinaryIO) -> None:
        self._fileobj = fileobj

    async def read(self, size: int = -1) -> bytes:
        return self._fileobj.read(size)


class _SyncSink:
    def __init__(self, fileobj: BinaryIO) -> None:
        self._fileobj = fileobj

    async def write(self, data: bytes) -> Any:
        return self._fileobj.write(data)


def as_source(obj: Any) -> ByteSource:
    """Return *obj* as a :class:`ByteSource`, wrapping synchronous readers."""
    read = getattr(obj, "read", None)
    if read is None:
        raise TypeError(f"{type(obj).__name__} has no read() method")
    if inspect.iscoroutinefunction(read):
        return obj
    return _SyncSource(obj)


def as_sink(obj: Any) -> ByteSink:
    """Return *obj* as a :class:`ByteSink`, wrapping synchronous writers."""
    write = getattr(obj, "write", None)
    if write is None:
        raise TypeError(f"{type(obj).__name__} has no write() method")
    if inspect.iscoroutinefunction(write):
        return obj
    return _SyncSink(obj)


def check_cancelled(cancellation: asyncio.Event | None) -> None:
    """Raise :class:`asyncio.CancelledError` if *cancellation* is set."""
    if cancellation is not None and cancellation.is_set():
        raise asyncio.CancelledError("sanitization cancelled by caller")


class PushbackReader:
    """Forward-only byte reader with a small pushback buffer.

    Args:
        source: Object to read from; synchronous readers are adapted.
        chunk_size: Bytes requested from *source* per underlying read.
        cancellation: Optional event checked before every byte read.
    """

    def __init__(
        self,
        source: Any,
        *,
        chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._source = as_source(source)
        self._chunk_size = chunk_size
        self._cancellation = cancellation
        self._chunk = b""
        self._pos = 0
        self._pending: list[int] = []
        self._eof = False
        self.bytes_read = 0

    async def read_byte(self) -> int | None:
        """Return the next byte, or ``None`` at end of input."""
        check_cancelled(self._cancellation)
        if self._pending:
            return self._pending.pop()
        if self._pos >= len(self._chunk):
            if self._eof:
                return None
            chunk = await self._source.read(self._chunk_size)
            check_cancelled(self._cancellation)
            if not chunk:
                self._eof = True
                return None
            self._chunk = bytes(chunk)
            self._pos = 0
        byte = self._chunk[self._pos]
        self._pos += 1
        self.bytes_read += 1
        return byte

    def unread(self, byte: int) -> None:
        """Queue *byte* to be returned by the next :meth:`read_byte`."""
        self._pending.append(byte)


class ByteWriter:
    """Chunk-buffered writer over a :class:`ByteSink`.

    Call :meth:`flush` once the run is finished; bytes still buffered are not
    delivered otherwise.
    """

    def __init__(
        self,
        sink: Any,
        *,
        chunk_size: int = DEFAULT_WRITE_CHUNK_SIZE,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._sink = as_sink(sink)
        self._chunk_size = chunk_size
        self._cancellation = cancellation
        self._buffer = bytearray()
        self.bytes_written = 0

    async def write(self, data: bytes) -> None:
        check_cancelled(self._cancellation)
        self._buffer += data
        self.bytes_written += len(data)
        if len(self._buffer) >= self._chunk_size:
            await self.flush()

    async def write_byte(self, byte: int) -> None:
        check_cancelled(self._cancellation)
        self._buffer.append(byte)
        self.bytes_written += 1
        if len(self._buffer) >= self._chunk_size:
            await self.flush()

    async def flush(self) -> None:
        if not self._buffer:
            return
        data = bytes(self._buffer)
        self._buffer.clear()
        await self._sink.write(data)
        check_cancelled(self._cancellation)
