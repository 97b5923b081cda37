"""Byte streams wired to remote command stdin/stdout/stderr."""

from __future__ import annotations

import asyncio
import sys
from typing import AsyncIterator, BinaryIO, Protocol


class ByteSink(Protocol):
    """Anything a remote command's output can be written to."""

    async def write(self, data: bytes) -> None: ...


class FileSink:
    """Sink over a binary file object (local file, console buffer)."""

    def __init__(self, fileobj: BinaryIO, *, flush: bool = False) -> None:
        self._fileobj = fileobj
        self._flush = flush
        self.bytes_written = 0

    async def write(self, data: bytes) -> None:
        self._fileobj.write(data)
        self.bytes_written += len(data)
        if self._flush:
            self._fileobj.flush()


def stdout_sink() -> FileSink:
    return FileSink(sys.stdout.buffer, flush=True)


def stderr_sink() -> FileSink:
    return FileSink(sys.stderr.buffer, flush=True)


class BytePipe:
    """In-memory pipe with one writer end and one reader end.

    Capacity is `max_chunks` chunks: `write` blocks while the pipe is full
    and `read` blocks while it is empty, so memory is bounded by the
    chunk count, not by the amount of data transferred.

    `close()` marks end-of-stream from the writer side. It never blocks
    and may be called any number of times; chunks already written are
    still delivered before the reader sees EOF.

    `close_reader()` is the reader side going away: buffered chunks are
    dropped, blocked writers are released and later writes are discarded.
    """

    def __init__(self, max_chunks: int = 16) -> None:
        if max_chunks < 1:
            raise ValueError("max_chunks must be >= 1")
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=max_chunks)
        self._closed = False
        self._reader_closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise BrokenPipeError("write to closed pipe")
        if not data or self._reader_closed:
            return
        await self._queue.put(bytes(data))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            # Wakes a reader blocked on an empty queue
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # Reader is not blocked; it sees EOF once the queue drains
            pass

    def close_reader(self) -> None:
        self._reader_closed = True
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break

    async def read(self) -> bytes:
        """Return the next chunk, or b"" at end-of-stream."""
        if self._closed and self._queue.empty():
            return b""
        chunk = await self._queue.get()
        if chunk is None:
            return b""
        return chunk

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk


class BufferSink:
    """Keeps the last `limit` bytes written (for error messages and tests)."""

    def __init__(self, limit: int = 64 * 1024) -> None:
        self._limit = limit
        self._buffer = bytearray()

    async def write(self, data: bytes) -> None:
        self._buffer.extend(data)
        if len(self._buffer) > self._limit:
            del self._buffer[: len(self._buffer) - self._limit]

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="replace")
