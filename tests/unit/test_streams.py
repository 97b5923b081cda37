"""Unit tests for byte streams."""

from __future__ import annotations

import asyncio
import io

import pytest

from lhc.streams import BufferSink, BytePipe, FileSink


class TestBytePipe:
    @pytest.mark.asyncio
    async def test_delivers_chunks_then_eof(self):
        pipe = BytePipe(max_chunks=4)
        await pipe.write(b"a")
        await pipe.write(b"b")
        pipe.close()

        assert [chunk async for chunk in pipe] == [b"a", b"b"]
        assert await pipe.read() == b""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        pipe = BytePipe()
        pipe.close()
        pipe.close()

        assert pipe.closed
        assert await pipe.read() == b""

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self):
        pipe = BytePipe()
        pipe.close()

        with pytest.raises(BrokenPipeError):
            await pipe.write(b"late")

    @pytest.mark.asyncio
    async def test_empty_writes_are_ignored(self):
        pipe = BytePipe()
        await pipe.write(b"")
        pipe.close()

        assert await pipe.read() == b""

    @pytest.mark.asyncio
    async def test_writer_blocks_when_full(self):
        pipe = BytePipe(max_chunks=1)
        await pipe.write(b"first")

        blocked = asyncio.create_task(pipe.write(b"second"))
        await asyncio.sleep(0)
        assert not blocked.done()

        assert await pipe.read() == b"first"
        await asyncio.wait_for(blocked, timeout=1)
        assert await pipe.read() == b"second"

    @pytest.mark.asyncio
    async def test_close_on_full_pipe_still_drains(self):
        pipe = BytePipe(max_chunks=1)
        await pipe.write(b"only")
        pipe.close()

        assert await pipe.read() == b"only"
        assert await pipe.read() == b""

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_reader(self):
        pipe = BytePipe()
        reader = asyncio.create_task(pipe.read())
        await asyncio.sleep(0)

        pipe.close()

        assert await asyncio.wait_for(reader, timeout=1) == b""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            BytePipe(max_chunks=0)


class TestSinks:
    @pytest.mark.asyncio
    async def test_file_sink_counts_bytes(self):
        buf = io.BytesIO()
        sink = FileSink(buf)
        await sink.write(b"abc")
        await sink.write(b"de")

        assert buf.getvalue() == b"abcde"
        assert sink.bytes_written == 5

    @pytest.mark.asyncio
    async def test_buffer_sink_keeps_tail(self):
        sink = BufferSink(limit=4)
        await sink.write(b"abcdef")

        assert sink.getvalue() == b"cdef"
        assert sink.text() == "cdef"


class TestReaderGone:
    @pytest.mark.asyncio
    async def test_close_reader_releases_blocked_writer(self):
        pipe = BytePipe(max_chunks=1)
        await pipe.write(b"first")
        writer = asyncio.create_task(pipe.write(b"second"))
        await asyncio.sleep(0)
        assert not writer.done()

        pipe.close_reader()

        await asyncio.wait_for(writer, timeout=1)

    @pytest.mark.asyncio
    async def test_writes_after_close_reader_are_discarded(self):
        pipe = BytePipe(max_chunks=1)
        pipe.close_reader()

        for _ in range(10):
            await asyncio.wait_for(pipe.write(b"x"), timeout=1)
