"""Unit tests for the chunk reader."""

import asyncio
import io

import pytest

from throttlepipe.errors import ReadError
from throttlepipe.transfer.events import PipeEvent
from throttlepipe.transfer.reader import ChunkReader


class FailingSource:
    """Returns one block, then fails."""

    def __init__(self, first: bytes):
        self.first = first

    def read(self, size):
        if self.first:
            data, self.first = self.first, b''
            return data
        raise OSError(5, "Input/output error")


class AsyncSource:
    """Source with an awaitable read, like an aiofiles handle."""

    def __init__(self, data: bytes):
        self.buffer = io.BytesIO(data)

    async def read(self, size):
        await asyncio.sleep(0)
        return self.buffer.read(size)


async def next_message(inbox):
    return await asyncio.wait_for(inbox.get(), timeout=1.0)


class TestChunkReader:
    """Test chunking and the continue handshake."""

    @pytest.mark.asyncio
    async def test_waits_for_proceed_between_chunks(self):
        inbox = asyncio.Queue()
        cancelled = asyncio.Event()
        reader = ChunkReader(io.BytesIO(b"x" * 4096 * 2 + b"tail"), inbox, cancelled,
                             poll_interval=0.01)
        task = asyncio.create_task(reader.run())

        message = await next_message(inbox)
        assert message.type is PipeEvent.CHUNK
        assert message.chunk.length == 4096

        # No read-ahead while the first chunk is unreleased
        await asyncio.sleep(0.05)
        assert inbox.empty()
        assert reader.chunks_read == 1
        assert reader.in_flight == 1

        reader.proceed()
        assert (await next_message(inbox)).chunk.length == 4096
        reader.proceed()
        last = await next_message(inbox)
        assert last.chunk.data == b"tail"

        # The short final chunk still waits for its continue signal
        await asyncio.sleep(0.05)
        assert inbox.empty()
        reader.proceed()

        assert (await next_message(inbox)).type is PipeEvent.END_OF_STREAM
        await asyncio.wait_for(task, timeout=1.0)
        assert reader.bytes_read == 4096 * 2 + 4
        assert reader.in_flight == 0

    @pytest.mark.asyncio
    async def test_empty_source_ends_immediately(self):
        inbox = asyncio.Queue()
        reader = ChunkReader(io.BytesIO(b""), inbox, asyncio.Event())

        await reader.run()

        assert (await next_message(inbox)).type is PipeEvent.END_OF_STREAM
        assert reader.chunks_read == 0

    @pytest.mark.asyncio
    async def test_custom_block_size(self):
        inbox = asyncio.Queue()
        reader = ChunkReader(io.BytesIO(b"abcdefg"), inbox, asyncio.Event(), block_size=3)
        task = asyncio.create_task(reader.run())

        chunks = []
        while True:
            message = await next_message(inbox)
            if message.type is PipeEvent.END_OF_STREAM:
                break
            chunks.append(message.chunk.data)
            reader.proceed()

        await task
        assert chunks == [b"abc", b"def", b"g"]

    @pytest.mark.asyncio
    async def test_awaitable_source(self):
        inbox = asyncio.Queue()
        reader = ChunkReader(AsyncSource(b"async data"), inbox, asyncio.Event())
        task = asyncio.create_task(reader.run())

        assert (await next_message(inbox)).chunk.data == b"async data"
        reader.proceed()
        assert (await next_message(inbox)).type is PipeEvent.END_OF_STREAM
        await task

    @pytest.mark.asyncio
    async def test_read_error_is_reported(self):
        inbox = asyncio.Queue()
        reader = ChunkReader(FailingSource(b"ok"), inbox, asyncio.Event())
        task = asyncio.create_task(reader.run())

        assert (await next_message(inbox)).chunk.data == b"ok"
        reader.proceed()
        message = await next_message(inbox)
        await task

        assert message.type is PipeEvent.ERROR
        assert isinstance(message.error, ReadError)
        assert message.error.exit_code == 9

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_stops_without_end_of_stream(self):
        inbox = asyncio.Queue()
        cancelled = asyncio.Event()
        reader = ChunkReader(io.BytesIO(b"a" * 10000), inbox, cancelled, poll_interval=0.01)
        task = asyncio.create_task(reader.run())

        await next_message(inbox)
        cancelled.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert inbox.empty()
        assert reader.chunks_read == 1
