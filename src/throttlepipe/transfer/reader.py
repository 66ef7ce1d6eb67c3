"""
Chunk Reader

Design Decision: Backpressure
=============================

Options Considered:
| Strategy              | Pros                       | Cons                          |
|-----------------------|----------------------------|-------------------------------|
| Unbounded read-ahead  | Maximum throughput         | Memory grows with slow sinks  |
| Bounded queue (N)     | Smooths jitter             | N chunks in flight            |
| Rendezvous (N = 0)    | At most one chunk in flight| Reader idles during writes    |

Decision: Rendezvous
- The reader posts a chunk, then waits for `proceed()` from the pipe
- The pipe calls `proceed()` only after the chunk has been written
- A throttled pipe is slow on purpose, so read-ahead buys nothing

Block size: 4096 bytes (one page; the final block may be shorter).
"""

import asyncio
import inspect
import logging
from typing import Any

from ..config import BLOCK_SIZE, POLL_INTERVAL
from ..errors import ReadError
from ..signals import wait_signal
from .events import Chunk, PipeEvent, PipeMessage, END_OF_STREAM

logger = logging.getLogger(__name__)


async def read_block(source: Any, size: int) -> bytes:
    """
    Read up to `size` bytes from a binary source.

    Works with plain file objects and with aiofiles handles, whose
    `read` returns an awaitable.
    """
    data = source.read(size)
    if inspect.isawaitable(data):
        data = await data
    return data


class ChunkReader:
    """
    Reads fixed-size chunks from a source and hands them to the pipe.

    Features:
    - Fixed-size blocks (4096 bytes by default)
    - One chunk in flight at a time
    - Read errors are reported to the pipe, never retried
    """

    def __init__(self, source: Any, inbox: asyncio.Queue, cancelled: asyncio.Event,
                 block_size: int = BLOCK_SIZE, poll_interval: float = POLL_INTERVAL):
        self.source = source
        self.inbox = inbox
        self.cancelled = cancelled
        self.block_size = block_size
        self.poll_interval = poll_interval
        self._proceed = asyncio.Event()

        # Statistics
        self.chunks_read = 0
        self.chunks_released = 0
        self.bytes_read = 0

    @property
    def in_flight(self) -> int:
        """Chunks handed to the pipe but not yet released."""
        return self.chunks_read - self.chunks_released

    def proceed(self):
        """Continue signal: the last chunk has been written downstream."""
        self.chunks_released += 1
        self._proceed.set()

    async def run(self):
        """Read until end of source, error, or cancellation."""
        while not self.cancelled.is_set():
            try:
                data = await read_block(self.source, self.block_size)
            except OSError as e:
                logger.error(f"File Read Error: {e}")
                await self.inbox.put(PipeMessage(PipeEvent.ERROR, error=ReadError(
                    f"File Read Error: {e}"
                )))
                return

            if not data:
                break

            self.chunks_read += 1
            self.bytes_read += len(data)
            await self.inbox.put(PipeMessage(PipeEvent.CHUNK, chunk=Chunk(bytes(data))))

            if not await wait_signal(self._proceed, self.cancelled, self.poll_interval):
                logger.debug("Reader cancelled while waiting to proceed")
                return

        if not self.cancelled.is_set():
            logger.debug(f"End of input after {self.chunks_read} chunks, "
                         f"{self.bytes_read:,} bytes")
            await self.inbox.put(END_OF_STREAM)
