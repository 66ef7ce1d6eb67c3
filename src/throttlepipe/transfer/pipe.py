"""
Throttled Pipe - Main Controller

This is the orchestrator that wires all components together:
- ChunkReader pulls blocks from the input
- SpeedKeeper tracks bytes written and computes throttle delays
- Monitor renders progress to the display device
- A ticker requests a progress render every tick interval

Event Loop
==========
```
 Reader --CHUNK/END/ERROR--+
                           +--> inbox --> ThrottledPipe --> output
 Ticker --------TICK-------+                  |   ^
                                    update    |   | delay
                                              v   |
                                           SpeedKeeper
                                              ^
                                   snapshot   |
                                           Monitor <-- render / echo
```

Per chunk: write, echo (optional), update keeper, release reader, then
wait out the throttle delay. Shutdown always sets the shared cancellation
event and gathers every task before returning.
"""

import asyncio
import inspect
import logging
from typing import Any, BinaryIO, Optional

from ..config import Options
from ..errors import PipeCancelled, PipeError, WriteError
from ..monitor import Monitor, MonitorMode, create_display
from ..signals import receive, sleep_unless_cancelled
from ..speed import SpeedKeeper, TransferSnapshot
from .events import Chunk, PipeEvent, TICK
from .reader import ChunkReader

logger = logging.getLogger(__name__)


def select_mode(options: Options, size: int) -> MonitorMode:
    """
    Pick the monitor mode for a run.

    Graph is applied after silent, so it wins when both are set. Graph
    needs a known total size and falls back to standard without one.
    """
    mode = MonitorMode.STANDARD
    if options.silent:
        mode = MonitorMode.SILENT
    if options.graph:
        if size > 0:
            mode = MonitorMode.GRAPH
        else:
            logger.info("Graph mode needs a known input size; using standard progress")
    return mode


async def write_chunk(sink: Any, data: bytes):
    """Write to a plain or aiofiles sink."""
    result = sink.write(data)
    if inspect.isawaitable(result):
        await result


async def flush_sink(sink: Any):
    flush = getattr(sink, 'flush', None)
    if flush is None:
        return
    result = flush()
    if inspect.isawaitable(result):
        await result


class ThrottledPipe:
    """
    Copies a source to a sink at a bounded rate while reporting progress.

    Usage:
        pipe = ThrottledPipe(source, sink, size, options)
        transferred = await pipe.run()
    """

    def __init__(self, source: Any, sink: Any, size: int, options: Options,
                 display: Optional[BinaryIO] = None, width: Optional[int] = None):
        """
        Initialize a pipe.

        Args:
            source: Binary input (file object or aiofiles handle)
            sink: Binary output (file object or aiofiles handle)
            size: Expected input size in bytes, 0 if unknown
            options: Run options
            display: Display sink to use instead of opening `options.tty`
            width: Graph bar width to use instead of probing the terminal
        """
        self.source = source
        self.sink = sink
        self.size = size
        self.options = options
        self.mode = select_mode(options, size)

        self.cancelled = asyncio.Event()
        self.inbox: asyncio.Queue = asyncio.Queue()

        # Initialize components
        self.reader = ChunkReader(
            source, self.inbox, self.cancelled,
            block_size=options.block_size,
            poll_interval=options.poll_interval,
        )
        self.keeper = SpeedKeeper(
            self.cancelled,
            target_rate=options.rate,
            total_size=size,
            poll_interval=options.poll_interval,
        )
        self.monitor = Monitor(
            self.keeper,
            create_display(self.mode, options.tty, sink=display, width=width),
            self.cancelled,
            poll_interval=options.poll_interval,
        )

        # State
        self.transferred = 0
        self.chunks_written = 0
        self.ticks_skipped = 0
        self._tick_pending = False
        self._tasks = []
        self._reader_task: Optional[asyncio.Task] = None

    async def run(self) -> int:
        """
        Run the transfer to completion.

        Returns:
            Number of bytes written to the sink

        Raises:
            ReadError: if the input fails mid-transfer
            WriteError: if the output rejects a write or the final flush
        """
        logger.info(f"Starting pipe (rate={self.options.rate or 'unlimited'}, "
                    f"size={self.size or 'unknown'}, mode={self.mode.value})")

        self._reader_task = asyncio.create_task(self.reader.run(), name='reader')
        self._tasks = [
            asyncio.create_task(self.keeper.run(), name='speed-keeper'),
            asyncio.create_task(self.monitor.run(), name='monitor'),
            self._reader_task,
            asyncio.create_task(self._tick(), name='ticker'),
        ]

        error: Optional[PipeError] = None
        try:
            error = await self._event_loop()
        except WriteError as e:
            error = e
        finally:
            flush_error = await self._shutdown()

        error = error or flush_error
        if error is not None:
            raise error

        logger.info(f"Pipe finished: {self.transferred:,} bytes in "
                    f"{self.chunks_written} chunks")
        return self.transferred

    def cancel(self):
        """Stop the transfer at the next opportunity."""
        self.cancelled.set()

    def snapshot(self) -> TransferSnapshot:
        """Final transfer state; valid after `run` has returned."""
        return self.keeper.final_snapshot()

    async def _event_loop(self) -> Optional[PipeError]:
        """Multiplex reader, ticker and cancellation until the stream ends."""
        while True:
            message = await receive(self.inbox, self.cancelled, self.options.poll_interval)
            if message is None:
                logger.debug("Pipe cancelled")
                return None

            if message.type is PipeEvent.CHUNK:
                await self._transfer(message.chunk)

            elif message.type is PipeEvent.TICK:
                self._tick_pending = False
                self.monitor.request_progress()

            elif message.type is PipeEvent.END_OF_STREAM:
                await self.monitor.render()
                return None

            elif message.type is PipeEvent.ERROR:
                return message.error

    async def _transfer(self, chunk: Chunk):
        """Handle one chunk: write, echo, count, release reader, throttle."""
        try:
            await write_chunk(self.sink, chunk.data)
        except OSError as e:
            logger.error(f"File Write Error: {e}")
            raise WriteError(f"File Write Error: {e}") from e
        self.transferred += chunk.length
        self.chunks_written += 1

        if self.options.echo:
            await self.monitor.echo(chunk.data)

        try:
            await self.keeper.update(self.transferred)
            self.reader.proceed()
            delay = await self.keeper.throttle_delay()
        except PipeCancelled:
            # Cancelled while the chunk was being written; the loop stops next
            logger.debug("Speed keeper stopped before the chunk was counted")
            return
        if delay > 0:
            logger.debug(f"Sleep {delay:.3f}s")
            await sleep_unless_cancelled(delay, self.cancelled)

    async def _tick(self):
        """Post a TICK to the inbox every tick interval, at most one pending."""
        while await sleep_unless_cancelled(self.options.tick_interval, self.cancelled):
            if self._tick_pending:
                self.ticks_skipped += 1
                continue
            self._tick_pending = True
            self.inbox.put_nowait(TICK)

    async def _shutdown(self) -> Optional[WriteError]:
        """
        Cancel every task and wait for all of them to finish.

        Returns:
            WriteError if the final flush failed, else None
        """
        self.cancelled.set()

        # The reader may be parked inside a blocking read; nothing else will wake it
        if not self._reader_task.done():
            self._reader_task.cancel()

        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Task {task.get_name()} failed: {result}")

        logger.debug(f"All pipe tasks stopped ({self.ticks_skipped} ticks skipped)")

        try:
            await flush_sink(self.sink)
        except OSError as e:
            logger.error(f"File Write Error: {e}")
            return WriteError(f"File Write Error: {e}")
        return None


async def limited_pipe(source: Any, sink: Any, size: int, options: Options,
                       display: Optional[BinaryIO] = None,
                       width: Optional[int] = None) -> int:
    """Copy `source` to `sink` under `options`; returns bytes transferred."""
    pipe = ThrottledPipe(source, sink, size, options, display=display, width=width)
    return await pipe.run()
