"""
Progress Monitor

Runs as its own task. It never keeps time on its own: every render is
requested by the pipe (periodic ticks and one final render at end of
stream), and every render asks the speed keeper for a fresh snapshot.
Echoed data shares the same queue as render requests so the display sees
data and progress lines in the order the pipe produced them.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from ..config import POLL_INTERVAL
from ..errors import PipeCancelled
from ..signals import receive
from ..speed.keeper import SpeedKeeper, TransferSnapshot
from .display import MonitorMode, SilentDisplay

logger = logging.getLogger(__name__)

# Pending requests before ticks start being dropped
QUEUE_SIZE = 16


class MonitorRequest(Enum):
    """Messages understood by the monitor."""
    PROGRESS = "PROGRESS"
    DATA = "DATA"


class Monitor:
    """
    Renders progress for a running pipe.

    Usage:
        monitor = Monitor(keeper, create_display(mode, tty), cancelled)
        task = asyncio.create_task(monitor.run())
        monitor.request_progress()       # fire and forget
        await monitor.echo(chunk.data)   # waits for queue space
        await monitor.render()           # waits until drawn
    """

    def __init__(self, keeper: SpeedKeeper, display: Any, cancelled: asyncio.Event,
                 poll_interval: float = POLL_INTERVAL):
        self.keeper = keeper
        self.display = display
        self.cancelled = cancelled
        self.poll_interval = poll_interval
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)

        # Last snapshot drawn, for callers that want to inspect progress
        self.last_snapshot: Optional[TransferSnapshot] = None
        self.renders = 0
        self.ticks_dropped = 0
        self._stopped = False

    @property
    def mode(self) -> MonitorMode:
        return self.display.mode

    @property
    def is_silent(self) -> bool:
        return isinstance(self.display, SilentDisplay)

    async def run(self):
        """Open the display, serve requests until cancelled, then close it."""
        self.display.open()
        try:
            while True:
                message = await receive(self._queue, self.cancelled, self.poll_interval)
                if message is None:
                    break
                await self._handle(*message)
        finally:
            self._stopped = True
            # Release anyone still waiting on a render that will not happen
            while not self._queue.empty():
                _, _, reply = self._queue.get_nowait()
                if reply is not None and not reply.done():
                    reply.set_result(None)
            self.display.close()
            logger.debug(f"Monitor stopped after {self.renders} renders "
                         f"({self.ticks_dropped} ticks dropped)")

    async def _handle(self, request: MonitorRequest, data: Optional[bytes],
                      reply: Optional[asyncio.Future]):
        try:
            if request is MonitorRequest.DATA:
                self.display.echo(data)
            else:
                await self._render()
        finally:
            if reply is not None and not reply.done():
                reply.set_result(None)

    async def _render(self):
        if self.is_silent:
            return
        try:
            snapshot = await self.keeper.snapshot()
        except PipeCancelled:
            logger.debug("Render skipped: speed keeper already stopped")
            return
        self.display.render(snapshot)
        self.last_snapshot = snapshot
        self.renders += 1

    # === Requests ===

    def request_progress(self) -> bool:
        """
        Ask for a render without waiting.

        Returns:
            False if the request was dropped because the monitor is behind
        """
        try:
            self._queue.put_nowait((MonitorRequest.PROGRESS, None, None))
            return True
        except asyncio.QueueFull:
            self.ticks_dropped += 1
            return False

    async def render(self):
        """Ask for a render and wait until it has been drawn."""
        if self._stopped:
            return
        reply = asyncio.get_running_loop().create_future()
        await self._queue.put((MonitorRequest.PROGRESS, None, reply))
        await reply

    async def echo(self, data: bytes):
        """Queue a copy of transferred data for the display."""
        if self.is_silent or self._stopped:
            return
        await self._queue.put((MonitorRequest.DATA, data, None))
