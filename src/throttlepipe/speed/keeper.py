"""
Speed Keeper

Design Decision: Throttle Policy
================================

Options Considered:
1. Fixed sleep per chunk (chunk_size / rate)
   - Simple, but drifts: I/O time is never accounted for

2. Token bucket
   - Smooth, but needs a refill clock and a bucket size to tune

3. Catch-up against the global start time
   - Pause = (time the bytes *should* have taken) - (time actually elapsed)
   - Bursts are absorbed by a longer next pause, no drift

Decision: Catch-up throttle
- target = transferred * 1000 // rate  (milliseconds)
- delay  = max(0, target - elapsed)
- A transfer running behind the target rate is never sped up; the keeper
  only holds back excess speed.

Ownership
=========
The byte count lives inside the keeper task. Other components talk to it
through its inbox (request + reply future), so there is exactly one writer
(the pipe, through `update`) and readers only ever see snapshots.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..config import POLL_INTERVAL
from ..errors import PipeCancelled
from ..signals import receive

logger = logging.getLogger(__name__)

NANOSECONDS = 1_000_000_000

Clock = Callable[[], int]


@dataclass(frozen=True)
class TransferSnapshot:
    """Point-in-time view of a transfer, as rendered by the monitor."""
    transferred: int
    total_size: int
    speed: int  # bytes/second
    elapsed_ns: int

    @property
    def percent(self) -> Optional[int]:
        """Whole percent complete, or None when the total is unknown."""
        if self.total_size <= 0:
            return None
        return self.transferred * 100 // self.total_size


@dataclass
class TransferState:
    """
    Counters and rate math for one transfer.

    Times are integer nanoseconds from `clock` (monotonic by default).
    """
    start_time: int
    target_rate: int = 0  # bytes/second, 0 = unlimited
    total_size: int = 0  # 0 = unknown
    transferred: int = 0
    clock: Clock = time.monotonic_ns

    def elapsed_ns(self) -> int:
        return self.clock() - self.start_time

    def update(self, new_total: int):
        """Record a new cumulative byte count."""
        if new_total < self.transferred:
            raise ValueError(
                f"Transferred count cannot decrease ({self.transferred} -> {new_total})"
            )
        self.transferred = new_total

    def throttle_delay(self) -> float:
        """
        Seconds to pause so the average rate stays at or below target.

        Returns 0 when unlimited or when the transfer is behind schedule.
        """
        if self.target_rate <= 0:
            return 0.0

        target_ms = self.transferred * 1000 // self.target_rate
        elapsed_ms = self.elapsed_ns() / 1_000_000
        wait_ms = target_ms - elapsed_ms
        logger.debug(f" target={target_ms}ms current={elapsed_ms:.3f}ms")

        if wait_ms <= 0:
            return 0.0
        return wait_ms / 1000

    def current_speed(self) -> int:
        """Average bytes/second since start; 0 before any time has passed."""
        return self._speed(self.elapsed_ns())

    def _speed(self, elapsed: int) -> int:
        if elapsed <= 0:
            return 0
        return self.transferred * NANOSECONDS // elapsed

    def snapshot(self) -> TransferSnapshot:
        elapsed = self.elapsed_ns()
        return TransferSnapshot(
            transferred=self.transferred,
            total_size=self.total_size,
            speed=self._speed(elapsed),
            elapsed_ns=elapsed,
        )


class KeeperRequest(Enum):
    """Messages understood by the speed keeper."""
    UPDATE = "UPDATE"
    THROTTLE_DELAY = "THROTTLE_DELAY"
    CURRENT_SPEED = "CURRENT_SPEED"
    SNAPSHOT = "SNAPSHOT"


class SpeedKeeper:
    """
    Task that owns the transfer counter and answers rate questions.

    Usage:
        keeper = SpeedKeeper(cancelled, target_rate=10240, total_size=size)
        task = asyncio.create_task(keeper.run())
        await keeper.update(4096)
        await asyncio.sleep(await keeper.throttle_delay())
    """

    def __init__(self, cancelled: asyncio.Event, target_rate: int = 0,
                 total_size: int = 0, start_time: Optional[int] = None,
                 clock: Clock = time.monotonic_ns,
                 poll_interval: float = POLL_INTERVAL):
        self.cancelled = cancelled
        self.poll_interval = poll_interval
        self._state = TransferState(
            start_time=clock() if start_time is None else start_time,
            target_rate=target_rate,
            total_size=total_size,
            clock=clock,
        )
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def target_rate(self) -> int:
        return self._state.target_rate

    @property
    def total_size(self) -> int:
        return self._state.total_size

    async def run(self):
        """Serve requests until cancelled, then answer whatever is still queued."""
        logger.debug(f"Speed keeper started (rate={self.target_rate} B/s, "
                     f"size={self.total_size})")
        try:
            while True:
                message = await receive(self._inbox, self.cancelled, self.poll_interval)
                if message is None:
                    break
                self._handle(*message)
        finally:
            self._closed = True
            while not self._inbox.empty():
                self._handle(*self._inbox.get_nowait())
            logger.debug(f"Speed keeper stopped at {self._state.transferred:,} bytes")

    def _handle(self, request: KeeperRequest, payload: Any, reply: asyncio.Future):
        if reply.done():
            return
        try:
            if request is KeeperRequest.UPDATE:
                self._state.update(payload)
                result = None
            elif request is KeeperRequest.THROTTLE_DELAY:
                result = self._state.throttle_delay()
            elif request is KeeperRequest.CURRENT_SPEED:
                result = self._state.current_speed()
            else:
                result = self._state.snapshot()
        except ValueError as e:
            reply.set_exception(e)
        else:
            reply.set_result(result)

    async def _call(self, request: KeeperRequest, payload: Any = None) -> Any:
        if self._closed:
            raise PipeCancelled(f"Speed keeper is stopped ({request.value})")

        reply = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait((request, payload, reply))
        return await reply

    # === Requests ===

    async def update(self, new_total: int):
        """Record the cumulative number of bytes written so far."""
        await self._call(KeeperRequest.UPDATE, new_total)

    async def throttle_delay(self) -> float:
        """Seconds the pipe must wait before accepting the next chunk."""
        return await self._call(KeeperRequest.THROTTLE_DELAY)

    async def current_speed(self) -> int:
        """Average transfer speed in bytes/second."""
        return await self._call(KeeperRequest.CURRENT_SPEED)

    async def snapshot(self) -> TransferSnapshot:
        """Copy of the current transfer state."""
        return await self._call(KeeperRequest.SNAPSHOT)

    def final_snapshot(self) -> TransferSnapshot:
        """State after the keeper has stopped; only valid once `run` returned."""
        if not self._closed:
            raise RuntimeError("Speed keeper is still running")
        return self._state.snapshot()
