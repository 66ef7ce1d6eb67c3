"""
Cancellation-aware waiting.

Every task gets the same asyncio.Event as its cancellation token. Blocking
waits go through these helpers so that each loop re-checks the token at
least once per poll interval and stops without further I/O once it is set.
"""

import asyncio
from typing import Any, Optional

from .config import POLL_INTERVAL


async def receive(queue: asyncio.Queue, cancelled: asyncio.Event,
                  poll_interval: float = POLL_INTERVAL) -> Optional[Any]:
    """
    Wait for the next queued message.

    Returns:
        The message, or None once cancellation has been signalled
    """
    while not cancelled.is_set():
        try:
            return await asyncio.wait_for(queue.get(), timeout=poll_interval)
        except asyncio.TimeoutError:
            continue
    return None


async def wait_signal(signal: asyncio.Event, cancelled: asyncio.Event,
                      poll_interval: float = POLL_INTERVAL) -> bool:
    """
    Wait for `signal` to be set, then clear it.

    Returns:
        True if the signal arrived, False if cancelled first
    """
    while not cancelled.is_set():
        try:
            await asyncio.wait_for(signal.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            continue
        signal.clear()
        return True
    return False


async def sleep_unless_cancelled(delay: float, cancelled: asyncio.Event) -> bool:
    """
    Sleep for `delay` seconds, waking early on cancellation.

    Returns:
        True if the full delay elapsed, False if cancelled
    """
    if cancelled.is_set():
        return False
    if delay <= 0:
        return True
    try:
        await asyncio.wait_for(cancelled.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return True
    return False
