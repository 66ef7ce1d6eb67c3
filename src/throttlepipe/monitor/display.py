"""
Progress Displays

Design Decision: Monitor Modes
==============================

The set of modes is fixed (silent, standard, graph) and chosen once at
startup, so each mode is a small class with the same four methods:

    open()            acquire the display sink
    render(snapshot)  draw one progress line
    echo(data)        copy transferred bytes to the sink
    close()           finish the line and release the sink

`create_display(mode, ...)` is the only place that maps a mode to a class.

Line format (standard):
```
\\r\\033[K[2026/10/17 12:00:00.123 UTC]\\t20480Bytes( 50%)\\t@ 10.0KBps
```
Graph mode appends `\\t[*****     ]` with a bar of half the terminal width.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Callable, Optional

from rich.console import Console

from ..speed.keeper import TransferSnapshot
from ..speed.prefix import to_binary_prefix

logger = logging.getLogger(__name__)

CLEAR_LINE = '\r\033[K'
BAR_CHAR = '*'

DisplayOpener = Callable[[str], BinaryIO]


class MonitorMode(Enum):
    """Progress display modes."""
    SILENT = "silent"
    STANDARD = "standard"
    GRAPH = "graph"


def format_timestamp(now: Optional[datetime] = None) -> str:
    """Format a time as `YYYY/MM/DD hh:mm:ss.mmm TZ` (naive times are taken as local)."""
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    return (f"{now.strftime('%Y/%m/%d %H:%M:%S')}."
            f"{now.microsecond // 1000:03d} {now.tzname()}")


def format_progress(snapshot: TransferSnapshot, now: Optional[datetime] = None) -> str:
    """Build the standard progress line (without the clear-line prefix)."""
    percent = snapshot.percent
    p = f"({percent:3d}%)" if percent is not None else ''
    speed, prefix = to_binary_prefix(snapshot.speed)
    return (f"[{format_timestamp(now)}]\t{snapshot.transferred}Bytes{p}"
            f"\t@ {speed:.1f}{prefix}Bps")


def bar_length(transferred: int, total_size: int, width: int) -> int:
    """Filled characters for a bar of `width` columns, clamped to [0, width]."""
    if total_size <= 0 or width <= 0:
        return 0
    return max(0, min(width, transferred * width // total_size))


def probe_width() -> int:
    """Terminal width in columns, as rich detects it."""
    return Console(stderr=True).width


def open_display(device: str) -> BinaryIO:
    """Open the display device for writing."""
    return open(device, 'wb')


class SilentDisplay:
    """Renders nothing and never touches a sink."""

    mode = MonitorMode.SILENT

    def open(self):
        pass

    def render(self, snapshot: TransferSnapshot):
        pass

    def echo(self, data: bytes):
        pass

    def close(self):
        pass


class StandardDisplay:
    """One self-overwriting progress line."""

    mode = MonitorMode.STANDARD

    def __init__(self, device: str, sink: Optional[BinaryIO] = None,
                 opener: DisplayOpener = open_display):
        self.device = device
        self.sink = sink
        self._opener = opener
        self._owns_sink = False

    def open(self):
        """
        Open the display device unless a sink was given.

        A device that cannot be opened is logged and leaves the display
        without a sink; the transfer itself is unaffected.
        """
        if self.sink is not None:
            return
        try:
            self.sink = self._opener(self.device)
            self._owns_sink = True
        except OSError as e:
            logger.warning(f"File Open Error device:{self.device} error:{e}")
            self.sink = None

    def _write(self, data: bytes):
        if self.sink is None:
            return
        try:
            self.sink.write(data)
            self.sink.flush()
        except OSError as e:
            logger.warning(f"Display write error device:{self.device} error:{e}")
            self.sink = None

    def line(self, snapshot: TransferSnapshot) -> str:
        return format_progress(snapshot)

    def render(self, snapshot: TransferSnapshot):
        self._write((CLEAR_LINE + self.line(snapshot)).encode('utf-8'))

    def echo(self, data: bytes):
        self._write(data)

    def close(self):
        self._write(b'\n')
        if self._owns_sink and self.sink is not None:
            self.sink.close()
            self.sink = None


class GraphDisplay(StandardDisplay):
    """Progress line followed by a fixed-width bar."""

    mode = MonitorMode.GRAPH

    def __init__(self, device: str, sink: Optional[BinaryIO] = None,
                 opener: DisplayOpener = open_display, width: Optional[int] = None):
        super().__init__(device, sink, opener)
        self.width = width

    def open(self):
        super().open()
        if self.width is None:
            # Probed once; the bar keeps this width for the whole run
            self.width = probe_width() // 2

    def line(self, snapshot: TransferSnapshot) -> str:
        filled = bar_length(snapshot.transferred, snapshot.total_size, self.width)
        bar = (BAR_CHAR * filled).ljust(self.width)
        return f"{format_progress(snapshot)}\t[{bar}]"


def create_display(mode: MonitorMode, device: str, sink: Optional[BinaryIO] = None,
                   opener: DisplayOpener = open_display, width: Optional[int] = None):
    """Build the display for a mode."""
    if mode is MonitorMode.SILENT:
        return SilentDisplay()
    if mode is MonitorMode.GRAPH:
        return GraphDisplay(device, sink, opener, width)
    return StandardDisplay(device, sink, opener)
