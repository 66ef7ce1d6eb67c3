"""
Monitor Module - Progress Display

Renders transfer progress (text line or bar graph) to a display device.
"""

from .display import (
    MonitorMode, SilentDisplay, StandardDisplay, GraphDisplay,
    create_display, format_progress, bar_length,
)
from .monitor import Monitor

__all__ = [
    'MonitorMode',
    'SilentDisplay',
    'StandardDisplay',
    'GraphDisplay',
    'create_display',
    'format_progress',
    'bar_length',
    'Monitor',
]
