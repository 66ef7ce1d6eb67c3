"""
Speed Module - Rate Keeping and Byte Prefixes

Tracks bytes transferred, computes throttle delays, and converts byte
counts to and from binary-prefixed strings.
"""

from .keeper import SpeedKeeper, TransferState, TransferSnapshot
from .prefix import to_binary_prefix, format_binary_prefix, parse_binary_prefix

__all__ = [
    'SpeedKeeper',
    'TransferState',
    'TransferSnapshot',
    'to_binary_prefix',
    'format_binary_prefix',
    'parse_binary_prefix',
]
