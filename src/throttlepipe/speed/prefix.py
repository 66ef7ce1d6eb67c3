"""
Binary Prefixes

Converts between raw byte counts and human-scaled strings using binary
(IEC) multipliers: K = 2**10, M = 2**20, ... Y = 2**80.

Accepted size grammar:
```
<digits>[<prefix>[i]][B]      e.g.  512   10K   5Mi   1KiB   2GB
```
"""

import re
from typing import Tuple

from ..errors import ParameterError

PREFIXES = ['', 'K', 'M', 'G', 'T', 'P', 'E', 'Z', 'Y']

# prefix -> multiplier, with the "Ki" style aliases
MULTIPLIERS = {p: 1 << (10 * i) for i, p in enumerate(PREFIXES)}
MULTIPLIERS.update({p + 'i': m for p, m in MULTIPLIERS.items() if p})

_SIZE_RE = re.compile(r'^(\d+)([KMGTPEZY]i?)?B?$')


def to_binary_prefix(n: int) -> Tuple[float, str]:
    """
    Scale a byte count to the largest prefix not exceeding it.

    Returns:
        (value, prefix) tuple, e.g. 1024 -> (1.0, "K"), 0 -> (0.0, "")
    """
    prefix = ''
    for p in PREFIXES:
        if n < MULTIPLIERS[p]:
            break
        prefix = p
    return n / MULTIPLIERS[prefix], prefix


def format_binary_prefix(n: int) -> str:
    """Format a byte count as e.g. "1.5M"."""
    value, prefix = to_binary_prefix(n)
    return f"{value:.1f}{prefix}"


def parse_binary_prefix(text: str) -> int:
    """
    Parse a size string into a byte count.

    Raises:
        ParameterError: if the string does not match the size grammar
    """
    match = _SIZE_RE.match(text.strip())
    if not match:
        raise ParameterError(f"Parse String error: {text!r}")

    number, unit = match.groups()
    return int(number) * MULTIPLIERS[unit or '']
