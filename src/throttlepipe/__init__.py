"""
throttlepipe - copy a stream at a bounded rate with live progress.
"""

from .config import Config, Options, load_config
from .transfer import ThrottledPipe, limited_pipe

__version__ = "0.1.0"

__all__ = [
    'Config',
    'Options',
    'load_config',
    'ThrottledPipe',
    'limited_pipe',
]
