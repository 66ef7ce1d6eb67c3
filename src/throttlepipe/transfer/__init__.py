"""
Transfer Module - Chunked, Throttled Copy

Reads the input in fixed-size chunks and copies it to the output under
the speed keeper's control.
"""

from .events import Chunk, PipeEvent, PipeMessage
from .reader import ChunkReader
from .pipe import ThrottledPipe, limited_pipe, select_mode

__all__ = [
    'Chunk',
    'PipeEvent',
    'PipeMessage',
    'ChunkReader',
    'ThrottledPipe',
    'limited_pipe',
    'select_mode',
]
