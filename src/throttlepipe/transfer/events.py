"""
Pipe Events

Everything the orchestrator reacts to arrives on a single inbox as a
PipeMessage. The reader posts CHUNK, END_OF_STREAM and ERROR; the ticker
posts TICK.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Chunk:
    """One block of bytes read from the input."""
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


class PipeEvent(Enum):
    """Orchestrator event types."""
    CHUNK = "CHUNK"
    TICK = "TICK"
    END_OF_STREAM = "END_OF_STREAM"
    ERROR = "ERROR"


@dataclass(frozen=True)
class PipeMessage:
    """A message on the orchestrator's inbox."""
    type: PipeEvent
    chunk: Optional[Chunk] = None
    error: Optional[Exception] = None


TICK = PipeMessage(PipeEvent.TICK)
END_OF_STREAM = PipeMessage(PipeEvent.END_OF_STREAM)
