"""
Configuration Management

Handles loading pipe settings from environment variables and config files.
Per-run choices (rate, silent, graph, echo, input file) come from the
command line and are frozen into an Options instance before the pipe starts.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ParameterError

logger = logging.getLogger(__name__)

# Bytes read per step
BLOCK_SIZE = 4096

# Progress tick interval (seconds)
TICK_INTERVAL = 0.05

# How often idle loops re-check the cancellation event (seconds)
POLL_INTERVAL = 0.1

DEFAULT_TTY = '/dev/tty'


def _env(name: str, default, cast):
    """Read one THROTTLEPIPE_* variable, converting it with `cast`."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError as e:
        raise ParameterError(f"Config Error ({name}={value!r}) {e}") from e


def check_positive(name: str, value, kinds=(int, float)):
    """
    Reject sizes and intervals the pipe cannot run with.

    A zero block size would read as end of input, and a zero interval
    would never yield to the event loop.
    """
    if isinstance(value, bool) or not isinstance(value, kinds) or value <= 0:
        raise ParameterError(f"Config Error ({name}={value!r}) must be a positive number")


@dataclass
class Config:
    """
    Pipe configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (THROTTLEPIPE_*)
    2. Config file (JSON)
    3. Default values
    """
    # Display
    tty: str = DEFAULT_TTY

    # Transfer
    block_size: int = BLOCK_SIZE
    tick_interval: float = TICK_INTERVAL
    poll_interval: float = POLL_INTERVAL

    # Logging
    log_level: str = 'WARNING'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        config.tty = os.getenv('THROTTLEPIPE_TTY', config.tty)
        config.block_size = _env('THROTTLEPIPE_BLOCK_SIZE', config.block_size, int)
        config.tick_interval = _env('THROTTLEPIPE_TICK_INTERVAL', config.tick_interval, float)
        config.poll_interval = _env('THROTTLEPIPE_POLL_INTERVAL', config.poll_interval, float)
        config.log_level = os.getenv('THROTTLEPIPE_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = json.load(f)
        except ValueError as e:
            raise ParameterError(f"Config Error ({path}) {e}") from e

        config = cls()
        config.tty = data.get('tty', config.tty)
        config.block_size = data.get('block_size', config.block_size)
        config.tick_interval = data.get('tick_interval', config.tick_interval)
        config.poll_interval = data.get('poll_interval', config.poll_interval)
        config.log_level = data.get('log_level', config.log_level)

        return config

    def validate(self):
        """Raises ParameterError if a value is unusable."""
        check_positive('block_size', self.block_size, int)
        check_positive('tick_interval', self.tick_interval)
        check_positive('poll_interval', self.poll_interval)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'tty': self.tty,
            'block_size': self.block_size,
            'tick_interval': self.tick_interval,
            'poll_interval': self.poll_interval,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = Config()

    if config_path and config_path.exists():
        config = Config.from_file(config_path)
        logger.debug(f"Loaded config from {config_path}")

    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in ['tty', 'block_size', 'tick_interval', 'poll_interval', 'log_level']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    config.validate()
    return config


def normalize_tty(device: str) -> str:
    """
    Map a device name or path onto /dev.

    "pts/3" and "/dev/pts/3" both become "/dev/3"; "tty" becomes "/dev/tty".
    """
    return '/dev/' + device.rsplit('/', 1)[-1]


@dataclass(frozen=True)
class Options:
    """Immutable per-run settings consumed when the pipe starts."""
    rate: int = 0  # bytes/second, 0 = unlimited
    tty: str = DEFAULT_TTY
    silent: bool = False
    graph: bool = False
    echo: bool = False
    filename: Optional[str] = None
    block_size: int = BLOCK_SIZE
    tick_interval: float = TICK_INTERVAL
    poll_interval: float = POLL_INTERVAL

    def __post_init__(self):
        if self.rate < 0:
            raise ParameterError(f"Parameter Error (rate:{self.rate}) must not be negative")
        check_positive('block_size', self.block_size, int)
        check_positive('tick_interval', self.tick_interval)
        check_positive('poll_interval', self.poll_interval)
