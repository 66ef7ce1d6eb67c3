"""Shared pytest fixtures for all tests."""

import io

import pytest

from throttlepipe.config import Options


SHORT_CONTENT = b"this is a test file.\n"


class FakeClock:
    """Monotonic nanosecond clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float):
        self.now += int(seconds * 1_000_000_000)


@pytest.fixture
def clock():
    """
    Create a controllable clock.

    Returns:
        FakeClock starting at 0 ns
    """
    return FakeClock()


@pytest.fixture
def short_content():
    """A single-line input shorter than one block."""
    return SHORT_CONTENT


@pytest.fixture
def long_content():
    """
    Create an input spanning several blocks.

    Returns:
        The short line doubled ten times (about 21 KB)
    """
    content = SHORT_CONTENT
    for _ in range(10):
        content += content
    return content


@pytest.fixture
def silent_options():
    """Options for a silent, unlimited run with fast polling."""
    return Options(silent=True, tick_interval=0.01, poll_interval=0.01)


@pytest.fixture
def make_options():
    """
    Build Options with fast polling defaults.

    Returns:
        Factory accepting Options keyword overrides
    """
    def factory(**kwargs):
        kwargs.setdefault('tick_interval', 0.01)
        kwargs.setdefault('poll_interval', 0.01)
        return Options(**kwargs)
    return factory


@pytest.fixture
def display():
    """In-memory display sink."""
    return io.BytesIO()


@pytest.fixture
def sample_file(tmp_path, long_content):
    """
    Create an input file on disk.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the file
    """
    file_path = tmp_path / 'input.txt'
    file_path.write_bytes(long_content)
    return file_path
