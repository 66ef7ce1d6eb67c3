"""Unit tests for configuration loading."""

import json
from dataclasses import FrozenInstanceError

import pytest

from throttlepipe.config import (
    BLOCK_SIZE, TICK_INTERVAL, Config, Options, load_config, normalize_tty,
)
from throttlepipe.errors import ParameterError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment out of these tests."""
    for key in ['TTY', 'BLOCK_SIZE', 'TICK_INTERVAL', 'POLL_INTERVAL', 'LOG_LEVEL']:
        monkeypatch.delenv(f'THROTTLEPIPE_{key}', raising=False)


class TestConfigDefaults:
    """Test default values."""

    def test_defaults(self):
        config = Config()

        assert config.tty == '/dev/tty'
        assert config.block_size == BLOCK_SIZE == 4096
        assert config.tick_interval == TICK_INTERVAL == 0.05

    def test_options_are_frozen(self):
        options = Options(rate=1024)

        with pytest.raises(FrozenInstanceError):
            options.rate = 0


class TestConfigSources:
    """Test file and environment loading."""

    def test_from_missing_file_gives_defaults(self, tmp_path):
        assert Config.from_file(tmp_path / 'missing.json') == Config()

    def test_from_file(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'tty': '/dev/pts/1', 'block_size': 1024}))

        config = Config.from_file(path)

        assert config.tty == '/dev/pts/1'
        assert config.block_size == 1024
        assert config.tick_interval == TICK_INTERVAL

    def test_save_round_trip(self, tmp_path):
        path = tmp_path / 'config.json'
        config = Config(tty='/dev/pts/4', tick_interval=0.2, log_level='DEBUG')

        config.save(path)

        assert Config.from_file(path) == config

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'block_size': 1024, 'tty': '/dev/pts/1'}))
        monkeypatch.setenv('THROTTLEPIPE_BLOCK_SIZE', '8192')

        config = load_config(path)

        assert config.block_size == 8192
        assert config.tty == '/dev/pts/1'


class TestConfigValidation:
    """Test rejection of values the pipe cannot run with."""

    @pytest.mark.parametrize("key,value", [
        ("BLOCK_SIZE", "0"),
        ("BLOCK_SIZE", "-4096"),
        ("TICK_INTERVAL", "0"),
        ("POLL_INTERVAL", "-1"),
    ])
    def test_non_positive_env_value(self, monkeypatch, key, value):
        monkeypatch.setenv(f'THROTTLEPIPE_{key}', value)

        with pytest.raises(ParameterError, match=key.lower()):
            load_config()

    def test_unparseable_env_value(self, monkeypatch):
        monkeypatch.setenv('THROTTLEPIPE_BLOCK_SIZE', 'big')

        with pytest.raises(ParameterError, match="THROTTLEPIPE_BLOCK_SIZE"):
            load_config()

    def test_bad_file_value(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'tick_interval': 0}))

        with pytest.raises(ParameterError, match="tick_interval"):
            load_config(path)

    def test_wrong_type_in_file(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'block_size': "4096"}))

        with pytest.raises(ParameterError):
            load_config(path)

    def test_malformed_file(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text("{not json")

        with pytest.raises(ParameterError):
            load_config(path)

    @pytest.mark.parametrize("kwargs", [
        {"block_size": 0},
        {"block_size": -1},
        {"tick_interval": 0},
        {"poll_interval": 0.0},
        {"rate": -1},
    ])
    def test_options_reject_unusable_values(self, kwargs):
        with pytest.raises(ParameterError):
            Options(**kwargs)

class TestNormalizeTty:
    """Test display device names."""

    @pytest.mark.parametrize("device,expected", [
        ("tty", "/dev/tty"),
        ("/dev/tty", "/dev/tty"),
        ("ttys001", "/dev/ttys001"),
        ("/dev/pts/3", "/dev/3"),
    ])
    def test_mapped_under_dev(self, device, expected):
        assert normalize_tty(device) == expected
