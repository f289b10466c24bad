import os

import pytest
from pydantic import ValidationError

from arena_live.config import ArenaLiveConfig, Identity, load_identity
from arena_live.exceptions import ConfigurationException

ENV_VARS = [
    "ARENA_LIVE_SERVER_URL",
    "ARENA_LIVE_SOCKETIO_PATH",
    "ARENA_LIVE_TRANSPORTS",
    "ARENA_LIVE_CONNECT_TIMEOUT",
    "ARENA_LIVE_RECONNECTION_ATTEMPTS",
    "ARENA_LIVE_RECONNECTION_DELAY",
    "ARENA_LIVE_RECONNECTION_DELAY_MAX",
    "ARENA_LIVE_LOG_LEVEL",
    "ARENA_LIVE_USER_ID",
    "ARENA_LIVE_TOKEN",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No ARENA_LIVE_* variables and no .env file in reach. Changes to os.environ are undone."""
    monkeypatch.setattr(os, "environ", os.environ.copy())
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestArenaLiveConfig:

    def test_defaults(self, clean_env):
        config = ArenaLiveConfig.from_env()

        assert config.server_url == "http://localhost:5100"
        assert config.socketio_path == "socket.io"
        assert config.transports == ["websocket", "polling"]
        assert config.reconnection_attempts == 0

    def test_from_env(self, clean_env):
        clean_env.setenv("ARENA_LIVE_SERVER_URL", "https://arena.example.com")
        clean_env.setenv("ARENA_LIVE_TRANSPORTS", "polling, websocket")
        clean_env.setenv("ARENA_LIVE_CONNECT_TIMEOUT", "3.5")
        clean_env.setenv("ARENA_LIVE_RECONNECTION_ATTEMPTS", "4")
        clean_env.setenv("ARENA_LIVE_LOG_LEVEL", "DEBUG")

        config = ArenaLiveConfig.from_env()

        assert config.server_url == "https://arena.example.com"
        assert config.transports == ["polling", "websocket"]
        assert config.connect_timeout == 3.5
        assert config.reconnection_attempts == 4
        assert config.log_level == "DEBUG"

    def test_dotenv_file_is_read(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("ARENA_LIVE_SOCKETIO_PATH=live/socket.io\n")

        config = ArenaLiveConfig.from_env()

        assert config.socketio_path == "live/socket.io"

    def test_unknown_transport_is_rejected(self, clean_env):
        clean_env.setenv("ARENA_LIVE_TRANSPORTS", "websocket,carrier-pigeon")

        with pytest.raises(ConfigurationException) as exc_info:
            ArenaLiveConfig.from_env()

        assert "carrier-pigeon" in exc_info.value.message

    def test_bad_number_is_rejected(self, clean_env):
        clean_env.setenv("ARENA_LIVE_CONNECT_TIMEOUT", "soon")

        with pytest.raises(ConfigurationException):
            ArenaLiveConfig.from_env()

    def test_empty_transports_rejected(self):
        with pytest.raises(ValidationError):
            ArenaLiveConfig(transports=[])


@pytest.mark.unit
class TestIdentity:

    def test_load_identity(self, clean_env):
        clean_env.setenv("ARENA_LIVE_USER_ID", "u1")
        clean_env.setenv("ARENA_LIVE_TOKEN", "secret")

        assert load_identity() == Identity(user_id="u1", token="secret")

    def test_incomplete_identity(self, clean_env):
        clean_env.setenv("ARENA_LIVE_USER_ID", "u1")

        assert load_identity() is None

    def test_identity_requires_values(self):
        with pytest.raises(ValidationError):
            Identity(user_id="", token="t")
