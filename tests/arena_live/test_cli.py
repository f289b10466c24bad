import os

import pytest
from typer.testing import CliRunner

from arena_live.main import app

runner = CliRunner()


@pytest.fixture
def no_identity(monkeypatch, tmp_path):
    monkeypatch.setattr(os, "environ", os.environ.copy())
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ARENA_LIVE_USER_ID", raising=False)
    monkeypatch.delenv("ARENA_LIVE_TOKEN", raising=False)


@pytest.mark.unit
class TestCli:

    def test_watch_requires_identity(self, no_identity):
        result = runner.invoke(app, ["watch", "--room", "r1"])

        assert result.exit_code == 1
        assert "ARENA_LIVE_USER_ID" in result.output

    def test_challenge_requires_identity(self, no_identity):
        result = runner.invoke(app, ["challenge", "u-rival"])

        assert result.exit_code == 1

    def test_watch_requires_room(self, no_identity):
        result = runner.invoke(app, ["watch"])

        assert result.exit_code != 0

    def test_invalid_config_exits_cleanly(self, no_identity, monkeypatch):
        monkeypatch.setenv("ARENA_LIVE_USER_ID", "u1")
        monkeypatch.setenv("ARENA_LIVE_TOKEN", "secret")
        monkeypatch.setenv("ARENA_LIVE_TRANSPORTS", "carrier-pigeon")

        result = runner.invoke(app, ["watch", "--room", "r1"])

        assert result.exit_code == 1
        assert "carrier-pigeon" in result.output
