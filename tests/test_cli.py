"""
Tests for CLI commands.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from slackagent.cli import app
from slackagent.config import Settings
from slackagent.sessions import SessionMetadata, SessionStore

runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary data directory."""
    monkeypatch.setenv("SESSION_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("LOG_FILE_ENABLED", "false")
    monkeypatch.setenv("LOG_CONSOLE_ENABLED", "false")
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-test")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "secret")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    return tmp_path


def seed_session(key: str) -> None:
    store = SessionStore.from_settings(Settings())
    store.initialize()
    store.get_or_create(key, SessionMetadata(team_id="T1", user_id="U1", channel_id="C1"))
    store.close()


class TestSessionsCommands:
    """Tests for the sessions sub-commands."""

    def test_stats_on_empty_store(self, cli_env):
        result = runner.invoke(app, ["sessions", "stats"])

        assert result.exit_code == 0
        assert "Total sessions: 0" in result.stdout

    def test_stats_counts_sessions(self, cli_env):
        seed_session("T1-C1-1.0")

        result = runner.invoke(app, ["sessions", "stats"])

        assert "Total sessions: 1" in result.stdout
        assert "Active (last hour): 1" in result.stdout

    def test_cleanup(self, cli_env):
        result = runner.invoke(app, ["sessions", "cleanup"])

        assert result.exit_code == 0
        assert "Evicted 0 session(s)" in result.stdout

    def test_delete_existing(self, cli_env):
        seed_session("T1-C1-1.0")

        result = runner.invoke(app, ["sessions", "delete", "T1-C1-1.0"])

        assert result.exit_code == 0
        assert "Deleted session" in result.stdout

    def test_delete_missing(self, cli_env):
        result = runner.invoke(app, ["sessions", "delete", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestServeCommand:
    """Tests for the serve command."""

    def test_missing_credentials_exit(self, cli_env, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "")

        result = runner.invoke(app, ["serve"])

        assert result.exit_code == 1
        assert "ANTHROPIC_API_KEY" in result.stdout

    def test_starts_uvicorn_with_app_factory(self, cli_env):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(app, ["serve", "--port", "4000"])

        assert result.exit_code == 0
        args, kwargs = mock_run.call_args
        assert args[0] == "slackagent.api.app:create_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 4000
        assert kwargs["timeout_graceful_shutdown"] >= 10
