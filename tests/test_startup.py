"""
Tests for startup dependency checks.
"""

import json
from unittest.mock import Mock

import pytest

from slackagent.startup import (
    StartupCheckError,
    check_agent_cli_settings,
    check_data_directory,
    check_required_environment,
    check_session_store,
    run_all_startup_checks,
)


class TestStartupCheckError:
    """Tests for the error type."""

    def test_str_includes_hint(self):
        error = StartupCheckError("Something failed", "Try this")

        text = str(error)
        assert "STARTUP CHECK FAILED" in text
        assert "Something failed" in text
        assert "Hint: Try this" in text


class TestIndividualChecks:
    """Tests for each check."""

    def test_environment_passes_with_credentials(self, settings):
        check_required_environment(settings)

    def test_environment_lists_missing(self, settings):
        settings.anthropic_api_key = ""

        with pytest.raises(StartupCheckError) as exc_info:
            check_required_environment(settings)

        assert "ANTHROPIC_API_KEY" in exc_info.value.message

    def test_data_directory_is_created(self, settings):
        check_data_directory(settings)

        assert settings.database_path.parent.is_dir()

    def test_data_directory_not_creatable(self, settings, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        settings.session_db_path = str(blocker / "sub" / "sessions.db")

        with pytest.raises(StartupCheckError):
            check_data_directory(settings)

    def test_session_store(self, store):
        check_session_store(store)

    def test_session_store_unreachable(self):
        store = Mock()
        store.check_connection.return_value = False

        with pytest.raises(StartupCheckError):
            check_session_store(store)

    def test_cli_settings_written_when_enabled(self, settings, tmp_path):
        settings.agent_configure_cli_settings = True

        check_agent_cli_settings(settings, home=tmp_path)

        data = json.loads((tmp_path / ".claude" / "settings.json").read_text())
        assert data["forceLoginMethod"] == "console"

    def test_cli_settings_skipped_when_disabled(self, settings, tmp_path):
        check_agent_cli_settings(settings, home=tmp_path)

        assert not (tmp_path / ".claude").exists()


class TestRunAllStartupChecks:
    """Tests for the combined run."""

    def test_all_pass(self, settings, store):
        metrics = run_all_startup_checks(settings, store)

        assert metrics.checks_passed is True
        assert metrics.total_duration_ms is not None

    def test_failure_propagates(self, settings, store):
        settings.slack_bot_token = ""

        with pytest.raises(StartupCheckError):
            run_all_startup_checks(settings, store)
