"""
Tests for Claude CLI user settings.
"""

import json

from slackagent.agent.cli_settings import FORCED_SETTINGS, ensure_cli_user_settings


class TestEnsureCliUserSettings:
    """Tests for ensure_cli_user_settings."""

    def test_creates_settings_file(self, tmp_path):
        path = ensure_cli_user_settings(tmp_path)

        assert path == tmp_path / ".claude" / "settings.json"
        assert json.loads(path.read_text())["forceLoginMethod"] == "console"

    def test_preserves_existing_keys(self, tmp_path):
        settings_dir = tmp_path / ".claude"
        settings_dir.mkdir()
        (settings_dir / "settings.json").write_text(
            json.dumps({"theme": "dark", "forceLoginMethod": "claudeai"})
        )

        path = ensure_cli_user_settings(tmp_path)

        data = json.loads(path.read_text())
        assert data["theme"] == "dark"
        assert data["forceLoginMethod"] == "console"

    def test_replaces_unreadable_file(self, tmp_path):
        settings_dir = tmp_path / ".claude"
        settings_dir.mkdir()
        (settings_dir / "settings.json").write_text("{not json")

        path = ensure_cli_user_settings(tmp_path)

        assert json.loads(path.read_text()) == FORCED_SETTINGS
