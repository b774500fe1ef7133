"""
Claude Code CLI user settings.

In containers the CLI would otherwise try an interactive OAuth login; these
settings force API-key authentication.
"""

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

FORCED_SETTINGS = {
    "forceLoginMethod": "console",
    "hasCompletedOnboarding": True,
    "subscriptionNoticeCount": 0,
    "hasAvailableSubscription": True,
}


def ensure_cli_user_settings(home: Optional[Path] = None) -> Path:
    """
    Merge the forced login settings into ~/.claude/settings.json.

    Existing keys are preserved; an unreadable file is replaced.

    Args:
        home: Home directory override (defaults to the current user's home)

    Returns:
        Path to the settings file
    """
    settings_dir = (home or Path.home()) / ".claude"
    settings_dir.mkdir(parents=True, exist_ok=True)
    settings_path = settings_dir / "settings.json"

    settings: dict = {}
    if settings_path.exists():
        try:
            settings = json.loads(settings_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable CLI settings at {settings_path}: {e}")
            settings = {}

    settings.update(FORCED_SETTINGS)
    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    logger.info(f"Configured Claude CLI for API key authentication ({settings_path})")
    return settings_path
