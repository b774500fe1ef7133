"""
Startup dependency checks.

Validates credentials, the data directory, the session store and the Claude
CLI settings before the service accepts Slack events. Fails fast with clear,
actionable error messages when requirements aren't met.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from slackagent.agent.cli_settings import ensure_cli_user_settings
from slackagent.config import Settings
from slackagent.sessions.store import SessionStore


@dataclass
class StartupMetrics:
    """Metrics collected during startup checks."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    checks_passed: bool = False


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\n❌ STARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\n💡 Hint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_required_environment(settings: Settings) -> None:
    """
    Validate required credentials are set.

    Raises:
        StartupCheckError: If any credential is missing
    """
    missing = settings.missing_credentials()
    if missing:
        raise StartupCheckError(
            "Missing required environment variables:\n"
            + "\n".join(f"  - {var}" for var in missing),
            "Set these variables in your .env file",
        )


def check_data_directory(settings: Settings) -> None:
    """
    Validate the session database directory exists and is writable.

    Raises:
        StartupCheckError: If the directory cannot be created or written
    """
    data_dir = settings.database_path.parent

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        test_file = data_dir / ".write_test"
        test_file.write_text("test")
        test_file.unlink()
    except PermissionError as e:
        raise StartupCheckError(
            f"Session data directory is not writable: {data_dir}\n"
            f"Permission denied: {e}",
            f"Fix permissions: chmod u+w {data_dir}\n"
            "  Or point SESSION_DATA_DIR somewhere writable",
        ) from e
    except OSError as e:
        raise StartupCheckError(
            f"Failed to prepare session data directory: {data_dir}\nError: {e}",
            "Check filesystem and parent directory permissions",
        ) from e


def check_session_store(store: SessionStore) -> None:
    """
    Verify the session database answers queries.

    Raises:
        StartupCheckError: If the database is unreachable
    """
    if not store.check_connection():
        raise StartupCheckError(
            f"Cannot query session database at {store.engine.url}",
            "The file may be locked by another process or corrupted;\n"
            "  sessions are disposable, so deleting it is safe",
        )


def check_agent_cli_settings(
    settings: Settings, home: Optional[Path] = None
) -> None:
    """
    Force API-key login for the Claude CLI (skipped when disabled).

    Raises:
        StartupCheckError: If the CLI settings file cannot be written
    """
    if not settings.agent_configure_cli_settings:
        print("  ⚠️  SKIP (AGENT_CONFIGURE_CLI_SETTINGS disabled)", end=" ")
        return

    try:
        ensure_cli_user_settings(home)
    except OSError as e:
        raise StartupCheckError(
            f"Cannot write Claude CLI settings: {e}",
            "Make sure the home directory is writable,\n"
            "  or set AGENT_CONFIGURE_CLI_SETTINGS=false and configure it yourself",
        ) from e


def run_all_startup_checks(
    settings: Settings,
    store: SessionStore,
    metrics: Optional[StartupMetrics] = None,
) -> StartupMetrics:
    """
    Execute all startup dependency checks.

    Runs checks in order of dependency:
    1. Environment variables
    2. Data directory
    3. Session store
    4. Claude CLI settings

    Raises:
        StartupCheckError: If any check fails
    """
    metrics = metrics or StartupMetrics(started_at=datetime.now(timezone.utc))
    startup_start = time.time()

    checks: list[tuple[str, Callable[[], None]]] = [
        ("Environment Variables", lambda: check_required_environment(settings)),
        ("Data Directory", lambda: check_data_directory(settings)),
        ("Session Store", lambda: check_session_store(store)),
        ("Claude CLI Settings", lambda: check_agent_cli_settings(settings)),
    ]

    print("\n" + "=" * 70)
    print("🚀 Starting Slack Agent - Running Startup Checks")
    print("=" * 70 + "\n")

    for check_name, check_func in checks:
        print(f"  Checking {check_name}...", end=" ", flush=True)
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError:
            print(f"❌ FAIL ({(time.time() - check_start) * 1000:.1f}ms)")
            raise
        print(f"✅ PASS ({(time.time() - check_start) * 1000:.1f}ms)")

    metrics.completed_at = datetime.now(timezone.utc)
    metrics.total_duration_ms = (time.time() - startup_start) * 1000
    metrics.checks_passed = True

    print("\n" + "=" * 70)
    print(f"✅ All startup checks passed - Server is ready ({metrics.total_duration_ms:.1f}ms)")
    print("=" * 70 + "\n")
    return metrics
