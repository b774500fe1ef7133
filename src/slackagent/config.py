"""
Slack agent configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables and an optional .env file.
A single Settings instance is built at startup and passed to every component.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for the session store.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/slackagent if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/slackagent if not set
    - Returns relative path ./data if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "slackagent")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "slackagent")

    return "./data"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for log files.

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "slackagent" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "slackagent" / "logs")

    return "./logs"


# Tools the agent may not use while running as a shared chat service
DEFAULT_DISALLOWED_TOOLS = [
    "Read",
    "Write",
    "Edit",
    "Glob",
    "Grep",
    "Bash",
    "BashOutput",
    "KillShell",
    "NotebookEdit",
    "Task",
]

DEFAULT_SYSTEM_PROMPT_APPEND = (
    "You are responding in Slack. Keep responses concise and well-formatted "
    "for Slack messages. Use markdown formatting when appropriate."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Slack
    slack_bot_token: str = ""
    slack_signing_secret: str = ""
    slack_app_token: str = ""  # Only needed for socket mode deployments

    # Anthropic
    anthropic_api_key: str = ""

    # Session store
    session_data_dir: str = get_xdg_data_dir()
    session_db_path: str = ""  # Defaults to <session_data_dir>/sessions.db
    session_ttl_hours: float = 24
    session_cleanup_interval_hours: float = 1

    # Agent
    agent_model: str = ""  # Empty = CLI default model
    agent_max_turns: int = 10
    agent_query_timeout_seconds: float = 110
    agent_system_prompt_append: str = DEFAULT_SYSTEM_PROMPT_APPEND
    agent_disallowed_tools: list[str] = DEFAULT_DISALLOWED_TOOLS
    agent_include_partial_messages: bool = True  # Stream text deltas, not whole turns
    agent_configure_cli_settings: bool = True  # Force API-key login in ~/.claude

    # Streaming
    streaming_update_interval_ms: int = 3000
    streaming_max_length: int = 3900  # Slack rejects edits past ~4000 chars
    progress_update_interval_ms: int = 5000

    # Concurrency
    serialize_same_thread: bool = True
    shutdown_grace_seconds: float = 10

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = False
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    @property
    def database_path(self) -> Path:
        """Get the SQLite session store path."""
        if self.session_db_path:
            return Path(self.session_db_path).expanduser()
        return Path(self.session_data_dir).expanduser() / "sessions.db"

    @property
    def database_url(self) -> str:
        """Construct the SQLAlchemy database URL for the session store."""
        return f"sqlite:///{self.database_path}"

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def session_ttl_seconds(self) -> float:
        return self.session_ttl_hours * 3600

    @property
    def session_cleanup_interval_seconds(self) -> float:
        return self.session_cleanup_interval_hours * 3600

    def missing_credentials(self) -> list[str]:
        """Return the names of required credentials that are not set."""
        required = {
            "SLACK_BOT_TOKEN": self.slack_bot_token,
            "SLACK_SIGNING_SECRET": self.slack_signing_secret,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
        }
        return [name for name, value in required.items() if not value]
