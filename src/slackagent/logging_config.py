"""
Logging configuration for the Slack agent.

Configures the root logger once per process with a console handler and an
optional rotating file handler, in either a human-readable or JSON format.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone

from slackagent.config import Settings

STANDARD_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that are too chatty at INFO for a long-running bot
NOISY_LOGGERS = ("slack_bolt", "slack_sdk", "urllib3", "httpx", "aiohttp.access")


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _build_formatter(settings: Settings) -> logging.Formatter:
    if settings.log_format == "json":
        return JsonFormatter()
    return logging.Formatter(fmt=STANDARD_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(settings: Settings, context: str = "app") -> None:
    """
    Configure root logging for a process.

    Args:
        settings: Application settings (level, format, destinations)
        context: Process context ("api", "cli"); names the log file

    Raises:
        PermissionError: If file logging is enabled and the log dir is not writable
    """
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    # Drop handlers from a previous call (uvicorn reload, tests)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = _build_formatter(settings)

    if settings.log_console_enabled:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(logging.NullHandler())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured (context={context}, level={settings.log_level}, "
        f"format={settings.log_format}, file={settings.log_file_enabled})"
    )
