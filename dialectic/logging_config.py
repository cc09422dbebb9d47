"""JSON-lines logging for the debate service.

Every record is one JSON object. Debate and agent code attach
structured fields through ``extra={"context": {...}}``; they land under
the ``context`` key so log processors can filter by debate or team.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Client libraries log every request at INFO/DEBUG
LIBRARY_LOG_LEVELS = {
    "aiosqlite": "WARNING",
    "anthropic": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "uvicorn.access": "WARNING",
}


class JSONFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool | None = None,
) -> None:
    """
    Configure the root logger with JSON output.

    Args:
        log_level: Level for dialectic loggers. Defaults to LOG_LEVEL or INFO.
        log_file: Rotating log file path. Defaults to LOG_FILE or logs/app.log.
        console: Mirror records to stdout. Defaults to LOG_CONSOLE or on.
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = Path(log_file or os.getenv("LOG_FILE") or DEFAULT_LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if console is None:
        console = _env_flag("LOG_CONSOLE", True)

    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_path),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    loggers = {name: {"level": lib_level} for name, lib_level in LIBRARY_LOG_LEVELS.items()}
    loggers["dialectic"] = {"level": level}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JSONFormatter}},
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": level, "handlers": list(handlers)},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
