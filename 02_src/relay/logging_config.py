"""Structured logging configuration for the relay."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Chatty third-party loggers: one line per HTTP request / SQL call at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception_type"] = record.exc_info[0].__name__
            log_data["exception"] = self.formatException(record.exc_info)

        # Per-call context, e.g. logger.info(..., extra={"context": {"wa_id": ...}})
        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    quiet_level: str = "WARNING",
) -> None:
    """
    Configure root logging: JSON lines to a rotating file and to stdout.

    Args:
        log_level: Root level. Defaults to LOG_LEVEL env var or INFO.
        log_file: Defaults to LOG_FILE env var or 04_logs/app.log.
        quiet_level: Level applied to QUIET_LOGGERS.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE") or str(DEFAULT_LOG_PATH)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "relay.logging_config.JSONFormatter"},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": log_file,
                    "maxBytes": 10 * 1024 * 1024,  # 10 MB
                    "backupCount": 5,
                    "formatter": "json",
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                name: {"level": quiet_level.upper()} for name in QUIET_LOGGERS
            },
            "root": {
                "level": log_level,
                "handlers": ["file", "console"],
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
