"""
Logging configuration.

Two output modes, selected by LOG_FORMAT:
- console: human-readable lines for local development
- json: one JSON object per line for log aggregation

Every module logs through logging.getLogger(__name__), so
configuring the "ledger_engine" logger covers the whole package.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from ledger_engine.config import Settings, get_settings


# LogRecord attributes that are not user-supplied "extra" fields
_STANDARD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "exc_info", "exc_text", "stack_info",
    "message", "taskName",
}


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.

    Outputs timestamp, level, logger, message, any extra fields
    passed through logger.info(..., extra={...}) and the formatted
    exception when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extras:
            log_entry["extra"] = extras

        return json.dumps(log_entry, default=str)


def get_logging_config(settings: Settings) -> dict:
    """Build a logging.config dictConfig for the given settings."""
    if settings.LOG_FORMAT == "json":
        formatter = {"()": "ledger_engine.logging_config.JsonFormatter"}
    else:
        formatter = {
            "format": "[{asctime}] {levelname} {name} {message}",
            "style": "{",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "ledger_engine": {
                "handlers": ["console"],
                "level": settings.LOG_LEVEL,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "INFO" if settings.DEBUG else "WARNING",
                "propagate": False,
            },
        },
    }


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the logging configuration. Safe to call more than once."""
    logging.config.dictConfig(get_logging_config(settings or get_settings()))
