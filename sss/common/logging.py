import json
import logging
from logging.config import dictConfig
from typing import Any

# Chatty at INFO on every request.
QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def logging_config(level: str) -> dict[str, Any]:
    """The ``dictConfig`` for a process that uses the store at ``level``."""
    level = (level or "INFO").upper()
    loggers: dict[str, Any] = {
        name: {"level": "WARNING"} for name in QUIET_LOGGERS
    }
    loggers["sss"] = {"level": level}
    loggers["sss.startup"] = {
        "handlers": ["startup_console"],
        "level": "INFO",
        "propagate": False,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "plain": {"format": "%(levelname)s %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "json"},
            "startup_console": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def setup_logging(level: str = "INFO") -> None:
    dictConfig(logging_config(level))
