"""Process-wide logging configuration.

All modules log through ``logging.getLogger(__name__)`` and attach context via
``extra=``; this module decides how those records are rendered.
"""

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Optional

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_is_configured = False


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object, including its extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                data[key] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def setup_logging(
    level: Optional[str] = None,
    json_format: bool = False,
    force: bool = False,
) -> None:
    """Configure the root logger once per process.

    Args:
        level: Log level name (default INFO)
        json_format: Emit JSON lines instead of plain text
        force: Reconfigure even if already configured
    """
    global _is_configured

    if _is_configured and not force:
        return

    log_level = (level or "INFO").upper()
    formatter = "json" if json_format else "standard"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "level": log_level,
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    # Chatty transport loggers stay at WARNING unless debugging
    if log_level != "DEBUG":
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    _is_configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
