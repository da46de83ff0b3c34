"""
Logging setup for strata.

Engine modules log per-action lines such as ``[2] add_task ...``; the JSON
formatter keeps those lines machine-readable and carries any ``extra=`` fields
a caller attaches (for example ``user_id``).
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone

LOG_FILE_NAME = "strata.log"

# Client libraries that log every HTTP round trip at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "googleapiclient", "google_auth_httplib2", "anthropic")

# Attributes present on every LogRecord; anything else came from ``extra=``
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_FIELDS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _text_formatter(datefmt: str) -> logging.Formatter:
    return logging.Formatter(fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt=datefmt)


def setup_logging(log_level: str, logs_dir: str | None = None, json_logs: bool = False) -> int:
    """
    Configure the root logger: stdout always, plus a rotating ``strata.log``
    in ``logs_dir`` when one is given. Returns the effective level.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JsonFormatter() if json_logs else _text_formatter("%H:%M:%S"))
    handlers: list[logging.Handler] = [console]

    if logs_dir:
        os.makedirs(logs_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(logs_dir, LOG_FILE_NAME),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(_text_formatter("%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
