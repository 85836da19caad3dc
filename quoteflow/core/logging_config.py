"""
Logging configuration. Call setup_logging() once at app startup.
"""
import json
import logging
from datetime import datetime, timezone

from quoteflow.core.config import LOG_LEVEL, LOG_JSON

EXTRA_FIELDS = ("method", "path", "status_code", "duration_ms", "quote_number", "quote_id", "user")


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""
    def format(self, record):
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    def format(self, record):
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        line = f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level=None, json_logs=None):
    level = level or LOG_LEVEL
    json_logs = LOG_JSON if json_logs is None else json_logs

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_logs else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Quiet down chatty libraries
    for name in ("sqlalchemy.engine", "httpx", "passlib"):
        logging.getLogger(name).setLevel(logging.WARNING)
