import json
import logging
import os
import sys
from datetime import datetime, timezone

LEVEL_ENV_VAR = "MARKET_SCOUT_LOG_LEVEL"

# Extra record attributes copied into the JSON entry when present
CONTEXT_FIELDS = ("symbol", "asset_class", "source")


class JsonFormatter(logging.Formatter):
    """One JSON object per log line, with per-symbol context fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def _level_from_env(default: int) -> int:
    name = os.environ.get(LEVEL_ENV_VAR, "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Create a JSON-formatted logger; $MARKET_SCOUT_LOG_LEVEL overrides `level`."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(_level_from_env(level))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger
