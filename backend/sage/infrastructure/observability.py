"""Structured Logging — JSON formatter and setup for production observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Whitelisted extra fields (session_id, tool_name, turn, tier, ...) surfaced when present
    - JSON format in production, human-readable in development

Design Decisions:
    - Stdlib logging + a small formatter: no logging dependency to configure
    - setup_logging called once on startup via lifespan and is idempotent
"""

import json
import logging
from datetime import datetime, timezone

LOG_EXTRA_FIELDS = (
    "session_id", "tool_name", "error_code", "attempt",
    "input_tokens", "output_tokens", "turn", "stage",
    "client_key", "tier",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in LOG_EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


_HANDLER_NAME = "sage-root"


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging. Re-running replaces the handler instead of stacking."""
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    for existing in list(logging.root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logging.root.removeHandler(existing)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
