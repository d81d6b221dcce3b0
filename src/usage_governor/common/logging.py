"""Structured JSON logging for Usage-Governor."""

import logging
import json
import sys
from datetime import datetime, timezone

AUDIT_FALLBACK_LOGGER = "usage_governor.audit.fallback"


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application.

    Audit-write failures are routed to stderr on their own channel so they
    stay visible when the primary stream is shipped elsewhere.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger("usage_governor")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]
    root.propagate = False

    fallback_handler = logging.StreamHandler(sys.stderr)
    fallback_handler.setFormatter(JSONFormatter())

    fallback = logging.getLogger(AUDIT_FALLBACK_LOGGER)
    fallback.handlers = [fallback_handler]
    fallback.propagate = False
