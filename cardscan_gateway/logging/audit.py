"""Structured JSON audit logging for the card scanner gateway.

Every entry is a single JSON line on stdout, with optional file output via
the AUDIT_LOG_FILE env var. Entries carry the request id of the inbound
call so the retries of one request can be correlated.

Gemini takes its credential as a ``key=`` query parameter, so any URL that
reaches a log line or an error message is passed through
``redact_credentials`` first. Callers log a key's index in the pool, never
its value.
"""

import json
import logging
import re
import sys
import time
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from cardscan_gateway.config.settings import get_settings

AUDIT_LOGGER_NAME = "cardscan.audit"

# httpx logs every request URL (query string included) at INFO
QUIETED_LOGGERS = ("httpx", "httpcore")

_KEY_PARAM = re.compile(r"([?&]key=)[^&\s'\"]+", re.IGNORECASE)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def redact_credentials(text: str) -> str:
    """Mask ``key=`` query parameter values in ``text``."""
    return _KEY_PARAM.sub(r"\1[REDACTED]", text)


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``audit_data`` extras are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_credentials(record.getMessage()),
            "request_id": request_id_var.get(""),
        }
        entry.update(getattr(record, "audit_data", {}))
        if record.exc_info:
            entry["exception"] = redact_credentials(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def _json_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Attach JSON handlers to the audit logger and quiet URL-logging libraries."""
    settings = get_settings()

    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    logger.addHandler(_json_handler(logging.StreamHandler(sys.stdout)))
    if settings.audit_log_file:
        logger.addHandler(_json_handler(logging.FileHandler(settings.audit_log_file)))

    # Prevent propagation to root logger (avoids duplicate output)
    logger.propagate = False

    for name in QUIETED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestTimer:
    """Context manager measuring wall time across all upstream attempts."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
