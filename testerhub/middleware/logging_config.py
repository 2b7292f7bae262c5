"""
Logging setup.

Every log line can carry the tester/bug it concerns and the request that
caused it:

- services pass ``extra={"tester_id": ..., "bug_id": ...}`` on mutations
- ``RequestContextFilter`` stamps ``request_id`` / ``user_id`` from ``g``
- production renders JSON, development and tests a single readable line
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes lifted off the LogRecord into the rendered line
CONTEXT_KEYS = ("request_id", "user_id", "tester_id", "bug_id", "comment_id")
REQUEST_KEYS = ("method", "path", "status", "duration_ms")


class RequestContextFilter(logging.Filter):
    """Copy the current request's id and acting user onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "user_id", None)
        return True


def _context(record: logging.LogRecord, keys) -> dict:
    out = {}
    for key in keys:
        val = getattr(record, key, None)
        if val is not None:
            out[key] = val
    return out


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record, REQUEST_KEYS + CONTEXT_KEYS))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     testerhub.services.bug_service: Bug created [bug_id=3 tester_id=1]``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} {record.levelname:<8} {record.name}: {record.getMessage()}"
        ctx = _context(record, CONTEXT_KEYS)
        if ctx:
            line += " [" + " ".join(f"{k}={v}" for k, v in sorted(ctx.items())) + "]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    LOG_LEVEL overrides the default (INFO in production, DEBUG in
    development, WARNING under testing).
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    if is_prod:
        default_level = "INFO"
    elif is_testing:
        default_level = "WARNING"
    else:
        default_level = "DEBUG"
    level_name = os.getenv("LOG_LEVEL", default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    # Cleared first so repeated create_app() calls do not stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    app.logger.setLevel(level)
