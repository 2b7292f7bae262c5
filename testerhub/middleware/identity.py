"""
Identity middleware: reads the acting user from request headers, sets g.user_*.

Login and session handling live in the gateway in front of this service;
it forwards the authenticated user as:

    X-User-Id:   integer id   →  g.user_id   (None when absent or malformed)
    X-User-Name: display name →  g.user_name (None when absent)

Routes that mutate comments or statuses call ``require_identity()`` and
answer 401 when no identity was forwarded.
"""

import logging
from functools import wraps

from flask import g, request

from testerhub.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def init_identity(app):
    """Register the identity parser as a before_request hook."""

    @app.before_request
    def _read_identity():
        g.user_id = None
        g.user_name = None

        raw_id = request.headers.get("X-User-Id", "").strip()
        if raw_id:
            try:
                g.user_id = int(raw_id)
            except ValueError:
                logger.warning("Ignoring malformed X-User-Id header: %r", raw_id)

        name = request.headers.get("X-User-Name", "").strip()
        g.user_name = name or None


def current_identity() -> tuple[int | None, str | None]:
    """(user_id, user_name) forwarded for this request; either may be None."""
    return getattr(g, "user_id", None), getattr(g, "user_name", None)


def require_identity(fn):
    """Decorator: answer 401 unless X-User-Id carried a valid integer id."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user_id", None) is None:
            return api_error(E.UNAUTHENTICATED, "X-User-Id header is required")
        return fn(*args, **kwargs)

    return wrapper
