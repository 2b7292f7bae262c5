"""
Tester Hub
Blueprint registry and shared request parsing.
"""

from flask import request

from testerhub.core.exceptions import ValidationError
from testerhub.utils.helpers import parse_datetime


def json_body() -> dict:
    """Return the JSON request body as a dict ({} when absent or not an object)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def datetime_arg(name: str):
    """Parse an ISO timestamp query parameter; None when absent.

    Raises:
        ValidationError: the parameter is present but not ISO 8601.
    """
    try:
        return parse_datetime(request.args.get(name))
    except ValueError as exc:
        raise ValidationError(str(exc), details={name: "invalid datetime"}) from exc


def int_arg(name: str, minimum: int = 1) -> int | None:
    """Parse an integer query parameter; None when absent.

    Raises:
        ValidationError: the parameter is present but not an integer,
            or is below *minimum*.
    """
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer", details={name: "invalid integer"}) from exc
    if value < minimum:
        raise ValidationError(
            f"{name} must be at least {minimum}", details={name: f"must be >= {minimum}"},
        )
    return value
