"""
Platform-wide exception hierarchy.

Services raise these types and nothing else for expected failures. The app
factory registers one error handler per type so every blueprint gets the
same HTTP status and JSON envelope.

Usage:
    from testerhub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Bug", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Tester", "Comment").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or misses a required field.

    Maps to HTTP 422 in the error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when the acting identity does not own the resource it targets.

    Maps to HTTP 403.
    """

    def __init__(self, message: str, actor_id: int | None = None) -> None:
        self.actor_id = actor_id
        super().__init__(message)


class InvalidTransitionError(Exception):
    """Raised when a status change names a value outside the status domain."""

    def __init__(self, resource: str, value: str, allowed) -> None:
        self.resource = resource
        self.value = value
        self.allowed = sorted(allowed)
        super().__init__(
            f"Invalid {resource} status {value!r}. Allowed: {', '.join(self.allowed)}"
        )


class EditWindowExpiredError(Exception):
    """Raised when a comment edit is attempted after its edit window closed."""

    def __init__(self, comment_id: int, window_minutes: int) -> None:
        self.comment_id = comment_id
        self.window_minutes = window_minutes
        super().__init__(
            f"Comment id={comment_id} can only be edited within "
            f"{window_minutes} minutes of creation"
        )
