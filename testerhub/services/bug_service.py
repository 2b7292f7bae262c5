"""
Bug service layer.

Owns every mutation of Bug rows: creation, status and priority changes,
free-field edits and deletion.  Each public mutating function commits
exactly once, so the bug change, its ``updated_at`` advance and the
activity events it emits land in the same transaction.

Status changes are permissive: any status may follow any other, and a
same-status update is still recorded as a status change.
"""

import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy import func, or_

from testerhub.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from testerhub.models import db
from testerhub.models.bug import (
    BUG_PRIORITIES,
    BUG_STATUSES,
    BUG_TYPES,
    REOPEN_STATUSES,
    Bug,
)
from testerhub.models.tester import Tester
from testerhub.services import activity_service, rating_service, tester_service
from testerhub.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def touch(bug: Bug) -> None:
    """Advance ``bug.updated_at`` to now, strictly past its previous value.

    Two mutations inside the same clock tick would otherwise leave the
    marker unchanged; a one-microsecond bump keeps it strictly increasing.
    """
    now = utcnow()
    previous = as_utc(bug.updated_at)
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    bug.updated_at = now


def _title_max_length() -> int:
    return current_app.config.get("BUG_TITLE_MAX_LENGTH", 500)


def _validate_title(title) -> str:
    title = str(title or "").strip()
    if not title:
        raise ValidationError("Bug title is required", details={"title": "required"})
    max_len = _title_max_length()
    if len(title) > max_len:
        raise ValidationError(
            f"Bug title must be at most {max_len} characters",
            details={"title": f"max {max_len} characters"},
        )
    return title


def _validate_member(field: str, value, allowed: set) -> str:
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field} {value!r}",
            details={field: f"must be one of: {', '.join(sorted(allowed))}"},
        )
    return value


def get_bug(bug_id: int) -> Bug:
    bug = db.session.get(Bug, bug_id)
    if bug is None:
        raise NotFoundError(resource="Bug", resource_id=bug_id)
    return bug


# ═════════════════════════════════════════════════════════════════════════════
# CREATE / READ
# ═════════════════════════════════════════════════════════════════════════════

def create_bug(data: dict) -> Bug:
    """Create a bug on behalf of a tester and record ``bug_found``.

    Args:
        data: Dict with tester_id, title, priority, type and optionally
              description and status.

    Returns:
        The committed Bug.

    Raises:
        NotFoundError: tester does not exist.
        ValidationError: missing/oversized title, unknown priority, type or status.
    """
    tester_id = data.get("tester_id")
    tester = db.session.get(Tester, tester_id) if tester_id is not None else None
    if tester is None:
        raise NotFoundError(resource="Tester", resource_id=tester_id)

    title = _validate_title(data.get("title"))
    priority = _validate_member("priority", data.get("priority"), BUG_PRIORITIES)
    bug_type = _validate_member("type", data.get("type"), BUG_TYPES)
    status = _validate_member("status", data.get("status") or "new", BUG_STATUSES)

    now = utcnow()
    bug = Bug(
        tester_id=tester.id,
        title=title,
        description=(data.get("description") or "").strip(),
        status=status,
        priority=priority,
        type=bug_type,
        fixed_at=now if status == "fixed" else None,
        created_at=now,
        updated_at=now,
    )
    db.session.add(bug)
    db.session.flush()

    activity_service.record_bug_found(bug)
    tester_service.touch_last_activity(tester.id, now)
    rating_service.refresh_tester_rating(tester.id)
    db.session.commit()
    logger.info(
        "Bug created id=%s tester=%s priority=%s", bug.id, tester.id, priority,
        extra={"bug_id": bug.id, "tester_id": tester.id},
    )
    return bug


def list_bugs(
    status: str | None = None,
    priority: str | None = None,
    bug_type: str | None = None,
    tester_id: int | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Bug], int]:
    """Return bugs matching every supplied filter, newest first.

    Returns:
        Tuple of (list of Bug, total count before pagination).
    """
    q = Bug.query
    if status:
        q = q.filter(Bug.status == status)
    if priority:
        q = q.filter(Bug.priority == priority)
    if bug_type:
        q = q.filter(Bug.type == bug_type)
    if tester_id is not None:
        q = q.filter(Bug.tester_id == tester_id)
    if search:
        term = f"%{search}%"
        q = q.filter(or_(Bug.title.ilike(term), Bug.description.ilike(term)))

    total = q.count()
    bugs = q.order_by(Bug.created_at.desc(), Bug.id.desc()).limit(limit).offset(offset).all()
    return bugs, total


# ═════════════════════════════════════════════════════════════════════════════
# STATE TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════════

def update_status(bug_id: int, new_status: str, acting_admin_id: int | None = None) -> Bug:
    """Move a bug to *new_status*.

    Records ``status_changed``; when the new status is ``fixed`` a
    ``bug_fixed`` event follows it.  ``fixed_at`` is stamped on entering
    ``fixed`` and cleared when the bug is reopened.

    Raises:
        NotFoundError: bug does not exist.
        InvalidTransitionError: *new_status* is not a bug status.
    """
    bug = get_bug(bug_id)
    if new_status not in BUG_STATUSES:
        raise InvalidTransitionError("bug", new_status, BUG_STATUSES)

    old_status = bug.status
    bug.status = new_status
    if new_status == "fixed":
        if bug.fixed_at is None:
            bug.fixed_at = utcnow()
    elif new_status in REOPEN_STATUSES:
        bug.fixed_at = None
    touch(bug)

    activity_service.record_bug_status_changed(bug, old_status, new_status, acting_admin_id)
    if new_status == "fixed":
        activity_service.record_bug_fixed(bug, acting_admin_id)

    db.session.commit()
    logger.info(
        "Bug status changed id=%s %s -> %s by admin=%s",
        bug.id, old_status, new_status, acting_admin_id,
        extra={"bug_id": bug.id, "tester_id": bug.tester_id},
    )
    return bug


def update_priority(bug_id: int, new_priority: str) -> Bug:
    """Change a bug's priority. No activity event; the tester rating is refreshed.

    Raises:
        NotFoundError: bug does not exist.
        ValidationError: unknown priority.
    """
    bug = get_bug(bug_id)
    _validate_member("priority", new_priority, BUG_PRIORITIES)

    old_priority = bug.priority
    bug.priority = new_priority
    touch(bug)
    if old_priority != new_priority:
        db.session.flush()
        rating_service.refresh_tester_rating(bug.tester_id)

    db.session.commit()
    logger.info(
        "Bug priority changed id=%s %s -> %s", bug.id, old_priority, new_priority,
        extra={"bug_id": bug.id, "tester_id": bug.tester_id},
    )
    return bug


def update_bug(bug_id: int, data: dict) -> Bug:
    """Edit free fields (title, description, type). Unknown keys are ignored."""
    bug = get_bug(bug_id)
    changed = []
    if "title" in data:
        bug.title = _validate_title(data["title"])
        changed.append("title")
    if "description" in data:
        bug.description = (data.get("description") or "").strip()
        changed.append("description")
    if "type" in data:
        bug.type = _validate_member("type", data["type"], BUG_TYPES)
        changed.append("type")

    if changed:
        touch(bug)
        db.session.commit()
        logger.info(
            "Bug updated id=%s fields=%s", bug.id, ",".join(changed),
            extra={"bug_id": bug.id, "tester_id": bug.tester_id},
        )
    return bug


def delete_bug(bug_id: int) -> None:
    """Delete a bug with its comments and refresh the owner's rating.

    Activity events that mention the bug stay untouched.
    """
    bug = get_bug(bug_id)
    tester_id = bug.tester_id
    db.session.delete(bug)
    db.session.flush()
    rating_service.refresh_tester_rating(tester_id)
    db.session.commit()
    logger.info(
        "Bug deleted id=%s tester=%s", bug_id, tester_id,
        extra={"bug_id": bug_id, "tester_id": tester_id},
    )


# ═════════════════════════════════════════════════════════════════════════════
# STATISTICS
# ═════════════════════════════════════════════════════════════════════════════

def _count_by(column) -> dict:
    return dict(
        db.session.query(column, func.count(Bug.id)).group_by(column).all()
    )


def bug_statistics() -> dict:
    """Bug counts overall, by status, by priority, by type, plus last-24h intake."""
    total = db.session.query(func.count(Bug.id)).scalar() or 0
    by_status = _count_by(Bug.status)
    by_priority = _count_by(Bug.priority)
    by_type = _count_by(Bug.type)
    recent = (
        db.session.query(func.count(Bug.id))
        .filter(Bug.created_at >= utcnow() - timedelta(hours=24))
        .scalar()
    ) or 0
    return {
        "total": total,
        "recent_24h": recent,
        "by_status": {s: by_status.get(s, 0) for s in sorted(BUG_STATUSES)},
        "by_priority": {p: by_priority.get(p, 0) for p in sorted(BUG_PRIORITIES)},
        "by_type": {t: by_type.get(t, 0) for t in sorted(BUG_TYPES)},
    }
