"""
Tester registry service.

Registration, profile edits, status changes and listing.  Testers are
never deleted: moving one to ``inactive`` or ``suspended`` is the way
to retire them, and the activity log keeps their history.
"""

import logging
import re

from sqlalchemy import func, or_

from testerhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from testerhub.models import db
from testerhub.models.tester import TESTER_PROFILE_FIELDS, TESTER_STATUSES, Tester
from testerhub.services import activity_service
from testerhub.utils.helpers import utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_REQUIRED_FIELDS = ("name", "email", "device_type", "os")

# sort key → column
_SORT_COLUMNS = {
    "registration_date": Tester.registration_date,
    "name": Tester.name,
    "email": Tester.email,
    "rating": Tester.rating,
    "bugs_count": Tester.bugs_count,
}


# ── Validation ───────────────────────────────────────────────────────────────

def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _validate_profile(data: dict, *, partial: bool = False) -> dict:
    """Return the cleaned profile fields of *data*, raising on any field error.

    With ``partial=True`` only the keys present in *data* are checked.
    """
    cleaned = {f: _clean(data.get(f)) for f in TESTER_PROFILE_FIELDS if f in data}
    errors = {}
    for field in _REQUIRED_FIELDS:
        if partial and field not in data:
            continue
        if not cleaned.get(field):
            errors[field] = "required"

    email = cleaned.get("email")
    if email:
        email = email.lower()
        cleaned["email"] = email
        if not EMAIL_RE.match(email):
            errors["email"] = "invalid email format"

    if errors:
        raise ValidationError("Tester validation failed", details=errors)
    return cleaned


def _ensure_unique_email(email: str, exclude_id: int | None = None) -> None:
    q = Tester.query.filter(func.lower(Tester.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(Tester.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("Tester", "email", email)


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════

def register_tester(data: dict) -> Tester:
    """Create a tester with status ``active`` and record ``registration``.

    Raises:
        ValidationError: a required field is missing or the email is malformed.
        ConflictError: the email is already registered.
    """
    cleaned = _validate_profile(data)
    _ensure_unique_email(cleaned["email"])

    now = utcnow()
    tester = Tester(
        **cleaned,
        status="active",
        registration_date=now,
        last_activity_date=now,
        bugs_count=0,
        rating=0,
    )
    db.session.add(tester)
    db.session.flush()

    activity_service.record_registration(tester)
    db.session.commit()
    logger.info(
        "Tester registered id=%s email=%s", tester.id, tester.email,
        extra={"tester_id": tester.id},
    )
    return tester


def get_tester(tester_id: int) -> Tester:
    tester = db.session.get(Tester, tester_id)
    if tester is None:
        raise NotFoundError(resource="Tester", resource_id=tester_id)
    return tester


def list_testers(
    search: str | None = None,
    status: str | None = None,
    device_type: str | None = None,
    os: str | None = None,
    sort: str = "registration_date",
    order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Tester], int]:
    """Paginated tester list.

    Args:
        search: Case-insensitive substring of name or email.
        status: Exact status filter.
        device_type: Exact device-type filter.
        os: Exact operating-system filter.
        sort: One of registration_date, name, email, rating, bugs_count.
              Unknown keys fall back to registration_date.
        order: "asc" or "desc".

    Returns:
        Tuple of (list of Tester, total count).
    """
    q = Tester.query
    if search:
        term = f"%{search}%"
        q = q.filter(or_(Tester.name.ilike(term), Tester.email.ilike(term)))
    if status:
        q = q.filter(Tester.status == status)
    if device_type:
        q = q.filter(Tester.device_type == device_type)
    if os:
        q = q.filter(Tester.os == os)

    column = _SORT_COLUMNS.get(sort, Tester.registration_date)
    if (order or "").lower() == "asc":
        q = q.order_by(column.asc(), Tester.id.asc())
    else:
        q = q.order_by(column.desc(), Tester.id.desc())

    total = q.count()
    return q.limit(limit).offset(offset).all(), total


def update_tester(tester_id: int, data: dict) -> Tester:
    """Partial profile update. ``status`` is ignored here; see update_tester_status."""
    tester = get_tester(tester_id)
    cleaned = _validate_profile(data, partial=True)
    if "email" in cleaned and cleaned["email"] != tester.email:
        _ensure_unique_email(cleaned["email"], exclude_id=tester.id)

    for field, value in cleaned.items():
        setattr(tester, field, value)
    db.session.commit()
    logger.info(
        "Tester updated id=%s fields=%s", tester.id, ",".join(sorted(cleaned)),
        extra={"tester_id": tester.id},
    )
    return tester


def update_tester_status(tester_id: int, new_status: str) -> Tester:
    """Change a tester's status; ``status_changed`` is recorded only on a real change.

    Raises:
        NotFoundError: tester does not exist.
        ValidationError: unknown status.
    """
    tester = get_tester(tester_id)
    if new_status not in TESTER_STATUSES:
        raise ValidationError(
            f"Invalid tester status {new_status!r}",
            details={"status": f"must be one of: {', '.join(sorted(TESTER_STATUSES))}"},
        )

    old_status = tester.status
    if old_status == new_status:
        return tester

    tester.status = new_status
    activity_service.record_tester_status_changed(tester, old_status, new_status)
    db.session.commit()
    logger.info(
        "Tester status changed id=%s %s -> %s", tester.id, old_status, new_status,
        extra={"tester_id": tester.id},
    )
    return tester


def touch_last_activity(tester_id: int, when=None) -> Tester:
    """Stamp the tester's last_activity_date (flush only; the caller commits)."""
    tester = get_tester(tester_id)
    tester.last_activity_date = when or utcnow()
    db.session.flush()
    return tester


def tester_statistics() -> dict:
    total = db.session.query(func.count(Tester.id)).scalar() or 0
    by_status = dict(
        db.session.query(Tester.status, func.count(Tester.id))
        .group_by(Tester.status)
        .all()
    )
    by_device = dict(
        db.session.query(Tester.device_type, func.count(Tester.id))
        .group_by(Tester.device_type)
        .all()
    )
    return {
        "total": total,
        "by_status": {s: by_status.get(s, 0) for s in sorted(TESTER_STATUSES)},
        "by_device_type": by_device,
    }
