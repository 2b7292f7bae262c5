"""Activity service: the tester event log and its read side.

Write side:
    record_event() appends one immutable ActivityEvent.  It only flushes;
    the calling service owns the commit so an event lands in the same
    transaction as the change that caused it.  There is deliberately no
    update or delete function in this module.

Read side:
    query_activity()       - one tester's events, filtered by type / time range
    list_activity()        - events across all testers (admin feed)
    get_event()            - single event
    activity_statistics()  - totals, per-type counts, last 24h

Events are ordered by (created_at, id): two events written within the
same clock tick keep their insertion order.
"""
import json
import logging
from datetime import timedelta

from sqlalchemy import func

from testerhub.core.exceptions import NotFoundError, ValidationError
from testerhub.models import db
from testerhub.models.activity import ACTIVITY_EVENT_TYPES, ActivityEvent
from testerhub.models.tester import Tester
from testerhub.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# WRITE SIDE
# ═════════════════════════════════════════════════════════════════════════════

def record_event(tester_id, event_type, description, metadata=None):
    """Append a single activity event for a tester.

    Args:
        tester_id: PK of the Tester the event belongs to.
        event_type: One of ACTIVITY_EVENT_TYPES.
        description: Human-readable text shown in the activity feed.
        metadata: Optional structured context, stored as JSON.

    Returns:
        The flushed ActivityEvent.

    Raises:
        NotFoundError: tester does not exist.
        ValidationError: unknown event type or empty description.
    """
    if event_type not in ACTIVITY_EVENT_TYPES:
        raise ValidationError(
            f"Unknown event type {event_type!r}",
            details={"event_type": f"must be one of: {', '.join(sorted(ACTIVITY_EVENT_TYPES))}"},
        )
    if not description or not str(description).strip():
        raise ValidationError("Event description is required", details={"description": "required"})
    if db.session.get(Tester, tester_id) is None:
        raise NotFoundError(resource="Tester", resource_id=tester_id)

    event = ActivityEvent(
        tester_id=tester_id,
        event_type=event_type,
        description=description,
        metadata_json=json.dumps(metadata or {}, default=str),
        created_at=utcnow(),
    )
    db.session.add(event)
    db.session.flush()
    logger.debug(
        "Activity recorded id=%s tester=%s type=%s", event.id, tester_id, event_type,
        extra={"tester_id": tester_id},
    )
    return event


def record_registration(tester):
    return record_event(
        tester.id,
        "registration",
        f"Tester {tester.name} registered",
        {"device_type": tester.device_type, "os": tester.os, "os_version": tester.os_version},
    )


def record_tester_status_changed(tester, old_status, new_status):
    return record_event(
        tester.id,
        "status_changed",
        f'Tester status changed from "{old_status}" to "{new_status}"',
        {"subject": "tester", "old_status": old_status, "new_status": new_status},
    )


def record_bug_found(bug):
    return record_event(
        bug.tester_id,
        "bug_found",
        f"Bug found: {bug.title}",
        {"bug_id": bug.id, "priority": bug.priority, "type": bug.type, "status": bug.status},
    )


def record_bug_status_changed(bug, old_status, new_status, acting_admin_id=None):
    return record_event(
        bug.tester_id,
        "status_changed",
        f'Bug #{bug.id} status changed from "{old_status}" to "{new_status}"',
        {
            "subject": "bug",
            "bug_id": bug.id,
            "old_status": old_status,
            "new_status": new_status,
            "acting_admin_id": acting_admin_id,
        },
    )


def record_bug_fixed(bug, acting_admin_id=None):
    return record_event(
        bug.tester_id,
        "bug_fixed",
        f"Bug fixed: {bug.title}",
        {"bug_id": bug.id, "acting_admin_id": acting_admin_id},
    )


def record_comment_added(bug, comment):
    return record_event(
        bug.tester_id,
        "comment_added",
        f"{comment.author_name} commented on bug #{bug.id}",
        {"bug_id": bug.id, "comment_id": comment.id, "author_id": comment.author_id},
    )


# ═════════════════════════════════════════════════════════════════════════════
# READ SIDE
# ═════════════════════════════════════════════════════════════════════════════

def _validate_event_type(event_type):
    if event_type and event_type not in ACTIVITY_EVENT_TYPES:
        raise ValidationError(
            f"Unknown event type {event_type!r}",
            details={"event_type": f"must be one of: {', '.join(sorted(ACTIVITY_EVENT_TYPES))}"},
        )


def _apply_filters(q, event_type=None, since=None, until=None):
    # SQLite binds wall-clock fields only, so bounds must already be UTC
    since, until = as_utc(since), as_utc(until)
    if event_type:
        q = q.filter(ActivityEvent.event_type == event_type)
    if since is not None:
        q = q.filter(ActivityEvent.created_at >= since)
    if until is not None:
        q = q.filter(ActivityEvent.created_at <= until)
    return q


def _apply_order(q, newest_first):
    if newest_first:
        return q.order_by(ActivityEvent.created_at.desc(), ActivityEvent.id.desc())
    return q.order_by(ActivityEvent.created_at.asc(), ActivityEvent.id.asc())


def query_activity(
    tester_id: int,
    event_type: str | None = None,
    since=None,
    until=None,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[ActivityEvent]:
    """Return one tester's events matching every supplied filter.

    Args:
        tester_id: PK of the Tester.
        event_type: Only events of this type.
        since: Only events created at or after this datetime.
        until: Only events created at or before this datetime.
        newest_first: Reverse the natural (insertion) order.
        limit: Maximum number of events to return.

    Raises:
        NotFoundError: tester does not exist.
        ValidationError: unknown event type or since > until.
    """
    if db.session.get(Tester, tester_id) is None:
        raise NotFoundError(resource="Tester", resource_id=tester_id)
    _validate_event_type(event_type)
    since, until = as_utc(since), as_utc(until)
    if since is not None and until is not None and since > until:
        raise ValidationError("'since' must not be later than 'until'",
                              details={"since": "after until"})

    q = _apply_filters(ActivityEvent.query.filter_by(tester_id=tester_id),
                       event_type, since, until)
    q = _apply_order(q, newest_first)
    if limit:
        q = q.limit(limit)
    return q.all()


def list_activity(
    tester_id: int | None = None,
    event_type: str | None = None,
    since=None,
    until=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """Admin feed across all testers, newest first.

    Returns:
        Tuple of (serialized events with tester_name, total count).
    """
    _validate_event_type(event_type)
    q = ActivityEvent.query
    if tester_id is not None:
        q = q.filter(ActivityEvent.tester_id == tester_id)
    q = _apply_filters(q, event_type, since, until)
    total = q.count()
    events = _apply_order(q, newest_first=True).limit(limit).offset(offset).all()

    items = []
    for event in events:
        d = event.to_dict()
        d["tester_name"] = event.tester.name if event.tester else None
        items.append(d)
    return items, total


def get_event(event_id: int) -> ActivityEvent:
    event = db.session.get(ActivityEvent, event_id)
    if event is None:
        raise NotFoundError(resource="ActivityEvent", resource_id=event_id)
    return event


def activity_statistics() -> dict:
    total = db.session.query(func.count(ActivityEvent.id)).scalar() or 0
    by_type = dict(
        db.session.query(ActivityEvent.event_type, func.count(ActivityEvent.id))
        .group_by(ActivityEvent.event_type)
        .all()
    )
    recent = (
        db.session.query(func.count(ActivityEvent.id))
        .filter(ActivityEvent.created_at >= utcnow() - timedelta(hours=24))
        .scalar()
    ) or 0
    return {
        "total": total,
        "recent_24h": recent,
        "by_event_type": {t: by_type.get(t, 0) for t in sorted(ACTIVITY_EVENT_TYPES)},
    }
