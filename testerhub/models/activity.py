"""
Tester Hub
Activity domain model.

Models:
    - ActivityEvent: immutable, append-only audit trail of a tester's actions.
"""

import json
from datetime import datetime, timezone

from testerhub.models import db
from testerhub.utils.helpers import to_iso


# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_EVENT_TYPES = {
    "registration",
    "status_changed",
    "bug_found",
    "bug_fixed",
    "comment_added",
}

ACTIVITY_EVENT_LABELS = {
    "registration": "Registration",
    "status_changed": "Status changed",
    "bug_found": "Bug found",
    "bug_fixed": "Bug fixed",
    "comment_added": "Comment added",
}


class ActivityEvent(db.Model):
    """
    Immutable activity record.

    One row per domain action.  ``metadata_json`` carries the structured
    context of the event (bug id, old/new status, acting admin …); the
    ``description`` is rendered once, when the event is written.
    """

    __tablename__ = "activity_events"
    __table_args__ = (
        db.Index("idx_activity_tester_created", "tester_id", "created_at", "id"),
        db.Index("idx_activity_event_type", "event_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tester_id = db.Column(
        db.Integer, db.ForeignKey("testers.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    event_type = db.Column(
        db.String(30), nullable=False,
        comment="registration | status_changed | bug_found | bug_fixed | comment_added",
    )
    description = db.Column(db.Text, nullable=False)
    metadata_json = db.Column(db.Text, default="{}")

    # Timestamp (immutable)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def event_metadata(self) -> dict:
        """Deserialise *metadata_json* to a Python dict."""
        try:
            return json.loads(self.metadata_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tester_id": self.tester_id,
            "event_type": self.event_type,
            "event_label": ACTIVITY_EVENT_LABELS.get(self.event_type, self.event_type),
            "description": self.description,
            "metadata": self.event_metadata,
            "created_at": to_iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityEvent {self.id}: {self.event_type} tester#{self.tester_id}>"
