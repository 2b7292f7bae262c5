"""
Tester Hub
Tester domain model.

Models:
    - Tester: registered participant who reports bugs.

Testers are never hard-deleted; deactivation is a status change.
"""

from datetime import datetime, timezone

from testerhub.models import db
from testerhub.utils.helpers import to_iso


# ── Constants ────────────────────────────────────────────────────────────

TESTER_STATUSES = {"active", "inactive", "suspended"}

TESTER_STATUS_LABELS = {
    "active": "Active",
    "inactive": "Inactive",
    "suspended": "Suspended",
}

# Profile fields editable through update_tester (status has its own path)
TESTER_PROFILE_FIELDS = (
    "name", "email", "nickname", "telegram", "device_type", "os", "os_version",
)


class Tester(db.Model):
    """
    A registered tester.

    ``rating`` and ``bugs_count`` are denormalised from the tester's bugs and
    kept current by the rating service.
    """

    __tablename__ = "testers"
    __table_args__ = (
        db.Index("idx_testers_status", "status"),
        db.Index("idx_testers_rating", "rating"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # ── Profile
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    nickname = db.Column(db.String(100), nullable=True)
    telegram = db.Column(db.String(100), nullable=True)
    device_type = db.Column(db.String(50), nullable=False, comment="smartphone | tablet | desktop | …")
    os = db.Column(db.String(50), nullable=False)
    os_version = db.Column(db.String(50), nullable=True)

    # ── Lifecycle
    status = db.Column(
        db.String(20), nullable=False, default="active",
        comment="active | inactive | suspended",
    )
    registration_date = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    last_activity_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Rating (derived from bugs)
    bugs_count = db.Column(db.Integer, nullable=False, default=0)
    rating = db.Column(db.Integer, nullable=False, default=0)

    # ── Relationships
    bugs = db.relationship(
        "Bug", backref="tester", lazy="dynamic",
        order_by="Bug.created_at.desc()",
    )
    activity = db.relationship(
        "ActivityEvent", backref="tester", lazy="dynamic",
        order_by="[ActivityEvent.created_at, ActivityEvent.id]",
    )

    # ── Audit
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def status_label(self):
        return TESTER_STATUS_LABELS.get(self.status, self.status)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "nickname": self.nickname,
            "telegram": self.telegram,
            "device_type": self.device_type,
            "os": self.os,
            "os_version": self.os_version,
            "status": self.status,
            "status_label": self.status_label,
            "registration_date": to_iso(self.registration_date),
            "last_activity_date": to_iso(self.last_activity_date),
            "bugs_count": self.bugs_count,
            "rating": self.rating,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Tester {self.id}: {self.name} ({self.status})>"
