"""
Tester Hub
Bug domain models.

Models:
    - Bug:      defect report owned by a tester
    - Comment:  free-text discussion entry on a bug (cascade-deleted with it)

Architecture ref:
    Tester ──1:N──▶ Bug ──1:N──▶ Comment

Status lifecycle is permissive: any status may move to any other status.
"""

from datetime import datetime, timezone

from testerhub.models import db
from testerhub.utils.helpers import to_iso


# ── Constants ────────────────────────────────────────────────────────────

BUG_STATUSES = {"new", "in_progress", "fixed", "closed"}

BUG_PRIORITIES = {"low", "medium", "high", "critical"}

BUG_TYPES = {"ui", "functionality", "performance", "crash", "security", "other"}

BUG_STATUS_LABELS = {
    "new": "New",
    "in_progress": "In progress",
    "fixed": "Fixed",
    "closed": "Closed",
}

BUG_PRIORITY_LABELS = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
    "critical": "Critical",
}

BUG_TYPE_LABELS = {
    "ui": "User interface",
    "functionality": "Functionality",
    "performance": "Performance",
    "crash": "Crash",
    "security": "Security",
    "other": "Other",
}

# Statuses that clear fixed_at when a bug moves back into them
REOPEN_STATUSES = {"new", "in_progress"}


class Bug(db.Model):
    """
    Bug reported by a tester.

    ``updated_at`` is advanced explicitly by the services (see
    ``bug_service.touch``) whenever status, priority or the comment set
    changes, so it is strictly monotonic per bug.
    """

    __tablename__ = "bugs"
    __table_args__ = (
        db.Index("idx_bugs_status", "status"),
        db.Index("idx_bugs_priority", "priority"),
        db.Index("idx_bugs_created_at", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tester_id = db.Column(
        db.Integer, db.ForeignKey("testers.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, default="")

    # ── Classification
    status = db.Column(
        db.String(20), nullable=False, default="new",
        comment="new | in_progress | fixed | closed",
    )
    priority = db.Column(
        db.String(20), nullable=False,
        comment="low | medium | high | critical",
    )
    type = db.Column(
        db.String(30), nullable=False,
        comment="ui | functionality | performance | crash | security | other",
    )

    fixed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Relationships
    comments = db.relationship(
        "Comment", backref="bug", lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="[Comment.created_at, Comment.id]",
    )

    # ── Audit
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self, include_comments=False):
        d = {
            "id": self.id,
            "tester_id": self.tester_id,
            "tester_name": self.tester.name if self.tester else None,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "status_label": BUG_STATUS_LABELS.get(self.status, self.status),
            "priority": self.priority,
            "priority_label": BUG_PRIORITY_LABELS.get(self.priority, self.priority),
            "type": self.type,
            "type_label": BUG_TYPE_LABELS.get(self.type, self.type),
            "fixed_at": to_iso(self.fixed_at),
            "comment_count": self.comments.count() if self.id else 0,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }
        if include_comments:
            d["comments"] = [c.to_dict() for c in self.comments.all()]
        return d

    def __repr__(self):
        return f"<Bug {self.id}: [{self.priority}] {self.title[:30]}>"


# ═════════════════════════════════════════════════════════════════════════════
# COMMENT
# ═════════════════════════════════════════════════════════════════════════════

class Comment(db.Model):
    """
    Comment on a bug.

    Lifecycle: created → edited (any number of times, author only, inside
    the edit window) → deleted (author only, row removed).
    """

    __tablename__ = "comments"
    __table_args__ = (
        db.Index("idx_comments_bug_created", "bug_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    bug_id = db.Column(
        db.Integer, db.ForeignKey("bugs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    author_id = db.Column(db.Integer, nullable=False, index=True)
    author_name = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    is_edited = db.Column(db.Boolean, nullable=False, default=False)

    # ── Audit
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "bug_id": self.bug_id,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "content": self.content,
            "is_edited": self.is_edited,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Comment {self.id}: bug#{self.bug_id} by {self.author_name}>"
