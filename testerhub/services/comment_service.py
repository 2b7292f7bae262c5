"""
Comment lifecycle on bugs.

    created ──(edit: author, inside window)──▶ edited ⟲
       │                                          │
       └──────────(delete: author, any time)──────┴──▶ removed

Edit checks run in a fixed order: existence, authorship, edit window,
then content.  Every mutation advances the parent bug's ``updated_at``
and commits once.
"""

import logging
from datetime import timedelta

from flask import current_app

from testerhub.core.exceptions import (
    EditWindowExpiredError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from testerhub.models import db
from testerhub.models.bug import Comment
from testerhub.services import activity_service, bug_service
from testerhub.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)

AUTHOR_NAME_MAX_LENGTH = 255


# ── Validation ───────────────────────────────────────────────────────────────

def _edit_window() -> timedelta:
    return timedelta(minutes=current_app.config.get("COMMENT_EDIT_WINDOW_MINUTES", 15))


def _validate_content(content) -> str:
    max_len = current_app.config.get("COMMENT_MAX_LENGTH", 5000)
    text = str(content or "").strip()
    if not text:
        raise ValidationError("Comment content is required", details={"content": "required"})
    if len(text) > max_len:
        raise ValidationError(
            f"Comment must be at most {max_len} characters",
            details={"content": f"max {max_len} characters"},
        )
    return text


def _validate_author(author_id, author_name) -> str:
    if author_id is None:
        raise ValidationError("Author id is required", details={"author_id": "required"})
    name = str(author_name or "").strip()
    if not name:
        raise ValidationError("Author name is required", details={"author_name": "required"})
    if len(name) > AUTHOR_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Author name must be at most {AUTHOR_NAME_MAX_LENGTH} characters",
            details={"author_name": f"max {AUTHOR_NAME_MAX_LENGTH} characters"},
        )
    return name


def get_comment(bug_id: int, comment_id: int) -> Comment:
    comment = db.session.get(Comment, comment_id)
    if comment is None or comment.bug_id != bug_id:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    return comment


# ── Edit window ──────────────────────────────────────────────────────────────

def edit_window_remaining(comment: Comment, now=None) -> timedelta:
    """Time left to edit *comment*; zero once the window has closed."""
    now = now or utcnow()
    deadline = as_utc(comment.created_at) + _edit_window()
    return max(deadline - now, timedelta(0))


def can_edit(comment: Comment, author_id: int | None = None, now=None) -> bool:
    """True while the edit window is open (inclusive) and, if given, *author_id* wrote it."""
    if author_id is not None and comment.author_id != author_id:
        return False
    now = now or utcnow()
    return now - as_utc(comment.created_at) <= _edit_window()


# ═════════════════════════════════════════════════════════════════════════════
# OPERATIONS
# ═════════════════════════════════════════════════════════════════════════════

def add_comment(bug_id: int, author_id: int, author_name: str, content: str) -> Comment:
    """Attach a comment to a bug and record ``comment_added`` for the bug's tester.

    Raises:
        NotFoundError: bug does not exist.
        ValidationError: empty/oversized content or author name, missing author id.
    """
    bug = bug_service.get_bug(bug_id)
    name = _validate_author(author_id, author_name)
    text = _validate_content(content)

    now = utcnow()
    comment = Comment(
        bug_id=bug.id,
        author_id=author_id,
        author_name=name,
        content=text,
        is_edited=False,
        created_at=now,
        updated_at=now,
    )
    db.session.add(comment)
    db.session.flush()

    bug_service.touch(bug)
    activity_service.record_comment_added(bug, comment)
    db.session.commit()
    logger.info(
        "Comment added id=%s bug=%s author=%s", comment.id, bug.id, author_id,
        extra={"comment_id": comment.id, "bug_id": bug.id, "tester_id": bug.tester_id},
    )
    return comment


def edit_comment(bug_id: int, comment_id: int, author_id: int, new_content: str) -> Comment:
    """Replace a comment's content.

    Raises:
        NotFoundError: comment does not exist on this bug.
        ForbiddenError: *author_id* did not write the comment.
        EditWindowExpiredError: the edit window has closed.
        ValidationError: empty or oversized content.
    """
    comment = get_comment(bug_id, comment_id)
    if comment.author_id != author_id:
        raise ForbiddenError("Only the author can edit this comment", actor_id=author_id)
    if not can_edit(comment):
        raise EditWindowExpiredError(
            comment.id, current_app.config.get("COMMENT_EDIT_WINDOW_MINUTES", 15)
        )
    text = _validate_content(new_content)

    comment.content = text
    comment.is_edited = True
    comment.updated_at = utcnow()
    bug_service.touch(comment.bug)
    db.session.commit()
    logger.info(
        "Comment edited id=%s bug=%s", comment.id, bug_id,
        extra={"comment_id": comment.id, "bug_id": bug_id},
    )
    return comment


def delete_comment(bug_id: int, comment_id: int, author_id: int) -> None:
    """Remove a comment. Only its author may; there is no time limit.

    Raises:
        NotFoundError: comment does not exist on this bug.
        ForbiddenError: *author_id* did not write the comment.
    """
    comment = get_comment(bug_id, comment_id)
    if comment.author_id != author_id:
        raise ForbiddenError("Only the author can delete this comment", actor_id=author_id)

    bug = comment.bug
    db.session.delete(comment)
    bug_service.touch(bug)
    db.session.commit()
    logger.info(
        "Comment deleted id=%s bug=%s", comment_id, bug_id,
        extra={"comment_id": comment_id, "bug_id": bug_id},
    )


def list_comments(bug_id: int) -> list[Comment]:
    """Comments of a bug, oldest first."""
    bug_service.get_bug(bug_id)
    return (
        Comment.query.filter_by(bug_id=bug_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def comment_count(bug_id: int) -> int:
    bug_service.get_bug(bug_id)
    return Comment.query.filter_by(bug_id=bug_id).count()
