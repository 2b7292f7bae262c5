"""
End-to-end lifecycle scenarios.

1. Tester reports a bug, an admin fixes it: the activity history reads
   registration → bug_found → status_changed → bug_fixed.
2. Comment edit matrix: edit window × authorship.
3. Comment churn: N adds and one delete leaves N-1 comments in order.
"""

from datetime import timedelta

import pytest

from testerhub.core.exceptions import EditWindowExpiredError, ForbiddenError
from testerhub.models import db
from testerhub.models.bug import Comment
from testerhub.services import (
    activity_service,
    bug_service,
    comment_service,
    tester_service,
)
from testerhub.utils.helpers import utcnow

A1 = 1
A2 = 2


def _set_age(comment_id, minutes):
    c = db.session.get(Comment, comment_id)
    c.created_at = utcnow() - timedelta(minutes=minutes)
    db.session.commit()


def test_report_and_fix_history():
    tester = tester_service.register_tester({
        "name": "Grace", "email": "grace@example.com",
        "device_type": "desktop", "os": "macOS",
    })
    bug = bug_service.create_bug({
        "tester_id": tester.id, "title": "Sync fails", "priority": "critical", "type": "functionality",
    })
    bug_service.update_status(bug.id, "fixed", acting_admin_id=A1)

    history = activity_service.query_activity(tester.id)
    assert [e.event_type for e in history] == [
        "registration", "bug_found", "status_changed", "bug_fixed",
    ]
    assert all(e.tester_id == tester.id for e in history)


def test_comment_edit_window_and_authorship(bug):
    comment = comment_service.add_comment(bug.id, A1, "Admin One", "Initial note")

    _set_age(comment.id, 16)
    with pytest.raises(EditWindowExpiredError):
        comment_service.edit_comment(bug.id, comment.id, A1, "late edit")

    _set_age(comment.id, 5)
    with pytest.raises(ForbiddenError):
        comment_service.edit_comment(bug.id, comment.id, A2, "not mine")

    edited = comment_service.edit_comment(bug.id, comment.id, A1, "timely edit")
    assert edited.is_edited is True
    assert edited.content == "timely edit"


@pytest.mark.parametrize("minutes,author,expected", [
    (5, A1, "ok"),
    (16, A1, EditWindowExpiredError),
    (5, A2, ForbiddenError),
    (16, A2, ForbiddenError),
])
def test_edit_matrix(bug, minutes, author, expected):
    comment = comment_service.add_comment(bug.id, A1, "Admin One", "note")
    _set_age(comment.id, minutes)
    if expected == "ok":
        assert comment_service.edit_comment(bug.id, comment.id, author, "new").is_edited
    else:
        with pytest.raises(expected):
            comment_service.edit_comment(bug.id, comment.id, author, "new")


def test_comment_churn(bug):
    n = 4
    ids = [comment_service.add_comment(bug.id, A1, "Admin One", f"#{i}").id for i in range(n)]
    comment_service.delete_comment(bug.id, ids[0], A1)

    remaining = comment_service.list_comments(bug.id)
    assert len(remaining) == n - 1
    assert [c.id for c in remaining] == ids[1:]
