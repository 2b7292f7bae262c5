"""
Activity log: record_event and query_activity.

Covers:
  - record_event validation (unknown tester, unknown type, empty description)
  - events visible immediately after the write
  - insertion order with (created_at, id) tie-break
  - conjunctive filters: event_type, since, until (inclusive), limit, newest_first
  - admin feed, single event lookup, statistics
"""

from datetime import timedelta, timezone

import pytest

from testerhub.core.exceptions import NotFoundError, ValidationError
from testerhub.models import db
from testerhub.models.activity import ActivityEvent
from testerhub.services import activity_service, bug_service
from testerhub.utils.helpers import as_utc, parse_datetime, utcnow


def _types(events):
    return [e.event_type for e in events]


def _backdate(event_id, delta):
    event = db.session.get(ActivityEvent, event_id)
    event.created_at = utcnow() - delta
    db.session.commit()


class TestRecordEvent:
    def test_unknown_tester_raises_not_found(self):
        with pytest.raises(NotFoundError):
            activity_service.record_event(9999, "bug_found", "Bug found: x")

    def test_unknown_event_type_raises_validation(self, tester):
        with pytest.raises(ValidationError) as exc:
            activity_service.record_event(tester.id, "bug_deleted", "nope")
        assert "event_type" in exc.value.details

    def test_empty_description_raises_validation(self, tester):
        with pytest.raises(ValidationError):
            activity_service.record_event(tester.id, "bug_found", "   ")

    def test_event_visible_immediately(self, tester):
        before = len(activity_service.query_activity(tester.id))
        activity_service.record_event(
            tester.id, "comment_added", "Note", {"bug_id": 1},
        )
        events = activity_service.query_activity(tester.id)
        assert len(events) == before + 1
        assert events[-1].event_type == "comment_added"
        assert events[-1].event_metadata == {"bug_id": 1}

    def test_metadata_defaults_to_empty_dict(self, tester):
        event = activity_service.record_event(tester.id, "bug_found", "Bug found: y")
        assert event.event_metadata == {}
        assert event.to_dict()["metadata"] == {}


class TestQueryActivity:
    def test_registration_is_first_event(self, tester):
        events = activity_service.query_activity(tester.id)
        assert _types(events) == ["registration"]

    def test_insertion_order_preserved_on_identical_timestamps(self, tester):
        stamp = utcnow()
        ids = []
        for n in range(3):
            ev = activity_service.record_event(tester.id, "comment_added", f"c{n}")
            ev.created_at = stamp
            ids.append(ev.id)
        db.session.commit()

        events = activity_service.query_activity(tester.id, event_type="comment_added")
        assert [e.id for e in events] == ids

    def test_newest_first_reverses(self, tester, make_bug):
        make_bug(tester.id)
        asc = activity_service.query_activity(tester.id)
        desc = activity_service.query_activity(tester.id, newest_first=True)
        assert [e.id for e in desc] == [e.id for e in reversed(asc)]

    def test_filter_by_event_type(self, tester, make_bug):
        b = make_bug(tester.id)
        bug_service.update_status(b.id, "fixed", acting_admin_id=7)
        events = activity_service.query_activity(tester.id, event_type="bug_fixed")
        assert _types(events) == ["bug_fixed"]

    def test_unknown_event_type_filter_rejected(self, tester):
        with pytest.raises(ValidationError):
            activity_service.query_activity(tester.id, event_type="bogus")

    def test_unknown_tester_rejected(self):
        with pytest.raises(NotFoundError):
            activity_service.query_activity(424242)

    def test_since_until_inclusive(self, tester):
        old = activity_service.record_event(tester.id, "comment_added", "old")
        mid = activity_service.record_event(tester.id, "comment_added", "mid")
        db.session.commit()
        _backdate(old.id, timedelta(days=3))
        _backdate(mid.id, timedelta(days=1))

        mid_at = db.session.get(ActivityEvent, mid.id).created_at
        events = activity_service.query_activity(
            tester.id, event_type="comment_added", since=mid_at, until=mid_at,
        )
        assert [e.id for e in events] == [mid.id]

        recent = activity_service.query_activity(
            tester.id, since=utcnow() - timedelta(days=2),
        )
        assert old.id not in [e.id for e in recent]
        assert mid.id in [e.id for e in recent]

    def test_since_with_non_utc_offset(self, tester):
        created = as_utc(activity_service.query_activity(tester.id)[0].created_at)
        plus_three = timezone(timedelta(hours=3))
        since = parse_datetime((created - timedelta(hours=1)).astimezone(plus_three).isoformat())
        assert since.utcoffset() == timedelta(0)

        assert _types(activity_service.query_activity(tester.id, since=since)) == ["registration"]

        # aware datetimes handed straight to the service are converted too
        before = (created - timedelta(minutes=30)).astimezone(plus_three)
        assert _types(activity_service.query_activity(tester.id, since=before)) == ["registration"]
        assert activity_service.query_activity(tester.id, until=before) == []

    def test_since_after_until_rejected(self, tester):
        now = utcnow()
        with pytest.raises(ValidationError):
            activity_service.query_activity(tester.id, since=now, until=now - timedelta(hours=1))

    def test_limit(self, tester, make_bug):
        make_bug(tester.id)
        make_bug(tester.id)
        events = activity_service.query_activity(tester.id, limit=2)
        assert _types(events) == ["registration", "bug_found"]

    def test_events_isolated_per_tester(self, make_tester, make_bug):
        a = make_tester()
        b = make_tester()
        make_bug(b.id)
        assert _types(activity_service.query_activity(a.id)) == ["registration"]


class TestFeedAndStatistics:
    def test_list_activity_newest_first_with_tester_name(self, make_tester):
        make_tester(name="First")
        make_tester(name="Second")
        items, total = activity_service.list_activity()
        assert total == 2
        assert items[0]["tester_name"] == "Second"

    def test_list_activity_filters_by_tester(self, make_tester):
        a = make_tester()
        make_tester()
        items, total = activity_service.list_activity(tester_id=a.id)
        assert total == 1
        assert items[0]["tester_id"] == a.id

    def test_get_event_not_found(self):
        with pytest.raises(NotFoundError):
            activity_service.get_event(1)

    def test_statistics(self, tester, make_bug):
        make_bug(tester.id)
        stats = activity_service.activity_statistics()
        assert stats["total"] == 2
        assert stats["recent_24h"] == 2
        assert stats["by_event_type"]["registration"] == 1
        assert stats["by_event_type"]["bug_found"] == 1
        assert stats["by_event_type"]["bug_fixed"] == 0
