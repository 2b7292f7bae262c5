"""
Tester registry: registration validation, uniqueness, profile/status updates, listing.
"""

from datetime import timedelta

import pytest

from testerhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from testerhub.models import db
from testerhub.models.tester import Tester
from testerhub.services import activity_service, tester_service
from testerhub.utils.helpers import as_utc, utcnow


def _data(**overrides):
    data = {
        "name": "Bob",
        "email": "bob@example.com",
        "device_type": "tablet",
        "os": "iOS",
    }
    data.update(overrides)
    return data


class TestRegister:
    def test_defaults(self):
        t = tester_service.register_tester(_data())
        assert t.status == "active"
        assert t.rating == 0
        assert t.bugs_count == 0
        assert t.registration_date is not None

    def test_records_registration_event(self):
        t = tester_service.register_tester(_data())
        events = activity_service.query_activity(t.id)
        assert [e.event_type for e in events] == ["registration"]
        assert events[0].event_metadata["os"] == "iOS"

    @pytest.mark.parametrize("field", ["name", "email", "device_type", "os"])
    def test_required_fields(self, field):
        with pytest.raises(ValidationError) as exc:
            tester_service.register_tester(_data(**{field: "  "}))
        assert exc.value.details[field] == "required"

    @pytest.mark.parametrize("email", ["bob", "bob@", "bob@example", "b ob@example.com"])
    def test_bad_email(self, email):
        with pytest.raises(ValidationError) as exc:
            tester_service.register_tester(_data(email=email))
        assert "email" in exc.value.details

    def test_duplicate_email_conflicts_case_insensitively(self):
        tester_service.register_tester(_data())
        with pytest.raises(ConflictError):
            tester_service.register_tester(_data(email="BOB@example.com", name="Other Bob"))


class TestUpdate:
    def test_profile_update(self, tester):
        updated = tester_service.update_tester(tester.id, {"nickname": "ace", "os_version": "15"})
        assert updated.nickname == "ace"
        assert updated.os_version == "15"

    def test_profile_update_rejects_blank_required(self, tester):
        with pytest.raises(ValidationError):
            tester_service.update_tester(tester.id, {"name": ""})

    def test_profile_update_email_conflict(self, make_tester):
        a = make_tester(email="a@example.com")
        make_tester(email="b@example.com")
        with pytest.raises(ConflictError):
            tester_service.update_tester(a.id, {"email": "b@example.com"})

    def test_status_change_records_event(self, tester):
        tester_service.update_tester_status(tester.id, "suspended")
        events = activity_service.query_activity(tester.id, event_type="status_changed")
        assert len(events) == 1
        assert events[0].event_metadata == {
            "subject": "tester", "old_status": "active", "new_status": "suspended",
        }

    def test_same_status_records_nothing(self, tester):
        tester_service.update_tester_status(tester.id, "active")
        assert activity_service.query_activity(tester.id, event_type="status_changed") == []

    def test_invalid_status(self, tester):
        with pytest.raises(ValidationError):
            tester_service.update_tester_status(tester.id, "banned")

    def test_missing_tester(self):
        with pytest.raises(NotFoundError):
            tester_service.update_tester_status(5, "inactive")

    def test_touch_last_activity_flushes_without_commit(self, tester):
        stamp = utcnow() + timedelta(days=1)
        tester_service.touch_last_activity(tester.id, stamp)
        assert as_utc(tester.last_activity_date) == stamp
        db.session.rollback()
        assert as_utc(db.session.get(Tester, tester.id).last_activity_date) != stamp

    def test_touch_last_activity_missing_tester(self):
        with pytest.raises(NotFoundError):
            tester_service.touch_last_activity(77)


class TestListing:
    def test_search_and_filters(self, make_tester):
        make_tester(name="Carol", device_type="desktop", os="Windows")
        make_tester(name="Dave", device_type="smartphone", os="Android")

        testers, total = tester_service.list_testers(search="car")
        assert total == 1 and testers[0].name == "Carol"

        _, total = tester_service.list_testers(device_type="smartphone")
        assert total == 1

        _, total = tester_service.list_testers(os="Windows")
        assert total == 1

    def test_sort_by_name(self, make_tester):
        make_tester(name="Zed")
        make_tester(name="Amy")
        testers, _ = tester_service.list_testers(sort="name", order="asc")
        assert [t.name for t in testers] == ["Amy", "Zed"]

    def test_statistics(self, make_tester):
        a = make_tester()
        make_tester()
        tester_service.update_tester_status(a.id, "inactive")
        stats = tester_service.tester_statistics()
        assert stats["total"] == 2
        assert stats["by_status"] == {"active": 1, "inactive": 1, "suspended": 0}
