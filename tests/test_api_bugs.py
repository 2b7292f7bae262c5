"""
Bug API: create, list, status/priority transitions, delete, statistics.
"""

import pytest


API = "/api/v1"
ADMIN = {"X-User-Id": "1", "X-User-Name": "Admin"}


def _post(client, url, data=None, headers=None):
    return client.post(API + url, json=data or {}, headers=headers or {})


def _get(client, url):
    return client.get(API + url)


def _patch(client, url, data=None, headers=None):
    return client.patch(API + url, json=data or {}, headers=headers or {})


@pytest.fixture()
def bug_json(client, tester):
    res = _post(client, "/bugs", {
        "tester_id": tester.id,
        "title": "Login button unresponsive",
        "description": "Nothing happens on tap",
        "priority": "high",
        "type": "functionality",
    })
    assert res.status_code == 201
    return res.get_json()["bug"]


class TestCreate:
    def test_create(self, bug_json, tester):
        assert bug_json["status"] == "new"
        assert bug_json["tester_id"] == tester.id
        assert bug_json["priority_label"] == "High"
        assert bug_json["comment_count"] == 0

    def test_unknown_tester(self, client):
        res = _post(client, "/bugs", {
            "tester_id": 999, "title": "x", "priority": "low", "type": "ui",
        })
        assert res.status_code == 404

    def test_missing_title(self, client, tester):
        res = _post(client, "/bugs", {"tester_id": tester.id, "priority": "low", "type": "ui"})
        assert res.status_code == 422
        assert "title" in res.get_json()["details"]

    def test_non_json_body_rejected(self, client):
        res = client.post(API + "/bugs", data="title=x", content_type="text/plain")
        assert res.status_code == 415


class TestStatus:
    def test_requires_identity(self, client, bug_json):
        res = _patch(client, f"/bugs/{bug_json['id']}/status", {"status": "fixed"})
        assert res.status_code == 401

    def test_fixed(self, client, bug_json):
        res = _patch(client, f"/bugs/{bug_json['id']}/status", {"status": "fixed"}, headers=ADMIN)
        assert res.status_code == 200
        body = res.get_json()["bug"]
        assert body["status"] == "fixed"
        assert body["fixed_at"] is not None

    def test_invalid_status(self, client, bug_json):
        res = _patch(client, f"/bugs/{bug_json['id']}/status", {"status": "done"}, headers=ADMIN)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_INVALID_TRANSITION"
        assert "in_progress" in body["details"]["allowed"]

    def test_missing_bug(self, client):
        res = _patch(client, "/bugs/404/status", {"status": "fixed"}, headers=ADMIN)
        assert res.status_code == 404


class TestPriority:
    def test_change_priority(self, client, bug_json):
        res = _patch(client, f"/bugs/{bug_json['id']}/priority",
                     {"priority": "critical"}, headers=ADMIN)
        assert res.status_code == 200
        assert res.get_json()["bug"]["priority"] == "critical"

    def test_invalid_priority(self, client, bug_json):
        res = _patch(client, f"/bugs/{bug_json['id']}/priority",
                     {"priority": "p0"}, headers=ADMIN)
        assert res.status_code == 422


class TestCrud:
    def test_get_includes_comments(self, client, bug_json):
        _post(client, f"/bugs/{bug_json['id']}/comments", {"content": "seen"}, headers=ADMIN)
        body = _get(client, f"/bugs/{bug_json['id']}").get_json()["bug"]
        assert body["comment_count"] == 1
        assert body["comments"][0]["content"] == "seen"

    def test_update(self, client, bug_json):
        res = client.put(f"{API}/bugs/{bug_json['id']}", json={"title": "Renamed"})
        assert res.status_code == 200
        assert res.get_json()["bug"]["title"] == "Renamed"

    def test_delete(self, client, bug_json):
        res = client.delete(f"{API}/bugs/{bug_json['id']}")
        assert res.status_code == 200
        assert _get(client, f"/bugs/{bug_json['id']}").status_code == 404

    def test_list_and_statistics(self, client, bug_json):
        body = _get(client, "/bugs?priority=high").get_json()
        assert body["total"] == 1
        assert _get(client, "/bugs?priority=low").get_json()["total"] == 0
        stats = _get(client, "/bugs/statistics").get_json()
        assert stats["by_status"]["new"] == 1

    def test_tester_bugs(self, client, bug_json):
        body = _get(client, f"/testers/{bug_json['tester_id']}/bugs").get_json()
        assert [b["id"] for b in body["bugs"]] == [bug_json["id"]]
