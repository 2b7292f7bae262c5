"""
Activity feed API and health checks.
"""

API = "/api/v1"


class TestActivityFeed:
    def test_feed_and_single_event(self, client, tester, bug):
        body = client.get(f"{API}/activity").get_json()
        assert body["total"] == 2
        newest = body["events"][0]
        assert newest["event_type"] == "bug_found"
        assert newest["tester_name"] == tester.name

        res = client.get(f"{API}/activity/{newest['id']}")
        assert res.status_code == 200
        assert res.get_json()["event"]["metadata"]["bug_id"] == bug.id

    def test_feed_filters(self, client, make_tester, make_bug):
        a = make_tester()
        b = make_tester()
        make_bug(b.id)
        body = client.get(f"{API}/activity?tester_id={a.id}").get_json()
        assert body["total"] == 1
        body = client.get(f"{API}/activity?event_type=bug_found").get_json()
        assert body["total"] == 1
        assert body["events"][0]["tester_id"] == b.id

    def test_feed_bad_tester_id(self, client):
        res = client.get(f"{API}/activity?tester_id=abc")
        assert res.status_code == 422

    def test_missing_event(self, client):
        assert client.get(f"{API}/activity/123").status_code == 404

    def test_statistics(self, client, tester):
        stats = client.get(f"{API}/activity/statistics").get_json()
        assert stats["total"] == 1
        assert stats["by_event_type"]["registration"] == 1

    def test_no_write_routes(self, client, tester):
        assert client.post(f"{API}/activity", json={}).status_code == 405
        assert client.delete(f"{API}/activity/1").status_code == 405


class TestHealth:
    def test_ready(self, client):
        res = client.get(f"{API}/health/ready")
        assert res.status_code == 200
        assert res.headers["X-Request-ID"]

    def test_live(self, client):
        body = client.get(f"{API}/health/live").get_json()
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["redis"]["status"] == "skipped"
