"""
Shared pytest fixtures for the Tester Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - tester / bug / comment: pre-created domain entities via the services
    - make_tester / make_bug: factories for tests that need several
"""

import itertools

import pytest

from testerhub import create_app
from testerhub.models import db as _db
from testerhub.services import bug_service, comment_service, tester_service

_email_seq = itertools.count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Domain factories ─────────────────────────────────────────────────────


@pytest.fixture()
def make_tester():
    def _make(**overrides):
        data = {
            "name": "Alice Tester",
            "email": f"tester{next(_email_seq)}@example.com",
            "device_type": "smartphone",
            "os": "Android",
            "os_version": "14",
        }
        data.update(overrides)
        return tester_service.register_tester(data)
    return _make


@pytest.fixture()
def make_bug():
    def _make(tester_id, **overrides):
        data = {
            "tester_id": tester_id,
            "title": "Crash on login",
            "description": "App closes after tapping Sign in",
            "priority": "high",
            "type": "crash",
        }
        data.update(overrides)
        return bug_service.create_bug(data)
    return _make


@pytest.fixture()
def tester(make_tester):
    return make_tester()


@pytest.fixture()
def bug(tester, make_bug):
    return make_bug(tester.id)


@pytest.fixture()
def comment(bug):
    return comment_service.add_comment(bug.id, author_id=101, author_name="Admin One",
                                       content="Reproduced on Pixel 8")
