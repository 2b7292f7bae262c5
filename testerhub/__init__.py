"""
Tester Hub
Flask Application Factory.

Usage:
    from testerhub import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event as _sa_event, engine as _sa_engine
from werkzeug.exceptions import HTTPException

from testerhub.config import config
from testerhub.core.exceptions import (
    ConflictError,
    EditWindowExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from testerhub.middleware.identity import init_identity
from testerhub.middleware.logging_config import configure_logging
from testerhub.middleware.rate_limiter import init_rate_limits
from testerhub.middleware.timing import init_request_timing
from testerhub.models import db
from testerhub.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiate so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + identity ────────────────────────────────────────
    init_request_timing(app)
    init_identity(app)

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from testerhub.models import tester as _tester_models      # noqa: F401
    from testerhub.models import bug as _bug_models            # noqa: F401
    from testerhub.models import activity as _activity_models  # noqa: F401

    # ── Auto-create tables for SQLite (dev/test); Postgres goes through migrations
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        if app.config["SQLALCHEMY_DATABASE_URI"] != "sqlite:///:memory:":
            os.makedirs(os.path.join(os.path.dirname(app.root_path), "instance"), exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.debug("db.create_all() completed")

    # ── Blueprints ───────────────────────────────────────────────────────
    from testerhub.blueprints.testers_bp import testers_bp
    from testerhub.blueprints.bugs_bp import bugs_bp
    from testerhub.blueprints.activity_bp import activity_bp
    from testerhub.blueprints.export_bp import export_bp
    from testerhub.blueprints.health_bp import health_bp

    app.register_blueprint(testers_bp)
    app.register_blueprint(bugs_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(health_bp)

    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_error_handlers(app):
    """Map domain exceptions to the standard JSON error envelope."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(InvalidTransitionError)
    def _handle_invalid_transition(error: InvalidTransitionError):
        db.session.rollback()
        return api_error(E.INVALID_TRANSITION, str(error), details={"allowed": error.allowed})

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @app.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        db.session.rollback()
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(EditWindowExpiredError)
    def _handle_edit_window(error: EditWindowExpiredError):
        db.session.rollback()
        return api_error(
            E.EDIT_WINDOW_EXPIRED, str(error),
            details={"window_minutes": error.window_minutes},
        )

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": E.NOT_FOUND, "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return {"error": error.description}, error.code
        db.session.rollback()
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
