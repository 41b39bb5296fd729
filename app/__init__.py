"""
Case Lifecycle Platform
Flask application factory.

Usage:
    from app import create_app
    app = create_app()           # APP_ENV or "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event as sa_event

from app.config import config
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing
from app.models import db
from app.services.event_sink import init_event_sink

logger = logging.getLogger(__name__)

APP_NAME = "Case Lifecycle Platform"

migrate = Migrate()
limiter = Limiter(key_func=get_remote_address, default_limits=[])


@sa_event.listens_for(sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """SQLite ignores foreign keys unless asked; the cascade steps rely on them."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, else "development".
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_request_timing(app)
    init_jwt_middleware(app)
    init_event_sink(app)
    _register_request_guards(app)

    _import_models()
    with app.app_context():
        try:
            db.create_all()
        except Exception as exc:
            logger.warning("db.create_all() failed: %s", exc)

    _register_blueprints(app)
    _register_cli(app)
    _register_error_handlers(app)
    init_rate_limits(app, limiter)

    logger.debug("%s created with config=%s", APP_NAME, config_name)
    return app


def _import_models():
    """Import every model module so metadata (and Flask-Migrate) sees all tables."""
    from app.models import activity, case_status, document, notification, process, reference, task  # noqa: F401


def _register_request_guards(app):
    @app.before_request
    def _require_json_body():
        if request.method not in ("POST", "PUT", "PATCH") or not request.path.startswith("/api/"):
            return
        # Form bodies are parsed into request.form, so go by the declared length.
        has_body = bool(request.content_length) or "chunked" in request.headers.get("Transfer-Encoding", "")
        if has_body and not request.is_json:
            abort(415, description="Content-Type must be application/json")


def _register_blueprints(app):
    from app.blueprints.health_bp import health_bp
    from app.blueprints.individual_process_bp import individual_process_bp
    from app.blueprints.notification_bp import notification_bp
    from app.blueprints.task_bp import task_bp

    for bp in (individual_process_bp, task_bp, notification_bp, health_bp):
        app.register_blueprint(bp)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": APP_NAME}


def _register_cli(app):
    @app.cli.command("seed-case-statuses")
    def seed_case_statuses_cmd():
        """Insert the default case statuses that are missing."""
        from app.models.case_status import seed_case_statuses

        created = seed_case_statuses()
        db.session.commit()
        logger.info("Seeded %s new case statuses.", created)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500
