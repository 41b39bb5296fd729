"""
Case Lifecycle Platform
Configuration classes for the Flask app factory.

Selected by name in ``create_app`` (APP_ENV, default "development"):

    app.config.from_object(config["production"])

Every value can be overridden through the environment variable of the same
name; production refuses to start without DATABASE_URL and SECRET_KEY.
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes")


def _database_url(var: str, fallback: str | None) -> str | None:
    """Read a database URL, normalising the ``postgres://`` scheme for SQLAlchemy 2."""
    url = os.getenv(var, "")
    if not url:
        return fallback
    return url.replace("postgres://", "postgresql://", 1)


_POOL_OPTIONS = {
    "pool_pre_ping": True,
    "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
    "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
    "pool_recycle": 300,
    "pool_timeout": 20,
}


class Config:
    """Shared defaults."""

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = dict(_POOL_OPTIONS)

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Access tokens (see app/services/jwt_service.py)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))
    JWT_ISSUER = os.getenv("JWT_ISSUER")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")
    JWT_LEEWAY = int(os.getenv("JWT_LEEWAY", "0"))

    # Flask-Limiter reads RATELIMIT_*
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Case lifecycle
    DEFAULT_CASE_STATUS_CODE = os.getenv("DEFAULT_CASE_STATUS_CODE", "em_preparacao")
    APPROVED_CASE_STATUS_CODE = os.getenv("APPROVED_CASE_STATUS_CODE", "deferido")

    # Activity log / notification delivery: "background" | "inline"
    EVENT_SINK_MODE = os.getenv("EVENT_SINK_MODE", "background")
    EVENT_SINK_WORKERS = int(os.getenv("EVENT_SINK_WORKERS", "2"))


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        "DATABASE_URL", f"sqlite:///{os.path.join(basedir, 'instance', 'case_lifecycle_dev.db')}",
    )
    EVENT_SINK_MODE = os.getenv("EVENT_SINK_MODE", "inline")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", "sqlite:///:memory:")
    # single static connection for in-memory SQLite
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    JWT_SECRET_KEY = "test-jwt-secret"
    JWT_ISSUER = None
    JWT_AUDIENCE = None
    EVENT_SINK_MODE = "inline"


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        **_POOL_OPTIONS,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
