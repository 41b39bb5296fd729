"""
Structured logging configuration.

Every record emitted while a request is active is stamped with the request
id, the caller (``user_id`` / ``company_id`` from the access token) and the
case being addressed, so a lifecycle log line can be traced back to the call
that produced it without threading those values through the service layer.

Formats (LOG_FORMAT, default depends on the environment):
    json      one JSON object per line, for log aggregation (production)
    readable  colored single line with a short context suffix (dev/testing)

Level: LOG_LEVEL (default DEBUG in dev/testing, INFO in production).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Request-scoped attributes copied onto records; also accepted via ``extra=``.
CONTEXT_FIELDS = ("request_id", "user_id", "company_id", "individual_process_id")

# Per-request attributes only the timing middleware passes via ``extra=``.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "event_type")

# URL rule argument → record attribute
_VIEW_ARG_FIELDS = {"case_id": "individual_process_id"}

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


class RequestContextFilter(logging.Filter):
    """Copy request scope from ``flask.g`` and the URL rule onto each record.

    Values already present on the record (passed via ``extra=``) win.
    Outside a request context the record is left untouched.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        scope = {
            "request_id": getattr(g, "request_id", None),
            "user_id": getattr(g, "jwt_user_id", None),
            "company_id": getattr(g, "jwt_company_id", None),
        }
        for arg, field in _VIEW_ARG_FIELDS.items():
            scope[field] = (request.view_args or {}).get(arg)
        for field, value in scope.items():
            if value is not None and getattr(record, field, None) is None:
                setattr(record, field, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }
        for key in CONTEXT_FIELDS + REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message [12ms] rid=… user=… case=…``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    _SUFFIX = (("request_id", "rid"), ("user_id", "user"), ("individual_process_id", "case"))

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        line = (
            f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        for field, label in self._SUFFIX:
            value = getattr(record, field, None)
            if value is not None:
                line += f" {label}={value}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*'s environment."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = os.getenv("LOG_FORMAT", "json" if production else "readable").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, log_format)
