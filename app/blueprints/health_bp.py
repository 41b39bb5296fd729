"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database reachability and reference data
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select

from app.models import db
from app.models.case_status import CaseStatus

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Case statuses seeded ─────────────────────────────────────────
    if overall:
        count = db.session.execute(select(func.count(CaseStatus.id))).scalar()
        checks["case_statuses"] = {"status": "ok" if count else "not_seeded", "count": count}

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Case Lifecycle Platform",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "event_sink": type(current_app.extensions.get("event_sink")).__name__,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
