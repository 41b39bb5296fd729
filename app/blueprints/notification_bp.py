"""
Case Lifecycle Platform
Notification & activity log blueprint.

Provides:
    - In-app notifications of the calling user (list, unread count, mark read)
    - Activity log lookup per entity (admin only)
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from app.auth import resolve_caller_identity
from app.blueprints import pagination_args, register_service_error_handlers
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.activity import ACTIVITY_ENTITY_TYPES, ActivityLog
from app.services import access_filter
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")
register_service_error_handlers(notification_bp)


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    """Notifications of the caller, newest first.

    Query params: unread_only (bool), limit, offset
    """
    caller = resolve_caller_identity()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit, offset = pagination_args()
    items, total = NotificationService.list_for_user(
        caller.user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(caller.user_id),
    }), 200


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    caller = resolve_caller_identity()
    return jsonify({"unread_count": NotificationService.unread_count(caller.user_id)}), 200


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH", "POST"])
def mark_read(notification_id: int):
    caller = resolve_caller_identity()
    notif = NotificationService.mark_read(notification_id, caller.user_id)
    if notif is None:
        raise NotFoundError(resource="Notification", resource_id=notification_id)
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/notifications/mark-all-read", methods=["POST"])
def mark_all_read():
    caller = resolve_caller_identity()
    count = NotificationService.mark_all_read(caller.user_id)
    return jsonify({"marked_read": count}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  ACTIVITY LOGS
# ═══════════════════════════════════════════════════════════════════════════


@notification_bp.route("/activity-logs/<entity_type>/<entity_id>", methods=["GET"])
def list_activity_logs(entity_type: str, entity_id: str):
    """Activity of one entity, newest first (admin only)."""
    caller = resolve_caller_identity()
    access_filter.require_admin(caller)
    if entity_type not in ACTIVITY_ENTITY_TYPES:
        raise ValidationError(
            f"Unknown entity type: {entity_type}",
            details={"entity_type": f"must be one of {sorted(ACTIVITY_ENTITY_TYPES)}"},
        )
    limit, offset = pagination_args()
    stmt = (
        select(ActivityLog)
        .where(ActivityLog.entity_type == entity_type, ActivityLog.entity_id == str(entity_id))
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    )
    rows = db.session.execute(stmt.offset(offset).limit(limit)).scalars().all()
    return jsonify({"items": [r.to_dict() for r in rows], "total": len(rows)}), 200
