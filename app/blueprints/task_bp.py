"""Task blueprint.

Endpoints:
  GET    /api/v1/tasks                         list (filters: individual_process_id,
                                               collective_process_id, status, priority,
                                               assigned_to)
  GET    /api/v1/tasks/mine                    tasks assigned to the caller
  GET    /api/v1/tasks/overdue                 open tasks past due (admin), ?as_of=
  POST   /api/v1/tasks                         create (admin)
  GET    /api/v1/tasks/<id>
  PUT    /api/v1/tasks/<id>                    update (admin)
  POST   /api/v1/tasks/<id>/complete           (admin)
  POST   /api/v1/tasks/<id>/reassign           body: { assigned_to } (admin)
  POST   /api/v1/tasks/<id>/extend-deadline    body: { new_due_date } (admin)
  DELETE /api/v1/tasks/<id>                    (admin)

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import app.services.task_service as task_service
from app.auth import resolve_caller_identity
from app.blueprints import register_service_error_handlers
from app.utils.helpers import parse_date

logger = logging.getLogger(__name__)

task_bp = Blueprint("task", __name__, url_prefix="/api/v1/tasks")
register_service_error_handlers(task_bp)

_LIST_FILTERS = ("individual_process_id", "collective_process_id", "status", "priority", "assigned_to")


@task_bp.route("", methods=["GET"])
def list_tasks():
    caller = resolve_caller_identity()
    filters = {k: request.args.get(k) for k in _LIST_FILTERS if request.args.get(k)}
    items = task_service.list_tasks(filters, caller)
    return jsonify({"items": items, "total": len(items)}), 200


@task_bp.route("/mine", methods=["GET"])
def list_my_tasks():
    caller = resolve_caller_identity()
    include_completed = request.args.get("include_completed", "false").lower() == "true"
    items = task_service.list_my_tasks(caller, include_completed=include_completed)
    return jsonify({"items": items, "total": len(items)}), 200


@task_bp.route("/overdue", methods=["GET"])
def list_overdue_tasks():
    """Query params: as_of (YYYY-MM-DD or DD/MM/YYYY, default today)"""
    caller = resolve_caller_identity()
    items = task_service.list_overdue_tasks(caller, today=parse_date(request.args.get("as_of")))
    return jsonify({"items": items, "total": len(items)}), 200


@task_bp.route("", methods=["POST"])
def create_task():
    """Body: { title, assigned_to, individual_process_id? | collective_process_id?,
    description?, due_date?, priority? }
    """
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not (data.get("title") or "").strip():
        return jsonify({"error": "title is required"}), 400
    task_id = task_service.create_task(data, caller)
    return jsonify(task_service.get_task(task_id, caller)), 201


@task_bp.route("/<int:task_id>", methods=["GET"])
def get_task(task_id: int):
    caller = resolve_caller_identity()
    return jsonify(task_service.get_task(task_id, caller)), 200


@task_bp.route("/<int:task_id>", methods=["PUT", "PATCH"])
def update_task(task_id: int):
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    task_service.update_task(task_id, data, caller)
    return jsonify(task_service.get_task(task_id, caller)), 200


@task_bp.route("/<int:task_id>/complete", methods=["POST"])
def complete_task(task_id: int):
    caller = resolve_caller_identity()
    task_service.complete_task(task_id, caller)
    return jsonify(task_service.get_task(task_id, caller)), 200


@task_bp.route("/<int:task_id>/reassign", methods=["POST"])
def reassign_task(task_id: int):
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not data.get("assigned_to"):
        return jsonify({"error": "assigned_to is required"}), 400
    task_service.reassign_task(task_id, data["assigned_to"], caller)
    return jsonify(task_service.get_task(task_id, caller)), 200


@task_bp.route("/<int:task_id>/extend-deadline", methods=["POST"])
def extend_deadline(task_id: int):
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not data.get("new_due_date"):
        return jsonify({"error": "new_due_date is required"}), 400
    task_service.extend_deadline(task_id, data["new_due_date"], caller)
    return jsonify(task_service.get_task(task_id, caller)), 200


@task_bp.route("/<int:task_id>", methods=["DELETE"])
def delete_task(task_id: int):
    caller = resolve_caller_identity()
    task_service.delete_task(task_id, caller)
    return "", 204
