"""Individual process (case) lifecycle blueprint.

REST API for cases, their status transitions and the collective-process
synchronisation helpers.

Endpoint groups:
  Cases                 GET/POST        /api/v1/individual-processes
                        GET/PUT/DELETE  /api/v1/individual-processes/<id>
  New round             POST /api/v1/individual-processes/<id>/create-from-existing
  Checklist             GET  /api/v1/individual-processes/<id>/checklist
                        POST /api/v1/individual-processes/<id>/regenerate-checklist
  History               GET  /api/v1/individual-processes/<id>/history
                        GET  /api/v1/individual-processes/<id>/statuses
  Group sync            PATCH /api/v1/individual-processes/<id>/urgency
                        PATCH /api/v1/individual-processes/<id>/authorization
  Bulk                  POST /api/v1/individual-processes/bulk-status
                        POST /api/v1/individual-processes/common-next-statuses
  Reference             GET  /api/v1/case-statuses

The caller is resolved from the access token on every request.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import select

import app.services.individual_process_service as ips
from app.auth import resolve_caller_identity
from app.blueprints import register_service_error_handlers
from app.models import db
from app.models.case_status import CaseStatus, get_next_allowed_statuses

logger = logging.getLogger(__name__)

individual_process_bp = Blueprint("individual_process", __name__, url_prefix="/api/v1")
register_service_error_handlers(individual_process_bp)

_LIST_FILTERS = (
    "collective_process_id", "person_id", "case_status_id", "status",
    "is_active", "process_status", "search",
)


def _id_list(data: dict, key: str = "ids") -> tuple[list[int] | None, tuple | None]:
    ids = data.get(key)
    if not isinstance(ids, list) or not ids:
        return None, (jsonify({"error": f"{key} must be a non-empty array"}), 400)
    try:
        return [int(i) for i in ids], None
    except (TypeError, ValueError):
        return None, (jsonify({"error": f"{key} must contain integer ids"}), 400)


# ═════════════════════════════════════════════════════════════════════════
# Cases
# ═════════════════════════════════════════════════════════════════════════


@individual_process_bp.route("/individual-processes", methods=["GET"])
def list_individual_processes():
    """List cases visible to the caller.

    Query params: collective_process_id, person_id, case_status_id, status,
                  is_active, process_status, search
    Returns: { "items": list, "total": int }
    """
    caller = resolve_caller_identity()
    filters = {k: request.args.get(k) for k in _LIST_FILTERS if request.args.get(k) not in (None, "")}
    items = ips.list_cases(filters, caller)
    return jsonify({"items": items, "total": len(items)}), 200


@individual_process_bp.route("/individual-processes/<int:case_id>", methods=["GET"])
def get_individual_process(case_id: int):
    """Return one case with resolved references and its next allowed statuses."""
    caller = resolve_caller_identity()
    case = ips.get_case(case_id, caller)
    if case is None:
        return jsonify({"error": f"IndividualProcess id={case_id} not found"}), 404
    case["next_statuses"] = get_next_allowed_statuses(case.get("status"))
    return jsonify(case), 200


@individual_process_bp.route("/individual-processes", methods=["POST"])
def create_individual_process():
    """Create a case (admin only).

    Body: { person_id, collective_process_id?, case_status_id? | status?, ... }
    Returns: created case dict (201).
    """
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not data.get("person_id"):
        return jsonify({"error": "person_id is required"}), 400
    case_id = ips.create_case(data, caller)
    return jsonify(ips.get_case(case_id, caller)), 201


@individual_process_bp.route("/individual-processes/<int:case_id>", methods=["PUT", "PATCH"])
def update_individual_process(case_id: int):
    """Patch a case, optionally moving it to a new status.

    Body: any patchable field, plus case_status_id | status, status_notes?,
          status_date?
    Returns: updated case dict (200).  409 on a disallowed transition.
    """
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    ips.update_case(case_id, data, caller)
    return jsonify(ips.get_case(case_id, caller)), 200


@individual_process_bp.route("/individual-processes/<int:case_id>", methods=["DELETE"])
def delete_individual_process(case_id: int):
    """Delete a case and everything hanging off it (admin only)."""
    caller = resolve_caller_identity()
    ips.remove_case(case_id, caller)
    return "", 204


@individual_process_bp.route(
    "/individual-processes/<int:case_id>/create-from-existing", methods=["POST"],
)
def create_from_existing(case_id: int):
    """Open a new round for the same person; the source becomes 'Anterior'."""
    caller = resolve_caller_identity()
    new_id = ips.create_from_existing(case_id, caller)
    return jsonify(ips.get_case(new_id, caller)), 201


# ── Checklist ────────────────────────────────────────────────────────────────


@individual_process_bp.route("/individual-processes/<int:case_id>/checklist", methods=["GET"])
def get_checklist(case_id: int):
    caller = resolve_caller_identity()
    items = ips.list_case_checklist(case_id, caller)
    return jsonify({"items": items, "total": len(items)}), 200


@individual_process_bp.route(
    "/individual-processes/<int:case_id>/regenerate-checklist", methods=["POST"],
)
def regenerate_checklist(case_id: int):
    """Returns: { "deleted_count": int, "created_count": int }"""
    caller = resolve_caller_identity()
    return jsonify(ips.regenerate_checklist(case_id, caller)), 200


# ── History ──────────────────────────────────────────────────────────────────


@individual_process_bp.route("/individual-processes/<int:case_id>/history", methods=["GET"])
def get_history(case_id: int):
    """Status history, oldest first."""
    caller = resolve_caller_identity()
    items = ips.list_case_history(case_id, caller)
    return jsonify({"items": items, "total": len(items)}), 200


@individual_process_bp.route("/individual-processes/<int:case_id>/statuses", methods=["GET"])
def get_status_records(case_id: int):
    caller = resolve_caller_identity()
    items = ips.list_status_records(case_id, caller)
    return jsonify({"items": items, "total": len(items)}), 200


# ── Group sync ───────────────────────────────────────────────────────────────


@individual_process_bp.route("/individual-processes/<int:case_id>/urgency", methods=["PATCH"])
def patch_urgency(case_id: int):
    """Body: { is_urgent: bool } — applied to the whole collective process."""
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_urgent"), bool):
        return jsonify({"error": "is_urgent must be a boolean"}), 400
    return jsonify(ips.update_urgency(case_id, data["is_urgent"], caller)), 200


@individual_process_bp.route(
    "/individual-processes/<int:case_id>/authorization", methods=["PATCH"],
)
def patch_authorization(case_id: int):
    """Body: authorization_type_id?, legal_framework_id?, deadline_unit?,
    deadline_quantity? — applied to the whole collective process.
    """
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    if not data:
        return jsonify({"error": "At least one field is required"}), 400
    return jsonify(ips.update_authorization(case_id, data, caller)), 200


# ── Bulk ─────────────────────────────────────────────────────────────────────


@individual_process_bp.route("/individual-processes/bulk-status", methods=["POST"])
def bulk_status():
    """Move several cases to one status.

    Body: { ids: [int], status: str, reason? }
    Returns: { "successful": list, "failed": list, "total_processed": int }
    """
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    ids, err = _id_list(data)
    if err:
        return err
    status_code = (data.get("status") or "").strip()
    if not status_code:
        return jsonify({"error": "status is required"}), 400
    report = ips.bulk_update_status(ids, status_code, caller, reason=data.get("reason"))
    return jsonify(report), 200


@individual_process_bp.route(
    "/individual-processes/common-next-statuses", methods=["POST"],
)
def common_next_statuses():
    """Body: { ids: [int] }  Returns: { "items": [case status dict] }"""
    caller = resolve_caller_identity()
    data = request.get_json(silent=True) or {}
    ids, err = _id_list(data)
    if err:
        return err
    items = ips.get_common_allowed_statuses_for_cases(ids, caller)
    return jsonify({"items": items, "total": len(items)}), 200


# ── Reference ────────────────────────────────────────────────────────────────


@individual_process_bp.route("/case-statuses", methods=["GET"])
def list_case_statuses():
    """Active case statuses in display order."""
    resolve_caller_identity()
    rows = db.session.execute(
        select(CaseStatus).where(CaseStatus.is_active.is_(True))
        .order_by(CaseStatus.sort_order, CaseStatus.id)
    ).scalars().all()
    return jsonify({"items": [r.to_dict() for r in rows], "total": len(rows)}), 200
