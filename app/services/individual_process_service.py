"""
Individual Process Lifecycle Service

Owns every mutation of an individual process (case):
  - create / update / remove
  - status transitions validated against CASE_STATUS_TRANSITIONS
  - single active status record per case
  - write-once status history
  - document checklist generation and regeneration
  - follow-up tasks on selected statuses
  - urgency / authorization propagation across the collective process
  - new round for the same person (create_from_existing)
  - bulk status change with a partial-failure report

Each public operation is one unit of work: all writes are flushed in order
and committed once; any exception rolls the session back and propagates.
Activity logs and notifications are emitted to the event sink only after
the commit and can never fail the operation.

Usage:
    from app.services import individual_process_service as ips

    case_id = ips.create_case({"person_id": 7, "collective_process_id": 3}, caller)
    ips.update_case(case_id, {"status": "em_tramite"}, caller)
    report = ips.bulk_update_status([1, 2, 3], "deferido", caller, reason="Published")
"""

import logging
from datetime import date, datetime, timezone

from flask import current_app
from sqlalchemy import delete, or_, select

from app.auth import CallerIdentity
from app.core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.case_status import (
    APPROVED_CASE_STATUS_CODE,
    DEFAULT_CASE_STATUS_CODE,
    CaseStatus,
    get_common_allowed_statuses,
    is_valid_transition,
)
from app.models.document import DocumentDelivered
from app.models.process import (
    DEADLINE_UNITS,
    PROCESS_STATUS_CURRENT,
    PROCESS_STATUS_PREVIOUS,
    PROCESS_STATUSES,
    CollectiveProcess,
    IndividualProcess,
    IndividualProcessStatus,
    ProcessHistory,
)
from app.models.reference import AuthorizationType, Company, LegalFramework, Person
from app.models.task import Task
from app.services import access_filter, group_sync
from app.services.document_checklist import (
    generate_document_checklist,
    list_checklist,
    regenerate_document_checklist,
)
from app.services.event_sink import ActivityEvent, NotificationEvent, emit
from app.services.process_history import list_history, log_status_change
from app.services.status_management import ensure_single_active_status
from app.services.task_automation import auto_generate_tasks_on_status_change
from app.utils.helpers import parse_date_input, parse_datetime_input, parse_id_filter

logger = logging.getLogger(__name__)

ENTITY_TYPE = "individual_process"

# ── Field catalogue ──────────────────────────────────────────────────────────

_REFERENCE_FIELDS = {
    "person_id": Person,
    "collective_process_id": CollectiveProcess,
    "company_applicant_id": Company,
    "authorization_type_id": AuthorizationType,
    "legal_framework_id": LegalFramework,
}
# FK column → relationship to expire after the column changes
_REFERENCE_RELATIONSHIPS = {
    "person_id": "person",
    "collective_process_id": "collective_process",
    "company_applicant_id": "company_applicant",
    "authorization_type_id": "authorization_type",
    "legal_framework_id": "legal_framework",
}
_TEXT_FIELDS = (
    "consulate_name", "requester", "passport_number", "protocol_number",
    "mre_office_number", "dou_number", "dou_section", "dou_page", "rnm_number",
)
_DATE_FIELDS = ("dou_date", "rnm_deadline", "deadline_date", "date_process")
_DATETIME_FIELDS = ("appointment_datetime",)
_BOOL_FIELDS = ("is_urgent", "is_active")
_INT_FIELDS = ("deadline_quantity",)
_CHOICE_FIELDS = {"deadline_unit": DEADLINE_UNITS, "process_status": PROCESS_STATUSES}

# Keys that drive the status change instead of patching a column
_STATUS_KEYS = ("case_status_id", "status", "status_notes", "status_date")

_PATCHABLE_FIELDS = (
    set(_REFERENCE_FIELDS) | set(_TEXT_FIELDS) | set(_DATE_FIELDS)
    | set(_DATETIME_FIELDS) | set(_BOOL_FIELDS) | set(_INT_FIELDS) | set(_CHOICE_FIELDS)
)


def _coerce(field: str, value):
    """Normalise one incoming value for *field*; raises ValidationError/NotFoundError."""
    if field in _REFERENCE_FIELDS:
        if value is None:
            if field == "person_id":
                raise ValidationError("person_id is required", details={"person_id": "required"})
            return None
        try:
            pk = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be an integer", details={field: value})
        if not db.session.get(_REFERENCE_FIELDS[field], pk):
            raise NotFoundError(resource=_REFERENCE_FIELDS[field].__name__, resource_id=pk)
        return pk
    if field in _DATE_FIELDS:
        try:
            return parse_date_input(value)
        except ValueError as exc:
            raise ValidationError(str(exc), details={field: value})
    if field in _DATETIME_FIELDS:
        try:
            return parse_datetime_input(value)
        except ValueError as exc:
            raise ValidationError(str(exc), details={field: value})
    if field in _BOOL_FIELDS:
        return bool(value)
    if field in _INT_FIELDS:
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be an integer", details={field: value})
    if field in _CHOICE_FIELDS:
        if value is None and field != "process_status":
            return None
        if value not in _CHOICE_FIELDS[field]:
            raise ValidationError(
                f"Invalid {field}: {value}",
                details={field: f"must be one of {sorted(_CHOICE_FIELDS[field])}"},
            )
        return value
    # text
    if value is None:
        return None
    return str(value).strip()


def _apply_fields(case: IndividualProcess, fields: dict) -> dict:
    """Patch plain columns on *case*.

    Returns:
        Field-level diff ``{field: {"old": ..., "new": ...}}`` of what changed.
    """
    unknown = set(fields) - _PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(
            "Unknown fields", details={f: "not a patchable field" for f in sorted(unknown)},
        )

    changes = {}
    for field, raw in fields.items():
        value = _coerce(field, raw)
        old = getattr(case, field)
        if old != value:
            setattr(case, field, value)
            changes[field] = {"old": old, "new": value}
    return changes


def _refresh_references(case: IndividualProcess, changes: dict) -> None:
    stale = [_REFERENCE_RELATIONSHIPS[f] for f in changes if f in _REFERENCE_RELATIONSHIPS]
    if stale:
        db.session.flush()
        db.session.expire(case, stale)


# ── Lookups ──────────────────────────────────────────────────────────────────


def _get_case_or_404(case_id: int) -> IndividualProcess:
    case = db.session.get(IndividualProcess, case_id)
    if not case:
        raise NotFoundError(resource="IndividualProcess", resource_id=case_id)
    return case


def _status_by_code(code: str) -> CaseStatus | None:
    return db.session.execute(
        select(CaseStatus).where(CaseStatus.code == code)
    ).scalar_one_or_none()


def _resolve_requested_status(fields: dict) -> CaseStatus | None:
    """Return the CaseStatus named by ``case_status_id`` or ``status`` (code), if any."""
    status_id = fields.get("case_status_id")
    if status_id is not None:
        status = db.session.get(CaseStatus, status_id)
        if not status:
            raise NotFoundError(resource="CaseStatus", resource_id=status_id)
        return status
    code = fields.get("status")
    if code:
        status = _status_by_code(code)
        if not status:
            raise NotFoundError(resource="CaseStatus", resource_id=code)
        return status
    return None


def _default_status() -> CaseStatus:
    code = current_app.config.get("DEFAULT_CASE_STATUS_CODE", DEFAULT_CASE_STATUS_CODE)
    status = _status_by_code(code)
    if status is None:
        raise ConfigurationError(f"Default case status '{code}' is not configured")
    return status


def _approved_code() -> str:
    return current_app.config.get("APPROVED_CASE_STATUS_CODE", APPROVED_CASE_STATUS_CODE)


def _record_status(
    case: IndividualProcess,
    status: CaseStatus,
    caller: CallerIdentity,
    *,
    previous_name: str | None,
    notes: str | None,
    status_date=None,
    history_notes: str | None = None,
    metadata: dict | None = None,
) -> IndividualProcessStatus:
    """Insert the new active status row, enforce the invariant, append history."""
    record = IndividualProcessStatus(
        individual_process_id=case.id,
        case_status_id=status.id,
        status_name=status.name,
        is_active=True,
        date=status_date or date.today(),
        notes=notes,
        changed_by=caller.user_id,
    )
    db.session.add(record)
    db.session.flush()
    ensure_single_active_status(case.id, record.id)
    log_status_change(
        case.id,
        previous_name,
        status.name,
        changed_by=caller.user_id,
        notes=history_notes if history_notes is not None else notes,
        metadata=metadata,
        status_record_id=record.id,
    )
    return record


def _status_date(fields: dict):
    raw = fields.get("status_date")
    try:
        return parse_date_input(raw)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"status_date": raw})


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def list_cases(filters: dict | None, caller: CallerIdentity) -> list[dict]:
    """
    List cases visible to *caller*, newest first, with resolved references.

    Filters: collective_process_id, person_id, case_status_id, status (code),
    is_active, process_status, search (person name or protocol number).
    """
    access_filter.ensure_caller_configured(caller)
    filters = filters or {}

    stmt = select(IndividualProcess)
    if (value := parse_id_filter(filters, "collective_process_id")) is not None:
        stmt = stmt.where(IndividualProcess.collective_process_id == value)
    if (value := parse_id_filter(filters, "person_id")) is not None:
        stmt = stmt.where(IndividualProcess.person_id == value)
    if (value := parse_id_filter(filters, "case_status_id")) is not None:
        stmt = stmt.where(IndividualProcess.case_status_id == value)
    if filters.get("status"):
        stmt = stmt.join(CaseStatus, IndividualProcess.case_status_id == CaseStatus.id).where(
            CaseStatus.code == filters["status"],
        )
    if filters.get("is_active") is not None:
        stmt = stmt.where(IndividualProcess.is_active.is_(_as_bool(filters["is_active"])))
    if filters.get("process_status"):
        stmt = stmt.where(IndividualProcess.process_status == filters["process_status"])
    if filters.get("search"):
        term = f"%{filters['search'].strip()}%"
        stmt = stmt.join(Person, IndividualProcess.person_id == Person.id).where(
            or_(
                Person.given_names.ilike(term),
                Person.surname.ilike(term),
                IndividualProcess.protocol_number.ilike(term),
            )
        )
    stmt = stmt.order_by(IndividualProcess.created_at.desc(), IndividualProcess.id.desc())

    cases = db.session.execute(stmt).scalars().all()
    visible = access_filter.filter_visible_cases(caller, cases)
    return [c.to_dict(include_refs=True) for c in visible]


def get_case(case_id: int, caller: CallerIdentity) -> dict | None:
    """Return the enriched case, or None if it does not exist."""
    access_filter.ensure_caller_configured(caller)
    case = db.session.get(IndividualProcess, case_id)
    if not case:
        return None
    access_filter.ensure_case_access(caller, case)
    return case.to_dict(include_refs=True)


def list_case_history(case_id: int, caller: CallerIdentity) -> list[dict]:
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    return [h.to_dict() for h in list_history(case.id)]


def list_status_records(case_id: int, caller: CallerIdentity) -> list[dict]:
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    rows = db.session.execute(
        select(IndividualProcessStatus)
        .where(IndividualProcessStatus.individual_process_id == case.id)
        .order_by(IndividualProcessStatus.changed_at.desc(), IndividualProcessStatus.id.desc())
    ).scalars().all()
    return [r.to_dict() for r in rows]


def list_case_checklist(case_id: int, caller: CallerIdentity) -> list[dict]:
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    return [d.to_dict() for d in list_checklist(case.id)]


def get_common_allowed_statuses_for_cases(case_ids: list[int], caller: CallerIdentity) -> list[dict]:
    """
    Statuses every given case may move to next (bulk target preview).

    Cases without a current status contribute an empty set.
    """
    codes = []
    for case_id in case_ids:
        case = _get_case_or_404(case_id)
        access_filter.ensure_case_access(caller, case)
        codes.append(case.status)
    if not codes or any(code is None for code in codes):
        return []
    common = get_common_allowed_statuses(codes)
    if not common:
        return []
    statuses = db.session.execute(
        select(CaseStatus).where(CaseStatus.code.in_(common), CaseStatus.is_active.is_(True))
        .order_by(CaseStatus.sort_order, CaseStatus.id)
    ).scalars().all()
    return [s.to_dict() for s in statuses]


# ═════════════════════════════════════════════════════════════════════════════
# Mutations
# ═════════════════════════════════════════════════════════════════════════════


def create_case(fields: dict, caller: CallerIdentity) -> int:
    """
    Create a case in its initial status (admin only).

    The initial status is ``case_status_id`` / ``status`` from *fields*, else
    the configured default (``em_preparacao``), which must exist.

    Returns:
        The new case id.
    """
    access_filter.require_admin(caller)
    fields = dict(fields or {})
    if fields.get("person_id") is None:
        raise ValidationError("person_id is required", details={"person_id": "required"})

    status = _resolve_requested_status(fields) or _default_status()
    status_date = _status_date(fields)
    column_fields = {k: v for k, v in fields.items() if k not in _STATUS_KEYS}

    try:
        case = IndividualProcess(
            case_status_id=status.id,
            process_status=PROCESS_STATUS_CURRENT,
            is_active=True,
        )
        _apply_fields(case, column_fields)
        db.session.add(case)
        db.session.flush()

        _record_status(
            case, status, caller,
            previous_name=None,
            notes=f"Initial status: {status.name}",
            status_date=status_date,
        )
        generate_document_checklist(case.id, actor_id=caller.user_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    case_id = case.id
    logger.info("Created individual process=%s status=%s by user=%s", case_id, status.code, caller.user_id)
    emit(ActivityEvent(
        user_id=caller.user_id, action="created", entity_type=ENTITY_TYPE, entity_id=case_id,
        details={"status": status.code, "person_id": case.person_id,
                 "collective_process_id": case.collective_process_id},
    ))
    return case_id


def update_case(
    case_id: int,
    fields: dict,
    caller: CallerIdentity,
    *,
    metadata: dict | None = None,
) -> int:
    """
    Patch a case and, when a different status is requested, transition it.

    Status keys in *fields*:
        case_status_id | status (code)   requested status
        status_notes                     note for the status record and history
        status_date                      business date of the new status

    Every other key patches the matching column unconditionally.

    Raises:
        NotFoundError, AccessDeniedError, InvalidTransitionError, ValidationError
    """
    fields = dict(fields or {})
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)

    new_status = _resolve_requested_status(fields)
    status_notes = fields.get("status_notes")
    status_date = _status_date(fields)
    column_fields = {k: v for k, v in fields.items() if k not in _STATUS_KEYS}

    current = case.case_status
    status_changed = new_status is not None and new_status.id != case.case_status_id
    if status_changed and current is not None and not is_valid_transition(current.code, new_status.code):
        raise InvalidTransitionError(current.code, new_status.code)

    previous_name = current.name if current else None
    previous_code = current.code if current else None
    try:
        changes = _apply_fields(case, column_fields)
        _refresh_references(case, changes)
        if "collective_process_id" in changes or "company_applicant_id" in changes:
            # Moving a case must not take it out of the caller's company.
            access_filter.ensure_case_access(caller, case)

        if status_changed:
            case.case_status_id = new_status.id
            changes["status"] = {"old": previous_code, "new": new_status.code}
            if new_status.code == _approved_code() and case.completed_at is None:
                case.completed_at = datetime.now(timezone.utc)
                changes["completed_at"] = {"old": None, "new": case.completed_at}
            db.session.flush()
            db.session.expire(case, ["case_status"])

            _record_status(
                case, new_status, caller,
                previous_name=previous_name,
                notes=status_notes,
                status_date=status_date,
                metadata=metadata,
            )
            auto_generate_tasks_on_status_change(case.id, new_status.code, caller.user_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    company_id = case.company_id
    person_name = case.person.full_name if case.person else f"#{case.person_id}"

    if status_changed:
        logger.info(
            "Individual process=%s status %s → %s by user=%s",
            case_id, previous_code, new_status.code, caller.user_id,
        )
    if changes:
        emit(ActivityEvent(
            user_id=caller.user_id,
            action="status_changed" if status_changed else "updated",
            entity_type=ENTITY_TYPE,
            entity_id=case_id,
            details={"changes": changes},
        ))
    if status_changed:
        emit(NotificationEvent(
            title=f"Status updated: {person_name}",
            message=f"{previous_name or '—'} → {new_status.name}",
            type="status_change",
            company_id=company_id,
            entity_type=ENTITY_TYPE,
            entity_id=case_id,
        ))
    return case_id


# Named cascade steps, executed in order before the case row itself.
_CASCADE_STEPS = (
    ("documents_delivered", DocumentDelivered),
    ("process_history", ProcessHistory),
    ("status_records", IndividualProcessStatus),
    ("tasks", Task),
)


def remove_case(case_id: int, caller: CallerIdentity) -> int:
    """
    Delete a case and everything it owns (admin only).

    Returns:
        The deleted case id.
    """
    access_filter.require_admin(caller)
    case = _get_case_or_404(case_id)

    counts = {}
    try:
        for name, model in _CASCADE_STEPS:
            result = db.session.execute(
                delete(model).where(model.individual_process_id == case.id)
            )
            counts[name] = result.rowcount or 0
        db.session.delete(case)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Removed individual process=%s cascade=%s", case_id, counts)
    emit(ActivityEvent(
        user_id=caller.user_id, action="deleted", entity_type=ENTITY_TYPE, entity_id=case_id,
        details={"cascade": counts},
    ))
    return case_id


def create_from_existing(source_id: int, caller: CallerIdentity) -> int:
    """
    Start a new round for the same person and sponsor (admin only).

    Only ``person_id`` and ``company_applicant_id`` are copied; the new case
    starts today in the default status.  The source becomes ``Anterior`` and
    inactive.  Only the new case gets a checklist.

    Returns:
        The new case id.
    """
    access_filter.require_admin(caller)
    source = _get_case_or_404(source_id)
    status = _default_status()

    source_status_name = source.case_status.name if source.case_status else None
    try:
        new_case = IndividualProcess(
            person_id=source.person_id,
            company_applicant_id=source.company_applicant_id,
            date_process=date.today(),
            case_status_id=status.id,
            process_status=PROCESS_STATUS_CURRENT,
            is_active=True,
        )
        db.session.add(new_case)
        db.session.flush()

        _record_status(
            new_case, status, caller,
            previous_name=None,
            notes=f"Initial status: {status.name}",
            history_notes=f"Created from individual process {source.id}",
            metadata={"source_process_id": source.id},
        )

        source.process_status = PROCESS_STATUS_PREVIOUS
        source.is_active = False
        log_status_change(
            source.id,
            source_status_name,
            source_status_name or PROCESS_STATUS_PREVIOUS,
            changed_by=caller.user_id,
            notes=f"Superseded by individual process {new_case.id}",
            metadata={
                "process_status": {"old": PROCESS_STATUS_CURRENT, "new": PROCESS_STATUS_PREVIOUS},
                "new_process_id": new_case.id,
            },
        )

        generate_document_checklist(new_case.id, actor_id=caller.user_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    new_id = new_case.id
    logger.info("Created individual process=%s from source=%s", new_id, source_id)
    emit(ActivityEvent(
        user_id=caller.user_id, action="created_from_existing", entity_type=ENTITY_TYPE,
        entity_id=new_id, details={"source_process_id": source_id},
    ))
    return new_id


def regenerate_checklist(case_id: int, caller: CallerIdentity) -> dict:
    """
    Replace the untouched checklist entries of a case.

    Returns:
        {"deleted_count": int, "created_count": int}
    """
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    try:
        result = regenerate_document_checklist(case.id, actor_id=caller.user_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    emit(ActivityEvent(
        user_id=caller.user_id, action="checklist_regenerated", entity_type=ENTITY_TYPE,
        entity_id=case_id, details=result,
    ))
    return result


def update_urgency(case_id: int, is_urgent: bool, caller: CallerIdentity) -> dict:
    """Set the urgent flag on the case and every case of its collective process."""
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    try:
        result = group_sync.sync_urgency(case, is_urgent)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    emit(ActivityEvent(
        user_id=caller.user_id, action="urgency_synced", entity_type=ENTITY_TYPE,
        entity_id=case_id, details={"is_urgent": bool(is_urgent), **result},
    ))
    return result


def update_authorization(case_id: int, fields: dict, caller: CallerIdentity) -> dict:
    """Write authorization and deadline fields across the collective process."""
    case = _get_case_or_404(case_id)
    access_filter.ensure_case_access(caller, case)
    try:
        result = group_sync.sync_authorization(case, fields or {})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    emit(ActivityEvent(
        user_id=caller.user_id, action="authorization_synced", entity_type=ENTITY_TYPE,
        entity_id=case_id, details=result,
    ))
    return result


def bulk_update_status(
    case_ids: list[int],
    new_status_code: str,
    caller: CallerIdentity,
    *,
    reason: str | None = None,
) -> dict:
    """
    Move several cases to *new_status_code*, one unit of work per case.

    Caller problems and an unknown target status abort before any case is
    touched.  Anything that goes wrong for a single case is reported in
    ``failed`` and the batch continues.

    Returns:
        {"successful": [id, ...],
         "failed": [{"id": id, "reason": str}, ...],
         "total_processed": int}
    """
    access_filter.ensure_caller_configured(caller)
    status = _status_by_code(new_status_code)
    if status is None:
        raise NotFoundError(resource="CaseStatus", resource_id=new_status_code)

    successful, failed = [], []
    for case_id in case_ids:
        try:
            update_case(
                case_id,
                {"case_status_id": status.id, "status_notes": reason},
                caller,
                metadata={"bulk_operation": True},
            )
            successful.append(case_id)
        except Exception as exc:
            logger.info("Bulk status change skipped process=%s: %s", case_id, exc)
            failed.append({"id": case_id, "reason": str(exc)})

    report = {
        "successful": successful,
        "failed": failed,
        "total_processed": len(case_ids),
    }
    emit(ActivityEvent(
        user_id=caller.user_id, action="bulk_update_status_completed", entity_type=ENTITY_TYPE,
        entity_id="bulk",
        details={"status": new_status_code, "reason": reason,
                 "successful_count": len(successful), "failed_count": len(failed)},
    ))
    return report
