"""
Field propagation across a collective process.

When urgency or authorization data changes on one case, every case of the
same collective process receives the same values.  The fan-out is a single
set-based UPDATE inside the caller's unit of work: siblings are written
together, never one by one, and the caller commits.
"""

import logging
from datetime import date

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.process import DEADLINE_UNITS, IndividualProcess
from app.models.reference import AuthorizationType, LegalFramework
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

AUTHORIZATION_FIELDS = (
    "authorization_type_id",
    "legal_framework_id",
    "deadline_unit",
    "deadline_quantity",
    "deadline_date",
)


def compute_deadline_date(unit: str, quantity: int, today: date | None = None) -> date:
    """Return *today* shifted by *quantity* years, months or days."""
    if unit not in DEADLINE_UNITS:
        raise ValidationError(f"Invalid deadline unit: {unit}", details={"deadline_unit": unit})
    today = today or date.today()
    return today + relativedelta(**{unit: int(quantity)})


def _target_ids(case: IndividualProcess) -> list[int]:
    if case.collective_process_id is None:
        return [case.id]
    stmt = select(IndividualProcess.id).where(
        IndividualProcess.collective_process_id == case.collective_process_id,
    ).order_by(IndividualProcess.id)
    return db.session.execute(stmt).scalars().all()


def _fan_out(case: IndividualProcess, values: dict) -> dict:
    if case.collective_process_id is None:
        stmt = update(IndividualProcess).where(IndividualProcess.id == case.id)
    else:
        stmt = update(IndividualProcess).where(
            IndividualProcess.collective_process_id == case.collective_process_id,
        )
    ids = _target_ids(case)
    db.session.execute(stmt.values(**values))
    db.session.flush()
    logger.debug(
        "Synced %s to %d case(s) of group=%s", sorted(values), len(ids), case.collective_process_id,
    )
    return {"updated_ids": ids, "collective_process_id": case.collective_process_id}


def sync_urgency(case: IndividualProcess, is_urgent: bool) -> dict:
    """
    Set the urgent flag on *case* and every case of its collective process.

    Returns:
        {"updated_ids": [...], "collective_process_id": int | None}
    """
    return _fan_out(case, {"is_urgent": bool(is_urgent)})


def _normalise_authorization(fields: dict, today: date | None) -> dict:
    unknown = set(fields) - set(AUTHORIZATION_FIELDS)
    if unknown:
        raise ValidationError(
            "Unsupported authorization fields", details={f: "not allowed" for f in sorted(unknown)},
        )

    values = {}
    if "authorization_type_id" in fields:
        type_id = fields["authorization_type_id"]
        if type_id is not None and not db.session.get(AuthorizationType, type_id):
            raise NotFoundError(resource="AuthorizationType", resource_id=type_id)
        values["authorization_type_id"] = type_id
    if "legal_framework_id" in fields:
        framework_id = fields["legal_framework_id"]
        if framework_id is not None and not db.session.get(LegalFramework, framework_id):
            raise NotFoundError(resource="LegalFramework", resource_id=framework_id)
        values["legal_framework_id"] = framework_id

    unit = fields.get("deadline_unit")
    quantity = fields.get("deadline_quantity")
    if unit is not None or quantity is not None:
        if fields.get("deadline_date") is not None:
            raise ValidationError(
                "Give either deadline_date or deadline_unit/deadline_quantity, not both",
                details={"deadline_date": fields["deadline_date"], "deadline_unit": unit},
            )
        if unit is None or quantity is None:
            raise ValidationError(
                "deadline_unit and deadline_quantity must be given together",
                details={"deadline_unit": unit, "deadline_quantity": quantity},
            )
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError("deadline_quantity must be an integer",
                                  details={"deadline_quantity": quantity})
        if quantity <= 0:
            raise ValidationError("deadline_quantity must be positive",
                                  details={"deadline_quantity": quantity})
        values["deadline_unit"] = unit
        values["deadline_quantity"] = quantity
        # Computed once; every sibling gets the same absolute date.
        values["deadline_date"] = compute_deadline_date(unit, quantity, today)
    elif "deadline_date" in fields:
        try:
            values["deadline_date"] = parse_date_input(fields["deadline_date"])
        except ValueError as exc:
            raise ValidationError(str(exc), details={"deadline_date": fields["deadline_date"]})

    if not values:
        raise ValidationError("No authorization fields given")
    return values


def sync_authorization(case: IndividualProcess, fields: dict, *, today: date | None = None) -> dict:
    """
    Write authorization type, legal framework and deadline to *case* and
    every case of its collective process.

    When ``deadline_unit`` and ``deadline_quantity`` are given the absolute
    ``deadline_date`` is computed from today before fan-out.

    Returns:
        {"updated_ids": [...], "collective_process_id": int | None, "values": {...}}
    """
    values = _normalise_authorization(fields, today)
    result = _fan_out(case, values)
    result["values"] = values
    return result
