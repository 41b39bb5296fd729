"""
Status-change history for individual processes.

History rows are write-once; nothing in the platform updates them.
"""

import json

from sqlalchemy import select

from app.core.exceptions import NotAuthenticatedError
from app.models import db
from app.models.process import ProcessHistory


def log_status_change(
    individual_process_id: int,
    previous_status: str | None,
    new_status: str,
    *,
    changed_by: str | None,
    notes: str | None = None,
    metadata: dict | None = None,
    status_record_id: int | None = None,
) -> ProcessHistory:
    """
    Append one history row.  Uses ``flush`` so callers keep transaction control.

    Args:
        individual_process_id: Case the change belongs to.
        previous_status: Display name of the old status (None for the initial one).
        new_status: Display name of the new status.
        changed_by: user_id of the actor.  Required.
        notes: Free-text reason.
        metadata: Extra JSON payload (e.g. bulk operation marker).
        status_record_id: IndividualProcessStatus row created by the change.

    Raises:
        NotAuthenticatedError: no actor given.
    """
    if not changed_by:
        raise NotAuthenticatedError("Cannot record a status change without an actor")

    entry = ProcessHistory(
        individual_process_id=individual_process_id,
        previous_status=previous_status,
        new_status=new_status,
        status_record_id=status_record_id,
        changed_by=str(changed_by),
        notes=notes,
        metadata_json=json.dumps(metadata or {}, default=str),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_history(individual_process_id: int) -> list[ProcessHistory]:
    """Return the history of a case, oldest first."""
    stmt = (
        select(ProcessHistory)
        .where(ProcessHistory.individual_process_id == individual_process_id)
        .order_by(ProcessHistory.changed_at.asc(), ProcessHistory.id.asc())
    )
    return db.session.execute(stmt).scalars().all()
