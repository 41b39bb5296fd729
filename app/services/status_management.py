"""
Active-status invariant for individual processes.

A case has at most one active IndividualProcessStatus row.  Callers insert
the new row (active) and flush, then call ``ensure_single_active_status``.
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.process import IndividualProcessStatus

logger = logging.getLogger(__name__)


def ensure_single_active_status(individual_process_id: int, new_status_id: int) -> int:
    """Deactivate every active status row of the case except *new_status_id*.

    Idempotent.  Flushes but does not commit.

    Returns:
        Number of rows deactivated.
    """
    stmt = select(IndividualProcessStatus).where(
        IndividualProcessStatus.individual_process_id == individual_process_id,
        IndividualProcessStatus.is_active.is_(True),
        IndividualProcessStatus.id != new_status_id,
    )
    stale = db.session.execute(stmt).scalars().all()
    for row in stale:
        row.is_active = False
    if stale:
        db.session.flush()
        logger.debug(
            "Deactivated %d status rows for process=%s", len(stale), individual_process_id,
        )
    return len(stale)
