"""
Follow-up tasks spawned by status changes.

``TASK_TEMPLATES`` maps a case status code to the tasks to create when a
case enters that status.  Codes that are not listed create nothing.

Due date = today + authorization type's estimated days + template offset.
The authorization type is taken from the case's collective process; cases
without one get no automatic tasks.
"""

import logging
from datetime import date, timedelta

from app.core.exceptions import NotAuthenticatedError, NotFoundError
from app.models import db
from app.models.process import IndividualProcess
from app.models.task import Task

logger = logging.getLogger(__name__)


TASK_TEMPLATES = {
    "encaminhado_analise": [
        {
            "title": "Review documents for analysis",
            "description": "Check that every submitted document is complete before government analysis.",
            "priority": "high",
            "days_offset": 2,
        },
    ],
    "exigencia": [
        {
            "title": "Follow up on missing documents",
            "description": "The authority requested additional documents. Collect and submit them.",
            "priority": "high",
            "days_offset": 3,
        },
    ],
    "juntada_documento": [
        {
            "title": "Track document submission",
            "description": "Confirm the authority registered the submitted documents.",
            "priority": "medium",
            "days_offset": 7,
        },
    ],
    "deferido": [
        {
            "title": "Schedule appointment",
            "description": "Authorization approved. Schedule the applicant's appointment.",
            "priority": "high",
            "days_offset": 5,
        },
    ],
    "emissao_vitem": [
        {
            "title": "Track visa issuance",
            "description": "Follow the VITEM issuance at the consulate.",
            "priority": "medium",
            "days_offset": 10,
        },
    ],
    "rnm": [
        {
            "title": "Track RNM card delivery",
            "description": "Follow up on the National Migration Registry card.",
            "priority": "medium",
            "days_offset": 15,
        },
    ],
}


def calculate_due_date(estimated_days: int | None, days_offset: int, today: date | None = None) -> date:
    today = today or date.today()
    return today + timedelta(days=(estimated_days or 0) + days_offset)


def auto_generate_tasks_on_status_change(
    individual_process_id: int,
    new_status_code: str,
    actor_id: str | None,
    *,
    today: date | None = None,
) -> list[Task]:
    """
    Create the follow-up tasks configured for *new_status_code*.

    Tasks are assigned to (and created by) the actor who made the change.
    Flushes, never commits.

    Returns:
        The created Task rows (possibly empty).
    """
    templates = TASK_TEMPLATES.get(new_status_code)
    if not templates:
        return []
    if not actor_id:
        raise NotAuthenticatedError("Cannot assign follow-up tasks without an actor")

    case = db.session.get(IndividualProcess, individual_process_id)
    if not case:
        raise NotFoundError(resource="IndividualProcess", resource_id=individual_process_id)

    group = case.collective_process
    if group is None or group.authorization_type is None:
        logger.debug(
            "Skipping auto tasks for process=%s status=%s: no group authorization type",
            case.id, new_status_code,
        )
        return []

    estimated_days = group.authorization_type.estimated_days
    tasks = []
    for tpl in templates:
        task = Task(
            individual_process_id=case.id,
            collective_process_id=group.id,
            title=tpl["title"],
            description=tpl["description"],
            priority=tpl["priority"],
            status="todo",
            due_date=calculate_due_date(estimated_days, tpl["days_offset"], today),
            assigned_to=str(actor_id),
            created_by=str(actor_id),
            is_auto_generated=True,
        )
        db.session.add(task)
        tasks.append(task)
    db.session.flush()

    logger.info(
        "Auto-generated %d task(s) for process=%s on status=%s", len(tasks), case.id, new_status_code,
    )
    return tasks
