"""
Task Service — manual follow-up tasks.

Mutations are admin-only.  Clients can read tasks that belong to their
company (via the task's case, or its collective process).  Assignment
notifications and activity logs go through the event sink after commit.
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select

from app.auth import CallerIdentity
from app.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from app.models import db
from app.models.process import CollectiveProcess, IndividualProcess
from app.models.reference import UserProfile
from app.models.task import TASK_PRIORITIES, TASK_STATUSES, Task
from app.services import access_filter
from app.services.event_sink import ActivityEvent, NotificationEvent, emit
from app.utils.helpers import parse_date_input, parse_id_filter

logger = logging.getLogger(__name__)

ENTITY_TYPE = "task"

_UPDATABLE_FIELDS = ("title", "description", "due_date", "priority", "status", "assigned_to")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_task_or_404(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _task_company_id(task: Task) -> int | None:
    if task.individual_process is not None:
        return task.individual_process.company_id
    if task.collective_process is not None:
        return task.collective_process.company_id
    return None


def _ensure_task_access(caller: CallerIdentity, task: Task) -> None:
    access_filter.ensure_caller_configured(caller)
    if not access_filter.can_access_company(caller, _task_company_id(task)):
        raise AccessDeniedError(f"No access to task {task.id}")


def _require_assignee(user_id) -> UserProfile:
    if not user_id:
        raise ValidationError("assigned_to is required", details={"assigned_to": "required"})
    profile = db.session.execute(
        select(UserProfile).where(UserProfile.user_id == str(user_id))
    ).scalar_one_or_none()
    if not profile:
        raise NotFoundError(resource="UserProfile", resource_id=user_id)
    return profile


def _validate_priority(priority):
    if priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"Invalid priority: {priority}", details={"priority": f"must be one of {sorted(TASK_PRIORITIES)}"},
        )


def _validate_status(status):
    if status not in TASK_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}", details={"status": f"must be one of {sorted(TASK_STATUSES)}"},
        )


def _parse_due_date(value):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"due_date": value})


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ── Queries ──────────────────────────────────────────────────────────────────


def list_tasks(filters: dict | None, caller: CallerIdentity) -> list[dict]:
    """List tasks visible to *caller*, soonest due first."""
    access_filter.ensure_caller_configured(caller)
    filters = filters or {}
    stmt = select(Task)
    if (value := parse_id_filter(filters, "individual_process_id")) is not None:
        stmt = stmt.where(Task.individual_process_id == value)
    if (value := parse_id_filter(filters, "collective_process_id")) is not None:
        stmt = stmt.where(Task.collective_process_id == value)
    if filters.get("status"):
        stmt = stmt.where(Task.status == filters["status"])
    if filters.get("priority"):
        stmt = stmt.where(Task.priority == filters["priority"])
    if filters.get("assigned_to"):
        stmt = stmt.where(Task.assigned_to == str(filters["assigned_to"]))
    stmt = stmt.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id.asc())

    tasks = db.session.execute(stmt).scalars().all()
    visible = [
        t for t in tasks
        if access_filter.can_access_company(caller, _task_company_id(t))
    ]
    return [t.to_dict() for t in visible]


def get_task(task_id: int, caller: CallerIdentity) -> dict:
    task = _get_task_or_404(task_id)
    _ensure_task_access(caller, task)
    return task.to_dict()


def list_my_tasks(caller: CallerIdentity, include_completed: bool = False) -> list[dict]:
    """Tasks assigned to the caller."""
    access_filter.ensure_caller_configured(caller)
    stmt = select(Task).where(Task.assigned_to == caller.user_id)
    if not include_completed:
        stmt = stmt.where(Task.status.in_(("todo", "in_progress")))
    stmt = stmt.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id.asc())
    return [t.to_dict() for t in db.session.execute(stmt).scalars().all()]


def list_overdue_tasks(caller: CallerIdentity, today: date | None = None) -> list[dict]:
    """Open tasks whose due date has passed (admin only)."""
    access_filter.require_admin(caller)
    today = today or date.today()
    stmt = (
        select(Task)
        .where(Task.due_date < today, Task.status.in_(("todo", "in_progress")))
        .order_by(Task.due_date.asc(), Task.id.asc())
    )
    return [t.to_dict() for t in db.session.execute(stmt).scalars().all()]


# ── Mutations ────────────────────────────────────────────────────────────────


def create_task(data: dict, caller: CallerIdentity) -> int:
    """
    Create a manual task on a case and/or a collective process.

    Required: title, assigned_to, and individual_process_id or
    collective_process_id.  Priority defaults to ``medium``.

    Returns:
        The new task id.
    """
    access_filter.require_admin(caller)

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})

    case_id = data.get("individual_process_id")
    group_id = data.get("collective_process_id")
    if not case_id and not group_id:
        raise ValidationError(
            "Either individual_process_id or collective_process_id must be provided",
        )
    if case_id and not db.session.get(IndividualProcess, case_id):
        raise NotFoundError(resource="IndividualProcess", resource_id=case_id)
    if group_id and not db.session.get(CollectiveProcess, group_id):
        raise NotFoundError(resource="CollectiveProcess", resource_id=group_id)

    priority = data.get("priority") or "medium"
    _validate_priority(priority)
    assignee = _require_assignee(data.get("assigned_to"))
    due_date = _parse_due_date(data.get("due_date"))

    task = Task(
        individual_process_id=case_id,
        collective_process_id=group_id,
        title=title,
        description=data.get("description") or "",
        due_date=due_date,
        priority=priority,
        status="todo",
        assigned_to=assignee.user_id,
        created_by=caller.user_id,
    )
    db.session.add(task)
    _commit()

    task_id = task.id
    emit(NotificationEvent(
        title="New Task Assigned",
        message=f'You have been assigned a new task: "{title}" (Due: {due_date or "no due date"})',
        type="task_assigned",
        user_ids=[assignee.user_id],
        entity_type=ENTITY_TYPE,
        entity_id=task_id,
    ))
    emit(ActivityEvent(
        user_id=caller.user_id, action="created", entity_type=ENTITY_TYPE, entity_id=task_id,
        details={"title": title, "priority": priority, "due_date": due_date,
                 "assigned_to": assignee.full_name, "individual_process_id": case_id,
                 "collective_process_id": group_id},
    ))
    return task_id


def update_task(task_id: int, data: dict, caller: CallerIdentity) -> int:
    """Patch a task; the activity log records a before/after diff."""
    access_filter.require_admin(caller)
    task = _get_task_or_404(task_id)

    unknown = set(data) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Unknown fields", details={f: "not a patchable field" for f in sorted(unknown)},
        )

    values = dict(data)
    if "title" in values:
        values["title"] = (values["title"] or "").strip()
        if not values["title"]:
            raise ValidationError("title is required", details={"title": "required"})
    if "priority" in values:
        _validate_priority(values["priority"])
    if "status" in values:
        _validate_status(values["status"])
    if "due_date" in values:
        values["due_date"] = _parse_due_date(values["due_date"])
    if "assigned_to" in values:
        values["assigned_to"] = _require_assignee(values["assigned_to"]).user_id

    changes = {}
    for field, value in values.items():
        old = getattr(task, field)
        if old != value:
            setattr(task, field, value)
            changes[field] = {"old": old, "new": value}

    status_change = changes.get("status")
    if status_change and status_change["new"] == "completed" and task.completed_at is None:
        task.completed_at = datetime.now(timezone.utc)
        task.completed_by = caller.user_id
    _commit()

    if changes:
        emit(ActivityEvent(
            user_id=caller.user_id,
            action="status_changed" if status_change else "updated",
            entity_type=ENTITY_TYPE,
            entity_id=task_id,
            details={"title": task.title, "changes": changes},
        ))
    return task_id


def complete_task(task_id: int, caller: CallerIdentity) -> int:
    access_filter.require_admin(caller)
    task = _get_task_or_404(task_id)
    previous_status = task.status

    task.status = "completed"
    task.completed_at = datetime.now(timezone.utc)
    task.completed_by = caller.user_id
    _commit()

    emit(ActivityEvent(
        user_id=caller.user_id, action="completed", entity_type=ENTITY_TYPE, entity_id=task_id,
        details={"title": task.title, "previous_status": previous_status, "new_status": "completed"},
    ))
    return task_id


def reassign_task(task_id: int, assigned_to: str, caller: CallerIdentity) -> int:
    """Move a task to another user and notify them."""
    access_filter.require_admin(caller)
    task = _get_task_or_404(task_id)
    assignee = _require_assignee(assigned_to)
    previous = task.assigned_to

    task.assigned_to = assignee.user_id
    _commit()

    emit(NotificationEvent(
        title="Task Reassigned to You",
        message=f'A task has been reassigned to you: "{task.title}" (Due: {task.due_date or "no due date"})',
        type="task_reassigned",
        user_ids=[assignee.user_id],
        entity_type=ENTITY_TYPE,
        entity_id=task_id,
    ))
    emit(ActivityEvent(
        user_id=caller.user_id, action="reassigned", entity_type=ENTITY_TYPE, entity_id=task_id,
        details={"title": task.title, "previous_assignee": previous, "new_assignee": assignee.user_id},
    ))
    return task_id


def extend_deadline(task_id: int, new_due_date, caller: CallerIdentity) -> int:
    access_filter.require_admin(caller)
    task = _get_task_or_404(task_id)
    due_date = _parse_due_date(new_due_date)
    if due_date is None:
        raise ValidationError("new_due_date is required", details={"new_due_date": "required"})
    previous = task.due_date

    task.due_date = due_date
    _commit()

    emit(NotificationEvent(
        title="Task deadline extended",
        message=f'"{task.title}" is now due {due_date}',
        type="deadline_extended",
        user_ids=[task.assigned_to],
        entity_type=ENTITY_TYPE,
        entity_id=task_id,
    ))
    emit(ActivityEvent(
        user_id=caller.user_id, action="deadline_extended", entity_type=ENTITY_TYPE, entity_id=task_id,
        details={"title": task.title, "previous_due_date": previous, "new_due_date": due_date},
    ))
    return task_id


def delete_task(task_id: int, caller: CallerIdentity) -> int:
    access_filter.require_admin(caller)
    task = _get_task_or_404(task_id)
    title = task.title

    db.session.delete(task)
    _commit()

    emit(ActivityEvent(
        user_id=caller.user_id, action="deleted", entity_type=ENTITY_TYPE, entity_id=task_id,
        details={"title": title},
    ))
    return task_id
