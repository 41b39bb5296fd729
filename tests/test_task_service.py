"""
Manual follow-up tasks.

Covers ``app/services/task_service.py``.
"""

from datetime import date

import pytest

from app.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from app.models import db
from app.models.activity import ActivityLog
from app.models.notification import Notification
from app.models.task import Task
from app.services import task_service


@pytest.fixture()
def case(statuses, person, group, make_case):
    return make_case(person, statuses["em_tramite"], group)


@pytest.fixture()
def task_id(case, admin):
    return task_service.create_task({
        "title": "Collect apostilled diploma",
        "individual_process_id": case.id,
        "assigned_to": admin.user_id,
        "due_date": "2026-05-10",
    }, admin)


def _activity(task_id, action):
    return ActivityLog.query.filter_by(entity_type="task", entity_id=str(task_id), action=action).all()


class TestCreateTask:
    def test_creates_and_notifies_assignee(self, case, admin):
        task_id = task_service.create_task({
            "title": "  Book consulate slot ",
            "individual_process_id": case.id,
            "assigned_to": admin.user_id,
            "due_date": "20/05/2026",
            "priority": "urgent",
        }, admin)

        task = db.session.get(Task, task_id)
        assert task.title == "Book consulate slot"
        assert task.due_date == date(2026, 5, 20)
        assert task.priority == "urgent"
        assert task.status == "todo"
        assert task.created_by == admin.user_id
        assert task.is_auto_generated is False

        note = Notification.query.filter_by(user_id=admin.user_id).one()
        assert note.type == "task_assigned"
        assert note.entity_id == task_id
        assert len(_activity(task_id, "created")) == 1

    def test_priority_defaults_to_medium(self, task_id):
        assert db.session.get(Task, task_id).priority == "medium"

    def test_on_collective_process_only(self, group, admin):
        task_id = task_service.create_task(
            {"title": "Sign group power of attorney", "collective_process_id": group.id,
             "assigned_to": admin.user_id},
            admin,
        )

        assert db.session.get(Task, task_id).individual_process_id is None

    @pytest.mark.parametrize("data", [
        {"title": "", "collective_process_id": 1, "assigned_to": "admin-1"},
        {"title": "Orphan", "assigned_to": "admin-1"},
        {"title": "Bad priority", "collective_process_id": 1, "assigned_to": "admin-1", "priority": "asap"},
        {"title": "No assignee", "collective_process_id": 1},
        {"title": "Bad date", "collective_process_id": 1, "assigned_to": "admin-1", "due_date": "soon"},
    ])
    def test_invalid_input(self, group, admin, data):
        with pytest.raises(ValidationError):
            task_service.create_task(data, admin)
        assert Task.query.count() == 0

    def test_unknown_case(self, admin):
        with pytest.raises(NotFoundError):
            task_service.create_task(
                {"title": "Ghost", "individual_process_id": 9999, "assigned_to": admin.user_id}, admin,
            )

    def test_unknown_assignee(self, case, admin):
        with pytest.raises(NotFoundError):
            task_service.create_task(
                {"title": "Who?", "individual_process_id": case.id, "assigned_to": "nobody"}, admin,
            )

    def test_client_cannot_create(self, case, admin, client_caller):
        with pytest.raises(AccessDeniedError):
            task_service.create_task(
                {"title": "Mine", "individual_process_id": case.id, "assigned_to": admin.user_id},
                client_caller,
            )


class TestUpdateTask:
    def test_status_change_to_completed_stamps_completion(self, task_id, admin):
        task_service.update_task(task_id, {"status": "completed"}, admin)

        task = db.session.get(Task, task_id)
        assert task.completed_at is not None
        assert task.completed_by == admin.user_id
        log = _activity(task_id, "status_changed")[0]
        assert log.details["changes"]["status"] == {"old": "todo", "new": "completed"}

    def test_plain_update(self, task_id, admin):
        task_service.update_task(task_id, {"description": "Original + sworn translation"}, admin)

        assert db.session.get(Task, task_id).description == "Original + sworn translation"
        assert len(_activity(task_id, "updated")) == 1

    def test_no_change_logs_nothing(self, task_id, admin):
        task_service.update_task(task_id, {"title": "Collect apostilled diploma"}, admin)

        assert _activity(task_id, "updated") == []

    @pytest.mark.parametrize("data", [
        {"status": "done"},
        {"priority": "whenever"},
        {"title": "  "},
        {"is_auto_generated": True},
    ])
    def test_invalid_update(self, task_id, admin, data):
        with pytest.raises(ValidationError):
            task_service.update_task(task_id, data, admin)

    def test_unknown_task(self, admin):
        with pytest.raises(NotFoundError):
            task_service.update_task(9999, {"title": "x"}, admin)


class TestTaskActions:
    def test_complete(self, task_id, admin):
        task_service.complete_task(task_id, admin)

        task = db.session.get(Task, task_id)
        assert task.status == "completed"
        assert task.completed_by == admin.user_id
        assert len(_activity(task_id, "completed")) == 1

    def test_reassign_notifies_new_assignee(self, task_id, admin, client_caller):
        task_service.reassign_task(task_id, client_caller.user_id, admin)

        assert db.session.get(Task, task_id).assigned_to == client_caller.user_id
        note = Notification.query.filter_by(user_id=client_caller.user_id).one()
        assert note.type == "task_reassigned"
        log = _activity(task_id, "reassigned")[0]
        assert log.details["previous_assignee"] == admin.user_id

    def test_extend_deadline(self, task_id, admin):
        task_service.extend_deadline(task_id, "2026-06-30", admin)

        assert db.session.get(Task, task_id).due_date == date(2026, 6, 30)
        assert Notification.query.filter_by(type="deadline_extended").count() == 1

    def test_extend_deadline_requires_date(self, task_id, admin):
        with pytest.raises(ValidationError):
            task_service.extend_deadline(task_id, None, admin)

    def test_delete(self, task_id, admin):
        task_service.delete_task(task_id, admin)

        assert db.session.get(Task, task_id) is None
        assert len(_activity(task_id, "deleted")) == 1

    def test_client_cannot_delete(self, task_id, client_caller):
        with pytest.raises(AccessDeniedError):
            task_service.delete_task(task_id, client_caller)


class TestTaskQueries:
    def test_client_sees_only_own_company_tasks(
        self, statuses, person, case, other_company, admin, client_caller, make_case,
    ):
        foreign_case = make_case(person, statuses["em_tramite"], company_applicant_id=other_company.id)
        mine = task_service.create_task(
            {"title": "Mine", "individual_process_id": case.id, "assigned_to": admin.user_id}, admin,
        )
        task_service.create_task(
            {"title": "Theirs", "individual_process_id": foreign_case.id, "assigned_to": admin.user_id},
            admin,
        )

        assert [t["id"] for t in task_service.list_tasks({}, client_caller)] == [mine]
        assert len(task_service.list_tasks({}, admin)) == 2

    def test_get_task_other_tenant(self, task_id, other_client):
        with pytest.raises(AccessDeniedError):
            task_service.get_task(task_id, other_client)

    def test_ordered_by_due_date_nulls_last(self, case, admin):
        undated = task_service.create_task(
            {"title": "Whenever", "individual_process_id": case.id, "assigned_to": admin.user_id}, admin,
        )
        late = task_service.create_task(
            {"title": "Late", "individual_process_id": case.id, "assigned_to": admin.user_id,
             "due_date": "2026-09-01"}, admin,
        )
        early = task_service.create_task(
            {"title": "Early", "individual_process_id": case.id, "assigned_to": admin.user_id,
             "due_date": "2026-04-01"}, admin,
        )

        assert [t["id"] for t in task_service.list_tasks({}, admin)] == [early, late, undated]

    def test_filters(self, task_id, case, admin):
        assert len(task_service.list_tasks({"individual_process_id": case.id}, admin)) == 1
        assert task_service.list_tasks({"status": "completed"}, admin) == []
        assert task_service.list_tasks({"priority": "high"}, admin) == []

    def test_my_tasks_hide_completed_by_default(self, task_id, admin):
        assert [t["id"] for t in task_service.list_my_tasks(admin)] == [task_id]

        task_service.complete_task(task_id, admin)

        assert task_service.list_my_tasks(admin) == []
        assert len(task_service.list_my_tasks(admin, include_completed=True)) == 1

    def test_overdue(self, task_id, admin, client_caller):
        assert [t["id"] for t in task_service.list_overdue_tasks(admin, today=date(2026, 6, 1))] == [task_id]
        assert task_service.list_overdue_tasks(admin, today=date(2026, 5, 1)) == []
        with pytest.raises(AccessDeniedError):
            task_service.list_overdue_tasks(client_caller)
