"""
HTTP API for tasks, notifications and activity logs.

Covers ``app/blueprints/task_bp.py`` and ``app/blueprints/notification_bp.py``.
"""

import pytest

from app.services import individual_process_service as ips
from app.services import task_service
from app.services.notification import NotificationService


@pytest.fixture()
def case_id(statuses, person, group, admin):
    return ips.create_case({"person_id": person.id, "collective_process_id": group.id}, admin)


@pytest.fixture()
def task_id(case_id, admin):
    return task_service.create_task(
        {"title": "Translate diploma", "individual_process_id": case_id,
         "assigned_to": admin.user_id, "due_date": "2026-05-10"},
        admin,
    )


class TestTaskApi:
    def test_create(self, client, case_id, admin, auth_headers):
        res = client.post(
            "/api/v1/tasks",
            json={"title": "Book slot", "individual_process_id": case_id, "assigned_to": admin.user_id},
            headers=auth_headers(admin),
        )

        assert res.status_code == 201
        assert res.get_json()["priority"] == "medium"

    def test_create_without_title(self, client, case_id, admin, auth_headers):
        res = client.post(
            "/api/v1/tasks", json={"individual_process_id": case_id}, headers=auth_headers(admin),
        )

        assert res.status_code == 400

    def test_create_invalid_priority(self, client, case_id, admin, auth_headers):
        res = client.post(
            "/api/v1/tasks",
            json={"title": "x", "individual_process_id": case_id, "assigned_to": admin.user_id,
                  "priority": "asap"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 422

    def test_client_reads_but_cannot_write(self, client, task_id, client_caller, auth_headers):
        headers = auth_headers(client_caller)

        assert client.get(f"/api/v1/tasks/{task_id}", headers=headers).status_code == 200
        assert client.post(f"/api/v1/tasks/{task_id}/complete", headers=headers).status_code == 403
        assert client.delete(f"/api/v1/tasks/{task_id}", headers=headers).status_code == 403

    def test_other_tenant_cannot_read(self, client, task_id, other_client, auth_headers):
        res = client.get(f"/api/v1/tasks/{task_id}", headers=auth_headers(other_client))

        assert res.status_code == 403

    def test_update_and_complete(self, client, task_id, admin, auth_headers):
        headers = auth_headers(admin)

        updated = client.patch(f"/api/v1/tasks/{task_id}", json={"priority": "high"}, headers=headers)
        completed = client.post(f"/api/v1/tasks/{task_id}/complete", headers=headers)

        assert updated.get_json()["priority"] == "high"
        assert completed.get_json()["status"] == "completed"
        assert completed.get_json()["completed_by"] == admin.user_id

    def test_reassign_requires_assignee(self, client, task_id, admin, auth_headers):
        res = client.post(f"/api/v1/tasks/{task_id}/reassign", json={}, headers=auth_headers(admin))

        assert res.status_code == 400

    def test_extend_deadline(self, client, task_id, admin, auth_headers):
        res = client.post(
            f"/api/v1/tasks/{task_id}/extend-deadline",
            json={"new_due_date": "2026-07-01"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 200
        assert res.get_json()["due_date"] == "2026-07-01"

    def test_mine_and_list(self, client, task_id, admin, auth_headers):
        headers = auth_headers(admin)

        mine = client.get("/api/v1/tasks/mine", headers=headers).get_json()
        listed = client.get("/api/v1/tasks?status=todo", headers=headers).get_json()

        assert [t["id"] for t in mine["items"]] == [task_id]
        assert listed["total"] == 1

    def test_list_rejects_non_numeric_case_filter(self, client, task_id, admin, auth_headers):
        res = client.get("/api/v1/tasks?individual_process_id=abc", headers=auth_headers(admin))

        assert res.status_code == 422

    def test_overdue_is_admin_only(self, client, task_id, client_caller, auth_headers):
        res = client.get("/api/v1/tasks/overdue", headers=auth_headers(client_caller))

        assert res.status_code == 403

    def test_delete(self, client, task_id, admin, auth_headers):
        headers = auth_headers(admin)

        assert client.delete(f"/api/v1/tasks/{task_id}", headers=headers).status_code == 204
        assert client.get(f"/api/v1/tasks/{task_id}", headers=headers).status_code == 404


class TestNotificationApi:
    def test_status_change_reaches_company_user(self, client, case_id, admin, client_caller, auth_headers):
        ips.update_case(case_id, {"status": "em_tramite"}, admin)

        res = client.get("/api/v1/notifications", headers=auth_headers(client_caller))

        body = res.get_json()
        assert body["total"] == 1
        assert body["unread_count"] == 1
        assert body["items"][0]["type"] == "status_change"

    def test_mark_read(self, client, client_caller, auth_headers):
        notif = NotificationService.create(user_id=client_caller.user_id, title="Hi")
        headers = auth_headers(client_caller)

        res = client.patch(f"/api/v1/notifications/{notif.id}/read", headers=headers)

        assert res.status_code == 200
        assert client.get("/api/v1/notifications/unread-count", headers=headers).get_json() == {
            "unread_count": 0,
        }

    def test_cannot_mark_someone_elses(self, client, client_caller, other_client, auth_headers):
        notif = NotificationService.create(user_id=client_caller.user_id, title="Hi")

        res = client.post(f"/api/v1/notifications/{notif.id}/read", headers=auth_headers(other_client))

        assert res.status_code == 404

    def test_mark_all_read(self, client, client_caller, auth_headers):
        NotificationService.broadcast(user_ids=[client_caller.user_id], title="a")
        NotificationService.create(user_id=client_caller.user_id, title="b")

        res = client.post("/api/v1/notifications/mark-all-read", headers=auth_headers(client_caller))

        assert res.get_json() == {"marked_read": 2}


class TestActivityLogApi:
    def test_admin_reads_case_activity(self, client, case_id, admin, auth_headers):
        ips.update_case(case_id, {"requester": "Acme HR"}, admin)

        res = client.get(f"/api/v1/activity-logs/individual_process/{case_id}", headers=auth_headers(admin))

        actions = [a["action"] for a in res.get_json()["items"]]
        assert actions == ["updated", "created"]

    def test_client_is_refused(self, client, case_id, client_caller, auth_headers):
        res = client.get(
            f"/api/v1/activity-logs/individual_process/{case_id}", headers=auth_headers(client_caller),
        )

        assert res.status_code == 403

    def test_unknown_entity_type(self, client, admin, auth_headers):
        res = client.get("/api/v1/activity-logs/spaceship/1", headers=auth_headers(admin))

        assert res.status_code == 422


class TestOverdueApi:
    def test_as_of_date(self, client, task_id, admin, auth_headers):
        headers = auth_headers(admin)

        late = client.get("/api/v1/tasks/overdue?as_of=01/06/2026", headers=headers).get_json()
        early = client.get("/api/v1/tasks/overdue?as_of=2026-05-01", headers=headers).get_json()

        assert [t["id"] for t in late["items"]] == [task_id]
        assert early["total"] == 0
