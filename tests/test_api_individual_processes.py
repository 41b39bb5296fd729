"""
HTTP API for individual processes.

Covers ``app/blueprints/individual_process_bp.py`` plus the app-level
request guards and the health endpoints.
"""

import pytest

from app.models import db
from app.models.process import IndividualProcess
from app.services import individual_process_service as ips


@pytest.fixture()
def case_id(statuses, person, group, admin):
    return ips.create_case({"person_id": person.id, "collective_process_id": group.id}, admin)


# ═════════════════════════════════════════════════════════════════════════════
# Authentication and tenant isolation
# ═════════════════════════════════════════════════════════════════════════════


class TestAuth:
    def test_missing_token(self, client, case_id):
        res = client.get(f"/api/v1/individual-processes/{case_id}")

        assert res.status_code == 401

    def test_garbage_token(self, client, case_id):
        res = client.get(
            f"/api/v1/individual-processes/{case_id}",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert res.status_code == 401

    def test_token_for_unknown_profile(self, client, case_id, auth_headers):
        from app.auth import CallerIdentity

        ghost = CallerIdentity(user_id="ghost", role="admin")
        res = client.get(f"/api/v1/individual-processes/{case_id}", headers=auth_headers(ghost))

        assert res.status_code == 401

    def test_other_company_is_forbidden(self, client, case_id, other_client, auth_headers):
        res = client.get(f"/api/v1/individual-processes/{case_id}", headers=auth_headers(other_client))

        assert res.status_code == 403

    def test_list_is_tenant_filtered(self, client, case_id, client_caller, other_client, auth_headers):
        mine = client.get("/api/v1/individual-processes", headers=auth_headers(client_caller))
        theirs = client.get("/api/v1/individual-processes", headers=auth_headers(other_client))

        assert mine.get_json()["total"] == 1
        assert theirs.get_json()["total"] == 0

    def test_non_numeric_id_filter(self, client, case_id, admin, auth_headers):
        res = client.get("/api/v1/individual-processes?person_id=abc", headers=auth_headers(admin))

        assert res.status_code == 422
        assert res.get_json()["details"] == {"person_id": "must be an integer"}


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════


class TestCrud:
    def test_create(self, client, statuses, person, group, admin, auth_headers):
        res = client.post(
            "/api/v1/individual-processes",
            json={"person_id": person.id, "collective_process_id": group.id},
            headers=auth_headers(admin),
        )

        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "em_preparacao"
        assert body["process_status"] == "Atual"
        assert body["person"]["full_name"] == "Ana Maria Schmidt"

    def test_create_requires_person(self, client, statuses, admin, auth_headers):
        res = client.post("/api/v1/individual-processes", json={}, headers=auth_headers(admin))

        assert res.status_code == 400

    def test_client_cannot_create(self, client, statuses, person, client_caller, auth_headers):
        res = client.post(
            "/api/v1/individual-processes", json={"person_id": person.id},
            headers=auth_headers(client_caller),
        )

        assert res.status_code == 403

    def test_get_includes_next_statuses(self, client, case_id, admin, auth_headers):
        res = client.get(f"/api/v1/individual-processes/{case_id}", headers=auth_headers(admin))

        assert res.status_code == 200
        assert "em_tramite" in res.get_json()["next_statuses"]

    def test_get_missing(self, client, statuses, admin, auth_headers):
        res = client.get("/api/v1/individual-processes/9999", headers=auth_headers(admin))

        assert res.status_code == 404

    def test_transition(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}",
            json={"status": "em_tramite", "status_notes": "Filed at MTE"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 200
        assert res.get_json()["status"] == "em_tramite"

    def test_invalid_transition_is_a_conflict(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}",
            json={"status": "rnm"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 409
        body = res.get_json()
        assert body["current_status"] == "em_preparacao"
        assert body["requested_status"] == "rnm"
        assert "Invalid status transition" in body["error"]

    def test_invalid_field_value(self, client, case_id, admin, auth_headers):
        res = client.put(
            f"/api/v1/individual-processes/{case_id}",
            json={"deadline_unit": "weeks"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 422
        assert "deadline_unit" in res.get_json()["details"]

    def test_unknown_status_code(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}",
            json={"status": "limbo"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 404

    def test_delete(self, client, case_id, admin, auth_headers):
        res = client.delete(f"/api/v1/individual-processes/{case_id}", headers=auth_headers(admin))

        assert res.status_code == 204
        assert db.session.get(IndividualProcess, case_id) is None

    def test_create_from_existing(self, client, case_id, admin, auth_headers):
        res = client.post(
            f"/api/v1/individual-processes/{case_id}/create-from-existing",
            headers=auth_headers(admin),
        )

        assert res.status_code == 201
        assert res.get_json()["id"] != case_id
        db.session.expire_all()
        assert db.session.get(IndividualProcess, case_id).process_status == "Anterior"


# ═════════════════════════════════════════════════════════════════════════════
# Sub-resources
# ═════════════════════════════════════════════════════════════════════════════


class TestSubResources:
    def test_history(self, client, case_id, admin, auth_headers):
        ips.update_case(case_id, {"status": "em_tramite"}, admin)

        res = client.get(f"/api/v1/individual-processes/{case_id}/history", headers=auth_headers(admin))

        items = res.get_json()["items"]
        assert [h["previous_status"] for h in items] == [None, "Em Preparação"]

    def test_status_records(self, client, case_id, admin, auth_headers):
        res = client.get(f"/api/v1/individual-processes/{case_id}/statuses", headers=auth_headers(admin))

        items = res.get_json()["items"]
        assert len(items) == 1
        assert items[0]["is_active"] is True

    def test_checklist(self, client, statuses, person, group, admin, auth_headers, checklist_template):
        case_id = ips.create_case({"person_id": person.id, "collective_process_id": group.id}, admin)

        listed = client.get(f"/api/v1/individual-processes/{case_id}/checklist", headers=auth_headers(admin))
        regenerated = client.post(
            f"/api/v1/individual-processes/{case_id}/regenerate-checklist", headers=auth_headers(admin),
        )

        assert listed.get_json()["total"] == 3
        assert regenerated.get_json() == {"deleted_count": 3, "created_count": 3}

    def test_urgency_requires_boolean(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}/urgency",
            json={"is_urgent": "yes"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 400

    def test_urgency(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}/urgency",
            json={"is_urgent": True},
            headers=auth_headers(admin),
        )

        assert res.status_code == 200
        assert res.get_json()["updated_ids"] == [case_id]

    def test_authorization_validation(self, client, case_id, admin, auth_headers):
        empty = client.patch(
            f"/api/v1/individual-processes/{case_id}/authorization", json={}, headers=auth_headers(admin),
        )
        half = client.patch(
            f"/api/v1/individual-processes/{case_id}/authorization",
            json={"deadline_unit": "months"},
            headers=auth_headers(admin),
        )

        assert empty.status_code == 400
        assert half.status_code == 422

    def test_case_statuses(self, client, statuses, admin, auth_headers):
        res = client.get("/api/v1/case-statuses", headers=auth_headers(admin))

        codes = [s["code"] for s in res.get_json()["items"]]
        assert codes[0] == "em_preparacao"
        assert len(codes) == len(statuses)


# ═════════════════════════════════════════════════════════════════════════════
# Bulk
# ═════════════════════════════════════════════════════════════════════════════


class TestBulk:
    def test_bulk_status(self, client, statuses, person, group, admin, auth_headers):
        a = ips.create_case({"person_id": person.id, "collective_process_id": group.id}, admin)
        b = ips.create_case(
            {"person_id": person.id, "collective_process_id": group.id, "status": "rnm"}, admin,
        )

        res = client.post(
            "/api/v1/individual-processes/bulk-status",
            json={"ids": [a, b], "status": "em_tramite", "reason": "Filed"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 200
        body = res.get_json()
        assert body["successful"] == [a]
        assert body["failed"][0]["id"] == b
        assert body["total_processed"] == 2

    @pytest.mark.parametrize("payload", [
        {"status": "em_tramite"},
        {"ids": [], "status": "em_tramite"},
        {"ids": ["one"], "status": "em_tramite"},
        {"ids": [1]},
    ])
    def test_bulk_status_bad_payload(self, client, statuses, admin, auth_headers, payload):
        res = client.post(
            "/api/v1/individual-processes/bulk-status", json=payload, headers=auth_headers(admin),
        )

        assert res.status_code == 400

    def test_bulk_unknown_status(self, client, case_id, admin, auth_headers):
        res = client.post(
            "/api/v1/individual-processes/bulk-status",
            json={"ids": [case_id], "status": "limbo"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 404

    def test_common_next_statuses(self, client, case_id, admin, auth_headers):
        res = client.post(
            "/api/v1/individual-processes/common-next-statuses",
            json={"ids": [case_id]},
            headers=auth_headers(admin),
        )

        codes = {s["code"] for s in res.get_json()["items"]}
        assert codes == {
            "em_tramite", "encaminhado_analise", "deferido", "pedido_cancelamento", "pedido_arquivamento",
        }


# ═════════════════════════════════════════════════════════════════════════════
# App-level guards and health
# ═════════════════════════════════════════════════════════════════════════════


class TestGuardsAndHealth:
    def test_non_json_body_is_rejected(self, client, statuses, admin, auth_headers):
        res = client.post(
            "/api/v1/individual-processes",
            data="person_id=1",
            content_type="application/x-www-form-urlencoded",
            headers=auth_headers(admin),
        )

        assert res.status_code == 415

    def test_multipart_body_is_rejected(self, client, case_id, admin, auth_headers):
        res = client.patch(
            f"/api/v1/individual-processes/{case_id}",
            data={"requester": "Acme HR"},
            headers=auth_headers(admin),
        )

        assert res.status_code == 415

    def test_unknown_route(self, client):
        assert client.get("/api/v1/nothing-here").status_code == 404

    def test_health(self, client):
        assert client.get("/api/v1/health").get_json()["status"] == "ok"
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live_reports_seed_state(self, client, statuses):
        res = client.get("/api/v1/health/live")

        assert res.status_code == 200
        body = res.get_json()
        assert body["checks"]["case_statuses"]["status"] == "ok"
        assert body["checks"]["app"]["event_sink"] == "InlineEventSink"
