"""
Per-case document checklist generation.

Covers ``app/services/document_checklist.py``:
    - template matching (authorization type, legal framework, version)
    - generation from the group's authorization type
    - regeneration keeps progressed entries
"""

import pytest

from app.core.exceptions import NotAuthenticatedError, NotFoundError
from app.models import db
from app.models.document import DocumentDelivered, DocumentTemplate
from app.models.process import CollectiveProcess
from app.models.reference import LegalFramework
from app.services.document_checklist import (
    GENERATED_STATUS,
    find_template,
    generate_document_checklist,
    list_checklist,
    regenerate_document_checklist,
)


class TestFindTemplate:
    def test_highest_active_version_wins(self, auth_type, checklist_template):
        v2 = DocumentTemplate(name="Work residence v2", authorization_type_id=auth_type.id, version=2)
        v3 = DocumentTemplate(name="Retired", authorization_type_id=auth_type.id, version=3, is_active=False)
        db.session.add_all([v2, v3])
        db.session.flush()

        assert find_template(auth_type.id, None).id == v2.id

    def test_legal_framework_must_match(self, auth_type, checklist_template):
        framework = LegalFramework(name="RN 02/2017", authorization_type_id=auth_type.id)
        db.session.add(framework)
        db.session.flush()

        assert find_template(auth_type.id, framework.id) is None
        assert find_template(auth_type.id, None).id == checklist_template.id


class TestGenerateChecklist:
    def test_creates_one_entry_per_requirement(self, statuses, person, group, checklist_template, make_case):
        case = make_case(person, statuses["em_preparacao"], group)

        ids = generate_document_checklist(case.id, actor_id="admin-1")

        assert len(ids) == 3
        entries = list_checklist(case.id)
        assert [e.document_type.name for e in entries] == ["Passport", "Diploma", "Employment contract"]
        assert all(e.status == GENERATED_STATUS for e in entries)
        assert all(e.person_id == person.id for e in entries)
        assert all(e.company_id == group.company_id for e in entries)
        assert all(e.uploaded_by == "admin-1" for e in entries)

    def test_case_without_group_gets_nothing(self, statuses, person, checklist_template, make_case):
        case = make_case(person, statuses["em_preparacao"])

        assert generate_document_checklist(case.id, actor_id="admin-1") == []

    def test_group_without_authorization_type_gets_nothing(
        self, statuses, person, company, checklist_template, make_case,
    ):
        bare = CollectiveProcess(company_id=company.id)
        db.session.add(bare)
        db.session.flush()
        case = make_case(person, statuses["em_preparacao"], bare)

        assert generate_document_checklist(case.id, actor_id="admin-1") == []

    def test_no_matching_template_gets_nothing(self, statuses, person, group, make_case):
        case = make_case(person, statuses["em_preparacao"], group)

        assert generate_document_checklist(case.id, actor_id="admin-1") == []

    def test_actor_is_required(self, statuses, person, group, checklist_template, make_case):
        case = make_case(person, statuses["em_preparacao"], group)

        with pytest.raises(NotAuthenticatedError):
            generate_document_checklist(case.id, actor_id=None)

    def test_unknown_case(self):
        with pytest.raises(NotFoundError):
            generate_document_checklist(9999, actor_id="admin-1")


class TestRegenerateChecklist:
    def test_keeps_progressed_entries(self, statuses, person, group, checklist_template, make_case):
        case = make_case(person, statuses["em_preparacao"], group)
        generate_document_checklist(case.id, actor_id="admin-1")
        uploaded = list_checklist(case.id)[0]
        uploaded.status = "uploaded"
        uploaded.file_name = "passport.pdf"
        db.session.flush()

        result = regenerate_document_checklist(case.id, actor_id="admin-1")

        assert result == {"deleted_count": 2, "created_count": 3}
        entries = list_checklist(case.id)
        assert len(entries) == 4
        assert DocumentDelivered.query.filter_by(
            individual_process_id=case.id, status="uploaded",
        ).count() == 1

    def test_regenerate_without_template(self, statuses, person, make_case):
        case = make_case(person, statuses["em_preparacao"])

        assert regenerate_document_checklist(case.id, actor_id="admin-1") == {
            "deleted_count": 0, "created_count": 0,
        }
