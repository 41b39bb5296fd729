"""
Shared pytest fixtures for the Case Lifecycle Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - statuses: seeded CaseStatus rows keyed by code
    - company / other_company / person / auth_type / group: reference rows
    - admin / client_caller / other_client: CallerIdentity with a stored profile
    - auth_headers: builds a Bearer header for a CallerIdentity
    - make_case: inserts an IndividualProcess row directly
    - checklist_template: DocumentTemplate with three requirements
"""

import pytest

from app import create_app
from app.auth import ROLE_ADMIN, ROLE_CLIENT, CallerIdentity
from app.models import db as _db
from app.models.case_status import CaseStatus, seed_case_statuses
from app.models.document import DocumentRequirement, DocumentTemplate
from app.models.process import CollectiveProcess, IndividualProcess
from app.models.reference import AuthorizationType, Company, DocumentType, Person, UserProfile
from app.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Reference data ───────────────────────────────────────────────────────


@pytest.fixture()
def statuses():
    """Seed the default case statuses; returns {code: CaseStatus}."""
    seed_case_statuses()
    _db.session.commit()
    return {s.code: s for s in CaseStatus.query.all()}


@pytest.fixture()
def company():
    c = Company(name="Acme Mineração", tax_id="12.345.678/0001-90")
    _db.session.add(c)
    _db.session.flush()
    return c


@pytest.fixture()
def other_company():
    c = Company(name="Globex Óleo e Gás")
    _db.session.add(c)
    _db.session.flush()
    return c


@pytest.fixture()
def person():
    p = Person(given_names="Ana Maria", surname="Schmidt", nationality="German")
    _db.session.add(p)
    _db.session.flush()
    return p


@pytest.fixture()
def auth_type():
    t = AuthorizationType(name="Residência por trabalho", code="RN-02", estimated_days=10)
    _db.session.add(t)
    _db.session.flush()
    return t


@pytest.fixture()
def group(company, auth_type):
    """A collective process of ``company`` with an authorization type."""
    g = CollectiveProcess(
        reference_number="COL-001", company_id=company.id, authorization_type_id=auth_type.id,
    )
    _db.session.add(g)
    _db.session.flush()
    return g


# ── Callers ──────────────────────────────────────────────────────────────


def _profile(user_id, role, company_id=None, full_name=None) -> CallerIdentity:
    _db.session.add(UserProfile(
        user_id=user_id,
        full_name=full_name or user_id,
        email=f"{user_id}@example.com",
        role=role,
        company_id=company_id,
    ))
    _db.session.flush()
    return CallerIdentity(user_id=user_id, role=role, company_id=company_id)


@pytest.fixture()
def admin():
    return _profile("admin-1", ROLE_ADMIN, full_name="Operations Admin")


@pytest.fixture()
def client_caller(company):
    return _profile("client-1", ROLE_CLIENT, company_id=company.id, full_name="Acme HR")


@pytest.fixture()
def other_client(other_company):
    return _profile("client-2", ROLE_CLIENT, company_id=other_company.id, full_name="Globex HR")


@pytest.fixture()
def auth_headers():
    """Return a function building an Authorization header for a caller."""

    def _headers(caller: CallerIdentity) -> dict:
        token = generate_access_token(caller.user_id, caller.role, caller.company_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── ORM helper ───────────────────────────────────────────────────────────


@pytest.fixture()
def make_case():
    """Return a factory inserting a case directly (bypasses the lifecycle service)."""

    def _make(person, status=None, group=None, **fields) -> IndividualProcess:
        case = IndividualProcess(
            person_id=person.id,
            collective_process_id=group.id if group else None,
            case_status_id=status.id if status else None,
            **fields,
        )
        _db.session.add(case)
        _db.session.flush()
        return case

    return _make


@pytest.fixture()
def checklist_template(auth_type):
    """Active template for ``auth_type`` (no legal framework) with three documents."""
    template = DocumentTemplate(name="Work residence", authorization_type_id=auth_type.id, version=1)
    _db.session.add(template)
    _db.session.flush()
    for order, (code, name) in enumerate(
        [("PASS", "Passport"), ("DIPL", "Diploma"), ("CONT", "Employment contract")], start=1,
    ):
        doc_type = DocumentType(name=name, code=code, category="personal")
        _db.session.add(doc_type)
        _db.session.flush()
        _db.session.add(DocumentRequirement(
            template_id=template.id, document_type_id=doc_type.id, sort_order=order,
        ))
    _db.session.flush()
    return template
