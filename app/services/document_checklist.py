"""
Per-case document checklist generation.

The checklist of a case is derived from the newest active DocumentTemplate
for the authorization type of the case's collective process whose legal
framework matches the case's (both unset also counts as a match).

Entries in ``not_started`` belong to the generator; regeneration replaces
them and keeps every entry a user has already progressed.
"""

import logging

from sqlalchemy import delete, select

from app.core.exceptions import NotAuthenticatedError, NotFoundError
from app.models import db
from app.models.document import DocumentDelivered, DocumentRequirement, DocumentTemplate
from app.models.process import IndividualProcess

logger = logging.getLogger(__name__)

GENERATED_STATUS = "not_started"


def find_template(authorization_type_id: int, legal_framework_id: int | None):
    """Return the highest-version matching active template, or None."""
    stmt = select(DocumentTemplate).where(
        DocumentTemplate.authorization_type_id == authorization_type_id,
        DocumentTemplate.is_active.is_(True),
    )
    if legal_framework_id is None:
        stmt = stmt.where(DocumentTemplate.legal_framework_id.is_(None))
    else:
        stmt = stmt.where(DocumentTemplate.legal_framework_id == legal_framework_id)
    stmt = stmt.order_by(DocumentTemplate.version.desc(), DocumentTemplate.id.desc())
    return db.session.execute(stmt).scalars().first()


def generate_document_checklist(individual_process_id: int, *, actor_id: str | None) -> list[int]:
    """
    Create ``not_started`` checklist entries for a case.  Flushes, never commits.

    Returns:
        Ids of the created DocumentDelivered rows (empty when the case has no
        group, the group has no authorization type, or no template matches).

    Raises:
        NotFoundError: unknown case.
        NotAuthenticatedError: no actor to attribute the entries to.
    """
    if not actor_id:
        raise NotAuthenticatedError("Cannot generate a checklist without an actor")

    case = db.session.get(IndividualProcess, individual_process_id)
    if not case:
        raise NotFoundError(resource="IndividualProcess", resource_id=individual_process_id)

    group = case.collective_process
    if group is None or group.authorization_type_id is None:
        logger.debug("No checklist for process=%s: no group authorization type", case.id)
        return []

    template = find_template(group.authorization_type_id, case.legal_framework_id)
    if template is None:
        logger.info(
            "No active document template for authorization_type=%s legal_framework=%s (process=%s)",
            group.authorization_type_id, case.legal_framework_id, case.id,
        )
        return []

    requirements = db.session.execute(
        select(DocumentRequirement)
        .where(DocumentRequirement.template_id == template.id)
        .order_by(DocumentRequirement.sort_order, DocumentRequirement.id)
    ).scalars().all()

    created = []
    for req in requirements:
        entry = DocumentDelivered(
            individual_process_id=case.id,
            document_type_id=req.document_type_id,
            document_requirement_id=req.id,
            person_id=case.person_id,
            company_id=case.company_id,
            status=GENERATED_STATUS,
            uploaded_by=str(actor_id),
            version=1,
            is_latest=True,
        )
        db.session.add(entry)
        created.append(entry)
    db.session.flush()

    logger.debug(
        "Generated %d checklist entries for process=%s from template=%s v%s",
        len(created), case.id, template.id, template.version,
    )
    return [e.id for e in created]


def regenerate_document_checklist(individual_process_id: int, *, actor_id: str | None) -> dict:
    """
    Drop untouched entries and generate the checklist again.  Flushes, never commits.

    Returns:
        {"deleted_count": int, "created_count": int}
    """
    if not actor_id:
        raise NotAuthenticatedError("Cannot regenerate a checklist without an actor")
    if not db.session.get(IndividualProcess, individual_process_id):
        raise NotFoundError(resource="IndividualProcess", resource_id=individual_process_id)

    result = db.session.execute(
        delete(DocumentDelivered).where(
            DocumentDelivered.individual_process_id == individual_process_id,
            DocumentDelivered.status == GENERATED_STATUS,
        )
    )
    deleted_count = result.rowcount or 0
    created_ids = generate_document_checklist(individual_process_id, actor_id=actor_id)
    return {"deleted_count": deleted_count, "created_count": len(created_ids)}


def list_checklist(individual_process_id: int) -> list[DocumentDelivered]:
    stmt = (
        select(DocumentDelivered)
        .where(DocumentDelivered.individual_process_id == individual_process_id)
        .order_by(DocumentDelivered.id)
    )
    return db.session.execute(stmt).scalars().all()
