"""
Case Lifecycle Platform
Document checklist models.

Models:
    - DocumentTemplate: versioned checklist definition per authorization type
    - DocumentRequirement: one line of a template
    - DocumentDelivered: per-case checklist entry, progressed by uploads/reviews
"""

from datetime import datetime, timezone

from app.models import db


DOCUMENT_STATUSES = {
    "not_started", "pending_upload", "uploaded", "under_review",
    "approved", "rejected", "expired",
}


class DocumentTemplate(db.Model):
    __tablename__ = "document_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    authorization_type_id = db.Column(
        db.Integer, db.ForeignKey("authorization_types.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    legal_framework_id = db.Column(
        db.Integer, db.ForeignKey("legal_frameworks.id", ondelete="SET NULL"),
        nullable=True, comment="NULL = applies when the case has no legal framework",
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    version = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    requirements = db.relationship(
        "DocumentRequirement", backref="template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="DocumentRequirement.sort_order",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "authorization_type_id": self.authorization_type_id,
            "legal_framework_id": self.legal_framework_id,
            "is_active": self.is_active,
            "version": self.version,
        }
        if include_children:
            result["requirements"] = [r.to_dict() for r in self.requirements]
        return result


class DocumentRequirement(db.Model):
    __tablename__ = "document_requirements"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("document_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    document_type_id = db.Column(
        db.Integer, db.ForeignKey("document_types.id", ondelete="CASCADE"), nullable=False,
    )
    is_required = db.Column(db.Boolean, default=True, nullable=False)
    is_critical = db.Column(db.Boolean, default=False, nullable=False)
    description = db.Column(db.Text, default="")
    sort_order = db.Column(db.Integer, default=0)
    validity_days = db.Column(db.Integer, nullable=True)

    document_type = db.relationship("DocumentType")

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "document_type_id": self.document_type_id,
            "is_required": self.is_required,
            "is_critical": self.is_critical,
            "description": self.description,
            "sort_order": self.sort_order,
            "validity_days": self.validity_days,
        }


class DocumentDelivered(db.Model):
    """
    Checklist entry of a case.

    Entries still in ``not_started`` are owned by the checklist generator and
    are replaced on regeneration; any other status marks user work and is kept.
    """

    __tablename__ = "documents_delivered"
    __table_args__ = (
        db.Index("idx_docs_process_status", "individual_process_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    individual_process_id = db.Column(
        db.Integer, db.ForeignKey("individual_processes.id", ondelete="CASCADE"), nullable=False,
    )
    document_type_id = db.Column(
        db.Integer, db.ForeignKey("document_types.id", ondelete="RESTRICT"), nullable=False,
    )
    document_requirement_id = db.Column(
        db.Integer, db.ForeignKey("document_requirements.id", ondelete="SET NULL"), nullable=True,
    )
    person_id = db.Column(db.Integer, db.ForeignKey("people.id", ondelete="SET NULL"), nullable=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    status = db.Column(db.String(20), default="not_started", nullable=False,
                       comment="not_started | pending_upload | uploaded | under_review | …")
    file_name = db.Column(db.String(300), nullable=True)
    uploaded_by = db.Column(db.String(64), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    version = db.Column(db.Integer, default=1, nullable=False)
    is_latest = db.Column(db.Boolean, default=True, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)

    document_type = db.relationship("DocumentType")

    def to_dict(self):
        return {
            "id": self.id,
            "individual_process_id": self.individual_process_id,
            "document_type_id": self.document_type_id,
            "document_type": self.document_type.name if self.document_type else None,
            "document_requirement_id": self.document_requirement_id,
            "person_id": self.person_id,
            "company_id": self.company_id,
            "status": self.status,
            "file_name": self.file_name,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "version": self.version,
            "is_latest": self.is_latest,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        }

    def __repr__(self):
        return f"<DocumentDelivered {self.id}: {self.status}>"
