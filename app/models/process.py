"""
Case Lifecycle Platform
Process domain models.

Models:
    - CollectiveProcess: group of related cases filed together for one company
    - IndividualProcess: one person's authorization case
    - IndividualProcessStatus: status records of a case (at most one active)
    - ProcessHistory: write-once audit trail of status changes
"""

import json
from datetime import datetime, timezone

from app.models import db


PROCESS_STATUS_CURRENT = "Atual"
PROCESS_STATUS_PREVIOUS = "Anterior"
PROCESS_STATUSES = {PROCESS_STATUS_CURRENT, PROCESS_STATUS_PREVIOUS}

DEADLINE_UNITS = {"years", "months", "days"}


def _iso(value):
    return value.isoformat() if value else None


class CollectiveProcess(db.Model):
    """
    Group of individual processes opened together (e.g. one company hiring
    several foreign employees under the same authorization).
    """

    __tablename__ = "collective_processes"

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(50), nullable=True, unique=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True, index=True, comment="Tenant the group belongs to",
    )
    authorization_type_id = db.Column(
        db.Integer, db.ForeignKey("authorization_types.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    is_urgent = db.Column(db.Boolean, default=False, nullable=False)
    notes = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    company = db.relationship("Company")
    authorization_type = db.relationship("AuthorizationType")
    individual_processes = db.relationship(
        "IndividualProcess", back_populates="collective_process", lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "company_id": self.company_id,
            "authorization_type_id": self.authorization_type_id,
            "is_urgent": self.is_urgent,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<CollectiveProcess {self.id}: {self.reference_number}>"


class IndividualProcess(db.Model):
    """
    A single person's authorization case.

    ``case_status_id`` is the only stored current status; ``status`` exposes
    its code for callers that still work with status strings.
    """

    __tablename__ = "individual_processes"
    __table_args__ = (
        db.Index("idx_ip_collective", "collective_process_id"),
        db.Index("idx_ip_person", "person_id"),
        db.Index("idx_ip_case_status", "case_status_id"),
        db.CheckConstraint(
            "process_status IN ('Atual','Anterior')", name="ck_ip_process_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    collective_process_id = db.Column(
        db.Integer, db.ForeignKey("collective_processes.id", ondelete="SET NULL"), nullable=True,
    )
    person_id = db.Column(db.Integer, db.ForeignKey("people.id", ondelete="RESTRICT"), nullable=False)
    company_applicant_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True, index=True, comment="Sponsoring company",
    )
    case_status_id = db.Column(
        db.Integer, db.ForeignKey("case_statuses.id", ondelete="RESTRICT"), nullable=True,
    )
    authorization_type_id = db.Column(
        db.Integer, db.ForeignKey("authorization_types.id", ondelete="SET NULL"), nullable=True,
    )
    legal_framework_id = db.Column(
        db.Integer, db.ForeignKey("legal_frameworks.id", ondelete="SET NULL"), nullable=True,
    )

    # Filing details
    consulate_name = db.Column(db.String(200), nullable=True)
    requester = db.Column(db.String(200), nullable=True)
    passport_number = db.Column(db.String(50), nullable=True)
    protocol_number = db.Column(db.String(80), nullable=True, index=True)
    mre_office_number = db.Column(db.String(80), nullable=True)

    # Official gazette (DOU) publication
    dou_number = db.Column(db.String(30), nullable=True)
    dou_section = db.Column(db.String(10), nullable=True)
    dou_page = db.Column(db.String(10), nullable=True)
    dou_date = db.Column(db.Date, nullable=True)

    # Migration registry (RNM)
    rnm_number = db.Column(db.String(30), nullable=True)
    rnm_deadline = db.Column(db.Date, nullable=True)
    appointment_datetime = db.Column(db.DateTime(timezone=True), nullable=True)

    # Authorization deadline
    deadline_date = db.Column(db.Date, nullable=True)
    deadline_unit = db.Column(db.String(10), nullable=True, comment="years | months | days")
    deadline_quantity = db.Column(db.Integer, nullable=True)

    is_urgent = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    process_status = db.Column(
        db.String(10), default=PROCESS_STATUS_CURRENT, nullable=False,
        comment="Atual (current round) | Anterior (superseded round)",
    )
    date_process = db.Column(db.Date, nullable=True)
    completed_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="Set once, on the first transition to the approved status",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    # ── Relationships ────────────────────────────────────────────────────
    collective_process = db.relationship("CollectiveProcess", back_populates="individual_processes")
    person = db.relationship("Person")
    company_applicant = db.relationship("Company")
    case_status = db.relationship("CaseStatus")
    authorization_type = db.relationship("AuthorizationType")
    legal_framework = db.relationship("LegalFramework")

    @property
    def status(self):
        """Current status code, or None for a case without a status."""
        return self.case_status.code if self.case_status else None

    @property
    def company_id(self):
        """Tenant of the case: the group's company. Ungrouped cases have none."""
        if self.collective_process is None:
            return None
        return self.collective_process.company_id

    def to_dict(self, include_refs=False):
        result = {
            "id": self.id,
            "collective_process_id": self.collective_process_id,
            "person_id": self.person_id,
            "company_applicant_id": self.company_applicant_id,
            "case_status_id": self.case_status_id,
            "status": self.status,
            "authorization_type_id": self.authorization_type_id,
            "legal_framework_id": self.legal_framework_id,
            "consulate_name": self.consulate_name,
            "requester": self.requester,
            "passport_number": self.passport_number,
            "protocol_number": self.protocol_number,
            "mre_office_number": self.mre_office_number,
            "dou_number": self.dou_number,
            "dou_section": self.dou_section,
            "dou_page": self.dou_page,
            "dou_date": _iso(self.dou_date),
            "rnm_number": self.rnm_number,
            "rnm_deadline": _iso(self.rnm_deadline),
            "appointment_datetime": _iso(self.appointment_datetime),
            "deadline_date": _iso(self.deadline_date),
            "deadline_unit": self.deadline_unit,
            "deadline_quantity": self.deadline_quantity,
            "is_urgent": self.is_urgent,
            "is_active": self.is_active,
            "process_status": self.process_status,
            "date_process": _iso(self.date_process),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_refs:
            result["person"] = self.person.to_dict() if self.person else None
            result["company_applicant"] = (
                self.company_applicant.to_dict() if self.company_applicant else None
            )
            result["collective_process"] = (
                self.collective_process.to_dict() if self.collective_process else None
            )
            result["case_status"] = self.case_status.to_dict() if self.case_status else None
            result["authorization_type"] = (
                self.authorization_type.to_dict() if self.authorization_type else None
            )
            result["legal_framework"] = (
                self.legal_framework.to_dict() if self.legal_framework else None
            )
        return result

    def __repr__(self):
        return f"<IndividualProcess {self.id}: {self.status}>"


class IndividualProcessStatus(db.Model):
    """One status a case has been in.  At most one row per case is active."""

    __tablename__ = "individual_process_statuses"
    __table_args__ = (
        db.Index("idx_ips_process_active", "individual_process_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    individual_process_id = db.Column(
        db.Integer, db.ForeignKey("individual_processes.id", ondelete="CASCADE"), nullable=False,
    )
    case_status_id = db.Column(
        db.Integer, db.ForeignKey("case_statuses.id", ondelete="RESTRICT"), nullable=True,
    )
    status_name = db.Column(db.String(150), nullable=False, comment="Display name at time of change")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    date = db.Column(db.Date, nullable=True, comment="Business date the status took effect")
    notes = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.String(64), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    case_status = db.relationship("CaseStatus")

    def to_dict(self):
        return {
            "id": self.id,
            "individual_process_id": self.individual_process_id,
            "case_status_id": self.case_status_id,
            "status_code": self.case_status.code if self.case_status else None,
            "status_name": self.status_name,
            "is_active": self.is_active,
            "date": _iso(self.date),
            "notes": self.notes,
            "changed_by": self.changed_by,
            "changed_at": _iso(self.changed_at),
        }

    def __repr__(self):
        return f"<IndividualProcessStatus {self.id} process={self.individual_process_id} active={self.is_active}>"


class ProcessHistory(db.Model):
    """
    Immutable status-change trail.

    One row per status change; ``previous_status`` is NULL for the initial
    status of a case.
    """

    __tablename__ = "process_history"
    __table_args__ = (
        db.Index("idx_history_process", "individual_process_id", "changed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    individual_process_id = db.Column(
        db.Integer, db.ForeignKey("individual_processes.id", ondelete="CASCADE"), nullable=False,
    )
    previous_status = db.Column(db.String(150), nullable=True)
    new_status = db.Column(db.String(150), nullable=False)
    status_record_id = db.Column(
        db.Integer, db.ForeignKey("individual_process_statuses.id", ondelete="SET NULL"),
        nullable=True,
    )
    changed_by = db.Column(db.String(64), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    notes = db.Column(db.Text, nullable=True)
    metadata_json = db.Column(db.Text, default="{}")

    @property
    def extra(self) -> dict:
        try:
            return json.loads(self.metadata_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self):
        return {
            "id": self.id,
            "individual_process_id": self.individual_process_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "status_record_id": self.status_record_id,
            "changed_by": self.changed_by,
            "changed_at": _iso(self.changed_at),
            "notes": self.notes,
            "metadata": self.extra,
        }

    def __repr__(self):
        return f"<ProcessHistory {self.id}: {self.previous_status} → {self.new_status}>"
