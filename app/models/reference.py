"""
Case Lifecycle Platform
Reference data models.

Models:
    - Company: tenant boundary for client users
    - Person: the applicant a case is opened for
    - UserProfile: platform user with role (admin | client) and optional company
    - AuthorizationType: kind of authorization requested (was "process type")
    - LegalFramework: legal basis a case is filed under
    - DocumentType: catalogue of documents a checklist can ask for
"""

from datetime import datetime, timezone

from app.models import db


USER_ROLES = {"admin", "client"}


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    tax_id = db.Column(db.String(30), nullable=True, comment="CNPJ or foreign equivalent")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "tax_id": self.tax_id,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Company {self.id}: {self.name}>"


class Person(db.Model):
    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    given_names = db.Column(db.String(200), nullable=False)
    surname = db.Column(db.String(200), default="")
    email = db.Column(db.String(200), nullable=True)
    nationality = db.Column(db.String(80), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self) -> str:
        return f"{self.given_names} {self.surname or ''}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "given_names": self.given_names,
            "surname": self.surname,
            "full_name": self.full_name,
            "email": self.email,
            "nationality": self.nationality,
        }

    def __repr__(self):
        return f"<Person {self.id}: {self.full_name}>"


class UserProfile(db.Model):
    """
    Authenticated platform user.

    ``user_id`` is the subject claim carried by access tokens.
    Clients are always bound to a company; admins usually are not.
    """

    __tablename__ = "user_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="client", comment="admin | client")
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    company = db.relationship("Company")

    __table_args__ = (
        db.CheckConstraint("role IN ('admin','client')", name="ck_user_profile_role"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "company_id": self.company_id,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<UserProfile {self.user_id} ({self.role})>"


class AuthorizationType(db.Model):
    __tablename__ = "authorization_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), nullable=True, unique=True)
    estimated_days = db.Column(
        db.Integer, default=0, nullable=False,
        comment="Typical processing time; base for auto-generated task due dates",
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "estimated_days": self.estimated_days,
            "is_active": self.is_active,
        }


class LegalFramework(db.Model):
    __tablename__ = "legal_frameworks"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    authorization_type_id = db.Column(
        db.Integer, db.ForeignKey("authorization_types.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "authorization_type_id": self.authorization_type_id,
            "is_active": self.is_active,
        }


class DocumentType(db.Model):
    __tablename__ = "document_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), nullable=True, unique=True)
    category = db.Column(db.String(50), default="", comment="personal | company | legal | …")
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "category": self.category,
            "is_active": self.is_active,
        }
