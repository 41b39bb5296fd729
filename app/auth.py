"""
Case Lifecycle Platform
Caller identity resolution.

Every lifecycle operation receives an explicit ``CallerIdentity`` instead of
looking up the current user itself.  Blueprints build it once per request:

    caller = resolve_caller_identity()
    individual_process_service.update_case(case_id, data, caller)

Security model:
    - The access token only identifies the user (``sub`` claim).
    - Role and company are read from the user's profile on every request,
      so revoking a role takes effect without waiting for token expiry.
    - A ``client`` without a company is a setup error, not an empty tenant.
"""

import logging
from dataclasses import dataclass

from flask import g
from sqlalchemy import select

from app.core.exceptions import ConfigurationError, NotAuthenticatedError
from app.models import db
from app.models.reference import UserProfile

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"


@dataclass(frozen=True)
class CallerIdentity:
    """Resolved actor of an operation."""

    user_id: str
    role: str
    company_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def caller_from_profile(profile: UserProfile) -> CallerIdentity:
    """Build a CallerIdentity from a stored profile.

    Raises:
        NotAuthenticatedError: profile is missing or deactivated.
        ConfigurationError: client profile without a company.
    """
    if profile is None or not profile.is_active:
        raise NotAuthenticatedError("User profile not found")
    if profile.role == ROLE_CLIENT and profile.company_id is None:
        raise ConfigurationError(f"Client user {profile.user_id} has no company assigned")
    return CallerIdentity(user_id=profile.user_id, role=profile.role, company_id=profile.company_id)


def resolve_caller_identity() -> CallerIdentity:
    """Resolve the caller of the current request from the JWT subject."""
    user_id = getattr(g, "jwt_user_id", None)
    if not user_id:
        raise NotAuthenticatedError()
    profile = db.session.execute(
        select(UserProfile).where(UserProfile.user_id == str(user_id))
    ).scalar_one_or_none()
    return caller_from_profile(profile)
