"""
Tenant-scoped access checks for individual processes.

Admins see and mutate every case.  Clients only see and mutate cases whose
collective process belongs to their own company; a case without a group (or
whose group has no company) is visible to admins only.

Lists are filtered after fetch; single-record operations call
``ensure_case_access`` before they touch anything.
"""

import logging

from app.auth import CallerIdentity
from app.core.exceptions import AccessDeniedError, ConfigurationError, NotAuthenticatedError
from app.models.process import IndividualProcess

logger = logging.getLogger(__name__)


def _client_company(caller: CallerIdentity) -> int:
    if caller.company_id is None:
        raise ConfigurationError(f"Client user {caller.user_id} has no company assigned")
    return caller.company_id


def ensure_caller_configured(caller: CallerIdentity | None) -> None:
    """Validate the caller itself, before any record is looked at."""
    if caller is None or not caller.user_id:
        raise NotAuthenticatedError()
    if not caller.is_admin:
        _client_company(caller)


def require_admin(caller: CallerIdentity) -> None:
    """Raise AccessDeniedError unless the caller is an admin."""
    ensure_caller_configured(caller)
    if not caller.is_admin:
        logger.info("Admin-only operation refused for user=%s", caller.user_id)
        raise AccessDeniedError("Admin access required")


def can_access_company(caller: CallerIdentity, company_id: int | None) -> bool:
    if caller.is_admin:
        return True
    return company_id is not None and company_id == _client_company(caller)


def can_access_case(caller: CallerIdentity, case: IndividualProcess) -> bool:
    return can_access_company(caller, case.company_id)


def ensure_case_access(caller: CallerIdentity, case: IndividualProcess) -> None:
    """Raise AccessDeniedError if *caller* may not act on *case*."""
    ensure_caller_configured(caller)
    if not can_access_case(caller, case):
        logger.info(
            "Tenant mismatch: user=%s company=%s case=%s case_company=%s",
            caller.user_id, caller.company_id, case.id, case.company_id,
        )
        raise AccessDeniedError(f"No access to individual process {case.id}")


def filter_visible_cases(caller: CallerIdentity, cases):
    """Return the subset of *cases* the caller may see, preserving order."""
    ensure_caller_configured(caller)
    if caller.is_admin:
        return list(cases)
    company_id = _client_company(caller)
    return [c for c in cases if c.company_id == company_id]
