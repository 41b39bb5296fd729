"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register one handler per type and
map them to HTTP status codes:

    NotFoundError           404
    AccessDeniedError       403
    NotAuthenticatedError   401
    InvalidTransitionError  409
    ValidationError         422
    ConfigurationError      500

Usage:
    from app.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="IndividualProcess", resource_id=42)
    raise InvalidTransitionError("em_preparacao", "rnm")
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Args:
        resource: Human-readable model name (e.g. "IndividualProcess").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    """Raised when the transition table does not allow a status change."""

    def __init__(self, current_status: str | None, requested_status: str) -> None:
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class AccessDeniedError(Exception):
    """Raised when a caller acts on a record outside their company."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotAuthenticatedError(Exception):
    """Raised when no actor can be resolved for an operation that records one."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class ConfigurationError(Exception):
    """Raised when required reference data or caller setup is missing.

    Examples: the default case status is not seeded; a client user has no
    company assigned.
    """
