"""
Case Lifecycle Platform
Blueprint registry helpers.
"""

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    AccessDeniedError,
    ConfigurationError,
    InvalidTransitionError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def pagination_args(default_limit=50, max_limit=200):
    """Read limit/offset from the query string.

    Query params:
        limit  — max items (default 50, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def register_service_error_handlers(bp):
    """Map service-layer exceptions to JSON responses on *bp*.

    Flask resolves handlers along the exception's MRO, so
    InvalidTransitionError (a ValidationError) keeps its own 409.
    """

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return jsonify({"error": str(error)}), 404

    @bp.errorhandler(NotAuthenticatedError)
    def _handle_not_authenticated(error: NotAuthenticatedError):
        return jsonify({"error": str(error)}), 401

    @bp.errorhandler(AccessDeniedError)
    def _handle_access_denied(error: AccessDeniedError):
        return jsonify({"error": str(error)}), 403

    @bp.errorhandler(InvalidTransitionError)
    def _handle_invalid_transition(error: InvalidTransitionError):
        return jsonify({
            "error": str(error),
            "current_status": error.current_status,
            "requested_status": error.requested_status,
        }), 409

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return jsonify({"error": str(error), "details": error.details}), 422

    @bp.errorhandler(ConfigurationError)
    def _handle_configuration(error: ConfigurationError):
        logger.error("Configuration error in %s endpoint=%s: %s", bp.name, request.endpoint, error)
        return jsonify({"error": str(error)}), 500

    @bp.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return jsonify({"error": "Internal server error"}), 500

    return bp
