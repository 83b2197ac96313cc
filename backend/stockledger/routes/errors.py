# Overview: Maps service-layer exceptions to JSON error responses.

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..extensions import db
from ..permissions import PermissionDeniedError
from ..services.auth_service import PasswordValidationError, UserNotFoundError
from ..services.categories_service import CategoryNotFoundError
from ..services.movement_service import (
    AlreadyCancelledError,
    InsufficientStockError,
    MovementError,
    MovementNotFoundError,
    ProductNotFoundError,
)
from ..services.reporting_service import ReportError
from ..validation import ConflictError, ValidationError

NOT_FOUND_ERRORS = (ProductNotFoundError, MovementNotFoundError, UserNotFoundError, CategoryNotFoundError)
CONFLICT_ERRORS = (InsufficientStockError, AlreadyCancelledError)


def error_body(message: str, code: str, details: dict | None = None) -> dict:
    return {"error": message, "code": code, "details": details or {}}


def status_for(exc: Exception) -> int:
    if isinstance(exc, PermissionDeniedError):
        return 403
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    if isinstance(exc, CONFLICT_ERRORS) or isinstance(exc, ConflictError):
        return 409
    return 400


def error_response(exc: Exception):
    """
    JSON response for a known domain error:
    {"error": <message>, "code": <kind>, "details": {...}}.
    """
    if hasattr(exc, "code"):
        code = exc.code
        details = getattr(exc, "details", {})
    elif isinstance(exc, ConflictError):
        code, details = "Conflict", {}
    else:
        code, details = "ValidationError", {}

    return jsonify(error_body(str(exc), code, details)), status_for(exc)


DOMAIN_ERRORS = (
    MovementError,
    PermissionDeniedError,
    ValidationError,
    ConflictError,
    ReportError,
    PasswordValidationError,
    UserNotFoundError,
    CategoryNotFoundError,
)


def handle_unexpected_error(exc: Exception):
    """
    App-wide handler for exceptions no route caught.

    HTTP errors (404 for unknown URLs, 405, ...) keep their own response.
    Anything else is logged with its traceback and returned as a JSON 500.
    """
    if isinstance(exc, HTTPException):
        return exc

    db.session.rollback()
    current_app.logger.exception("Unhandled error (%s %s)", request.method, request.path)
    return jsonify(error_body("Internal server error", "InternalError")), 500
