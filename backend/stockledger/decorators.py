# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import role_at_least
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_token: The SessionToken row backing the request

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "Unauthorized"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        session = session_service.validate_session(token)

        if not session:
            return jsonify({"error": "Invalid or expired token", "code": "Unauthorized"}), 401

        g.current_user = session.user
        g.session_token = session

        return f(*args, **kwargs)

    return decorated_function


def require_role(minimum: str):
    """
    Require the authenticated user's role to be at least `minimum`
    (OWNER > STAFF). Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "Unauthorized"}), 401

            role = g.current_user.role
            if not role_at_least(role, minimum):
                return jsonify({
                    "error": "Insufficient permissions",
                    "code": "PermissionDenied",
                    "details": {"required_role": minimum, "role": role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
