# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockledger/routes/auth.py
"""
Authentication API routes

- Login issues a bearer session token (hashed at rest)
- Logout revokes it
- Accounts are created by the owner through /api/users or the CLI (flask users create)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.audit_service import AuditAction, AuditEntity, record_audit_event
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required", "code": "ValidationError"}), 400

        user = auth_service.authenticate(email, password)

        if not user:
            current_app.logger.warning("Failed login attempt (email=%s, ip=%s)", email, request.remote_addr)
            record_audit_event(
                actor_id=None,
                action=AuditAction.LOGIN_FAILED,
                entity=AuditEntity.USER,
                meta={"email": email},
            )
            return jsonify({"error": "Invalid credentials", "code": "Unauthorized"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )
        record_audit_event(
            actor_id=user.id,
            action=AuditAction.LOGIN,
            entity=AuditEntity.USER,
            entity_id=user.id,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error", "code": "InternalError"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token used for this request."""
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token)
    record_audit_event(
        actor_id=g.current_user.id,
        action=AuditAction.LOGOUT,
        entity=AuditEntity.USER,
        entity_id=g.current_user.id,
    )
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": g.session_token.to_dict(),
    }), 200
