# Overview: Flask API routes for staff account management; parses input and returns JSON responses.

# backend/stockledger/routes/users.py
"""
User management routes.

SECURITY: All endpoints require OWNER.
- Accounts created here are always STAFF
- Deactivation and password changes revoke every session of the target user
- Owners cannot deactivate themselves or another owner
"""

from flask import Blueprint, request, g
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryMovement
from ..services import auth_service
from ..services.audit_service import recent_events_by_actor
from ..permissions import Role
from ..validation import validate_user_payload, ValidationError
from ..decorators import require_auth, require_role
from .errors import DOMAIN_ERRORS, error_response

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _movement_counts(user_ids: list[int]) -> dict[int, int]:
    if not user_ids:
        return {}
    rows = (
        db.session.query(InventoryMovement.actor_id, func.count(InventoryMovement.id))
        .filter(InventoryMovement.actor_id.in_(user_ids))
        .group_by(InventoryMovement.actor_id)
        .all()
    )
    return dict(rows)


@users_bp.get("")
@require_auth
@require_role(Role.OWNER)
def list_users_route():
    """
    List accounts, newest first.

    Query params:
    - include_inactive: "false" to hide deactivated accounts (default true)
    - role: OWNER or STAFF
    - search: substring match on email or name
    """
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    users = auth_service.list_users(
        include_inactive=include_inactive,
        role=request.args.get("role"),
        search=request.args.get("search"),
    )
    counts = _movement_counts([u.id for u in users])

    result = []
    for user in users:
        user_dict = user.to_dict()
        user_dict["movement_count"] = counts.get(user.id, 0)
        result.append(user_dict)

    return {"users": result, "count": len(result)}


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(Role.OWNER)
def get_user_route(user_id: int):
    """Account details with its most recent audit events."""
    try:
        user = auth_service.get_user(user_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    user_dict = user.to_dict()
    user_dict["movement_count"] = _movement_counts([user.id]).get(user.id, 0)
    user_dict["recent_activity"] = [entry.to_dict() for entry in recent_events_by_actor(user.id)]
    return {"user": user_dict}


@users_bp.post("")
@require_auth
@require_role(Role.OWNER)
def create_user_route():
    """
    Create a STAFF account.

    Request body:
    - email: str (required)
    - name: str (optional)
    - password: str (optional) - generated and returned once when omitted
    - role: str (optional) - must be STAFF
    """
    payload = request.get_json(silent=True) or {}
    payload = dict(payload) if isinstance(payload, dict) else {}
    password = payload.pop("password", None)
    role = payload.pop("role", Role.STAFF)

    try:
        if str(role).upper() != Role.STAFF:
            raise ValidationError("Only STAFF accounts can be created")
        if password is not None and not isinstance(password, str):
            raise ValidationError("password must be a string")

        patch = validate_user_payload(payload, partial=False)
        user, generated = auth_service.create_staff_account(
            patch["email"], patch.get("name"), password, actor_id=g.current_user.id
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    body = {"user": user.to_dict(), "message": "User created successfully"}
    if generated:
        body["generated_password"] = generated
    return body, 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_role(Role.OWNER)
def update_user_route(user_id: int):
    """Request body (all optional): email, name."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_user_payload(payload, partial=True)
        user = auth_service.update_user(user_id, patch, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"user": user.to_dict(), "message": "User updated successfully"}


@users_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_role(Role.OWNER)
def deactivate_user_route(user_id: int):
    """
    Deactivate an account.

    This will:
    1. Set is_active=False
    2. Revoke all active sessions for the user
    """
    try:
        user, revoked = auth_service.set_user_active(user_id, False, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"user": user.to_dict(), "sessions_revoked": revoked}


@users_bp.post("/<int:user_id>/reactivate")
@require_auth
@require_role(Role.OWNER)
def reactivate_user_route(user_id: int):
    try:
        user, _ = auth_service.set_user_active(user_id, True, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"user": user.to_dict()}


@users_bp.post("/<int:user_id>/change-password")
@require_auth
@require_role(Role.OWNER)
def change_password_route(user_id: int):
    """
    Set or reset a user's password.

    Request body:
    - new_password: str (optional) - when omitted a password is generated
      and returned once as "generated_password"

    All existing sessions of the user are revoked.
    """
    payload = request.get_json(silent=True) or {}
    new_password = payload.get("new_password") if isinstance(payload, dict) else None

    try:
        if new_password is not None and not isinstance(new_password, str):
            raise ValidationError("new_password must be a string")
        user, generated, revoked = auth_service.change_password(
            user_id, new_password, actor_id=g.current_user.id
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    body = {"message": "Password updated", "sessions_revoked": revoked}
    if generated:
        body["generated_password"] = generated
    return body
