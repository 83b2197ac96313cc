# Overview: Service-layer operations for auth; password hashing, login and user accounts.

"""
Authentication Service

Every stock movement is attributed to a user, so every request goes through
an authenticated account. Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from Config.BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

import re
import secrets

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..permissions import ROLES, PermissionDeniedError, Role
from ..validation import ConflictError, ValidationError
from .audit_service import AuditAction, AuditEntity, record_audit_event
from . import session_service
from stockledger.time_utils import utcnow

# Generated passwords avoid look-alike characters (0/O, 1/l/I)
PASSWORD_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"
GENERATED_PASSWORD_LENGTH = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserNotFoundError(Exception):
    code = "UserNotFound"

    def __init__(self, message: str = "User not found", details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for a wrong password or a malformed hash.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = Role.STAFF,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If the role is unknown
        ConflictError: If the email is taken (a ValueError subclass)
        PasswordValidationError: If password doesn't meet requirements
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValueError("Email is required")

    role = (role or "").upper()
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid and the account is active, None
    otherwise. Updates last_login_at on success.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


# =============================================================================
# ACCOUNT MANAGEMENT (owner)
# =============================================================================


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(details={"user_id": user_id})
    return user


def list_users(
    *,
    include_inactive: bool = True,
    role: str | None = None,
    search: str | None = None,
) -> list[User]:
    q = db.session.query(User)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    if role:
        q = q.filter(User.role == role.upper())
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(User.email.ilike(like) | User.name.ilike(like))
    return q.order_by(User.created_at.desc(), User.id.desc()).all()


def create_staff_account(
    email: str,
    name: str | None,
    password: str | None,
    *,
    actor_id: int,
) -> tuple[User, str | None]:
    """
    Owner creates a STAFF account.

    When no password is given one is generated and returned (shown once);
    otherwise the second element is None.
    """
    generated = None
    if not password:
        generated = password = generate_password()

    user = create_user(email, password, name=name, role=Role.STAFF)

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.USER_CREATE,
        entity=AuditEntity.USER,
        entity_id=user.id,
        meta={"email": user.email, "name": user.name, "role": user.role},
    )
    current_app.logger.info("User created (user_id=%s, role=%s, actor_id=%s)", user.id, user.role, actor_id)
    return user, generated


def update_user(user_id: int, patch: dict, *, actor_id: int) -> User:
    """Apply an email/name patch. A taken email raises ConflictError."""
    user = get_user(user_id)

    if "email" in patch and patch["email"] != user.email:
        taken = db.session.query(User).filter(User.email == patch["email"], User.id != user.id).first()
        if taken:
            raise ConflictError("A user with this email already exists")
        user.email = patch["email"]
    if "name" in patch:
        user.name = patch["name"]

    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.USER_UPDATE,
        entity=AuditEntity.USER,
        entity_id=user.id,
        meta={"changes": patch},
    )
    return user


def set_user_active(user_id: int, is_active: bool, *, actor_id: int) -> tuple[User, int]:
    """
    Deactivate or reactivate an account.

    Deactivation revokes every session of the user, so the account is logged
    out immediately. Owner accounts and the caller's own account cannot be
    deactivated. Returns (user, sessions_revoked).
    """
    user = get_user(user_id)

    if user.is_active == is_active:
        state = "active" if is_active else "deactivated"
        raise ValidationError(f"User is already {state}")

    revoked = 0
    if not is_active:
        if user.id == actor_id:
            raise PermissionDeniedError("Cannot deactivate your own account", details={"user_id": user.id})
        if user.role == Role.OWNER:
            raise PermissionDeniedError("Cannot deactivate an owner account", details={"user_id": user.id})
        user.is_active = False
        db.session.commit()
        revoked = session_service.revoke_all_user_sessions(user.id)
    else:
        user.is_active = True
        db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.USER_REACTIVATE if is_active else AuditAction.USER_DEACTIVATE,
        entity=AuditEntity.USER,
        entity_id=user.id,
        meta={"sessions_revoked": revoked} if revoked else None,
    )
    current_app.logger.info(
        "User %s (user_id=%s, sessions_revoked=%s, actor_id=%s)",
        "reactivated" if is_active else "deactivated", user.id, revoked, actor_id,
    )
    return user, revoked


def generate_password() -> str:
    """Random password that satisfies validate_password_strength."""
    while True:
        password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(GENERATED_PASSWORD_LENGTH))
        try:
            validate_password_strength(password)
        except PasswordValidationError:
            continue
        return password


def change_password(user_id: int, new_password: str | None, *, actor_id: int) -> tuple[User, str | None, int]:
    """
    Set a user's password, or generate one when new_password is empty.

    Every existing session of the user is revoked. Returns
    (user, generated_password_or_None, sessions_revoked).
    """
    user = get_user(user_id)

    generated = None
    if not new_password:
        generated = new_password = generate_password()

    user.password_hash = hash_password(new_password)
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id)

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.USER_PASSWORD_RESET if generated else AuditAction.USER_PASSWORD_CHANGE,
        entity=AuditEntity.USER,
        entity_id=user.id,
        meta={"sessions_revoked": revoked},
    )
    return user, generated, revoked
