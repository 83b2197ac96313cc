# Overview: Best-effort audit logging that runs after the primary commit.

"""
Audit Log Service

The audit trail is an observability side effect, not a correctness
invariant. record_audit_event() is called after the domain transaction has
committed, writes its own row in a separate commit, and never raises: a
failure is rolled back and logged so the caller's result stands.
"""

from __future__ import annotations

import json

from flask import current_app

from ..extensions import db
from ..models import AuditLog, User


class AuditAction:
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    PRODUCT_CREATE = "PRODUCT_CREATE"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    PRODUCT_ACTIVATE = "PRODUCT_ACTIVATE"
    PRODUCT_DEACTIVATE = "PRODUCT_DEACTIVATE"

    MOVEMENT_CREATE = "MOVEMENT_CREATE"
    MOVEMENT_CANCEL = "MOVEMENT_CANCEL"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"

    CATEGORY_CREATE = "CATEGORY_CREATE"
    CATEGORY_UPDATE = "CATEGORY_UPDATE"
    CATEGORY_DELETE = "CATEGORY_DELETE"

    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DEACTIVATE = "USER_DEACTIVATE"
    USER_REACTIVATE = "USER_REACTIVATE"
    USER_PASSWORD_CHANGE = "USER_PASSWORD_CHANGE"
    USER_PASSWORD_RESET = "USER_PASSWORD_RESET"


class AuditEntity:
    USER = "USER"
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
    INVENTORY_MOVEMENT = "INVENTORY_MOVEMENT"


def record_audit_event(
    *,
    actor_id: int | None,
    action: str,
    entity: str,
    entity_id: int | None = None,
    meta: dict | None = None,
) -> AuditLog | None:
    """
    Append an audit row. Returns None when the entry was skipped or failed.
    """
    try:
        if actor_id is not None and db.session.get(User, actor_id) is None:
            current_app.logger.warning(
                "Audit log skipped - actor not found (actor_id=%s, action=%s)", actor_id, action
            )
            return None

        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            meta=json.dumps(meta, default=str) if meta else None,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to write audit log (action=%s, entity=%s, entity_id=%s)", action, entity, entity_id
        )
        return None



def recent_events_by_actor(actor_id: int, *, limit: int = 20) -> list[AuditLog]:
    """Newest audit rows recorded for one user."""
    return (
        db.session.query(AuditLog)
        .filter(AuditLog.actor_id == actor_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
