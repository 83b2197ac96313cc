from __future__ import annotations

import json

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Best-effort audit trail.

    Rows are written after the primary transaction commits (see
    services.audit_service), so a missing audit row never implies a missing
    movement. meta is JSON text.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
        db.Index("ix_audit_logs_action_created", "action", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False)
    entity = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    meta = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "meta": json.loads(self.meta) if self.meta else None,
            "created_at": to_utc_z(self.created_at),
        }
