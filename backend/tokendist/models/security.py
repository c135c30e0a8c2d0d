from __future__ import annotations

from ..extensions import db
from ..time_utils import ts_to_utc_z

class SecurityEvent(db.Model):
    """
    Security event audit log.

    WHY: Track denied owner-only calls and calls from unregistered sale
    identities. Critical for detecting unauthorized access attempts.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_caller_type", "caller", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    caller = db.Column(db.String(64), nullable=True, index=True)  # Nullable for anonymous

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # OWNER_CHECK_DENIED, SALE_IDENTITY_DENIED, ...
    resource = db.Column(db.String(128), nullable=True)  # e.g., "/api/sale/activate"
    action = db.Column(db.String(64), nullable=True)     # e.g., "POST"

    # Event details
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.BigInteger, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "caller": self.caller,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": ts_to_utc_z(self.occurred_at),
        }
