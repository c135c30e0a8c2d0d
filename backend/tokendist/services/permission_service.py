# Overview: Service-layer authorization checks and security event logging.

"""
Authorization and Security Event Logging

WHY: Owner-only operations (whitelisting, participant management, one-shot
transitions) must be gated by a single authorization predicate, and the
end-of-sale signal must only be accepted from the registered sale identity.

DESIGN PRINCIPLES:
- Fail closed: an unknown or blank caller is never authorized
- Log denials only: successful checks are not logged
- Service checks raise; HTTP decorators log and translate to 403
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import UnauthorizedError
from ..models import SecurityEvent
from .. import time_utils


def owner_address() -> str:
    return current_app.config["OWNER_ADDRESS"].strip().lower()


def is_authorized(caller: str | None) -> bool:
    """Single-owner authorization predicate."""
    if not caller:
        return False
    return caller.strip().lower() == owner_address()


def require_owner(caller: str | None, action: str | None = None) -> None:
    """
    Raise UnauthorizedError unless caller is the owner.

    Runs inside service transactions, so it never writes.
    """
    if not is_authorized(caller):
        raise UnauthorizedError(
            "Caller is not authorized",
            details={"caller": caller, "action": action},
        )


def log_security_event(
    caller: str | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Immutable audit log for security monitoring. Committed on its own,
    outside any rolled-back domain transaction.

    event_type examples:
    - OWNER_CHECK_DENIED
    - SALE_IDENTITY_DENIED
    - CALLER_MISSING
    """
    event = SecurityEvent(
        caller=caller,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=time_utils.now_ts(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def list_security_events(limit: int = 100) -> list[SecurityEvent]:
    return (
        db.session.query(SecurityEvent)
        .order_by(SecurityEvent.id.desc())
        .limit(limit)
        .all()
    )
