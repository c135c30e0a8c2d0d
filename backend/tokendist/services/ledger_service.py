# Overview: Service-layer operations for the distribution event ledger.

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import DistributionEvent
from .. import time_utils
"""
Distribution Ledger Invariants (authoritative)

- Append-only audit log for sale and allocation domain events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the domain event they record.
- occurred_at is business time (host clock); created_at is system time (DB default).
- Reads are newest-first; filters are exact matches.
"""


def append_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    account: str | None = None,
    actor: str | None = None,
    amount: int | None = None,
    round_index: int | None = None,
    group_code: str | None = None,
    occurred_at: Optional[int] = None,
    note: Optional[str] = None,
    payload: Optional[str] = None,
) -> DistributionEvent:
    """
    Append-only distribution ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - Flushes but never commits; the caller's transaction owns the event.
    """
    ev = DistributionEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        account=account,
        actor=actor,
        amount=amount,
        round_index=round_index,
        group_code=group_code,
        occurred_at=occurred_at if occurred_at is not None else time_utils.now_ts(),
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_events(
    *,
    event_category: str | None = None,
    event_type: str | None = None,
    account: str | None = None,
    round_index: int | None = None,
    group_code: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[DistributionEvent], int]:
    """Filtered, newest-first page of events plus the total match count."""
    query = db.session.query(DistributionEvent)
    if event_category:
        query = query.filter(DistributionEvent.event_category == event_category)
    if event_type:
        query = query.filter(DistributionEvent.event_type == event_type)
    if account:
        query = query.filter(DistributionEvent.account == account)
    if round_index is not None:
        query = query.filter(DistributionEvent.round_index == round_index)
    if group_code:
        query = query.filter(DistributionEvent.group_code == group_code)

    total = query.count()
    events = (
        query.order_by(DistributionEvent.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return events, total
