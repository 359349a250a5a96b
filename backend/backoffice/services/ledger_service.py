# Overview: Append-only audit events written inside the caller's unit of work.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import LedgerEvent
"""
Ledger Invariants

- Append-only audit log for engine events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    tenant_id: int,
    company_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> LedgerEvent:
    """
    Append one event. Never updates or deletes existing events.
    """
    ev = LedgerEvent(
        tenant_id=tenant_id,
        company_id=company_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_ledger_events(
    *,
    tenant_id: int,
    company_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_type: str | None = None,
) -> list[LedgerEvent]:
    query = db.session.query(LedgerEvent).filter_by(tenant_id=tenant_id, company_id=company_id)
    if entity_type:
        query = query.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(LedgerEvent.entity_id == entity_id)
    if event_type:
        query = query.filter(LedgerEvent.event_type == event_type)
    return query.order_by(LedgerEvent.id.asc()).all()
