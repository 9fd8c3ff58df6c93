"""
Lead event repository (persistence).

Append-only. There is deliberately no update or delete here.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.lead_event import ActorType, LeadEvent
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import get_supabase

_LEAD_EVENTS_TABLE: str = "lead_events"

# Stamps handed out by this process never repeat or go backwards, so events
# written in one action keep their order on the newest-first timeline.
_stamp_lock = threading.Lock()
_last_created_at: Optional[datetime] = None


def _next_created_at() -> datetime:
    global _last_created_at
    with _stamp_lock:
        now = utc_now()
        if _last_created_at is not None and now <= _last_created_at:
            now = _last_created_at + timedelta(microseconds=1)
        _last_created_at = now
        return now


def _row_to_event(row: Mapping[str, Any]) -> LeadEvent:
    actor_user_id = row.get("actor_user_id")
    return LeadEvent(
        event_id=UUID(str(row["id"])),
        lead_id=UUID(str(row["lead_id"])),
        actor_type=ActorType(str(row["actor_type"])),
        event_type=str(row["event_type"]),
        created_at=parse_utc_datetime(row["created_at"]),
        actor_user_id=UUID(str(actor_user_id)) if actor_user_id else None,
        data=dict(row.get("data") or {}),
    )


def insert_lead_event(
    lead_id: UUID,
    actor_type: ActorType,
    event_type: str,
    data: Optional[Mapping[str, Any]] = None,
    actor_user_id: Optional[UUID] = None,
) -> LeadEvent:
    """
    Append an event for a lead.

    Raises:
        RuntimeError if Supabase returns an error response.
    """

    event_id = uuid4()
    created_at = _next_created_at()
    payload: dict[str, Any] = {
        "id": str(event_id),
        "lead_id": str(lead_id),
        "actor_type": actor_type.value,
        "actor_user_id": str(actor_user_id) if actor_user_id else None,
        "event_type": event_type,
        "data": dict(data or {}),
        "created_at": to_iso_utc(created_at),
    }

    response = get_supabase().table(_LEAD_EVENTS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to record lead event: {error}")

    return LeadEvent(
        event_id=event_id,
        lead_id=lead_id,
        actor_type=actor_type,
        event_type=event_type,
        created_at=created_at,
        actor_user_id=actor_user_id,
        data=payload["data"],
    )


def list_events_for_lead(lead_id: UUID) -> List[LeadEvent]:
    """
    Retrieve all events for a lead, newest first.

    Returns:
        List[LeadEvent] (possibly empty)
    """

    response = (
        get_supabase().table(_LEAD_EVENTS_TABLE)
        .select("*")
        .eq("lead_id", str(lead_id))
        .order("created_at", desc=True)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list lead events: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_event(row) for row in rows]


__all__ = ["insert_lead_event", "list_events_for_lead"]
