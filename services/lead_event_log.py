"""
Lead event log.

Best-effort audit trail. Every service that mutates a lead or attempts a
delivery calls `record_lead_event` *after* the mutation. A failed event write is
logged and swallowed here: the action that triggered it has already happened
and still reports its own outcome to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.lead_event import ActorType, LeadEvent, LeadEventType
from repositories import lead_event_repository

logger = logging.getLogger(__name__)


def record_lead_event(
    lead_id: UUID,
    actor_type: ActorType,
    event_type: LeadEventType | str,
    data: Optional[Mapping[str, Any]] = None,
    actor_user_id: Optional[UUID] = None,
) -> bool:
    """
    Append an event for a lead, logging (not raising) on storage failure.

    Returns:
        True if the event was stored, False otherwise.
    """

    tag = event_type.value if isinstance(event_type, LeadEventType) else str(event_type)
    try:
        lead_event_repository.insert_lead_event(
            lead_id=lead_id,
            actor_type=actor_type,
            event_type=tag,
            data=data,
            actor_user_id=actor_user_id,
        )
    except Exception:
        logger.warning(
            "Failed to record lead event %s for lead %s", tag, lead_id, exc_info=True
        )
        return False
    return True


def list_events_for_lead(lead_id: UUID) -> List[LeadEvent]:
    """Timeline for a lead, newest first."""

    return lead_event_repository.list_events_for_lead(lead_id)


__all__ = ["list_events_for_lead", "record_lead_event"]
