"""
Domain: Lead events (audit trail).

Every lifecycle transition and delivery attempt on a lead is recorded as an
immutable LeadEvent. Events are append-only; they are never mutated or deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp


class ActorType(str, Enum):
    SYSTEM = "system"
    ADMIN = "admin"
    PROVIDER = "provider"
    PUBLIC = "public"


class LeadEventType(str, Enum):
    LEAD_CREATED = "lead_created"
    ASSIGNED_TO_PROVIDER = "assigned_to_provider"
    ADMIN_REASSIGNED = "admin_reassigned"
    DELIVERY_ATTEMPTED = "delivery_attempted"
    DELIVERY_SUCCEEDED = "delivery_succeeded"
    DELIVERY_FAILED = "delivery_failed"
    DELIVERY_SKIPPED = "delivery_skipped"
    PROVIDER_DECLINED = "provider_declined"
    RETURNED_TO_POOL = "returned_to_pool"
    STATUS_UPDATED = "status_updated"
    MOVED_ON_BOARD = "moved_on_board"


@dataclass(frozen=True, slots=True)
class LeadEvent:
    event_id: UUID
    lead_id: UUID
    actor_type: ActorType
    event_type: str  # LeadEventType value; unknown tags from older rows are kept as-is
    created_at: datetime
    actor_user_id: Optional[UUID] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = ["ActorType", "LeadEvent", "LeadEventType"]
