"""
Domain: Lead entity and derived lifecycle state.

A Lead is one consumer quote request. It is either bound to a provider
(provider_id set) or pooled at metro level (provider_id is None).

Lifecycle state is never stored. It is derived from nullable timestamps, by
priority:
- resolved_at set -> RESOLVED
- else escalated_at set -> ESCALATED
- else last_contacted_at set -> CONTACTED
- else viewed_at set -> VIEWED
- else NEW

The timestamps are not mutually exclusive. A higher-priority timestamp
dominates regardless of which lower-priority ones are also present.
Timestamps are only ever set, never cleared.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class LeadLifecycleState(str, Enum):
    NEW = "NEW"
    VIEWED = "VIEWED"
    CONTACTED = "CONTACTED"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"


# Board order. ESCALATED sits between CONTACTED and RESOLVED.
LIFECYCLE_ORDER: tuple[LeadLifecycleState, ...] = (
    LeadLifecycleState.NEW,
    LeadLifecycleState.VIEWED,
    LeadLifecycleState.CONTACTED,
    LeadLifecycleState.ESCALATED,
    LeadLifecycleState.RESOLVED,
)


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class LeadStatus(str, Enum):
    """Coarse legacy status kept alongside the lifecycle timestamps."""

    NEW = "new"
    SENT = "sent"
    FAILED = "failed"
    SPAM = "spam"


class ResolutionStatus(str, Enum):
    WON = "won"
    LOST = "lost"
    CLOSED = "closed"
    SPAM = "spam"


def derive_lifecycle_state(
    *,
    viewed_at: Optional[datetime],
    last_contacted_at: Optional[datetime],
    escalated_at: Optional[datetime],
    resolved_at: Optional[datetime],
) -> LeadLifecycleState:
    """Single source of truth for a lead's lifecycle state."""

    if resolved_at is not None:
        return LeadLifecycleState.RESOLVED
    if escalated_at is not None:
        return LeadLifecycleState.ESCALATED
    if last_contacted_at is not None:
        return LeadLifecycleState.CONTACTED
    if viewed_at is not None:
        return LeadLifecycleState.VIEWED
    return LeadLifecycleState.NEW


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Immutability:
    - This entity is frozen. Mutations go through the repository and the
      lifecycle service, which reload the lead afterwards.
    """

    lead_id: UUID
    metro_id: Optional[UUID]
    category_id: Optional[UUID]
    provider_id: Optional[UUID]

    # Requester contact
    name: str
    email: str
    phone: Optional[str] = None
    message: Optional[str] = None
    source_url: Optional[str] = None
    requester_first_name: Optional[str] = None
    requester_last_name: Optional[str] = None
    requester_business_name: Optional[str] = None
    requester_address: Optional[str] = None

    # Delivery
    status: LeadStatus = LeadStatus.NEW
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    delivered_at: Optional[datetime] = None
    delivery_error: Optional[str] = None

    # Lifecycle timestamps
    viewed_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution_status: Optional[ResolutionStatus] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None

    # Decline bookkeeping
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    declined_by_provider_id: Optional[UUID] = None

    # Follow-up
    follow_up_at: Optional[datetime] = None
    next_action: Optional[str] = None

    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in (
            "delivered_at",
            "viewed_at",
            "last_contacted_at",
            "resolved_at",
            "escalated_at",
            "declined_at",
            "follow_up_at",
            "created_at",
        ):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def lifecycle_state(self) -> LeadLifecycleState:
        return derive_lifecycle_state(
            viewed_at=self.viewed_at,
            last_contacted_at=self.last_contacted_at,
            escalated_at=self.escalated_at,
            resolved_at=self.resolved_at,
        )

    @property
    def is_pooled(self) -> bool:
        return self.provider_id is None


__all__ = [
    "DeliveryStatus",
    "LIFECYCLE_ORDER",
    "Lead",
    "LeadLifecycleState",
    "LeadStatus",
    "ResolutionStatus",
    "derive_lifecycle_state",
]
