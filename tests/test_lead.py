"""
Tests for `domain/lead.py`.

Covers contract rules:
- Lifecycle state is derived from timestamps by priority, never stored.
- Higher-priority timestamps dominate lower ones.
- Timestamps must be UTC.
- Leads are immutable; a lead without provider is pooled.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from domain.lead import (
    LIFECYCLE_ORDER,
    DeliveryStatus,
    Lead,
    LeadLifecycleState,
    LeadStatus,
    derive_lifecycle_state,
)

T = datetime(2025, 1, 1, tzinfo=timezone.utc)
LEAD_ID = UUID("00000000-0000-0000-0000-000000000001")
PROVIDER_ID = UUID("00000000-0000-0000-0000-000000000002")


def _lead(**overrides) -> Lead:
    fields = dict(
        lead_id=LEAD_ID,
        metro_id=None,
        category_id=None,
        provider_id=PROVIDER_ID,
        name="Dana Reyes",
        email="dana@example.com",
    )
    fields.update(overrides)
    return Lead(**fields)


@pytest.mark.parametrize(
    "viewed, contacted, escalated, resolved, expected",
    [
        (None, None, None, None, LeadLifecycleState.NEW),
        (T, None, None, None, LeadLifecycleState.VIEWED),
        (T, T, None, None, LeadLifecycleState.CONTACTED),
        (None, T, None, None, LeadLifecycleState.CONTACTED),
        (T, T, T, None, LeadLifecycleState.ESCALATED),
        (None, None, T, None, LeadLifecycleState.ESCALATED),
        (T, T, T, T, LeadLifecycleState.RESOLVED),
        (None, None, None, T, LeadLifecycleState.RESOLVED),
        (None, T, T, T, LeadLifecycleState.RESOLVED),
    ],
)
def test_derive_lifecycle_state_priority(viewed, contacted, escalated, resolved, expected) -> None:
    """Verify the highest-priority timestamp decides the state."""

    state = derive_lifecycle_state(
        viewed_at=viewed,
        last_contacted_at=contacted,
        escalated_at=escalated,
        resolved_at=resolved,
    )
    assert state is expected


def test_lead_lifecycle_state_property_uses_timestamps() -> None:
    lead = _lead(viewed_at=T, last_contacted_at=T + timedelta(hours=1))
    assert lead.lifecycle_state is LeadLifecycleState.CONTACTED


def test_lifecycle_order_places_escalated_before_resolved() -> None:
    assert LIFECYCLE_ORDER.index(LeadLifecycleState.CONTACTED) < LIFECYCLE_ORDER.index(LeadLifecycleState.ESCALATED)
    assert LIFECYCLE_ORDER.index(LeadLifecycleState.ESCALATED) < LIFECYCLE_ORDER.index(LeadLifecycleState.RESOLVED)


def test_lead_defaults() -> None:
    """Verify a new lead starts as status new, delivery pending."""

    lead = _lead()
    assert lead.status is LeadStatus.NEW
    assert lead.delivery_status is DeliveryStatus.PENDING
    assert lead.lifecycle_state is LeadLifecycleState.NEW


def test_lead_is_pooled_iff_no_provider() -> None:
    assert _lead(provider_id=None).is_pooled
    assert not _lead().is_pooled


@pytest.mark.parametrize("field", ["viewed_at", "last_contacted_at", "resolved_at", "created_at", "follow_up_at"])
def test_lead_timestamps_must_be_utc(field: str) -> None:
    """Verify lifecycle timestamps must be timezone-aware UTC (offset 0)."""

    with pytest.raises(ValueError):
        _lead(**{field: datetime(2025, 1, 1)})

    with pytest.raises(ValueError):
        _lead(**{field: datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=-5)))})


def test_lead_is_immutable() -> None:
    lead = _lead()
    with pytest.raises(FrozenInstanceError):
        lead.provider_id = None  # type: ignore[misc]
