"""
Domain: Provider listings and lead eligibility.

A provider is a business listing under a metro. Whether it may receive leads
depends on three things:
- it is published,
- its status is "active",
- its derived ProviderState is VERIFIED.

ProviderState is never stored. It is computed from the claim/verification
fields by `compute_provider_state`, which is a pure function: identical inputs
always produce the same state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp

_CLAIMED_STATUSES = frozenset({"claimed", "claimed_unverified", "claimed-unverified"})


class ProviderState(str, Enum):
    UNCLAIMED = "UNCLAIMED"
    CLAIMED_UNVERIFIED = "CLAIMED_UNVERIFIED"
    VERIFIED = "VERIFIED"


@dataclass(frozen=True, slots=True)
class Provider:
    """
    Business listing as seen by the lead routing core.

    Only the attributes that routing, delivery and eligibility read are carried.
    """

    provider_id: UUID
    metro_id: Optional[UUID]
    business_name: Optional[str] = None
    email_public: Optional[str] = None
    is_published: bool = False
    status: str = "active"

    # Claim / verification signals
    claim_status: Optional[str] = None
    verified_at: Optional[datetime] = None
    claimed_by_user_id: Optional[UUID] = None
    is_claimed: bool = False
    user_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        if self.verified_at is not None:
            require_utc_timestamp("verified_at", self.verified_at)

    @property
    def state(self) -> ProviderState:
        return compute_provider_state(self)

    def is_lead_eligible(self) -> bool:
        """Published, active and VERIFIED."""
        return is_lead_eligible(self)


def compute_provider_state(provider: Provider) -> ProviderState:
    """
    Derive a provider's claim/verification state.

    Rules are evaluated in order; the first match wins:
    1. verified_at present -> VERIFIED
    2. user_id present (account linked) -> VERIFIED
    3. claim_status is claimed / claimed_unverified / claimed-unverified
       (case-insensitive) -> CLAIMED_UNVERIFIED
    4. claim_status == unclaimed -> CLAIMED_UNVERIFIED if is_claimed or
       claimed_by_user_id, else UNCLAIMED
    5. is_claimed or claimed_by_user_id -> CLAIMED_UNVERIFIED
    6. otherwise -> UNCLAIMED
    """

    if provider.verified_at is not None:
        return ProviderState.VERIFIED

    if provider.user_id is not None:
        return ProviderState.VERIFIED

    has_claim_signal = bool(provider.is_claimed) or provider.claimed_by_user_id is not None
    claim_status = (provider.claim_status or "").strip().lower()

    if claim_status in _CLAIMED_STATUSES:
        return ProviderState.CLAIMED_UNVERIFIED
    if claim_status == "unclaimed":
        return ProviderState.CLAIMED_UNVERIFIED if has_claim_signal else ProviderState.UNCLAIMED
    if has_claim_signal:
        return ProviderState.CLAIMED_UNVERIFIED

    return ProviderState.UNCLAIMED


def is_lead_eligible(provider: Provider) -> bool:
    return (
        bool(provider.is_published)
        and provider.status == "active"
        and compute_provider_state(provider) is ProviderState.VERIFIED
    )


__all__ = [
    "Provider",
    "ProviderState",
    "compute_provider_state",
    "is_lead_eligible",
]
