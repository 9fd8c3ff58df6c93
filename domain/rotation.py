"""
Domain: Metro round-robin rotation.

Each metro has at most one rotation row holding the last provider that
received a pooled lead. The next provider is chosen from the currently
eligible providers sorted by id (string, ascending):

- pointer unset, or pointing at a provider that is no longer in the eligible
  set -> first provider in sorted order
- pointer at index i -> provider at (i + 1) mod N

Sorting makes the cycle deterministic and independent of insertion order.
A provider that drops out is simply skipped; when the pointer references it the
cycle restarts from the first eligible provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from .provider import Provider, is_lead_eligible
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class MetroRotation:
    metro_id: UUID
    last_provider_id: Optional[UUID] = None
    last_assigned_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.last_assigned_at is not None:
            require_utc_timestamp("last_assigned_at", self.last_assigned_at)


def rotation_candidates(
    providers: Iterable[Provider],
    exclude_provider_ids: Iterable[UUID] = (),
) -> List[Provider]:
    """Eligible, non-excluded providers in rotation order (id ascending)."""

    excluded = {str(provider_id) for provider_id in exclude_provider_ids}
    candidates = [
        provider
        for provider in providers
        if is_lead_eligible(provider) and str(provider.provider_id) not in excluded
    ]
    return sorted(candidates, key=lambda provider: str(provider.provider_id))


def select_next_provider(
    candidates: Sequence[Provider],
    last_provider_id: Optional[UUID],
) -> Provider:
    """
    Pick the next provider after `last_provider_id`.

    `candidates` must already be in rotation order (see rotation_candidates).

    Raises:
        ValueError: if there are no candidates.
    """

    if not candidates:
        raise ValueError("No rotation candidates")

    if last_provider_id is None:
        return candidates[0]

    last = str(last_provider_id)
    for index, provider in enumerate(candidates):
        if str(provider.provider_id) == last:
            return candidates[(index + 1) % len(candidates)]

    return candidates[0]


__all__ = ["MetroRotation", "rotation_candidates", "select_next_provider"]
