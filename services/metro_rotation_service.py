"""
Metro pool round-robin assignment.

Assigns a pooled lead (no provider) to the next eligible provider in its metro.

Handles:
- Eligibility filtering and exclusions (e.g. the provider that just declined)
- Deterministic rotation order (provider id ascending)
- Compare-and-swap on the per-metro rotation pointer, retried on conflict
- Compensation if the lead update fails after the pointer moved
- Delivery of the newly assigned lead
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional
from uuid import UUID

from domain.lead import DeliveryStatus
from domain.lead_event import ActorType, LeadEventType
from domain.provider import Provider
from domain.rotation import MetroRotation, rotation_candidates, select_next_provider
from domain.time import utc_now
from repositories import lead_repository, provider_repository, rotation_repository
from services import lead_delivery_service
from services.lead_event_log import record_lead_event

logger = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = "No verified providers available in metro"

# Attempts at the rotation compare-and-swap before giving up.
MAX_ROTATION_ATTEMPTS = 5


class RotationConflictError(Exception):
    """Raised when the rotation pointer kept changing under concurrent writers."""

    def __init__(self, metro_id: UUID, attempts: int):
        self.metro_id = metro_id
        self.attempts = attempts
        super().__init__(
            f"Rotation for metro {metro_id} changed concurrently {attempts} times; please retry."
        )


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """
    Result of a pool assignment.

    ok: False only on failure (storage, conflict, delivery failure)
    assigned: True if a provider was chosen
    provider_id: the chosen provider, when assigned
    message: human-readable outcome
    """
    ok: bool
    assigned: bool
    provider_id: Optional[UUID] = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class RotationOverview:
    """Admin view of a metro's rotation state."""
    metro_id: UUID
    rotation: Optional[MetroRotation]
    ordered_provider_ids: List[UUID]
    next_provider_id: Optional[UUID]


def _claim_rotation_slot(metro_id: UUID, candidates: List[Provider]) -> tuple[Provider, Optional[UUID]]:
    """
    Pick the next provider and move the pointer to it atomically.

    Returns:
        (chosen provider, pointer value before the move)

    Raises:
        RotationConflictError: if every attempt lost the race
    """
    for _ in range(MAX_ROTATION_ATTEMPTS):
        rotation = rotation_repository.get_rotation(metro_id)
        previous = rotation.last_provider_id if rotation else None
        chosen = select_next_provider(candidates, previous)
        assigned_at = utc_now()

        if rotation is None:
            moved = rotation_repository.insert_rotation(metro_id, chosen.provider_id, assigned_at)
        else:
            moved = rotation_repository.compare_and_set_rotation(
                metro_id,
                expected_provider_id=previous,
                new_provider_id=chosen.provider_id,
                assigned_at=assigned_at,
            )

        if moved:
            return chosen, previous

        logger.info("Rotation conflict for metro %s; re-reading pointer", metro_id)

    raise RotationConflictError(metro_id, MAX_ROTATION_ATTEMPTS)


def _release_rotation_slot(metro_id: UUID, chosen: UUID, previous: Optional[UUID]) -> None:
    """Put the pointer back after a failed lead update (only if nobody moved it since)."""
    try:
        restored = rotation_repository.compare_and_set_rotation(
            metro_id,
            expected_provider_id=chosen,
            new_provider_id=previous,
            assigned_at=utc_now() if previous else None,
        )
    except Exception:
        logger.error("Failed to restore rotation pointer for metro %s", metro_id, exc_info=True)
        return
    if not restored:
        logger.error(
            "Rotation pointer for metro %s moved before it could be restored to %s",
            metro_id,
            previous,
        )


def assign_metro_pool_lead(
    lead_id: UUID,
    metro_id: UUID,
    *,
    exclude_provider_ids: Iterable[UUID] = (),
    actor_type: ActorType = ActorType.SYSTEM,
    actor_user_id: Optional[UUID] = None,
) -> AssignmentResult:
    """
    Assign a pooled lead to the next eligible provider in its metro.

    Process:
    1. Load published providers in the metro; keep eligible, non-excluded ones
    2. None left -> lead skipped with reason, rotation untouched (not an error)
    3. Sort by provider id
    4-5. Choose the provider after the rotation pointer and move the pointer
         (compare-and-swap, retried on conflict)
    6. Assign the lead (pending delivery); on failure restore the pointer
    7. Record assigned_to_provider
    8. Deliver

    Must be called exactly once per pool-entry event: every call advances the
    rotation pointer.

    Example:
        result = assign_metro_pool_lead(lead_id, metro_id, exclude_provider_ids=[declined_by])
        if result.assigned:
            print(f"Assigned to {result.provider_id}: {result.message}")
    """
    excluded = [UUID(str(provider_id)) for provider_id in exclude_provider_ids]
    excluded_payload = [str(provider_id) for provider_id in excluded]

    # 1. Eligible providers
    try:
        providers = provider_repository.list_published_providers_in_metro(metro_id)
    except Exception as e:
        return AssignmentResult(ok=False, assigned=False, message=str(e))

    # 3. Rotation order
    candidates = rotation_candidates(providers, excluded)

    # 2. Empty pool
    if not candidates:
        try:
            lead_repository.update_lead(
                lead_id,
                {
                    "provider_id": None,
                    "delivery_status": DeliveryStatus.SKIPPED,
                    "delivery_error": NO_PROVIDER_MESSAGE,
                },
            )
        except Exception as e:
            return AssignmentResult(ok=False, assigned=False, message=str(e))

        record_lead_event(
            lead_id,
            actor_type,
            LeadEventType.DELIVERY_SKIPPED,
            {
                "metro_id": str(metro_id),
                "reason": NO_PROVIDER_MESSAGE,
                "excluded_provider_ids": excluded_payload,
            },
            actor_user_id=actor_user_id,
        )
        return AssignmentResult(ok=True, assigned=False, message=NO_PROVIDER_MESSAGE)

    # 4-5. Claim the rotation slot
    try:
        chosen, previous = _claim_rotation_slot(metro_id, candidates)
    except RotationConflictError as e:
        logger.warning(str(e))
        return AssignmentResult(ok=False, assigned=False, message=str(e))
    except Exception as e:
        return AssignmentResult(ok=False, assigned=False, message=str(e))

    # 6. Assign the lead
    try:
        updated = lead_repository.update_lead(
            lead_id,
            {
                "provider_id": chosen.provider_id,
                "delivery_status": DeliveryStatus.PENDING,
                "delivery_error": None,
            },
        )
    except Exception as e:
        _release_rotation_slot(metro_id, chosen.provider_id, previous)
        return AssignmentResult(ok=False, assigned=False, message=str(e))

    if not updated:
        _release_rotation_slot(metro_id, chosen.provider_id, previous)
        return AssignmentResult(ok=False, assigned=False, message="Lead not found.")

    # 7. Audit
    record_lead_event(
        lead_id,
        actor_type,
        LeadEventType.ASSIGNED_TO_PROVIDER,
        {
            "provider_id": str(chosen.provider_id),
            "metro_id": str(metro_id),
            "excluded_provider_ids": excluded_payload,
        },
        actor_user_id=actor_user_id,
    )

    # 8. Deliver
    delivery = lead_delivery_service.deliver_lead(lead_id)

    return AssignmentResult(
        ok=delivery.ok,
        assigned=True,
        provider_id=chosen.provider_id,
        message=delivery.message,
    )


def reset_metro_rotation(metro_id: UUID) -> bool:
    """
    Clear a metro's rotation pointer so the next assignment starts from the
    first eligible provider.

    Returns:
        True if reset, False if the metro has no rotation row.
    """
    return rotation_repository.reset_rotation(metro_id)


def get_metro_rotation_overview(metro_id: UUID) -> RotationOverview:
    """
    Current pointer, rotation order and the provider the next pool lead would get.
    """
    rotation = rotation_repository.get_rotation(metro_id)
    candidates = rotation_candidates(provider_repository.list_published_providers_in_metro(metro_id))
    next_provider = (
        select_next_provider(candidates, rotation.last_provider_id if rotation else None)
        if candidates
        else None
    )
    return RotationOverview(
        metro_id=metro_id,
        rotation=rotation,
        ordered_provider_ids=[provider.provider_id for provider in candidates],
        next_provider_id=next_provider.provider_id if next_provider else None,
    )


__all__ = [
    "AssignmentResult",
    "RotationConflictError",
    "RotationOverview",
    "assign_metro_pool_lead",
    "get_metro_rotation_overview",
    "reset_metro_rotation",
]
