"""
Domain: Lead lifecycle transition rules (pure).

Provider actors may only move a lead forward one step:
NEW -> VIEWED -> CONTACTED -> RESOLVED. Re-stamping CONTACTED is allowed.
ESCALATED is never reachable by a provider and is terminal for providers.

Admin actors may set lifecycle fields directly, except:
- nothing moves a RESOLVED lead forward again,
- nothing moves a lead back to NEW,
- board moves (allow_backward=False) never go backward.
"""

from __future__ import annotations

from typing import Optional

from .errors import InvalidTransitionError
from .lead import LIFECYCLE_ORDER, LeadLifecycleState

_PROVIDER_NEXT_STAGE: dict[LeadLifecycleState, LeadLifecycleState] = {
    LeadLifecycleState.NEW: LeadLifecycleState.VIEWED,
    LeadLifecycleState.VIEWED: LeadLifecycleState.CONTACTED,
    LeadLifecycleState.CONTACTED: LeadLifecycleState.RESOLVED,
}


def provider_next_stage(current: LeadLifecycleState) -> Optional[LeadLifecycleState]:
    return _PROVIDER_NEXT_STAGE.get(current)


def check_provider_transition(current: LeadLifecycleState, target: LeadLifecycleState) -> None:
    """Raise InvalidTransitionError unless a provider may move `current` -> `target`."""

    if target is LeadLifecycleState.ESCALATED:
        raise InvalidTransitionError("Providers cannot escalate leads.")
    if current is LeadLifecycleState.RESOLVED:
        raise InvalidTransitionError("Lead is already resolved.")
    if current is LeadLifecycleState.ESCALATED:
        raise InvalidTransitionError("Escalated leads can only be updated by an admin.")
    if current is LeadLifecycleState.CONTACTED and target is LeadLifecycleState.CONTACTED:
        return
    if _PROVIDER_NEXT_STAGE.get(current) is not target:
        raise InvalidTransitionError(
            f"Invalid transition: {current.value} -> {target.value}. "
            "Leads can only move one step forward."
        )


def check_admin_transition(
    current: LeadLifecycleState,
    target: LeadLifecycleState,
    *,
    allow_backward: bool = True,
) -> None:
    """Raise InvalidTransitionError unless an admin may move `current` -> `target`."""

    if current is LeadLifecycleState.RESOLVED:
        raise InvalidTransitionError("Lead is already resolved.")
    if target is LeadLifecycleState.NEW:
        raise InvalidTransitionError("Cannot move leads back to new.")
    if not allow_backward and LIFECYCLE_ORDER.index(target) < LIFECYCLE_ORDER.index(current):
        raise InvalidTransitionError("Cannot move a lead backward.")


__all__ = [
    "check_admin_transition",
    "check_provider_transition",
    "provider_next_stage",
]
