"""
Lead lifecycle service.

Every caller-facing action on an existing lead lives here, for both admin and
provider actors:

- mark_viewed / mark_contacted / resolve / escalate
- move_lead_stage (kanban board)
- set_follow_up
- decline (provider) -> back through metro rotation, excluding the decliner
- reassign / return_to_pool / mark_sent / resend / reset_rotation (admin)

Each action:
1. Loads the lead (missing -> not_found, no mutation)
2. Runs the single access check (services.authorization)
3. Validates the transition (domain.lifecycle)
4. Applies the change; provider writes are conditional on the lead still
   being assigned to that provider
5. Records the lead event after the mutation (best effort)

Domain errors raised along the way become ActionResult(ok=False, error=<code>).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError

from domain.actor import ActorContext
from domain.errors import (
    InvalidInputError,
    InvalidTransitionError,
    LeadNotFoundError,
    LeadRoutingError,
    NotFoundError,
    UnauthorizedError,
)
from domain.lead import DeliveryStatus, Lead, LeadLifecycleState, LeadStatus, ResolutionStatus
from domain.lead_event import LeadEvent, LeadEventType
from domain.lifecycle import check_admin_transition, check_provider_transition
from domain.provider import ProviderState, compute_provider_state
from domain.time import require_utc_timestamp, to_iso_utc, utc_now
from repositories import lead_repository, provider_repository
from services import lead_delivery_service, metro_rotation_service
from services.authorization import LeadAccess, check_lead_access, require_admin
from services.lead_event_log import list_events_for_lead, record_lead_event

logger = logging.getLogger(__name__)

DECLINE_ERROR_MESSAGE = "Returned to pool after provider decline"
RETURN_TO_POOL_MESSAGE = "Returned to pool by admin."
BOARD_ESCALATION_REASON = "manual_board"
STORAGE_FAILURE_MESSAGE = "Unable to update lead. Please try again."


@dataclass(frozen=True, slots=True)
class ActionResult:
    """
    Outcome of a lead action.

    ok: True if the action was applied (or was already in effect)
    message: human-readable, safe to show to the caller
    error: not_found | unauthorized | invalid_transition | invalid_input | storage
    """
    ok: bool
    message: str
    error: Optional[str] = None


def _run(action: Callable[[], ActionResult]) -> ActionResult:
    try:
        return action()
    except LeadRoutingError as e:
        return ActionResult(ok=False, message=e.message, error=e.code)
    except (RuntimeError, APIError) as e:
        logger.error("Lead action failed on storage: %s", e)
        return ActionResult(ok=False, message=STORAGE_FAILURE_MESSAGE, error="storage")
    except Exception:
        logger.error("Lead action failed unexpectedly", exc_info=True)
        return ActionResult(ok=False, message=STORAGE_FAILURE_MESSAGE, error="storage")


def _load_lead(lead_id: UUID) -> Lead:
    lead = lead_repository.get_lead_by_id(lead_id)
    if lead is None:
        raise LeadNotFoundError()
    return lead


def _apply(
    lead: Lead,
    access: LeadAccess,
    changes: Mapping[str, Any],
    *,
    require_null: Sequence[str] = ("resolved_at",),
) -> bool:
    """
    Write lifecycle changes.

    Returns:
        True if written, False if a concurrent writer already applied the same
        change (e.g. viewed_at was set in between).

    Raises:
        UnauthorizedError: provider write, but the lead moved to someone else
        InvalidTransitionError: the lead was resolved in the meantime
        LeadNotFoundError: the lead disappeared
    """

    if access.is_provider:
        updated = lead_repository.update_lead(
            lead.lead_id,
            changes,
            expected_provider_id=lead.provider_id,
            require_null=require_null,
        )
    else:
        updated = lead_repository.update_lead(lead.lead_id, changes, require_null=require_null)

    if updated:
        return True

    current = _load_lead(lead.lead_id)
    if access.is_provider and current.provider_id != lead.provider_id:
        raise UnauthorizedError()
    if current.resolved_at is not None:
        raise InvalidTransitionError("Lead is already resolved.")
    return False


def _check_transition(access: LeadAccess, lead: Lead, target: LeadLifecycleState) -> None:
    if access.is_provider:
        check_provider_transition(lead.lifecycle_state, target)
    else:
        check_admin_transition(lead.lifecycle_state, target)


def _record(lead: Lead, access: LeadAccess, actor: ActorContext, event_type: LeadEventType, data: Mapping[str, Any]) -> None:
    record_lead_event(lead.lead_id, access.actor_type, event_type, data, actor_user_id=actor.user_id)


# --- Lifecycle ---------------------------------------------------------------


def mark_viewed(actor: ActorContext, lead_id: UUID) -> ActionResult:
    """Set viewed_at once. A second call is a successful no-op."""

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)

        if lead.viewed_at is not None:
            return ActionResult(ok=True, message="Lead already viewed.")

        _check_transition(access, lead, LeadLifecycleState.VIEWED)

        if not _apply(lead, access, {"viewed_at": utc_now()}, require_null=("resolved_at", "viewed_at")):
            return ActionResult(ok=True, message="Lead already viewed.")

        _record(lead, access, actor, LeadEventType.STATUS_UPDATED, {"status": "viewed"})
        return ActionResult(ok=True, message="Lead marked as viewed.")

    return _run(action)


def mark_contacted(actor: ActorContext, lead_id: UUID) -> ActionResult:
    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)
        _check_transition(access, lead, LeadLifecycleState.CONTACTED)

        _apply(lead, access, {"last_contacted_at": utc_now()})

        _record(lead, access, actor, LeadEventType.STATUS_UPDATED, {"status": "contacted"})
        return ActionResult(ok=True, message="Lead marked as contacted.")

    return _run(action)


def resolve(
    actor: ActorContext,
    lead_id: UUID,
    resolution_status: ResolutionStatus | str = ResolutionStatus.CLOSED,
) -> ActionResult:
    """Resolve a lead as won / lost / closed / spam. Providers only from CONTACTED."""

    def action() -> ActionResult:
        try:
            status = ResolutionStatus(resolution_status)
        except ValueError:
            raise InvalidInputError("Invalid resolution status.")

        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)
        _check_transition(access, lead, LeadLifecycleState.RESOLVED)

        _apply(lead, access, {"resolved_at": utc_now(), "resolution_status": status})

        _record(
            lead,
            access,
            actor,
            LeadEventType.STATUS_UPDATED,
            {"status": "resolved", "resolution_status": status.value},
        )
        return ActionResult(ok=True, message="Lead resolved.")

    return _run(action)


def escalate(actor: ActorContext, lead_id: UUID, reason: str) -> ActionResult:
    """Admin only. A linked provider gets invalid_transition, anyone else unauthorized."""

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)
        _check_transition(access, lead, LeadLifecycleState.ESCALATED)

        cleaned = (reason or "").strip()
        if not cleaned:
            raise InvalidInputError("Escalation reason is required.")

        _apply(lead, access, {"escalated_at": utc_now(), "escalation_reason": cleaned})

        _record(lead, access, actor, LeadEventType.STATUS_UPDATED, {"status": "escalated", "reason": cleaned})
        return ActionResult(ok=True, message="Lead escalated.")

    return _run(action)


def move_lead_stage(actor: ActorContext, lead_id: UUID, target_state: LeadLifecycleState | str) -> ActionResult:
    """
    Kanban board move.

    Providers: exactly the next step, never ESCALATED.
    Admins: any forward move (ESCALATED gets reason "manual_board"), never back.
    """

    def action() -> ActionResult:
        try:
            target = LeadLifecycleState(target_state)
        except ValueError:
            raise InvalidInputError("Invalid lead state.")

        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)
        current = lead.lifecycle_state

        if access.is_provider:
            check_provider_transition(current, target)
        else:
            check_admin_transition(current, target, allow_backward=False)

        if current is target:
            return ActionResult(ok=True, message="Lead already in this state.")

        now = utc_now()
        changes: dict[str, Any] = {}
        if target is LeadLifecycleState.VIEWED:
            if lead.viewed_at is None:
                changes["viewed_at"] = now
        elif target is LeadLifecycleState.CONTACTED:
            changes["last_contacted_at"] = now
        elif target is LeadLifecycleState.ESCALATED:
            changes["escalated_at"] = now
            changes["escalation_reason"] = BOARD_ESCALATION_REASON
        elif target is LeadLifecycleState.RESOLVED:
            changes["resolved_at"] = now
            changes["resolution_status"] = lead.resolution_status or ResolutionStatus.CLOSED

        if not changes:
            return ActionResult(ok=True, message="Lead already up to date.")

        _apply(lead, access, changes)

        _record(
            lead,
            access,
            actor,
            LeadEventType.MOVED_ON_BOARD,
            {"from": current.value, "to": target.value},
        )
        return ActionResult(ok=True, message="Lead updated.")

    return _run(action)


def set_follow_up(
    actor: ActorContext,
    lead_id: UUID,
    follow_up_at: Optional[datetime],
    next_action: Optional[str] = None,
) -> ActionResult:
    """Schedule (or clear, with None) the next follow-up on a lead."""

    def action() -> ActionResult:
        if follow_up_at is not None:
            try:
                require_utc_timestamp("follow_up_at", follow_up_at)
            except ValueError as e:
                raise InvalidInputError(str(e))

        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead)
        if access.is_provider and lead.lifecycle_state is LeadLifecycleState.RESOLVED:
            raise InvalidTransitionError("Lead is already resolved.")

        next_action_value = (next_action or "").strip() or None
        changes = {"follow_up_at": follow_up_at, "next_action": next_action_value}
        _apply(lead, access, changes, require_null=("resolved_at",) if access.is_provider else ())

        _record(
            lead,
            access,
            actor,
            LeadEventType.STATUS_UPDATED,
            {
                "follow_up_at": to_iso_utc(follow_up_at) if follow_up_at else None,
                "next_action": next_action_value,
            },
        )
        return ActionResult(ok=True, message="Follow-up saved.")

    return _run(action)


# --- Routing -----------------------------------------------------------------


def _assignment_message(prefix: str, assignment: metro_rotation_service.AssignmentResult) -> str:
    if assignment.assigned:
        return f"{prefix} Reassigned to next provider. {assignment.message}".strip()
    return f"{prefix} {assignment.message}".strip()


def decline(actor: ActorContext, lead_id: UUID, reason: str, note: Optional[str] = None) -> ActionResult:
    """
    Provider declines an assigned lead; it goes back to the metro pool.

    Process:
    1. Actor must be linked to the lead's current provider
    2. Non-empty reason required ("{reason} — {note}" when a note is given)
    3. Unassign and stamp the decline (conditional on the provider unchanged)
    4. Record provider_declined, then returned_to_pool
    5. Assign through the rotation, excluding the decliner

    The decline stands even if the follow-up assignment fails; the assignment
    outcome is carried in the message.
    """

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead, allow_admin=False)

        cleaned_reason = (reason or "").strip()
        if not cleaned_reason:
            raise InvalidInputError("Decline reason is required.")
        if lead.metro_id is None:
            raise InvalidInputError("Lead has no metro.")

        cleaned_note = (note or "").strip() or None
        stored_reason = f"{cleaned_reason} — {cleaned_note}" if cleaned_note else cleaned_reason
        provider_id = lead.provider_id

        updated = lead_repository.update_lead(
            lead.lead_id,
            {
                "provider_id": None,
                "declined_at": utc_now(),
                "decline_reason": stored_reason,
                "declined_by_provider_id": provider_id,
                "delivery_status": DeliveryStatus.PENDING,
                "delivery_error": DECLINE_ERROR_MESSAGE,
            },
            expected_provider_id=provider_id,
        )
        if not updated:
            raise UnauthorizedError()

        _record(
            lead,
            access,
            actor,
            LeadEventType.PROVIDER_DECLINED,
            {"reason": cleaned_reason, "note": cleaned_note, "provider_id": str(provider_id)},
        )
        _record(
            lead,
            access,
            actor,
            LeadEventType.RETURNED_TO_POOL,
            {"previous_provider_id": str(provider_id), "metro_id": str(lead.metro_id)},
        )

        assignment = metro_rotation_service.assign_metro_pool_lead(
            lead.lead_id,
            lead.metro_id,
            exclude_provider_ids=[provider_id],
        )
        if not assignment.ok:
            logger.warning("Lead %s declined but reassignment failed: %s", lead.lead_id, assignment.message)

        return ActionResult(ok=True, message=_assignment_message("Lead declined.", assignment))

    return _run(action)


def reassign(actor: ActorContext, lead_id: UUID, provider_id: UUID) -> ActionResult:
    """
    Admin manual reassignment to a specific provider, then delivery.

    The target must be published, active, VERIFIED, in the lead's metro and
    not already the lead's provider.
    """

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead, allow_provider=False)

        if lead.provider_id == provider_id:
            raise InvalidInputError("Lead is already assigned to this provider.")

        provider = provider_repository.get_provider_by_id(provider_id)
        if provider is None:
            raise NotFoundError("Provider not found.")
        if not provider.is_published or provider.status != "active":
            raise InvalidInputError("Provider is not eligible for reassignment.")
        if lead.metro_id is not None and provider.metro_id != lead.metro_id:
            raise InvalidInputError("Provider metro does not match lead metro.")
        if compute_provider_state(provider) is not ProviderState.VERIFIED:
            raise InvalidInputError("Provider must be verified to receive leads.")

        updated = lead_repository.update_lead(
            lead.lead_id,
            {
                "provider_id": provider_id,
                "delivery_status": DeliveryStatus.PENDING,
                "delivery_error": None,
            },
        )
        if not updated:
            raise LeadNotFoundError()

        _record(
            lead,
            access,
            actor,
            LeadEventType.ADMIN_REASSIGNED,
            {
                "previous_provider_id": str(lead.provider_id) if lead.provider_id else None,
                "provider_id": str(provider_id),
            },
        )

        delivery = lead_delivery_service.deliver_lead(lead.lead_id)
        if not delivery.ok:
            return ActionResult(ok=True, message=f"Lead reassigned. Delivery: {delivery.message}")
        return ActionResult(ok=True, message="Lead reassigned.")

    return _run(action)


def return_to_pool(actor: ActorContext, lead_id: UUID) -> ActionResult:
    """Admin: unassign and send the lead back through rotation, skipping the previous provider."""

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead, allow_provider=False)
        if lead.metro_id is None:
            raise InvalidInputError("Lead has no metro.")

        previous = lead.provider_id
        updated = lead_repository.update_lead(
            lead.lead_id,
            {
                "provider_id": None,
                "delivery_status": DeliveryStatus.PENDING,
                "delivery_error": RETURN_TO_POOL_MESSAGE,
            },
        )
        if not updated:
            raise LeadNotFoundError()

        _record(
            lead,
            access,
            actor,
            LeadEventType.RETURNED_TO_POOL,
            {"previous_provider_id": str(previous) if previous else None, "metro_id": str(lead.metro_id)},
        )

        assignment = metro_rotation_service.assign_metro_pool_lead(
            lead.lead_id,
            lead.metro_id,
            exclude_provider_ids=[previous] if previous else [],
            actor_type=access.actor_type,
            actor_user_id=actor.user_id,
        )
        if not assignment.ok:
            logger.warning("Lead %s returned to pool but assignment failed: %s", lead.lead_id, assignment.message)

        return ActionResult(ok=True, message=_assignment_message("Lead returned to pool.", assignment))

    return _run(action)


# --- Delivery overrides ------------------------------------------------------


def mark_sent(actor: ActorContext, lead_id: UUID) -> ActionResult:
    """Admin override: record a lead as delivered by hand. Only from status "new"."""

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        access = check_lead_access(actor, lead, allow_provider=False)

        updated = lead_repository.update_lead(
            lead.lead_id,
            {
                "status": LeadStatus.SENT,
                "delivery_status": DeliveryStatus.DELIVERED,
                "delivered_at": utc_now(),
                "delivery_error": None,
            },
            match={"status": LeadStatus.NEW},
        )
        if not updated:
            raise InvalidTransitionError("Lead is already updated or unavailable.")

        _record(lead, access, actor, LeadEventType.DELIVERY_SUCCEEDED, {"method": "manual_mark_sent"})
        return ActionResult(ok=True, message="Marked as sent.")

    return _run(action)


def resend(actor: ActorContext, lead_id: UUID) -> ActionResult:
    """Admin: re-trigger delivery to the current provider."""

    def action() -> ActionResult:
        lead = _load_lead(lead_id)
        check_lead_access(actor, lead, allow_provider=False)
        if lead.provider_id is None:
            raise InvalidTransitionError("Lead has no assigned provider.")

        delivery = lead_delivery_service.deliver_lead(lead.lead_id)
        return ActionResult(ok=delivery.ok, message=delivery.message)

    return _run(action)


def reset_rotation(actor: ActorContext, metro_id: UUID) -> ActionResult:
    """Admin: clear a metro's rotation pointer."""

    def action() -> ActionResult:
        require_admin(actor)
        if not metro_rotation_service.reset_metro_rotation(metro_id):
            raise NotFoundError("Rotation not found.")
        logger.info("Rotation reset for metro %s", metro_id)
        return ActionResult(ok=True, message="Rotation reset.")

    return _run(action)


# --- Reads -------------------------------------------------------------------


def get_lead(actor: ActorContext, lead_id: UUID) -> Lead:
    """
    Raises:
        LeadNotFoundError, UnauthorizedError
    """
    lead = _load_lead(lead_id)
    check_lead_access(actor, lead)
    return lead


def get_lead_timeline(actor: ActorContext, lead_id: UUID) -> List[LeadEvent]:
    """Events for a lead the actor may see, newest first."""
    get_lead(actor, lead_id)
    return list_events_for_lead(lead_id)


__all__ = [
    "ActionResult",
    "decline",
    "escalate",
    "get_lead",
    "get_lead_timeline",
    "mark_contacted",
    "mark_sent",
    "mark_viewed",
    "move_lead_stage",
    "reassign",
    "resend",
    "reset_rotation",
    "resolve",
    "return_to_pool",
    "set_follow_up",
]
