"""
Leads API Endpoints.

Lifecycle actions for admins and providers. Every endpoint takes the caller
from the X-User-Id header; the services decide what that caller may do.
"""

from datetime import timezone
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import action_response, get_actor, raise_for_error
from api.models import (
    ActionResponse,
    DeclineRequest,
    EscalateRequest,
    FollowUpRequest,
    LeadEventResponse,
    LeadResponse,
    MoveStageRequest,
    ReassignRequest,
    ResolveRequest,
)
from domain.actor import ActorContext
from domain.errors import LeadRoutingError
from domain.lead import Lead
from services import lead_lifecycle_service

router = APIRouter()


def _to_response(lead: Lead) -> LeadResponse:
    return LeadResponse(
        lead_id=lead.lead_id,
        metro_id=lead.metro_id,
        category_id=lead.category_id,
        provider_id=lead.provider_id,
        lifecycle_state=lead.lifecycle_state.value,
        name=lead.name,
        email=lead.email,
        phone=lead.phone,
        message=lead.message,
        source_url=lead.source_url,
        status=lead.status.value,
        delivery_status=lead.delivery_status.value,
        delivered_at=lead.delivered_at,
        delivery_error=lead.delivery_error,
        viewed_at=lead.viewed_at,
        last_contacted_at=lead.last_contacted_at,
        resolved_at=lead.resolved_at,
        resolution_status=lead.resolution_status.value if lead.resolution_status else None,
        escalated_at=lead.escalated_at,
        escalation_reason=lead.escalation_reason,
        declined_at=lead.declined_at,
        decline_reason=lead.decline_reason,
        declined_by_provider_id=lead.declined_by_provider_id,
        follow_up_at=lead.follow_up_at,
        next_action=lead.next_action,
        created_at=lead.created_at,
    )


@router.get(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    summary="Get Lead",
)
def get_lead(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    try:
        lead = lead_lifecycle_service.get_lead(actor, lead_id)
    except LeadRoutingError as e:
        raise_for_error(e)
    return _to_response(lead)


@router.get(
    "/leads/{lead_id}/events",
    response_model=List[LeadEventResponse],
    summary="Lead Timeline",
    description="Audit events for a lead, newest first."
)
def get_lead_events(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    try:
        events = lead_lifecycle_service.get_lead_timeline(actor, lead_id)
    except LeadRoutingError as e:
        raise_for_error(e)
    return [
        LeadEventResponse(
            event_id=event.event_id,
            actor_type=event.actor_type.value,
            actor_user_id=event.actor_user_id,
            event_type=event.event_type,
            data=dict(event.data),
            created_at=event.created_at,
        )
        for event in events
    ]


@router.post("/leads/{lead_id}/view", response_model=ActionResponse, summary="Mark Viewed")
def mark_viewed(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.mark_viewed(actor, lead_id))


@router.post("/leads/{lead_id}/contact", response_model=ActionResponse, summary="Mark Contacted")
def mark_contacted(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.mark_contacted(actor, lead_id))


@router.post("/leads/{lead_id}/resolve", response_model=ActionResponse, summary="Resolve Lead")
def resolve(lead_id: UUID, request: ResolveRequest, actor: ActorContext = Depends(get_actor)):
    return action_response(
        lead_lifecycle_service.resolve(actor, lead_id, request.resolution_status)
    )


@router.post(
    "/leads/{lead_id}/escalate",
    response_model=ActionResponse,
    summary="Escalate Lead",
    description="Admin only."
)
def escalate(lead_id: UUID, request: EscalateRequest, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.escalate(actor, lead_id, request.reason))


@router.post(
    "/leads/{lead_id}/stage",
    response_model=ActionResponse,
    summary="Move On Board",
    description="Kanban move. Providers may only move one step forward."
)
def move_stage(lead_id: UUID, request: MoveStageRequest, actor: ActorContext = Depends(get_actor)):
    return action_response(
        lead_lifecycle_service.move_lead_stage(actor, lead_id, request.target_state)
    )


@router.post("/leads/{lead_id}/follow-up", response_model=ActionResponse, summary="Set Follow-up")
def set_follow_up(lead_id: UUID, request: FollowUpRequest, actor: ActorContext = Depends(get_actor)):
    follow_up_at = request.follow_up_at
    if follow_up_at is not None and follow_up_at.tzinfo is not None:
        follow_up_at = follow_up_at.astimezone(timezone.utc)
    return action_response(
        lead_lifecycle_service.set_follow_up(actor, lead_id, follow_up_at, request.next_action)
    )


@router.post(
    "/leads/{lead_id}/decline",
    response_model=ActionResponse,
    summary="Decline Lead",
    description="Provider only. Returns the lead to the metro pool, excluding the declining provider."
)
def decline(lead_id: UUID, request: DeclineRequest, actor: ActorContext = Depends(get_actor)):
    """
    Decline an assigned lead.

    **Example request:**
    ```json
    {
      "reason": "too_far",
      "note": "out of service radius"
    }
    ```
    """
    return action_response(
        lead_lifecycle_service.decline(actor, lead_id, request.reason, request.note)
    )


@router.post("/leads/{lead_id}/reassign", response_model=ActionResponse, summary="Reassign Lead")
def reassign(lead_id: UUID, request: ReassignRequest, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.reassign(actor, lead_id, request.provider_id))


@router.post("/leads/{lead_id}/return-to-pool", response_model=ActionResponse, summary="Return To Pool")
def return_to_pool(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.return_to_pool(actor, lead_id))


@router.post("/leads/{lead_id}/mark-sent", response_model=ActionResponse, summary="Mark Sent")
def mark_sent(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.mark_sent(actor, lead_id))


@router.post("/leads/{lead_id}/resend", response_model=ActionResponse, summary="Resend Lead")
def resend(lead_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.resend(actor, lead_id))
