"""
Routing API Endpoints.

Admin view and reset of per-metro rotation state.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import action_response, get_actor, raise_for_error
from api.models import ActionResponse, RotationOverviewResponse
from domain.actor import ActorContext
from domain.errors import LeadRoutingError
from services import lead_lifecycle_service
from services.authorization import require_admin
from services.metro_rotation_service import get_metro_rotation_overview

router = APIRouter()


@router.get(
    "/metros/{metro_id}/rotation",
    response_model=RotationOverviewResponse,
    summary="Metro Rotation",
    description="Rotation pointer, eligible provider order and the next provider in line."
)
def get_rotation(metro_id: UUID, actor: ActorContext = Depends(get_actor)):
    try:
        require_admin(actor)
    except LeadRoutingError as e:
        raise_for_error(e)

    try:
        overview = get_metro_rotation_overview(metro_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load rotation: {str(e)}"
        )

    rotation = overview.rotation
    return RotationOverviewResponse(
        metro_id=overview.metro_id,
        last_provider_id=rotation.last_provider_id if rotation else None,
        last_assigned_at=rotation.last_assigned_at if rotation else None,
        ordered_provider_ids=overview.ordered_provider_ids,
        next_provider_id=overview.next_provider_id,
    )


@router.post(
    "/metros/{metro_id}/rotation/reset",
    response_model=ActionResponse,
    summary="Reset Rotation",
    description="Admin only. The next pool lead goes to the first eligible provider."
)
def reset_rotation(metro_id: UUID, actor: ActorContext = Depends(get_actor)):
    return action_response(lead_lifecycle_service.reset_rotation(actor, metro_id))
