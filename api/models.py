"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ============================================================================
# Quote Request (intake) Models
# ============================================================================

class QuoteRequestBody(BaseModel):
    """Consumer quote request. Omit provider_id for a metro pool request."""
    first_name: str = ""
    last_name: str = ""
    business_name: str = ""
    email: str = ""
    phone: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    metro_id: str = ""
    category_id: str = ""
    provider_id: str = ""
    message: str = ""
    source_url: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Dana",
                "last_name": "Reyes",
                "business_name": "Reyes Diner",
                "email": "dana@example.com",
                "phone": "(504) 555-0142",
                "address_line1": "100 Canal St",
                "city": "New Orleans",
                "state": "LA",
                "zip": "70130",
                "metro_id": "123e4567-e89b-12d3-a456-426614174000",
                "category_id": "123e4567-e89b-12d3-a456-426614174001",
                "message": "Quarterly pump-out, 1000 gal trap"
            }
        }


class QuoteRequestResponse(BaseModel):
    ok: bool
    message: str
    lead_id: Optional[UUID] = None


# ============================================================================
# Lead Models
# ============================================================================

class LeadResponse(BaseModel):
    """A lead with its derived lifecycle state."""
    lead_id: UUID
    metro_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    lifecycle_state: str  # "NEW", "VIEWED", ...
    name: str
    email: str
    phone: Optional[str] = None
    message: Optional[str] = None
    source_url: Optional[str] = None
    status: str
    delivery_status: str
    delivered_at: Optional[datetime] = None
    delivery_error: Optional[str] = None
    viewed_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution_status: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    declined_by_provider_id: Optional[UUID] = None
    follow_up_at: Optional[datetime] = None
    next_action: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadEventResponse(BaseModel):
    event_id: UUID
    actor_type: str
    actor_user_id: Optional[UUID] = None
    event_type: str
    data: Dict[str, Any]
    created_at: datetime


class ActionResponse(BaseModel):
    """Outcome of a lead action."""
    ok: bool
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "ok": True,
                "message": "Lead marked as viewed."
            }
        }


class ResolveRequest(BaseModel):
    resolution_status: str = Field(
        "closed",
        description="won, lost, closed or spam"
    )


class EscalateRequest(BaseModel):
    reason: str


class MoveStageRequest(BaseModel):
    target_state: str = Field(
        ...,
        description="VIEWED, CONTACTED, ESCALATED or RESOLVED"
    )


class FollowUpRequest(BaseModel):
    follow_up_at: Optional[datetime] = None
    next_action: Optional[str] = None


class DeclineRequest(BaseModel):
    reason: str
    note: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "reason": "too_far",
                "note": "out of service radius"
            }
        }


class ReassignRequest(BaseModel):
    provider_id: UUID


# ============================================================================
# Routing Models
# ============================================================================

class RotationOverviewResponse(BaseModel):
    """Rotation pointer and provider order for a metro."""
    metro_id: UUID
    last_provider_id: Optional[UUID] = None
    last_assigned_at: Optional[datetime] = None
    ordered_provider_ids: List[UUID]
    next_provider_id: Optional[UUID] = None
