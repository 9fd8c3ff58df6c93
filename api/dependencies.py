"""
Shared API dependencies.

- Caller identity from the X-User-Id header (set by the authenticating proxy)
- Mapping of action results and domain errors onto HTTP status codes
"""

from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException

from domain.actor import ActorContext
from domain.errors import LeadRoutingError
from repositories.access_repository import get_actor_context
from services.lead_lifecycle_service import ActionResult

ERROR_STATUS_CODES = {
    "not_found": 404,
    "unauthorized": 403,
    "invalid_transition": 409,
    "invalid_input": 422,
    "storage": 500,
}


def get_actor(x_user_id: Optional[str] = Header(default=None)) -> ActorContext:
    """Resolve the caller's roles. No header means an anonymous caller."""
    if not x_user_id:
        return ActorContext.anonymous()

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header.")

    try:
        return get_actor_context(user_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to resolve caller: {str(e)}"
        )


def raise_for_error(error: LeadRoutingError) -> None:
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.code, 400),
        detail=error.message
    )


def action_response(result: ActionResult) -> dict:
    """
    Return the result body, or raise for a classified failure.

    A failure without an error code (e.g. a resend whose email bounced) is
    still a completed request and is returned as ok=false.
    """
    if not result.ok and result.error:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(result.error, 400),
            detail=result.message
        )
    return {"ok": result.ok, "message": result.message}
