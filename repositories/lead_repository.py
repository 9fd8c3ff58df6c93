"""
Lead repository (persistence).

This module provides *only* persistence operations for the Lead domain entity.
No business rules (lifecycle transitions, routing, delivery) belong here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

from domain.lead import DeliveryStatus, Lead, LeadStatus, ResolutionStatus
from domain.time import parse_optional_utc_datetime, to_iso_utc
from repositories.client import get_supabase

# Supabase table name for Lead records.
# Keep this aligned with your database schema.
_LEADS_TABLE: str = "leads"

# Sentinel for "do not filter on provider_id".
_ANY: Any = object()


def _serialize(value: Any) -> Any:
    """Convert domain values to JSON-friendly column values."""

    if isinstance(value, datetime):
        return to_iso_utc(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _lead_to_row(lead: Lead) -> dict[str, Any]:
    """Convert a domain Lead to a Supabase row payload."""

    return {
        # Core identifiers
        "id": str(lead.lead_id),
        "metro_id": _serialize(lead.metro_id),
        "category_id": _serialize(lead.category_id),
        "provider_id": _serialize(lead.provider_id),

        # Requester contact
        "name": lead.name,
        "email": lead.email,
        "phone": lead.phone,
        "message": lead.message,
        "source_url": lead.source_url,
        "requester_first_name": lead.requester_first_name,
        "requester_last_name": lead.requester_last_name,
        "requester_business_name": lead.requester_business_name,
        "requester_address": lead.requester_address,

        # Delivery
        "status": lead.status.value,
        "delivery_status": lead.delivery_status.value,
        "delivered_at": _serialize(lead.delivered_at),
        "delivery_error": lead.delivery_error,

        "created_at": _serialize(lead.created_at),
    }


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    resolution = row.get("resolution_status")

    return Lead(
        lead_id=UUID(str(row["id"])),
        metro_id=_optional_uuid(row.get("metro_id")),
        category_id=_optional_uuid(row.get("category_id")),
        provider_id=_optional_uuid(row.get("provider_id")),

        name=str(row.get("name") or ""),
        email=str(row.get("email") or ""),
        phone=row.get("phone"),
        message=row.get("message"),
        source_url=row.get("source_url"),
        requester_first_name=row.get("requester_first_name"),
        requester_last_name=row.get("requester_last_name"),
        requester_business_name=row.get("requester_business_name"),
        requester_address=row.get("requester_address"),

        status=LeadStatus(str(row.get("status") or LeadStatus.NEW.value)),
        delivery_status=DeliveryStatus(str(row.get("delivery_status") or DeliveryStatus.PENDING.value)),
        delivered_at=parse_optional_utc_datetime(row.get("delivered_at")),
        delivery_error=row.get("delivery_error"),

        viewed_at=parse_optional_utc_datetime(row.get("viewed_at")),
        last_contacted_at=parse_optional_utc_datetime(row.get("last_contacted_at")),
        resolved_at=parse_optional_utc_datetime(row.get("resolved_at")),
        resolution_status=ResolutionStatus(str(resolution)) if resolution else None,
        escalated_at=parse_optional_utc_datetime(row.get("escalated_at")),
        escalation_reason=row.get("escalation_reason"),

        declined_at=parse_optional_utc_datetime(row.get("declined_at")),
        decline_reason=row.get("decline_reason"),
        declined_by_provider_id=_optional_uuid(row.get("declined_by_provider_id")),

        follow_up_at=parse_optional_utc_datetime(row.get("follow_up_at")),
        next_action=row.get("next_action"),

        created_at=parse_optional_utc_datetime(row.get("created_at")),
    )


def insert_lead(lead: Lead) -> Lead:
    """
    Insert a Lead into Supabase.

    Raises:
    - RuntimeError if Supabase returns an error response.
    - ValueError/TypeError for invalid domain values (e.g., timestamps).
    """

    payload = _lead_to_row(lead)
    response = get_supabase().table(_LEADS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to insert lead: {error}")

    rows = getattr(response, "data", None) or []
    return _row_to_lead(rows[0]) if rows else lead


def new_lead_id() -> UUID:
    return uuid4()


def get_lead_by_id(lead_id: UUID) -> Lead | None:
    """
    Fetch a Lead by ID.

    Returns:
    - Lead if found
    - None if no record exists for the given ID
    """

    response = (
        get_supabase().table(_LEADS_TABLE)
        .select("*")
        .eq("id", str(lead_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch lead: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_lead(rows[0])


def update_lead(
    lead_id: UUID,
    changes: Mapping[str, Any],
    *,
    expected_provider_id: Optional[UUID] = _ANY,
    require_null: Sequence[str] = (),
    match: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Apply column changes to a lead.

    Args:
        lead_id: Lead to update
        changes: column -> value (datetimes, UUIDs and enums are serialized)
        expected_provider_id: when given, only update if the lead is still
            assigned to this provider (None means "still pooled")
        require_null: columns that must still be NULL for the update to apply
        match: column -> value equality conditions (e.g. {"status": "new"})

    Returns:
        True if a row was updated, False if the conditions matched nothing.
    """

    payload = {column: _serialize(value) for column, value in changes.items()}
    query = get_supabase().table(_LEADS_TABLE).update(payload).eq("id", str(lead_id))

    if expected_provider_id is not _ANY:
        if expected_provider_id is None:
            query = query.is_("provider_id", "null")
        else:
            query = query.eq("provider_id", str(expected_provider_id))

    for column in require_null:
        query = query.is_(column, "null")

    for column, value in (match or {}).items():
        query = query.eq(column, _serialize(value))

    response = query.execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update lead: {error}")

    rows = getattr(response, "data", None) or []
    return bool(rows)


def list_undelivered_assigned_leads(limit: int = 100) -> List[Lead]:
    """
    List leads that have a provider but were never delivered.

    These are the recoverable leftovers of an interrupted assignment
    (delivery_status = pending with a provider_id).
    """

    response = (
        get_supabase().table(_LEADS_TABLE)
        .select("*")
        .eq("delivery_status", DeliveryStatus.PENDING.value)
        .not_.is_("provider_id", "null")
        .order("created_at")
        .limit(limit)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list pending leads: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_lead(row) for row in rows]


__all__ = [
    "get_lead_by_id",
    "insert_lead",
    "list_undelivered_assigned_leads",
    "new_lead_id",
    "update_lead",
]
