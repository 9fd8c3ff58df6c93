"""
Provider repository (persistence).

Read-only access to provider listings. Eligibility rules live in
domain.provider; this module only fetches rows and maps them.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.provider import Provider
from domain.time import parse_optional_utc_datetime
from repositories.client import get_supabase

_PROVIDERS_TABLE: str = "providers"

_PROVIDER_COLUMNS: str = (
    "id, metro_id, business_name, email_public, is_published, status, "
    "claim_status, verified_at, claimed_by_user_id, is_claimed, user_id"
)


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _row_to_provider(row: Mapping[str, Any]) -> Provider:
    """Convert a Supabase row into a domain Provider."""

    return Provider(
        provider_id=UUID(str(row["id"])),
        metro_id=_optional_uuid(row.get("metro_id")),
        business_name=row.get("business_name"),
        email_public=row.get("email_public"),
        is_published=bool(row.get("is_published", False)),
        status=str(row.get("status") or ""),
        claim_status=row.get("claim_status"),
        verified_at=parse_optional_utc_datetime(row.get("verified_at")),
        claimed_by_user_id=_optional_uuid(row.get("claimed_by_user_id")),
        is_claimed=bool(row.get("is_claimed", False)),
        user_id=_optional_uuid(row.get("user_id")),
    )


def get_provider_by_id(provider_id: UUID) -> Optional[Provider]:
    """
    Fetch a provider by ID.

    Returns:
        Provider or None if not found
    """

    response = (
        get_supabase().table(_PROVIDERS_TABLE)
        .select(_PROVIDER_COLUMNS)
        .eq("id", str(provider_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch provider: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_provider(rows[0])


def list_published_providers_in_metro(metro_id: UUID) -> List[Provider]:
    """
    List every published provider in a metro, ordered by id.

    This is the one multi-row scan the rotation needs. Verification filtering
    happens in the domain layer.
    """

    response = (
        get_supabase().table(_PROVIDERS_TABLE)
        .select(_PROVIDER_COLUMNS)
        .eq("metro_id", str(metro_id))
        .eq("is_published", True)
        .order("id")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list providers: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_provider(row) for row in rows]


__all__ = ["get_provider_by_id", "list_published_providers_in_metro"]
