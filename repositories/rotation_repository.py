"""
Metro rotation repository (persistence).

One row per metro in `metro_lead_rotation`, unique on metro_id.

Writes are compare-and-swap: an update only applies if last_provider_id still
holds the value the caller read. A caller that loses the race gets False back
and must re-read before trying again. This is what keeps two concurrent pool
assignments in the same metro from taking the same rotation slot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.rotation import MetroRotation
from domain.time import parse_optional_utc_datetime, to_iso_utc, utc_now
from repositories.client import get_supabase

_ROTATION_TABLE: str = "metro_lead_rotation"

# PostgreSQL unique_violation
_UNIQUE_VIOLATION: str = "23505"


def _row_to_rotation(row: Mapping[str, Any]) -> MetroRotation:
    last_provider_id = row.get("last_provider_id")
    return MetroRotation(
        metro_id=UUID(str(row["metro_id"])),
        last_provider_id=UUID(str(last_provider_id)) if last_provider_id else None,
        last_assigned_at=parse_optional_utc_datetime(row.get("last_assigned_at")),
    )


def get_rotation(metro_id: UUID) -> Optional[MetroRotation]:
    """
    Fetch the rotation row for a metro.

    Returns:
        MetroRotation or None if the metro has never had a pool assignment
    """

    response = (
        get_supabase().table(_ROTATION_TABLE)
        .select("metro_id, last_provider_id, last_assigned_at")
        .eq("metro_id", str(metro_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch metro rotation: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_rotation(rows[0])


def insert_rotation(metro_id: UUID, provider_id: UUID, assigned_at: datetime) -> bool:
    """
    Create the rotation row for a metro.

    Returns:
        True if created, False if another writer created it first.
    """

    now = utc_now()
    payload = {
        "metro_id": str(metro_id),
        "last_provider_id": str(provider_id),
        "last_assigned_at": to_iso_utc(assigned_at),
        "updated_at": to_iso_utc(now),
    }

    try:
        response = get_supabase().table(_ROTATION_TABLE).insert(payload).execute()
    except APIError as e:
        if getattr(e, "code", None) == _UNIQUE_VIOLATION:
            return False
        raise

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to create metro rotation: {error}")
    return True


def compare_and_set_rotation(
    metro_id: UUID,
    *,
    expected_provider_id: Optional[UUID],
    new_provider_id: Optional[UUID],
    assigned_at: Optional[datetime],
) -> bool:
    """
    Move the rotation pointer only if it still equals `expected_provider_id`.

    Returns:
        True if the pointer moved, False if it changed under us (or the row is gone).
    """

    payload = {
        "last_provider_id": str(new_provider_id) if new_provider_id else None,
        "last_assigned_at": to_iso_utc(assigned_at) if assigned_at else None,
        "updated_at": to_iso_utc(utc_now()),
    }

    query = get_supabase().table(_ROTATION_TABLE).update(payload).eq("metro_id", str(metro_id))
    if expected_provider_id is None:
        query = query.is_("last_provider_id", "null")
    else:
        query = query.eq("last_provider_id", str(expected_provider_id))

    response = query.execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update metro rotation: {error}")

    rows = getattr(response, "data", None) or []
    return bool(rows)


def reset_rotation(metro_id: UUID) -> bool:
    """
    Clear the rotation pointer for a metro.

    Returns:
        True if a row was reset, False if the metro has no rotation row.
    """

    payload = {
        "last_provider_id": None,
        "last_assigned_at": None,
        "updated_at": to_iso_utc(utc_now()),
    }
    response = (
        get_supabase().table(_ROTATION_TABLE)
        .update(payload)
        .eq("metro_id", str(metro_id))
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to reset metro rotation: {error}")

    rows = getattr(response, "data", None) or []
    return bool(rows)


__all__ = [
    "compare_and_set_rotation",
    "get_rotation",
    "insert_rotation",
    "reset_rotation",
]
