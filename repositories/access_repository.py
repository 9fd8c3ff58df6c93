"""
Access repository for resolving who a caller is.

Looks up admin membership and provider links for a user id and builds the
ActorContext that every lead action receives.
"""

from __future__ import annotations

from typing import FrozenSet, Optional
from uuid import UUID

from domain.actor import ActorContext
from repositories.client import get_supabase


def is_admin(user_id: UUID) -> bool:
    """
    Check whether a user is listed in the admins table.

    Example:
        if is_admin(user_id):
            # admin-only action allowed
    """
    response = (
        get_supabase().table("admins")
        .select("user_id")
        .eq("user_id", str(user_id))
        .limit(1)
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch admin membership: {error}")

    rows = getattr(response, "data", None) or []
    return bool(rows)


def list_provider_ids_for_user(user_id: UUID) -> FrozenSet[UUID]:
    """
    Get every provider a user is linked to via provider_users.

    Returns:
        frozenset of provider ids (possibly empty)
    """
    response = (
        get_supabase().table("provider_users")
        .select("provider_id")
        .eq("user_id", str(user_id))
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch provider links: {error}")

    rows = getattr(response, "data", None) or []
    return frozenset(UUID(str(row["provider_id"])) for row in rows if row.get("provider_id"))


def get_actor_context(user_id: Optional[UUID]) -> ActorContext:
    """
    Build the ActorContext for a user id (None for anonymous callers).
    """
    if user_id is None:
        return ActorContext.anonymous()

    return ActorContext(
        user_id=user_id,
        is_admin=is_admin(user_id),
        provider_ids=list_provider_ids_for_user(user_id),
    )


__all__ = ["get_actor_context", "is_admin", "list_provider_ids_for_user"]
