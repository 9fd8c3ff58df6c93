"""
Directory repository: metros and categories.

Lookups used to label delivery emails and to validate quote requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from repositories.client import get_supabase


@dataclass(frozen=True, slots=True)
class MetroInfo:
    metro_id: UUID
    name: str
    state: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.name}, {self.state}" if self.state else self.name


def get_metro(metro_id: UUID) -> Optional[MetroInfo]:
    response = (
        get_supabase().table("metros")
        .select("id, name, state")
        .eq("id", str(metro_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch metro: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None

    row = rows[0]
    return MetroInfo(
        metro_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        state=row.get("state"),
    )


def get_category_name(category_id: UUID) -> Optional[str]:
    """
    Returns:
        The category name, or None if the category does not exist.
    """
    response = (
        get_supabase().table("categories")
        .select("id, name")
        .eq("id", str(category_id))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch category: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return str(rows[0].get("name") or "")


__all__ = ["MetroInfo", "get_category_name", "get_metro"]
