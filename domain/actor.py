"""
Domain: Actor context.

Represents the authenticated caller of a lead action. Role lookup (admin
membership, provider links) happens outside the core; the result arrives here
as an immutable value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ActorContext:
    """
    Caller identity and roles.

    - user_id is None for anonymous (public) callers.
    - provider_ids are the providers this user is linked to via provider_users.
    """

    user_id: Optional[UUID]
    is_admin: bool = False
    provider_ids: FrozenSet[UUID] = field(default_factory=frozenset)

    @staticmethod
    def anonymous() -> "ActorContext":
        return ActorContext(user_id=None)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def is_linked_to(self, provider_id: Optional[UUID]) -> bool:
        if provider_id is None or not self.is_authenticated:
            return False
        return provider_id in self.provider_ids


__all__ = ["ActorContext"]
