"""
Lead authorization.

One check, used at the top of every lead action: may this actor act on this
lead, and in which role? Admin wins when the caller is both an admin and a
linked provider.
"""

from __future__ import annotations

from dataclasses import dataclass

from domain.actor import ActorContext
from domain.errors import UnauthorizedError
from domain.lead import Lead
from domain.lead_event import ActorType


@dataclass(frozen=True, slots=True)
class LeadAccess:
    """Granted access: the role the action runs under."""
    actor_type: ActorType

    @property
    def is_admin(self) -> bool:
        return self.actor_type is ActorType.ADMIN

    @property
    def is_provider(self) -> bool:
        return self.actor_type is ActorType.PROVIDER


def check_lead_access(
    actor: ActorContext,
    lead: Lead,
    *,
    allow_admin: bool = True,
    allow_provider: bool = True,
) -> LeadAccess:
    """
    Decide the role an actor holds on a lead.

    Raises:
        UnauthorizedError: anonymous caller, or no permitted role applies.
    """

    if not actor.is_authenticated:
        raise UnauthorizedError()

    if allow_admin and actor.is_admin:
        return LeadAccess(actor_type=ActorType.ADMIN)

    if allow_provider and actor.is_linked_to(lead.provider_id):
        return LeadAccess(actor_type=ActorType.PROVIDER)

    raise UnauthorizedError()


def require_admin(actor: ActorContext) -> None:
    """Admin-only actions that are not about a single lead (e.g. rotation reset)."""

    if not actor.is_authenticated or not actor.is_admin:
        raise UnauthorizedError()


__all__ = ["LeadAccess", "check_lead_access", "require_admin"]
