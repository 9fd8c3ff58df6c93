"""
Domain errors for lead routing.

Services raise these internally and translate them into `{ok, message}` results
at the action boundary. Each carries a short, human-readable message that is
safe to show to the caller.
"""

from __future__ import annotations


class LeadRoutingError(Exception):
    """Base class. `code` is a stable tag the HTTP layer maps to a status."""

    code: str = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(LeadRoutingError):
    code = "not_found"


class LeadNotFoundError(NotFoundError):
    def __init__(self, message: str = "Lead not found."):
        super().__init__(message)


class UnauthorizedError(LeadRoutingError):
    """Always surfaced generically; the reason is never leaked to the caller."""

    code = "unauthorized"

    def __init__(self, message: str = "Not authorized."):
        super().__init__(message)


class InvalidTransitionError(LeadRoutingError):
    code = "invalid_transition"


class InvalidInputError(LeadRoutingError):
    code = "invalid_input"


class StorageError(LeadRoutingError):
    code = "storage"


__all__ = [
    "InvalidInputError",
    "InvalidTransitionError",
    "LeadNotFoundError",
    "LeadRoutingError",
    "NotFoundError",
    "StorageError",
    "UnauthorizedError",
]
