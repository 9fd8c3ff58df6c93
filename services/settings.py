"""
Delivery settings.

Read from the environment (a .env beside the project is loaded by
repositories.client). Missing values are not an error: lead delivery reports a
recoverable "skipped" outcome instead.

Environment variables:
- SENDGRID_API_KEY: transport credential
- LEADS_FROM_EMAIL: sender address for lead and confirmation emails
- LEADS_FALLBACK_EMAIL: recipient when a provider has no public email
- LEADS_BCC_EMAIL: optional blind copy of every lead delivery
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass(frozen=True, slots=True)
class DeliverySettings:
    api_key: Optional[str] = None
    from_email: Optional[str] = None
    fallback_email: Optional[str] = None
    bcc_email: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DeliverySettings":
        return cls(
            api_key=_env("SENDGRID_API_KEY"),
            from_email=_env("LEADS_FROM_EMAIL"),
            fallback_email=_env("LEADS_FALLBACK_EMAIL"),
            bcc_email=_env("LEADS_BCC_EMAIL"),
        )

    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)


__all__ = ["DeliverySettings"]
