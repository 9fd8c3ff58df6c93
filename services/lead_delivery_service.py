"""
Lead delivery service.

Notifies the assigned provider of a lead by email and records the outcome on
the lead (delivery_status / delivered_at / delivery_error) and in the event log.

Safe to re-trigger: every call re-sends and re-stamps status. There is no
duplicate prevention beyond last-write-wins on delivery_status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from domain.lead import DeliveryStatus, Lead
from domain.lead_event import ActorType, LeadEventType
from domain.provider import Provider
from domain.time import utc_now
from repositories import directory_repository, lead_repository, provider_repository
from services import email_transport
from services.email_transport import EmailMessage, EmailTransport
from services.lead_event_log import record_lead_event
from services.settings import DeliverySettings

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500

NO_RECIPIENT_MESSAGE = "No delivery email available"
MISSING_CONFIG_MESSAGE = "Missing delivery configuration"


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    ok: bool
    message: str


def truncate_error(message: str) -> str:
    """Bound stored error text so transport stack traces cannot grow rows."""

    if len(message) > MAX_ERROR_LENGTH:
        return f"{message[:MAX_ERROR_LENGTH]}..."
    return message


def _mark(lead_id: UUID, status: DeliveryStatus, error: Optional[str]) -> None:
    changes = {
        "delivery_status": status,
        "delivered_at": utc_now() if status is DeliveryStatus.DELIVERED else None,
        "delivery_error": error,
    }
    lead_repository.update_lead(lead_id, changes)


def _fail(lead_id: UUID, provider_id: Optional[UUID], message: str) -> DeliveryResult:
    message = truncate_error(message)
    _mark(lead_id, DeliveryStatus.FAILED, message)
    record_lead_event(
        lead_id,
        ActorType.SYSTEM,
        LeadEventType.DELIVERY_FAILED,
        {"provider_id": str(provider_id) if provider_id else None, "reason": message},
    )
    return DeliveryResult(ok=False, message=message)


def _skip(lead_id: UUID, provider_id: UUID, message: str) -> DeliveryResult:
    _mark(lead_id, DeliveryStatus.SKIPPED, message)
    record_lead_event(
        lead_id,
        ActorType.SYSTEM,
        LeadEventType.DELIVERY_SKIPPED,
        {"provider_id": str(provider_id), "reason": message},
    )
    return DeliveryResult(ok=False, message=message)


def _build_message(
    lead: Lead,
    provider: Provider,
    recipient: str,
    settings: DeliverySettings,
) -> EmailMessage:
    metro = directory_repository.get_metro(lead.metro_id) if lead.metro_id else None
    category = directory_repository.get_category_name(lead.category_id) if lead.category_id else None

    provider_name = provider.business_name or "Provider"
    metro_label = metro.name if metro else "Unknown metro"
    submitted = lead.created_at.strftime("%Y-%m-%d %H:%M UTC") if lead.created_at else "N/A"

    body_lines = [
        f"Provider: {provider_name}",
        f"Category: {category or 'Service'}",
        f"Metro: {metro_label}",
        f"Name: {lead.name}",
        f"Email: {lead.email}",
        f"Phone: {lead.phone or 'N/A'}",
        f"Message: {lead.message or 'N/A'}",
        f"Source URL: {lead.source_url or 'N/A'}",
        f"Submitted: {submitted}",
    ]

    bcc = settings.bcc_email if settings.bcc_email and settings.bcc_email != recipient else None

    return EmailMessage(
        from_email=settings.from_email or "",
        to=recipient,
        subject=f"New quote request: {provider_name} ({metro_label})",
        text="\n".join(body_lines),
        reply_to=lead.email or None,
        bcc=bcc,
    )


def deliver_lead(
    lead_id: UUID,
    *,
    transport: Optional[EmailTransport] = None,
    settings: Optional[DeliverySettings] = None,
) -> DeliveryResult:
    """
    Email a lead to its assigned provider.

    Process:
    1. Load the lead (fail "Lead not found." without mutation)
    2. Load the assigned provider (storage error or missing -> failed)
    3. Resolve recipient: provider public email, else the fallback address
       (neither -> skipped)
    4. Check transport configuration (missing -> skipped)
    5. Record delivery_attempted, then send
    6. Transport failure -> failed with truncated error
    7. Success -> delivered, delivered_at = now, error cleared

    Args:
        lead_id: Lead to deliver
        transport: Email transport override (default: SendGrid from settings)
        settings: Delivery settings override (default: read from environment)

    Returns:
        DeliveryResult(ok, message)
    """

    settings = settings or DeliverySettings.from_env()

    try:
        lead = lead_repository.get_lead_by_id(lead_id)
    except Exception as e:
        logger.error("Failed to load lead %s for delivery: %s", lead_id, e)
        return DeliveryResult(ok=False, message=truncate_error(str(e)))

    if lead is None:
        return DeliveryResult(ok=False, message="Lead not found.")
    if lead.provider_id is None:
        return DeliveryResult(ok=False, message="Lead has no assigned provider.")

    provider_id = lead.provider_id

    try:
        try:
            provider = provider_repository.get_provider_by_id(provider_id)
        except Exception as e:
            return _fail(lead_id, provider_id, str(e))

        if provider is None:
            return _fail(lead_id, provider_id, "Provider not found for lead.")

        provider_email = (provider.email_public or "").strip()
        recipient = provider_email or (settings.fallback_email or "")
        if not recipient:
            return _skip(lead_id, provider_id, NO_RECIPIENT_MESSAGE)

        if not settings.is_configured():
            return _skip(lead_id, provider_id, MISSING_CONFIG_MESSAGE)

        message = _build_message(lead, provider, recipient, settings)
    except Exception as e:
        logger.error("Failed to prepare delivery for lead %s: %s", lead_id, e)
        return DeliveryResult(ok=False, message=truncate_error(str(e)))

    record_lead_event(
        lead_id,
        ActorType.SYSTEM,
        LeadEventType.DELIVERY_ATTEMPTED,
        {"provider_id": str(provider_id), "recipient": recipient},
    )

    transport = transport or email_transport.build_transport(settings.api_key)
    try:
        transport.send(message)
    except Exception as e:
        logger.warning("Lead %s delivery to %s failed: %s", lead_id, recipient, e)
        try:
            return _fail(lead_id, provider_id, str(e) or "Email delivery failed.")
        except Exception as storage_error:
            logger.error("Failed to record delivery failure for lead %s: %s", lead_id, storage_error)
            return DeliveryResult(ok=False, message=truncate_error(str(e) or "Email delivery failed."))

    try:
        _mark(lead_id, DeliveryStatus.DELIVERED, None)
    except Exception as e:
        logger.error("Lead %s was sent but status update failed: %s", lead_id, e)
        return DeliveryResult(ok=False, message=truncate_error(str(e)))

    record_lead_event(
        lead_id,
        ActorType.SYSTEM,
        LeadEventType.DELIVERY_SUCCEEDED,
        {"provider_id": str(provider_id), "recipient": recipient},
    )
    return DeliveryResult(ok=True, message="Lead delivered via email.")


__all__ = ["DeliveryResult", "deliver_lead", "truncate_error"]
