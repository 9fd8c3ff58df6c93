"""
Quote request intake.

Validates a consumer quote request, creates the lead and routes it:

- pooled (metro only) -> metro rotation assigns and delivers
- bound to a VERIFIED provider -> delivered immediately
- bound to an unverified provider -> held pending with the reason

The requester gets a confirmation email. That email is best effort: a failure
is logged and never blocks the request.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from uuid import UUID

from domain.lead import DeliveryStatus, Lead, LeadStatus
from domain.lead_event import ActorType, LeadEventType
from domain.provider import Provider, ProviderState, compute_provider_state
from domain.time import utc_now
from repositories import directory_repository, lead_repository, provider_repository
from repositories.directory_repository import MetroInfo
from services import email_transport, lead_delivery_service, metro_rotation_service
from services.email_transport import EmailMessage
from services.lead_event_log import record_lead_event
from services.settings import DeliverySettings

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.IGNORECASE)
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")

REQUIRED_MESSAGE = "This field is required."
PHONE_REQUIRED_MESSAGE = "Phone helps us connect you with the fastest available provider."
POOL_PENDING_MESSAGE = "Metro pool (awaiting assignment)."
RECEIVED_MESSAGE = "Request received. We'll be in touch soon."
GENERIC_FAILURE_MESSAGE = "Unable to submit your request. Please try again."

_HOLD_REASONS = {
    ProviderState.CLAIMED_UNVERIFIED: "Verification required.",
    ProviderState.UNCLAIMED: "Provider unclaimed (escrow).",
}


@dataclass(frozen=True, slots=True)
class QuoteRequestInput:
    """Quote request form fields. Strings are trimmed during validation."""
    first_name: str
    last_name: str
    business_name: str
    email: str
    phone: str
    address_line1: str
    city: str
    state: str
    zip: str
    metro_id: str
    category_id: str
    address_line2: str = ""
    message: str = ""
    source_url: str = ""
    provider_id: str = ""


@dataclass(frozen=True, slots=True)
class IntakeResult:
    """
    Result of a quote request.

    ok: True if the lead was created (routing outcome is not part of ok)
    message: form-level message
    lead_id: the created lead
    field_errors: field name -> message, for validation failures
    """
    ok: bool
    message: str
    lead_id: Optional[UUID] = None
    field_errors: Dict[str, str] = field(default_factory=dict)


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value.strip())
    except (ValueError, AttributeError):
        return None


def validate_quote_request(request: QuoteRequestInput) -> Dict[str, str]:
    """
    Field-level validation.

    Returns:
        dict of field -> error message (empty when valid)
    """
    errors: Dict[str, str] = {}

    required = {
        "first_name": request.first_name,
        "last_name": request.last_name,
        "business_name": request.business_name,
        "email": request.email,
        "address_line1": request.address_line1,
        "city": request.city,
        "state": request.state,
        "zip": request.zip,
        "metro_id": request.metro_id,
        "category_id": request.category_id,
    }
    for name, value in required.items():
        if not (value or "").strip():
            errors[name] = REQUIRED_MESSAGE

    email = (request.email or "").strip()
    if email and not EMAIL_PATTERN.match(email):
        errors["email"] = "Please enter a valid email address."

    phone = (request.phone or "").strip()
    if not phone:
        errors["phone"] = PHONE_REQUIRED_MESSAGE
    elif len(re.sub(r"\D", "", phone)) != 10:
        errors["phone"] = "Please enter a valid 10-digit phone number."

    zip_code = (request.zip or "").strip()
    if zip_code and not ZIP_PATTERN.match(zip_code):
        errors["zip"] = "Please enter a valid ZIP code."

    for name in ("metro_id", "category_id"):
        value = getattr(request, name)
        if name not in errors and _parse_uuid(value) is None:
            errors[name] = "Invalid identifier."

    if request.provider_id.strip() and _parse_uuid(request.provider_id) is None:
        errors["provider_id"] = "Invalid identifier."

    return errors


def send_requester_confirmation(
    lead: Lead,
    metro: Optional[MetroInfo],
    provider: Optional[Provider],
    settings: DeliverySettings,
) -> bool:
    """
    Tell the requester we received their request.

    Returns:
        True if sent. Missing configuration or a transport failure returns
        False and is only logged.
    """
    if not settings.is_configured():
        logger.info("Missing email configuration for requester confirmation.")
        return False

    requester = (lead.requester_first_name or lead.name or "").strip() or "there"
    metro_label = metro.label if metro else "your area"
    provider_label = f" from {provider.business_name}" if provider and provider.business_name else ""

    body_lines = [
        f"Hi {requester},",
        "",
        f"Thanks for your request{provider_label}. We're reviewing it now.",
        "",
        "What happens next:",
        f"- We match your request to available providers in {metro_label}.",
        "- A provider will reach out with availability and next steps.",
        "- You can compare options and choose the best fit.",
        "",
        "If you need to add details, just reply to this email.",
    ]

    message = EmailMessage(
        from_email=settings.from_email or "",
        to=lead.email,
        subject="We received your quote request",
        text="\n".join(body_lines),
    )

    try:
        email_transport.build_transport(settings.api_key).send(message)
    except Exception as e:
        logger.info(
            "Requester confirmation for lead %s failed: %s",
            lead.lead_id,
            lead_delivery_service.truncate_error(str(e)),
        )
        return False
    return True


def _hold_bound_lead(lead_id: UUID, provider_id: UUID, reason: str) -> None:
    lead_repository.update_lead(
        lead_id,
        {
            "delivery_status": DeliveryStatus.PENDING,
            "delivered_at": None,
            "delivery_error": reason,
        },
    )
    record_lead_event(
        lead_id,
        ActorType.SYSTEM,
        LeadEventType.DELIVERY_SKIPPED,
        {"provider_id": str(provider_id), "reason": reason},
    )


def submit_quote_request(
    request: QuoteRequestInput,
    *,
    settings: Optional[DeliverySettings] = None,
) -> IntakeResult:
    """
    Create and route a lead from a quote request.

    Process:
    1. Validate fields (-> field_errors, nothing stored)
    2. Metro and category must exist; a bound provider must be published,
       active and in the same metro
    3. Insert the lead (status new; pooled leads pending with a pool note)
    4. Record lead_created (public), plus assigned_to_provider for bound leads
    5. Send the requester confirmation (best effort)
    6. Route: rotation, delivery, or hold

    Example:
        result = submit_quote_request(QuoteRequestInput(...))
        if not result.ok:
            show(result.field_errors or result.message)
    """

    settings = settings or DeliverySettings.from_env()

    # 1. Validate
    field_errors = validate_quote_request(request)
    if field_errors:
        return IntakeResult(ok=False, message="Please fix the highlighted fields.", field_errors=field_errors)

    metro_id = UUID(request.metro_id.strip())
    category_id = UUID(request.category_id.strip())
    provider_id = _parse_uuid(request.provider_id) if request.provider_id.strip() else None

    # 2. Referenced rows
    try:
        metro = directory_repository.get_metro(metro_id)
        category_name = directory_repository.get_category_name(category_id)
        provider = provider_repository.get_provider_by_id(provider_id) if provider_id else None
    except Exception as e:
        logger.error("Quote request lookup failed: %s", e)
        return IntakeResult(ok=False, message=GENERIC_FAILURE_MESSAGE)

    if metro is None:
        return IntakeResult(
            ok=False,
            message="Please fix the highlighted fields.",
            field_errors={"metro_id": "Please choose your metro so we can connect you to the right provider."},
        )
    if category_name is None:
        return IntakeResult(ok=False, message=GENERIC_FAILURE_MESSAGE)

    if provider_id is not None:
        if provider is None or not provider.is_published or provider.status != "active":
            return IntakeResult(ok=False, message="Unable to find that provider.")
        if provider.metro_id != metro_id:
            return IntakeResult(ok=False, message="Selected metro does not match the provider.")

    # 3. Create the lead
    first_name = request.first_name.strip()
    last_name = request.last_name.strip()
    address_parts = [
        part.strip()
        for part in (request.address_line1, request.address_line2, request.city, request.state, request.zip)
        if part and part.strip()
    ]
    is_pooled = provider_id is None

    lead = Lead(
        lead_id=lead_repository.new_lead_id(),
        metro_id=metro_id,
        category_id=category_id,
        provider_id=provider_id,
        name=f"{first_name} {last_name}".strip(),
        email=request.email.strip(),
        phone=request.phone.strip(),
        message=request.message.strip() or None,
        source_url=request.source_url.strip() or None,
        requester_first_name=first_name,
        requester_last_name=last_name,
        requester_business_name=request.business_name.strip(),
        requester_address=", ".join(address_parts) or None,
        status=LeadStatus.NEW,
        delivery_status=DeliveryStatus.PENDING,
        delivery_error=POOL_PENDING_MESSAGE if is_pooled else None,
        created_at=utc_now(),
    )

    try:
        lead = lead_repository.insert_lead(lead)
    except Exception as e:
        logger.error("Failed to create lead: %s", e)
        return IntakeResult(ok=False, message=GENERIC_FAILURE_MESSAGE)

    # 4. Audit
    record_lead_event(
        lead.lead_id,
        ActorType.PUBLIC,
        LeadEventType.LEAD_CREATED,
        {
            "metro_id": str(metro_id),
            "provider_id": str(provider_id) if provider_id else None,
            "category_id": str(category_id),
            "source_url": lead.source_url,
        },
    )
    if provider_id is not None:
        record_lead_event(
            lead.lead_id,
            ActorType.SYSTEM,
            LeadEventType.ASSIGNED_TO_PROVIDER,
            {"provider_id": str(provider_id), "metro_id": str(metro_id)},
        )

    # 5. Confirmation
    send_requester_confirmation(lead, metro, provider, settings)

    # 6. Route
    if is_pooled:
        assignment = metro_rotation_service.assign_metro_pool_lead(lead.lead_id, metro_id)
        if not assignment.ok:
            logger.warning("Pool assignment for lead %s failed: %s", lead.lead_id, assignment.message)
        return IntakeResult(ok=True, message=RECEIVED_MESSAGE, lead_id=lead.lead_id)

    state = compute_provider_state(provider)
    if state is ProviderState.VERIFIED:
        delivery = lead_delivery_service.deliver_lead(lead.lead_id, settings=settings)
        if not delivery.ok:
            logger.warning("Delivery for lead %s failed: %s", lead.lead_id, delivery.message)
    else:
        try:
            _hold_bound_lead(lead.lead_id, provider.provider_id, _HOLD_REASONS[state])
        except Exception as e:
            logger.error("Failed to hold lead %s for unverified provider: %s", lead.lead_id, e)

    return IntakeResult(ok=True, message=RECEIVED_MESSAGE, lead_id=lead.lead_id)


__all__ = [
    "IntakeResult",
    "QuoteRequestInput",
    "send_requester_confirmation",
    "submit_quote_request",
    "validate_quote_request",
]
