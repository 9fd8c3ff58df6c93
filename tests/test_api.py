"""
Tests for the HTTP surface in `api/`.

Covers contract rules:
- The caller comes from the X-User-Id header; no header is anonymous.
- Action failures map onto status codes (404/403/409/422).
- A resend whose email fails is still a 200 with ok=false.
- Quote requests return per-field errors as 422.
"""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from api import __version__
from api.main import app


def pid(n: int) -> UUID:
    return UUID(int=n)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def world(seed):
    """Metro with providers 1 and 2, a lead assigned to 1, an admin and provider 1's user."""

    metro_id = seed.metro()
    seed.provider(metro_id, pid(1))
    seed.provider(metro_id, pid(2))
    seed.rotation(metro_id, pid(1))
    lead_id = seed.lead(metro_id, pid(1))
    return {
        "metro_id": metro_id,
        "lead_id": lead_id,
        "admin": {"X-User-Id": str(seed.admin())},
        "provider": {"X-User-Id": str(seed.provider_user(pid(1)))},
        "stranger": {"X-User-Id": str(uuid4())},
    }


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__, "service": "lead-routing-api"}


def test_get_lead_as_provider(client, world) -> None:
    response = client.get(f"/api/v1/leads/{world['lead_id']}", headers=world["provider"])

    assert response.status_code == 200
    body = response.json()
    assert body["lead_id"] == str(world["lead_id"])
    assert body["lifecycle_state"] == "NEW"
    assert body["delivery_status"] == "pending"


@pytest.mark.parametrize("who, status", [("stranger", 403), (None, 403)])
def test_get_lead_denied(client, world, who, status) -> None:
    headers = world[who] if who else {}

    response = client.get(f"/api/v1/leads/{world['lead_id']}", headers=headers)

    assert response.status_code == status
    assert response.json()["detail"] == "Not authorized."


def test_get_missing_lead(client, world) -> None:
    response = client.get(f"/api/v1/leads/{uuid4()}", headers=world["admin"])

    assert response.status_code == 404


def test_invalid_user_header(client, world) -> None:
    response = client.get(f"/api/v1/leads/{world['lead_id']}", headers={"X-User-Id": "not-a-uuid"})

    assert response.status_code == 400


def test_view_then_timeline(client, world) -> None:
    lead_url = f"/api/v1/leads/{world['lead_id']}"

    viewed = client.post(f"{lead_url}/view", headers=world["provider"])
    again = client.post(f"{lead_url}/view", headers=world["provider"])
    events = client.get(f"{lead_url}/events", headers=world["provider"])

    assert viewed.json() == {"ok": True, "message": "Lead marked as viewed."}
    assert again.json() == {"ok": True, "message": "Lead already viewed."}
    assert events.status_code == 200
    [event] = events.json()
    assert event["event_type"] == "status_updated"
    assert event["actor_type"] == "provider"
    assert event["data"] == {"status": "viewed"}


def test_provider_cannot_skip_to_resolved(client, world) -> None:
    response = client.post(
        f"/api/v1/leads/{world['lead_id']}/resolve",
        json={"resolution_status": "won"},
        headers=world["provider"],
    )

    assert response.status_code == 409


def test_escalate_requires_reason(client, world) -> None:
    response = client.post(
        f"/api/v1/leads/{world['lead_id']}/escalate",
        json={"reason": " "},
        headers=world["admin"],
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Escalation reason is required."


def test_follow_up_offset_is_normalized(client, world, fake_db) -> None:
    response = client.post(
        f"/api/v1/leads/{world['lead_id']}/follow-up",
        json={"follow_up_at": "2025-06-01T10:00:00-05:00", "next_action": "Call"},
        headers=world["provider"],
    )

    assert response.status_code == 200
    assert fake_db.row("leads", world["lead_id"])["follow_up_at"].startswith("2025-06-01T15:00:00")


def test_decline_moves_lead_to_next_provider(client, world, fake_db) -> None:
    response = client.post(
        f"/api/v1/leads/{world['lead_id']}/decline",
        json={"reason": "too_far"},
        headers=world["provider"],
    )

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert fake_db.row("leads", world["lead_id"])["provider_id"] == str(pid(2))


def test_reassign_is_admin_only(client, world) -> None:
    url = f"/api/v1/leads/{world['lead_id']}/reassign"

    denied = client.post(url, json={"provider_id": str(pid(2))}, headers=world["provider"])
    allowed = client.post(url, json={"provider_id": str(pid(2))}, headers=world["admin"])

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["message"] == "Lead reassigned."


def test_resend_failure_is_ok_false(client, world, transport) -> None:
    transport.error = "SMTP timeout"

    response = client.post(f"/api/v1/leads/{world['lead_id']}/resend", headers=world["admin"])

    assert response.status_code == 200
    assert response.json() == {"ok": False, "message": "SMTP timeout"}


def test_rotation_overview_and_reset(client, world) -> None:
    url = f"/api/v1/metros/{world['metro_id']}/rotation"

    overview = client.get(url, headers=world["admin"])
    reset = client.post(f"{url}/reset", headers=world["admin"])
    after = client.get(url, headers=world["admin"])

    assert overview.status_code == 200
    assert overview.json()["last_provider_id"] == str(pid(1))
    assert overview.json()["ordered_provider_ids"] == [str(pid(1)), str(pid(2))]
    assert overview.json()["next_provider_id"] == str(pid(2))
    assert reset.json() == {"ok": True, "message": "Rotation reset."}
    assert after.json()["last_provider_id"] is None
    assert after.json()["next_provider_id"] == str(pid(1))


def test_rotation_requires_admin(client, world) -> None:
    url = f"/api/v1/metros/{world['metro_id']}/rotation"

    assert client.get(url, headers=world["provider"]).status_code == 403
    assert client.post(f"{url}/reset", headers=world["provider"]).status_code == 403
    assert client.post(f"/api/v1/metros/{uuid4()}/rotation/reset", headers=world["admin"]).status_code == 404


def test_quote_request_field_errors(client, seed) -> None:
    response = client.post("/api/v1/quote-requests", json={"first_name": "Dana"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["field_errors"]["email"] == "This field is required."
    assert "first_name" not in detail["field_errors"]


def test_quote_request_accepted(client, seed, fake_db) -> None:
    metro_id = seed.metro()
    category_id = seed.category()
    seed.provider(metro_id, pid(5))

    response = client.post(
        "/api/v1/quote-requests",
        json={
            "first_name": "Dana",
            "last_name": "Reyes",
            "business_name": "Reyes Diner",
            "email": "dana@example.com",
            "phone": "504-555-0142",
            "address_line1": "100 Canal St",
            "city": "New Orleans",
            "state": "LA",
            "zip": "70130",
            "metro_id": str(metro_id),
            "category_id": str(category_id),
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert fake_db.row("leads", body["lead_id"])["provider_id"] == str(pid(5))
