"""
Tests for `scripts/resend_pending_leads.py`.
"""

from __future__ import annotations

import sys

import pytest

from scripts import resend_pending_leads


@pytest.fixture
def stuck_leads(seed):
    metro_id = seed.metro()
    provider_id = seed.provider(metro_id)
    stuck = seed.lead(metro_id, provider_id)
    held = seed.lead(metro_id, provider_id, delivery_error="Verification required.")
    pooled = seed.lead(metro_id)
    return stuck, held, pooled


def _run(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["resend_pending_leads.py", *args])
    return resend_pending_leads.main()


def test_resend_delivers_stuck_leads(fake_db, stuck_leads, monkeypatch) -> None:
    stuck, held, pooled = stuck_leads

    assert _run(monkeypatch) == 0

    assert fake_db.row("leads", stuck)["delivery_status"] == "delivered"
    assert fake_db.row("leads", held)["delivery_status"] == "pending"
    assert fake_db.row("leads", pooled)["delivery_status"] == "pending"


def test_include_held(fake_db, stuck_leads, monkeypatch) -> None:
    _, held, _ = stuck_leads

    assert _run(monkeypatch, "--include-held") == 0

    assert fake_db.row("leads", held)["delivery_status"] == "delivered"


def test_dry_run_sends_nothing(fake_db, stuck_leads, transport, monkeypatch, capsys) -> None:
    stuck, _, _ = stuck_leads

    assert _run(monkeypatch, "--dry-run") == 0

    assert transport.sent == []
    assert fake_db.row("leads", stuck)["delivery_status"] == "pending"
    assert f"{stuck}: would resend" in capsys.readouterr().out


def test_failed_delivery_exit_code(stuck_leads, transport, monkeypatch) -> None:
    transport.error = "SMTP timeout"

    assert _run(monkeypatch) == 1
