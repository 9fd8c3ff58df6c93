"""
Database validation tests.

Read-only checks against a real Supabase project that:
1. Connection credentials work
2. Required tables exist
3. Tables have the columns the repositories select

Skipped unless SUPABASE_URL and SUPABASE_KEY are set (in the environment or a
.env beside the project). Nothing is written: leads and events are never
deleted, so a write check would leave rows behind.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file before anything else
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

pytestmark = pytest.mark.skipif(
    not (os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_KEY")),
    reason="SUPABASE_URL / SUPABASE_KEY not set",
)

EXPECTED_COLUMNS = {
    "providers": (
        "id, metro_id, business_name, email_public, is_published, status, "
        "claim_status, verified_at, claimed_by_user_id, is_claimed, user_id"
    ),
    "leads": (
        "id, provider_id, metro_id, category_id, name, email, phone, message, source_url, "
        "status, delivery_status, delivered_at, delivery_error, viewed_at, last_contacted_at, "
        "resolved_at, resolution_status, escalated_at, escalation_reason, declined_at, "
        "decline_reason, declined_by_provider_id, follow_up_at, next_action, created_at"
    ),
    "metro_lead_rotation": "metro_id, last_provider_id, last_assigned_at",
    "lead_events": "id, lead_id, actor_type, actor_user_id, event_type, data, created_at",
    "metros": "id, name, state",
    "categories": "id, name",
    "admins": "user_id",
    "provider_users": "user_id, provider_id",
}


@pytest.fixture(scope="module")
def live_client():
    from supabase import create_client

    return create_client(os.environ["SUPABASE_URL"], os.environ["SUPABASE_KEY"])


def test_supabase_url_format() -> None:
    assert os.environ["SUPABASE_URL"].startswith("https://"), "SUPABASE_URL should start with https://"


@pytest.mark.parametrize("table", sorted(EXPECTED_COLUMNS))
def test_table_has_expected_columns(live_client, table: str) -> None:
    """Verify each table exists and exposes the columns the repositories read."""

    try:
        live_client.table(table).select(EXPECTED_COLUMNS[table]).limit(1).execute()
    except Exception as e:
        pytest.fail(
            f"'{table}' table is missing or does not match the expected columns: {e}\n"
            f"This could mean:\n"
            f"  1. Invalid credentials (check SUPABASE_URL and SUPABASE_KEY)\n"
            f"  2. Table '{table}' does not exist\n"
            f"  3. A column was renamed or not migrated"
        )
