"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides in-memory stand-ins for the two
external systems:

- FakeSupabase: the subset of the supabase-py query builder the repositories
  use (select/insert/update, eq/is_/not_/in_, order, limit, execute)
- FakeTransport: records outgoing email instead of calling SendGrid

Both are installed for every test, so no test can reach a real backend.
"""

from __future__ import annotations

import copy
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
from postgrest.exceptions import APIError

# Add the project directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from repositories.client import set_supabase_client  # noqa: E402
from services import email_transport  # noqa: E402
from services.email_transport import EmailMessage, EmailTransport, EmailTransportError  # noqa: E402

# Unique keys per table (besides "id").
_UNIQUE_COLUMNS: Dict[str, str] = {"metro_lead_rotation": "metro_id"}


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], error: Optional[str] = None):
        self.data = data
        self.error = error


class FakeQuery:
    """One chained PostgREST request against a FakeSupabase table."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self.table = table
        self.operation = "select"
        self.payload: Any = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: List[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._negate_next = False

    # Operations

    def select(self, columns: str = "*") -> "FakeQuery":
        self.operation = "select"
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self.operation = "update"
        self.payload = payload
        return self

    # Filters

    @property
    def not_(self) -> "FakeQuery":
        self._negate_next = True
        return self

    def _add(self, predicate: Callable[[Dict[str, Any]], bool]) -> "FakeQuery":
        if self._negate_next:
            self._negate_next = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) == value)

    def is_(self, column: str, value: Any) -> "FakeQuery":
        assert value in ("null", None)
        return self._add(lambda row: row.get(column) is None)

    def in_(self, column: str, values: List[Any]) -> "FakeQuery":
        allowed = list(values)
        return self._add(lambda row: row.get(column) in allowed)

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    # Execution

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(predicate(row) for predicate in self._filters)

    def execute(self) -> FakeResponse:
        for hook in list(self._db.hooks):
            hook(self)

        if (self.table, self.operation) in self._db.failures:
            return FakeResponse([], error=f"simulated {self.operation} failure on {self.table}")

        rows = self._db.tables.setdefault(self.table, [])

        if self.operation == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for payload in payloads:
                row = copy.deepcopy(payload)
                row.setdefault("id", str(uuid4()))
                for column in ("id", _UNIQUE_COLUMNS.get(self.table)):
                    if column and any(existing.get(column) == row.get(column) for existing in rows):
                        raise APIError({
                            "code": "23505",
                            "message": f"duplicate key value violates unique constraint on {column}",
                        })
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]

        if self.operation == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(row) for row in matched])

        result = list(matched)
        # Stable sort: rows with equal keys keep insertion order.
        for column, desc in reversed(self._order):
            result = sorted(result, key=lambda row: (row.get(column) is None, str(row.get(column))), reverse=desc)
        if self._limit is not None:
            result = result[: self._limit]
        return FakeResponse([copy.deepcopy(row) for row in result])


class FakeSupabase:
    """
    In-memory Supabase client.

    failures: {(table, operation)} pairs that return an error response
    hooks: callables run with the query just before each execute()
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: set[tuple[str, str]] = set()
        self.hooks: List[Callable[[FakeQuery], None]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def row(self, table: str, row_id: Any) -> Optional[Dict[str, Any]]:
        for row in self.rows(table):
            if row.get("id") == str(row_id):
                return row
        return None

    def events(self, lead_id: Any) -> List[str]:
        """Event types for a lead, in insertion order."""
        return [row["event_type"] for row in self.rows("lead_events") if row["lead_id"] == str(lead_id)]

    def events_data(self, lead_id: Any, event_type: str) -> List[Dict[str, Any]]:
        return [
            row["data"]
            for row in self.rows("lead_events")
            if row["lead_id"] == str(lead_id) and row["event_type"] == event_type
        ]


class FakeTransport(EmailTransport):
    """Records messages. Set `error` to make every send fail with that text."""

    def __init__(self) -> None:
        self.sent: List[EmailMessage] = []
        self.error: Optional[str] = None

    def send(self, message: EmailMessage) -> None:
        if self.error is not None:
            raise EmailTransportError(self.error)
        self.sent.append(message)

    def sent_to(self, address: str) -> List[EmailMessage]:
        return [message for message in self.sent if message.to == address]


class Seeder:
    """Row builders for the fake database."""

    VERIFIED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc).isoformat()

    def __init__(self, db: FakeSupabase):
        self.db = db

    def metro(self, name: str = "New Orleans", state: str = "LA", metro_id: Optional[UUID] = None) -> UUID:
        metro_id = metro_id or uuid4()
        self.db.rows("metros").append({"id": str(metro_id), "name": name, "state": state})
        return metro_id

    def category(self, name: str = "Grease Trap Cleaning") -> UUID:
        category_id = uuid4()
        self.db.rows("categories").append({"id": str(category_id), "name": name})
        return category_id

    def provider(
        self,
        metro_id: UUID,
        provider_id: Optional[UUID] = None,
        *,
        verified: bool = True,
        **overrides: Any,
    ) -> UUID:
        provider_id = provider_id or uuid4()
        row = {
            "id": str(provider_id),
            "metro_id": str(metro_id),
            "business_name": f"Provider {str(provider_id)[-4:]}",
            "email_public": f"owner-{str(provider_id)[-4:]}@example.com",
            "is_published": True,
            "status": "active",
            "claim_status": None,
            "verified_at": self.VERIFIED_AT if verified else None,
            "claimed_by_user_id": None,
            "is_claimed": False,
            "user_id": None,
        }
        row.update(overrides)
        self.db.rows("providers").append(row)
        return provider_id

    def lead(
        self,
        metro_id: Optional[UUID],
        provider_id: Optional[UUID] = None,
        **overrides: Any,
    ) -> UUID:
        lead_id = uuid4()
        row = {
            "id": str(lead_id),
            "metro_id": str(metro_id) if metro_id else None,
            "category_id": None,
            "provider_id": str(provider_id) if provider_id else None,
            "name": "Dana Reyes",
            "email": "dana@example.com",
            "phone": "5045550142",
            "message": "Quarterly pump-out",
            "source_url": None,
            "status": "new",
            "delivery_status": "pending",
            "delivered_at": None,
            "delivery_error": None,
            "viewed_at": None,
            "last_contacted_at": None,
            "resolved_at": None,
            "resolution_status": None,
            "escalated_at": None,
            "escalation_reason": None,
            "declined_at": None,
            "decline_reason": None,
            "declined_by_provider_id": None,
            "follow_up_at": None,
            "next_action": None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        row.update(overrides)
        self.db.rows("leads").append(row)
        return lead_id

    def rotation(self, metro_id: UUID, last_provider_id: Optional[UUID]) -> None:
        self.db.rows("metro_lead_rotation").append({
            "metro_id": str(metro_id),
            "last_provider_id": str(last_provider_id) if last_provider_id else None,
            "last_assigned_at": datetime.now(timezone.utc).isoformat() if last_provider_id else None,
        })

    def admin(self, user_id: Optional[UUID] = None) -> UUID:
        user_id = user_id or uuid4()
        self.db.rows("admins").append({"user_id": str(user_id)})
        return user_id

    def provider_user(self, provider_id: UUID, user_id: Optional[UUID] = None) -> UUID:
        user_id = user_id or uuid4()
        self.db.rows("provider_users").append({"user_id": str(user_id), "provider_id": str(provider_id)})
        return user_id


@pytest.fixture(autouse=True)
def fake_db() -> FakeSupabase:
    db = FakeSupabase()
    set_supabase_client(db)
    yield db
    set_supabase_client(None)


@pytest.fixture(autouse=True)
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()
    monkeypatch.setattr(email_transport, "build_transport", lambda api_key: fake)
    return fake


@pytest.fixture(autouse=True)
def email_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SENDGRID_API_KEY", "SG.test-key")
    monkeypatch.setenv("LEADS_FROM_EMAIL", "leads@example.com")
    monkeypatch.delenv("LEADS_FALLBACK_EMAIL", raising=False)
    monkeypatch.delenv("LEADS_BCC_EMAIL", raising=False)


@pytest.fixture
def seed(fake_db: FakeSupabase) -> Seeder:
    return Seeder(fake_db)
