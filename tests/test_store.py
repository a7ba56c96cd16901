import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from leadhook.core.exceptions import StorageError
from leadhook.db.store import SqlLeadStore
from leadhook.models.lead import Lead

RECORD = {
    "name": "Alice",
    "email": "a@b.com",
    "phone": None,
    "city": "Austin",
    "street": None,
    "notes": "hello",
    "status": "received",
    "priority": "medium",
    "source": "https://app.example.com",
    "metadata": {"ip_address": "203.0.113.7", "received_at": "2026-10-18T12:00:00+00:00"},
}


class FakeScalars:
    def __init__(self, rows):
        self.rows = rows

    def all(self):
        return self.rows


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def scalars(self):
        return FakeScalars(self.rows)


class FakeSession:
    def __init__(self, rows=(), fail_on=None):
        self.added = []
        self.rows = list(rows)
        self.fail_on = fail_on
        self.committed = False
        self.rolled_back = False
        self.statements = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def _maybe_fail(self, operation):
        if self.fail_on == operation:
            raise OperationalError("INSERT", {}, Exception("connection refused"))

    def add(self, obj):
        self.added.append(obj)

    async def commit(self):
        self._maybe_fail("commit")
        self.committed = True

    async def rollback(self):
        self.rolled_back = True

    async def execute(self, stmt):
        self._maybe_fail("execute")
        self.statements.append(stmt)
        return FakeResult(self.rows)


def factory_for(session):
    return lambda: session


@pytest.mark.asyncio
async def test_insert_maps_record_to_row():
    session = FakeSession()
    store = SqlLeadStore(factory_for(session))

    lead_id = await store.insert(RECORD)

    assert session.committed
    lead = session.added[0]
    assert isinstance(lead, Lead)
    assert str(lead.id) == lead_id
    uuid.UUID(lead_id)
    assert lead.name == "Alice"
    assert lead.notes == "hello"
    assert lead.source == "https://app.example.com"
    assert lead.lead_metadata["ip_address"] == "203.0.113.7"


@pytest.mark.asyncio
async def test_insert_failure_rolls_back_and_raises_storage_error():
    session = FakeSession(fail_on="commit")
    store = SqlLeadStore(factory_for(session))

    with pytest.raises(StorageError) as exc_info:
        await store.insert(RECORD)

    assert session.rolled_back
    assert exc_info.value.status_code == 500
    assert exc_info.value.code == "storage_error"


@pytest.mark.asyncio
async def test_query_returns_plain_dicts():
    created = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    row = Lead(
        id=uuid.uuid4(),
        created_at=created,
        name="Alice",
        status="received",
        priority="medium",
        source="google",
        lead_metadata={"utm_source": "google"},
    )
    session = FakeSession(rows=[row])
    store = SqlLeadStore(factory_for(session))

    leads = await store.query(since=created, limit=10)

    assert leads == [
        {
            "id": str(row.id),
            "source": "google",
            "status": "received",
            "created_at": created,
            "metadata": {"utm_source": "google"},
        }
    ]
    compiled = str(session.statements[0])
    assert "leads.created_at >=" in compiled
    assert "ORDER BY leads.created_at DESC" in compiled


@pytest.mark.asyncio
async def test_query_and_ping_failures_raise_storage_error():
    store = SqlLeadStore(factory_for(FakeSession(fail_on="execute")))

    with pytest.raises(StorageError):
        await store.query()
    with pytest.raises(StorageError):
        await store.ping()


def test_lead_to_dict_uses_column_names():
    lead = Lead(name="Alice", status="received", priority="medium", source="x", lead_metadata={})
    data = lead.to_dict(exclude=["id", "created_at"])
    assert data["metadata"] == {}
    assert "lead_metadata" not in data
