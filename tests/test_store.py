"""Tests for the appointment stores."""

import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from outreach.errors import ConfigurationError, StoreError
from outreach.models.appointment import Appointment
from outreach.store.base import AppointmentStore
from outreach.store.memory import InMemoryAppointmentStore
from outreach.store.supabase_store import SupabaseAppointmentStore


# ── ABC contract ────────────────────────────────────────────────────


class TestAppointmentStoreABC:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            AppointmentStore()


# ── In-memory store ─────────────────────────────────────────────────


class TestInMemoryStore:
    @pytest.fixture
    def store(self):
        return InMemoryAppointmentStore()

    async def test_create_assigns_id_and_timestamp(self, store):
        record = await store.create(Appointment(inquiry_id="inq-1", status="calling"))
        assert record.id
        assert record.created_at is not None

    async def test_get_by_inquiry(self, store):
        created = await store.create(Appointment(inquiry_id="inq-1"))
        found = await store.get_by_inquiry("inq-1")
        assert found.id == created.id
        assert await store.get_by_inquiry("missing") is None

    async def test_get_by_inquiry_returns_newest(self, store):
        await store.create(Appointment(inquiry_id="inq-1", notes="first"))
        await asyncio.sleep(0.001)
        await store.create(Appointment(inquiry_id="inq-1", notes="second"))
        found = await store.get_by_inquiry("inq-1")
        assert found.notes == "second"

    async def test_get_by_call_id(self, store):
        created = await store.create(Appointment(inquiry_id="inq-1"))
        await store.update(created.id, {"call_id": "call-9"})
        found = await store.get_by_call_id("call-9")
        assert found.id == created.id

    async def test_update_stamps_updated_at(self, store):
        created = await store.create(Appointment(inquiry_id="inq-1"))
        updated = await store.update(created.id, {"status": "completed"})
        assert updated.status == "completed"
        assert updated.updated_at is not None

    async def test_update_unknown_record(self, store):
        assert await store.update("nope", {"status": "failed"}) is None

    async def test_returned_records_are_copies(self, store):
        created = await store.create(Appointment(inquiry_id="inq-1"))
        created.status = "mutated"
        found = await store.get_by_inquiry("inq-1")
        assert found.status == "pending"

    async def test_list_recent_newest_first(self, store):
        for n in range(3):
            await store.create(Appointment(inquiry_id=f"inq-{n}"))
            await asyncio.sleep(0.001)
        records = await store.list_recent(limit=2)
        assert [r.inquiry_id for r in records] == ["inq-2", "inq-1"]


# ── Supabase store (mocked client) ──────────────────────────────────


ROW = {
    "id": "7f1c2b1e-0000-4000-8000-000000000001",
    "inquiry_id": "inq-1",
    "customer_name": "Anita",
    "customer_phone": "+919876543210",
    "property_location": "Baner",
    "budget": None,
    "language": "english",
    "status": "calling",
    "call_id": None,
    "notes": "",
    "appointment_date": None,
    "appointment_time": None,
    "created_at": "2024-05-01T10:00:00+00:00",
    "updated_at": None,
}


def _client_returning(rows):
    """MagicMock Supabase client whose query chain executes to ``rows``."""
    query = MagicMock()
    for method in ("select", "insert", "update", "eq", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = SimpleNamespace(data=rows)
    client = MagicMock()
    client.table.return_value = query
    return client, query


class TestSupabaseStore:
    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            SupabaseAppointmentStore(url="", service_role_key="")

    async def test_create_inserts_known_columns(self):
        client, query = _client_returning([ROW])
        store = SupabaseAppointmentStore("", "", client=client)

        created = await store.create(Appointment(
            inquiry_id="inq-1", customer_name="Anita", status="calling", language="english",
        ))

        client.table.assert_called_with("call_appointments")
        payload = query.insert.call_args[0][0]
        assert payload["inquiry_id"] == "inq-1"
        assert payload["status"] == "calling"
        assert "id" not in payload
        assert "created_at" not in payload
        assert created.id == ROW["id"]

    async def test_create_without_returned_row(self):
        client, _ = _client_returning([])
        store = SupabaseAppointmentStore("", "", client=client)
        with pytest.raises(StoreError):
            await store.create(Appointment(inquiry_id="inq-1"))

    async def test_get_by_inquiry_orders_newest_first(self):
        client, query = _client_returning([ROW])
        store = SupabaseAppointmentStore("", "", client=client)

        record = await store.get_by_inquiry("inq-1")

        query.eq.assert_called_with("inquiry_id", "inq-1")
        query.order.assert_called_with("created_at", desc=True)
        assert record.customer_name == "Anita"

    async def test_row_with_null_columns_is_readable(self):
        row = {**ROW, "customer_name": None, "customer_phone": None, "notes": None}
        client, _ = _client_returning([row])
        store = SupabaseAppointmentStore("", "", client=client)

        record = await store.get_by_inquiry("inq-1")

        assert record.id == ROW["id"]
        assert record.customer_name == ""
        assert record.notes == ""

    async def test_get_by_call_id_missing(self):
        client, query = _client_returning([])
        store = SupabaseAppointmentStore("", "", client=client)
        assert await store.get_by_call_id("call-1") is None
        query.eq.assert_called_with("call_id", "call-1")

    async def test_update_by_record_id(self):
        client, query = _client_returning([{**ROW, "status": "completed"}])
        store = SupabaseAppointmentStore("", "", client=client)

        updated = await store.update(ROW["id"], {"status": "completed"})

        payload = query.update.call_args[0][0]
        assert payload["status"] == "completed"
        assert "updated_at" in payload
        query.eq.assert_called_with("id", ROW["id"])
        assert updated.status == "completed"

    async def test_query_failure_raises_store_error(self):
        client, query = _client_returning([])
        query.execute.side_effect = RuntimeError("connection refused")
        store = SupabaseAppointmentStore("", "", client=client)
        with pytest.raises(StoreError):
            await store.list_recent()
