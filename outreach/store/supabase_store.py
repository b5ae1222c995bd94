"""Supabase-backed appointment store.

Reads and writes the ``call_appointments`` table through ``supabase-py``
using the service-role key.  The client is synchronous, so every query
runs in the default thread pool.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Optional

from supabase import Client, create_client

from outreach.errors import ConfigurationError, StoreError
from outreach.models.appointment import Appointment

from .base import AppointmentStore

log = logging.getLogger("outreach.store.supabase")

# Columns written on insert. id/created_at/updated_at come from the database.
_INSERT_FIELDS = (
    "inquiry_id",
    "customer_name",
    "customer_phone",
    "property_location",
    "budget",
    "language",
    "status",
    "call_id",
    "notes",
    "appointment_date",
    "appointment_time",
)


class SupabaseAppointmentStore(AppointmentStore):
    """AppointmentStore backed by a Supabase (PostgREST) table."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        table: str = "call_appointments",
        client: Client | None = None,
    ) -> None:
        if client is None:
            if not url or not service_role_key:
                raise ConfigurationError("Supabase configuration is incomplete")
            client = create_client(url, service_role_key)
        self._client = client
        self._table = table

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Supabase call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def _execute(self, query) -> list[dict[str, Any]]:
        try:
            response = await self._run_in_executor(query.execute)
        except Exception as exc:
            raise StoreError(f"{self._table}: {exc}") from exc
        return response.data or []

    @staticmethod
    def _first(rows: list[dict[str, Any]]) -> Optional[Appointment]:
        return Appointment.model_validate(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # AppointmentStore interface
    # ------------------------------------------------------------------

    async def create(self, appointment: Appointment) -> Appointment:
        payload = appointment.model_dump(include=set(_INSERT_FIELDS), mode="json")
        rows = await self._execute(self._client.table(self._table).insert(payload))
        created = self._first(rows)
        if created is None:
            raise StoreError(f"{self._table}: insert returned no row")
        return created

    async def get_by_inquiry(self, inquiry_id: str) -> Optional[Appointment]:
        query = (
            self._client.table(self._table)
            .select("*")
            .eq("inquiry_id", inquiry_id)
            .order("created_at", desc=True)
            .limit(1)
        )
        return self._first(await self._execute(query))

    async def get_by_call_id(self, call_id: str) -> Optional[Appointment]:
        query = (
            self._client.table(self._table)
            .select("*")
            .eq("call_id", call_id)
            .order("created_at", desc=True)
            .limit(1)
        )
        return self._first(await self._execute(query))

    async def update(
        self, record_id: str, changes: dict[str, Any]
    ) -> Optional[Appointment]:
        payload = {
            **changes,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        query = self._client.table(self._table).update(payload).eq("id", record_id)
        return self._first(await self._execute(query))

    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        query = (
            self._client.table(self._table)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
        )
        return [Appointment.model_validate(row) for row in await self._execute(query)]
