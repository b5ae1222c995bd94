"""Dict-backed appointment store for local development and tests."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from outreach.models.appointment import Appointment

from .base import AppointmentStore

log = logging.getLogger("outreach.store.memory")


class InMemoryAppointmentStore(AppointmentStore):
    """Keeps records in process memory. Lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, Appointment] = {}

    async def create(self, appointment: Appointment) -> Appointment:
        record = appointment.model_copy(update={
            "id": appointment.id or uuid.uuid4().hex,
            "created_at": appointment.created_at or datetime.now(timezone.utc),
        })
        self._records[record.id] = record
        log.info("Appointment %s created (inquiry=%s)", record.id, record.inquiry_id)
        return record.model_copy()

    async def get_by_inquiry(self, inquiry_id: str) -> Optional[Appointment]:
        matches = [r for r in self._records.values() if r.inquiry_id == inquiry_id]
        return self._newest(matches)

    async def get_by_call_id(self, call_id: str) -> Optional[Appointment]:
        matches = [r for r in self._records.values() if r.call_id == call_id]
        return self._newest(matches)

    async def update(
        self, record_id: str, changes: dict[str, Any]
    ) -> Optional[Appointment]:
        record = self._records.get(record_id)
        if record is None:
            return None
        updated = record.model_copy(update={
            **changes,
            "updated_at": datetime.now(timezone.utc),
        })
        self._records[record_id] = updated
        return updated.model_copy()

    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        ordered = sorted(
            self._records.values(),
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return [r.model_copy() for r in ordered[:limit]]

    @staticmethod
    def _newest(records: list[Appointment]) -> Optional[Appointment]:
        if not records:
            return None
        newest = max(
            records,
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
        )
        return newest.model_copy()
