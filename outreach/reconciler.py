"""Status reconciliation — provider call status → appointment status.

Both the Twilio status callback and VAPI ``status-update`` events land
here.  Provider statuses are translated through :data:`STATUS_MAP`;
statuses not in the table are stored as received.

Writes are last-write-wins with no locking, guarded only by
:func:`~outreach.models.appointment.can_transition` so a late stale event
cannot move a record backwards.  Applying the same event twice leaves the
record as it was after the first application (apart from ``updated_at``).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from outreach.models.appointment import Appointment, AppointmentStatus, can_transition
from outreach.store.base import AppointmentStore

log = logging.getLogger("outreach.reconciler")

STATUS_MAP: dict[str, str] = {
    "queued": AppointmentStatus.PENDING.value,
    "initiated": AppointmentStatus.CALLING.value,
    "ringing": AppointmentStatus.CALLING.value,
    "answered": AppointmentStatus.IN_PROGRESS.value,
    "in-progress": AppointmentStatus.IN_PROGRESS.value,
    "ended": AppointmentStatus.COMPLETED.value,
    "completed": AppointmentStatus.COMPLETED.value,
    "failed": AppointmentStatus.FAILED.value,
    "busy": AppointmentStatus.FAILED.value,
    "no-answer": AppointmentStatus.FAILED.value,
    "canceled": AppointmentStatus.FAILED.value,
}


def map_provider_status(provider_status: str) -> str:
    """Translate a provider status; unknown values pass through unchanged."""
    return STATUS_MAP.get(provider_status, provider_status)


def append_note(existing: str, addition: str) -> str:
    """Notes are append-only: new blocks go after a blank line."""
    if not existing:
        return addition
    if not addition:
        return existing
    return f"{existing}\n\n{addition}"


class StatusReconciler:
    """Applies provider events to appointment records."""

    def __init__(self, store: AppointmentStore) -> None:
        self._store = store

    async def find(
        self,
        inquiry_id: Optional[str] = None,
        call_id: Optional[str] = None,
    ) -> Optional[Appointment]:
        """Locate the record for an event: inquiry reference first, then call id."""
        if inquiry_id:
            record = await self._store.get_by_inquiry(inquiry_id)
            if record is not None:
                return record
        if call_id:
            return await self._store.get_by_call_id(call_id)
        return None

    async def advance(
        self,
        record: Appointment,
        status: Optional[str] = None,
        *,
        outcome: bool = False,
        **changes: Any,
    ) -> Optional[Appointment]:
        """Write ``changes`` to ``record``, plus ``status`` if it may advance.

        A status the record has moved past is logged and left out; the other
        fields are still written.  Pass ``outcome=True`` for the end-of-call
        verdict, which may replace an earlier completed or failed.
        """
        if status is not None:
            if can_transition(record.status, status, outcome=outcome):
                changes["status"] = status
            else:
                log.warning(
                    "Ignoring status %s for appointment %s (already %s)",
                    status,
                    record.id,
                    record.status,
                )
        if not changes:
            return record
        return await self._store.update(record.id, changes)

    async def apply(
        self,
        provider_status: str,
        *,
        inquiry_id: Optional[str] = None,
        call_id: Optional[str] = None,
    ) -> Optional[Appointment]:
        """Apply one delivery-status event.

        Returns:
            The updated record, or None if the event matched no record
            (the event is dropped, not retried).
        """
        status = map_provider_status(provider_status)
        record = await self.find(inquiry_id, call_id)
        if record is None:
            log.warning(
                "Dropping status %s: no appointment for inquiry=%s call=%s",
                provider_status,
                inquiry_id,
                call_id,
            )
            return None

        changes: dict[str, Any] = {}
        if call_id:
            changes["call_id"] = call_id
        updated = await self.advance(record, status, **changes)
        log.info(
            "Appointment %s: provider status %s → %s",
            record.id,
            provider_status,
            updated.status if updated else record.status,
        )
        return updated
