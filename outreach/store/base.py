"""Abstract base class for appointment record stores.

Defines the interface the call initiator, status reconciler and webhook
router use to read and write ``call_appointments`` rows.  Any backend
(Supabase, in-memory, etc.) implements this ABC.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from outreach.models.appointment import Appointment


class AppointmentStore(ABC):
    """Abstract appointment backend.

    No method deletes rows: the initiator creates them and the reconciler
    and webhook router update them.
    """

    @abstractmethod
    async def create(self, appointment: Appointment) -> Appointment:
        """Insert a new record.

        Returns:
            The stored record, with ``id`` and ``created_at`` filled in.
        """

    @abstractmethod
    async def get_by_inquiry(self, inquiry_id: str) -> Optional[Appointment]:
        """Return the most recently created record for an inquiry, if any."""

    @abstractmethod
    async def get_by_call_id(self, call_id: str) -> Optional[Appointment]:
        """Return the record carrying a provider call identifier, if any."""

    @abstractmethod
    async def update(
        self, record_id: str, changes: dict[str, Any]
    ) -> Optional[Appointment]:
        """Apply ``changes`` to one record and stamp ``updated_at``.

        Returns:
            The updated record, or None if no record has ``record_id``.
        """

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        """Return up to ``limit`` records, newest first."""
