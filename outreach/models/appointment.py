"""Pydantic model for the ``call_appointments`` record and its status vocabulary."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ValidationInfo, field_validator


class Language(str, Enum):
    """Languages the outbound script can be rendered in."""

    HINDI = "hindi"
    ENGLISH = "english"
    MARATHI = "marathi"


DEFAULT_LANGUAGE = Language.HINDI


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CALLING = "calling"
    IN_PROGRESS = "in-progress"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    FAILED = "failed"


# Higher rank = further along. Equal ranks are alternative outcomes.
STATUS_RANK: dict[str, int] = {
    AppointmentStatus.PENDING.value: 0,
    AppointmentStatus.CALLING.value: 1,
    AppointmentStatus.IN_PROGRESS.value: 2,
    AppointmentStatus.COMPLETED.value: 3,
    AppointmentStatus.FAILED.value: 3,
    AppointmentStatus.SCHEDULED.value: 4,
}

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.FAILED.value,
    AppointmentStatus.SCHEDULED.value,
})

# Alternative end-of-call outcomes
OUTCOME_STATUSES = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.FAILED.value,
})


def can_transition(current: str, new: str, *, outcome: bool = False) -> bool:
    """Return True if ``new`` may overwrite ``current`` on a record.

    Statuses never move backwards.  A terminal status (completed, failed,
    scheduled) is only replaced by a strictly higher-ranked one, so a late
    ``in-progress`` or a second outcome cannot overwrite the first outcome.
    Rewriting the same non-terminal status is allowed.  Statuses outside
    the known vocabulary have no rank and are accepted unless the record is
    already terminal.

    ``outcome=True`` marks the end-of-call verdict: it may switch a record
    between completed and failed, but never replaces scheduled.
    """
    if current == new:
        return True
    if outcome and current in OUTCOME_STATUSES and new in OUTCOME_STATUSES:
        return True
    current_rank = STATUS_RANK.get(current)
    new_rank = STATUS_RANK.get(new)

    if current in TERMINAL_STATUSES:
        return new_rank is not None and new_rank > current_rank
    if current_rank is None or new_rank is None:
        return True
    return new_rank >= current_rank


class Appointment(BaseModel):
    """One outbound-call attempt for an inquiry and its outcome.

    ``status`` is kept as a plain string: provider statuses outside
    :class:`AppointmentStatus` are stored as received.
    """

    id: str = ""
    inquiry_id: Optional[str] = None

    # Contact details captured when the call was placed
    customer_name: str = ""
    customer_phone: str = ""
    property_location: Optional[str] = None
    budget: Optional[str] = None
    language: str = DEFAULT_LANGUAGE.value

    status: str = AppointmentStatus.PENDING.value
    call_id: Optional[str] = None
    notes: str = ""

    # Set by the assistant's scheduleAppointment function call
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "customer_name", "customer_phone", "notes", "language", "status", mode="before"
    )
    @classmethod
    def _null_to_default(cls, value: object, info: ValidationInfo) -> object:
        # Rows written outside this service may hold NULL in these columns
        if value is None:
            return cls.model_fields[info.field_name].default
        return value
