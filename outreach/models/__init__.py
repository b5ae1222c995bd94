"""Data models for appointment records and call requests."""

from .appointment import Appointment, AppointmentStatus, Language
from .call import CallResult, OutboundCallRequest

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "CallResult",
    "Language",
    "OutboundCallRequest",
]
