"""Appointment record store abstractions and implementations."""

from .base import AppointmentStore
from .memory import InMemoryAppointmentStore

__all__ = ["AppointmentStore", "InMemoryAppointmentStore"]
