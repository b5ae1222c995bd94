"""VAPI conversation webhook routing.

VAPI posts ``{"message": {"type": ..., "call": {...}, ...}}`` for every
event of an assistant call.  :class:`WebhookEventRouter` dispatches on
``type`` and returns the JSON body to send back.  Only ``function-call``
responses are read by the assistant; everything else is an acknowledgement.

Errors propagate out of :meth:`WebhookEventRouter.dispatch`; the HTTP
route turns them into an acknowledgement.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from outreach.models.appointment import AppointmentStatus
from outreach.reconciler import StatusReconciler, append_note

log = logging.getLogger("outreach.webhooks")

ACK: dict[str, Any] = {"success": True}

# endedReason values that count as a normal end of conversation
NORMAL_END_REASONS = frozenset({"hangup", "customer-ended-call"})

SCHEDULE_FUNCTION = "scheduleAppointment"

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def _correlation(message: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Return (inquiry_id, call_id) carried on an event."""
    call = message.get("call") or {}
    metadata = call.get("metadata") or {}
    return metadata.get("inquiryId") or None, call.get("id") or None


def format_call_report(message: dict[str, Any]) -> str:
    """Human-readable notes block for an end-of-call report."""
    notes = message.get("summary") or ""
    notes += f"\n\nCall Duration: {message.get('durationSeconds') or 0} seconds"
    notes += f"\nEnded Reason: {message.get('endedReason') or 'unknown'}"

    transcript = message.get("transcript")
    if transcript:
        notes += f"\n\nTranscript:\n{transcript}"
    return notes.strip()


class WebhookEventRouter:
    """Folds VAPI conversation events into appointment records."""

    def __init__(self, reconciler: StatusReconciler) -> None:
        self._reconciler = reconciler
        self._handlers: dict[str, Handler] = {
            "status-update": self._on_status_update,
            "end-of-call-report": self._on_end_of_call_report,
            "transcript": self._on_transcript,
            "function-call": self._on_function_call,
        }

    async def dispatch(self, message: dict[str, Any]) -> dict[str, Any]:
        message_type = message.get("type")
        handler = self._handlers.get(message_type)
        if handler is None:
            log.info("Unhandled message type: %s", message_type)
            return ACK
        return await handler(message)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _on_status_update(self, message: dict[str, Any]) -> dict[str, Any]:
        inquiry_id, call_id = _correlation(message)
        status = message.get("status") or ""
        log.info("Call status update: %s (call=%s)", status, call_id)

        if status:
            await self._reconciler.apply(status, inquiry_id=inquiry_id, call_id=call_id)
        return ACK

    async def _on_end_of_call_report(self, message: dict[str, Any]) -> dict[str, Any]:
        inquiry_id, call_id = _correlation(message)
        ended_reason = message.get("endedReason")
        log.info("Call ended: %s (reason=%s)", call_id, ended_reason)

        record = await self._reconciler.find(inquiry_id, call_id)
        if record is None:
            log.warning("Dropping end-of-call report: no appointment for call %s", call_id)
            return ACK

        status = (
            AppointmentStatus.COMPLETED.value
            if ended_reason in NORMAL_END_REASONS
            else AppointmentStatus.FAILED.value
        )
        changes: dict[str, Any] = {
            "notes": append_note(record.notes, format_call_report(message)),
        }
        if call_id:
            changes["call_id"] = call_id
        await self._reconciler.advance(record, status, outcome=True, **changes)
        return ACK

    async def _on_transcript(self, message: dict[str, Any]) -> dict[str, Any]:
        log.info("Transcript [%s]: %s", message.get("role"), message.get("transcript"))
        return ACK

    async def _on_function_call(self, message: dict[str, Any]) -> dict[str, Any]:
        function_call = message.get("functionCall") or {}
        name = function_call.get("name")
        parameters = function_call.get("parameters") or {}
        log.info("Function call: %s %s", name, parameters)

        if name != SCHEDULE_FUNCTION:
            return ACK

        date = parameters.get("date")
        time = parameters.get("time")
        inquiry_id, call_id = _correlation(message)
        record = await self._reconciler.find(inquiry_id, call_id)
        if record is None:
            log.warning("scheduleAppointment for unknown call %s not persisted", call_id)
        else:
            await self._reconciler.advance(
                record,
                AppointmentStatus.SCHEDULED.value,
                appointment_date=date,
                appointment_time=time,
            )

        return {"result": f"Appointment scheduled for {date} at {time}"}
