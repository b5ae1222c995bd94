"""Outbound call initiation.

For one lead: normalize the phone number, render the script in the lead's
language, insert the ``call_appointments`` row, then ask the configured
provider to dial.

The row is written *before* the provider confirms the call so operators
see the attempt immediately.  The write is best-effort: if it fails the
call is still placed, and a call may then exist without a visible record.
Once the provider accepts, its call id is written to the row so later
events can be joined on it.  If the provider rejects the call, the row
stays at ``calling`` with no call id.  Neither case is reconciled automatically.
"""

from __future__ import annotations

import logging
from typing import Optional

from outreach.config import Settings
from outreach.errors import ConfigurationError, InvalidRequestError
from outreach.models.appointment import Appointment, AppointmentStatus
from outreach.models.call import CallResult, OutboundCallRequest
from outreach.phone import normalize_phone, redact_pii
from outreach.providers.base import CallPlacement, CallPlacer
from outreach.scripts import build_script
from outreach.store.base import AppointmentStore

log = logging.getLogger("outreach.initiator")


class CallInitiator:
    """Places one outbound call per request through a :class:`CallPlacer`."""

    def __init__(
        self,
        placer: CallPlacer,
        store: AppointmentStore,
        settings: Settings,
    ) -> None:
        self._placer = placer
        self._store = store
        self._settings = settings

    def check_config(self) -> None:
        missing = self._placer.missing_config()
        if missing:
            log.error("Missing %s configuration: %s", self._placer.name, ", ".join(missing))
            raise ConfigurationError(f"{self._placer.name} configuration is incomplete")

    async def initiate(self, request: OutboundCallRequest) -> CallResult:
        """Create the appointment record and place the call.

        Raises:
            ConfigurationError: provider credentials are missing.
            InvalidRequestError: no phone number was given.
            ProviderError: the provider rejected the call.
        """
        self.check_config()
        if not request.phone_number:
            raise InvalidRequestError("Phone number is required")

        phone = normalize_phone(request.phone_number, self._settings.default_country_code)
        script = build_script(
            request.language,
            request.customer_name,
            request.preferred_area,
            request.budget,
        )
        log.info(
            "Calling %s for inquiry %s in %s via %s",
            redact_pii(phone),
            request.inquiry_id,
            script.language.value,
            self._placer.name,
        )

        record = await self._record_attempt(
            request, phone, script.customer_name, script.language.value
        )

        placed = await self._placer.place_call(CallPlacement(
            phone_number=phone,
            script=script,
            inquiry_id=request.inquiry_id,
            preferred_area=request.preferred_area,
            budget=request.budget,
        ))
        log.info("%s accepted call %s", self._placer.name, placed.call_id)
        if record is not None and placed.call_id:
            await self._record_call_id(record, placed.call_id)

        return CallResult(
            provider=self._placer.name,
            call_id=placed.call_id,
            language=script.language.value,
            data=placed.data,
        )

    async def _record_attempt(
        self,
        request: OutboundCallRequest,
        phone: str,
        customer_name: str,
        language: str,
    ) -> Optional[Appointment]:
        appointment = Appointment(
            inquiry_id=request.inquiry_id,
            customer_name=customer_name,
            customer_phone=phone,
            property_location=request.preferred_area,
            budget=request.budget,
            language=language,
            status=AppointmentStatus.CALLING.value,
            notes=(
                f"Call initiated to {customer_name} for "
                f"{request.preferred_area or 'property inquiry'}. "
                f"Budget: {request.budget or 'Not specified'}"
            ),
        )
        try:
            created = await self._store.create(appointment)
        except Exception:
            log.exception("Error creating call appointment for inquiry %s", request.inquiry_id)
            return None
        log.info("Call appointment %s created for inquiry %s", created.id, request.inquiry_id)
        return created

    async def _record_call_id(self, record: Appointment, call_id: str) -> None:
        # Only call_id is written; a status event may already have landed
        try:
            await self._store.update(record.id, {"call_id": call_id})
        except Exception:
            log.exception("Error recording call id %s on appointment %s", call_id, record.id)
