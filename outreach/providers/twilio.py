"""Twilio call placement for the self-hosted media-stream variant.

The call is created with inline TwiML that connects the answered call to
our ``/twilio/stream`` WebSocket.  The correlation bundle and the rendered
greeting travel as ``<Parameter>`` elements and come back in the stream's
``start`` event as ``customParameters``.  Status callbacks are posted to
``/twilio/status`` with the inquiry reference in the query string.

API reference: https://www.twilio.com/docs/voice/api/call-resource#create-a-call-resource
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlencode, urlsplit
from xml.etree.ElementTree import Element, SubElement, tostring

import aiohttp

from outreach.config import Settings
from outreach.errors import ProviderError
from outreach.phone import redact_pii

from .base import CallPlacement, CallPlacer, PlacedCall

log = logging.getLogger("outreach.providers.twilio")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
STATUS_CALLBACK_EVENTS = ("initiated", "ringing", "answered", "completed")


class TwilioCallPlacer(CallPlacer):
    """CallPlacer backed by the Twilio Calls resource."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def name(self) -> str:
        return "Twilio"

    def missing_config(self) -> list[str]:
        return self._settings.missing_credentials("twilio")

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------

    @property
    def stream_url(self) -> str:
        """wss:// URL of the media relay. Twilio requires TLS."""
        parts = urlsplit(self._settings.public_base_url)
        host = parts.netloc or parts.path
        return f"wss://{host.rstrip('/')}/twilio/stream"

    def status_callback_url(self, inquiry_id: str | None) -> str:
        url = self._settings.public_base_url.rstrip("/") + "/twilio/status"
        if inquiry_id:
            url += "?" + urlencode({"inquiryId": inquiry_id})
        return url

    def build_twiml(self, placement: CallPlacement) -> str:
        """TwiML that bridges the answered call to the media relay."""
        parameters = {
            **placement.metadata,
            "customerName": placement.script.customer_name,
            # Decoded again by the relay; keeps punctuation intact
            "greeting": quote(placement.script.greeting),
        }

        response_el = Element("Response")
        connect_el = SubElement(response_el, "Connect")
        stream_el = SubElement(connect_el, "Stream")
        stream_el.set("url", self.stream_url)
        for name, value in parameters.items():
            param_el = SubElement(stream_el, "Parameter")
            param_el.set("name", name)
            param_el.set("value", value)

        return tostring(response_el, encoding="unicode")

    def build_form(self, placement: CallPlacement) -> list[tuple[str, str]]:
        """Form fields for ``POST Calls.json``. StatusCallbackEvent repeats."""
        form = [
            ("To", placement.phone_number),
            ("From", self._settings.twilio_phone_number),
            ("Twiml", self.build_twiml(placement)),
            ("StatusCallback", self.status_callback_url(placement.inquiry_id)),
            ("StatusCallbackMethod", "POST"),
        ]
        form.extend(("StatusCallbackEvent", event) for event in STATUS_CALLBACK_EVENTS)
        return form

    # ------------------------------------------------------------------
    # CallPlacer interface
    # ------------------------------------------------------------------

    async def place_call(self, placement: CallPlacement) -> PlacedCall:
        account_sid = self._settings.twilio_account_sid
        url = f"{TWILIO_API_BASE}/Accounts/{account_sid}/Calls.json"
        log.info(
            "Initiating Twilio outbound call to %s in %s",
            redact_pii(placement.phone_number),
            placement.script.language.value,
        )

        timeout = aiohttp.ClientTimeout(total=self._settings.provider_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                url,
                data=self.build_form(placement),
                auth=aiohttp.BasicAuth(account_sid, self._settings.twilio_auth_token),
            ) as resp:
                body = await resp.text()
                if resp.status >= 400:
                    log.error("Twilio call request failed (%d): %s", resp.status, body)
                    raise ProviderError(self.name, resp.status, body)
                data = await resp.json(content_type=None)

        log.info("Twilio call created: %s (%s)", data.get("sid"), data.get("status"))
        return PlacedCall(call_id=data.get("sid"), data=data)
