"""VAPI call placement.

VAPI runs the whole conversation (speech recognition, LLM, ElevenLabs
voice) on its side.  We only create the call, overriding the assistant's
first message and system prompt with the per-lead script, and receive its
events later on ``/vapi/webhook``.

API reference: https://docs.vapi.ai/api-reference/calls/create
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from outreach.config import Settings
from outreach.errors import ProviderError
from outreach.phone import redact_pii

from .base import CallPlacement, CallPlacer, PlacedCall

log = logging.getLogger("outreach.providers.vapi")

LLM_PROVIDER = "openai"
LLM_MODEL = "gpt-4o-mini"

# Voice tuning: steady, natural delivery that tolerates interruptions
VOICE_STABILITY = 0.6
VOICE_SIMILARITY_BOOST = 0.8
VOICE_STYLE = 0.3
VOICE_SPEAKER_BOOST = True
SILENCE_TIMEOUT_SECONDS = 20
RESPONSE_DELAY_SECONDS = 0.8
WORDS_TO_INTERRUPT = 2


class VapiCallPlacer(CallPlacer):
    """CallPlacer backed by the VAPI ``POST /call/phone`` endpoint."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def name(self) -> str:
        return "VAPI"

    def missing_config(self) -> list[str]:
        return self._settings.missing_credentials("vapi")

    def build_payload(self, placement: CallPlacement) -> dict[str, Any]:
        """Request body for ``POST /call/phone``."""
        script = placement.script
        overrides: dict[str, Any] = {
            "firstMessage": script.greeting,
            "model": {
                "provider": LLM_PROVIDER,
                "model": LLM_MODEL,
                "messages": [{"role": "system", "content": script.system_prompt}],
            },
            "voice": {
                "provider": "11labs",
                "voiceId": self._settings.elevenlabs_voice_id,
                "stability": VOICE_STABILITY,
                "similarityBoost": VOICE_SIMILARITY_BOOST,
                "style": VOICE_STYLE,
                "useSpeakerBoost": VOICE_SPEAKER_BOOST,
            },
            "silenceTimeoutSeconds": SILENCE_TIMEOUT_SECONDS,
            "responseDelaySeconds": RESPONSE_DELAY_SECONDS,
            "numWordsToInterruptAssistant": WORDS_TO_INTERRUPT,
        }
        if self._settings.public_base_url:
            overrides["serverUrl"] = (
                self._settings.public_base_url.rstrip("/") + "/vapi/webhook"
            )

        return {
            "phoneNumberId": self._settings.vapi_phone_number_id,
            "assistantId": self._settings.vapi_assistant_id,
            "customer": {
                "number": placement.phone_number,
                "name": script.customer_name,
            },
            "assistantOverrides": overrides,
            "metadata": placement.metadata,
        }

    async def place_call(self, placement: CallPlacement) -> PlacedCall:
        url = self._settings.vapi_base_url.rstrip("/") + "/call/phone"
        log.info(
            "Initiating VAPI outbound call to %s in %s",
            redact_pii(placement.phone_number),
            placement.script.language.value,
        )

        async with httpx.AsyncClient(
            timeout=self._settings.provider_timeout_seconds,
            transport=self._transport,
        ) as client:
            resp = await client.post(
                url,
                json=self.build_payload(placement),
                headers={"Authorization": f"Bearer {self._settings.vapi_api_key}"},
            )

        log.info("VAPI response: %d", resp.status_code)
        if resp.is_error:
            log.error("VAPI API error: %d %s", resp.status_code, resp.text)
            raise ProviderError(self.name, resp.status_code, resp.text)

        try:
            data = resp.json()
        except json.JSONDecodeError:
            data = {"raw": resp.text}
        return PlacedCall(call_id=data.get("id"), data=data)
