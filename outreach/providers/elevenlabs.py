"""ElevenLabs streaming text-to-speech.

Requests ``ulaw_8000`` output so chunks can be forwarded to a Twilio media
stream without transcoding.

API reference: https://elevenlabs.io/docs/api-reference/text-to-speech/stream
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from outreach.errors import ProviderError

from .base import SpeechSynthesizer

log = logging.getLogger("outreach.providers.elevenlabs")

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
OUTPUT_FORMAT = "ulaw_8000"

VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.3,
}


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """SpeechSynthesizer backed by the ElevenLabs streaming endpoint."""

    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str = "eleven_turbo_v2_5",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._voice_id = voice_id
        self._model_id = model_id
        self._timeout = timeout
        self._transport = transport

    async def stream(self, text: str) -> AsyncIterator[bytes]:
        url = f"{ELEVENLABS_API_BASE}/text-to-speech/{self._voice_id}/stream"
        body = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": VOICE_SETTINGS,
        }

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            async with client.stream(
                "POST",
                url,
                params={"output_format": OUTPUT_FORMAT},
                headers={"xi-api-key": self._api_key},
                json=body,
            ) as resp:
                if resp.is_error:
                    error_body = (await resp.aread()).decode("utf-8", "replace")
                    raise ProviderError("ElevenLabs", resp.status_code, error_body)

                async for chunk in resp.aiter_bytes():
                    if chunk:
                        yield chunk
