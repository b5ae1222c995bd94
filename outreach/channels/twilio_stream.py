"""TwilioMediaStream — one Twilio Media Streams WebSocket session.

Twilio Media Streams deliver audio over a WebSocket as base64-encoded
mulaw (G.711 u-law) at 8kHz mono.  Outbound audio is sent back in the
same encoding.

Protocol reference:
  https://www.twilio.com/docs/voice/media-streams/websocket-messages

WebSocket message flow:
  ← {"event":"connected", "protocol":"Call", "version":"1.0.0"}
  ← {"event":"start",     "start":{"streamSid":"...","callSid":"...","customParameters":{...}}}
  ← {"event":"media",     "media":{"payload":"<base64 mulaw>","timestamp":"..."}}
  ← {"event":"stop"}

  → {"event":"media", "streamSid":"...", "media":{"payload":"<base64 mulaw>"}}
  → {"event":"mark",  "streamSid":"...", "mark":{"name":"..."}}
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

import numpy as np

try:
    import audioop
except ImportError:
    # Python 3.13+ removed audioop from stdlib
    import audioop_lts as audioop  # type: ignore[no-redef]

from fastapi import WebSocket

from .base import AudioFrame

log = logging.getLogger("outreach.channels.twilio_stream")

# Twilio sends mulaw 8kHz; STT expects PCM 16kHz
TWILIO_SAMPLE_RATE = 8000
TARGET_SAMPLE_RATE = 16000
UPSAMPLE_FACTOR = TARGET_SAMPLE_RATE // TWILIO_SAMPLE_RATE  # 2


def mulaw_to_pcm16k(mulaw_bytes: bytes) -> bytes:
    """Convert mulaw 8kHz → PCM int16 16kHz.

    Steps:
      1. audioop.ulaw2lin: mulaw → PCM int16 @ 8kHz
      2. numpy resample: 8kHz → 16kHz (linear interpolation)
    """
    if not mulaw_bytes:
        return b""
    pcm_8k = audioop.ulaw2lin(mulaw_bytes, 2)  # 2 = sample width in bytes

    samples_8k = np.frombuffer(pcm_8k, dtype=np.int16).astype(np.float32)
    num_output = len(samples_8k) * UPSAMPLE_FACTOR
    indices = np.linspace(0, len(samples_8k) - 1, num_output)
    samples_16k = np.interp(indices, np.arange(len(samples_8k)), samples_8k)
    return samples_16k.astype(np.int16).tobytes()


@dataclass
class StreamStart:
    """Contents of the ``start`` event."""

    stream_sid: str
    call_sid: str = ""
    custom_parameters: dict[str, str] = field(default_factory=dict)


class TwilioMediaStream:
    """Twilio Media Streams session over a FastAPI WebSocket.

    Usage::

        @app.websocket("/twilio/stream")
        async def twilio_stream(ws: WebSocket):
            await ws.accept()
            stream = TwilioMediaStream(ws)
            start = await stream.initialize()  # wait for 'start' event

            async for payload in stream.receive_media():
                ...  # raw mulaw 8kHz bytes
    """

    def __init__(self, websocket: WebSocket):
        self._ws = websocket
        self._stream_sid: str = ""
        self._call_sid: str = ""
        self._stopped = False
        self._closed = False

    @property
    def stream_sid(self) -> str:
        return self._stream_sid

    @property
    def call_sid(self) -> str:
        return self._call_sid

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def initialize(self) -> StreamStart:
        """Wait for the Twilio 'connected' and 'start' events.

        Must be called after the WebSocket is accepted and before
        calling receive_media().
        """
        while not self._stream_sid:
            raw = await self._ws.receive_text()
            msg = json.loads(raw)
            event = msg.get("event")

            if event == "connected":
                log.info(
                    "Twilio connected: protocol=%s version=%s",
                    msg.get("protocol"),
                    msg.get("version"),
                )

            elif event == "start":
                start = msg.get("start", {})
                self._stream_sid = start.get("streamSid", "")
                self._call_sid = start.get("callSid", "")
                log.info(
                    "Twilio stream started: stream_sid=%s call_sid=%s",
                    self._stream_sid,
                    self._call_sid,
                )
                return StreamStart(
                    stream_sid=self._stream_sid,
                    call_sid=self._call_sid,
                    custom_parameters=dict(start.get("customParameters") or {}),
                )

            elif event == "stop":
                self._stopped = True
                raise ConnectionError("Twilio stream stopped before start")

        return StreamStart(stream_sid=self._stream_sid, call_sid=self._call_sid)

    async def receive_media(self) -> AsyncIterator[bytes]:
        """Yield raw mulaw payloads until 'stop' or the WebSocket closes."""
        try:
            while not self._stopped:
                try:
                    raw = await self._ws.receive_text()
                except Exception:
                    log.info("Twilio WebSocket closed")
                    break

                msg = json.loads(raw)
                event = msg.get("event")

                if event == "media":
                    yield base64.b64decode(msg["media"]["payload"])

                elif event == "stop":
                    log.info("Twilio stream stopped")
                    self._stopped = True
                    break

                # Ignore other events (mark, dtmf, etc.)
        except asyncio.CancelledError:
            log.info("receive_media cancelled")

    async def send_media(self, mulaw_bytes: bytes) -> None:
        """Send one chunk of mulaw 8kHz audio to the caller."""
        if not self._stream_sid:
            log.warning("Cannot send audio: stream not initialized")
            return
        message = {
            "event": "media",
            "streamSid": self._stream_sid,
            "media": {"payload": base64.b64encode(mulaw_bytes).decode("ascii")},
        }
        await self._ws.send_text(json.dumps(message))

    async def send_mark(self, name: str) -> None:
        """Ask Twilio to echo a mark once playback reaches this point."""
        if not self._stream_sid:
            return
        message = {
            "event": "mark",
            "streamSid": self._stream_sid,
            "mark": {"name": name},
        }
        await self._ws.send_text(json.dumps(message))

    async def close(self) -> None:
        """Close the Twilio Media Stream WebSocket. Safe to call twice."""
        self._stopped = True
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except RuntimeError:
            pass  # Already closed by the peer
        log.info("Twilio stream closed (call_sid=%s)", self._call_sid)
