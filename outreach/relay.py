"""Media relay for the Twilio media-stream call variant.

One :class:`MediaRelay` owns one call's audio session:

    connecting → started → streaming → stopped

On ``start`` it reads the correlation parameters that the call initiator
attached to the stream and plays the greeting, forwarding synthesized
audio to the caller chunk by chunk.  Inbound caller audio is accepted and,
when a :class:`SpeechToText` is attached, decoded and queued for it.  No
appointment state is written here; status arrives via the reconciler.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional
from urllib.parse import unquote

from outreach.channels.base import AudioFrame, SpeechToText
from outreach.channels.twilio_stream import StreamStart, TwilioMediaStream, mulaw_to_pcm16k
from outreach.phone import redact_pii
from outreach.providers.base import SpeechSynthesizer
from outreach.scripts import build_script, resolve_language

log = logging.getLogger("outreach.relay")

PLAYBACK_MARK = "tts_complete"
DEFAULT_QUEUE_SIZE = 500

# How long a transcriber may take to finish after the stream stops
TRANSCRIBER_DRAIN_SECONDS = 2.0


class RelayState(str, Enum):
    CONNECTING = "connecting"
    STARTED = "started"
    STREAMING = "streaming"
    STOPPED = "stopped"


@dataclass
class CallContext:
    """Correlation parameters carried on the stream's ``start`` event."""

    inquiry_id: str = ""
    customer_name: str = "Customer"
    preferred_area: str = ""
    budget: str = ""
    language: str = "hindi"
    greeting: str = ""

    @classmethod
    def from_parameters(cls, params: dict[str, str]) -> "CallContext":
        context = cls(
            inquiry_id=params.get("inquiryId", ""),
            customer_name=params.get("customerName") or "Customer",
            preferred_area=params.get("preferredArea", ""),
            budget=params.get("budget", ""),
            language=resolve_language(params.get("language")).value,
            greeting=unquote(params.get("greeting", "")),
        )
        if not context.greeting:
            context.greeting = build_script(
                context.language,
                context.customer_name,
                context.preferred_area or None,
                context.budget or None,
            ).greeting
        return context


class MediaRelay:
    """Drives one Twilio media stream for the lifetime of a call."""

    def __init__(
        self,
        stream: TwilioMediaStream,
        synthesizer: Optional[SpeechSynthesizer] = None,
        transcriber: Optional[SpeechToText] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._stream = stream
        self._synthesizer = synthesizer
        self._transcriber = transcriber
        self._state = RelayState.CONNECTING
        self._context: Optional[CallContext] = None

        # Caller audio waiting for the transcriber; oldest frames are dropped.
        # None marks the end of the stream.
        self._inbound: asyncio.Queue[Optional[AudioFrame]] = asyncio.Queue(maxsize=queue_size)
        self._playback_task: Optional[asyncio.Task] = None
        self._transcribe_task: Optional[asyncio.Task] = None

        self.frames_received = 0
        self.frames_dropped = 0

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def context(self) -> Optional[CallContext]:
        return self._context

    async def run(self) -> None:
        """Handle the session from ``start`` until ``stop`` or disconnect."""
        try:
            start = await self._stream.initialize()
            self._on_start(start)

            async for payload in self._stream.receive_media():
                self._on_media(payload)
        except Exception as e:
            log.error("Media relay error: %s", e)
        finally:
            await self.stop()

    def _on_start(self, start: StreamStart) -> None:
        self._context = CallContext.from_parameters(start.custom_parameters)
        self._state = RelayState.STARTED
        log.info(
            "Relay started: call_sid=%s inquiry=%s customer=%s language=%s",
            start.call_sid,
            self._context.inquiry_id,
            redact_pii(self._context.customer_name),
            self._context.language,
        )

        if self._transcriber is not None:
            self._transcribe_task = asyncio.create_task(self._transcribe_loop())
        if self._context.greeting:
            self._playback_task = asyncio.create_task(self.speak(self._context.greeting))

    def _on_media(self, payload: bytes) -> None:
        if self._state is RelayState.STARTED:
            self._state = RelayState.STREAMING
        self.frames_received += 1
        if self._transcriber is None:
            return

        self._enqueue(AudioFrame(samples=mulaw_to_pcm16k(payload)))

    def _enqueue(self, item: Optional[AudioFrame]) -> None:
        try:
            self._inbound.put_nowait(item)
        except asyncio.QueueFull:
            # Drop oldest frame to make room
            try:
                self._inbound.get_nowait()
                self.frames_dropped += 1
                self._inbound.put_nowait(item)
            except (asyncio.QueueEmpty, asyncio.QueueFull):
                pass

    async def speak(self, text: str) -> None:
        """Synthesize ``text`` and forward audio to the caller as it arrives.

        Synthesis errors are logged and the utterance is skipped; the call
        itself carries on.
        """
        if self._synthesizer is None:
            log.warning("No speech synthesizer configured; skipping utterance")
            return

        chunks = 0
        try:
            async for chunk in self._synthesizer.stream(text):
                if self._stream.stopped:
                    break
                await self._stream.send_media(chunk)
                chunks += 1
            if not self._stream.stopped:
                await self._stream.send_mark(PLAYBACK_MARK)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("TTS error: %s", e)
            return
        log.info("Played %d audio chunks", chunks)

    async def _inbound_frames(self) -> AsyncIterator[AudioFrame]:
        while True:
            frame = await self._inbound.get()
            if frame is None:
                return
            yield frame

    async def _transcribe_loop(self) -> None:
        try:
            async for text in self._transcriber.transcribe(self._inbound_frames()):
                if text and text.strip():
                    log.info("Caller said: %s", text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Transcription error: %s", e)

    async def stop(self) -> None:
        """Tear down the session. Safe to call more than once."""
        if self._state is RelayState.STOPPED:
            return
        self._state = RelayState.STOPPED

        if self._playback_task is not None and not self._playback_task.done():
            self._playback_task.cancel()
            try:
                await self._playback_task
            except asyncio.CancelledError:
                pass

        if self._transcribe_task is not None and not self._transcribe_task.done():
            # End the frame stream and let the transcriber flush
            self._enqueue(None)
            try:
                await asyncio.wait_for(self._transcribe_task, TRANSCRIBER_DRAIN_SECONDS)
            except asyncio.TimeoutError:
                log.warning("Transcriber still running after stream stop; cancelled")
            except asyncio.CancelledError:
                pass

        while not self._inbound.empty():
            self._inbound.get_nowait()

        await self._stream.close()
        log.info(
            "Relay stopped: %d frames received, %d dropped",
            self.frames_received,
            self.frames_dropped,
        )
