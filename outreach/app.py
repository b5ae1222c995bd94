"""FastAPI application — HTTP + WebSocket endpoints for outbound lead calls.

Endpoints:

  POST /outbound-call           Place a call to a lead (VAPI or Twilio variant)
  POST /twilio/status           Twilio status callback (form-encoded)
  POST /vapi/webhook            VAPI conversation events
  WS   /twilio/stream           Twilio Media Stream (mulaw 8kHz audio)
  GET  /api/appointments        Operator view of recent call appointments
  GET  /api/appointments/{id}   Operator view of one inquiry's appointment
  GET  /health                  Health check

The Twilio variant:
  1. POST /outbound-call creates the call with TwiML <Connect><Stream>
  2. Twilio opens a WebSocket to /twilio/stream when the lead answers
  3. MediaRelay plays the greeting through ElevenLabs
  4. Twilio posts call progress to /twilio/status

The VAPI variant:
  1. POST /outbound-call creates the call with per-lead assistant overrides
  2. VAPI runs the conversation and posts events to /vapi/webhook

The two webhook routes always acknowledge: failures are logged, never
returned, so the provider does not start retrying.
"""

from __future__ import annotations

# Load .env into os.environ before Settings is instantiated.
from dotenv import load_dotenv
load_dotenv()

import json
import logging
import time
from typing import Callable, Optional

# Configure root logger early so all outreach.* loggers have a handler
# and are visible when run via `uvicorn outreach.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Query, Request, WebSocket
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from outreach.auth import require_admin_token
from outreach.channels.base import SpeechToText
from outreach.channels.twilio_stream import TwilioMediaStream
from outreach.config import Settings, settings as default_settings
from outreach.errors import ConfigurationError, InvalidRequestError, ProviderError
from outreach.initiator import CallInitiator
from outreach.models.call import OutboundCallRequest
from outreach.providers.base import CallPlacer, SpeechSynthesizer
from outreach.reconciler import StatusReconciler
from outreach.relay import MediaRelay
from outreach.store.base import AppointmentStore
from outreach.store.memory import InMemoryAppointmentStore
from outreach.webhooks import ACK, WebhookEventRouter

log = logging.getLogger("outreach.app")

_START_TIME = time.time()

# Twilio reports these once the call is over
_TWILIO_FINAL_STATUSES = {"completed", "failed", "busy", "no-answer", "canceled"}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[AppointmentStore] = None,
    placer: Optional[CallPlacer] = None,
    synthesizer: Optional[SpeechSynthesizer] = None,
    transcriber_factory: Optional[Callable[[], SpeechToText]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``settings`` on first use,
    so a missing credential only fails the requests that need it.
    """
    settings = settings or default_settings
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Property Outreach Calls",
        description="Outbound lead-qualification calls via VAPI or Twilio",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.placer = placer
    app.state.synthesizer = synthesizer
    app.state.transcriber_factory = transcriber_factory

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check — confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "call_provider": settings.call_provider,
        })

    # ── Call initiator ─────────────────────────────────────────

    @app.post("/outbound-call")
    async def outbound_call(request: Request) -> JSONResponse:
        """Place an outbound call to a lead and record the attempt."""
        try:
            try:
                body = await request.json()
                call_request = OutboundCallRequest.model_validate(body)
            except (json.JSONDecodeError, ValidationError) as e:
                raise InvalidRequestError(f"Invalid request body: {e}") from e

            initiator = CallInitiator(_get_placer(app), _get_store(app), settings)
            result = await initiator.initiate(call_request)

        except InvalidRequestError as e:
            return JSONResponse({"error": str(e)}, status_code=e.status_code)
        except ConfigurationError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        except ProviderError as e:
            return JSONResponse(
                {
                    "error": "Failed to initiate call",
                    "details": e.body,
                    "status": e.status_code,
                },
                status_code=e.status_code,
            )
        except Exception as e:
            log.error("Error in outbound-call: %s", e, exc_info=True)
            return JSONResponse(
                {"error": str(e) or "Internal server error"}, status_code=500
            )

        return JSONResponse({
            "success": True,
            "message": f"Call initiated successfully via {result.provider}",
            "callId": result.call_id,
            "language": result.language,
            "data": result.data,
        })

    # ── Twilio status callback ─────────────────────────────────

    @app.post("/twilio/status")
    async def twilio_status(request: Request) -> JSONResponse:
        """Twilio call progress callback. Always acknowledged."""
        try:
            form = await request.form()
            call_sid = form.get("CallSid")
            call_status = form.get("CallStatus")
            inquiry_id = request.query_params.get("inquiryId") or form.get("inquiryId")
            log.info(
                "Call status update - SID: %s, status: %s, inquiry: %s",
                call_sid,
                call_status,
                inquiry_id,
            )
            if call_status in _TWILIO_FINAL_STATUSES:
                log.info(
                    "Call %s ended with status %s, duration %ss",
                    call_sid,
                    call_status,
                    form.get("CallDuration") or 0,
                )

            if call_status:
                reconciler = StatusReconciler(_get_store(app))
                await reconciler.apply(call_status, inquiry_id=inquiry_id, call_id=call_sid)
        except Exception:
            log.exception("Error in status callback")

        return JSONResponse({"received": True})

    # ── VAPI webhook ───────────────────────────────────────────

    @app.post("/vapi/webhook")
    async def vapi_webhook(request: Request) -> JSONResponse:
        """VAPI conversation events. Acknowledged unless the body is unreadable."""
        try:
            payload = await request.json()
        except Exception as e:
            log.error("Unreadable VAPI webhook body: %s", e)
            return JSONResponse({"error": str(e) or "Internal server error"}, status_code=500)

        message = payload.get("message") if isinstance(payload, dict) else None
        if not message:
            return JSONResponse({"error": "No message in payload"}, status_code=400)

        log.info("VAPI webhook received: %s", message.get("type"))
        try:
            router = WebhookEventRouter(StatusReconciler(_get_store(app)))
            return JSONResponse(await router.dispatch(message))
        except Exception:
            log.exception("Error handling VAPI %s event", message.get("type"))
            return JSONResponse(ACK)

    # ── Twilio Media Stream WebSocket ──────────────────────────

    @app.websocket("/twilio/stream")
    async def twilio_stream(websocket: WebSocket) -> None:
        """Relay audio for one answered call until Twilio stops the stream."""
        await websocket.accept()
        log.info("Twilio Media Stream WebSocket connected")

        factory = app.state.transcriber_factory
        relay = MediaRelay(
            TwilioMediaStream(websocket),
            synthesizer=_get_synthesizer(app),
            transcriber=factory() if factory else None,
            queue_size=settings.inbound_audio_queue_size,
        )
        await relay.run()
        log.info("Twilio Media Stream ended")

    # ── Operator API ───────────────────────────────────────────

    @app.get("/api/appointments", dependencies=[Depends(require_admin_token)])
    async def list_appointments(limit: int = Query(default=50, ge=1, le=500)):
        records = await _get_store(app).list_recent(limit)
        return JSONResponse({
            "appointments": [r.model_dump(mode="json") for r in records],
            "count": len(records),
        })

    @app.get("/api/appointments/{inquiry_id}", dependencies=[Depends(require_admin_token)])
    async def get_appointment(inquiry_id: str):
        record = await _get_store(app).get_by_inquiry(inquiry_id)
        if record is None:
            return JSONResponse({"error": "Appointment not found"}, status_code=404)
        return JSONResponse(record.model_dump(mode="json"))

    return app


# ── Helper functions ──────────────────────────────────────────────

def _get_store(app: FastAPI) -> AppointmentStore:
    """Return the app's appointment store, building it on first use."""
    if app.state.store is None:
        settings: Settings = app.state.settings
        if settings.appointment_store == "memory":
            app.state.store = InMemoryAppointmentStore()
        else:
            if settings.missing_store_config():
                raise ConfigurationError("Supabase configuration is incomplete")
            from outreach.store.supabase_store import SupabaseAppointmentStore
            app.state.store = SupabaseAppointmentStore(
                url=settings.supabase_url,
                service_role_key=settings.supabase_service_role_key,
                table=settings.appointments_table,
            )
    return app.state.store


def _get_placer(app: FastAPI) -> CallPlacer:
    """Return the call placer for the deployed variant."""
    if app.state.placer is None:
        settings: Settings = app.state.settings
        if settings.call_provider == "twilio":
            from outreach.providers.twilio import TwilioCallPlacer
            app.state.placer = TwilioCallPlacer(settings)
        else:
            from outreach.providers.vapi import VapiCallPlacer
            app.state.placer = VapiCallPlacer(settings)
    return app.state.placer


def _get_synthesizer(app: FastAPI) -> Optional[SpeechSynthesizer]:
    """Return the ElevenLabs synthesizer, or None if it is not configured."""
    if app.state.synthesizer is None:
        settings: Settings = app.state.settings
        if not settings.elevenlabs_api_key:
            log.warning("ELEVENLABS_API_KEY not set — relay will not play audio")
            return None
        from outreach.providers.elevenlabs import ElevenLabsSynthesizer
        app.state.synthesizer = ElevenLabsSynthesizer(
            api_key=settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            timeout=settings.provider_timeout_seconds,
        )
    return app.state.synthesizer


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "outreach.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_config=log_config,
    )
