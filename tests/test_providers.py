"""Tests for the VAPI and Twilio call placers and ElevenLabs synthesis."""

import json
import os
import sys
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit
from xml.etree.ElementTree import fromstring

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest

from outreach.config import Settings
from outreach.errors import ProviderError
from outreach.providers.base import CallPlacement
from outreach.providers.elevenlabs import ElevenLabsSynthesizer
from outreach.providers.twilio import TwilioCallPlacer
from outreach.providers.vapi import VapiCallPlacer
from outreach.scripts import build_script


def _settings(**overrides):
    values = {
        "vapi_api_key": "vapi-key",
        "vapi_phone_number_id": "pn-1",
        "vapi_assistant_id": "asst-1",
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "token",
        "twilio_phone_number": "+15550001111",
        "public_base_url": "https://calls.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _placement():
    return CallPlacement(
        phone_number="+919876543210",
        script=build_script("english", "Anita", "Baner", "80 lakh"),
        inquiry_id="inq-1",
        preferred_area="Baner",
        budget="80 lakh",
    )


# ── VAPI ────────────────────────────────────────────────────────────


class TestVapiPlacer:
    def test_missing_config(self):
        placer = VapiCallPlacer(_settings(vapi_api_key="", vapi_assistant_id=""))
        assert placer.missing_config() == ["VAPI_API_KEY", "VAPI_ASSISTANT_ID"]

    def test_payload(self):
        payload = VapiCallPlacer(_settings()).build_payload(_placement())

        assert payload["phoneNumberId"] == "pn-1"
        assert payload["assistantId"] == "asst-1"
        assert payload["customer"] == {"number": "+919876543210", "name": "Anita"}
        assert payload["metadata"]["inquiryId"] == "inq-1"

        overrides = payload["assistantOverrides"]
        assert overrides["firstMessage"].startswith("Hello! Am I speaking with Anita?")
        assert overrides["model"]["messages"][0]["role"] == "system"
        assert "Baner" in overrides["model"]["messages"][0]["content"]
        assert overrides["voice"]["stability"] == 0.6
        assert overrides["voice"]["similarityBoost"] == 0.8
        assert overrides["numWordsToInterruptAssistant"] == 2
        assert overrides["serverUrl"] == "https://calls.example.com/vapi/webhook"

    def test_payload_without_public_url(self):
        payload = VapiCallPlacer(_settings(public_base_url="")).build_payload(_placement())
        assert "serverUrl" not in payload["assistantOverrides"]

    async def test_place_call_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "call-abc", "status": "queued"})

        placer = VapiCallPlacer(_settings(), transport=httpx.MockTransport(handler))
        placed = await placer.place_call(_placement())

        assert placed.call_id == "call-abc"
        assert placed.data["status"] == "queued"
        assert seen["url"] == "https://api.vapi.ai/call/phone"
        assert seen["auth"] == "Bearer vapi-key"
        assert seen["body"]["customer"]["number"] == "+919876543210"

    async def test_place_call_rejected_body_verbatim(self):
        def handler(request):
            return httpx.Response(400, text='{"message":["customer.number must be E.164"]}')

        placer = VapiCallPlacer(_settings(), transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderError) as exc_info:
            await placer.place_call(_placement())

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == '{"message":["customer.number must be E.164"]}'

    async def test_non_json_success_body(self):
        placer = VapiCallPlacer(
            _settings(),
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="ok")),
        )
        placed = await placer.place_call(_placement())
        assert placed.call_id is None
        assert placed.data == {"raw": "ok"}


# ── Twilio ──────────────────────────────────────────────────────────


class TestTwilioPlacer:
    def test_missing_config(self):
        placer = TwilioCallPlacer(_settings(public_base_url="", twilio_auth_token=""))
        assert placer.missing_config() == ["TWILIO_AUTH_TOKEN", "PUBLIC_BASE_URL"]

    def test_stream_url_uses_wss(self):
        placer = TwilioCallPlacer(_settings())
        assert placer.stream_url == "wss://calls.example.com/twilio/stream"

    def test_twiml_carries_parameters(self):
        twiml = TwilioCallPlacer(_settings()).build_twiml(_placement())
        root = fromstring(twiml)
        stream = root.find("Connect/Stream")
        assert stream.get("url") == "wss://calls.example.com/twilio/stream"

        params = {p.get("name"): p.get("value") for p in stream.findall("Parameter")}
        assert params["inquiryId"] == "inq-1"
        assert params["customerName"] == "Anita"
        assert params["language"] == "english"
        assert params["budget"] == "80 lakh"
        assert params["greeting"].startswith("Hello%21%20Am%20I")

    def test_form_fields(self):
        form = TwilioCallPlacer(_settings()).build_form(_placement())
        fields = dict(form)
        assert fields["To"] == "+919876543210"
        assert fields["From"] == "+15550001111"

        callback = urlsplit(fields["StatusCallback"])
        assert callback.path == "/twilio/status"
        assert parse_qs(callback.query) == {"inquiryId": ["inq-1"]}

        events = [value for key, value in form if key == "StatusCallbackEvent"]
        assert events == ["initiated", "ringing", "answered", "completed"]

    async def test_place_call_error(self):
        resp = MagicMock()
        resp.status = 401
        resp.text = _async_return('{"code": 20003, "message": "Authenticate"}')
        session = _fake_session(resp)

        with patch("outreach.providers.twilio.aiohttp.ClientSession", return_value=session):
            with pytest.raises(ProviderError) as exc_info:
                await TwilioCallPlacer(_settings()).place_call(_placement())

        assert exc_info.value.status_code == 401
        assert "Authenticate" in exc_info.value.body

    async def test_place_call_success(self):
        resp = MagicMock()
        resp.status = 201
        resp.text = _async_return('{"sid": "CA999"}')
        resp.json = _async_return({"sid": "CA999", "status": "queued"})
        session = _fake_session(resp)

        with patch("outreach.providers.twilio.aiohttp.ClientSession", return_value=session):
            placed = await TwilioCallPlacer(_settings()).place_call(_placement())

        assert placed.call_id == "CA999"
        url = session.post.call_args[0][0]
        assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Calls.json"


def _async_return(value):
    async def _inner(*args, **kwargs):
        return value
    return _inner


class _AsyncContext:
    def __init__(self, value):
        self._value = value

    async def __aenter__(self):
        return self._value

    async def __aexit__(self, *exc):
        return False


def _fake_session(response):
    session = MagicMock()
    session.__aenter__ = _async_return(session)
    session.__aexit__ = _async_return(False)
    session.post = MagicMock(return_value=_AsyncContext(response))
    return session


# ── ElevenLabs ──────────────────────────────────────────────────────


class TestElevenLabs:
    async def test_streams_chunks(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["key"] = request.headers["xi-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"\xff" * 320)

        synth = ElevenLabsSynthesizer(
            "el-key", "voice-1", transport=httpx.MockTransport(handler)
        )
        audio = b"".join([chunk async for chunk in synth.stream("Namaste!")])

        assert audio == b"\xff" * 320
        assert seen["url"].path == "/v1/text-to-speech/voice-1/stream"
        assert seen["url"].params["output_format"] == "ulaw_8000"
        assert seen["key"] == "el-key"
        assert seen["body"]["text"] == "Namaste!"
        assert seen["body"]["model_id"] == "eleven_turbo_v2_5"

    async def test_error_raises_provider_error(self):
        synth = ElevenLabsSynthesizer(
            "bad-key",
            "voice-1",
            transport=httpx.MockTransport(
                lambda r: httpx.Response(401, text='{"detail":"invalid_api_key"}')
            ),
        )
        with pytest.raises(ProviderError) as exc_info:
            async for _ in synth.stream("hello"):
                pass
        assert exc_info.value.status_code == 401
        assert "invalid_api_key" in exc_info.value.body
