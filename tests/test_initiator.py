"""Tests for CallInitiator — record creation and call placement."""

import os
import sys
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from outreach.config import Settings
from outreach.errors import ConfigurationError, InvalidRequestError, ProviderError
from outreach.initiator import CallInitiator
from outreach.models.call import OutboundCallRequest
from outreach.providers.base import CallPlacer, PlacedCall
from outreach.store.memory import InMemoryAppointmentStore


class FakePlacer(CallPlacer):
    """Records placements; optionally checks the store mid-call."""

    def __init__(self, store=None, missing=(), error=None):
        self.placements = []
        self.records_seen = None
        self._store = store
        self._missing = list(missing)
        self._error = error

    @property
    def name(self):
        return "Fake"

    def missing_config(self):
        return self._missing

    async def place_call(self, placement):
        self.placements.append(placement)
        if self._store is not None:
            self.records_seen = await self._store.list_recent()
        if self._error:
            raise self._error
        return PlacedCall(call_id="call-123", data={"id": "call-123", "status": "queued"})


@pytest.fixture
def settings():
    return Settings(_env_file=None, appointment_store="memory")


@pytest.fixture
def store():
    return InMemoryAppointmentStore()


def _request(**overrides):
    body = {
        "inquiryId": "inq-1",
        "phoneNumber": "98765 43210",
        "customerName": "Anita",
        "preferredArea": "Baner",
        "budget": "80 lakh",
        "language": "english",
    }
    body.update(overrides)
    return OutboundCallRequest.model_validate(body)


class TestInitiate:
    async def test_places_call_and_returns_id(self, settings, store):
        placer = FakePlacer()
        result = await CallInitiator(placer, store, settings).initiate(_request())

        assert result.call_id == "call-123"
        assert result.language == "english"
        assert result.provider == "Fake"
        assert len(placer.placements) == 1

        placement = placer.placements[0]
        assert placement.phone_number == "+919876543210"
        assert placement.metadata == {
            "inquiryId": "inq-1",
            "language": "english",
            "preferredArea": "Baner",
            "budget": "80 lakh",
        }
        assert "Anita" in placement.script.greeting

    async def test_record_created_before_provider_resolves(self, settings, store):
        placer = FakePlacer(store=store)
        await CallInitiator(placer, store, settings).initiate(_request())

        assert len(placer.records_seen) == 1
        record = placer.records_seen[0]
        assert record.status == "calling"
        assert record.inquiry_id == "inq-1"
        assert record.customer_phone == "+919876543210"
        assert record.budget == "80 lakh"
        assert record.notes == "Call initiated to Anita for Baner. Budget: 80 lakh"

    async def test_call_id_written_after_acceptance(self, settings, store):
        await CallInitiator(FakePlacer(), store, settings).initiate(_request())
        record = await store.get_by_call_id("call-123")
        assert record is not None
        assert record.inquiry_id == "inq-1"
        assert record.status == "calling"

    async def test_exactly_one_record(self, settings, store):
        await CallInitiator(FakePlacer(), store, settings).initiate(_request())
        assert len(await store.list_recent()) == 1

    async def test_unknown_language_resolves_to_hindi(self, settings, store):
        placer = FakePlacer()
        result = await CallInitiator(placer, store, settings).initiate(
            _request(language="tamil")
        )
        assert result.language == "hindi"
        assert (await store.get_by_inquiry("inq-1")).language == "hindi"

    async def test_default_customer_name(self, settings, store):
        placer = FakePlacer()
        await CallInitiator(placer, store, settings).initiate(_request(customerName=None))
        assert placer.placements[0].script.customer_name == "Sir ya Madam"


class TestFailFast:
    async def test_missing_phone_number(self, settings, store):
        placer = FakePlacer()
        with pytest.raises(InvalidRequestError, match="Phone number is required"):
            await CallInitiator(placer, store, settings).initiate(_request(phoneNumber=None))
        assert placer.placements == []
        assert await store.list_recent() == []

    async def test_empty_phone_number(self, settings, store):
        placer = FakePlacer()
        with pytest.raises(InvalidRequestError):
            await CallInitiator(placer, store, settings).initiate(_request(phoneNumber=""))
        assert placer.placements == []

    async def test_missing_configuration(self, settings, store):
        placer = FakePlacer(missing=["FAKE_API_KEY"])
        with pytest.raises(ConfigurationError, match="Fake configuration is incomplete"):
            await CallInitiator(placer, store, settings).initiate(_request())
        assert placer.placements == []
        assert await store.list_recent() == []


class TestFailures:
    async def test_provider_error_propagates_and_record_remains(self, settings, store):
        placer = FakePlacer(error=ProviderError("Fake", 402, '{"message":"no credits"}'))
        with pytest.raises(ProviderError) as exc_info:
            await CallInitiator(placer, store, settings).initiate(_request())

        assert exc_info.value.status_code == 402
        assert exc_info.value.body == '{"message":"no credits"}'
        record = await store.get_by_inquiry("inq-1")
        assert record.status == "calling"
        assert record.call_id is None

    async def test_store_failure_does_not_block_call(self, settings):
        store = AsyncMock()
        store.create.side_effect = RuntimeError("insert failed")
        placer = FakePlacer()

        result = await CallInitiator(placer, store, settings).initiate(_request())

        assert result.call_id == "call-123"
        assert len(placer.placements) == 1
