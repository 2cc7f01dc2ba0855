"""Tests for the tool-call request operation."""

import pytest

from callcab.context.orchestrator import LookupOrchestrator
from callcab.lookup_api import lookup_master
from callcab.schemas.lookup_schema import LookupRequest
from callcab.tools.crm_client import InMemoryCrmClient
from callcab.tools.memory_store import InMemoryMemoryStore
from tests.conftest import NOW, PHONE, make_config, make_customer, make_record


class TestLookupRequestParsing:
    def test_top_level_phone_and_name(self):
        request = LookupRequest.from_payload({"phone": "303-555-0100", "name": " Alex Morgan "})
        assert request.phone == "303-555-0100"
        assert request.name == "Alex Morgan"

    def test_customer_number(self):
        request = LookupRequest.from_payload({"customer": {"number": "+13035550100", "name": "Alex"}})
        assert request.phone == "+13035550100"
        assert request.name == "Alex"

    def test_call_customer_number_and_call_id(self):
        request = LookupRequest.from_payload(
            {"call": {"id": "call-77", "customer": {"number": "3035550100"}}}
        )
        assert request.phone == "3035550100"
        assert request.call_id == "call-77"

    def test_message_call_customer_number(self):
        request = LookupRequest.from_payload(
            {"message": {"call": {"id": 42, "customer": {"number": "3035550100"}}}}
        )
        assert request.phone == "3035550100"
        assert request.call_id == "42"

    def test_numeric_phone(self):
        assert LookupRequest.from_payload({"phone": 3035550100}).phone == "3035550100"

    def test_empty_body(self):
        request = LookupRequest.from_payload({})
        assert request.phone is None
        assert request.name is None


class TestLookupMaster:
    def setup_method(self):
        memory = InMemoryMemoryStore([make_record(30, preferred_name="Dana")])
        crm = InMemoryCrmClient([make_customer(vip=True)])
        self.orchestrator = LookupOrchestrator(
            memory, crm, config=make_config(), clock=lambda: NOW
        )

    @pytest.mark.asyncio
    async def test_success_body_is_json_ready(self):
        status, body = await lookup_master({"phone": "303-555-0100"}, self.orchestrator)

        assert status == 200
        assert body["ok"] is True
        assert body["profile"]["phone"] == PHONE
        assert body["profile"]["preferred_name"] == "Dana"
        assert body["profile"]["preferred_name_source"] == "memory"
        assert body["profile"]["vip"] is True
        assert body["greeting"]["scenario"] == "known_customer"
        assert body["memory"]["last_call_at"].startswith("2026-10-18T12:00:00")
        assert body["crm"]["status"] == "ok"
        assert isinstance(body["processing_time_ms"], int)

    @pytest.mark.asyncio
    async def test_missing_phone(self):
        status, body = await lookup_master({"name": "Alex"}, self.orchestrator)
        assert status == 400
        assert body == {"ok": False, "error": "MISSING_PHONE", "message": "Phone number is required"}

    @pytest.mark.asyncio
    async def test_invalid_phone(self):
        status, body = await lookup_master({"phone": "12345"}, self.orchestrator)
        assert status == 400
        assert body["error"] == "INVALID_PHONE"

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        status, body = await lookup_master(["+13035550100"], self.orchestrator)
        assert status == 400
        assert body["error"] == "MISSING_PHONE"
