"""Shared test fixtures and helpers."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from callcab.config import AppConfig, LookupConfig
from callcab.context.orchestrator import LookupOrchestrator
from callcab.prompts.greeting_templates import GreetingTemplates
from callcab.schemas.crm_schema import CrmAddress, CrmCustomer, CrmTrip
from callcab.schemas.memory_schema import CallRecord
from callcab.tools.crm_client import CrmUnavailableError, InMemoryCrmClient
from callcab.tools.memory_store import InMemoryMemoryStore, MemoryStoreError

# Monday 19 October 2026, noon in Aspen (MDT, UTC-6).
NOW = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)
PHONE = "+13035550100"


def make_record(hours_ago: float = 1.0, phone: str = PHONE, **fields: Any) -> CallRecord:
    """Helper to create a CallRecord from the flat stored shape."""
    return CallRecord.model_validate(
        {"phone": phone, "timestamp": NOW - timedelta(hours=hours_ago), **fields}
    )


def make_trip(
    trip_id: str = "T-1",
    status: str = "DISPATCHED",
    minutes_from_now: float = 60,
    pickup_address: Optional[str] = "Hotel Jerome",
    destination_address: Optional[str] = "Aspen Airport",
) -> CrmTrip:
    return CrmTrip(
        trip_id=trip_id,
        status=status,
        pickup_time=NOW + timedelta(minutes=minutes_from_now),
        pickup_address=pickup_address,
        destination_address=destination_address,
    )


def make_customer(
    id: str = "ICB-1",
    phone: str = PHONE,
    first_name: Optional[str] = "Alex",
    name: Optional[str] = None,
    addresses: Optional[list[CrmAddress]] = None,
    trips: Optional[list[CrmTrip]] = None,
    **fields: Any,
) -> CrmCustomer:
    return CrmCustomer(
        id=id,
        phone=phone,
        first_name=first_name,
        name=name,
        addresses=addresses or [],
        trips=trips or [],
        **fields,
    )


def make_config(**lookup_overrides: Any) -> AppConfig:
    """Default config with fast source timeouts for tests."""
    base = AppConfig()
    lookup = replace(
        LookupConfig(),
        **{
            "memory_timeout_sec": 0.2,
            "crm_timeout_sec": 0.2,
            "crm_detail_timeout_sec": 0.2,
            **lookup_overrides,
        },
    )
    return replace(base, lookup=lookup)


class SlowMemoryStore(InMemoryMemoryStore):
    """Memory store that never answers within the test timeout."""

    async def get_latest(self, phone: str) -> Optional[CallRecord]:
        await asyncio.sleep(5)
        return await super().get_latest(phone)


class BrokenMemoryStore(InMemoryMemoryStore):
    async def get_latest(self, phone: str) -> Optional[CallRecord]:
        raise MemoryStoreError("connection refused")


class SlowCrmClient(InMemoryCrmClient):
    async def find_customer(self, phone: str) -> Optional[CrmCustomer]:
        await asyncio.sleep(5)
        return await super().find_customer(phone)


class SlowAddressCrmClient(InMemoryCrmClient):
    """Finds customers at once but never returns their address history in time."""

    async def get_address_history(
        self, phone: str, crm_phone: Optional[str] = None
    ) -> list[CrmAddress]:
        await asyncio.sleep(5)
        return await super().get_address_history(phone, crm_phone)


class FailingTripsCrmClient(InMemoryCrmClient):
    async def get_upcoming_trips(self, phone: str) -> list[CrmTrip]:
        raise CrmUnavailableError("bookings endpoint down")


class FailingCreateCrmClient(InMemoryCrmClient):
    async def create_customer(self, phone: str, first_name: str, last_name: str) -> CrmCustomer:
        raise CrmUnavailableError("create endpoint down")


@pytest.fixture
def memory_store():
    return InMemoryMemoryStore()


@pytest.fixture
def crm_client():
    return InMemoryCrmClient()


@pytest.fixture
def templates():
    return GreetingTemplates(business_name="High Mountain Taxi", agent_name="Claire")


@pytest.fixture
def make_orchestrator(templates):
    def factory(memory_store, crm_client, **lookup_overrides: Any) -> LookupOrchestrator:
        return LookupOrchestrator(
            memory_store,
            crm_client,
            config=make_config(**lookup_overrides),
            templates=templates,
            clock=lambda: NOW,
        )

    return factory
