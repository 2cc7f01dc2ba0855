"""
Customer lookup orchestration.

One lookup resolves the caller's phone, reads the call-memory store and the
dispatch CRM concurrently, optionally creates a CRM customer, and turns the
merged profile into a greeting decision plus rendered text.

Each source runs under its own timeout. A source that times out or fails is
marked degraded and treated as empty; the lookup itself still succeeds.
Address and trip reads for a found CRM customer have a separate timeout and
only ever lose their own data.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from callcab.config import AppConfig, settings
from callcab.context.call_summaries import build_call_summaries
from callcab.context.greeting_selector import GreetingRules, find_active_trip, select_greeting
from callcab.context.preferences import aggregate_preferences
from callcab.context.profile_builder import (
    build_profile,
    needs_crm_creation,
    primary_address,
    split_spoken_name,
)
from callcab.context.situational import build_situational_context
from callcab.logging_context import bind_lookup, get_call_logger
from callcab.prompts.greeting_templates import GreetingTemplates
from callcab.schemas.crm_schema import CrmAddress, CrmCustomer, CrmTrip
from callcab.schemas.lookup_schema import (
    ActiveTripSummary,
    CrmSection,
    GreetingSection,
    LastDropoffCoords,
    LookupRequest,
    LookupResponse,
    MemorySection,
    SourceStatus,
)
from callcab.schemas.memory_schema import CallRecord, PreferenceSet
from callcab.tools.crm_client import CrmClient, CrmError
from callcab.tools.memory_store import MemoryStore, MemoryStoreError
from callcab.tools.registry import create_crm_client, create_memory_store
from callcab.utils import (
    UnresolvablePhoneError,
    format_local_text,
    hours_since,
    normalize_phone,
    utc_now,
)

logger = get_call_logger(__name__)

T = TypeVar("T")

SOURCE_ERRORS = (MemoryStoreError, CrmError)


class InvalidLookupRequest(ValueError):
    """The request cannot be looked up; ``code`` is the client-facing error."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class MemoryFetch:
    latest: Optional[CallRecord] = None
    records: list[CallRecord] = field(default_factory=list)
    degraded: bool = False

    @property
    def found(self) -> bool:
        return self.latest is not None


@dataclass
class CrmFetch:
    customer: Optional[CrmCustomer] = None
    addresses: list[CrmAddress] = field(default_factory=list)
    trips: list[CrmTrip] = field(default_factory=list)
    degraded: bool = False


class LookupOrchestrator:
    """Answers "who is calling and how do we greet them?" for one phone.

    Backends, templates and the clock are injected, so the orchestrator
    holds no state between lookups.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        crm_client: CrmClient,
        config: Optional[AppConfig] = None,
        templates: Optional[GreetingTemplates] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.memory_store = memory_store
        self.crm_client = crm_client
        self.config = config or settings
        self.templates = templates or GreetingTemplates.from_config(self.config.business)
        self.rules = GreetingRules.from_config(self.config)
        self._clock = clock

    async def _guarded(
        self, source: str, fetch: Awaitable[T], timeout: float
    ) -> tuple[Optional[T], bool]:
        """Await one source fetch; return (result, degraded)."""
        try:
            return await asyncio.wait_for(fetch, timeout), False
        except asyncio.TimeoutError:
            logger.warning("%s lookup timed out after %.1fs", source, timeout)
        except SOURCE_ERRORS as e:
            logger.warning("%s lookup failed: %s", source, e)
        except Exception:
            logger.exception("Unexpected %s lookup failure", source)
        return None, True

    async def _read_memory(self, phone: str) -> MemoryFetch:
        latest, history = await asyncio.gather(
            self.memory_store.get_latest(phone),
            self.memory_store.get_recent_history(phone, self.config.memory.history_limit),
        )
        records = list(history)
        if latest is not None and all(r.timestamp != latest.timestamp for r in records):
            records.append(latest)
        records.sort(key=lambda r: r.timestamp, reverse=True)
        # Index and latest key are written separately and can disagree.
        if latest is None and records:
            latest = records[0]
        return MemoryFetch(latest=latest, records=records)

    async def _read_detail(
        self, label: str, customer: CrmCustomer, fetch: Awaitable[list[T]]
    ) -> list[T]:
        """One address or trip read for a found customer; failures read as empty."""
        result, failed = await self._guarded(
            f"crm {label}", fetch, self.config.lookup.crm_detail_timeout_sec
        )
        if failed:
            logger.warning("Keeping CRM customer %s without %s", customer.id, label)
            return []
        return result

    async def _read_crm(self, phone: str) -> CrmFetch:
        customer, degraded = await self._guarded(
            "crm", self.crm_client.find_customer(phone), self.config.lookup.crm_timeout_sec
        )
        if degraded:
            return CrmFetch(degraded=True)
        if customer is None:
            return CrmFetch()
        if customer.banned:
            logger.warning("CRM customer %s is banned; skipping trips and addresses", customer.id)
            return CrmFetch(customer=customer)

        # The customer is known from here on; a slow or failing read loses
        # only its own data.
        addresses, trips = await asyncio.gather(
            self._read_detail(
                "addresses", customer,
                self.crm_client.get_address_history(phone, crm_phone=customer.phone),
            ),
            self._read_detail("trips", customer, self.crm_client.get_upcoming_trips(phone)),
        )
        return CrmFetch(customer=customer, addresses=addresses, trips=trips)

    async def _fetch_sources(self, phone: str) -> tuple[MemoryFetch, CrmFetch]:
        (memory, memory_degraded), crm = await asyncio.gather(
            self._guarded(
                "memory", self._read_memory(phone), self.config.lookup.memory_timeout_sec
            ),
            self._read_crm(phone),
        )
        memory = memory or MemoryFetch(degraded=memory_degraded)
        return memory, crm

    async def _create_customer(self, phone: str, spoken_name: str) -> Optional[CrmCustomer]:
        first_name, last_name = split_spoken_name(spoken_name)
        created, failed = await self._guarded(
            "crm create",
            self.crm_client.create_customer(phone, first_name, last_name),
            self.config.lookup.crm_timeout_sec,
        )
        if failed:
            logger.warning("Continuing without a CRM customer id")
        return created

    def _resolve_phone(self, request: LookupRequest) -> str:
        if not request.phone:
            raise InvalidLookupRequest("MISSING_PHONE", "Phone number is required")
        try:
            return normalize_phone(request.phone)
        except UnresolvablePhoneError as e:
            raise InvalidLookupRequest("INVALID_PHONE", str(e)) from e

    async def lookup(self, request: LookupRequest) -> LookupResponse:
        """Run one customer lookup.

        Raises:
            InvalidLookupRequest: the phone is missing or unresolvable.
        """
        started = time.perf_counter()
        bind_lookup(request.call_id, request.phone)
        phone = self._resolve_phone(request)
        bind_lookup(request.call_id, phone)
        now = self._clock()
        logger.info("Customer lookup started")

        memory, crm = await self._fetch_sources(phone)

        created = None
        if needs_crm_creation(crm.customer is not None, crm.degraded, request.name):
            created = await self._create_customer(phone, request.name)

        lookup = self.config.lookup
        preferences = (
            aggregate_preferences(
                memory.records,
                window_size=lookup.preference_window,
                pattern_min_uses=lookup.pattern_min_uses,
                max_jokes=lookup.max_jokes,
            )
            if memory.records
            else None
        )
        profile = build_profile(
            phone,
            preferences,
            crm.customer,
            crm.addresses,
            memory_found=memory.found,
            sources_answered=not (memory.degraded or crm.degraded),
            created_customer=created,
            spoken_name=request.name,
        )

        decision = select_greeting(profile, crm.trips, memory.latest, now, self.rules)
        active_trip = find_active_trip(crm.trips, now, self.rules)
        decision.situational = build_situational_context(
            [active_trip.destination_address if active_trip else None,
             profile.preferred_pickup_address],
            self.config.situational,
        )
        text = self.templates.render(decision)

        degraded = [
            name for name, fetch in (("memory", memory), ("crm", crm)) if fetch.degraded
        ]
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Customer lookup finished in %dms: scenario=%s new=%s degraded=%s",
            elapsed_ms, decision.scenario.value, profile.is_new_customer, degraded or "none",
        )

        return LookupResponse(
            profile=profile,
            memory=self._memory_section(memory, preferences, now),
            crm=self._crm_section(crm, created, active_trip, now),
            greeting=GreetingSection(
                scenario=decision.scenario,
                language=decision.language,
                text=text,
                context_params=decision.params,
            ),
            situational_context=decision.situational,
            degraded_sources=degraded,
            processing_time_ms=elapsed_ms,
        )

    def _memory_section(
        self, memory: MemoryFetch, preferences: Optional[PreferenceSet], now: datetime
    ) -> MemorySection:
        status = SourceStatus.DEGRADED if memory.degraded else SourceStatus.OK
        latest = memory.latest
        if latest is None:
            return MemorySection(status=status)

        dropoff = latest.last_dropoff
        section: dict[str, Any] = {
            "has_memory": True,
            "status": status,
            "last_call_at": latest.timestamp,
            "hours_since_last_call": round(hours_since(latest.timestamp, now), 2),
            "last_outcome": latest.outcome,
            "last_dropoff": dropoff.address if dropoff else None,
            "last_dropoff_coords": LastDropoffCoords(
                lat=dropoff.lat if dropoff else None,
                lng=dropoff.lng if dropoff else None,
            ),
            "behavior": latest.behavior,
            "priority_notes": latest.special_instructions,
            "operational_notes": latest.operational_notes,
            "conversation_state": latest.conversation_state,
            "recent_summaries": build_call_summaries(
                memory.records, now, self.config.lookup.recent_summary_count
            ),
            "total_recent": len(memory.records),
        }
        if preferences is not None:
            section.update(
                behavior_summary=preferences.behavior,
                conversation_topics=preferences.conversation_topics,
                jokes_shared=preferences.jokes_shared,
                personal_details=preferences.personal_details,
                relationship_context=preferences.relationship_context,
                trip_discussion=preferences.trip_discussion,
                pickup_basis=preferences.pickup_basis,
                records_considered=preferences.records_considered,
            )
        return MemorySection(**section)

    def _crm_section(
        self,
        crm: CrmFetch,
        created: Optional[CrmCustomer],
        active_trip: Optional[CrmTrip],
        now: datetime,
    ) -> CrmSection:
        record = crm.customer or created
        primary = primary_address(crm.addresses)
        trip_summary = None
        if active_trip is not None:
            trip_summary = ActiveTripSummary(
                trip_id=active_trip.trip_id,
                status=active_trip.status,
                pickup_address=active_trip.pickup_address,
                destination_address=active_trip.destination_address,
                pickup_time=active_trip.pickup_time,
                pickup_time_human=format_local_text(
                    active_trip.pickup_time, self.config.business.local_timezone, now
                ),
                driver_name=active_trip.driver.name if active_trip.driver else None,
            )
        return CrmSection(
            found=crm.customer is not None,
            status=SourceStatus.DEGRADED if crm.degraded else SourceStatus.OK,
            customer_id=record.id if record else None,
            created=created is not None,
            vip=record.vip if record else False,
            banned=record.banned if record else False,
            account=record.account if record else None,
            active_trip=trip_summary,
            primary_address=primary.formatted if primary else None,
            upcoming_trips_count=len(crm.trips),
        )

    async def aclose(self) -> None:
        await asyncio.gather(self.memory_store.aclose(), self.crm_client.aclose())


def build_orchestrator(config: Optional[AppConfig] = None) -> LookupOrchestrator:
    """Orchestrator wired to the backends named in configuration."""
    config = config or settings
    return LookupOrchestrator(
        memory_store=create_memory_store(config.memory.backend, config),
        crm_client=create_crm_client(config.crm_backend, config),
        config=config,
    )
