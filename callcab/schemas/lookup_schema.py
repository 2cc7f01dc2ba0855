"""Customer profile, greeting decision and the lookup request/response models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from callcab.schemas.crm_schema import CrmAccount
from callcab.schemas.memory_schema import (
    BehaviorSummary,
    CallerBehavior,
    CallOutcome,
    CallSummary,
    PickupBasis,
)


class ProfileSource(str, Enum):
    """Where a profile field came from."""

    MEMORY = "memory"
    CRM = "crm"
    REQUEST = "request"
    DEFAULT = "default"


class SourceStatus(str, Enum):
    """Whether a backing source answered during this lookup."""

    OK = "ok"
    DEGRADED = "degraded"


class GreetingScenario(str, Enum):
    """Greeting situations, in precedence order."""

    ACTIVE_TRIP = "active_trip"
    CALLBACK = "callback"
    DROPPED_CALL = "dropped_call"
    TRIP_DISCUSSION = "trip_discussion"
    PREFERRED_ADDRESS = "preferred_address"
    PRIMARY_ADDRESS = "primary_address"
    KNOWN_CUSTOMER = "known_customer"
    NEW_CUSTOMER = "new_customer"


class ResumeStep(str, Enum):
    """What to ask next when picking up a dropped call."""

    ASK_DESTINATION = "ask_destination"
    ASK_PICKUP = "ask_pickup"
    CONFIRM_RIDE = "confirm_ride"
    WHERE_WERE_WE = "where_were_we"


class CustomerProfile(BaseModel):
    """One merged view of the caller, with the source of each preference."""

    phone: str
    is_new_customer: bool = False
    preferred_name: Optional[str] = None
    preferred_name_source: Optional[ProfileSource] = None
    preferred_language: str = "english"
    preferred_language_source: ProfileSource = ProfileSource.DEFAULT
    preferred_pickup_address: Optional[str] = None
    preferred_pickup_address_source: Optional[ProfileSource] = None
    crm_customer_id: Optional[str] = None
    vip: bool = False
    banned: bool = False


class SituationalContext(BaseModel):
    """Hints for follow-up questions the agent may want to ask."""

    suggest_luggage_question: bool = False
    suggest_skis_question: bool = False
    suggest_mobility_question: bool = False
    matched_keywords: list[str] = Field(default_factory=list)


class GreetingDecision(BaseModel):
    """Selected scenario, language and the parameters a template needs."""

    scenario: GreetingScenario
    language: str
    params: dict[str, Any] = Field(default_factory=dict)
    situational: SituationalContext = Field(default_factory=SituationalContext)


class LookupRequest(BaseModel):
    """A tool call asking who is on the line."""

    phone: Optional[str] = None
    name: Optional[str] = None
    call_id: Optional[str] = None

    @classmethod
    def from_payload(cls, body: dict[str, Any]) -> "LookupRequest":
        """Pull phone, spoken name and call id out of a voice-platform tool call."""
        def section(parent: dict[str, Any], key: str) -> dict[str, Any]:
            value = parent.get(key)
            return value if isinstance(value, dict) else {}

        message = section(body, "message")
        call = section(body, "call") or section(message, "call")
        customer = section(body, "customer") or section(call, "customer")
        phone = body.get("phone") or customer.get("number") or message.get("phoneNumber")
        name = str(body.get("name") or customer.get("name") or "").strip()
        return cls(
            phone=str(phone) if phone else None,
            name=name or None,
            call_id=str(call["id"]) if call.get("id") else None,
        )


class LastDropoffCoords(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class MemorySection(BaseModel):
    has_memory: bool = False
    status: SourceStatus = SourceStatus.OK
    last_call_at: Optional[datetime] = None
    hours_since_last_call: Optional[float] = None
    last_outcome: Optional[CallOutcome] = None
    last_dropoff: Optional[str] = None
    last_dropoff_coords: LastDropoffCoords = Field(default_factory=LastDropoffCoords)
    behavior: Optional[CallerBehavior] = None
    priority_notes: Optional[str] = None
    operational_notes: Optional[str] = None
    conversation_state: Optional[str] = None
    recent_summaries: list[CallSummary] = Field(default_factory=list)
    behavior_summary: BehaviorSummary = Field(default_factory=BehaviorSummary)
    total_recent: int = 0
    conversation_topics: list[str] = Field(default_factory=list)
    jokes_shared: list[str] = Field(default_factory=list)
    personal_details: dict[str, Any] = Field(default_factory=dict)
    relationship_context: Optional[str] = None
    trip_discussion: Optional[str] = None
    pickup_basis: Optional[PickupBasis] = None
    records_considered: int = 0


class ActiveTripSummary(BaseModel):
    trip_id: str
    status: str
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    pickup_time: datetime
    pickup_time_human: str
    driver_name: Optional[str] = None


class CrmSection(BaseModel):
    found: bool = False
    status: SourceStatus = SourceStatus.OK
    customer_id: Optional[str] = None
    created: bool = False
    vip: bool = False
    banned: bool = False
    account: Optional[CrmAccount] = None
    active_trip: Optional[ActiveTripSummary] = None
    primary_address: Optional[str] = None
    upcoming_trips_count: int = 0


class GreetingSection(BaseModel):
    scenario: GreetingScenario
    language: str
    text: str
    context_params: dict[str, Any] = Field(default_factory=dict)


class LookupResponse(BaseModel):
    """Everything the voice agent needs to open the call."""

    ok: bool = True
    profile: CustomerProfile
    memory: MemorySection
    crm: CrmSection
    greeting: GreetingSection
    situational_context: SituationalContext
    degraded_sources: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0
