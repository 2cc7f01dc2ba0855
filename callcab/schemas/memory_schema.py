"""Call-memory records and the preferences derived from them."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from callcab.utils import ensure_utc

# Flat keys written by the call-ending subsystem that belong in the nested
# preferences block.
PREFERENCE_KEYS = (
    "preferred_name",
    "preferred_language",
    "preferred_pickup_address",
    "conversation_topics",
    "jokes_shared",
    "personal_details",
    "relationship_context",
)


class CallOutcome(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_MODIFIED = "booking_modified"
    BOOKING_CANCELLED = "booking_cancelled"
    DROPPED_CALL = "dropped_call"
    INFO_PROVIDED = "info_provided"
    CALL_COMPLETED = "call_completed"
    UNKNOWN = "unknown"


class CallerBehavior(str, Enum):
    POLITE = "polite"
    FRIENDLY = "friendly"
    GRATEFUL = "grateful"
    NEUTRAL = "neutral"
    IMPATIENT = "impatient"
    RUDE = "rude"
    CONFUSED = "confused"
    INTOXICATED = "intoxicated"


POSITIVE_BEHAVIORS = frozenset(
    {CallerBehavior.POLITE, CallerBehavior.FRIENDLY, CallerBehavior.GRATEFUL}
)
NEGATIVE_BEHAVIORS = frozenset(
    {
        CallerBehavior.RUDE,
        CallerBehavior.IMPATIENT,
        CallerBehavior.CONFUSED,
        CallerBehavior.INTOXICATED,
    }
)


class Location(BaseModel):
    """An address as spoken or booked, with optional coordinates."""

    model_config = ConfigDict(frozen=True)

    address: str
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)


class CollectedInfo(BaseModel):
    """Partial booking fields captured before a call dropped."""

    model_config = ConfigDict(frozen=True)

    has_pickup: bool = False
    has_destination: bool = False
    has_time: bool = False
    pickup_address: Optional[str] = None
    destination_address: Optional[str] = None
    passenger_count: Optional[int] = Field(default=None, ge=1, le=20)
    items_mentioned: Optional[str] = None


class CallPreferences(BaseModel):
    """Personal and preference details the caller shared on one call."""

    model_config = ConfigDict(frozen=True)

    preferred_name: Optional[str] = None
    preferred_language: Optional[str] = None
    preferred_pickup_address: Optional[str] = None
    conversation_topics: list[str] = Field(default_factory=list)
    jokes_shared: list[str] = Field(default_factory=list)
    personal_details: dict[str, Any] = Field(default_factory=dict)
    relationship_context: Optional[str] = None

    @field_validator("preferred_name", "preferred_pickup_address", "relationship_context")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("preferred_language")
    @classmethod
    def _normalize_language(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().lower() or None

    @field_validator("conversation_topics", "jokes_shared", mode="before")
    @classmethod
    def _coerce_text_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("personal_details", mode="before")
    @classmethod
    def _coerce_details(cls, value: Any) -> dict[str, Any]:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            return {"notes": value.strip()}
        return value


class CallRecord(BaseModel):
    """One historical call outcome, as appended by the call-ending subsystem."""

    model_config = ConfigDict(frozen=True)

    phone: str
    timestamp: datetime
    outcome: CallOutcome = CallOutcome.UNKNOWN
    behavior: CallerBehavior = CallerBehavior.NEUTRAL
    was_dropped: bool = False
    last_pickup: Optional[Location] = None
    last_dropoff: Optional[Location] = None
    last_trip_id: Optional[str] = None
    conversation_state: Optional[str] = None
    collected_info: CollectedInfo = Field(default_factory=CollectedInfo)
    trip_discussion: Optional[str] = None
    special_instructions: Optional[str] = None
    operational_notes: Optional[str] = None
    behavior_notes: Optional[str] = None
    preferences: CallPreferences = Field(default_factory=CallPreferences)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_fields(cls, data: Any) -> Any:
        """Accept the flat JSON shape stored in the memory KV."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        nested = dict(data.get("preferences") or {})
        for key in PREFERENCE_KEYS:
            if key in data:
                nested.setdefault(key, data.pop(key))
        data["preferences"] = nested

        for prefix in ("last_pickup", "last_dropoff"):
            value = data.get(prefix)
            lat = data.pop(f"{prefix}_lat", None)
            lng = data.pop(f"{prefix}_lng", None)
            if isinstance(value, str):
                data[prefix] = (
                    {"address": value, "lat": lat, "lng": lng} if value.strip() else None
                )

        if data.get("collected_info") is None:
            data.pop("collected_info", None)
        if data.get("outcome") == CallOutcome.DROPPED_CALL.value:
            data["was_dropped"] = True
        return data

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("outcome", mode="before")
    @classmethod
    def _unknown_outcome(cls, value: Any) -> CallOutcome:
        if isinstance(value, CallOutcome):
            return value
        try:
            return CallOutcome(str(value or "").strip().lower())
        except ValueError:
            return CallOutcome.UNKNOWN

    @field_validator("behavior", mode="before")
    @classmethod
    def _unknown_behavior(cls, value: Any) -> CallerBehavior:
        if isinstance(value, CallerBehavior):
            return value
        try:
            return CallerBehavior(str(value or "").strip().lower())
        except ValueError:
            return CallerBehavior.NEUTRAL

    @field_validator("trip_discussion", "special_instructions", "operational_notes")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class BehaviorSummary(BaseModel):
    """Counts of positive and negative caller behavior over recent calls."""

    positive: int = 0
    negative: int = 0
    total: int = 0


class PickupBasis(str, Enum):
    EXPLICIT = "explicit"
    PATTERN = "pattern"


class PreferenceSet(BaseModel):
    """Durable preferences derived fresh from recent call records."""

    preferred_name: Optional[str] = None
    preferred_language: str = "english"
    language_stated: bool = False
    preferred_pickup_address: Optional[str] = None
    pickup_basis: Optional[PickupBasis] = None
    conversation_topics: list[str] = Field(default_factory=list)
    jokes_shared: list[str] = Field(default_factory=list)
    personal_details: dict[str, Any] = Field(default_factory=dict)
    trip_discussion: Optional[str] = None
    relationship_context: Optional[str] = None
    behavior: BehaviorSummary = Field(default_factory=BehaviorSummary)
    records_considered: int = 0


class CallSummary(BaseModel):
    """Short description of one past call for the voice agent's context."""

    timestamp: datetime
    hours_ago: float
    summary: str
    outcome: CallOutcome
    pickup: Optional[str] = None
    dropoff: Optional[str] = None
    behavior: CallerBehavior
