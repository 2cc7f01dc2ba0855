"""
Greeting scenario selection.

A pure, total decision list over the profile, the caller's live CRM trips
and the latest call record. Rules are checked in precedence order and the
first match wins; ``new_customer`` is the unconditional last rule.

The output is structured parameters, never a finished sentence: the
template table renders them in whichever supported language was chosen.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from callcab.config import AppConfig
from callcab.schemas.crm_schema import CrmTrip
from callcab.schemas.lookup_schema import (
    CustomerProfile,
    GreetingDecision,
    GreetingScenario,
    ProfileSource,
    ResumeStep,
)
from callcab.schemas.memory_schema import CallOutcome, CallRecord, CollectedInfo
from callcab.utils import ensure_utc, format_local_text, hours_since

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GreetingRules:
    """Thresholds the decision list is evaluated against."""

    callback_window_hours: float = 2.0
    dropped_call_window_hours: float = 1.0
    active_trip_lookback_minutes: int = 30
    active_trip_lookahead_hours: int = 24
    active_statuses: tuple[str, ...] = (
        "new", "assigned", "accepted", "picked_up", "dispatched",
        "pending", "prebooked", "enroute", "arrived",
    )
    supported_languages: tuple[str, ...] = (
        "english", "spanish", "portuguese", "german", "french",
    )
    local_timezone: str = "America/Denver"

    @classmethod
    def from_config(cls, config: AppConfig) -> "GreetingRules":
        return cls(
            callback_window_hours=config.lookup.callback_window_hours,
            dropped_call_window_hours=config.lookup.dropped_call_window_hours,
            active_trip_lookback_minutes=config.lookup.active_trip_lookback_minutes,
            active_trip_lookahead_hours=config.lookup.active_trip_lookahead_hours,
            active_statuses=config.lookup.active_trip_statuses,
            supported_languages=config.lookup.supported_languages,
            local_timezone=config.business.local_timezone,
        )


def find_active_trip(
    trips: list[CrmTrip], now: datetime, rules: GreetingRules
) -> Optional[CrmTrip]:
    """Earliest trip with an active status and a pickup close to now."""
    now = ensure_utc(now)
    earliest = now - timedelta(minutes=rules.active_trip_lookback_minutes)
    latest = now + timedelta(hours=rules.active_trip_lookahead_hours)
    active = [
        trip for trip in trips
        if trip.status.lower() in rules.active_statuses
        and earliest < trip.pickup_time < latest
    ]
    return min(active, key=lambda t: t.pickup_time) if active else None


def resolve_language(profile: CustomerProfile, rules: GreetingRules) -> str:
    language = (profile.preferred_language or "").lower()
    return language if language in rules.supported_languages else "english"


def resume_step(collected: CollectedInfo) -> ResumeStep:
    """Next question after a dropped call, from what was captured before it."""
    if collected.has_pickup and not collected.has_destination:
        return ResumeStep.ASK_DESTINATION
    if collected.has_destination and not collected.has_pickup:
        return ResumeStep.ASK_PICKUP
    if collected.has_pickup and collected.has_destination and not collected.has_time:
        return ResumeStep.CONFIRM_RIDE
    return ResumeStep.WHERE_WERE_WE


def _active_trip_params(trip: CrmTrip, now: datetime, rules: GreetingRules) -> dict[str, Any]:
    return {
        "trip_id": trip.trip_id,
        "status": trip.status,
        "pickup_address": trip.pickup_address,
        "destination_address": trip.destination_address,
        "pickup_time": trip.pickup_time.isoformat(),
        "pickup_time_human": format_local_text(trip.pickup_time, rules.local_timezone, now),
        "driver_name": trip.driver.name if trip.driver else None,
    }


def _is_callback(latest: CallRecord, age_hours: float, rules: GreetingRules) -> bool:
    return (
        latest.outcome == CallOutcome.BOOKING_CREATED
        and latest.last_dropoff is not None
        and bool(latest.last_dropoff.address.strip())
        and age_hours < rules.callback_window_hours
    )


def select_greeting(
    profile: CustomerProfile,
    trips: list[CrmTrip],
    latest: Optional[CallRecord],
    now: datetime,
    rules: Optional[GreetingRules] = None,
) -> GreetingDecision:
    """Pick the greeting scenario for this caller. Always returns a decision."""
    rules = rules or GreetingRules()
    language = resolve_language(profile, rules)
    name = profile.preferred_name

    def decide(scenario: GreetingScenario, **params: Any) -> GreetingDecision:
        logger.info("Greeting scenario: %s (%s)", scenario.value, language)
        return GreetingDecision(
            scenario=scenario, language=language, params={"name": name, **params}
        )

    trip = find_active_trip(trips, now, rules)
    if trip is not None:
        return decide(GreetingScenario.ACTIVE_TRIP, **_active_trip_params(trip, now, rules))

    age_hours = hours_since(latest.timestamp, now) if latest else None

    if latest and _is_callback(latest, age_hours, rules):
        return decide(
            GreetingScenario.CALLBACK,
            last_dropoff=latest.last_dropoff.address,
            last_dropoff_lat=latest.last_dropoff.lat,
            last_dropoff_lng=latest.last_dropoff.lng,
            last_trip_id=latest.last_trip_id,
        )

    if latest and latest.was_dropped and age_hours < rules.dropped_call_window_hours:
        collected = latest.collected_info
        return decide(
            GreetingScenario.DROPPED_CALL,
            resume_step=resume_step(collected).value,
            pickup_address=collected.pickup_address,
            destination_address=collected.destination_address,
            conversation_state=latest.conversation_state,
        )

    if latest and latest.trip_discussion:
        return decide(GreetingScenario.TRIP_DISCUSSION, trip_discussion=latest.trip_discussion)

    if (
        profile.preferred_pickup_address
        and profile.preferred_pickup_address_source == ProfileSource.MEMORY
    ):
        return decide(
            GreetingScenario.PREFERRED_ADDRESS,
            preferred_pickup_address=profile.preferred_pickup_address,
        )

    if (
        profile.preferred_pickup_address
        and profile.preferred_pickup_address_source == ProfileSource.CRM
    ):
        return decide(
            GreetingScenario.PRIMARY_ADDRESS,
            primary_address=profile.preferred_pickup_address,
        )

    if name:
        return decide(GreetingScenario.KNOWN_CUSTOMER)

    return decide(GreetingScenario.NEW_CUSTOMER)
