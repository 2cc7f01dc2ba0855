"""
Preference aggregation over a caller's recent call records.

Preferences are recomputed on every lookup from the newest records and
never stored on their own. Each rule below is independent and reads the
records newest first; the window is the newest ``window`` records, except
for pickup pattern detection which looks at all available history.
"""

import logging
from collections import Counter
from typing import Any, Optional

from callcab.schemas.memory_schema import (
    NEGATIVE_BEHAVIORS,
    POSITIVE_BEHAVIORS,
    BehaviorSummary,
    CallRecord,
    PickupBasis,
    PreferenceSet,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "english"
DEFAULT_WINDOW = 5
DEFAULT_PATTERN_MIN_USES = 2
DEFAULT_MAX_JOKES = 3


def resolve_preferred_name(window: list[CallRecord]) -> Optional[str]:
    """Newest non-empty preferred name. Names are never merged across calls."""
    for record in window:
        if record.preferences.preferred_name:
            return record.preferences.preferred_name
    return None


def resolve_preferred_language(window: list[CallRecord]) -> tuple[str, bool]:
    """Language from the newest record that states one.

    A newer "english" clears an older non-English preference. Returns the
    language and whether any record stated one at all.
    """
    for record in window:
        language = record.preferences.preferred_language
        if language:
            return language, True
    return DEFAULT_LANGUAGE, False


def _address_key(address: str) -> str:
    return " ".join(address.lower().split())


def detect_pickup_pattern(
    records: list[CallRecord], min_uses: int = DEFAULT_PATTERN_MIN_USES
) -> Optional[str]:
    """Most frequent pickup address used at least ``min_uses`` times.

    Ties go to the address used most recently. Returns the address text as
    it was spoken on its most recent use.
    """
    counts: Counter[str] = Counter()
    latest_text: dict[str, str] = {}
    latest_position: dict[str, int] = {}

    for position, record in enumerate(records):
        if record.last_pickup is None or not record.last_pickup.address.strip():
            continue
        key = _address_key(record.last_pickup.address)
        counts[key] += 1
        if key not in latest_position:
            latest_position[key] = position
            latest_text[key] = record.last_pickup.address.strip()

    candidates = [key for key, count in counts.items() if count >= min_uses]
    if not candidates:
        return None
    best = min(candidates, key=lambda key: (-counts[key], latest_position[key]))
    logger.debug("Pickup pattern detected: used %d times", counts[best])
    return latest_text[best]


def resolve_preferred_pickup_address(
    window: list[CallRecord],
    history: list[CallRecord],
    min_uses: int = DEFAULT_PATTERN_MIN_USES,
) -> tuple[Optional[str], Optional[PickupBasis]]:
    """Explicit preference first; otherwise a corroborated usage pattern."""
    for record in window:
        if record.preferences.preferred_pickup_address:
            return record.preferences.preferred_pickup_address, PickupBasis.EXPLICIT
    pattern = detect_pickup_pattern(history, min_uses)
    if pattern:
        return pattern, PickupBasis.PATTERN
    return None, None


def merge_conversation_topics(window: list[CallRecord]) -> list[str]:
    """Ordered union of topics, newest first, case-insensitively deduplicated."""
    seen: set[str] = set()
    topics: list[str] = []
    for record in window:
        for topic in record.preferences.conversation_topics:
            if topic.lower() not in seen:
                seen.add(topic.lower())
                topics.append(topic)
    return topics


def collect_jokes(window: list[CallRecord], limit: int = DEFAULT_MAX_JOKES) -> list[str]:
    jokes = [joke for record in window for joke in record.preferences.jokes_shared]
    return jokes[:limit]


def merge_personal_details(window: list[CallRecord]) -> dict[str, Any]:
    """Shallow merge applied oldest to newest, so newer calls win on collisions."""
    merged: dict[str, Any] = {}
    for record in reversed(window):
        merged.update(record.preferences.personal_details)
    return merged


def _first_text(values: list[Optional[str]]) -> Optional[str]:
    return next((value for value in values if value), None)


def summarize_behavior(window: list[CallRecord]) -> BehaviorSummary:
    return BehaviorSummary(
        positive=sum(1 for r in window if r.behavior in POSITIVE_BEHAVIORS),
        negative=sum(1 for r in window if r.behavior in NEGATIVE_BEHAVIORS),
        total=len(window),
    )


def aggregate_preferences(
    records: list[CallRecord],
    window_size: int = DEFAULT_WINDOW,
    pattern_min_uses: int = DEFAULT_PATTERN_MIN_USES,
    max_jokes: int = DEFAULT_MAX_JOKES,
) -> PreferenceSet:
    """Derive one PreferenceSet from a caller's records.

    Args:
        records: All available records for one phone, in any order.
        window_size: How many of the newest records the per-call rules read.
        pattern_min_uses: Uses needed before a pickup address counts as a habit.
        max_jokes: Cap on remembered jokes.
    """
    history = sorted(records, key=lambda r: r.timestamp, reverse=True)
    window = history[:window_size]

    language, language_stated = resolve_preferred_language(window)
    pickup, basis = resolve_preferred_pickup_address(window, history, pattern_min_uses)

    return PreferenceSet(
        preferred_name=resolve_preferred_name(window),
        preferred_language=language,
        language_stated=language_stated,
        preferred_pickup_address=pickup,
        pickup_basis=basis,
        conversation_topics=merge_conversation_topics(window),
        jokes_shared=collect_jokes(window, max_jokes),
        personal_details=merge_personal_details(window),
        trip_discussion=_first_text([r.trip_discussion for r in window]),
        relationship_context=_first_text(
            [r.preferences.relationship_context for r in window]
        ),
        behavior=summarize_behavior(window),
        records_considered=len(window),
    )
