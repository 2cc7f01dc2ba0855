"""One-line descriptions of a caller's recent calls for the voice agent."""

from datetime import datetime

from callcab.schemas.memory_schema import CallerBehavior, CallOutcome, CallRecord, CallSummary
from callcab.utils import describe_elapsed, hours_since


def describe_outcome(record: CallRecord) -> str:
    pickup = record.last_pickup.address if record.last_pickup else "pickup"
    dropoff = record.last_dropoff.address if record.last_dropoff else "destination"
    if record.outcome == CallOutcome.BOOKING_CREATED:
        return f"Booked {pickup} to {dropoff}"
    if record.outcome == CallOutcome.BOOKING_MODIFIED:
        return "Modified existing booking"
    if record.outcome == CallOutcome.BOOKING_CANCELLED:
        return "Cancelled booking"
    if record.outcome == CallOutcome.DROPPED_CALL:
        return f"Call dropped during {record.conversation_state or 'conversation'}"
    if record.outcome == CallOutcome.INFO_PROVIDED:
        return "Asked for information"
    return "Call completed"


def summarize_call(record: CallRecord, now: datetime) -> CallSummary:
    """E.g. ``"2 hours ago: Booked Aspen Airport to Hotel Jerome (friendly)"``."""
    hours_ago = hours_since(record.timestamp, now)
    summary = f"{describe_elapsed(hours_ago)}: {describe_outcome(record)}"
    if record.behavior != CallerBehavior.NEUTRAL:
        summary += f" ({record.behavior.value})"
    return CallSummary(
        timestamp=record.timestamp,
        hours_ago=round(hours_ago, 2),
        summary=summary,
        outcome=record.outcome,
        pickup=record.last_pickup.address if record.last_pickup else None,
        dropoff=record.last_dropoff.address if record.last_dropoff else None,
        behavior=record.behavior,
    )


def build_call_summaries(
    records: list[CallRecord], now: datetime, limit: int = 3
) -> list[CallSummary]:
    """Summaries of the newest ``limit`` records, newest first."""
    newest = sorted(records, key=lambda r: r.timestamp, reverse=True)[:limit]
    return [summarize_call(record, now) for record in newest]
