from callcab.context.greeting_selector import GreetingRules, find_active_trip, select_greeting
from callcab.context.orchestrator import (
    InvalidLookupRequest,
    LookupOrchestrator,
    build_orchestrator,
)
from callcab.context.preferences import aggregate_preferences
from callcab.context.profile_builder import build_profile
from callcab.context.situational import build_situational_context

__all__ = [
    "LookupOrchestrator",
    "InvalidLookupRequest",
    "build_orchestrator",
    "aggregate_preferences",
    "build_profile",
    "GreetingRules",
    "find_active_trip",
    "select_greeting",
    "build_situational_context",
]
