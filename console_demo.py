"""
Offline console demo: runs customer lookups without Redis or iCabbi.

Seeds in-memory backends with a handful of callers and shows the greeting,
profile and hints the voice agent would receive for each. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario dropped
    python console_demo.py --scenario crm_down
"""

import argparse
import asyncio
import json
from datetime import datetime, timedelta
from typing import Any

from callcab.config import settings
from callcab.context.orchestrator import LookupOrchestrator
from callcab.lookup_api import lookup_master
from callcab.schemas.crm_schema import CrmAddress, CrmCustomer, CrmTrip
from callcab.schemas.memory_schema import CallRecord
from callcab.tools.crm_client import InMemoryCrmClient
from callcab.tools.memory_store import InMemoryMemoryStore
from callcab.utils import utc_now

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

RETURNING = "+19705550101"
DROPPED = "+19705550102"
ACTIVE = "+19705550103"
PRIMARY = "+19705550104"
NEW = "+19705550199"


def _seed_memory(now: datetime) -> InMemoryMemoryStore:
    store = InMemoryMemoryStore()
    for days, pickup in ((9, "Hotel Jerome"), (4, "Hotel Jerome"), (1, "Aspen Airport")):
        store.add_record(CallRecord.model_validate({
            "phone": RETURNING,
            "timestamp": now - timedelta(days=days),
            "outcome": "booking_created",
            "behavior": "friendly",
            "last_pickup": pickup,
            "last_dropoff": "Snowmass Village Mall",
            "preferred_name": "Maria",
            "preferred_language": "spanish",
            "jokes_shared": "the one about the ski lift",
        }))
    store.add_record(CallRecord.model_validate({
        "phone": DROPPED,
        "timestamp": now - timedelta(minutes=12),
        "outcome": "dropped_call",
        "conversation_state": "collecting destination",
        "preferred_name": "Tom",
        "collected_info": {"has_pickup": True, "pickup_address": "The Little Nell"},
    }))
    return store


def _seed_crm(now: datetime) -> InMemoryCrmClient:
    return InMemoryCrmClient([
        CrmCustomer(
            id="ICB-2001",
            phone=ACTIVE,
            name="Priya Raman",
            first_name="Priya",
            trips=[CrmTrip(
                trip_id="T-88121",
                status="DISPATCHED",
                pickup_time=now + timedelta(hours=2),
                pickup_address="St. Regis Aspen",
                destination_address="Aspen/Pitkin County Airport",
            )],
        ),
        CrmCustomer(
            id="ICB-2002",
            phone=PRIMARY,
            name="Sam Whitaker",
            addresses=[
                CrmAddress(formatted="120 Highlands Rd", used=14),
                CrmAddress(formatted="Buttermilk Base", used=3),
            ],
        ),
    ])


class ConsoleSession:
    """Runs lookups against seeded in-memory backends and prints the results."""

    SCENARIOS: dict[str, dict[str, Any]] = {
        "returning": {"phone": "970-555-0101"},
        "dropped": {"customer": {"number": "(970) 555-0102"}},
        "active_trip": {"call": {"id": "demo-call-3", "customer": {"number": "9705550103"}}},
        "primary_address": {"phone": "0019705550104"},
        "new": {"phone": NEW, "name": "Alex Morgan"},
        "crm_down": {"phone": "970-555-0101"},
        "invalid": {"phone": "12345"},
    }

    def __init__(self, crm_down: bool = False) -> None:
        now = utc_now()
        self.memory = _seed_memory(now)
        self.crm = _seed_crm(now)
        self.crm.unavailable = crm_down
        self.orchestrator = LookupOrchestrator(self.memory, self.crm, settings)

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.business.agent_name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def lookup(self, payload: dict[str, Any]) -> None:
        print(f"\n{BLUE}[Tool call]{RESET} {json.dumps(payload)}")
        status, body = await lookup_master(payload, self.orchestrator)
        if status != 200:
            print(f"{RED}  {status} {body['error']}: {body.get('message')}{RESET}")
            return

        greeting = body["greeting"]
        profile = body["profile"]
        self.agent_say(greeting["text"])
        self.system_log(f"Scenario: {greeting['scenario']} ({greeting['language']})")
        self.system_log(
            f"Profile: name={profile['preferred_name']} "
            f"[{profile['preferred_name_source']}], "
            f"pickup={profile['preferred_pickup_address']} "
            f"[{profile['preferred_pickup_address_source']}], "
            f"new={profile['is_new_customer']}"
        )
        for summary in body["memory"]["recent_summaries"]:
            self.system_log(f"Recent: {summary['summary']}")
        hints = [k for k, v in body["situational_context"].items() if v is True]
        if hints:
            self.system_log(f"Hints: {', '.join(hints)}")
        if body["degraded_sources"]:
            print(f"{YELLOW}  >> Degraded: {', '.join(body['degraded_sources'])}{RESET}")
        self.system_log(f"Processed in {body['processing_time_ms']}ms")

    async def run_scenario(self, scenario: str) -> None:
        """Play one scripted lookup."""
        payload = self.SCENARIOS.get(scenario)
        if payload is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CALLER LOOKUP - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        await self.lookup(payload)

    async def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CALLER LOOKUP - Console Demo{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}  Known numbers: {RETURNING} {DROPPED} {ACTIVE} {PRIMARY}{RESET}")
        print(f"{BOLD}  Type 'quit' to exit{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        while True:
            phone = input(f"\n{BLUE}[Caller number] {RESET}").strip()
            if phone.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if not phone:
                continue
            name = input(f"{BLUE}[Spoken name, optional] {RESET}").strip()
            payload: dict[str, Any] = {"phone": phone}
            if name:
                payload["name"] = name
            await self.lookup(payload)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline caller lookup demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Play a scripted lookup instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession(crm_down=args.scenario == "crm_down")
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
