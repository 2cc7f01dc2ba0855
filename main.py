"""
Caller lookup entry point.

Runs one lookup against the configured memory store and dispatch CRM and
prints the tool-call response as JSON.

Usage:
    python main.py --phone 970-555-0101
    python main.py --phone +19705550101 --name "Maria Lopez" --call-id abc123
    python main.py --phone 9705550101 --verbose
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from callcab.config import settings
from callcab.context.orchestrator import build_orchestrator
from callcab.logging_context import LookupContextFilter
from callcab.lookup_api import lookup_master

logger = logging.getLogger(__name__)


async def _run(payload: dict[str, Any]) -> int:
    orchestrator = build_orchestrator(settings)
    try:
        status, body = await lookup_master(payload, orchestrator)
    finally:
        await orchestrator.aclose()
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0 if status == 200 else 1


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Look up a caller and print the greeting decision."
    )
    parser.add_argument("--phone", type=str, required=True, help="Caller phone number.")
    parser.add_argument("--name", type=str, default=None, help="Name spoken by the caller.")
    parser.add_argument("--call-id", type=str, default=None, help="Voice platform call id.")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging with call correlation fields.",
    )
    args = parser.parse_args()

    if args.verbose:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s %(call_id)s %(caller)s: %(message)s"
        ))
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(logging.DEBUG)
        handler.addFilter(LookupContextFilter())

    payload: dict[str, Any] = {"phone": args.phone}
    if args.name:
        payload["name"] = args.name
    if args.call_id:
        payload["call"] = {"id": args.call_id}

    logger.info("Looking up caller via %s memory and %s CRM",
                settings.memory.backend, settings.crm_backend)
    sys.exit(asyncio.run(_run(payload)))


if __name__ == "__main__":
    main()
