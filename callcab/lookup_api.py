"""
Tool-call entry point for the voice platform.

``lookup_master`` takes the raw JSON body of a tool call and returns an
HTTP-style (status, body) pair. Serving it over HTTP is left to whatever
web layer hosts the assistant.
"""

import logging
from typing import Any

from callcab.context.orchestrator import InvalidLookupRequest, LookupOrchestrator
from callcab.schemas.lookup_schema import LookupRequest

logger = logging.getLogger(__name__)


async def lookup_master(
    payload: dict[str, Any], orchestrator: LookupOrchestrator
) -> tuple[int, dict[str, Any]]:
    """Look up the caller in a tool-call body.

    Returns ``(400, {"ok": False, "error": ...})`` for a missing or
    unresolvable phone, otherwise ``(200, LookupResponse)`` as JSON.
    """
    if not isinstance(payload, dict):
        return 400, {"ok": False, "error": "MISSING_PHONE", "message": "Body must be an object"}

    request = LookupRequest.from_payload(payload)
    try:
        response = await orchestrator.lookup(request)
    except InvalidLookupRequest as e:
        logger.warning("Lookup rejected: %s (%s)", e.code, e)
        return 400, {"ok": False, "error": e.code, "message": str(e)}
    return 200, response.model_dump(mode="json")
