"""Per-lookup logging context for tracing a caller across modules.

The voice platform's call id and a masked caller number are attached to
every log record emitted through a call logger, so the memory fetch, the
CRM probes and the greeting decision of one lookup can be correlated.

Usage:
    from callcab.logging_context import get_call_logger, bind_lookup

    bind_lookup("call-abc123", "+13035550100")
    logger = get_call_logger(__name__)
    logger.info("Fetching sources")  # record.call_id == "call-abc123"
"""

import logging
from contextvars import ContextVar
from typing import Optional

from callcab.utils import mask_phone

_call_id: ContextVar[str] = ContextVar("call_id", default="NO_CALL_ID")
_caller: ContextVar[str] = ContextVar("caller", default="-")


def bind_lookup(call_id: Optional[str], phone: Optional[str] = None) -> None:
    """Bind the correlation id and caller for the current async context."""
    _call_id.set(call_id or "NO_CALL_ID")
    _caller.set(mask_phone(phone) if phone else "-")


def get_call_id() -> str:
    """Retrieve the current correlation ID."""
    return _call_id.get()


def get_caller() -> str:
    """Retrieve the masked caller number bound to this context."""
    return _caller.get()


class LookupContextFilter(logging.Filter):
    """Injects call_id and caller into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _call_id.get()  # type: ignore[attr-defined]
        record.caller = _caller.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """Return a logger with the LookupContextFilter attached.

    Formatters can then use ``%(call_id)s`` and ``%(caller)s``.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, LookupContextFilter) for f in logger.filters):
        logger.addFilter(LookupContextFilter())
    return logger
