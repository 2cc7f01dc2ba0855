"""Shared utilities: phone resolution and time formatting."""

import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

MIN_PHONE_DIGITS = 7
NANP_LOCAL_DIGITS = 10
INTERNATIONAL_PREFIXES = ("011", "00")
# Longest list equivalent_formats can return (NANP numbers).
MAX_EQUIVALENT_FORMATS = 4


class UnresolvablePhoneError(ValueError):
    """Raised when a caller-supplied phone cannot be turned into a canonical form."""


def digits_only(value: str) -> str:
    """Strip everything but digits.

    Examples:
        >>> digits_only("(303) 555-0100")
        '3035550100'
    """
    return re.sub(r"[^\d]", "", value)


def normalize_phone(value: Optional[str]) -> str:
    """Resolve a free-text phone number to its canonical ``+<digits>`` form.

    A bare 10-digit number is taken as North American and gets ``+1``; an
    11-digit number starting with ``1`` gets a leading ``+``. A leading ``00``
    or ``011`` dialing prefix is read as ``+``.

    Examples:
        >>> normalize_phone("303-555-0100")
        '+13035550100'
        >>> normalize_phone("0013035550100")
        '+13035550100'
        >>> normalize_phone("+44 20 7946 0958")
        '+442079460958'

    Raises:
        UnresolvablePhoneError: fewer than 7 digits and no ``+`` form.
    """
    raw = (value or "").strip()
    digits = digits_only(raw)
    if not digits:
        raise UnresolvablePhoneError(f"No digits in phone value {value!r}")

    if raw.startswith("+"):
        return "+" + digits

    for prefix in INTERNATIONAL_PREFIXES:
        if digits.startswith(prefix) and len(digits) - len(prefix) >= MIN_PHONE_DIGITS:
            return "+" + digits[len(prefix):]

    if len(digits) < MIN_PHONE_DIGITS:
        raise UnresolvablePhoneError(
            f"Phone value {value!r} has {len(digits)} digits, need at least {MIN_PHONE_DIGITS}"
        )
    if len(digits) == NANP_LOCAL_DIGITS:
        return "+1" + digits
    return "+" + digits


def is_nanp(canonical: str) -> bool:
    """True for a canonical North American number (``+1`` and ten digits)."""
    digits = digits_only(canonical)
    return len(digits) == NANP_LOCAL_DIGITS + 1 and digits.startswith("1")


def equivalent_formats(canonical: str) -> list[str]:
    """Representations of one number used by other systems, in probe order.

    The canonical form always comes first. The order is fixed so CRM probes
    and their log traces are reproducible.

    Examples:
        >>> equivalent_formats("+13035550100")
        ['+13035550100', '3035550100', '13035550100', '0013035550100']
    """
    digits = digits_only(canonical)
    if is_nanp(canonical):
        local = digits[1:]
        candidates = [f"+{digits}", local, digits, f"00{digits}"]
    else:
        candidates = [f"+{digits}", digits, f"00{digits}"]
    return list(dict.fromkeys(candidates))


def international_format(canonical: str) -> str:
    """The ``00``-prefixed dialing form, as expected by iCabbi booking lookups."""
    return "00" + digits_only(canonical)


def mask_phone(phone: str) -> str:
    """Mask all but the last four digits for logging.

    Examples:
        >>> mask_phone("+13035550100")
        '***0100'
    """
    digits = digits_only(phone)
    return "***" + digits[-4:] if len(digits) > 4 else "***"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hours_since(timestamp: datetime, now: Optional[datetime] = None) -> float:
    """Hours elapsed between ``timestamp`` and ``now`` (negative if in the future)."""
    now = ensure_utc(now or utc_now())
    return (now - ensure_utc(timestamp)).total_seconds() / 3600


def describe_elapsed(hours: float) -> str:
    """Rough spoken-style age of an event: minutes, hours, or days ago."""
    if hours < 1:
        return f"{round(hours * 60)} minutes ago"
    if hours < 24:
        return f"{round(hours)} hours ago"
    return f"{round(hours / 24)} days ago"


def format_local_text(
    when: datetime, tz_name: str, now: Optional[datetime] = None
) -> str:
    """Human-friendly local pickup time, relative to today where possible.

    Examples: ``"today at 3:30 PM (Mon, Oct 19)"``, ``"Wed, Oct 21 at 9:05 AM"``.
    """
    tz = ZoneInfo(tz_name)
    local = ensure_utc(when).astimezone(tz)
    today = ensure_utc(now or utc_now()).astimezone(tz).date()

    time_label = local.strftime("%I:%M %p").lstrip("0")
    date_label = f"{local.strftime('%a, %b')} {local.day}"

    day_offset = (local.date() - today).days
    relative = {0: "today", 1: "tomorrow"}.get(day_offset)
    if relative:
        return f"{relative} at {time_label} ({date_label})"
    return f"{date_label} at {time_label}"
