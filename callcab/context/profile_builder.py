"""
Customer profile assembly.

This is the only place where memory-derived preferences and CRM data are
combined. For name, language and pickup address a non-empty memory value
always wins; the CRM value fills in only where memory is empty. What the
caller told the agent is never overridden by operational CRM data.
"""

import logging
from typing import Optional

from callcab.schemas.crm_schema import CrmAddress, CrmCustomer
from callcab.schemas.lookup_schema import CustomerProfile, ProfileSource
from callcab.schemas.memory_schema import PreferenceSet

logger = logging.getLogger(__name__)


def primary_address(addresses: list[CrmAddress]) -> Optional[CrmAddress]:
    """Highest-usage CRM address that has actually been used."""
    used = [a for a in addresses if a.used >= 1]
    if not used:
        return None
    return max(used, key=lambda a: a.used)


def resolve_profile_name(
    preferences: Optional[PreferenceSet],
    crm_customer: Optional[CrmCustomer],
    spoken_name: Optional[str] = None,
) -> tuple[Optional[str], Optional[ProfileSource]]:
    """Memory, then CRM, then the name spoken on this call."""
    if preferences and preferences.preferred_name:
        return preferences.preferred_name, ProfileSource.MEMORY
    if crm_customer and crm_customer.spoken_name:
        return crm_customer.spoken_name, ProfileSource.CRM
    if spoken_name:
        return spoken_name.split()[0], ProfileSource.REQUEST
    return None, None


def resolve_profile_language(
    preferences: Optional[PreferenceSet],
) -> tuple[str, ProfileSource]:
    """The CRM holds no language, so memory or the default decides."""
    if preferences and preferences.language_stated:
        return preferences.preferred_language, ProfileSource.MEMORY
    return "english", ProfileSource.DEFAULT


def resolve_profile_pickup_address(
    preferences: Optional[PreferenceSet],
    crm_addresses: list[CrmAddress],
) -> tuple[Optional[str], Optional[ProfileSource]]:
    """Memory preference first, then the CRM primary address."""
    if preferences and preferences.preferred_pickup_address:
        return preferences.preferred_pickup_address, ProfileSource.MEMORY
    primary = primary_address(crm_addresses)
    if primary:
        return primary.formatted, ProfileSource.CRM
    return None, None


def needs_crm_creation(
    crm_found: bool, crm_degraded: bool, spoken_name: Optional[str]
) -> bool:
    """Whether the orchestrator should create a CRM customer for this caller.

    Only when the CRM answered a clean "not found" and the caller gave a name.
    An unreachable CRM never triggers creation.
    """
    return not crm_found and not crm_degraded and bool(spoken_name and spoken_name.strip())


def split_spoken_name(spoken_name: str) -> tuple[str, str]:
    """First word is the first name; the rest, or the first name again, the last."""
    parts = spoken_name.split()
    first = parts[0]
    last = " ".join(parts[1:]) or first
    return first, last


def build_profile(
    phone: str,
    preferences: Optional[PreferenceSet],
    crm_customer: Optional[CrmCustomer],
    crm_addresses: list[CrmAddress],
    *,
    memory_found: bool,
    sources_answered: bool,
    created_customer: Optional[CrmCustomer] = None,
    spoken_name: Optional[str] = None,
) -> CustomerProfile:
    """Merge memory preferences and CRM data into one profile.

    Args:
        phone: Canonical caller phone.
        preferences: Aggregated memory preferences, None without memory.
        crm_customer: Customer found in the CRM before any creation attempt.
        crm_addresses: Address history from the CRM.
        memory_found: Whether memory held any record for this phone.
        sources_answered: False if either source degraded; a caller is only
            declared new when both sources answered.
        created_customer: Customer created during this lookup, if any.
        spoken_name: Name the caller gave on this call.
    """
    is_new = not memory_found and crm_customer is None and sources_answered
    crm_record = crm_customer or created_customer

    name, name_source = resolve_profile_name(preferences, crm_record, spoken_name)
    language, language_source = resolve_profile_language(preferences)
    pickup, pickup_source = resolve_profile_pickup_address(preferences, crm_addresses)

    profile = CustomerProfile(
        phone=phone,
        is_new_customer=is_new,
        preferred_name=name,
        preferred_name_source=name_source,
        preferred_language=language,
        preferred_language_source=language_source,
        preferred_pickup_address=pickup,
        preferred_pickup_address_source=pickup_source,
        crm_customer_id=crm_record.id if crm_record else None,
        vip=crm_record.vip if crm_record else False,
        banned=crm_record.banned if crm_record else False,
    )
    logger.debug(
        "Profile built: name from %s, language from %s, pickup from %s",
        name_source, language_source, pickup_source,
    )
    return profile
