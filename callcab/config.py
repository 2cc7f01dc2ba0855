"""
Centralized configuration with environment variable overrides.

Dispatch credentials, source timeouts, greeting thresholds, and keyword
lists are configurable here. Nothing is hardcoded in lookup or greeting logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from callcab.utils import MAX_EQUIVALENT_FORMATS

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _env_list(env_var: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated env var into a lowercase tuple, dropping blanks."""
    raw = os.getenv(env_var, default)
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class BusinessConfig:
    """Business identity used by greeting templates and time formatting."""

    name: str = os.getenv("BUSINESS_NAME", "High Mountain Taxi")
    agent_name: str = os.getenv("AGENT_NAME", "Claire")
    local_timezone: str = os.getenv("LOCAL_TZ", "America/Denver")


@dataclass(frozen=True)
class DispatchConfig:
    """iCabbi dispatch CRM connection settings."""

    base_url: str = os.getenv("ICABBI_BASE_URL", "https://api.icabbi.us/us2")
    app_key: str = os.getenv("ICABBI_APP_KEY", "")
    secret: str = os.getenv("ICABBI_SECRET", os.getenv("ICABBI_SECRET_KEY", ""))
    attempt_timeout_sec: float = _safe_float("ICABBI_ATTEMPT_TIMEOUT", "1.5")
    address_period_days: int = _safe_int("ICABBI_ADDRESS_PERIOD_DAYS", "365")
    address_type: str = os.getenv("ICABBI_ADDRESS_TYPE", "PICKUP")


@dataclass(frozen=True)
class MemoryConfig:
    """Call-memory store settings."""

    backend: str = os.getenv("MEMORY_BACKEND", "redis")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    history_limit: int = _safe_int("MEMORY_HISTORY_LIMIT", "20")


@dataclass(frozen=True)
class LookupConfig:
    """Timeouts and decision thresholds for the customer lookup."""

    memory_timeout_sec: float = _safe_float("MEMORY_TIMEOUT", "3.0")
    crm_timeout_sec: float = _safe_float("CRM_TIMEOUT", "6.0")
    # Each of the address and trip reads after the customer was found.
    crm_detail_timeout_sec: float = _safe_float("CRM_DETAIL_TIMEOUT", "3.0")
    preference_window: int = _safe_int("PREFERENCE_WINDOW", "5")
    pattern_min_uses: int = _safe_int("PICKUP_PATTERN_MIN_USES", "2")
    max_jokes: int = _safe_int("MAX_JOKES", "3")
    callback_window_hours: float = _safe_float("CALLBACK_WINDOW_HOURS", "2.0")
    dropped_call_window_hours: float = _safe_float("DROPPED_CALL_WINDOW_HOURS", "1.0")
    active_trip_lookback_minutes: int = _safe_int("ACTIVE_TRIP_LOOKBACK_MINUTES", "30")
    active_trip_lookahead_hours: int = _safe_int("ACTIVE_TRIP_LOOKAHEAD_HOURS", "24")
    active_trip_statuses: tuple[str, ...] = _env_list(
        "ACTIVE_TRIP_STATUSES",
        "new,assigned,accepted,picked_up,dispatched,pending,prebooked,enroute,arrived",
    )
    supported_languages: tuple[str, ...] = _env_list(
        "SUPPORTED_LANGUAGES", "english,spanish,portuguese,german,french"
    )
    recent_summary_count: int = _safe_int("RECENT_SUMMARY_COUNT", "3")


@dataclass(frozen=True)
class SituationalConfig:
    """Keyword sets that drive follow-up question hints."""

    airport_keywords: tuple[str, ...] = _env_list(
        "AIRPORT_KEYWORDS", "airport,ase,ege,eagle county,den,dia"
    )
    ski_keywords: tuple[str, ...] = _env_list(
        "SKI_KEYWORDS", "aspen mountain,ajax,highlands,snowmass,buttermilk"
    )
    medical_keywords: tuple[str, ...] = _env_list(
        "MEDICAL_KEYWORDS", "hospital,clinic,medical center,urgent care"
    )


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    lookup: LookupConfig = field(default_factory=LookupConfig)
    situational: SituationalConfig = field(default_factory=SituationalConfig)
    crm_backend: str = os.getenv("CRM_BACKEND", "icabbi")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for name, value in [
        ("MEMORY_TIMEOUT", config.lookup.memory_timeout_sec),
        ("CRM_TIMEOUT", config.lookup.crm_timeout_sec),
        ("CRM_DETAIL_TIMEOUT", config.lookup.crm_detail_timeout_sec),
        ("ICABBI_ATTEMPT_TIMEOUT", config.dispatch.attempt_timeout_sec),
    ]:
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")

    probing = config.dispatch.attempt_timeout_sec * MAX_EQUIVALENT_FORMATS
    if probing > config.lookup.crm_timeout_sec:
        raise ValueError(
            f"ICABBI_ATTEMPT_TIMEOUT x {MAX_EQUIVALENT_FORMATS} phone formats must fit "
            f"in CRM_TIMEOUT, got {probing} > {config.lookup.crm_timeout_sec}"
        )
    if config.lookup.preference_window < 1:
        raise ValueError(
            f"PREFERENCE_WINDOW must be >= 1, got {config.lookup.preference_window}"
        )
    if config.lookup.pattern_min_uses < 2:
        raise ValueError(
            f"PICKUP_PATTERN_MIN_USES must be >= 2, got {config.lookup.pattern_min_uses}"
        )
    if config.memory.history_limit < config.lookup.preference_window:
        raise ValueError(
            "MEMORY_HISTORY_LIMIT must be >= PREFERENCE_WINDOW, "
            f"got {config.memory.history_limit} < {config.lookup.preference_window}"
        )
    if config.lookup.callback_window_hours <= 0:
        raise ValueError(
            f"CALLBACK_WINDOW_HOURS must be > 0, got {config.lookup.callback_window_hours}"
        )
    if config.lookup.dropped_call_window_hours <= 0:
        raise ValueError(
            "DROPPED_CALL_WINDOW_HOURS must be > 0, "
            f"got {config.lookup.dropped_call_window_hours}"
        )
    if "english" not in config.lookup.supported_languages:
        raise ValueError("SUPPORTED_LANGUAGES must include 'english'")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
