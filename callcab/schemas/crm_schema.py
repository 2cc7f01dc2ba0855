"""Dispatch CRM records, built from raw iCabbi payloads at the adapter boundary."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from callcab.utils import ensure_utc


def _truthy(value: Any) -> bool:
    """iCabbi sends flags as bools, ints or "0"/"1" strings."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CrmAccount(BaseModel):
    """Billing entity a customer rides on."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    active: bool = False

    @classmethod
    def from_icabbi(cls, payload: dict[str, Any]) -> "CrmAccount":
        return cls(
            id=str(payload["id"]),
            name=_str_or_none(payload.get("name")),
            type=_str_or_none(payload.get("type")),
            active=_truthy(payload.get("active")),
        )


class CrmAddress(BaseModel):
    """A saved or historical pickup address with its usage count."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    formatted: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    used: int = Field(default=0, ge=0)

    @classmethod
    def from_icabbi(cls, payload: dict[str, Any]) -> "CrmAddress":
        return cls(
            id=_str_or_none(payload.get("id")),
            formatted=str(payload["formatted"]).strip(),
            lat=payload.get("lat"),
            lng=payload.get("lng"),
            used=int(payload.get("used") or 0),
        )


class CrmDriver(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    vehicle: Optional[str] = None
    phone: Optional[str] = None


class CrmTrip(BaseModel):
    """An upcoming or in-progress booking."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    status: str
    pickup_time: datetime
    pickup_address: Optional[str] = None
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    destination_address: Optional[str] = None
    destination_lat: Optional[float] = None
    destination_lng: Optional[float] = None
    driver: Optional[CrmDriver] = None
    instructions: Optional[str] = None

    @field_validator("pickup_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("status")
    @classmethod
    def _upper_status(cls, value: str) -> str:
        return value.strip().upper()

    @classmethod
    def from_icabbi(cls, payload: dict[str, Any]) -> "CrmTrip":
        pickup = payload.get("address") or {}
        destination = payload.get("destination") or {}
        driver = payload.get("driver")
        return cls(
            trip_id=str(payload["trip_id"]),
            status=str(payload.get("status") or ""),
            pickup_time=payload["pickup_date"],
            pickup_address=_str_or_none(pickup.get("formatted")),
            pickup_lat=pickup.get("lat"),
            pickup_lng=pickup.get("lng"),
            destination_address=_str_or_none(destination.get("formatted")),
            destination_lat=destination.get("lat"),
            destination_lng=destination.get("lng"),
            driver=CrmDriver(
                id=_str_or_none(driver.get("id")),
                name=_str_or_none(driver.get("name")),
                vehicle=_str_or_none((driver.get("vehicle") or {}).get("ref")),
                phone=_str_or_none(driver.get("phone")),
            ) if driver else None,
            instructions=_str_or_none(payload.get("instructions")),
        )


class CrmCustomer(BaseModel):
    """Live customer record from the dispatch CRM."""

    model_config = ConfigDict(frozen=True)

    id: str
    phone: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    vip: bool = False
    banned: bool = False
    score: Optional[float] = None
    account: Optional[CrmAccount] = None
    addresses: list[CrmAddress] = Field(default_factory=list)
    trips: list[CrmTrip] = Field(default_factory=list)

    @property
    def spoken_name(self) -> Optional[str]:
        """The name the agent would greet with: first name, else first word of name."""
        if self.first_name:
            return self.first_name
        words = (self.name or "").split()
        return words[0] if words else None

    @classmethod
    def from_icabbi(cls, payload: dict[str, Any]) -> "CrmCustomer":
        account = payload.get("account")
        return cls(
            id=str(payload["id"]),
            phone=_str_or_none(payload.get("phone")),
            name=_str_or_none(payload.get("name")),
            first_name=_str_or_none(payload.get("first_name")),
            last_name=_str_or_none(payload.get("last_name")),
            email=_str_or_none(payload.get("email")),
            vip=_truthy(payload.get("vip")),
            banned=_truthy(payload.get("banned")),
            score=payload.get("score"),
            account=CrmAccount.from_icabbi(account) if isinstance(account, dict) else None,
        )
