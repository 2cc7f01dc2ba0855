"""
Dispatch CRM adapters.

The production client talks to the iCabbi REST API. iCabbi deployments
disagree on which phone format they index users under, so every phone
lookup walks ``equivalent_formats`` in order and stops at the first hit.

A lookup that fails on every format because of transport errors raises
CrmUnavailableError, which is not the same thing as a clean "not found".
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from callcab.config import DispatchConfig
from callcab.schemas.crm_schema import CrmAddress, CrmCustomer, CrmTrip
from callcab.utils import equivalent_formats, international_format, mask_phone

logger = logging.getLogger(__name__)

# Payload shapes iCabbi returns for a malformed or partial record.
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


class CrmError(Exception):
    """Base class for dispatch CRM failures."""


class CrmUnavailableError(CrmError):
    """The CRM could not be reached or refused every attempt."""


class CrmResponseError(CrmError):
    """The CRM answered with a payload that does not match the expected shape."""


class CrmClient(ABC):
    """Live customer, address and trip lookups against the dispatch CRM.

    All phone arguments are canonical (``+<digits>``); implementations
    translate them to whatever formats the backend expects.
    """

    @abstractmethod
    async def find_customer(self, phone: str) -> Optional[CrmCustomer]:
        """Return the customer for this phone, or None if the CRM has none."""

    @abstractmethod
    async def get_address_history(
        self, phone: str, crm_phone: Optional[str] = None
    ) -> list[CrmAddress]:
        """Return past pickup addresses, most used first.

        ``crm_phone`` is the number as stored on the CRM customer record,
        when one was found; backends that index by format try it first.
        """

    @abstractmethod
    async def get_upcoming_trips(self, phone: str) -> list[CrmTrip]:
        """Return upcoming or in-progress bookings, earliest pickup first."""

    @abstractmethod
    async def create_customer(
        self, phone: str, first_name: str, last_name: str
    ) -> CrmCustomer:
        """Create a customer record and return it."""

    async def aclose(self) -> None:
        """Release connections held by the client."""


def _body(data: Any) -> dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("body"), dict):
        return data["body"]
    return {}


def _parse_customer(user: Any) -> CrmCustomer:
    if isinstance(user, list):
        user = user[0] if user else None
    try:
        return CrmCustomer.from_icabbi(user)
    except PAYLOAD_ERRORS as e:
        raise CrmResponseError(f"Malformed iCabbi user payload: {e}") from e


class IcabbiClient(CrmClient):
    """iCabbi REST client using HTTP Basic auth with the app key and secret."""

    def __init__(
        self,
        base_url: str,
        app_key: str,
        secret: str,
        attempt_timeout: float = 1.5,
        address_period_days: int = 365,
        address_type: str = "PICKUP",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=httpx.BasicAuth(app_key, secret),
            headers={"accept": "application/json"},
            timeout=httpx.Timeout(attempt_timeout),
            transport=transport,
        )
        self._attempt_timeout = attempt_timeout
        self._address_period_days = address_period_days
        self._address_type = address_type.upper()

    @classmethod
    def from_config(cls, config: DispatchConfig) -> "IcabbiClient":
        if not config.app_key or not config.secret:
            logger.warning("ICABBI_APP_KEY / ICABBI_SECRET not set, CRM calls will fail")
        return cls(
            base_url=config.base_url,
            app_key=config.app_key,
            secret=config.secret,
            attempt_timeout=config.attempt_timeout_sec,
            address_period_days=config.address_period_days,
            address_type=config.address_type,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request and return its JSON.

        404 means "nothing here" and yields an empty dict. Any other error
        status, a transport failure, or an attempt running past
        ``attempt_timeout`` in total raises CrmUnavailableError.
        """
        try:
            response = await asyncio.wait_for(
                self._client.request(method, path, **kwargs), self._attempt_timeout
            )
        except asyncio.TimeoutError as e:
            raise CrmUnavailableError(
                f"{method} {path} took longer than {self._attempt_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise CrmUnavailableError(f"{method} {path} failed: {e!r}") from e
        if response.status_code == 404:
            return {}
        if response.status_code >= 400:
            raise CrmUnavailableError(f"{method} {path} returned {response.status_code}")
        try:
            return response.json()
        except ValueError:
            logger.warning("Non-JSON response from %s %s", method, path)
            return {}

    async def find_customer(self, phone: str) -> Optional[CrmCustomer]:
        formats = equivalent_formats(phone)
        failures = 0
        for attempt, candidate in enumerate(formats, start=1):
            try:
                data = await self._request(
                    "POST", "/users/index",
                    params={"phone": candidate}, headers={"Phone": candidate},
                )
            except CrmUnavailableError as e:
                failures += 1
                logger.warning(
                    "iCabbi user lookup attempt %d/%d failed: %s", attempt, len(formats), e
                )
                continue
            user = _body(data).get("user")
            if user:
                logger.info(
                    "iCabbi user found for %s on attempt %d/%d",
                    mask_phone(phone), attempt, len(formats),
                )
                return _parse_customer(user)

        if failures == len(formats):
            raise CrmUnavailableError(
                f"All {len(formats)} phone formats failed for {mask_phone(phone)}"
            )
        logger.info("No iCabbi user for %s in %d formats", mask_phone(phone), len(formats))
        return None

    async def get_address_history(
        self, phone: str, crm_phone: Optional[str] = None
    ) -> list[CrmAddress]:
        formats = equivalent_formats(phone)
        if crm_phone and crm_phone.strip():
            formats = list(dict.fromkeys([crm_phone.strip(), *formats]))
        params = {
            "period": str(self._address_period_days),
            "type": self._address_type,
            "approved": "1",
        }
        failures = 0
        raw_addresses: list[Any] = []
        # The first format answering with an addresses array settles it, even
        # when the array is empty.
        for candidate in formats:
            try:
                data = await self._request(
                    "GET", "/users/addresses",
                    params={**params, "phone": candidate}, headers={"Phone": candidate},
                )
            except CrmUnavailableError as e:
                failures += 1
                logger.warning("iCabbi address lookup failed: %s", e)
                continue
            found = _body(data).get("addresses")
            if isinstance(found, list):
                raw_addresses = found
                break

        if failures == len(formats):
            raise CrmUnavailableError(f"Address history unavailable for {mask_phone(phone)}")

        addresses: list[CrmAddress] = []
        for raw in raw_addresses:
            if not isinstance(raw, dict) or not str(raw.get("formatted") or "").strip():
                continue
            try:
                addresses.append(CrmAddress.from_icabbi(raw))
            except PAYLOAD_ERRORS:
                logger.warning("Skipping malformed iCabbi address %r", raw.get("id"))
        addresses.sort(key=lambda a: a.used, reverse=True)
        return addresses

    async def get_upcoming_trips(self, phone: str) -> list[CrmTrip]:
        data = await self._request(
            "GET", "/bookings/upcoming", params={"phone": international_format(phone)}
        )
        bookings = _body(data).get("bookings")
        if not isinstance(bookings, list):
            return []

        trips: list[CrmTrip] = []
        for booking in bookings:
            try:
                trips.append(CrmTrip.from_icabbi(booking))
            except PAYLOAD_ERRORS:
                logger.warning(
                    "Skipping malformed iCabbi booking %r",
                    booking.get("trip_id") if isinstance(booking, dict) else booking,
                )
        trips.sort(key=lambda t: t.pickup_time)
        return trips

    async def create_customer(
        self, phone: str, first_name: str, last_name: str
    ) -> CrmCustomer:
        data = await self._request(
            "POST", "/users/create",
            json={"phone": phone, "first_name": first_name, "last_name": last_name},
        )
        user = _body(data).get("user")
        if not user:
            message = data.get("message") if isinstance(data, dict) else None
            raise CrmResponseError(f"iCabbi did not return a created user: {message}")
        customer = _parse_customer(user)
        logger.info("iCabbi customer %s created for %s", customer.id, mask_phone(phone))
        return customer

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryCrmClient(CrmClient):
    """Process-local CRM for the console demo and tests."""

    def __init__(
        self,
        customers: Optional[list[CrmCustomer]] = None,
        unavailable: bool = False,
    ) -> None:
        self._customers: dict[str, CrmCustomer] = {}
        for customer in customers or []:
            self.add_customer(customer)
        self.unavailable = unavailable

    def add_customer(self, customer: CrmCustomer) -> None:
        if not customer.phone:
            raise ValueError("In-memory CRM customers need a canonical phone")
        self._customers[customer.phone] = customer

    def _check_available(self) -> None:
        if self.unavailable:
            raise CrmUnavailableError("In-memory CRM marked unavailable")

    async def find_customer(self, phone: str) -> Optional[CrmCustomer]:
        self._check_available()
        return self._customers.get(phone)

    async def get_address_history(
        self, phone: str, crm_phone: Optional[str] = None
    ) -> list[CrmAddress]:
        self._check_available()
        customer = self._customers.get(phone)
        if customer is None:
            return []
        return sorted(customer.addresses, key=lambda a: a.used, reverse=True)

    async def get_upcoming_trips(self, phone: str) -> list[CrmTrip]:
        self._check_available()
        customer = self._customers.get(phone)
        if customer is None:
            return []
        return sorted(customer.trips, key=lambda t: t.pickup_time)

    async def create_customer(
        self, phone: str, first_name: str, last_name: str
    ) -> CrmCustomer:
        self._check_available()
        customer = CrmCustomer(
            id=f"MEM-{uuid.uuid4().hex[:8].upper()}",
            phone=phone,
            name=f"{first_name} {last_name}".strip(),
            first_name=first_name,
            last_name=last_name,
        )
        self.add_customer(customer)
        logger.info("In-memory customer created: %s (%s)", customer.id, mask_phone(phone))
        return customer
