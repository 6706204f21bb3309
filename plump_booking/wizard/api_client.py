"""
Booking API client for the Get Plump Booking Wizard

Thin typed wrapper over the scheduling backend relay. Every call is bounded by
the configured request timeout, and every failure is normalized into the
wizard error taxonomy:

- offline probe fails       -> NetworkError (no request issued)
- transport cannot connect  -> NetworkError
- deadline exceeded         -> ApiTimeoutError
- non-2xx response          -> ApiError (backend message when present)
- reservation conflict      -> StaleAvailabilityError

Usage:
    async with BookingAPIClient(config) as api:
        cart = await api.create_cart(LOCATIONS["SoHo"].location_id)
"""

import asyncio
import logging
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx
import pydantic

from plump_booking.wizard.config import WizardConfig
from plump_booking.wizard.errors import (
    ApiError, ApiTimeoutError, NetworkError, StaleAvailabilityError
)
from plump_booking.wizard.models import (
    TEXT, BookingConfirmation, Cart, ClientInfo, TimeSlot, TimeSlotPayload
)
from plump_booking.wizard.validation import api_date

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "locations": "/locations",
    "staff": "/staff",
    "cart": "/cart",
    "services": "/services",
    "availability": "/availability",
    "booking": "/booking",
}


class BookingAPIClient:
    """
    Async client for the scheduling backend.

    Args:
        config: Wizard configuration (base URL and timeout)
        http_client: Optional pre-built httpx.AsyncClient (tests inject a MockTransport)
        online_check: Optional connectivity probe; when it returns False calls
            fail fast with NetworkError
    """

    def __init__(
        self,
        config: WizardConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        online_check: Optional[Callable[[], bool]] = None,
    ):
        self.config = config
        self.timeout = config.request_timeout
        self._online_check = online_check
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=httpx.Timeout(self.timeout),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def __aenter__(self) -> "BookingAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------ #
    # Request core
    # ------------------------------------------------------------------ #

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if self._online_check is not None and not self._online_check():
            raise NetworkError(TEXT["error_network"])

        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self._client.request(method, path, json=json, params=params),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"{method} {path} timed out after {self.timeout}s")
            raise ApiTimeoutError("Request timeout. Please try again.")
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} transport failure: {e}")
            raise NetworkError(TEXT["error_network"]) from e

        latency_ms = (time.time() - start_time) * 1000
        logger.debug(f"{method} {path} -> {response.status_code} ({latency_ms:.0f}ms)")

        if response.is_error:
            raise ApiError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(TEXT["error_api"], status_code=response.status_code) from e

    # ------------------------------------------------------------------ #
    # Cart operations
    # ------------------------------------------------------------------ #

    async def create_cart(self, location_id: str) -> Cart:
        """Open a booking cart at a location"""
        data = await self._request("POST", ENDPOINTS["cart"], json={"locationId": location_id})
        return _parse(Cart, data)

    async def add_service(
        self, cart_id: str, service_id: str, staff_variant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Add a service to the cart, optionally bound to a staff variant"""
        return await self._request(
            "POST",
            f"{ENDPOINTS['cart']}/{cart_id}/items",
            json={"serviceId": service_id, "staffId": staff_variant_id},
        )

    async def get_available_times(
        self, cart_id: str, day: date, staff_id: Optional[str] = None
    ) -> List[TimeSlot]:
        """List reservable slots for one date"""
        params = {"cartId": cart_id, "date": api_date(day)}
        if staff_id:
            params["staffId"] = staff_id

        data = await self._request("GET", ENDPOINTS["availability"], params=params)
        if isinstance(data, dict):
            data = data.get("times") or data.get("availableTimes") or []
        return [_parse(TimeSlotPayload, item).to_slot() for item in data]

    async def reserve_slot(self, cart_id: str, slot_id: str) -> Dict[str, Any]:
        """
        Provisionally reserve a slot.

        Raises:
            StaleAvailabilityError: the backend reports the slot is gone
        """
        try:
            return await self._request(
                "POST",
                f"{ENDPOINTS['cart']}/{cart_id}/reserve",
                json={"timeSlotId": slot_id},
            )
        except StaleAvailabilityError:
            raise
        except ApiError as e:
            if e.status_code == 409 or "available" in e.message.lower():
                raise StaleAvailabilityError(e.message, status_code=e.status_code) from e
            raise

    async def update_client_info(self, cart_id: str, info: ClientInfo) -> Dict[str, Any]:
        """Attach client contact info to the cart"""
        return await self._request(
            "PUT", f"{ENDPOINTS['cart']}/{cart_id}/client", json=info.to_payload()
        )

    # ------------------------------------------------------------------ #
    # Booking operations
    # ------------------------------------------------------------------ #

    async def complete_booking(
        self, cart_id: str, payment_info: Optional[Dict[str, Any]] = None
    ) -> BookingConfirmation:
        """Finalize the cart into a booking"""
        data = await self._request(
            "POST", ENDPOINTS["booking"], json={"cartId": cart_id, "paymentInfo": payment_info}
        )
        return _parse(BookingConfirmation, data or {})

    async def get_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"{ENDPOINTS['booking']}/{booking_id}")

    async def cancel_booking(self, booking_id: str, reason: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"{ENDPOINTS['booking']}/{booking_id}/cancel", json={"reason": reason}
        )

    # ------------------------------------------------------------------ #
    # Directory reads
    # ------------------------------------------------------------------ #

    async def get_locations(self) -> List[Dict[str, Any]]:
        return await self._request("GET", ENDPOINTS["locations"])

    async def get_staff(self, location_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"locationId": location_id} if location_id else None
        return await self._request("GET", ENDPOINTS["staff"], params=params)

    async def get_staff_availability(
        self, staff_id: str, start_date: date, end_date: date
    ) -> Dict[str, Any]:
        """Availability for one staff member across locations, organized by date"""
        params = {
            "staffId": staff_id,
            "startDate": api_date(start_date),
            "endDate": api_date(end_date),
        }
        return await self._request("GET", f"{ENDPOINTS['availability']}/staff", params=params)

    async def get_services(
        self, location_id: str, treatment_type: str, staff_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {"locationId": location_id, "treatmentType": treatment_type}
        if staff_id:
            params["staffId"] = staff_id
        return await self._request("GET", ENDPOINTS["services"], params=params)


def _error_message(response: httpx.Response) -> str:
    """Backend-provided message when present, else a generic status line"""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message:
            return message

    return f"HTTP {response.status_code}: {response.reason_phrase}"


def _parse(model, data: Any):
    """Validate a backend payload, reporting malformed bodies as ApiError"""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        logger.error(f"Malformed {model.__name__} payload from booking API: {e}")
        raise ApiError(TEXT["error_api"]) from e
