"""
Test configuration and fixtures for booking wizard tests.

Mocks the booking API client so flows run without a backend.
"""

from datetime import date
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from ..api_client import BookingAPIClient
from ..config import WizardConfig
from ..flow import BookingWizard
from ..models import BookingConfirmation, Cart, TimeSlot
from ..ui import Transcript

TODAY = date(2025, 3, 1)

SARAH = {"id": "staff-1", "firstName": "Sarah", "lastName": "Johnson"}
MICHAEL = {"id": "staff-2", "firstName": "Michael", "lastName": "Chen"}


def cart_payload(
    cart_id: str = "cart-1", categories: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """Backend cart body with one skin and one injectable category by default"""
    if categories is None:
        categories = [
            {
                "name": "Skin Care",
                "availableItems": [
                    {
                        "id": "svc-hydra",
                        "name": "HydraFacial",
                        "description": "Deep cleanse and hydration",
                        "listPrice": 19900,
                        "listDuration": 60,
                        "staffVariants": [{"id": "var-hydra-1", "staff": SARAH}],
                    },
                ],
            },
            {
                "name": "Injectables",
                "availableItems": [
                    {
                        "id": "svc-botox",
                        "name": "Botox",
                        "listPrice": 50000,
                        "listDuration": 30,
                        "staffVariants": [
                            {"id": "var-botox-1", "staff": SARAH},
                            {"id": "var-botox-2", "staff": MICHAEL},
                        ],
                    },
                    {
                        "id": "svc-consult",
                        "name": "Consultation",
                        "listPrice": 0,
                        "listDuration": 15,
                        "staffVariants": None,
                    },
                ],
            },
        ]
    return {"id": cart_id, "availableCategories": categories}


def make_cart(cart_id: str = "cart-1", categories: Optional[List[Dict[str, Any]]] = None) -> Cart:
    return Cart.model_validate(cart_payload(cart_id, categories))


async def ten_am_on_march_10(cart_id, day, staff_id=None):
    if day == date(2025, 3, 10):
        return [TimeSlot(id="slot-1000", start_time="2025-03-10T10:00:00")]
    return []


@pytest.fixture
def test_config():
    """Test configuration fixture"""
    return WizardConfig(
        api_base_url="http://booking.test/api",
        request_timeout=2.0,
        session_ttl=1800,
        max_sessions=10,
        log_state_transitions=False,
    )


@pytest.fixture
def mock_api():
    """Booking API client double with a working happy path"""
    api = AsyncMock(spec=BookingAPIClient)
    api.create_cart.return_value = make_cart()
    api.add_service.return_value = {"success": True}
    api.get_available_times.side_effect = ten_am_on_march_10
    api.reserve_slot.return_value = {"success": True}
    api.update_client_info.return_value = {"success": True}
    api.complete_booking.return_value = BookingConfirmation(
        booking_id="bk-123", appointment_id="appt-456", status="confirmed"
    )
    return api


@pytest.fixture
def transcript():
    return Transcript()


@pytest.fixture
def wizard(test_config, mock_api, transcript):
    """Wizard fixture with a fixed clock"""
    return BookingWizard(test_config, mock_api, transcript, clock=lambda: TODAY)
