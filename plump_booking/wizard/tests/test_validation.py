"""
Tests for contact validation and display formatting.
"""

from datetime import date, datetime

import pytest

from ..errors import ValidationError
from ..models import TEXT, ClientInfo, ContactContext
from ..session import Session
from ..ui import ContactFallback
from ..validation import (
    api_date, calendar_date, check_client_info, format_duration, format_phone, format_price,
    format_time, validate_email, validate_phone, validate_required
)


class TestValidation:
    """Test field validators"""

    def test_phone_digit_count(self):
        assert validate_phone("12345") == (False, TEXT["error_invalid_phone"])
        assert validate_phone("2125550123") == (True, "")
        assert validate_phone("(212) 555-0123")[0] is True
        assert validate_phone("+44 20 7946 0958 1234 5")[0] is False

    def test_email_format(self):
        assert validate_email("not-an-email") == (False, TEXT["error_invalid_email"])
        assert validate_email("a@b.co") == (True, "")
        assert validate_email("a b@c.co")[0] is False

    def test_required(self):
        assert validate_required("   ") == (False, TEXT["error_required_field"])
        assert validate_email("") == (False, TEXT["error_required_field"])
        assert validate_phone(None) == (False, TEXT["error_required_field"])

    def test_check_client_info_strips(self):
        info = check_client_info(ClientInfo(" Jane ", "Doe", " jane@x.com", "2125550100 "))
        assert info == ClientInfo("Jane", "Doe", "jane@x.com", "(212) 555-0100")

    def test_check_client_info_keeps_international_phone(self):
        info = check_client_info(ClientInfo("Jane", "Doe", "jane@x.com", "+44 20 7946 0958"))
        assert info.phone_number == "+44 20 7946 0958"

    def test_check_client_info_collects_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            check_client_info(ClientInfo("", "Doe", "nope", "123"))

        assert set(exc_info.value.field_errors) == {"firstName", "email", "phoneNumber"}
        assert "email: Please enter a valid email address." in exc_info.value.message


class TestFormatting:
    """Test display formats"""

    def test_dates(self):
        assert api_date(date(2025, 3, 10)) == "2025-03-10"
        assert api_date(datetime(2025, 3, 10, 15, 30)) == "2025-03-10"
        assert calendar_date("2025-03-10") == "Mon, Mar 10"
        assert calendar_date(date(2025, 12, 1)) == "Mon, Dec 1"

    @pytest.mark.parametrize(
        "timestamp,expected",
        [
            ("2025-03-10T10:00:00", "10:00 AM"),
            ("2025-03-10T00:15:00Z", "12:15 AM"),
            ("2025-03-10T12:00:00-05:00", "12:00 PM"),
            ("2025-03-10T17:45:00.000Z", "5:45 PM"),
        ],
    )
    def test_time(self, timestamp, expected):
        assert format_time(timestamp) == expected

    def test_price_and_duration(self):
        assert format_price(19900) == "$199"
        assert format_price(0) == "Contact for pricing"
        assert format_price(None) == "Contact for pricing"
        assert format_duration(60) == "60 minutes"
        assert format_duration(None) == ""

    def test_phone(self):
        assert format_phone("2125550100") == "(212) 555-0100"
        assert format_phone("+1 212 555 0100") == "+1 212 555 0100"


class TestContactFallback:
    """Test out-of-band contact messages"""

    def test_message_interpolation(self):
        contact = ContactFallback("+16463468809")
        session = Session(selected_location="SoHo", selected_service="HydraFacial")

        message = contact.message_for(ContactContext.TIME_INQUIRY, session)

        assert message == "I'm looking for HydraFacial at SoHo but need different time options."

    def test_link_encodes_body(self):
        contact = ContactFallback("+16463468809")
        link = contact.link_for(ContactContext.HELP)
        assert link == "sms:+16463468809?body=I%20need%20help%20with%20booking."
