"""
Validation and formatting utilities for the Get Plump Booking Wizard

Contains helper functions for contact field validation and for the date, time,
price and phone formats shown to the client.
"""

import re
from datetime import date, datetime
from typing import Dict, Optional, Tuple, Union

from plump_booking.wizard.errors import ValidationError
from plump_booking.wizard.models import (
    EMAIL_PATTERN, PHONE_MIN_DIGITS, PHONE_MAX_DIGITS, TEXT, ClientInfo
)


# ============================================================================
# Validation Functions
# ============================================================================

def validate_required(value: Optional[str]) -> Tuple[bool, str]:
    """
    Check a value is present and not just whitespace.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not value or not value.strip():
        return False, TEXT["error_required_field"]
    return True, ""


def validate_email(email: Optional[str]) -> Tuple[bool, str]:
    """
    Validate email address format.

    Args:
        email: Email address string

    Returns:
        Tuple of (is_valid, error_message)
    """
    is_present, error_msg = validate_required(email)
    if not is_present:
        return False, error_msg

    if not EMAIL_PATTERN.match(email.strip()):
        return False, TEXT["error_invalid_email"]

    return True, ""


def validate_phone(phone: Optional[str]) -> Tuple[bool, str]:
    """
    Validate phone number format (10-15 digits, formatting ignored).

    Args:
        phone: Phone number string

    Returns:
        Tuple of (is_valid, error_message)
    """
    is_present, error_msg = validate_required(phone)
    if not is_present:
        return False, error_msg

    digit_count = len(re.sub(r"\D", "", phone))
    if digit_count < PHONE_MIN_DIGITS or digit_count > PHONE_MAX_DIGITS:
        return False, TEXT["error_invalid_phone"]

    return True, ""


def validate_client_info(info: ClientInfo) -> Dict[str, str]:
    """
    Validate every contact field.

    Returns:
        Mapping of field name to error message; empty when all fields pass
    """
    checks = (
        ("firstName", validate_required(info.first_name)),
        ("lastName", validate_required(info.last_name)),
        ("email", validate_email(info.email)),
        ("phoneNumber", validate_phone(info.phone_number)),
    )
    return {name: message for name, (is_valid, message) in checks if not is_valid}


def check_client_info(info: ClientInfo) -> ClientInfo:
    """
    Validate contact info and return it with surrounding whitespace stripped.

    A 10-digit phone number is saved in (XXX) XXX-XXXX form.

    Raises:
        ValidationError: if any field fails validation
    """
    cleaned = ClientInfo(
        first_name=info.first_name.strip(),
        last_name=info.last_name.strip(),
        email=info.email.strip(),
        phone_number=info.phone_number.strip(),
    )
    errors = validate_client_info(cleaned)
    if errors:
        raise ValidationError(errors)
    return ClientInfo(
        cleaned.first_name, cleaned.last_name, cleaned.email, format_phone(cleaned.phone_number)
    )


# ============================================================================
# Formatting Functions
# ============================================================================

def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse a backend ISO timestamp, accepting a trailing 'Z'"""
    if isinstance(value, datetime):
        return value
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def api_date(day: Union[date, datetime]) -> str:
    """Format a date for API calls and availability keys (YYYY-MM-DD)"""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def calendar_date(day: Union[date, datetime, str]) -> str:
    """Format a date for display, e.g. 'Mon, Mar 10'"""
    if isinstance(day, str):
        day = date.fromisoformat(day)
    return f"{day:%a}, {day:%b} {day.day}"


def format_time(value: Union[str, datetime]) -> str:
    """
    Format a slot start time for display, e.g. '10:00 AM'.

    Uses the wall-clock time carried in the timestamp; no timezone conversion.
    """
    moment = parse_timestamp(value)
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


def format_price(cents: Optional[int]) -> str:
    """Format a price in cents for display"""
    if not cents:
        return "Contact for pricing"
    return f"${round(cents / 100)}"


def format_duration(minutes: Optional[int]) -> str:
    """Format a duration in minutes for display"""
    if not minutes:
        return ""
    return f"{minutes} minutes"


def format_phone(phone: str) -> str:
    """
    Format a 10-digit phone number as (XXX) XXX-XXXX.

    Numbers of any other length are returned unchanged.
    """
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone
