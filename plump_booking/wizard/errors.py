"""
Error taxonomy for the Get Plump Booking Wizard

Backend client failures are normalized into these types so step handlers can
decide between an inline message, a retry affordance and the contact fallback.
"""

from typing import Dict, Optional


class WizardError(Exception):
    """Base class for all booking wizard errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(WizardError):
    """No connectivity to the booking backend"""


class ApiTimeoutError(WizardError, TimeoutError):
    """Request exceeded its deadline"""


class ApiError(WizardError):
    """Non-2xx response from the booking backend"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StaleAvailabilityError(ApiError):
    """Slot was no longer available at reservation time"""


class ValidationError(WizardError):
    """Client-side field validation failed"""

    def __init__(self, field_errors: Dict[str, str]):
        super().__init__("; ".join(f"{name}: {msg}" for name, msg in field_errors.items()))
        self.field_errors = field_errors


class FlowError(WizardError):
    """Action issued out of step, or a step precondition is missing"""


class UnknownStepError(FlowError):
    """Router was asked to dispatch to a step that does not exist"""
