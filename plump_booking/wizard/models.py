"""
Data models for the Get Plump Booking Wizard

Contains enums, static directory data, domain dataclasses, and Pydantic models
for both the scheduling backend payloads and the wizard's own HTTP API.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class Step(Enum):
    """Booking wizard steps, in flow order"""
    WELCOME = "welcome"
    CLIENT_TYPE = "client-type"
    TREATMENT_TYPE = "treatment-type"
    BOOKING_FLOW = "booking-flow"
    PROVIDER_LOCATION = "provider-location"
    SERVICES = "services"
    CALENDAR = "calendar"
    USER_INFO = "user-info"
    CONFIRMATION = "confirmation"


class ClientType(Enum):
    NEW = "new"
    RETURNING = "returning"
    MEMBER = "member"


class TreatmentType(Enum):
    INJECTABLE = "injectable"
    SKIN = "skin"
    INJECTOR_AVAILABILITY = "injector-availability"


class BookingFlow(Enum):
    """Only meaningful for injectable treatments"""
    BY_INJECTOR = "by-injector"
    BY_LOCATION = "by-location"


class ProviderMode(Enum):
    """Render modes of the provider-location step (derived, never stored)"""
    AVAILABILITY_VIEW = "availability-view"
    INJECTOR_BOOKING = "injector-booking"
    LOCATION_PICKER = "location-picker"


class ContactContext(Enum):
    """Context tags for the out-of-band SMS contact fallback"""
    FOLLOW_UP = "follow-up"
    INJECTOR_INQUIRY = "injector-inquiry"
    SERVICE_INQUIRY = "service-inquiry"
    TIME_INQUIRY = "time-inquiry"
    HELP = "help"


# ============================================================================
# Constants
# ============================================================================

# Sentinel staff id: no specific provider constraint
FIRST_AVAILABLE = "first-available"
FIRST_AVAILABLE_LABEL = "First Available"


@dataclass(frozen=True)
class Location:
    name: str
    location_id: str
    address: str
    phone: str


# Static location directory (display name -> backend location)
LOCATIONS: Dict[str, Location] = {
    "West Village": Location(
        "West Village", "ffaaff3c-d5ba-408e-ba3b-455554b77116",
        "123 West Village St, New York, NY", "(212) 555-0123",
    ),
    "SoHo": Location(
        "SoHo", "89763e68-2454-429c-ae9c-c1b4d91e7b81",
        "456 SoHo Ave, New York, NY", "(212) 555-0124",
    ),
    "Tribeca": Location(
        "Tribeca", "43dfb866-a872-4f01-9491-6c6584e3c3e7",
        "789 Tribeca Blvd, New York, NY", "(212) 555-0125",
    ),
    "Williamsburg": Location(
        "Williamsburg", "93566b17-c023-4fe1-9a84-462f143bd024",
        "321 Williamsburg Way, Brooklyn, NY", "(718) 555-0126",
    ),
    "Hoboken": Location(
        "Hoboken", "a885e859-21ef-43c7-8a63-bb242db98de2",
        "654 Hoboken St, Hoboken, NJ", "(201) 555-0127",
    ),
    "Uptown": Location(
        "Uptown", "b146c47b-6de8-475a-8ebd-8a1d2b36546d",
        "987 Uptown Ave, New York, NY", "(212) 555-0128",
    ),
    "Miami": Location(
        "Miami", "1cbb848e-138b-4142-bc3d-b9f4ea9a42db",
        "147 Miami Beach Dr, Miami, FL", "(305) 555-0129",
    ),
}

# Color palette for location indicators in the availability view
LOCATION_COLORS: Tuple[str, ...] = (
    "#007AFF", "#34C759", "#FF9500", "#FF3B30",
    "#5856D6", "#AF52DE", "#FF2D92", "#64D2FF",
)

CLIENT_TYPE_LABELS = {
    ClientType.NEW: ("New Client", "First time at Get Plump"),
    ClientType.RETURNING: ("Returning Client", "I've been here before"),
    ClientType.MEMBER: ("Member", "I have a membership"),
}

CLIENT_GREETINGS = {
    ClientType.NEW: "Welcome to Get Plump!",
    ClientType.RETURNING: "Welcome back!",
    ClientType.MEMBER: "Hello, valued member!",
}

TREATMENT_TYPE_LABELS = {
    TreatmentType.INJECTABLE: (
        "Injectable Treatments",
        "Botox, fillers, and other injectable services",
    ),
    TreatmentType.SKIN: (
        "Skin Treatments",
        "Laser, microneedling, and skincare services",
    ),
    TreatmentType.INJECTOR_AVAILABILITY: (
        "See a Specific Injector's Availability",
        "View open slots for your preferred injector across all locations",
    ),
}

BOOKING_FLOW_LABELS = {
    BookingFlow.BY_INJECTOR: ("Book by Injector", "Choose your preferred injector first"),
    BookingFlow.BY_LOCATION: ("Book by Location", "Choose your preferred location first"),
}

TEXT = {
    "welcome_title": "Hi! Welcome to Get Plump.",
    "welcome_subtitle": "I'll help you book your appointment.",
    "error_generic": "Something went wrong. Please try again or contact us.",
    "error_no_services": "No services found for your selection.",
    "error_no_availability": "No availability found for the selected date.",
    "error_invalid_email": "Please enter a valid email address.",
    "error_invalid_phone": "Please enter a valid phone number.",
    "error_required_field": "This field is required.",
    "error_api": "Unable to connect to booking system. Please try again.",
    "error_network": "Network error. Please check your connection.",
}

# Service classification keywords (matched case-insensitively on display names)
INJECTABLE_ITEM_KEYWORDS = ("botox", "filler", "inject", "dysport")
INJECTABLE_CATEGORY_KEYWORDS = ("inject",)
SKIN_ITEM_KEYWORDS = ("laser", "microneedling", "facial", "peel")
SKIN_CATEGORY_KEYWORDS = ("skin",)

# Validation patterns
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15

CONTACT_DEFAULT_MESSAGE = "I'd like to book an appointment at Get Plump"

# Templates may reference {location} and {service}
CONTACT_MESSAGES = {
    ContactContext.FOLLOW_UP: "I just completed a booking and have a question",
    ContactContext.INJECTOR_INQUIRY: "I'm looking for a specific injector that wasn't listed",
    ContactContext.SERVICE_INQUIRY: "I'm looking for services at {location} but need different options",
    ContactContext.TIME_INQUIRY: (
        "I'm looking for {service} at {location} but need different time options"
    ),
    ContactContext.HELP: "I need help with booking",
}


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class StaffMember:
    """Injector aggregated across every location they appear in"""
    id: str
    first_name: str
    last_name: str
    nickname: Optional[str] = None
    avatar_url: Optional[str] = None
    locations: Tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class StaffVariantRef:
    """Binding of one staff member to one service"""
    id: str
    staff_id: Optional[str] = None


@dataclass(frozen=True)
class ServiceOption:
    id: str
    name: str
    category: str
    description: Optional[str] = None
    price: Optional[int] = None  # cents
    duration: Optional[int] = None  # minutes
    staff_variants: Tuple[StaffVariantRef, ...] = ()

    def variant_for(self, staff_id: str) -> Optional[StaffVariantRef]:
        for variant in self.staff_variants:
            if variant.staff_id == staff_id:
                return variant
        return None


@dataclass(frozen=True)
class TimeSlot:
    """Reservable appointment time; location is set in cross-location views"""
    id: str
    start_time: str
    location: Optional[str] = None


@dataclass(frozen=True)
class SelectedTime:
    id: str
    time: str  # display time, e.g. "10:00 AM"
    date: str  # display date, e.g. "Mon, Mar 10"
    start_time: str  # raw backend timestamp


@dataclass(frozen=True)
class ClientInfo:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""

    def to_payload(self) -> Dict[str, str]:
        """Convert to the backend's camelCase body"""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
        }


@dataclass(frozen=True)
class CalendarDay:
    date: str  # ISO date
    slot_count: int
    selectable: bool


@dataclass(frozen=True)
class LocationCart:
    """Result of one per-location cart creation inside a fan-out"""
    location_name: str
    location_id: str
    cart: Optional["Cart"] = None


@dataclass
class Choice:
    """One selectable option offered to the client"""
    label: str
    value: str
    description: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Pydantic Models for the Scheduling Backend
# ============================================================================

class _BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StaffProfile(_BackendModel):
    id: str
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    nickname: Optional[str] = None
    avatar: Optional[str] = None


class StaffVariant(_BackendModel):
    id: str
    staff: Optional[StaffProfile] = None


class CartItem(_BackendModel):
    id: str
    name: str
    description: Optional[str] = None
    list_price: Optional[int] = Field(None, alias="listPrice")
    list_duration: Optional[int] = Field(None, alias="listDuration")
    staff_variants: List[StaffVariant] = Field(default_factory=list, alias="staffVariants")

    @field_validator("staff_variants", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or []


class CartCategory(_BackendModel):
    name: str = ""
    available_items: List[CartItem] = Field(default_factory=list, alias="availableItems")

    @field_validator("available_items", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or []


class Cart(_BackendModel):
    id: str
    available_categories: List[CartCategory] = Field(
        default_factory=list, alias="availableCategories"
    )

    @field_validator("available_categories", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or []


class TimeSlotPayload(_BackendModel):
    id: str
    start_time: str = Field(..., alias="startTime")

    def to_slot(self, location: Optional[str] = None) -> TimeSlot:
        return TimeSlot(id=self.id, start_time=self.start_time, location=location)


class BookingConfirmation(_BackendModel):
    booking_id: Optional[str] = Field(None, alias="bookingId")
    appointment_id: Optional[str] = Field(None, alias="appointmentId")
    status: Optional[str] = None


# ============================================================================
# Pydantic Models for the Wizard API
# ============================================================================

class SessionCreateResponse(BaseModel):
    """Response model for session creation"""
    session_id: str = Field(..., description="Unique session identifier")
    step: str = Field(..., description="Current wizard step")
    messages: List[Dict[str, Any]] = Field(..., description="Messages produced so far")


class ActionRequest(BaseModel):
    """Request model for a client action within the wizard"""
    action: str = Field(..., min_length=1, description="Action name, e.g. 'client_type'")
    value: Optional[str] = Field(None, description="Selected option value")
    data: Optional[Dict[str, Any]] = Field(None, description="Structured payload (contact info)")


class ActionResponse(BaseModel):
    """Response model for action processing"""
    session_id: str = Field(..., description="Session identifier")
    step: str = Field(..., description="Current wizard step")
    previous_step: str = Field(..., description="Step before the action")
    messages: List[Dict[str, Any]] = Field(..., description="Messages produced by the action")
    session: Dict[str, Any] = Field(..., description="Session snapshot")
    success: bool = Field(..., description="Whether the action advanced or completed without error")


class SessionStatusResponse(BaseModel):
    """Response model for session status query"""
    session_id: str = Field(..., description="Session identifier")
    step: str = Field(..., description="Current wizard step")
    session: Dict[str, Any] = Field(..., description="Session snapshot")
    created_at: str = Field(..., description="Session creation timestamp")
    updated_at: str = Field(..., description="Last update timestamp")
    expires_at: str = Field(..., description="Session expiry timestamp")


class ContactLinkResponse(BaseModel):
    """Response model for the out-of-band contact link"""
    context: str = Field(..., description="Contact context tag")
    message: str = Field(..., description="Pre-filled outbound message")
    link: str = Field(..., description="sms: link carrying the message")


class HealthResponse(BaseModel):
    """Response model for health check"""
    status: str = Field(..., description="Service status: healthy/degraded/unhealthy")
    backend_reachable: bool = Field(..., description="Booking backend reachability")
    config_valid: bool = Field(..., description="Configuration validation status")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")


class MetricsResponse(BaseModel):
    """Response model for metrics endpoint"""
    total_sessions_created: int = Field(..., description="Total sessions created")
    active_sessions_count: int = Field(..., description="Currently held sessions")
    completed_bookings_count: int = Field(..., description="Successfully finalized bookings")
    failed_bookings_count: int = Field(..., description="Finalization attempts that failed")
