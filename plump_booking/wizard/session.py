"""
Session state for the Get Plump Booking Wizard

The booking session is an immutable value. Every transition produces a new
value through `apply_patch(session, patch)`, and `SessionStore` holds the one
current value for a wizard instance. Restarting swaps in a brand-new value, so
nothing from a previous flow can survive.

Invariants enforced by the reducer:
- booking_flow may only be set while treatment_type is injectable
- selected_location_id always equals the directory lookup of selected_location
- calendar_availability is upserted per date; a date's slot list is replaced
  whole, never merged
"""

import calendar
import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from plump_booking.wizard.models import (
    FIRST_AVAILABLE, LOCATIONS, BookingFlow, CalendarDay, ClientInfo, ClientType, Location,
    ProviderMode, SelectedTime, ServiceOption, StaffMember, Step, TimeSlot, TreatmentType
)

logger = logging.getLogger(__name__)

def _empty_map() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Session:
    """One booking flow's accumulated state"""
    flow_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    current_step: Step = Step.WELCOME
    client_type: Optional[ClientType] = None
    treatment_type: Optional[TreatmentType] = None
    booking_flow: Optional[BookingFlow] = None
    selected_location: Optional[str] = None
    selected_location_id: Optional[str] = None
    selected_injector: Optional[str] = None
    selected_injector_id: Optional[str] = None
    selected_service: Optional[str] = None
    selected_service_id: Optional[str] = None
    selected_time: Optional[SelectedTime] = None
    selected_date: Optional[str] = None
    cart_id: Optional[str] = None
    client_info: ClientInfo = field(default_factory=ClientInfo)
    available_staff: Tuple[StaffMember, ...] = ()
    available_services: Tuple[ServiceOption, ...] = ()
    calendar_availability: Mapping[str, Tuple[TimeSlot, ...]] = field(default_factory=_empty_map)
    calendar_month: Optional[date] = None
    injector_locations: Tuple[str, ...] = ()
    location_colors: Mapping[str, str] = field(default_factory=_empty_map)
    visible_locations: FrozenSet[str] = frozenset()
    booking_id: Optional[str] = None

    @property
    def has_specific_injector(self) -> bool:
        return bool(self.selected_injector_id) and self.selected_injector_id != FIRST_AVAILABLE

    @property
    def is_availability_view(self) -> bool:
        return self.treatment_type == TreatmentType.INJECTOR_AVAILABILITY

    def slots_for(self, day: str) -> Tuple[TimeSlot, ...]:
        """Slots for a date, hiding locations toggled off in the availability view"""
        slots = self.calendar_availability.get(day, ())
        if self.is_availability_view and self.visible_locations:
            slots = tuple(s for s in slots if s.location is None or s.location in self.visible_locations)
        return slots

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible data"""
        return {
            "flow_id": self.flow_id,
            "current_step": self.current_step.value,
            "client_type": _enum_value(self.client_type),
            "treatment_type": _enum_value(self.treatment_type),
            "booking_flow": _enum_value(self.booking_flow),
            "selected_location": self.selected_location,
            "selected_location_id": self.selected_location_id,
            "selected_injector": self.selected_injector,
            "selected_injector_id": self.selected_injector_id,
            "selected_service": self.selected_service,
            "selected_service_id": self.selected_service_id,
            "selected_time": dataclasses.asdict(self.selected_time) if self.selected_time else None,
            "selected_date": self.selected_date,
            "cart_id": self.cart_id,
            "client_info": dataclasses.asdict(self.client_info),
            "available_staff": [dataclasses.asdict(s) for s in self.available_staff],
            "available_services": [dataclasses.asdict(s) for s in self.available_services],
            "calendar_availability": {
                day: [dataclasses.asdict(slot) for slot in slots]
                for day, slots in sorted(self.calendar_availability.items())
            },
            "calendar_month": self.calendar_month.isoformat() if self.calendar_month else None,
            "injector_locations": list(self.injector_locations),
            "location_colors": dict(self.location_colors),
            "visible_locations": sorted(self.visible_locations),
            "booking_id": self.booking_id,
        }


def _enum_value(value) -> Optional[str]:
    return value.value if value is not None else None


SESSION_FIELDS = frozenset(f.name for f in dataclasses.fields(Session)) - {"flow_id"}


def new_session() -> Session:
    """Fresh session with every field at its default and a new flow id"""
    return Session()


def apply_patch(session: Session, patch: Optional[Mapping[str, Any]] = None) -> Session:
    """
    Merge a transition patch into a session, returning a new session.

    Args:
        session: Current session value (left untouched)
        patch: Field name -> new value

    Returns:
        New session value with the patch applied

    Raises:
        ValueError: unknown field, unknown location, or an invariant violation
    """
    if not patch:
        return session

    unknown = set(patch) - SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields in patch: {sorted(unknown)}")

    changes: Dict[str, Any] = dict(patch)

    # Per-date upsert; each listed date's slots are replaced whole
    if "calendar_availability" in changes:
        merged = dict(session.calendar_availability)
        for day, slots in changes["calendar_availability"].items():
            merged[day] = tuple(slots)
        changes["calendar_availability"] = MappingProxyType(merged)

    for name in ("available_staff", "available_services", "injector_locations"):
        if name in changes:
            changes[name] = tuple(changes[name])
    if "visible_locations" in changes:
        changes["visible_locations"] = frozenset(changes["visible_locations"])
    if "location_colors" in changes:
        changes["location_colors"] = MappingProxyType(dict(changes["location_colors"]))

    if "selected_location" in changes:
        location = changes["selected_location"]
        expected_id = lookup_location(location).location_id if location is not None else None
        given_id = changes.setdefault("selected_location_id", expected_id)
        if given_id != expected_id:
            raise ValueError(
                f"selected_location_id {given_id!r} does not match directory id for {location!r}"
            )
    elif "selected_location_id" in changes:
        raise ValueError("selected_location_id is derived from selected_location")

    updated = dataclasses.replace(session, **changes)

    if updated.booking_flow is not None and updated.treatment_type != TreatmentType.INJECTABLE:
        raise ValueError(
            f"booking_flow requires injectable treatment, got {_enum_value(updated.treatment_type)}"
        )

    return updated


def lookup_location(name: str) -> Location:
    """Resolve a location display name through the static directory"""
    try:
        return LOCATIONS[name]
    except KeyError:
        raise ValueError(f"Unknown location: {name!r}") from None


def provider_mode(session: Session) -> ProviderMode:
    """
    Render mode of the provider-location step.

    Pure function of (treatment_type, booking_flow, selected_injector_id).
    """
    if session.treatment_type == TreatmentType.INJECTOR_AVAILABILITY:
        return ProviderMode.AVAILABILITY_VIEW
    if (
        session.treatment_type == TreatmentType.INJECTABLE
        and session.booking_flow == BookingFlow.BY_INJECTOR
        and session.selected_injector_id is None
    ):
        return ProviderMode.INJECTOR_BOOKING
    return ProviderMode.LOCATION_PICKER


def calendar_days(session: Session, today: date) -> Tuple[CalendarDay, ...]:
    """
    Day cells for the displayed calendar month.

    A day is selectable when it is not in the past and has at least one
    visible slot.
    """
    month = session.calendar_month or today.replace(day=1)
    _, last_day = calendar.monthrange(month.year, month.month)
    days = []
    for number in range(1, last_day + 1):
        day = month.replace(day=number)
        slot_count = len(session.slots_for(day.isoformat()))
        days.append(CalendarDay(day.isoformat(), slot_count, day >= today and slot_count > 0))
    return tuple(days)


def available_locations(session: Session) -> Tuple[str, ...]:
    """Locations offered in the picker; narrowed to a specific injector's locations"""
    if session.has_specific_injector:
        for staff in session.available_staff:
            if staff.id == session.selected_injector_id and staff.locations:
                return staff.locations
    return tuple(LOCATIONS)


class SessionStore:
    """
    Holder of the current session value for one wizard.

    Writers go through `apply` (reducer merge) or `reset` (wholesale swap).
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session or new_session()

    @property
    def session(self) -> Session:
        return self._session

    def apply(self, patch: Optional[Mapping[str, Any]] = None) -> Session:
        self._session = apply_patch(self._session, patch)
        return self._session

    def apply_if_current(self, flow_id: str, patch: Mapping[str, Any]) -> bool:
        """
        Apply a patch only if the session still belongs to `flow_id`.

        Late responses from a flow that has since been restarted are dropped.
        """
        if self._session.flow_id != flow_id:
            logger.info(f"Dropping stale write for flow {flow_id} (current {self._session.flow_id})")
            return False
        self.apply(patch)
        return True

    def reset(self) -> Session:
        self._session = new_session()
        return self._session
