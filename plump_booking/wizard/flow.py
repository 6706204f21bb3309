"""
Booking flow for the Get Plump Booking Wizard

Contains the step entry handlers and the client actions that move a booking
from welcome to confirmation.

Flow:
    welcome -> client-type -> treatment-type -> [booking-flow] ->
    provider-location -> services -> calendar -> user-info -> confirmation

Every step change goes through `StepRouter.go_to_step(step, patch)`; entry
handlers read their inputs from the merged session only. Actions check the
step they were issued in and raise FlowError when out of step.
"""

import dataclasses
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Type

from plump_booking.shared.structured_logger import StructuredLogger
from plump_booking.wizard.aggregator import AvailabilityAggregator, filter_services, shift_month
from plump_booking.wizard.api_client import BookingAPIClient
from plump_booking.wizard.config import WizardConfig
from plump_booking.wizard.errors import FlowError, ValidationError, WizardError
from plump_booking.wizard.models import (
    BOOKING_FLOW_LABELS, CLIENT_GREETINGS, CLIENT_TYPE_LABELS, FIRST_AVAILABLE,
    FIRST_AVAILABLE_LABEL, TEXT, TREATMENT_TYPE_LABELS, BookingConfirmation,
    BookingFlow, Choice, ClientInfo, ClientType, ContactContext, ProviderMode,
    SelectedTime, StaffMember, Step, TimeSlot, TreatmentType
)
from plump_booking.wizard.router import StepRouter
from plump_booking.wizard.session import (
    Session, SessionStore, available_locations, calendar_days, lookup_location, provider_mode
)
from plump_booking.wizard.ui import ChatUI, ContactFallback
from plump_booking.wizard.validation import (
    calendar_date, check_client_info, format_duration, format_price, format_time
)

logger = logging.getLogger(__name__)

CONTACT_FORM_FIELDS = (
    {"name": "firstName", "label": "First Name", "type": "text"},
    {"name": "lastName", "label": "Last Name", "type": "text"},
    {"name": "email", "label": "Email", "type": "email"},
    {"name": "phoneNumber", "label": "Phone Number", "type": "tel"},
)


def classify_booking_error(error: Exception) -> str:
    """Pick the client-facing message for a failed finalization"""
    text = str(error).lower()

    if "payment" in text:
        return "Payment is required to complete this booking. Please contact us to finalize your appointment."
    if "permission" in text or "unauthorized" in text:
        return "Unable to complete booking due to system permissions. Please contact us to complete your appointment."
    if "time" in text or "available" in text:
        return "The selected time is no longer available. Please choose a different time or contact us."
    if "graphql error" in text or "backend error" in text:
        return "Booking system error. Please contact us to complete your appointment."
    return "We encountered an issue completing your booking. Please contact us and we'll be happy to help."


def booking_success_message(session: Session, result: BookingConfirmation) -> str:
    lines = [
        "Booking Completed Successfully!",
        "",
        f"Location: {session.selected_location}",
        f"Service: {session.selected_service}",
    ]
    if session.selected_time:
        lines.append(f"Date & Time: {session.selected_time.date} at {session.selected_time.time}")
    if session.selected_injector:
        lines.append(f"Provider: {session.selected_injector}")
    lines.append(f"Client: {session.client_info.first_name} {session.client_info.last_name}")
    if result.booking_id:
        lines.append(f"Booking ID: {result.booking_id}")
    if result.appointment_id:
        lines.append(f"Appointment ID: {result.appointment_id}")
    lines += [
        "",
        "Your appointment has been confirmed and added to our calendar. "
        "You should receive a confirmation email shortly.",
    ]
    return "\n".join(lines)


def _parse_option(enum_cls: Type, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        raise FlowError(f"Invalid {enum_cls.__name__} option: {value!r}") from None


class BookingWizard:
    """
    One client's booking conversation.

    Args:
        config: Wizard configuration
        api: Booking API client
        ui: Chat UI receiving the wizard's messages
        store: Session holder (a fresh one is created when omitted)
        aggregator: Multi-location loader (built on `api` when omitted)
        contact: SMS contact fallback (built from config when omitted)
        clock: Returns today's date; past dates are never queried
        structured_logger: Optional JSON logger for transitions and fan-outs
    """

    def __init__(
        self,
        config: WizardConfig,
        api: BookingAPIClient,
        ui: ChatUI,
        store: Optional[SessionStore] = None,
        aggregator: Optional[AvailabilityAggregator] = None,
        contact: Optional[ContactFallback] = None,
        clock: Callable[[], date] = date.today,
        structured_logger: Optional[StructuredLogger] = None,
    ):
        self.config = config
        self.api = api
        self.ui = ui
        self.store = store or SessionStore()
        self.aggregator = aggregator or AvailabilityAggregator(api, structured_logger=structured_logger)
        self.contact = contact or ContactFallback(config.contact_phone)
        self.clock = clock
        self.structured_logger = structured_logger

        # Finalization outcome of the current flow: None, "completed" or "failed"
        self.outcome: Optional[str] = None

        self.router = StepRouter(
            self.store,
            {
                Step.WELCOME: self._enter_welcome,
                Step.CLIENT_TYPE: self._enter_client_type,
                Step.TREATMENT_TYPE: self._enter_treatment_type,
                Step.BOOKING_FLOW: self._enter_booking_flow,
                Step.PROVIDER_LOCATION: self._enter_provider_location,
                Step.SERVICES: self._enter_services,
                Step.CALENDAR: self._enter_calendar,
                Step.USER_INFO: self._enter_user_info,
                Step.CONFIRMATION: self._enter_confirmation,
            },
            structured_logger=structured_logger,
            log_transitions=config.log_state_transitions,
        )

    @property
    def session(self) -> Session:
        return self.store.session

    def _require_step(self, *steps: Step) -> Session:
        session = self.session
        if session.current_step not in steps:
            allowed = ", ".join(step.value for step in steps)
            raise FlowError(
                f"Action not available in step '{session.current_step.value}' (expected {allowed})"
            )
        return session

    async def _offer_contact(self, label: str, context: ContactContext) -> None:
        await self.ui.add("system", self.contact.button(label, context, self.session))

    # ================================================================== #
    # Step entry handlers
    # ================================================================== #

    async def _enter_welcome(self, session: Session) -> None:
        await self.ui.add("system", TEXT["welcome_title"])
        await self.ui.add("system", TEXT["welcome_subtitle"])
        await self.router.go_to_step(Step.CLIENT_TYPE)

    async def _enter_client_type(self, session: Session) -> None:
        await self.ui.add("system", "Are you a new or returning client?")
        options = [
            Choice(label, client_type.value, description)
            for client_type, (label, description) in CLIENT_TYPE_LABELS.items()
        ]
        await self.ui.add("system", self.ui.create_button_grid(options))

    async def _enter_treatment_type(self, session: Session) -> None:
        greeting = CLIENT_GREETINGS.get(session.client_type, "Welcome!")
        await self.ui.add("system", f"{greeting} What type of treatment are you interested in?")
        options = [
            Choice(label, treatment.value, description)
            for treatment, (label, description) in TREATMENT_TYPE_LABELS.items()
        ]
        await self.ui.add("system", self.ui.create_button_grid(options))

    async def _enter_booking_flow(self, session: Session) -> None:
        if session.treatment_type != TreatmentType.INJECTABLE:
            logger.warning(
                f"booking-flow entered with treatment {session.treatment_type}; "
                "redirecting to provider-location"
            )
            await self.router.go_to_step(Step.PROVIDER_LOCATION)
            return

        await self.ui.add("system", "How would you like to book your injectable treatment?")
        options = [
            Choice(label, flow.value, description)
            for flow, (label, description) in BOOKING_FLOW_LABELS.items()
        ]
        await self.ui.add("system", self.ui.create_button_grid(options))

    async def _enter_provider_location(self, session: Session) -> None:
        mode = provider_mode(session)

        if mode == ProviderMode.LOCATION_PICKER:
            options = [
                Choice(name, name, lookup_location(name).address)
                for name in available_locations(session)
            ]
            await self.ui.add("system", "Which location would you like to visit?")
            await self.ui.add("system", self.ui.create_button_grid(options, kind="locations"))
            return

        await self.ui.add("system", "Loading our team of injectors...")
        staff = await self.aggregator.load_all_staff()
        colors = self.aggregator.assign_location_colors(staff)
        if not self.store.apply_if_current(
            session.flow_id, {"available_staff": staff, "location_colors": colors}
        ):
            return

        if not staff:
            await self.ui.add("system", "We couldn't load our injectors right now.")
            await self._offer_contact("Contact us to book with an injector", ContactContext.INJECTOR_INQUIRY)
            return

        options = [
            Choice(member.full_name, member.id, ", ".join(member.locations))
            for member in staff
        ]

        if mode == ProviderMode.AVAILABILITY_VIEW:
            await self.ui.add(
                "system", "Select an injector to view their availability across all locations:"
            )
            await self.ui.add("system", self.ui.create_button_grid(options, kind="injectors"))
            return

        first_available = Choice(
            FIRST_AVAILABLE_LABEL, FIRST_AVAILABLE, "Book with the next available injector"
        )
        await self.ui.add("system", "Who would you like to book with?")
        await self.ui.add(
            "system", self.ui.create_button_grid([first_available] + options, kind="injectors")
        )
        await self._offer_contact(
            "Don't see your preferred injector? Contact us", ContactContext.INJECTOR_INQUIRY
        )

    async def _enter_services(self, session: Session) -> None:
        if session.selected_location_id is None:
            raise FlowError("services step requires a selected location")

        # One cart per location selection; re-entry reuses it
        if session.cart_id is None:
            try:
                cart = await self.api.create_cart(session.selected_location_id)
            except WizardError as e:
                logger.error(f"Failed to create cart at {session.selected_location}: {e}")
                await self.ui.show_error("Unable to create booking session. Please try again or contact us.")
                await self._offer_contact("Contact us for assistance", ContactContext.SERVICE_INQUIRY)
                return

            services = filter_services(cart, session.treatment_type, session.selected_injector_id)
            if not self.store.apply_if_current(
                session.flow_id, {"cart_id": cart.id, "available_services": services}
            ):
                return
        else:
            services = list(session.available_services)

        if not services:
            await self.ui.add("system", TEXT["error_no_services"])
            await self._offer_contact("Contact us for assistance", ContactContext.SERVICE_INQUIRY)
            return

        label = (
            "injectable treatments"
            if session.treatment_type == TreatmentType.INJECTABLE
            else "skin treatments"
        )
        await self.ui.add("system", f"Here are the available {label} at {session.selected_location}:")
        options = [
            Choice(
                service.name,
                service.id,
                format_duration(service.duration),
                {"price": format_price(service.price), "category": service.category},
            )
            for service in services[: self.config.max_services_shown]
        ]
        await self.ui.add("system", self.ui.create_button_grid(options, kind="services"))
        await self._offer_contact(
            "Don't see what you're looking for? Contact us", ContactContext.SERVICE_INQUIRY
        )

    async def _enter_calendar(self, session: Session) -> None:
        if session.is_availability_view:
            await self.ui.add(
                "system",
                f"Perfect! Loading {session.selected_injector}'s availability across all locations...",
            )
        else:
            if session.cart_id is None:
                raise FlowError("calendar step requires a cart")
            await self.ui.add("system", "Here are the available appointment times:")
        await self._load_calendar(session)

    async def _load_calendar(self, session: Session) -> None:
        today = self.clock()
        month = session.calendar_month or today.replace(day=1)
        flow_id = session.flow_id
        if not self.store.apply_if_current(flow_id, {"calendar_month": month}):
            return

        if session.is_availability_view:
            availability = await self.aggregator.load_injector_availability(
                session.selected_injector_id, session.injector_locations, month, today
            )
            if not self.store.apply_if_current(
                flow_id,
                {
                    "calendar_availability": availability,
                    "visible_locations": self.session.visible_locations or session.injector_locations,
                },
            ):
                return
            if not any(availability.values()):
                await self.ui.show_error("Unable to load availability. Please try again or contact us.")
                await self._offer_contact("Don't see a good time? Contact us", ContactContext.TIME_INQUIRY)
                return
            await self.ui.add(
                "system", f"Showing {session.selected_injector}'s availability across all locations..."
            )
        else:
            staff_id = session.selected_injector_id if session.has_specific_injector else None

            def record(day: str, slots: List[TimeSlot]) -> None:
                self.store.apply_if_current(flow_id, {"calendar_availability": {day: slots}})

            await self.aggregator.load_availability_for_month(
                session.cart_id, month, today, staff_id=staff_id, on_date=record
            )
            if self.session.flow_id != flow_id:
                return

        await self._show_calendar()

    async def _show_calendar(self) -> None:
        session = self.session
        month = session.calendar_month
        content: Dict[str, Any] = {
            "kind": "calendar",
            "month": f"{month:%B %Y}",
            "days": [dataclasses.asdict(day) for day in calendar_days(session, self.clock())],
        }
        if session.is_availability_view:
            content["locations"] = [
                {
                    "name": name,
                    "color": session.location_colors.get(name),
                    "visible": name in session.visible_locations,
                }
                for name in session.injector_locations
            ]
        await self.ui.add("system", content)
        await self._offer_contact("Don't see a good time? Contact us", ContactContext.TIME_INQUIRY)

    async def _enter_user_info(self, session: Session) -> None:
        await self.ui.add(
            "system",
            {
                "kind": "form",
                "text": "Please provide your contact information:",
                "fields": [dict(f) for f in CONTACT_FORM_FIELDS],
            },
        )

    async def _enter_confirmation(self, session: Session) -> None:
        if session.cart_id is None:
            raise FlowError("confirmation step requires a cart")

        await self.ui.add("system", "Completing your booking...")
        try:
            result = await self.api.complete_booking(session.cart_id)
        except WizardError as e:
            logger.error(f"Booking finalization failed for cart {session.cart_id}: {e}")
            self.outcome = "failed"
            if self.structured_logger:
                self.structured_logger.event(
                    session.flow_id, "booking_failed", e.message, level="ERROR",
                    data={"cart_id": session.cart_id},
                )
            await self.ui.show_error(classify_booking_error(e))
            await self.ui.add(
                "system",
                self.ui.create_button_grid([Choice("Try Again", "restart")], kind="post-booking"),
            )
            await self._offer_contact("Contact Us for Help", ContactContext.HELP)
            return

        if not self.store.apply_if_current(session.flow_id, {"booking_id": result.booking_id}):
            return
        self.outcome = "completed"
        logger.info(f"Booking completed: booking_id={result.booking_id}, cart={session.cart_id}")
        if self.structured_logger:
            self.structured_logger.event(
                session.flow_id, "booking_completed", "Booking finalized",
                data={"booking_id": result.booking_id, "cart_id": session.cart_id},
            )

        await self.ui.show_success(booking_success_message(self.session, result))
        await self.ui.add(
            "system",
            self.ui.create_button_grid(
                [Choice("Book Another Appointment", "restart")], kind="post-booking"
            ),
        )
        await self._offer_contact("Questions? Contact Us", ContactContext.FOLLOW_UP)

    # ================================================================== #
    # Client actions
    # ================================================================== #

    async def start(self) -> Session:
        """Begin a brand-new flow, discarding everything from the previous one"""
        self.store.reset()
        self.outcome = None
        await self.router.go_to_step(Step.WELCOME)
        return self.session

    async def restart(self) -> Session:
        logger.info(f"Restarting flow {self.session.flow_id}")
        return await self.start()

    async def retry(self) -> Session:
        """
        Re-run the current step's entry action.

        A completed booking is never finalized again; start a new flow instead.
        """
        session = self.session
        if session.current_step == Step.CONFIRMATION and session.booking_id is not None:
            raise FlowError("Booking already completed; restart to book another appointment")
        await self.router.go_to_step(session.current_step)
        return self.session

    async def select_client_type(self, value: str) -> None:
        self._require_step(Step.CLIENT_TYPE)
        client_type = _parse_option(ClientType, value)
        await self.ui.add("user", CLIENT_TYPE_LABELS[client_type][0])
        await self.router.go_to_step(Step.TREATMENT_TYPE, {"client_type": client_type})

    async def select_treatment_type(self, value: str) -> None:
        self._require_step(Step.TREATMENT_TYPE)
        treatment = _parse_option(TreatmentType, value)
        await self.ui.add("user", TREATMENT_TYPE_LABELS[treatment][0])
        target = Step.BOOKING_FLOW if treatment == TreatmentType.INJECTABLE else Step.PROVIDER_LOCATION
        await self.router.go_to_step(target, {"treatment_type": treatment})

    async def select_booking_flow(self, value: str) -> None:
        self._require_step(Step.BOOKING_FLOW)
        booking_flow = _parse_option(BookingFlow, value)
        await self.ui.add("user", BOOKING_FLOW_LABELS[booking_flow][0])
        await self.router.go_to_step(Step.PROVIDER_LOCATION, {"booking_flow": booking_flow})

    def _find_staff(self, staff_id: str) -> StaffMember:
        for member in self.session.available_staff:
            if member.id == staff_id:
                return member
        raise FlowError(f"Unknown injector: {staff_id!r}")

    def _require_mode(self, mode: ProviderMode) -> None:
        session = self._require_step(Step.PROVIDER_LOCATION)
        current = provider_mode(session)
        if current != mode:
            raise FlowError(f"Action not available in {current.value} mode")

    async def select_injector(self, staff_id: str) -> None:
        """Pick an injector (or First Available) before choosing a location"""
        self._require_mode(ProviderMode.INJECTOR_BOOKING)
        if staff_id == FIRST_AVAILABLE:
            name = FIRST_AVAILABLE_LABEL
        else:
            name = self._find_staff(staff_id).full_name

        await self.ui.add("user", name)
        await self.ui.add("system", "Perfect! Now please select your preferred location:")
        await self.router.go_to_step(
            Step.PROVIDER_LOCATION, {"selected_injector": name, "selected_injector_id": staff_id}
        )

    async def select_injector_for_availability(self, staff_id: str) -> None:
        self._require_mode(ProviderMode.AVAILABILITY_VIEW)
        member = self._find_staff(staff_id)
        await self.ui.add("user", member.full_name)
        await self.router.go_to_step(
            Step.CALENDAR,
            {
                "selected_injector": member.full_name,
                "selected_injector_id": member.id,
                "injector_locations": member.locations,
            },
        )

    async def select_location(self, name: str) -> None:
        session = self.session
        self._require_mode(ProviderMode.LOCATION_PICKER)
        if name not in available_locations(session):
            raise FlowError(f"Location not available: {name!r}")

        await self.ui.add("user", name)
        await self.ui.add("system", f"Perfect! Creating your booking session for {name}...")
        await self.router.go_to_step(
            Step.SERVICES,
            {
                "selected_location": name,
                "selected_location_id": lookup_location(name).location_id,
                "cart_id": None,
                "available_services": (),
            },
        )

    async def select_service(self, service_id: str) -> bool:
        """
        Attach a service to the cart, then move to the calendar.

        Returns:
            True if the step advanced; False if the backend rejected the service
        """
        session = self._require_step(Step.SERVICES)
        if session.cart_id is None:
            raise FlowError("No booking cart; reload services first")

        service = next((s for s in session.available_services if s.id == service_id), None)
        if service is None:
            raise FlowError(f"Unknown service: {service_id!r}")

        variant_id = None
        if session.has_specific_injector:
            variant = service.variant_for(session.selected_injector_id)
            variant_id = variant.id if variant else None

        await self.ui.add("user", service.name)
        try:
            await self.api.add_service(session.cart_id, service.id, variant_id)
        except WizardError as e:
            logger.error(f"Failed to add service {service.id} to cart {session.cart_id}: {e}")
            await self.ui.show_error("Unable to add service. Please try again or contact us.")
            return False

        if self.session.flow_id != session.flow_id:
            return False

        await self.ui.add(
            "system",
            f"Great! I've added {service.name} to your booking. "
            "Now let me find available appointment times...",
        )
        await self.router.go_to_step(
            Step.CALENDAR, {"selected_service": service.name, "selected_service_id": service.id}
        )
        return True

    async def navigate_month(self, direction: int) -> None:
        """Move the calendar one month back (-1) or forward (+1) and load it"""
        session = self._require_step(Step.CALENDAR)
        if direction not in (-1, 1):
            raise ValueError(f"direction must be -1 or 1, got {direction}")

        month = shift_month(session.calendar_month or self.clock().replace(day=1), direction)
        await self._load_calendar(self.store.apply({"calendar_month": month, "selected_date": None}))

    async def select_date(self, iso_date: str) -> List[TimeSlot]:
        """Show the visible slots of one date"""
        self._require_step(Step.CALENDAR)
        try:
            date.fromisoformat(iso_date)
        except ValueError:
            raise FlowError(f"Invalid date: {iso_date!r}") from None

        session = self.store.apply({"selected_date": iso_date})
        slots = list(session.slots_for(iso_date))
        if not slots:
            await self.ui.add("system", "No available times for this date")
            return slots

        await self.ui.add(
            "system",
            {
                "kind": "slots",
                "date": calendar_date(iso_date),
                "slots": [
                    {
                        "id": slot.id,
                        "time": format_time(slot.start_time),
                        "location": slot.location,
                        "color": session.location_colors.get(slot.location) if slot.location else None,
                    }
                    for slot in slots
                ],
            },
        )
        return slots

    def _find_slot(self, slot_id: str):
        """Look a slot up among the ones on screen: the selected date, else the shown month"""
        session = self.session
        if session.selected_date is not None:
            days = [session.selected_date]
        else:
            month = session.calendar_month or self.clock().replace(day=1)
            prefix = month.strftime("%Y-%m-")
            days = [day for day in session.calendar_availability if day.startswith(prefix)]

        for day in days:
            for slot in session.slots_for(day):
                if slot.id == slot_id:
                    return day, slot
        raise FlowError(f"Unknown time slot: {slot_id!r}")

    async def select_time(self, slot_id: str) -> bool:
        """
        Reserve a slot, then move on.

        In the regular calendar the slot is reserved and the flow moves to
        user-info. In the availability view the booking becomes an
        injector-first injectable booking at the slot's location.

        Returns:
            True if the step advanced; False if the slot could not be reserved
        """
        session = self._require_step(Step.CALENDAR)
        day, slot = self._find_slot(slot_id)
        selected = SelectedTime(
            id=slot.id,
            time=format_time(slot.start_time),
            date=calendar_date(day),
            start_time=slot.start_time,
        )
        await self.ui.add("user", f"{selected.date} at {selected.time}")

        if session.is_availability_view:
            await self.ui.add(
                "system",
                f"Great choice! Let's book with {session.selected_injector} at {slot.location}.",
            )
            await self.router.go_to_step(
                Step.SERVICES,
                {
                    "treatment_type": TreatmentType.INJECTABLE,
                    "booking_flow": BookingFlow.BY_INJECTOR,
                    "selected_location": slot.location,
                    "selected_location_id": lookup_location(slot.location).location_id,
                    "cart_id": None,
                    "available_services": (),
                    "selected_date": day,
                    "calendar_month": date.fromisoformat(day).replace(day=1),
                },
            )
            return True

        await self.ui.add(
            "system",
            f"Perfect! I've noted your preferred time: {selected.date} at {selected.time}. "
            "Let me reserve this time slot...",
        )
        try:
            await self.api.reserve_slot(session.cart_id, slot.id)
        except WizardError as e:
            logger.warning(f"Reservation of slot {slot.id} failed: {e}")
            await self.ui.add(
                "system", "I'm sorry, that time slot is no longer available. Please choose a different time."
            )
            await self.ui.show_error("Time slot is no longer available. Please select a different time.")
            return False

        if self.session.flow_id != session.flow_id:
            return False

        await self.ui.add(
            "system",
            "Great! I've reserved your time slot. "
            "Now I need your contact information to complete your booking...",
        )
        await self.router.go_to_step(Step.USER_INFO, {"selected_time": selected, "selected_date": day})
        return True

    async def toggle_location(self, name: str) -> None:
        """Show or hide one location's slots in the availability view"""
        session = self._require_step(Step.CALENDAR)
        if not session.is_availability_view or name not in session.injector_locations:
            raise FlowError(f"Location filter not available: {name!r}")

        visible = set(session.visible_locations)
        visible.symmetric_difference_update({name})
        self.store.apply({"visible_locations": visible})
        await self._show_calendar()

    async def submit_client_info(
        self, first_name: str, last_name: str, email: str, phone_number: str
    ) -> bool:
        """
        Validate and save contact info, then finalize the booking.

        Returns:
            True if the step advanced; False on validation or save failure
        """
        session = self._require_step(Step.USER_INFO)
        if session.cart_id is None:
            raise FlowError("No booking cart")

        try:
            info = check_client_info(ClientInfo(first_name, last_name, email, phone_number))
        except ValidationError as e:
            await self.ui.add(
                "system",
                {
                    "kind": "form_errors",
                    "text": "Please correct the highlighted fields.",
                    "errors": dict(e.field_errors),
                },
            )
            return False

        await self.ui.add("user", f"{info.first_name} {info.last_name}")
        try:
            await self.api.update_client_info(session.cart_id, info)
        except WizardError as e:
            logger.error(f"Failed to save client info on cart {session.cart_id}: {e}")
            await self.ui.show_error("Unable to save your information. Please try again or contact us.")
            return False

        if self.session.flow_id != session.flow_id:
            return False

        await self.router.go_to_step(Step.CONFIRMATION, {"client_info": info})
        return True

    def contact_link(self, context: str) -> Dict[str, str]:
        """Pre-filled out-of-band contact for a context tag"""
        tag = _parse_option(ContactContext, context)
        return {
            "context": tag.value,
            "message": self.contact.message_for(tag, self.session),
            "link": self.contact.link_for(tag, self.session),
        }
