"""
Booking flow tests: step routing, critical-action failures and the full
welcome-to-confirmation path against a mocked backend.
"""

from datetime import date
from typing import Mapping
from unittest.mock import MagicMock

import pytest

from ..errors import ApiError, FlowError, NetworkError, StaleAvailabilityError
from ..flow import BookingWizard, classify_booking_error
from ..models import (
    FIRST_AVAILABLE, LOCATIONS, BookingConfirmation, BookingFlow, ClientInfo, ProviderMode,
    Step, TimeSlot, TreatmentType
)
from ..session import SESSION_FIELDS, Session, provider_mode
from .conftest import MICHAEL, SARAH, TODAY, make_cart


async def advance_to_calendar(wizard, treatment="skin", location="SoHo", service="svc-hydra"):
    await wizard.start()
    await wizard.select_client_type("new")
    await wizard.select_treatment_type(treatment)
    await wizard.select_location(location)
    assert await wizard.select_service(service) is True


def kinds(transcript):
    return [m.get("kind") for m in transcript.messages]


class TestStartAndRouting:
    """Test entry handlers and branch routing"""

    @pytest.mark.asyncio
    async def test_start_lands_on_client_type(self, wizard, transcript):
        session = await wizard.start()

        assert session.current_step == Step.CLIENT_TYPE
        assert transcript.messages[0]["text"] == "Hi! Welcome to Get Plump."
        grid = transcript.messages[-1]
        assert [c["value"] for c in grid["choices"]] == ["new", "returning", "member"]

    @pytest.mark.asyncio
    async def test_injectable_goes_to_booking_flow(self, wizard):
        await wizard.start()
        await wizard.select_client_type("returning")
        await wizard.select_treatment_type("injectable")

        assert wizard.session.current_step == Step.BOOKING_FLOW
        assert wizard.session.treatment_type == TreatmentType.INJECTABLE

    @pytest.mark.asyncio
    async def test_skin_skips_booking_flow(self, wizard, transcript):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")

        assert wizard.session.current_step == Step.PROVIDER_LOCATION
        assert provider_mode(wizard.session) == ProviderMode.LOCATION_PICKER
        grid = transcript.messages[-1]
        assert grid["kind"] == "locations"
        assert [c["value"] for c in grid["choices"]] == list(LOCATIONS)

    @pytest.mark.asyncio
    async def test_booking_flow_redirects_without_injectable(self, wizard, transcript):
        wizard.store.apply({"treatment_type": TreatmentType.SKIN})

        await wizard.router.go_to_step(Step.BOOKING_FLOW)

        assert wizard.session.current_step == Step.PROVIDER_LOCATION
        assert "How would you like to book" not in " ".join(transcript.texts())

    @pytest.mark.asyncio
    async def test_out_of_step_action_rejected(self, wizard):
        await wizard.start()

        with pytest.raises(FlowError):
            await wizard.select_location("SoHo")
        assert wizard.session.current_step == Step.CLIENT_TYPE

    @pytest.mark.asyncio
    async def test_invalid_option_rejected(self, wizard):
        await wizard.start()

        with pytest.raises(FlowError, match="ClientType"):
            await wizard.select_client_type("vip")


class TestInjectorFlows:
    """Test injector-first booking and the availability view"""

    @pytest.mark.asyncio
    async def test_injector_first_booking(self, wizard, mock_api, transcript):
        await wizard.start()
        await wizard.select_client_type("member")
        await wizard.select_treatment_type("injectable")
        await wizard.select_booking_flow("by-injector")

        assert provider_mode(wizard.session) == ProviderMode.INJECTOR_BOOKING
        grid = next(m for m in transcript.messages if m.get("kind") == "injectors")
        assert grid["choices"][0]["value"] == FIRST_AVAILABLE
        assert {c["value"] for c in grid["choices"][1:]} == {SARAH["id"], MICHAEL["id"]}
        assert any(m.get("context") == "injector-inquiry" for m in transcript.messages)

        await wizard.select_injector("staff-2")

        session = wizard.session
        assert session.selected_injector == "Michael Chen"
        assert provider_mode(session) == ProviderMode.LOCATION_PICKER

        await wizard.select_location("Tribeca")
        assert [s.name for s in wizard.session.available_services] == ["Botox"]

        assert await wizard.select_service("svc-botox") is True
        mock_api.add_service.assert_awaited_with("cart-1", "svc-botox", "var-botox-2")
        for call in mock_api.get_available_times.await_args_list:
            assert call.args[2] == "staff-2"

    @pytest.mark.asyncio
    async def test_first_available_books_without_variant(self, wizard, mock_api):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("injectable")
        await wizard.select_booking_flow("by-injector")
        await wizard.select_injector(FIRST_AVAILABLE)
        await wizard.select_location("SoHo")
        await wizard.select_service("svc-botox")

        mock_api.add_service.assert_awaited_with("cart-1", "svc-botox", None)

    @pytest.mark.asyncio
    async def test_location_outside_injector_rejected(self, wizard):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("injectable")
        await wizard.select_booking_flow("by-injector")
        await wizard.select_injector("staff-1")

        with pytest.raises(FlowError):
            await wizard.select_location("Not A Place")

    @pytest.mark.asyncio
    async def test_availability_view_to_booking(self, wizard, mock_api, transcript):
        soho = LOCATIONS["SoHo"].location_id

        async def create_cart(location_id):
            return make_cart("cart-soho" if location_id == soho else "cart-other")

        async def get_available_times(cart_id, day, staff_id=None):
            if cart_id == "cart-soho" and day == date(2025, 3, 12):
                return [TimeSlot("soho-1", "2025-03-12T15:00:00")]
            return []

        mock_api.create_cart.side_effect = create_cart
        mock_api.get_available_times.side_effect = get_available_times

        await wizard.start()
        await wizard.select_client_type("returning")
        await wizard.select_treatment_type("injector-availability")

        session = wizard.session
        assert provider_mode(session) == ProviderMode.AVAILABILITY_VIEW
        sarah = next(s for s in session.available_staff if s.id == "staff-1")
        assert set(session.location_colors) == set(sarah.locations)

        await wizard.select_injector_for_availability("staff-1")

        session = wizard.session
        assert session.current_step == Step.CALENDAR
        assert session.visible_locations == frozenset(sarah.locations)
        slots = session.calendar_availability["2025-03-12"]
        assert [(s.id, s.location) for s in slots] == [("soho-1", "SoHo")]
        calendar = [m for m in transcript.messages if m.get("kind") == "calendar"][-1]
        assert {loc["name"] for loc in calendar["locations"]} == set(sarah.locations)

        await wizard.toggle_location("SoHo")
        assert wizard.session.slots_for("2025-03-12") == ()
        await wizard.toggle_location("SoHo")
        assert len(wizard.session.slots_for("2025-03-12")) == 1

        assert await wizard.select_time("soho-1") is True

        session = wizard.session
        assert session.current_step == Step.SERVICES
        assert session.treatment_type == TreatmentType.INJECTABLE
        assert session.booking_flow == BookingFlow.BY_INJECTOR
        assert session.selected_location == "SoHo"
        assert session.selected_location_id == soho
        assert session.selected_injector_id == "staff-1"
        assert session.cart_id == "cart-soho"
        assert session.selected_time is None
        mock_api.reserve_slot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_staff_offers_contact(self, wizard, mock_api, transcript):
        mock_api.create_cart.side_effect = NetworkError("offline")

        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("injector-availability")

        assert wizard.session.available_staff == ()
        assert transcript.messages[-1]["kind"] == "contact"
        assert transcript.messages[-1]["context"] == "injector-inquiry"


class TestCriticalActionFailures:
    """Test that failed single-shot actions never advance the step"""

    @pytest.mark.asyncio
    async def test_cart_creation_failure_stays_on_services(self, wizard, mock_api, transcript):
        mock_api.create_cart.side_effect = ApiError("Service unavailable", status_code=503)

        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")

        assert wizard.session.current_step == Step.SERVICES
        assert wizard.session.cart_id is None
        assert "error" in kinds(transcript)
        assert transcript.messages[-1]["context"] == "service-inquiry"

    @pytest.mark.asyncio
    async def test_no_services_message(self, wizard, mock_api, transcript):
        mock_api.create_cart.return_value = make_cart(categories=[])

        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")

        assert "No services found for your selection." in transcript.texts()

    @pytest.mark.asyncio
    async def test_add_service_failure_stays_on_services(self, wizard, mock_api):
        mock_api.add_service.side_effect = ApiError("Cart expired")

        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")

        assert await wizard.select_service("svc-hydra") is False
        assert wizard.session.current_step == Step.SERVICES
        mock_api.get_available_times.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reservation_conflict_stays_on_calendar(self, wizard, mock_api, transcript):
        mock_api.reserve_slot.side_effect = StaleAvailabilityError(
            "Time slot not available", status_code=409
        )
        await advance_to_calendar(wizard)

        assert await wizard.select_time("slot-1000") is False

        session = wizard.session
        assert session.current_step == Step.CALENDAR
        assert session.selected_time is None
        assert (
            "I'm sorry, that time slot is no longer available. Please choose a different time."
            in transcript.texts()
        )
        assert transcript.messages[-1]["kind"] == "error"

    @pytest.mark.asyncio
    async def test_invalid_contact_info_stays_on_user_info(self, wizard, mock_api, transcript):
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")

        ok = await wizard.submit_client_info("Jane", "Doe", "not-an-email", "12345")

        assert ok is False
        assert wizard.session.current_step == Step.USER_INFO
        errors = transcript.messages[-1]["errors"]
        assert set(errors) == {"email", "phoneNumber"}
        mock_api.update_client_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_contact_save_failure_stays_on_user_info(self, wizard, mock_api):
        mock_api.update_client_info.side_effect = ApiError("Cart not found", status_code=404)
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")

        ok = await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "2125550100")

        assert ok is False
        assert wizard.session.current_step == Step.USER_INFO
        mock_api.complete_booking.assert_not_awaited()


class TestCalendar:
    """Test month loading, navigation and date selection"""

    @pytest.mark.asyncio
    async def test_month_loaded_from_today(self, wizard, mock_api, transcript):
        await advance_to_calendar(wizard)

        session = wizard.session
        assert session.calendar_month == date(2025, 3, 1)
        assert mock_api.get_available_times.await_count == 31
        assert len(session.calendar_availability["2025-03-10"]) == 1
        assert session.calendar_availability["2025-03-11"] == ()

        calendar = [m for m in transcript.messages if m.get("kind") == "calendar"][-1]
        assert calendar["month"] == "March 2025"
        selectable = [d["date"] for d in calendar["days"] if d["selectable"]]
        assert selectable == ["2025-03-10"]

    @pytest.mark.asyncio
    async def test_failed_date_does_not_block_others(self, wizard, mock_api):
        async def flaky(cart_id, day, staff_id=None):
            if day == date(2025, 3, 9):
                raise ApiError("boom")
            if day == date(2025, 3, 10):
                return [TimeSlot("slot-1000", "2025-03-10T10:00:00")]
            return []

        mock_api.get_available_times.side_effect = flaky
        await advance_to_calendar(wizard)

        assert wizard.session.calendar_availability["2025-03-09"] == ()
        assert len(wizard.session.calendar_availability["2025-03-10"]) == 1

    @pytest.mark.asyncio
    async def test_navigate_month(self, wizard, mock_api):
        await advance_to_calendar(wizard)
        mock_api.get_available_times.reset_mock()

        await wizard.navigate_month(1)

        assert wizard.session.calendar_month == date(2025, 4, 1)
        assert mock_api.get_available_times.await_count == 30

    @pytest.mark.asyncio
    async def test_navigate_into_past_queries_nothing(self, wizard, mock_api):
        await advance_to_calendar(wizard)
        mock_api.get_available_times.reset_mock()

        await wizard.navigate_month(-1)

        assert wizard.session.calendar_month == date(2025, 2, 1)
        mock_api.get_available_times.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_select_date(self, wizard, transcript):
        await advance_to_calendar(wizard)

        slots = await wizard.select_date("2025-03-10")
        assert [s.id for s in slots] == ["slot-1000"]
        assert wizard.session.selected_date == "2025-03-10"
        assert transcript.messages[-1]["date"] == "Mon, Mar 10"
        assert transcript.messages[-1]["slots"][0]["time"] == "10:00 AM"

        assert await wizard.select_date("2025-03-11") == []
        assert transcript.messages[-1]["text"] == "No available times for this date"

    @pytest.mark.asyncio
    async def test_unknown_slot_rejected(self, wizard):
        await advance_to_calendar(wizard)

        with pytest.raises(FlowError):
            await wizard.select_time("slot-9999")

    @pytest.mark.asyncio
    async def test_slot_outside_shown_month_rejected(self, wizard, mock_api):
        await advance_to_calendar(wizard)
        wizard.store.apply(
            {"calendar_availability": {"2025-04-02": [TimeSlot("slot-april", "2025-04-02T09:00:00")]}}
        )

        with pytest.raises(FlowError):
            await wizard.select_time("slot-april")

        mock_api.reserve_slot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slot_limited_to_selected_date(self, wizard, mock_api):
        await advance_to_calendar(wizard)
        await wizard.select_date("2025-03-11")

        with pytest.raises(FlowError):
            await wizard.select_time("slot-1000")

        await wizard.select_date("2025-03-10")
        assert await wizard.select_time("slot-1000") is True
        mock_api.reserve_slot.assert_awaited_once_with("cart-1", "slot-1000")


class TestConfirmation:
    """Test finalization and its failure classification"""

    @pytest.mark.asyncio
    async def test_end_to_end_booking(self, wizard, mock_api, transcript):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")

        mock_api.create_cart.assert_awaited_once_with("89763e68-2454-429c-ae9c-c1b4d91e7b81")

        assert await wizard.select_service("svc-hydra") is True
        await wizard.select_date("2025-03-10")
        assert await wizard.select_time("slot-1000") is True

        selected = wizard.session.selected_time
        assert (selected.date, selected.time) == ("Mon, Mar 10", "10:00 AM")

        assert await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "(212) 555-0100") is True

        session = wizard.session
        assert session.current_step == Step.CONFIRMATION
        assert session.client_info == ClientInfo("Jane", "Doe", "jane@x.com", "(212) 555-0100")
        assert session.booking_id == "bk-123"
        assert wizard.outcome == "completed"
        mock_api.reserve_slot.assert_awaited_once_with("cart-1", "slot-1000")
        mock_api.complete_booking.assert_awaited_once_with("cart-1")

        success = next(m for m in transcript.messages if m["kind"] == "success")
        assert "SoHo" in success["text"]
        assert "HydraFacial" in success["text"]
        assert "Mon, Mar 10 at 10:00 AM" in success["text"]
        assert "Booking ID: bk-123" in success["text"]

        options = [m for m in transcript.messages if m.get("kind") == "post-booking"][-1]
        assert options["choices"][0]["label"] == "Book Another Appointment"
        assert transcript.messages[-1]["context"] == "follow-up"

    @pytest.mark.asyncio
    async def test_finalization_failure(self, wizard, mock_api, transcript):
        mock_api.complete_booking.side_effect = ApiError("Payment method required")
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")
        await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "2125550100")

        assert wizard.outcome == "failed"
        assert wizard.session.booking_id is None
        error = next(m for m in transcript.messages if m["kind"] == "error")
        assert error["text"].startswith("Payment is required")
        options = [m for m in transcript.messages if m.get("kind") == "post-booking"][-1]
        assert options["choices"][0]["label"] == "Try Again"
        assert transcript.messages[-1]["context"] == "help"

    @pytest.mark.asyncio
    async def test_outcome_logged_structurally(self, test_config, mock_api, transcript):
        structured = MagicMock()
        wizard = BookingWizard(
            test_config, mock_api, transcript, clock=lambda: TODAY, structured_logger=structured
        )
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")
        await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "2125550100")

        structured.event.assert_called_once()
        args = structured.event.call_args
        assert args.args[:2] == (wizard.session.flow_id, "booking_completed")
        assert args.kwargs["data"]["booking_id"] == "bk-123"

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Payment required", "Payment is required"),
            ("Permission denied", "Unable to complete booking due to system permissions"),
            ("Unauthorized", "Unable to complete booking due to system permissions"),
            ("Slot not available", "The selected time is no longer available"),
            ("GraphQL error: bad cart", "Booking system error"),
            ("Something odd", "We encountered an issue"),
        ],
    )
    def test_classify_booking_error(self, message, expected):
        assert classify_booking_error(ApiError(message)).startswith(expected)


class TestRestartAndRetry:
    """Test flow reset and step re-entry"""

    @pytest.mark.asyncio
    async def test_restart_clears_every_field(self, wizard):
        await advance_to_calendar(wizard)
        await wizard.select_date("2025-03-10")
        old_flow = wizard.session.flow_id
        assert wizard.session.cart_id == "cart-1"

        await wizard.restart()

        session = wizard.session
        blank = Session()
        assert session.flow_id != old_flow
        assert session.current_step == Step.CLIENT_TYPE
        for name in SESSION_FIELDS - {"current_step"}:
            value, default = getattr(session, name), getattr(blank, name)
            if isinstance(value, Mapping):
                value, default = dict(value), dict(default)
            assert value == default, name
        assert wizard.outcome is None

    @pytest.mark.asyncio
    async def test_retry_reruns_current_step(self, wizard, mock_api):
        mock_api.create_cart.side_effect = [NetworkError("offline"), make_cart("cart-2")]

        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")
        assert wizard.session.cart_id is None

        await wizard.retry()

        assert wizard.session.current_step == Step.SERVICES
        assert wizard.session.cart_id == "cart-2"

    @pytest.mark.asyncio
    async def test_retry_after_completed_booking_is_rejected(self, wizard, mock_api):
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")
        await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "2125550100")
        assert wizard.session.booking_id == "bk-123"

        with pytest.raises(FlowError):
            await wizard.retry()

        assert mock_api.complete_booking.await_count == 1
        assert wizard.session.current_step == Step.CONFIRMATION

    @pytest.mark.asyncio
    async def test_retry_after_failed_finalization_commits(self, wizard, mock_api):
        mock_api.complete_booking.side_effect = [
            ApiError("Backend error"),
            BookingConfirmation(booking_id="bk-9", status="confirmed"),
        ]
        await advance_to_calendar(wizard)
        await wizard.select_time("slot-1000")
        await wizard.submit_client_info("Jane", "Doe", "jane@x.com", "2125550100")
        assert wizard.outcome == "failed"

        await wizard.retry()

        assert wizard.outcome == "completed"
        assert wizard.session.booking_id == "bk-9"
        assert mock_api.complete_booking.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_on_services_reuses_cart(self, wizard, mock_api, transcript):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")
        transcript.drain()

        await wizard.retry()

        mock_api.create_cart.assert_awaited_once()
        assert wizard.session.cart_id == "cart-1"
        services = next(m for m in transcript.drain() if m.get("kind") == "services")
        assert [c["value"] for c in services["choices"]] == ["svc-hydra"]

    @pytest.mark.asyncio
    async def test_location_selection_opens_fresh_cart(self, wizard, mock_api):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        wizard.store.apply({"cart_id": "cart-stale"})

        await wizard.select_location("SoHo")

        mock_api.create_cart.assert_awaited_once()
        assert wizard.session.cart_id == "cart-1"

    @pytest.mark.asyncio
    async def test_contact_link(self, wizard):
        await wizard.start()
        await wizard.select_client_type("new")
        await wizard.select_treatment_type("skin")
        await wizard.select_location("SoHo")

        contact = wizard.contact_link("service-inquiry")

        assert contact["message"] == (
            "I'm looking for services at SoHo but need different options."
        )
        assert contact["link"].startswith("sms:+16463468809?body=I%27m%20looking")
