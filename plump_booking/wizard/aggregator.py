"""
Availability aggregation for the Get Plump Booking Wizard

Gathers staff rosters and slot availability spanning several locations or
dates. Each fan-out issues its requests concurrently and joins on the whole
batch; a failing source degrades to an empty contribution, so the batch as a
whole never raises because of one location or one date.
"""

import asyncio
import calendar
import logging
import time
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from plump_booking.shared.structured_logger import StructuredLogger
from plump_booking.wizard.api_client import BookingAPIClient
from plump_booking.wizard.models import (
    FIRST_AVAILABLE, INJECTABLE_CATEGORY_KEYWORDS, INJECTABLE_ITEM_KEYWORDS,
    LOCATION_COLORS, LOCATIONS, SKIN_CATEGORY_KEYWORDS, SKIN_ITEM_KEYWORDS,
    Cart, Location, LocationCart, ServiceOption, StaffMember, StaffVariantRef,
    TimeSlot, TreatmentType
)
from plump_booking.wizard.validation import api_date

logger = logging.getLogger(__name__)

DateCallback = Callable[[str, List[TimeSlot]], None]


# ============================================================================
# Pure helpers
# ============================================================================

def merge_staff(results: Iterable[LocationCart]) -> List[StaffMember]:
    """
    Build a de-duplicated roster from per-location carts.

    Results with no cart are skipped. A staff member seen at several
    locations appears once, with locations in order of first appearance.
    """
    roster: Dict[str, StaffMember] = {}

    for result in results:
        if result.cart is None:
            continue
        for category in result.cart.available_categories:
            for item in category.available_items:
                for variant in item.staff_variants:
                    staff = variant.staff
                    if staff is None:
                        continue
                    existing = roster.get(staff.id)
                    if existing is None:
                        roster[staff.id] = StaffMember(
                            id=staff.id,
                            first_name=staff.first_name,
                            last_name=staff.last_name,
                            nickname=staff.nickname,
                            avatar_url=staff.avatar,
                            locations=(result.location_name,),
                        )
                    elif result.location_name not in existing.locations:
                        roster[staff.id] = StaffMember(
                            id=existing.id,
                            first_name=existing.first_name,
                            last_name=existing.last_name,
                            nickname=existing.nickname,
                            avatar_url=existing.avatar_url,
                            locations=existing.locations + (result.location_name,),
                        )

    return list(roster.values())


def assign_location_colors(
    staff: Iterable[StaffMember], palette: Sequence[str] = LOCATION_COLORS
) -> Dict[str, str]:
    """Color each distinct location by first-seen order, cycling the palette"""
    colors: Dict[str, str] = {}
    for member in staff:
        for location in member.locations:
            if location not in colors:
                colors[location] = palette[len(colors) % len(palette)]
    return colors


def _matches(text: str, keywords: Tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def filter_services(
    cart: Cart,
    treatment_type: Optional[TreatmentType],
    injector_id: Optional[str] = None,
) -> List[ServiceOption]:
    """
    Services in a cart that fit the treatment type (and injector, if any).

    Injectable and skin treatments are matched on item or category names;
    a service matching neither is left out. With a specific injector, each
    service keeps only that injector's variant, and services the injector
    cannot perform are left out.
    """
    specific_injector = bool(injector_id) and injector_id != FIRST_AVAILABLE
    services: List[ServiceOption] = []

    for category in cart.available_categories:
        for item in category.available_items:
            if treatment_type == TreatmentType.INJECTABLE:
                keep = _matches(item.name, INJECTABLE_ITEM_KEYWORDS) or _matches(
                    category.name, INJECTABLE_CATEGORY_KEYWORDS
                )
            elif treatment_type == TreatmentType.SKIN:
                keep = _matches(item.name, SKIN_ITEM_KEYWORDS) or _matches(
                    category.name, SKIN_CATEGORY_KEYWORDS
                )
            else:
                keep = True
            if not keep:
                continue

            variants = [
                StaffVariantRef(id=v.id, staff_id=v.staff.id if v.staff else None)
                for v in item.staff_variants
            ]
            if specific_injector:
                variants = [v for v in variants if v.staff_id == injector_id]
                if not variants:
                    continue

            services.append(
                ServiceOption(
                    id=item.id,
                    name=item.name,
                    category=category.name,
                    description=item.description,
                    price=item.list_price,
                    duration=item.list_duration,
                    staff_variants=tuple(variants),
                )
            )

    return services


def month_dates(month: date, today: date) -> List[date]:
    """Every date in `month` that is today or later"""
    _, last_day = calendar.monthrange(month.year, month.month)
    first = month.replace(day=1)
    days = (first + timedelta(days=offset) for offset in range(last_day))
    return [day for day in days if day >= today]


def shift_month(month: date, direction: int) -> date:
    """First day of the month `direction` months away"""
    index = month.year * 12 + (month.month - 1) + direction
    return date(index // 12, index % 12 + 1, 1)


# ============================================================================
# Aggregator
# ============================================================================

class AvailabilityAggregator:
    """
    Concurrent multi-location and multi-date loader.

    Args:
        api: Booking API client
        locations: Location directory to fan out over
        palette: Colors assigned to locations in the availability view
        structured_logger: Optional JSON logger for fan-out summaries
    """

    def __init__(
        self,
        api: BookingAPIClient,
        locations: Mapping[str, Location] = LOCATIONS,
        palette: Sequence[str] = LOCATION_COLORS,
        structured_logger: Optional[StructuredLogger] = None,
    ):
        self.api = api
        self.locations = locations
        self.palette = palette
        self.structured_logger = structured_logger

    def _report(self, operation: str, succeeded: int, failed: int, start_time: float) -> None:
        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"{operation}: {succeeded} succeeded, {failed} failed ({duration_ms:.0f}ms)")
        if self.structured_logger:
            self.structured_logger.fanout_completed(operation, succeeded, failed, duration_ms)

    async def _load_location_cart(self, location: Location) -> LocationCart:
        try:
            cart = await self.api.create_cart(location.location_id)
        except Exception as e:
            logger.warning(f"Failed to load staff from {location.name}: {e}")
            cart = None
        return LocationCart(location.name, location.location_id, cart)

    async def load_all_staff(self) -> List[StaffMember]:
        """Roster across every configured location; failed locations are skipped"""
        start_time = time.time()
        results = await asyncio.gather(
            *(self._load_location_cart(location) for location in self.locations.values())
        )
        failed = sum(1 for result in results if result.cart is None)
        self._report("load_all_staff", len(results) - failed, failed, start_time)
        return merge_staff(results)

    def assign_location_colors(self, staff: Iterable[StaffMember]) -> Dict[str, str]:
        return assign_location_colors(staff, self.palette)

    async def _load_date(
        self,
        cart_id: str,
        day: date,
        staff_id: Optional[str],
        location: Optional[str],
    ) -> Tuple[str, List[TimeSlot], bool]:
        key = api_date(day)
        try:
            slots = await self.api.get_available_times(cart_id, day, staff_id)
        except Exception as e:
            logger.warning(f"Failed to load availability for {key}: {e}")
            return key, [], False
        if location is not None:
            slots = [TimeSlot(id=s.id, start_time=s.start_time, location=location) for s in slots]
        return key, slots, True

    async def load_availability_for_month(
        self,
        cart_id: str,
        month: date,
        today: date,
        staff_id: Optional[str] = None,
        on_date: Optional[DateCallback] = None,
        location: Optional[str] = None,
    ) -> Dict[str, List[TimeSlot]]:
        """
        Slots for every remaining date of `month`, keyed by ISO date.

        A failed date yields an empty list. `on_date` is called once per date
        as its own result arrives; past dates are never queried.
        """
        start_time = time.time()

        async def load(day: date) -> Tuple[str, List[TimeSlot], bool]:
            result = await self._load_date(cart_id, day, staff_id, location)
            if on_date is not None:
                on_date(result[0], result[1])
            return result

        results = await asyncio.gather(*(load(day) for day in month_dates(month, today)))
        failed = sum(1 for _, _, ok in results if not ok)
        self._report("load_availability_for_month", len(results) - failed, failed, start_time)
        return {key: slots for key, slots, _ in results}

    async def _load_injector_location(
        self, staff_id: str, location_name: str, month: date, today: date
    ) -> Dict[str, List[TimeSlot]]:
        location = self.locations[location_name]
        try:
            cart = await self.api.create_cart(location.location_id)
            services = filter_services(cart, None, staff_id)
            if not services:
                logger.info(f"No services for injector {staff_id} at {location_name}")
                return {}
            service = services[0]
            await self.api.add_service(cart.id, service.id, service.staff_variants[0].id)
        except Exception as e:
            logger.warning(f"Failed to prepare {location_name} for injector {staff_id}: {e}")
            return {}

        return await self.load_availability_for_month(
            cart.id, month, today, staff_id=staff_id, location=location_name
        )

    async def load_injector_availability(
        self,
        staff_id: str,
        location_names: Sequence[str],
        month: date,
        today: date,
    ) -> Dict[str, List[TimeSlot]]:
        """
        One injector's slots merged across their locations.

        Each slot is tagged with the location that supplied it; per date the
        merged list is ordered by start time. A location that fails
        contributes nothing.
        """
        start_time = time.time()
        per_location = await asyncio.gather(
            *(
                self._load_injector_location(staff_id, name, month, today)
                for name in location_names
            )
        )

        merged: Dict[str, List[TimeSlot]] = {}
        for availability in per_location:
            for key, slots in availability.items():
                merged.setdefault(key, []).extend(slots)
        for key in merged:
            merged[key].sort(key=lambda slot: slot.start_time)

        failed = sum(1 for availability in per_location if not availability)
        self._report("load_injector_availability", len(per_location) - failed, failed, start_time)
        return merged
