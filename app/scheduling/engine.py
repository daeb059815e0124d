# app/scheduling/engine.py

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from app.clock import local_today, to_utc
from app.config import BusinessConfig, settings
from app.core import day_of_week, format_display, format_hhmm, parse_date
from app.errors import InvalidDateError, InvalidRequestError
from app.scheduling.checker import ConsultantAvailabilityChecker, ConsultantCapacity
from app.scheduling.entities import ServiceSpec
from app.scheduling.slots import SlotGenerator
from app.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start: int
    available: bool
    consultants: Tuple[ConsultantCapacity, ...] = ()

    @property
    def time(self) -> str:
        return format_hhmm(self.start)

    @property
    def display(self) -> str:
        return format_display(self.start)

    @property
    def total_capacity(self) -> int:
        return sum(c.remaining for c in self.consultants)


@dataclass(frozen=True)
class DaySlots:
    day: date
    service: ServiceSpec
    slots: Tuple[Slot, ...]

    @property
    def total_available(self) -> int:
        return sum(1 for s in self.slots if s.available)


@dataclass(frozen=True)
class DateAvailability:
    day: date
    available_slots: int

    @property
    def day_of_week(self) -> int:
        return day_of_week(self.day)


class AvailabilityEngine:
    """Runs the slot generator and the availability checker over whole days.

    Reads the store once per date and computes everything else in memory.
    An empty day is a normal result; only a bad date or an unknown service
    raises.
    """

    def __init__(self, store: BookingStore, clock, business: Optional[BusinessConfig] = None):
        self.store = store
        self.clock = clock
        self.business = business or settings.business
        self.tz = self.business.tz

    def generator(self, service: ServiceSpec) -> SlotGenerator:
        return SlotGenerator(
            service.total_duration, self.business.open_minutes, self.business.close_minutes
        )

    def today(self) -> date:
        return local_today(self.clock, self.tz)

    def validate_day(self, value) -> date:
        day = parse_date(value)
        today = self.today()
        if day < today:
            raise InvalidDateError(f"{day.isoformat()} is in the past")
        if day > today + timedelta(days=self.business.max_days_ahead):
            raise InvalidDateError(
                f"{day.isoformat()} is more than {self.business.max_days_ahead} days ahead"
            )
        return day

    def bookable_from(self, service: ServiceSpec) -> datetime:
        """Earliest UTC instant a booking for ``service`` may start."""
        return self.clock.now() + timedelta(hours=service.minimum_advance_hours)

    def is_bookable(self, day: date, start: int, bookable_from: datetime) -> bool:
        return to_utc(day, start, self.tz) >= bookable_from

    def get_slots_for_date(self, value, service_id: int) -> DaySlots:
        service = self.store.get_service(service_id)
        day = self.validate_day(value)

        checker = ConsultantAvailabilityChecker(self.store.load_day_facts(day, service), service)
        bookable_from = self.bookable_from(service)

        slots = []
        for start in self.generator(service):
            if not self.is_bookable(day, start, bookable_from):
                slots.append(Slot(start, False))
                continue
            result = checker.check(start)
            slots.append(Slot(start, result.available, result.consultants))

        day_slots = DaySlots(day, service, tuple(slots))
        logger.debug(
            "Service %s on %s: %d/%d slots available (interval %dmin)",
            service.id, day, day_slots.total_available, len(slots), service.total_duration,
        )
        return day_slots

    def count_available_slots(self, day: date, service: ServiceSpec) -> int:
        checker = ConsultantAvailabilityChecker(self.store.load_day_facts(day, service), service)
        bookable_from = self.bookable_from(service)
        return sum(
            1
            for start in self.generator(service)
            if self.is_bookable(day, start, bookable_from) and checker.has_capacity(start)
        )

    def get_available_dates_in_range(self, service_id: int, days_ahead: int) -> List[DateAvailability]:
        service = self.store.get_service(service_id)
        if not 1 <= days_ahead <= self.business.max_days_ahead:
            raise InvalidRequestError(
                f"days_ahead must be between 1 and {self.business.max_days_ahead}, got {days_ahead}"
            )
        today = self.today()

        results = []
        for offset in range(days_ahead):
            day = today + timedelta(days=offset)
            count = self.count_available_slots(day, service)
            if count > 0:
                results.append(DateAvailability(day, count))

        logger.info(
            "Service %s: %d of %d dates available from %s",
            service.id, len(results), days_ahead, today,
        )
        return results

    def find_next_available_date(self, service_id: int, start: date, limit_days: int) -> Optional[date]:
        """First date on or after ``start`` with an open slot, within the booking horizon."""
        service = self.store.get_service(service_id)
        horizon_end = self.today() + timedelta(days=self.business.max_days_ahead)
        day = max(start, self.today())
        checked = 0
        while day <= horizon_end and checked < limit_days:
            if self.count_available_slots(day, service) > 0:
                return day
            day += timedelta(days=1)
            checked += 1
        return None
