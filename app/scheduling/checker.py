# app/scheduling/checker.py

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from app.core import overlaps
from app.scheduling.entities import ConsultantRef, DayFacts, ServiceSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsultantCapacity:
    consultant_id: int
    name: str
    max_bookings: int
    current_bookings: int

    @property
    def remaining(self) -> int:
        return max(0, self.max_bookings - self.current_bookings)


@dataclass(frozen=True)
class SlotAvailability:
    start: int
    consultants: Tuple[ConsultantCapacity, ...]

    @property
    def total_capacity(self) -> int:
        return sum(c.remaining for c in self.consultants)

    @property
    def available(self) -> bool:
        return self.total_capacity > 0


class ConsultantAvailabilityChecker:
    """Decides which consultants can take one more booking at a start minute.

    Works purely on a ``DayFacts`` snapshot. A consultant qualifies when one
    active template window covers the whole occupied interval, no break or
    time-off touches it, and the bookings overlapping it leave at least one
    unit of that window's capacity.
    """

    def __init__(self, facts: DayFacts, service: ServiceSpec):
        self.facts = facts
        self.service = service

    def occupied_minutes(self, consultant_id: int) -> int:
        return self.service.total_for(self.facts.buffers.get(consultant_id))

    def capacity_for(
        self,
        consultant: ConsultantRef,
        start: int,
        length: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[ConsultantCapacity]:
        """Capacity of one consultant for ``[start, start + length)``.

        Returns None when the consultant is not working that whole interval;
        otherwise the capacity record, whose ``remaining`` may be 0.
        """
        end = start + (length if length is not None else self.occupied_minutes(consultant.id))

        window = next(
            (w for w in self.facts.templates.get(consultant.id, ()) if w.covers(start, end)),
            None,
        )
        if window is None:
            return None

        for blocked in self.facts.blocked.get(consultant.id, ()):
            if overlaps(start, end, blocked.start, blocked.end):
                logger.debug(
                    "Consultant %s blocked at %d by %s (%d-%d)",
                    consultant.id, start, blocked.reason, blocked.start, blocked.end,
                )
                return None

        current = sum(
            1
            for occ in self.facts.occupancy.get(consultant.id, ())
            if occ.booking_id != exclude_booking_id and overlaps(start, end, occ.start, occ.end)
        )
        return ConsultantCapacity(consultant.id, consultant.name, window.max_bookings, current)

    def check(self, start: int) -> SlotAvailability:
        free = []
        for consultant in self.facts.consultants:
            capacity = self.capacity_for(consultant, start)
            if capacity is not None and capacity.remaining >= 1:
                free.append(capacity)
        return SlotAvailability(start, tuple(free))

    def has_capacity(self, start: int) -> bool:
        """Aggregate-only variant: stops at the first consultant with room."""
        for consultant in self.facts.consultants:
            capacity = self.capacity_for(consultant, start)
            if capacity is not None and capacity.remaining >= 1:
                return True
        return False
