# app/scheduling/booking_service.py

"""Booking commit and staff-side booking changes.

Every write re-reads fresh availability inside one store transaction
(``app.db.atomic``), so the capacity check and the write cannot be split by
a concurrent commit. A transient store failure gets one more attempt of the
whole transaction; anything else propagates unchanged.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Union

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from app.clock import local_now, to_utc
from app.config import AppConfig, settings
from app.core import format_hhmm, from_minutes, parse_time, to_minutes
from app.db import atomic
from app.errors import (
    ConsultantNotFoundError,
    InvalidRequestError,
    InvalidTimeError,
    NoAvailableConsultantError,
    StoreUnavailableError,
)
from app.models import Booking
from app.schemas import ACTIVE_STATUSES, AssignmentStrategy, BookingStatus, PaymentStatus
from app.scheduling.assignment import Assignment, AssignmentResolver, Candidate
from app.scheduling.checker import ConsultantAvailabilityChecker, SlotAvailability
from app.scheduling.engine import AvailabilityEngine
from app.scheduling.entities import ServiceSpec
from app.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerInfo:
    email: str
    name: str
    phone: Optional[str] = None
    company: Optional[str] = None


@dataclass(frozen=True)
class BookingRequest:
    service_id: int
    scheduled_date: Union[str, date]
    scheduled_time: str
    customer: CustomerInfo
    project_description: Optional[str] = None
    strategy: AssignmentStrategy = AssignmentStrategy.optimal
    consultant_id: Optional[int] = None


@dataclass(frozen=True)
class BookingOutcome:
    booking: Booking
    assignment: Optional[Assignment]


class BookingService:
    def __init__(
        self,
        session: Session,
        clock,
        config: Optional[AppConfig] = None,
        resolver: Optional[AssignmentResolver] = None,
    ):
        self.session = session
        self.clock = clock
        self.config = config or settings
        self.store = BookingStore(session)
        self.engine = AvailabilityEngine(self.store, clock, self.config.business)
        self.resolver = resolver or AssignmentResolver()

    # --- commit ------------------------------------------------------------

    def create_booking(self, request: BookingRequest) -> BookingOutcome:
        strategy = AssignmentStrategy(request.strategy)
        if strategy is AssignmentStrategy.specific and request.consultant_id is None:
            raise InvalidRequestError("The specific strategy needs a consultant_id")
        if not request.customer.email.strip() or not request.customer.name.strip():
            raise InvalidRequestError("Missing required customer information")

        service = self.store.get_service(request.service_id)
        day = self.engine.validate_day(request.scheduled_date)
        start = parse_time(request.scheduled_time)

        if start not in self.engine.generator(service):
            raise InvalidTimeError(
                f"{format_hhmm(start)} is not a bookable start time for service {service.id}"
            )
        if not self.engine.is_bookable(day, start, self.engine.bookable_from(service)):
            raise InvalidTimeError(
                f"{service.name} must be booked at least {service.minimum_advance_hours} hours ahead"
            )

        return self._with_retry(
            lambda: self._commit(request, strategy, service, day, start), "create booking"
        )

    def _with_retry(self, step: Callable, label: str):
        attempts = self.config.store.commit_attempts
        for attempt in range(1, attempts + 1):
            try:
                return step()
            except OperationalError as exc:
                if attempt >= attempts:
                    logger.error("Could not %s after %d attempts: %s", label, attempts, exc)
                    raise StoreUnavailableError(f"Could not {label}, please try again") from exc
                logger.warning(
                    "Transient store error during %s (attempt %d/%d): %s", label, attempt, attempts, exc
                )

    def _commit(self, request, strategy, service: ServiceSpec, day: date, start: int) -> BookingOutcome:
        with atomic(self.session):
            facts = self.store.load_day_facts(day, service)
            availability = ConsultantAvailabilityChecker(facts, service).check(start)
            try:
                assignment = self.resolver.resolve(
                    strategy, self._candidates(availability, day), request.consultant_id
                )
            except NoAvailableConsultantError:
                if strategy is AssignmentStrategy.specific or not self.config.store.allow_unassigned_bookings:
                    logger.info(
                        "Rejected %s booking for service %s on %s %s: no capacity",
                        strategy.value, service.id, day, format_hhmm(start),
                    )
                    raise
                logger.warning(
                    "No consultant for service %s on %s %s, storing unassigned booking",
                    service.id, day, format_hhmm(start),
                )
                assignment = None

            if assignment is None:
                occupied = service.total_duration
            else:
                occupied = service.total_for(facts.buffers.get(assignment.consultant_id))

            booking = self.store.insert_booking(
                self._new_booking(request, strategy, service, day, start, occupied, assignment)
            )
        self.session.refresh(booking)
        return BookingOutcome(booking, assignment)

    def _candidates(self, availability: SlotAvailability, day: date) -> List[Candidate]:
        ids = [c.consultant_id for c in availability.consultants]
        same_day, horizon = self.store.booking_loads(ids, day, self.engine.today())
        return [
            Candidate(
                consultant_id=c.consultant_id,
                name=c.name,
                remaining=c.remaining,
                max_bookings=c.max_bookings,
                same_day_load=same_day.get(c.consultant_id, 0),
                total_load=horizon.get(c.consultant_id, 0),
            )
            for c in availability.consultants
        ]

    def _reference(self) -> str:
        stamp = local_now(self.clock, self.engine.tz).strftime("%Y%m%d")
        return f"INT-{stamp}-{uuid.uuid4().hex[:6].upper()}"

    def _new_booking(self, request, strategy, service, day, start, occupied, assignment) -> Booking:
        now = self.clock.now()
        if assignment is None:
            status = BookingStatus.pending
        else:
            status = BookingStatus.confirmed if service.auto_confirm else BookingStatus.pending
        payment_status = PaymentStatus.pending if service.requires_payment else PaymentStatus.waived

        return Booking(
            booking_reference=self._reference(),
            service_id=service.id,
            consultant_id=assignment.consultant_id if assignment else None,
            scheduled_date=day,
            scheduled_time=from_minutes(start),
            scheduled_datetime=to_utc(day, start, self.engine.tz),
            occupied_minutes=occupied,
            status=status.value,
            payment_status=payment_status.value,
            payment_amount=service.price,
            customer_email=request.customer.email.strip(),
            customer_name=request.customer.name.strip(),
            customer_phone=request.customer.phone,
            customer_company=request.customer.company,
            project_description=request.project_description,
            assignment_strategy=strategy.value,
            assignment_reason=assignment.reason if assignment else None,
            confidence_score=assignment.confidence_score if assignment else None,
            created_at=now,
            updated_at=now,
        )

    # --- staff changes -----------------------------------------------------

    def get_booking(self, booking_id: int) -> Booking:
        return self.store.get_booking(booking_id)

    def list_bookings(self, **filters) -> List[Booking]:
        return self.store.list_bookings(**filters)

    def _ensure_capacity(self, booking: Booking, consultant_id: int) -> None:
        """Raise unless ``consultant_id`` can hold ``booking``'s interval."""
        service = self.store.get_service(booking.service_id, include_inactive=True)
        facts = self.store.load_day_facts(booking.scheduled_date, service)
        consultant = next((c for c in facts.consultants if c.id == consultant_id), None)
        capacity = None
        if consultant is not None:
            capacity = ConsultantAvailabilityChecker(facts, service).capacity_for(
                consultant,
                to_minutes(booking.scheduled_time),
                length=booking.occupied_minutes,
                exclude_booking_id=booking.id,
            )
        if capacity is None or capacity.remaining < 1:
            raise NoAvailableConsultantError(
                f"Consultant {consultant_id} has no capacity on {booking.scheduled_date} "
                f"at {booking.scheduled_time.strftime('%H:%M')}"
            )

    def _touch(self, booking: Booking) -> Booking:
        booking.updated_at = self.clock.now()
        self.session.add(booking)
        return booking

    def assign_consultant(self, booking_id: int, consultant_id: int) -> Booking:
        def step():
            with atomic(self.session):
                booking = self.store.get_booking(booking_id)
                consultant = self.store.get_consultant(consultant_id)
                if not consultant.is_active:
                    raise ConsultantNotFoundError(f"Consultant {consultant_id} is not active")
                if booking.status in ACTIVE_STATUSES:
                    self._ensure_capacity(booking, consultant_id)
                booking.consultant_id = consultant_id
                booking.assignment_reason = "Manually assigned"
                booking.confidence_score = None
                self._touch(booking)
            self.session.refresh(booking)
            logger.info("Booking %s assigned to consultant %s", booking.booking_reference, consultant_id)
            return booking

        return self._with_retry(step, "assign consultant")

    def unassign_consultant(self, booking_id: int) -> Booking:
        with atomic(self.session):
            booking = self.store.get_booking(booking_id)
            booking.consultant_id = None
            booking.assignment_reason = None
            booking.confidence_score = None
            self._touch(booking)
        self.session.refresh(booking)
        logger.info("Booking %s unassigned", booking.booking_reference)
        return booking

    def update_status(self, booking_id: int, status: BookingStatus) -> Booking:
        new_status = BookingStatus(status).value

        def step():
            with atomic(self.session):
                booking = self.store.get_booking(booking_id)
                reactivating = new_status in ACTIVE_STATUSES and booking.status not in ACTIVE_STATUSES
                if reactivating and booking.consultant_id is not None:
                    self._ensure_capacity(booking, booking.consultant_id)
                booking.status = new_status
                self._touch(booking)
            self.session.refresh(booking)
            logger.info("Booking %s status set to %s", booking.booking_reference, new_status)
            return booking

        return self._with_retry(step, "update booking status")
