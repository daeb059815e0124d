# app/scheduling/store.py

"""Configuration/booking store.

Thin query layer over the SQLModel tables. Everything it hands to the
scheduling code has passed the boundary checks in ``entities``.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlmodel import Session, col, select

from app.core import day_of_week
from app.errors import BookingNotFoundError, ConsultantNotFoundError, ServiceNotFoundError
from app.models import (
    AvailabilityBreak,
    AvailabilityTemplate,
    Booking,
    BufferPreference,
    Consultant,
    Service,
    TimeOff,
)
from app.schemas import ACTIVE_STATUSES
from app.scheduling.entities import (
    BlockedWindow,
    BufferOverride,
    ConsultantRef,
    DayFacts,
    Occupancy,
    ServiceSpec,
    TemplateWindow,
)

logger = logging.getLogger(__name__)


def _group(items: Iterable, key=lambda item: item.consultant_id) -> Dict[int, Tuple]:
    grouped = defaultdict(list)
    for item in items:
        grouped[key(item)].append(item)
    return {k: tuple(v) for k, v in grouped.items()}


class BookingStore:
    def __init__(self, session: Session):
        self.session = session

    # --- reads -----------------------------------------------------------

    def get_service(self, service_id: int, include_inactive: bool = False) -> ServiceSpec:
        row = self.session.get(Service, service_id)
        if row is None or not (row.is_active or include_inactive):
            raise ServiceNotFoundError(f"Service {service_id} not found")
        return ServiceSpec.from_row(row)

    def get_consultant(self, consultant_id: int) -> Consultant:
        row = self.session.get(Consultant, consultant_id)
        if row is None:
            raise ConsultantNotFoundError(f"Consultant {consultant_id} not found")
        return row

    def active_consultants(self) -> Tuple[ConsultantRef, ...]:
        rows = self.session.exec(
            select(Consultant)
            .where(col(Consultant.is_active).is_(True))
            .order_by(Consultant.id)
        ).all()
        return tuple(ConsultantRef(row.id, row.name) for row in rows)

    def load_day_facts(self, day: date, service: ServiceSpec) -> DayFacts:
        """Read templates, breaks, time-off, bookings and buffer overrides for one date."""
        consultants = self.active_consultants()
        ids = [c.id for c in consultants]
        if not ids:
            return DayFacts(day)
        dow = day_of_week(day)

        templates = self.session.exec(
            select(AvailabilityTemplate)
            .where(col(AvailabilityTemplate.consultant_id).in_(ids))
            .where(AvailabilityTemplate.day_of_week == dow)
            .where(col(AvailabilityTemplate.is_active).is_(True))
            .order_by(AvailabilityTemplate.start_time)
        ).all()

        breaks = self.session.exec(
            select(AvailabilityBreak)
            .where(col(AvailabilityBreak.consultant_id).in_(ids))
            .where(col(AvailabilityBreak.is_active).is_(True))
            .where(
                or_(
                    and_(
                        AvailabilityBreak.day_of_week == dow,
                        col(AvailabilityBreak.specific_date).is_(None),
                    ),
                    AvailabilityBreak.specific_date == day,
                )
            )
        ).all()

        timeoffs = self.session.exec(
            select(TimeOff)
            .where(col(TimeOff.consultant_id).in_(ids))
            .where(col(TimeOff.is_approved).is_(True))
            .where(TimeOff.start_date <= day)
            .where(TimeOff.end_date >= day)
        ).all()

        bookings = self.session.exec(
            select(Booking)
            .where(col(Booking.consultant_id).in_(ids))
            .where(Booking.scheduled_date == day)
            .where(col(Booking.status).in_(ACTIVE_STATUSES))
        ).all()

        preferences = self.session.exec(
            select(BufferPreference)
            .where(col(BufferPreference.consultant_id).in_(ids))
            .where(BufferPreference.service_id == service.id)
            .where(col(BufferPreference.is_active).is_(True))
        ).all()

        blocked = [BlockedWindow.from_break(b) for b in breaks]
        blocked += [BlockedWindow.from_timeoff(t) for t in timeoffs]

        return DayFacts(
            day=day,
            consultants=consultants,
            templates=_group(TemplateWindow.from_row(t) for t in templates),
            blocked=_group(blocked),
            occupancy=_group(Occupancy.from_row(b) for b in bookings),
            buffers={p.consultant_id: BufferOverride.from_row(p) for p in preferences},
        )

    def booking_loads(
        self, consultant_ids: List[int], day: date, horizon_start: date
    ) -> Tuple[Dict[int, int], Dict[int, int]]:
        """Active booking counts per consultant: (on ``day``, from ``horizon_start`` on)."""
        if not consultant_ids:
            return {}, {}

        def _counts(*conditions) -> Dict[int, int]:
            stmt = (
                select(Booking.consultant_id, func.count())
                .where(col(Booking.consultant_id).in_(consultant_ids))
                .where(col(Booking.status).in_(ACTIVE_STATUSES))
            )
            for condition in conditions:
                stmt = stmt.where(condition)
            rows = self.session.exec(stmt.group_by(Booking.consultant_id)).all()
            return {consultant_id: count for consultant_id, count in rows}

        same_day = _counts(Booking.scheduled_date == day)
        horizon = _counts(Booking.scheduled_date >= horizon_start)
        return same_day, horizon

    def get_booking(self, booking_id: int) -> Booking:
        row = self.session.get(Booking, booking_id)
        if row is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return row

    def list_bookings(
        self,
        consultant_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
        unassigned: bool = False,
    ) -> List[Booking]:
        stmt = select(Booking)
        if unassigned:
            stmt = stmt.where(col(Booking.consultant_id).is_(None))
        elif consultant_id is not None:
            stmt = stmt.where(Booking.consultant_id == consultant_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if on_date is not None:
            stmt = stmt.where(Booking.scheduled_date == on_date)
        stmt = stmt.order_by(Booking.scheduled_date, Booking.scheduled_time, Booking.id)
        return list(self.session.exec(stmt).all())

    # --- writes ----------------------------------------------------------

    def insert_booking(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.flush()
        logger.info(
            "Booking %s inserted for consultant %s on %s %s",
            booking.booking_reference,
            booking.consultant_id,
            booking.scheduled_date,
            booking.scheduled_time,
        )
        return booking
