"""Shared test fixtures and helpers."""

import os

# pin the environment before app.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BUSINESS_TIMEZONE"] = "America/New_York"
os.environ["BUSINESS_OPEN"] = "08:00"
os.environ["BUSINESS_CLOSE"] = "18:00"
os.environ["MAX_DAYS_AHEAD"] = "90"
os.environ["ALLOW_UNASSIGNED_BOOKINGS"] = "false"

import itertools
import random
from datetime import date, datetime, timezone
from typing import Optional

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from app.clock import FixedClock, to_utc
from app.core import parse_time
from app.db import get_session, init_db, make_engine
from app.deps import get_clock, get_resolver
from app.main import app
from app.models import (
    AvailabilityBreak,
    AvailabilityTemplate,
    Booking,
    Consultant,
    Service,
    TimeOff,
)
from app.scheduling.assignment import AssignmentResolver
from app.scheduling.entities import ServiceSpec


# Monday 2025-06-02, 08:00 in New York
NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
# the following Monday (day_of_week 1)
DAY = date(2025, 6, 9)
MONDAY = 1

NY = pytz.timezone("America/New_York")

_references = itertools.count(1)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    # expire_on_commit=False keeps seeded rows readable without reopening a
    # transaction on the shared in-memory connection
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def client(engine, clock):
    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_resolver] = lambda: AssignmentResolver(random.Random(7))
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_service(session: Session, **overrides) -> Service:
    """Helper to create a Service with zero buffers unless overridden."""
    values = dict(
        name="Strategy session",
        duration_minutes=30,
        buffer_before_minutes=0,
        buffer_after_minutes=0,
        minimum_advance_hours=24,
    )
    values.update(overrides)
    service = Service(**values)
    session.add(service)
    session.commit()
    return service


def make_consultant(session: Session, name: str = "Ada", email: Optional[str] = None, **overrides) -> Consultant:
    consultant = Consultant(name=name, email=email or f"{name.lower()}@example.com", **overrides)
    session.add(consultant)
    session.commit()
    return consultant


def add_window(
    session: Session,
    consultant: Consultant,
    start: str = "09:00",
    end: str = "11:00",
    day_of_week: int = MONDAY,
    max_bookings: int = 1,
) -> AvailabilityTemplate:
    template = AvailabilityTemplate(
        consultant_id=consultant.id,
        day_of_week=day_of_week,
        start_time=datetime.strptime(start, "%H:%M").time(),
        end_time=datetime.strptime(end, "%H:%M").time(),
        max_bookings=max_bookings,
    )
    session.add(template)
    session.commit()
    return template


def add_break(session: Session, consultant: Consultant, start: str, end: str, **where) -> AvailabilityBreak:
    if not where:
        where = {"day_of_week": MONDAY}
    row = AvailabilityBreak(
        consultant_id=consultant.id,
        start_time=datetime.strptime(start, "%H:%M").time(),
        end_time=datetime.strptime(end, "%H:%M").time(),
        **where,
    )
    session.add(row)
    session.commit()
    return row


def add_timeoff(session: Session, consultant: Consultant, start_date: date, end_date: date, **times) -> TimeOff:
    row = TimeOff(consultant_id=consultant.id, start_date=start_date, end_date=end_date, **times)
    session.add(row)
    session.commit()
    return row


def add_booking(
    session: Session,
    service: Service,
    consultant: Optional[Consultant],
    day: date = DAY,
    start: str = "09:00",
    occupied: Optional[int] = None,
    status: str = "confirmed",
) -> Booking:
    """Helper to store an existing booking directly, bypassing the commit path."""
    minutes = parse_time(start)
    booking = Booking(
        booking_reference=f"TEST-{day:%Y%m%d}-{next(_references):06d}",
        service_id=service.id,
        consultant_id=consultant.id if consultant else None,
        scheduled_date=day,
        scheduled_time=datetime.strptime(start, "%H:%M").time(),
        scheduled_datetime=to_utc(day, minutes, NY),
        occupied_minutes=occupied or ServiceSpec.from_row(service).total_duration,
        status=status,
        customer_email="client@example.com",
        customer_name="Client",
        created_at=NOW,
        updated_at=NOW,
    )
    session.add(booking)
    session.commit()
    return booking
