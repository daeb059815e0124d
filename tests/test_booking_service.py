"""Tests for the atomic booking commit and staff-side booking changes."""

import re
import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from app.config import AppConfig, StoreConfig
from app.db import init_db, make_engine
from app.errors import (
    InvalidDateError,
    InvalidRequestError,
    InvalidTimeError,
    NoAvailableConsultantError,
    StoreUnavailableError,
)
from app.models import Booking, BufferPreference
from app.schemas import AssignmentStrategy, BookingStatus
from app.scheduling.booking_service import BookingRequest, BookingService, CustomerInfo
from app.scheduling.engine import AvailabilityEngine
from app.scheduling.store import BookingStore
from tests.conftest import DAY, add_booking, add_window, make_consultant, make_service

CUSTOMER = CustomerInfo(email="grace@example.com", name="Grace Hopper", company="Navy")


def request_for(service, start="09:00", day=DAY, **kwargs) -> BookingRequest:
    return BookingRequest(
        service_id=service.id,
        scheduled_date=day.isoformat(),
        scheduled_time=start,
        customer=kwargs.pop("customer", CUSTOMER),
        **kwargs,
    )


def transient_error() -> OperationalError:
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


@pytest.fixture
def bookings(session, clock):
    return BookingService(session, clock)


def stored(session):
    return session.exec(select(Booking).order_by(Booking.id)).all()


class TestCreateBooking:
    def test_commits_assigned_booking(self, session, bookings):
        service = make_service(session, price=150.0)
        ada = make_consultant(session)
        add_window(session, ada)

        outcome = bookings.create_booking(request_for(service, "09:30"))
        booking = outcome.booking

        assert outcome.assignment.consultant_id == ada.id
        assert outcome.assignment.confidence_score == 100
        assert booking.consultant_id == ada.id
        assert booking.status == "confirmed"
        assert booking.payment_status == "waived"
        assert booking.payment_amount == 150.0
        assert booking.occupied_minutes == 30
        assert booking.customer_company == "Navy"
        assert booking.assignment_strategy == "optimal"
        # 09:30 EDT
        assert booking.scheduled_datetime == datetime(2025, 6, 9, 13, 30, tzinfo=timezone.utc)
        assert re.match(r"^INT-20250602-[0-9A-F]{6}$", booking.booking_reference)

    def test_stored_instants_read_back_as_utc(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        booking_id = bookings.create_booking(request_for(service, "10:00")).booking.id

        session.expire_all()
        reloaded = session.get(Booking, booking_id)
        assert reloaded.scheduled_datetime == datetime(2025, 6, 9, 14, 0, tzinfo=timezone.utc)
        assert reloaded.scheduled_datetime.utcoffset().total_seconds() == 0
        assert reloaded.created_at == datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)

    def test_manual_confirmation_and_payment(self, session, bookings):
        service = make_service(session, auto_confirm=False, requires_payment=True)
        ada = make_consultant(session)
        add_window(session, ada)

        booking = bookings.create_booking(request_for(service)).booking
        assert booking.status == "pending"
        assert booking.payment_status == "pending"

    def test_booked_slot_disappears_from_availability(self, session, bookings, clock):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)

        bookings.create_booking(request_for(service, "10:00"))
        engine = AvailabilityEngine(BookingStore(session), clock)
        slots = {s.time: s.available for s in engine.get_slots_for_date(DAY, service.id).slots}
        assert slots["10:00"] is False
        assert slots["09:30"] is True

    def test_full_slot_is_rejected(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada, max_bookings=1)

        bookings.create_booking(request_for(service))
        with pytest.raises(NoAvailableConsultantError):
            bookings.create_booking(request_for(service))
        assert len(stored(session)) == 1

    def test_capacity_above_one_allows_concurrent_bookings(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada, max_bookings=2)

        bookings.create_booking(request_for(service))
        bookings.create_booking(request_for(service))
        with pytest.raises(NoAvailableConsultantError):
            bookings.create_booking(request_for(service))

    def test_optimal_spreads_bookings_across_consultants(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session, "Ada")
        ben = make_consultant(session, "Ben")
        add_window(session, ada)
        add_window(session, ben)

        first = bookings.create_booking(request_for(service, "09:00")).booking
        second = bookings.create_booking(request_for(service, "10:00")).booking
        assert first.consultant_id == ada.id
        assert second.consultant_id == ben.id

    def test_specific_consultant_without_capacity_is_not_replaced(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session, "Ada")
        ben = make_consultant(session, "Ben")
        add_window(session, ada)
        add_window(session, ben)
        add_booking(session, service, ben, start="09:00")

        with pytest.raises(NoAvailableConsultantError):
            bookings.create_booking(
                request_for(service, strategy=AssignmentStrategy.specific, consultant_id=ben.id)
            )

    def test_specific_needs_consultant_id(self, session, bookings):
        service = make_service(session)
        with pytest.raises(InvalidRequestError):
            bookings.create_booking(request_for(service, strategy=AssignmentStrategy.specific))

    def test_customer_details_are_required(self, session, bookings):
        service = make_service(session)
        with pytest.raises(InvalidRequestError):
            bookings.create_booking(request_for(service, customer=CustomerInfo(email=" ", name="X")))

    def test_start_must_sit_on_the_slot_grid(self, session, bookings):
        service = make_service(session, duration_minutes=60, buffer_before_minutes=10, buffer_after_minutes=5)
        ada = make_consultant(session)
        add_window(session, ada, "08:00", "18:00")

        with pytest.raises(InvalidTimeError):
            bookings.create_booking(request_for(service, "09:00"))
        assert bookings.create_booking(request_for(service, "09:15")).booking.occupied_minutes == 75

    def test_lead_time_is_enforced(self, session, bookings):
        service = make_service(session, minimum_advance_hours=24 * 8)
        ada = make_consultant(session)
        add_window(session, ada)

        with pytest.raises(InvalidTimeError):
            bookings.create_booking(request_for(service))

    def test_past_date_is_rejected(self, session, bookings):
        service = make_service(session)
        with pytest.raises(InvalidDateError):
            bookings.create_booking(request_for(service, day=datetime(2025, 5, 26).date()))

    def test_buffer_override_is_snapshotted(self, session, bookings):
        service = make_service(session, allow_custom_buffer=True)
        ada = make_consultant(session)
        add_window(session, ada)
        session.add(BufferPreference(consultant_id=ada.id, service_id=service.id,
                                     buffer_before_minutes=0, buffer_after_minutes=15))
        session.commit()

        booking = bookings.create_booking(request_for(service, "09:00")).booking
        assert booking.occupied_minutes == 45

    def test_unassigned_booking_when_allowed(self, session, clock):
        config = AppConfig(store=StoreConfig(allow_unassigned_bookings=True))
        service = make_service(session)

        outcome = BookingService(session, clock, config=config).create_booking(request_for(service))
        assert outcome.assignment is None
        assert outcome.booking.consultant_id is None
        assert outcome.booking.status == "pending"

    def test_specific_is_never_stored_unassigned(self, session, clock):
        config = AppConfig(store=StoreConfig(allow_unassigned_bookings=True))
        service = make_service(session)
        ada = make_consultant(session)

        with pytest.raises(NoAvailableConsultantError):
            BookingService(session, clock, config=config).create_booking(
                request_for(service, strategy=AssignmentStrategy.specific, consultant_id=ada.id)
            )


class TestRetry:
    def test_one_transient_failure_is_retried(self, session, bookings, monkeypatch):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)

        real = bookings.store.load_day_facts
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise transient_error()
            return real(*args, **kwargs)

        monkeypatch.setattr(bookings.store, "load_day_facts", flaky)
        booking = bookings.create_booking(request_for(service)).booking

        assert len(calls) == 2
        assert booking.consultant_id == ada.id
        assert len(stored(session)) == 1

    def test_second_failure_surfaces_as_unavailable(self, session, bookings, monkeypatch):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)

        def broken(*args, **kwargs):
            raise transient_error()

        monkeypatch.setattr(bookings.store, "load_day_facts", broken)
        with pytest.raises(StoreUnavailableError):
            bookings.create_booking(request_for(service))
        assert stored(session) == []

    def test_rejection_is_not_retried(self, session, bookings, monkeypatch):
        service = make_service(session)
        make_consultant(session)

        real = bookings.store.load_day_facts
        calls = []

        def counting(*args, **kwargs):
            calls.append(1)
            return real(*args, **kwargs)

        monkeypatch.setattr(bookings.store, "load_day_facts", counting)
        with pytest.raises(NoAvailableConsultantError):
            bookings.create_booking(request_for(service))
        assert len(calls) == 1


class TestConcurrentCommits:
    def test_only_one_of_many_racers_wins_the_last_unit(self, tmp_path, clock):
        engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
        init_db(engine)
        with Session(engine, expire_on_commit=False) as seed:
            service = make_service(seed)
            ada = make_consultant(seed)
            add_window(seed, ada, max_bookings=1)

        results = []
        racers = 16
        barrier = threading.Barrier(racers)

        def racer():
            with Session(engine) as own:
                barrier.wait()
                try:
                    BookingService(own, clock).create_booking(request_for(service))
                    results.append("booked")
                except NoAvailableConsultantError:
                    results.append("rejected")
                except StoreUnavailableError:
                    results.append("unavailable")

        threads = [threading.Thread(target=racer) for _ in range(racers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("booked") == 1
        # losers re-check and are rejected, never time out on the lock
        assert results.count("rejected") == len(threads) - 1
        with Session(engine) as check:
            assert len(check.exec(select(Booking)).all()) == 1
        engine.dispose()


class TestStaffChanges:
    def test_assign_unassigned_booking(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        booking = add_booking(session, service, None, status="pending")

        updated = bookings.assign_consultant(booking.id, ada.id)
        assert updated.consultant_id == ada.id
        assert updated.assignment_reason == "Manually assigned"

    def test_assign_rejects_full_consultant(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        add_booking(session, service, ada, start="09:00")
        booking = add_booking(session, service, None, start="09:00", status="pending")

        with pytest.raises(NoAvailableConsultantError):
            bookings.assign_consultant(booking.id, ada.id)

    def test_reassigning_to_same_consultant_ignores_itself(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        booking = add_booking(session, service, ada, start="09:00")

        assert bookings.assign_consultant(booking.id, ada.id).consultant_id == ada.id

    def test_assign_outside_working_hours_is_rejected(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada, "13:00", "15:00")
        booking = add_booking(session, service, None, start="09:00", status="pending")

        with pytest.raises(NoAvailableConsultantError):
            bookings.assign_consultant(booking.id, ada.id)

    def test_unassign_frees_capacity(self, session, bookings, clock):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        booking = add_booking(session, service, ada, start="09:00")

        assert bookings.unassign_consultant(booking.id).consultant_id is None
        engine = AvailabilityEngine(BookingStore(session), clock)
        slots = {s.time: s.available for s in engine.get_slots_for_date(DAY, service.id).slots}
        assert slots["09:00"] is True

    def test_cancel_then_reactivate_into_full_slot(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_window(session, ada)
        booking = add_booking(session, service, ada, start="09:00")

        bookings.update_status(booking.id, BookingStatus.cancelled)
        add_booking(session, service, ada, start="09:00")

        with pytest.raises(NoAvailableConsultantError):
            bookings.update_status(booking.id, BookingStatus.confirmed)
        assert bookings.get_booking(booking.id).status == "cancelled"

    def test_list_bookings_filters(self, session, bookings):
        service = make_service(session)
        ada = make_consultant(session)
        add_booking(session, service, ada, start="09:00")
        add_booking(session, service, None, start="10:00", status="pending")

        assert len(bookings.list_bookings()) == 2
        assert [b.consultant_id for b in bookings.list_bookings(unassigned=True)] == [None]
        assert len(bookings.list_bookings(consultant_id=ada.id, status="confirmed")) == 1
