"""Tests for per-consultant capacity at a start minute."""

from datetime import date

import pytest

from app.scheduling.checker import ConsultantAvailabilityChecker
from app.scheduling.entities import (
    BlockedWindow,
    BufferOverride,
    ConsultantRef,
    DayFacts,
    Occupancy,
    ServiceSpec,
    TemplateWindow,
)

DAY = date(2025, 6, 9)
ADA = ConsultantRef(1, "Ada")
BEN = ConsultantRef(2, "Ben")


def hm(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def make_facts(**kwargs) -> DayFacts:
    kwargs.setdefault("consultants", (ADA, BEN))
    return DayFacts(DAY, **kwargs)


@pytest.fixture
def service():
    return ServiceSpec(id=1, name="Review", duration_minutes=30, buffer_before_minutes=0, buffer_after_minutes=0)


class TestCapacity:
    def test_consultant_without_template_is_not_working(self, service):
        checker = ConsultantAvailabilityChecker(make_facts(), service)
        assert checker.capacity_for(ADA, hm("09:00")) is None
        assert not checker.check(hm("09:00")).available

    def test_window_must_cover_whole_interval(self, service):
        facts = make_facts(templates={1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 1),)})
        checker = ConsultantAvailabilityChecker(facts, service)
        assert checker.capacity_for(ADA, hm("10:30")) is not None
        assert checker.capacity_for(ADA, hm("10:45")) is None

    def test_adjacent_windows_are_not_merged(self, service):
        facts = make_facts(
            templates={
                1: (
                    TemplateWindow(1, hm("09:00"), hm("10:00"), 1),
                    TemplateWindow(1, hm("10:00"), hm("11:00"), 1),
                )
            }
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        assert checker.capacity_for(ADA, hm("09:45")) is None
        assert checker.capacity_for(ADA, hm("10:00")) is not None

    def test_break_blocks_overlapping_slots_only(self, service):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("13:00"), 1),)},
            blocked={1: (BlockedWindow(1, hm("12:00"), hm("12:30"), "break"),)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        assert checker.capacity_for(ADA, hm("11:30")) is not None
        assert checker.capacity_for(ADA, hm("12:00")) is None
        assert checker.capacity_for(ADA, hm("12:30")) is not None

    def test_block_reason_is_logged(self, service, caplog):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("13:00"), 1),)},
            blocked={1: (BlockedWindow(1, hm("12:00"), hm("12:30"), "break"),)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        with caplog.at_level("DEBUG", logger="app.scheduling.checker"):
            assert checker.capacity_for(ADA, hm("12:00")) is None
        assert "blocked at 720 by break" in caplog.text

    def test_full_day_timeoff_blocks_everything(self, service):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("17:00"), 3),)},
            blocked={1: (BlockedWindow(1, 0, 24 * 60, "timeoff"),)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        assert not checker.has_capacity(hm("09:00"))
        assert not checker.has_capacity(hm("16:30"))

    def test_overlapping_bookings_consume_capacity(self, service):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 2),)},
            occupancy={
                1: (
                    Occupancy(10, 1, hm("09:00"), hm("09:30")),
                    Occupancy(11, 1, hm("09:00"), hm("09:30")),
                )
            },
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        full = checker.capacity_for(ADA, hm("09:00"))
        assert full.current_bookings == 2
        assert full.remaining == 0
        assert checker.capacity_for(ADA, hm("09:30")).remaining == 2

    def test_excluded_booking_does_not_count_against_itself(self, service):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 1),)},
            occupancy={1: (Occupancy(10, 1, hm("09:00"), hm("09:30")),)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        assert checker.capacity_for(ADA, hm("09:00")).remaining == 0
        assert checker.capacity_for(ADA, hm("09:00"), exclude_booking_id=10).remaining == 1

    def test_remaining_never_negative(self):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 1),)},
            occupancy={
                1: (
                    Occupancy(10, 1, hm("09:00"), hm("09:30")),
                    Occupancy(11, 1, hm("09:00"), hm("09:30")),
                )
            },
        )
        service = ServiceSpec(id=1, name="Review", duration_minutes=30, buffer_after_minutes=0)
        capacity = ConsultantAvailabilityChecker(facts, service).capacity_for(ADA, hm("09:00"))
        assert capacity.remaining == 0

    def test_buffer_override_lengthens_interval(self):
        service = ServiceSpec(
            id=1, name="Review", duration_minutes=30,
            buffer_before_minutes=0, buffer_after_minutes=0, allow_custom_buffer=True,
        )
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("10:00"), 1),)},
            buffers={1: BufferOverride(1, 0, 15)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        assert checker.occupied_minutes(1) == 45
        assert checker.capacity_for(ADA, hm("09:00")) is not None
        # 09:30 + 45 runs past the window
        assert checker.capacity_for(ADA, hm("09:30")) is None

    def test_buffer_override_ignored_when_service_disallows_it(self):
        service = ServiceSpec(
            id=1, name="Review", duration_minutes=30,
            buffer_before_minutes=0, buffer_after_minutes=0, allow_custom_buffer=False,
        )
        facts = make_facts(buffers={1: BufferOverride(1, 0, 15)})
        assert ConsultantAvailabilityChecker(facts, service).occupied_minutes(1) == 30


class TestSlotAvailability:
    def test_lists_only_consultants_with_room(self, service):
        facts = make_facts(
            templates={
                1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 1),),
                2: (TemplateWindow(2, hm("09:00"), hm("11:00"), 3),),
            },
            occupancy={1: (Occupancy(10, 1, hm("09:00"), hm("09:30")),)},
        )
        result = ConsultantAvailabilityChecker(facts, service).check(hm("09:00"))
        assert [c.consultant_id for c in result.consultants] == [2]
        assert result.total_capacity == 3
        assert result.available

    def test_has_capacity_agrees_with_check(self, service):
        facts = make_facts(
            templates={1: (TemplateWindow(1, hm("09:00"), hm("11:00"), 1),)},
            occupancy={1: (Occupancy(10, 1, hm("09:30"), hm("10:00")),)},
        )
        checker = ConsultantAvailabilityChecker(facts, service)
        for start in range(hm("08:00"), hm("12:00"), 30):
            assert checker.has_capacity(start) == checker.check(start).available
