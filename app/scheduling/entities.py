# app/scheduling/entities.py

"""Validated, immutable views of stored scheduling rows.

The store converts every row it reads into one of these records. A row that
would poison the minute arithmetic (non-positive duration, inverted window,
day outside 0..6) raises ``MalformedRecordError`` here instead.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Tuple

from app.core import MINUTES_PER_DAY, to_minutes
from app.errors import MalformedRecordError

DEFAULT_BUFFER_BEFORE = 0
DEFAULT_BUFFER_AFTER = 5


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise MalformedRecordError(message)


def _window(row, kind: str) -> Tuple[int, int]:
    _require(row.start_time is not None and row.end_time is not None, f"{kind} {row.id} has no time window")
    start, end = to_minutes(row.start_time), to_minutes(row.end_time)
    _require(start < end, f"{kind} {row.id} starts at or after its end")
    return start, end


@dataclass(frozen=True)
class BufferOverride:
    consultant_id: int
    before: int
    after: int

    @classmethod
    def from_row(cls, row) -> "BufferOverride":
        _require(
            row.buffer_before_minutes >= 0 and row.buffer_after_minutes >= 0,
            f"buffer preference {row.id} has a negative buffer",
        )
        return cls(row.consultant_id, row.buffer_before_minutes, row.buffer_after_minutes)


@dataclass(frozen=True)
class ServiceSpec:
    id: int
    name: str
    duration_minutes: int
    buffer_before_minutes: Optional[int] = None
    buffer_after_minutes: Optional[int] = None
    allow_custom_buffer: bool = True
    requires_payment: bool = False
    price: float = 0.0
    auto_confirm: bool = True
    minimum_advance_hours: int = 0

    @classmethod
    def from_row(cls, row) -> "ServiceSpec":
        _require(row.duration_minutes is not None and row.duration_minutes > 0,
                 f"service {row.id} has a non-positive duration")
        for value in (row.buffer_before_minutes, row.buffer_after_minutes):
            _require(value is None or value >= 0, f"service {row.id} has a negative buffer")
        return cls(
            id=row.id,
            name=row.name,
            duration_minutes=row.duration_minutes,
            buffer_before_minutes=row.buffer_before_minutes,
            buffer_after_minutes=row.buffer_after_minutes,
            allow_custom_buffer=row.allow_custom_buffer,
            requires_payment=row.requires_payment,
            price=row.price,
            auto_confirm=row.auto_confirm,
            minimum_advance_hours=row.minimum_advance_hours or 0,
        )

    # the only place buffer defaults are resolved
    @property
    def buffer_before(self) -> int:
        if self.buffer_before_minutes is None:
            return DEFAULT_BUFFER_BEFORE
        return self.buffer_before_minutes

    @property
    def buffer_after(self) -> int:
        if self.buffer_after_minutes is None:
            return DEFAULT_BUFFER_AFTER
        return self.buffer_after_minutes

    @property
    def total_duration(self) -> int:
        return self.duration_minutes + self.buffer_before + self.buffer_after

    def total_for(self, override: Optional[BufferOverride]) -> int:
        """Occupied minutes for one consultant, honoring their buffer override."""
        if override is None or not self.allow_custom_buffer:
            return self.total_duration
        return self.duration_minutes + override.before + override.after


@dataclass(frozen=True)
class ConsultantRef:
    id: int
    name: str


@dataclass(frozen=True)
class TemplateWindow:
    consultant_id: int
    start: int
    end: int
    max_bookings: int

    @classmethod
    def from_row(cls, row) -> "TemplateWindow":
        _require(0 <= row.day_of_week <= 6, f"template {row.id} has day_of_week {row.day_of_week}")
        _require(row.max_bookings is not None and row.max_bookings >= 1,
                 f"template {row.id} has max_bookings below 1")
        start, end = _window(row, "template")
        return cls(row.consultant_id, start, end, row.max_bookings)

    def covers(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class BlockedWindow:
    """A break or time-off period, resolved to minutes on one date."""

    consultant_id: int
    start: int
    end: int
    reason: str

    @classmethod
    def from_break(cls, row) -> "BlockedWindow":
        start, end = _window(row, "break")
        return cls(row.consultant_id, start, end, "break")

    @classmethod
    def from_timeoff(cls, row) -> "BlockedWindow":
        _require(row.start_date <= row.end_date, f"time-off {row.id} ends before it starts")
        if row.start_time is None and row.end_time is None:
            return cls(row.consultant_id, 0, MINUTES_PER_DAY, "timeoff")
        start, end = _window(row, "time-off")
        return cls(row.consultant_id, start, end, "timeoff")


@dataclass(frozen=True)
class Occupancy:
    booking_id: int
    consultant_id: int
    start: int
    end: int

    @classmethod
    def from_row(cls, row) -> "Occupancy":
        _require(row.occupied_minutes is not None and row.occupied_minutes > 0,
                 f"booking {row.id} has no occupied duration")
        start = to_minutes(row.scheduled_time)
        return cls(row.id, row.consultant_id, start, start + row.occupied_minutes)


@dataclass
class DayFacts:
    """Everything the checker needs for one service on one date."""

    day: date
    consultants: Tuple[ConsultantRef, ...] = ()
    templates: Dict[int, Tuple[TemplateWindow, ...]] = field(default_factory=dict)
    blocked: Dict[int, Tuple[BlockedWindow, ...]] = field(default_factory=dict)
    occupancy: Dict[int, Tuple[Occupancy, ...]] = field(default_factory=dict)
    buffers: Dict[int, BufferOverride] = field(default_factory=dict)
