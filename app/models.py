# app/models.py

from typing import Optional
from datetime import datetime, date as Date, time

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    duration_minutes: int
    # null buffers resolve to the defaults in ServiceSpec
    buffer_before_minutes: Optional[int] = None
    buffer_after_minutes: Optional[int] = None
    allow_custom_buffer: bool = True
    requires_payment: bool = False
    price: float = 0.0
    auto_confirm: bool = True
    minimum_advance_hours: int = 24
    is_active: bool = True


class Consultant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    is_active: bool = True


class AvailabilityTemplate(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    consultant_id: int = Field(foreign_key="consultant.id", index=True)
    day_of_week: int = Field(index=True)  # 0=Sun, 1=Mon....
    start_time: time
    end_time: time
    max_bookings: int = 1
    is_active: bool = True
    notes: Optional[str] = None


class AvailabilityBreak(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    consultant_id: int = Field(foreign_key="consultant.id", index=True)
    # recurring breaks set day_of_week, one-off breaks set specific_date
    day_of_week: Optional[int] = None
    specific_date: Optional[Date] = None
    start_time: time
    end_time: time
    break_type: str = "break"
    title: str = "Break"
    is_active: bool = True


class TimeOff(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    consultant_id: int = Field(foreign_key="consultant.id", index=True)
    start_date: Date
    end_date: Date
    # both null = full day
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timeoff_type: str = "vacation"
    title: str = "Time off"
    is_approved: bool = True


class BufferPreference(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("consultant_id", "service_id", name="uq_buffer_consultant_service"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    consultant_id: int = Field(foreign_key="consultant.id", index=True)
    service_id: int = Field(foreign_key="service.id", index=True)
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 5
    notes: Optional[str] = None
    is_active: bool = True


class Booking(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    booking_reference: str = Field(index=True, unique=True)
    service_id: int = Field(foreign_key="service.id")
    consultant_id: Optional[int] = Field(default=None, foreign_key="consultant.id", index=True)

    scheduled_date: Date = Field(index=True)
    scheduled_time: time
    scheduled_datetime: datetime  # UTC
    occupied_minutes: int

    status: str = "pending"
    payment_status: str = "pending"
    payment_amount: float = 0.0

    customer_email: str
    customer_name: str
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    project_description: Optional[str] = None

    assignment_strategy: str = "optimal"
    assignment_reason: Optional[str] = None
    confidence_score: Optional[int] = None

    created_at: datetime
    updated_at: datetime
