# app/schemas.py

from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime, date, time
from typing import List, Optional


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"
    rescheduled = "rescheduled"


# statuses that hold one unit of the consultant's capacity
ACTIVE_STATUSES = (
    BookingStatus.pending.value,
    BookingStatus.confirmed.value,
    BookingStatus.in_progress.value,
)


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    waived = "waived"
    refunded = "refunded"


class AssignmentStrategy(str, Enum):
    optimal = "optimal"
    balanced = "balanced"
    random = "random"
    specific = "specific"


class BreakType(str, Enum):
    break_ = "break"
    lunch = "lunch"
    meeting = "meeting"
    personal = "personal"


class TimeOffType(str, Enum):
    vacation = "vacation"
    sick = "sick"
    personal = "personal"
    training = "training"
    other = "other"


class BookingAction(str, Enum):
    assign = "assign"
    unassign = "unassign"
    update_status = "update_status"


class ServiceCreate(BaseModel):
    name: str
    duration_minutes: int = Field(gt=0)
    buffer_before_minutes: Optional[int] = Field(default=None, ge=0)
    buffer_after_minutes: Optional[int] = Field(default=None, ge=0)
    allow_custom_buffer: bool = True
    requires_payment: bool = False
    price: float = Field(default=0.0, ge=0)
    auto_confirm: bool = True
    minimum_advance_hours: int = Field(default=24, ge=0)


class ServicePublic(BaseModel):
    id: int
    name: str
    duration_minutes: int
    buffer_before_minutes: int
    buffer_after_minutes: int
    total_duration_minutes: int
    requires_payment: bool
    price: float
    minimum_advance_hours: int


class ConsultantCreate(BaseModel):
    name: str
    email: str


class ConsultantPublic(BaseModel):
    id: int
    name: str
    email: str
    is_active: bool


class TemplateCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)     # 0=Sun, 1=Mon....
    start_time: time
    end_time: time
    max_bookings: int = Field(default=1, ge=1)
    is_active: bool = True
    notes: Optional[str] = None


class TemplatePublic(TemplateCreate):
    id: int
    consultant_id: int


class DayCopy(BaseModel):
    source_day: int = Field(ge=0, le=6)
    target_days: List[int]


class CopyResult(BaseModel):
    copied: int
    target_days: int


class BreakCreate(BaseModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    break_type: BreakType = BreakType.break_
    title: str = "Break"
    is_active: bool = True


class BreakPublic(BreakCreate):
    id: int
    consultant_id: int


class TimeOffCreate(BaseModel):
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timeoff_type: TimeOffType = TimeOffType.vacation
    title: str = "Time off"
    is_approved: bool = True


class TimeOffPublic(TimeOffCreate):
    id: int
    consultant_id: int


class BufferPreferenceUpdate(BaseModel):
    buffer_before_minutes: int = Field(default=0, ge=0)
    buffer_after_minutes: int = Field(default=5, ge=0)
    notes: Optional[str] = None


class BufferPreferencePublic(BufferPreferenceUpdate):
    id: int
    consultant_id: int
    service_id: int
    is_active: bool


class SlotConsultant(BaseModel):
    id: int
    name: str
    available_slots: int


class TimeSlot(BaseModel):
    time: str
    display: str
    available: bool
    available_slots: int
    consultants: List[SlotConsultant] = Field(default_factory=list)


class SlotsResponse(BaseModel):
    date: date
    service_id: int
    service_duration: int
    total_duration: int
    slot_interval: int
    time_slots: List[TimeSlot]
    total_available: int


class AvailableDate(BaseModel):
    date: date
    display: str
    day_of_week: int
    available_slots: int


class DatesResponse(BaseModel):
    available_dates: List[AvailableDate]
    total_dates_checked: int
    minimum_advance_hours: int
    next_available: Optional[date] = None


class CustomerData(BaseModel):
    email: str
    name: str
    phone: Optional[str] = None
    company: Optional[str] = None


class BookingCreate(BaseModel):
    service_id: int
    scheduled_date: str     # YYYY-MM-DD, business-local
    scheduled_time: str     # HH:MM, business-local
    customer: CustomerData
    project_description: Optional[str] = None
    assignment_strategy: AssignmentStrategy = AssignmentStrategy.optimal
    consultant_id: Optional[int] = None


class AssignmentPublic(BaseModel):
    consultant_id: int
    consultant_name: str
    assignment_reason: str
    confidence_score: int


class BookingPublic(BaseModel):
    id: int
    booking_reference: str
    service_id: int
    consultant_id: Optional[int]
    scheduled_date: date
    scheduled_time: time
    scheduled_datetime: datetime
    occupied_minutes: int
    status: BookingStatus
    payment_status: PaymentStatus
    payment_amount: float
    customer_email: str
    customer_name: str
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    project_description: Optional[str] = None
    assignment_strategy: AssignmentStrategy
    assignment_reason: Optional[str] = None
    confidence_score: Optional[int] = None


class BookingCreated(BaseModel):
    booking: BookingPublic
    consultant: Optional[AssignmentPublic] = None


class BookingUpdate(BaseModel):
    action: BookingAction
    consultant_id: Optional[int] = None
    status: Optional[BookingStatus] = None
