# app/scheduling/admin.py

"""Staff-side management of services, consultants and availability rules."""

import logging
from typing import List

from sqlmodel import Session, col, select

from app.core import overlaps, to_minutes
from app.db import atomic
from app.errors import (
    InvalidDateError,
    InvalidRequestError,
    InvalidTimeError,
    RecordNotFoundError,
    ScheduleConflictError,
    ServiceNotFoundError,
)
from app.models import (
    AvailabilityBreak,
    AvailabilityTemplate,
    BufferPreference,
    Consultant,
    Service,
    TimeOff,
)
from app.schemas import (
    BreakCreate,
    BufferPreferenceUpdate,
    ConsultantCreate,
    ServiceCreate,
    TemplateCreate,
    TimeOffCreate,
)
from app.scheduling.entities import ServiceSpec
from app.scheduling.store import BookingStore

logger = logging.getLogger(__name__)


def _check_window(start, end, what: str) -> None:
    if start >= end:
        raise InvalidTimeError(f"{what} start_time must be before end_time")


def _validate_days(days: List[int]) -> List[int]:
    for day in days:
        if not 0 <= day <= 6:
            raise InvalidRequestError("days must be integers between 0 and 6")
    if len(days) != len(set(days)):
        raise InvalidRequestError("days cannot contain duplicates")
    return days


def _owned(session: Session, model, record_id: int, consultant_id: int):
    row = session.get(model, record_id)
    if row is None or row.consultant_id != consultant_id:
        raise RecordNotFoundError(f"{model.__name__} {record_id} not found")
    return row


# --- services & consultants ---------------------------------------------


def create_service(session: Session, data: ServiceCreate) -> Service:
    service = Service(**data.model_dump())
    session.add(service)
    session.commit()
    session.refresh(service)
    logger.info("Service %s created (%d min)", service.name, service.duration_minutes)
    return service


def list_services(session: Session) -> List[ServiceSpec]:
    rows = session.exec(
        select(Service).where(col(Service.is_active).is_(True)).order_by(Service.id)
    ).all()
    return [ServiceSpec.from_row(row) for row in rows]


def create_consultant(session: Session, data: ConsultantCreate) -> Consultant:
    existing = session.exec(select(Consultant).where(Consultant.email == data.email)).first()
    if existing is not None:
        raise ScheduleConflictError(f"Consultant {data.email} already exists")
    consultant = Consultant(name=data.name, email=data.email)
    session.add(consultant)
    session.commit()
    session.refresh(consultant)
    return consultant


def list_consultants(session: Session) -> List[Consultant]:
    return list(session.exec(select(Consultant).order_by(Consultant.id)).all())


# --- weekly templates ----------------------------------------------------


def list_templates(session: Session, consultant_id: int) -> List[AvailabilityTemplate]:
    BookingStore(session).get_consultant(consultant_id)
    return list(
        session.exec(
            select(AvailabilityTemplate)
            .where(AvailabilityTemplate.consultant_id == consultant_id)
            .order_by(AvailabilityTemplate.day_of_week, AvailabilityTemplate.start_time)
        ).all()
    )


def _ensure_no_template_overlap(session, consultant_id, data: TemplateCreate, ignore_id=None) -> None:
    if not data.is_active:
        return
    siblings = session.exec(
        select(AvailabilityTemplate)
        .where(AvailabilityTemplate.consultant_id == consultant_id)
        .where(AvailabilityTemplate.day_of_week == data.day_of_week)
        .where(col(AvailabilityTemplate.is_active).is_(True))
    ).all()
    start, end = to_minutes(data.start_time), to_minutes(data.end_time)
    for other in siblings:
        if other.id == ignore_id:
            continue
        if overlaps(start, end, to_minutes(other.start_time), to_minutes(other.end_time)):
            raise ScheduleConflictError(
                f"Window overlaps existing window {other.start_time:%H:%M}-{other.end_time:%H:%M}"
            )


def create_template(session: Session, consultant_id: int, data: TemplateCreate) -> AvailabilityTemplate:
    BookingStore(session).get_consultant(consultant_id)
    _check_window(data.start_time, data.end_time, "template")
    _ensure_no_template_overlap(session, consultant_id, data)

    template = AvailabilityTemplate(consultant_id=consultant_id, **data.model_dump())
    session.add(template)
    session.commit()
    session.refresh(template)
    return template


def update_template(
    session: Session, consultant_id: int, template_id: int, data: TemplateCreate
) -> AvailabilityTemplate:
    template = _owned(session, AvailabilityTemplate, template_id, consultant_id)
    _check_window(data.start_time, data.end_time, "template")
    _ensure_no_template_overlap(session, consultant_id, data, ignore_id=template_id)

    for key, value in data.model_dump().items():
        setattr(template, key, value)
    session.add(template)
    session.commit()
    session.refresh(template)
    return template


def delete_template(session: Session, consultant_id: int, template_id: int) -> None:
    template = _owned(session, AvailabilityTemplate, template_id, consultant_id)
    session.delete(template)
    session.commit()


def copy_templates(session: Session, consultant_id: int, source_day: int, target_days: List[int]) -> int:
    """Replace each target day's windows with the source day's active windows.

    Each target day is swapped in its own transaction.
    """
    BookingStore(session).get_consultant(consultant_id)
    _validate_days(target_days)
    sources = [
        t for t in list_templates(session, consultant_id)
        if t.day_of_week == source_day and t.is_active
    ]
    if not sources:
        raise InvalidRequestError("No availability found for source day")
    copies = [(t.start_time, t.end_time, t.max_bookings, t.notes) for t in sources]

    copied = 0
    for target in target_days:
        if target == source_day:
            continue
        with atomic(session):
            existing = session.exec(
                select(AvailabilityTemplate)
                .where(AvailabilityTemplate.consultant_id == consultant_id)
                .where(AvailabilityTemplate.day_of_week == target)
            ).all()
            for row in existing:
                session.delete(row)
            session.flush()
            for start_time, end_time, max_bookings, notes in copies:
                session.add(
                    AvailabilityTemplate(
                        consultant_id=consultant_id,
                        day_of_week=target,
                        start_time=start_time,
                        end_time=end_time,
                        max_bookings=max_bookings,
                        notes=notes,
                    )
                )
                copied += 1
    logger.info("Copied %d windows from day %d for consultant %s", copied, source_day, consultant_id)
    return copied


# --- breaks ----------------------------------------------------------------


def list_breaks(session: Session, consultant_id: int) -> List[AvailabilityBreak]:
    BookingStore(session).get_consultant(consultant_id)
    return list(
        session.exec(
            select(AvailabilityBreak)
            .where(AvailabilityBreak.consultant_id == consultant_id)
            .order_by(AvailabilityBreak.day_of_week, AvailabilityBreak.specific_date, AvailabilityBreak.start_time)
        ).all()
    )


def _check_break(data: BreakCreate) -> None:
    if (data.day_of_week is None) == (data.specific_date is None):
        raise InvalidRequestError("A break needs exactly one of day_of_week or specific_date")
    _check_window(data.start_time, data.end_time, "break")


def create_break(session: Session, consultant_id: int, data: BreakCreate) -> AvailabilityBreak:
    BookingStore(session).get_consultant(consultant_id)
    _check_break(data)
    row = AvailabilityBreak(consultant_id=consultant_id, **data.model_dump())
    row.break_type = data.break_type.value
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def update_break(session: Session, consultant_id: int, break_id: int, data: BreakCreate) -> AvailabilityBreak:
    row = _owned(session, AvailabilityBreak, break_id, consultant_id)
    _check_break(data)
    for key, value in data.model_dump().items():
        setattr(row, key, value)
    row.break_type = data.break_type.value
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def delete_break(session: Session, consultant_id: int, break_id: int) -> None:
    row = _owned(session, AvailabilityBreak, break_id, consultant_id)
    session.delete(row)
    session.commit()


def copy_breaks(session: Session, consultant_id: int, source_day: int, target_days: List[int]) -> int:
    """Replace each target day's recurring breaks with the source day's."""
    BookingStore(session).get_consultant(consultant_id)
    _validate_days(target_days)
    sources = [
        b for b in list_breaks(session, consultant_id)
        if b.day_of_week == source_day and b.specific_date is None and b.is_active
    ]
    if not sources:
        raise InvalidRequestError("No breaks found for source day")
    copies = [(b.start_time, b.end_time, b.break_type, b.title) for b in sources]

    copied = 0
    for target in target_days:
        if target == source_day:
            continue
        with atomic(session):
            existing = session.exec(
                select(AvailabilityBreak)
                .where(AvailabilityBreak.consultant_id == consultant_id)
                .where(AvailabilityBreak.day_of_week == target)
                .where(col(AvailabilityBreak.specific_date).is_(None))
            ).all()
            for row in existing:
                session.delete(row)
            session.flush()
            for start_time, end_time, break_type, title in copies:
                session.add(
                    AvailabilityBreak(
                        consultant_id=consultant_id,
                        day_of_week=target,
                        start_time=start_time,
                        end_time=end_time,
                        break_type=break_type,
                        title=title,
                    )
                )
                copied += 1
    return copied


# --- time off --------------------------------------------------------------


def list_timeoff(session: Session, consultant_id: int) -> List[TimeOff]:
    BookingStore(session).get_consultant(consultant_id)
    return list(
        session.exec(
            select(TimeOff)
            .where(TimeOff.consultant_id == consultant_id)
            .order_by(TimeOff.start_date)
        ).all()
    )


def create_timeoff(session: Session, consultant_id: int, data: TimeOffCreate) -> TimeOff:
    BookingStore(session).get_consultant(consultant_id)
    if data.start_date > data.end_date:
        raise InvalidDateError("start_date must be on or before end_date")
    if (data.start_time is None) != (data.end_time is None):
        raise InvalidTimeError("Partial-day time off needs both start_time and end_time")
    if data.start_time is not None:
        _check_window(data.start_time, data.end_time, "time off")

    row = TimeOff(consultant_id=consultant_id, **data.model_dump())
    row.timeoff_type = data.timeoff_type.value
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info("Time off %s-%s added for consultant %s", row.start_date, row.end_date, consultant_id)
    return row


def delete_timeoff(session: Session, consultant_id: int, timeoff_id: int) -> None:
    row = _owned(session, TimeOff, timeoff_id, consultant_id)
    session.delete(row)
    session.commit()


# --- buffer preferences ----------------------------------------------------


def list_buffer_preferences(session: Session, consultant_id: int) -> List[BufferPreference]:
    BookingStore(session).get_consultant(consultant_id)
    return list(
        session.exec(
            select(BufferPreference).where(BufferPreference.consultant_id == consultant_id)
        ).all()
    )


def upsert_buffer_preference(
    session: Session, consultant_id: int, service_id: int, data: BufferPreferenceUpdate
) -> BufferPreference:
    BookingStore(session).get_consultant(consultant_id)
    service = session.get(Service, service_id)
    if service is None:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    if not service.allow_custom_buffer:
        raise InvalidRequestError(f"Service {service_id} does not allow custom buffers")

    row = session.exec(
        select(BufferPreference)
        .where(BufferPreference.consultant_id == consultant_id)
        .where(BufferPreference.service_id == service_id)
    ).first()
    if row is None:
        row = BufferPreference(consultant_id=consultant_id, service_id=service_id)
    row.buffer_before_minutes = data.buffer_before_minutes
    row.buffer_after_minutes = data.buffer_after_minutes
    row.notes = data.notes
    row.is_active = True
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def delete_buffer_preference(session: Session, consultant_id: int, service_id: int) -> None:
    row = session.exec(
        select(BufferPreference)
        .where(BufferPreference.consultant_id == consultant_id)
        .where(BufferPreference.service_id == service_id)
    ).first()
    if row is None:
        raise RecordNotFoundError(f"No buffer preference for service {service_id}")
    session.delete(row)
    session.commit()
