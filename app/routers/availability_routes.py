# app/routers/availability_routes.py

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.config import settings
from app.db import get_session
from app.deps import get_clock
from app.schemas import DatesResponse, SlotsResponse
from app.scheduling.engine import AvailabilityEngine
from app.scheduling.store import BookingStore

router = APIRouter(
    prefix="/availability",
    tags=["availability"],
)


@router.get("/slots", response_model=SlotsResponse)
def available_slots(
    date: str,
    service_id: int,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    engine = AvailabilityEngine(BookingStore(session), clock)
    day_slots = engine.get_slots_for_date(date, service_id)
    service = day_slots.service

    return {
        "date": day_slots.day,
        "service_id": service.id,
        "service_duration": service.duration_minutes,
        "total_duration": service.total_duration,
        "slot_interval": service.total_duration,
        "time_slots": [
            {
                "time": slot.time,
                "display": slot.display,
                "available": slot.available,
                "available_slots": slot.total_capacity,
                "consultants": [
                    {"id": c.consultant_id, "name": c.name, "available_slots": c.remaining}
                    for c in slot.consultants
                ],
            }
            for slot in day_slots.slots
        ],
        "total_available": day_slots.total_available,
    }


@router.get("/dates", response_model=DatesResponse)
def available_dates(
    service_id: int,
    days_ahead: Optional[int] = None,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    if days_ahead is None:
        days_ahead = settings.business.default_days_ahead
    store = BookingStore(session)
    engine = AvailabilityEngine(store, clock)
    dates = engine.get_available_dates_in_range(service_id, days_ahead)

    # calendar auto-navigation hint: search the rest of the booking horizon
    next_available = None
    if not dates:
        next_available = engine.find_next_available_date(
            service_id,
            engine.today() + timedelta(days=days_ahead),
            settings.business.max_days_ahead - days_ahead + 1,
        )

    return {
        "available_dates": [
            {
                "date": d.day,
                "display": d.day.strftime("%a, %b %d"),
                "day_of_week": d.day_of_week,
                "available_slots": d.available_slots,
            }
            for d in dates
        ],
        "total_dates_checked": days_ahead,
        "minimum_advance_hours": store.get_service(service_id).minimum_advance_hours,
        "next_available": next_available,
    }
