# app/routers/bookings_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.core import parse_date
from app.db import get_session
from app.deps import get_clock, get_resolver
from app.schemas import (
    BookingAction,
    BookingCreate,
    BookingCreated,
    BookingPublic,
    BookingStatus,
    BookingUpdate,
)
from app.scheduling.booking_service import BookingRequest, BookingService, CustomerInfo

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)


def get_booking_service(
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
    resolver=Depends(get_resolver),
) -> BookingService:
    return BookingService(session, clock, resolver=resolver)


@router.post("", response_model=BookingCreated, status_code=201)
def create_booking(
    data: BookingCreate,
    bookings: BookingService = Depends(get_booking_service),
):
    # 1) Validate, assign and commit in one transaction
    outcome = bookings.create_booking(
        BookingRequest(
            service_id=data.service_id,
            scheduled_date=data.scheduled_date,
            scheduled_time=data.scheduled_time,
            customer=CustomerInfo(
                email=data.customer.email,
                name=data.customer.name,
                phone=data.customer.phone,
                company=data.customer.company,
            ),
            project_description=data.project_description,
            strategy=data.assignment_strategy,
            consultant_id=data.consultant_id,
        )
    )

    # 2) Unassigned bookings go out without consultant details
    consultant = None
    if outcome.assignment is not None:
        consultant = {
            "consultant_id": outcome.assignment.consultant_id,
            "consultant_name": outcome.assignment.consultant_name,
            "assignment_reason": outcome.assignment.reason,
            "confidence_score": outcome.assignment.confidence_score,
        }
    return {"booking": outcome.booking, "consultant": consultant}


@router.get("", response_model=List[BookingPublic])
def list_bookings(
    consultant_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    date: Optional[str] = None,
    unassigned: bool = False,
    bookings: BookingService = Depends(get_booking_service),
):
    return bookings.list_bookings(
        consultant_id=consultant_id,
        status=status.value if status else None,
        on_date=parse_date(date) if date else None,
        unassigned=unassigned,
    )


@router.get("/{booking_id}", response_model=BookingPublic)
def get_booking(
    booking_id: int,
    bookings: BookingService = Depends(get_booking_service),
):
    return bookings.get_booking(booking_id)


@router.patch("/{booking_id}", response_model=BookingPublic)
def update_booking(
    booking_id: int,
    update: BookingUpdate,
    bookings: BookingService = Depends(get_booking_service),
):
    if update.action is BookingAction.assign:
        if update.consultant_id is None:
            raise HTTPException(status_code=422, detail="consultant_id is required to assign")
        return bookings.assign_consultant(booking_id, update.consultant_id)

    if update.action is BookingAction.unassign:
        return bookings.unassign_consultant(booking_id)

    if update.status is None:
        raise HTTPException(status_code=422, detail="status is required to update status")
    return bookings.update_status(booking_id, update.status)
