# app/routers/services_routes.py

from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.db import get_session
from app.schemas import ServiceCreate, ServicePublic
from app.scheduling import admin
from app.scheduling.entities import ServiceSpec

router = APIRouter(
    prefix="/services",
    tags=["services"],
)


def _public(service: ServiceSpec) -> dict:
    # buffers go out resolved, never null
    return {
        "id": service.id,
        "name": service.name,
        "duration_minutes": service.duration_minutes,
        "buffer_before_minutes": service.buffer_before,
        "buffer_after_minutes": service.buffer_after,
        "total_duration_minutes": service.total_duration,
        "requires_payment": service.requires_payment,
        "price": service.price,
        "minimum_advance_hours": service.minimum_advance_hours,
    }


@router.get("", response_model=List[ServicePublic])
def list_services(session: Session = Depends(get_session)):
    return [_public(service) for service in admin.list_services(session)]


@router.post("", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
):
    row = admin.create_service(session, service)
    return _public(ServiceSpec.from_row(row))
