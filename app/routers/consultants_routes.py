# app/routers/consultants_routes.py

from typing import List

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from app.db import get_session
from app.schemas import (
    BreakCreate,
    BreakPublic,
    BufferPreferencePublic,
    BufferPreferenceUpdate,
    ConsultantCreate,
    ConsultantPublic,
    CopyResult,
    DayCopy,
    TemplateCreate,
    TemplatePublic,
    TimeOffCreate,
    TimeOffPublic,
)
from app.scheduling import admin

router = APIRouter(
    prefix="/consultants",
    tags=["consultants"],
)


@router.get("", response_model=List[ConsultantPublic])
def list_consultants(session: Session = Depends(get_session)):
    return admin.list_consultants(session)


@router.post("", response_model=ConsultantPublic, status_code=201)
def create_consultant(
    consultant: ConsultantCreate,
    session: Session = Depends(get_session),
):
    return admin.create_consultant(session, consultant)


# --- weekly availability ---------------------------------------------------


@router.get("/{consultant_id}/templates", response_model=List[TemplatePublic])
def list_templates(consultant_id: int, session: Session = Depends(get_session)):
    return admin.list_templates(session, consultant_id)


@router.post("/{consultant_id}/templates", response_model=TemplatePublic, status_code=201)
def create_template(
    consultant_id: int,
    template: TemplateCreate,
    session: Session = Depends(get_session),
):
    return admin.create_template(session, consultant_id, template)


@router.put("/{consultant_id}/templates/{template_id}", response_model=TemplatePublic)
def update_template(
    consultant_id: int,
    template_id: int,
    template: TemplateCreate,
    session: Session = Depends(get_session),
):
    return admin.update_template(session, consultant_id, template_id, template)


@router.delete("/{consultant_id}/templates/{template_id}", status_code=204)
def delete_template(
    consultant_id: int,
    template_id: int,
    session: Session = Depends(get_session),
):
    admin.delete_template(session, consultant_id, template_id)
    return Response(status_code=204)


@router.post("/{consultant_id}/templates/copy", response_model=CopyResult)
def copy_templates(
    consultant_id: int,
    copy: DayCopy,
    session: Session = Depends(get_session),
):
    copied = admin.copy_templates(session, consultant_id, copy.source_day, copy.target_days)
    return {"copied": copied, "target_days": len([d for d in copy.target_days if d != copy.source_day])}


# --- breaks ------------------------------------------------------------------


@router.get("/{consultant_id}/breaks", response_model=List[BreakPublic])
def list_breaks(consultant_id: int, session: Session = Depends(get_session)):
    return admin.list_breaks(session, consultant_id)


@router.post("/{consultant_id}/breaks", response_model=BreakPublic, status_code=201)
def create_break(
    consultant_id: int,
    block: BreakCreate,
    session: Session = Depends(get_session),
):
    return admin.create_break(session, consultant_id, block)


@router.put("/{consultant_id}/breaks/{break_id}", response_model=BreakPublic)
def update_break(
    consultant_id: int,
    break_id: int,
    block: BreakCreate,
    session: Session = Depends(get_session),
):
    return admin.update_break(session, consultant_id, break_id, block)


@router.delete("/{consultant_id}/breaks/{break_id}", status_code=204)
def delete_break(
    consultant_id: int,
    break_id: int,
    session: Session = Depends(get_session),
):
    admin.delete_break(session, consultant_id, break_id)
    return Response(status_code=204)


@router.post("/{consultant_id}/breaks/copy", response_model=CopyResult)
def copy_breaks(
    consultant_id: int,
    copy: DayCopy,
    session: Session = Depends(get_session),
):
    copied = admin.copy_breaks(session, consultant_id, copy.source_day, copy.target_days)
    return {"copied": copied, "target_days": len([d for d in copy.target_days if d != copy.source_day])}


# --- time off ----------------------------------------------------------------


@router.get("/{consultant_id}/timeoff", response_model=List[TimeOffPublic])
def list_timeoff(consultant_id: int, session: Session = Depends(get_session)):
    return admin.list_timeoff(session, consultant_id)


@router.post("/{consultant_id}/timeoff", response_model=TimeOffPublic, status_code=201)
def create_timeoff(
    consultant_id: int,
    timeoff: TimeOffCreate,
    session: Session = Depends(get_session),
):
    return admin.create_timeoff(session, consultant_id, timeoff)


@router.delete("/{consultant_id}/timeoff/{timeoff_id}", status_code=204)
def delete_timeoff(
    consultant_id: int,
    timeoff_id: int,
    session: Session = Depends(get_session),
):
    admin.delete_timeoff(session, consultant_id, timeoff_id)
    return Response(status_code=204)


# --- buffer preferences ------------------------------------------------------


@router.get("/{consultant_id}/buffer-preferences", response_model=List[BufferPreferencePublic])
def list_buffer_preferences(consultant_id: int, session: Session = Depends(get_session)):
    return admin.list_buffer_preferences(session, consultant_id)


@router.put(
    "/{consultant_id}/buffer-preferences/{service_id}",
    response_model=BufferPreferencePublic,
)
def upsert_buffer_preference(
    consultant_id: int,
    service_id: int,
    preference: BufferPreferenceUpdate,
    session: Session = Depends(get_session),
):
    return admin.upsert_buffer_preference(session, consultant_id, service_id, preference)


@router.delete("/{consultant_id}/buffer-preferences/{service_id}", status_code=204)
def delete_buffer_preference(
    consultant_id: int,
    service_id: int,
    session: Session = Depends(get_session),
):
    admin.delete_buffer_preference(session, consultant_id, service_id)
    return Response(status_code=204)
