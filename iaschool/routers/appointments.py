from datetime import date
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_parent
from ..models.tenant_specific.appointment import AppointmentStatus
from ..models.tenant_specific.user import User
from ..schemas.appointment_schemas import AppointmentCreate, AppointmentUpdate, VideoToggle
from ..services.appointment_service import AppointmentService

router = APIRouter(prefix="/api/v1/appointments", tags=["Appointments"])


@router.get("")
async def list_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = AppointmentService(db)
    appointments = await service.list_appointments(current_user, status, date_from, date_to)
    return {"items": [service.format_appointment(a) for a in appointments], "total": len(appointments)}


@router.post("", status_code=201)
async def create_appointment(
    payload: AppointmentCreate,
    current_user: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db)
):
    """Parent requests a meeting with a teacher"""
    service = AppointmentService(db)
    appointment = await service.create_appointment(current_user, payload.model_dump())
    return service.format_appointment(appointment)


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = AppointmentService(db)
    return service.format_appointment(await service.get_for_user(current_user, appointment_id))


@router.patch("/{appointment_id}")
async def update_appointment(
    appointment_id: UUID,
    payload: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = AppointmentService(db)
    appointment = await service.update_appointment(current_user, appointment_id, payload.model_dump(exclude_unset=True))
    return service.format_appointment(appointment)


@router.delete("/{appointment_id}")
async def cancel_appointment(
    appointment_id: UUID,
    reason: Optional[str] = Query(None, max_length=500),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = AppointmentService(db)
    appointment = await service.cancel_appointment(current_user, appointment_id, reason)
    return service.format_appointment(appointment)


@router.post("/{appointment_id}/video")
async def toggle_video(
    appointment_id: UUID,
    payload: VideoToggle,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Enable or disable the video room for an appointment"""
    service = AppointmentService(db)
    if payload.enabled:
        appointment = await service.enable_video(current_user, appointment_id)
    else:
        appointment = await service.disable_video(current_user, appointment_id)
    return service.format_appointment(appointment)
