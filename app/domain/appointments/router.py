"""Appointment router - FastAPI endpoints for appointment operations"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from .form import AppointmentForm
from .schemas import AppointmentResponse, AppointmentReschedule
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.get("", response_model=list[AppointmentResponse])
async def get_appointments(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments ordered by date and start time, optionally within a date range"""
    return service.list_appointments(start=start, end=end)


@router.get("/upcoming", response_model=list[AppointmentResponse])
async def get_upcoming_appointments(
    limit: int = Query(10, ge=1, le=100),
    today: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Today and later, cancelled appointments excluded"""
    return service.upcoming(today or date.today(), limit)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id)


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    form: AppointmentForm,
    current_user: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Create an appointment; validation errors come back as a field/message list"""
    return service.create_appointment(form)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: str,
    form: AppointmentForm,
    current_user: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Save the full form over an existing appointment"""
    return service.update_appointment(appointment_id, form)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: str,
    data: AppointmentReschedule,
    current_user: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Move an appointment to another day (drag and drop)"""
    return service.reschedule(appointment_id, data.date, data.mutationId)


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.delete_appointment(appointment_id)
