"""Appointment service - Business logic for appointment operations"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment
from ...shared.timeutil import anchor_noon, day_bounds
from ..calendar.buckets import upcoming
from ..companies.repository import CompanyRepository
from .form import AppointmentForm, build_payload, validate_form
from .repository import AppointmentRepository
from .schemas import AppointmentResponse, DrugTesting

logger = logging.getLogger(__name__)


def to_response(appointment: Appointment) -> AppointmentResponse:
    drug_testing = appointment.drug_testing
    return AppointmentResponse(
        id=appointment.id,
        title=appointment.title,
        companyId=appointment.company_id,
        appointmentDate=appointment.appointment_date,
        startTime=appointment.start_time,
        duration=appointment.duration,
        endTime=appointment.end_time,
        serviceType=appointment.service_type or "other",
        status=appointment.status or "scheduled",
        location=appointment.location,
        notes=appointment.notes,
        # Only testing appointments expose drug-testing details, whatever is stored
        drugTesting=DrugTesting(**drug_testing)
        if drug_testing and appointment.service_type == "testing"
        else None,
        version=appointment.version or 1,
        lastMutationId=appointment.last_mutation_id,
        createdAt=appointment.created_at,
        updatedAt=appointment.updated_at,
    )


def load_appointments(db: Session) -> list[AppointmentResponse]:
    """Live-query loader for the appointments collection"""
    return [to_response(a) for a in AppointmentRepository.list_appointments(db)]


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    def _get_or_404(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def _check_form(self, form: AppointmentForm) -> dict:
        errors = validate_form(form)
        if errors:
            logger.warning(f"⚠️ Appointment form rejected: {[e.field for e in errors]}")
            raise HTTPException(
                status_code=422,
                detail=[{"field": e.field, "message": e.message} for e in errors],
            )
        payload = build_payload(form)
        company_id = payload["company_id"]
        if company_id and not CompanyRepository.get_company(self.db, company_id):
            raise HTTPException(
                status_code=422,
                detail=[{"field": "companyId", "message": "Company not found"}],
            )
        return payload

    def list_appointments(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[AppointmentResponse]:
        start_at = day_bounds(start)[0] if start else None
        end_at = day_bounds(end)[1] if end else None
        return [to_response(a) for a in self.repo.list_appointments(self.db, start_at, end_at)]

    def get_appointment(self, appointment_id: str) -> AppointmentResponse:
        return to_response(self._get_or_404(appointment_id))

    def upcoming(self, today: date, limit: int = 10) -> list[AppointmentResponse]:
        return upcoming(self.list_appointments(start=today), today, limit)

    def create_appointment(self, form: AppointmentForm) -> AppointmentResponse:
        payload = self._check_form(form)
        return self.save(payload, None, form.mutationId)

    def update_appointment(self, appointment_id: str, form: AppointmentForm) -> AppointmentResponse:
        self._get_or_404(appointment_id)
        payload = self._check_form(form)
        return self.save(payload, appointment_id, form.mutationId)

    def save(
        self,
        payload: dict,
        appointment_id: Optional[str] = None,
        mutation_id: Optional[str] = None,
    ) -> AppointmentResponse:
        """Create when no id is bound, otherwise overwrite the record with ``payload``"""
        if appointment_id is None:
            appointment = self.repo.create_appointment(self.db, mutation_id=mutation_id, **payload)
            logger.info(f"✅ Appointment created: {appointment.id}")
        else:
            appointment = self._get_or_404(appointment_id)
            appointment = self.repo.update_appointment(
                self.db, appointment, mutation_id=mutation_id, **payload
            )
            logger.info(f"✅ Appointment updated: {appointment.id} (v{appointment.version})")
        return to_response(appointment)

    def reschedule(
        self, appointment_id: str, target: date, mutation_id: Optional[str] = None
    ) -> AppointmentResponse:
        """Move to another day; only the date changes and it lands at local noon"""
        appointment = self._get_or_404(appointment_id)
        appointment = self.repo.update_appointment(
            self.db,
            appointment,
            mutation_id=mutation_id,
            appointment_date=anchor_noon(target),
        )
        logger.info(f"📅 Appointment {appointment_id} rescheduled to {target.isoformat()}")
        return to_response(appointment)

    def delete_appointment(self, appointment_id: str) -> dict:
        appointment = self._get_or_404(appointment_id)
        self.repo.delete_appointment(self.db, appointment)
        logger.info(f"🗑️ Appointment deleted: {appointment_id}")
        return {"message": "Appointment deleted successfully"}
