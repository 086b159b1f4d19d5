"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from ...realtime import snapshot_hub


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def list_appointments(
        db: Session,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Appointment]:
        """Appointments ordered by date, then start time, optionally within [start, end]"""
        query = db.query(Appointment)
        if start is not None:
            query = query.filter(Appointment.appointment_date >= start)
        if end is not None:
            query = query.filter(Appointment.appointment_date <= end)
        return query.order_by(
            Appointment.appointment_date.asc(), Appointment.start_time.asc()
        ).all()

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def create_appointment(db: Session, mutation_id: Optional[str] = None, **data) -> Appointment:
        appointment = Appointment(version=1, last_mutation_id=mutation_id, **data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        snapshot_hub.publish("appointments")
        return appointment

    @staticmethod
    def update_appointment(
        db: Session,
        appointment: Appointment,
        mutation_id: Optional[str] = None,
        **updates,
    ) -> Appointment:
        """Partial merge; every write bumps the version"""
        for key, value in updates.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)
        appointment.version = (appointment.version or 0) + 1
        appointment.last_mutation_id = mutation_id

        db.commit()
        db.refresh(appointment)
        snapshot_hub.publish("appointments")
        return appointment

    @staticmethod
    def delete_appointment(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()
        snapshot_hub.publish("appointments")
