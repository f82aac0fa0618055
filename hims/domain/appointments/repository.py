from typing import Optional, List, Tuple
from datetime import datetime, timedelta

from hims.domain.appointments.models import Appointment, AppointmentStatus
from hims.infrastructure.repository import BaseRepository

# Longest bookable slot; bounds the overlap scan window
MAX_DURATION_MINUTES = 480


class AppointmentRepository(BaseRepository[Appointment]):
    """Repository for appointment data access operations"""

    model = Appointment

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[Appointment], int]:
        stmt = self.query()
        if patient_id:
            stmt = stmt.where(Appointment.patient_id == patient_id)
        if doctor_id:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        if status:
            stmt = stmt.where(Appointment.status == status)
        if start:
            stmt = stmt.where(Appointment.appointment_date >= start)
        if end:
            stmt = stmt.where(Appointment.appointment_date < end)
        return await self.paginate(stmt.order_by(Appointment.appointment_date), skip, limit)

    async def find_conflicts(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None
    ) -> List[Appointment]:
        """Non-cancelled appointments of the doctor overlapping [start, end)"""
        stmt = self.query().where(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED.value,
            Appointment.appointment_date < end,
            Appointment.appointment_date >= start - timedelta(minutes=MAX_DURATION_MINUTES),
        )
        if exclude_id:
            stmt = stmt.where(Appointment.id != exclude_id)
        candidates = await self.all(stmt.order_by(Appointment.appointment_date))
        return [a for a in candidates if a.overlaps(start, end)]
