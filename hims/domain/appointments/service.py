"""
Appointments Domain Service

Booking, rescheduling and status changes. A doctor cannot hold two
overlapping non-cancelled appointments.
"""

from typing import Optional, List, Tuple
from datetime import datetime, timedelta
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from hims.domain.appointments.models import Appointment, FINAL_APPOINTMENT_STATUSES
from hims.domain.appointments.repository import AppointmentRepository
from hims.domain.auth.models import UserRole
from hims.domain.auth.repository import UserRepository
from hims.domain.patients.repository import PatientRepository
from hims.api.v1.appointments.schemas import (
    AppointmentCreate,
    AppointmentStatusUpdate,
    AppointmentUpdate,
)

logger = logging.getLogger(__name__)


class AppointmentService:
    """Service for appointment scheduling"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = AppointmentRepository(db)
        self.patient_repo = PatientRepository(db)
        self.user_repo = UserRepository(db)

    async def _check_doctor(self, doctor_id: str) -> None:
        doctor = await self.user_repo.get_by_id(doctor_id)
        if not doctor or doctor.role != UserRole.DOCTOR.value:
            raise NotFoundError("Doctor not found")
        if not doctor.is_active:
            raise BusinessLogicError("Doctor account is inactive")

    async def check_conflicts(
        self,
        doctor_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_id: Optional[str] = None
    ) -> List[Appointment]:
        end = start + timedelta(minutes=duration_minutes)
        return await self.repo.find_conflicts(doctor_id, start, end, exclude_id=exclude_id)

    async def _ensure_free(self, doctor_id: str, start: datetime, duration: int, exclude_id: Optional[str] = None):
        conflicts = await self.check_conflicts(doctor_id, start, duration, exclude_id)
        if conflicts:
            raise ConflictError(
                "Doctor already has an appointment in this time slot",
                details={"conflicts": [c.id for c in conflicts]},
            )

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        await self._check_doctor(data.doctor_id)
        await self._ensure_free(data.doctor_id, data.appointment_date, data.duration_minutes)

        appointment = await self.repo.create(data.model_dump())
        await self.db.commit()
        logger.info(f"Booked appointment {appointment.id} for doctor {data.doctor_id}")
        return await self.repo.get_by_id(appointment.id)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = await self.repo.get_by_id(appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    async def list_appointments(self, skip: int, limit: int, **filters) -> Tuple[List[Appointment], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_appointment(self, appointment_id: str, data: AppointmentUpdate) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        if appointment.status in FINAL_APPOINTMENT_STATUSES:
            raise BusinessLogicError(f"Cannot modify a {appointment.status} appointment")

        update_dict = data.model_dump(exclude_unset=True)
        if update_dict.get("doctor_id"):
            await self._check_doctor(update_dict["doctor_id"])

        doctor_id = update_dict.get("doctor_id") or appointment.doctor_id
        start = update_dict.get("appointment_date") or appointment.appointment_date
        duration = update_dict.get("duration_minutes") or appointment.duration_minutes
        if {"doctor_id", "appointment_date", "duration_minutes"} & update_dict.keys():
            await self._ensure_free(doctor_id, start, duration, exclude_id=appointment_id)

        await self.repo.update(appointment, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(appointment_id)

    async def update_status(self, appointment_id: str, data: AppointmentStatusUpdate) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        if appointment.status in FINAL_APPOINTMENT_STATUSES:
            raise BusinessLogicError(f"Appointment is already {appointment.status}")

        appointment.status = data.status.value
        if data.notes:
            appointment.notes = data.notes
        await self.db.commit()
        return await self.repo.get_by_id(appointment_id)

    async def delete_appointment(self, appointment_id: str) -> None:
        appointment = await self.get_appointment(appointment_id)
        await self.repo.delete(appointment)
        await self.db.commit()

    @staticmethod
    def validate_range(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start and end and end < start:
            raise ValidationError("end_date must not be before start_date")
