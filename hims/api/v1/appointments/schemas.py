"""
Appointments API Schemas

Pydantic models for appointment-related API requests and responses.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from hims.api.v1.auth.schemas import StaffOption
from hims.api.v1.common import UpdateSchema, to_naive_utc
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.appointments.models import Appointment, AppointmentStatus
from hims.domain.appointments.repository import MAX_DURATION_MINUTES


class AppointmentBase(BaseModel):
    """Base schema for appointments"""
    patient_id: str
    doctor_id: str
    appointment_date: datetime
    duration_minutes: int = Field(30, ge=5, le=MAX_DURATION_MINUTES)
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('appointment_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class AppointmentCreate(AppointmentBase):
    """Schema for booking an appointment"""
    pass


class AppointmentUpdate(UpdateSchema):
    """Schema for rescheduling or editing an appointment"""
    orm_model = Appointment

    doctor_id: Optional[str] = None
    appointment_date: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=MAX_DURATION_MINUTES)
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('appointment_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None


class ConflictCheckRequest(BaseModel):
    doctor_id: str
    appointment_date: datetime
    duration_minutes: int = Field(30, ge=5, le=MAX_DURATION_MINUTES)
    exclude_id: Optional[str] = None

    @field_validator('appointment_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""
    id: str
    patient_id: str
    doctor_id: str
    appointment_date: datetime
    duration_minutes: int
    reason: Optional[str] = None
    status: str
    notes: Optional[str] = None
    patient: Optional[PatientSummary] = None
    doctor: Optional[StaffOption] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: List[AppointmentResponse]
