from datetime import timedelta
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class AppointmentStatus(str, enum.Enum):
    """Appointment status enumeration"""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


FINAL_APPOINTMENT_STATUSES = {AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value}


class Appointment(TimestampMixin, Base):
    """Scheduled patient appointment with a doctor"""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    appointment_date = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    reason = Column(Text)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value)
    notes = Column(Text)

    patient = relationship("Patient", lazy="selectin")
    doctor = relationship("User", lazy="selectin")

    @property
    def end_time(self):
        return self.appointment_date + timedelta(minutes=self.duration_minutes or 0)

    def overlaps(self, start, end) -> bool:
        return self.appointment_date < end and self.end_time > start
