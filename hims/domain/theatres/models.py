from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import timedelta
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid
from hims.domain.wards.models import WardStatus


class TheatreType(str, enum.Enum):
    GENERAL = "general"
    ICU = "icu"
    CCU = "ccu"
    NICU = "nicu"
    PEDIATRIC = "pediatric"
    MATERNITY = "maternity"
    SURGICAL = "surgical"
    MEDICAL = "medical"
    ORTHOPEDIC = "orthopedic"
    EMERGENCY = "emergency"
    ISOLATION = "isolation"


# Theatres share the ward lifecycle states
TheatreStatus = WardStatus


class ProcedureStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ON_GOING = "on-going"
    CRITICAL = "critical"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_PROCEDURE_STATUSES = [
    ProcedureStatus.SCHEDULED.value,
    ProcedureStatus.ON_GOING.value,
    ProcedureStatus.CRITICAL.value,
]


class DischargeReason(str, enum.Enum):
    COMPLETED = "completed"
    REFERRED = "referred"
    AGAINST_MEDICAL_ADVICE = "against_medical_advice"
    DECEASED = "deceased"
    ABSCONDED = "absconded"
    TRANSFERRED = "transferred"


class Theatre(TimestampMixin, Base):
    __tablename__ = "theatres"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100), nullable=False)
    theatre_number = Column(String(20), unique=True, nullable=False, index=True)
    theatre_type = Column(String(20), nullable=False, default=TheatreType.GENERAL.value)
    floor = Column(String(20))
    description = Column(Text)
    status = Column(String(20), nullable=False, default=TheatreStatus.ACTIVE.value, index=True)

    @property
    def is_active(self) -> bool:
        return self.status == TheatreStatus.ACTIVE.value


class TheatreProcedure(TimestampMixin, Base):
    """Scheduled surgical procedure in a theatre"""
    __tablename__ = "theatre_procedures"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    procedure_number = Column(String(30), unique=True, nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    theatre_id = Column(String(36), ForeignKey("theatres.id"), nullable=False, index=True)
    procedure_name = Column(String(200), nullable=False)
    surgeon_id = Column(String(36), ForeignKey("users.id"))
    anaesthetist_id = Column(String(36), ForeignKey("users.id"))
    scheduled_date = Column(DateTime, nullable=False, index=True)
    estimated_duration_minutes = Column(Integer, nullable=False, default=60)
    status = Column(String(20), nullable=False, default=ProcedureStatus.SCHEDULED.value, index=True)
    pre_op_notes = Column(Text)
    medications = Column(JSON, default=list)
    diagnoses = Column(JSON, default=list)
    discharge_reason = Column(String(30))
    discharge_summary = Column(Text)
    completed_at = Column(DateTime)

    patient = relationship("Patient", lazy="selectin")
    theatre = relationship("Theatre", lazy="selectin")
    surgeon = relationship("User", foreign_keys=[surgeon_id], lazy="selectin")
    anaesthetist = relationship("User", foreign_keys=[anaesthetist_id], lazy="selectin")

    @property
    def end_time(self):
        return self.scheduled_date + timedelta(minutes=self.estimated_duration_minutes or 0)

    @property
    def is_closed(self) -> bool:
        return self.status in (ProcedureStatus.COMPLETED.value, ProcedureStatus.CANCELLED.value)
