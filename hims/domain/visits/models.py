from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, JSON
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class VisitType(str, enum.Enum):
    OPD = "opd"
    EMERGENCY = "emergency"
    FOLLOW_UP = "follow_up"


class VisitStatus(str, enum.Enum):
    IN_QUEUE = "in_queue"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class Visit(TimestampMixin, Base):
    """Outpatient encounter; orders and prescriptions hang off it"""
    __tablename__ = "visits"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    visit_number = Column(String(30), unique=True, nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("users.id"), index=True)
    visit_type = Column(String(20), nullable=False, default=VisitType.OPD.value)
    status = Column(String(20), nullable=False, default=VisitStatus.IN_QUEUE.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    chief_complaint = Column(Text)
    vitals = Column(JSON)
    diagnosis = Column(JSON)
    notes = Column(Text)
    started_at = Column(DateTime)
    ended_at = Column(DateTime)

    patient = relationship("Patient", lazy="selectin")
    doctor = relationship("User", lazy="selectin")
    prescriptions = relationship(
        "Prescription", back_populates="visit", lazy="selectin",
        cascade="all, delete-orphan", order_by="Prescription.created_at"
    )
    lab_tests = relationship("LabTest", lazy="selectin", order_by="LabTest.created_at")

    @property
    def is_completed(self) -> bool:
        return self.status == VisitStatus.COMPLETED.value


class Prescription(TimestampMixin, Base):
    """Medication prescribed during a visit"""
    __tablename__ = "visit_prescriptions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    visit_id = Column(String(36), ForeignKey("visits.id"), nullable=False, index=True)
    medication = Column(String(200), nullable=False)
    dosage = Column(String(100))
    frequency = Column(String(100))
    duration = Column(String(100))
    quantity = Column(Integer)
    instructions = Column(Text)
    prescribed_by = Column(String(36), ForeignKey("users.id"))

    visit = relationship("Visit", back_populates="prescriptions")
