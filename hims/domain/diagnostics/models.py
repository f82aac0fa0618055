from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class LabTestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RadiologyStatus(str, enum.Enum):
    REQUESTED = "requested"
    COMPLETED = "completed"


class LabTest(TimestampMixin, Base):
    """Laboratory test ordered for a patient, usually from a visit"""
    __tablename__ = "lab_tests"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    visit_id = Column(String(36), ForeignKey("visits.id"), index=True)
    service_id = Column(String(36), ForeignKey("services.id"))
    test_name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=LabTestStatus.PENDING.value)
    result = Column(Text)
    result_notes = Column(Text)
    ordered_by = Column(String(36), ForeignKey("users.id"))
    completed_at = Column(DateTime)

    patient = relationship("Patient", lazy="selectin")


class RadiologyRequest(TimestampMixin, Base):
    """Imaging request and its report"""
    __tablename__ = "radiology_requests"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    visit_id = Column(String(36), ForeignKey("visits.id"), index=True)
    service_id = Column(String(36), ForeignKey("services.id"))
    test_name = Column(String(200), nullable=False)
    clinical_notes = Column(Text)
    status = Column(String(20), nullable=False, default=RadiologyStatus.REQUESTED.value)
    findings = Column(Text)
    impression = Column(Text)
    requested_by = Column(String(36), ForeignKey("users.id"))
    completed_at = Column(DateTime)

    patient = relationship("Patient", lazy="selectin")
