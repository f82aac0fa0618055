from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class AdmissionType(str, enum.Enum):
    ELECTIVE = "elective"
    EMERGENCY = "emergency"
    TRANSFER = "transfer"


class AdmissionStatus(str, enum.Enum):
    ADMITTED = "admitted"
    DISCHARGED = "discharged"
    TRANSFERRED = "transferred"


class NoteCategory(str, enum.Enum):
    GENERAL = "general"
    MEDICATION = "medication"
    VITAL_SIGNS = "vital_signs"
    TREATMENT = "treatment"
    OBSERVATION = "observation"
    INCIDENT = "incident"


class Admission(TimestampMixin, Base):
    """In-patient stay; holds its bed until discharge"""
    __tablename__ = "admissions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_number = Column(String(20), unique=True, nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    ward_id = Column(String(36), ForeignKey("wards.id"), nullable=False, index=True)
    bed_id = Column(String(36), ForeignKey("beds.id"), nullable=False)

    admission_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    admission_reason = Column(Text, nullable=False)
    admission_type = Column(String(20), nullable=False, default=AdmissionType.ELECTIVE.value)
    admitting_doctor_id = Column(String(36), ForeignKey("users.id"))
    attending_physician_id = Column(String(36), ForeignKey("users.id"))
    assigned_nurse_id = Column(String(36), ForeignKey("users.id"))
    emergency_contact = Column(JSON)

    status = Column(String(20), nullable=False, default=AdmissionStatus.ADMITTED.value, index=True)
    diagnoses = Column(JSON, default=list)
    medications = Column(JSON, default=list)
    transfers = Column(JSON, default=list)

    discharge_date = Column(DateTime)
    discharge_reason = Column(String(30))
    discharge_summary = Column(Text)

    patient = relationship("Patient", lazy="selectin")
    ward = relationship("Ward", lazy="selectin")
    bed = relationship("Bed", lazy="selectin")
    admitting_doctor = relationship("User", foreign_keys=[admitting_doctor_id], lazy="selectin")
    attending_physician = relationship("User", foreign_keys=[attending_physician_id], lazy="selectin")
    assigned_nurse = relationship("User", foreign_keys=[assigned_nurse_id], lazy="selectin")
    vitals = relationship(
        "AdmissionVitals", back_populates="admission", lazy="selectin",
        cascade="all, delete-orphan", order_by="AdmissionVitals.recorded_at.desc()",
    )
    nursing_notes = relationship(
        "NursingNote", back_populates="admission", lazy="selectin",
        cascade="all, delete-orphan", order_by="NursingNote.created_at.desc()",
    )

    @property
    def is_active(self) -> bool:
        return self.status == AdmissionStatus.ADMITTED.value

    @property
    def length_of_stay_days(self) -> int:
        end = self.discharge_date or datetime.utcnow()
        return max((end - self.admission_date).days, 0)


class AdmissionVitals(Base):
    __tablename__ = "admission_vitals"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id"), nullable=False, index=True)
    blood_pressure = Column(String(20))
    heart_rate = Column(Integer)
    temperature = Column(Float)
    respiratory_rate = Column(Integer)
    oxygen_saturation = Column(Float)
    notes = Column(Text)
    recorded_by = Column(String(36), ForeignKey("users.id"))
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    admission = relationship("Admission", back_populates="vitals")


class NursingNote(Base):
    __tablename__ = "nursing_notes"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    admission_id = Column(String(36), ForeignKey("admissions.id"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, default=NoteCategory.GENERAL.value)
    recorded_by = Column(String(36), ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    admission = relationship("Admission", back_populates="nursing_notes")
