from sqlalchemy import Column, String, Integer, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class WardType(str, enum.Enum):
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
    PRIVATE = "private"


class WardStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class BedType(str, enum.Enum):
    STANDARD = "standard"
    ICU = "icu"
    ISOLATION = "isolation"
    PRIVATE = "private"
    SEMI_PRIVATE = "semi-private"
    PEDIATRIC = "pediatric"
    MATERNITY = "maternity"


class BedStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"
    CLEANING = "cleaning"


class Ward(TimestampMixin, Base):
    __tablename__ = "wards"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(100), nullable=False)
    ward_number = Column(String(20), unique=True, nullable=False, index=True)
    ward_type = Column(String(20), nullable=False, default=WardType.GENERAL.value)
    floor = Column(String(20))
    capacity = Column(Integer, nullable=False, default=1)
    description = Column(Text)
    facilities = Column(JSON, default=list)
    status = Column(String(20), nullable=False, default=WardStatus.ACTIVE.value, index=True)

    beds = relationship("Bed", back_populates="ward", lazy="selectin", order_by="Bed.bed_number")

    @property
    def total_beds(self) -> int:
        return len(self.beds)

    @property
    def occupied_beds(self) -> int:
        return sum(1 for bed in self.beds if bed.status == BedStatus.OCCUPIED.value)

    @property
    def available_beds(self) -> int:
        return sum(1 for bed in self.beds if bed.status == BedStatus.AVAILABLE.value)

    @property
    def is_active(self) -> bool:
        return self.status == WardStatus.ACTIVE.value


class Bed(TimestampMixin, Base):
    """Ward bed; occupancy fields are maintained by admissions"""
    __tablename__ = "beds"
    __table_args__ = (UniqueConstraint("ward_id", "bed_number", name="uq_beds_ward_number"),)

    id = Column(String(36), primary_key=True, default=gen_uuid)
    bed_number = Column(String(20), nullable=False)
    ward_id = Column(String(36), ForeignKey("wards.id"), nullable=False, index=True)
    bed_type = Column(String(20), nullable=False, default=BedType.STANDARD.value)
    features = Column(JSON, default=list)
    status = Column(String(20), nullable=False, default=BedStatus.AVAILABLE.value, index=True)
    notes = Column(Text)
    current_patient_id = Column(String(36), ForeignKey("patients.id"))
    current_admission_id = Column(String(36))

    ward = relationship("Ward", back_populates="beds", lazy="selectin")
    current_patient = relationship("Patient", lazy="selectin")

    @property
    def is_occupied(self) -> bool:
        return self.status == BedStatus.OCCUPIED.value

    def occupy(self, patient_id: str, admission_id: str) -> None:
        self.status = BedStatus.OCCUPIED.value
        self.current_patient_id = patient_id
        self.current_admission_id = admission_id

    def vacate(self) -> None:
        """Freed beds go to cleaning before they can be reused"""
        self.status = BedStatus.CLEANING.value
        self.current_patient_id = None
        self.current_admission_id = None
