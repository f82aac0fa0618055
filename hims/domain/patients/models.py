from sqlalchemy import Column, String, Date, Boolean, JSON, Text
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class Gender(str, enum.Enum):
    """Gender enumeration"""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class BloodGroup(str, enum.Enum):
    """Blood group enumeration"""
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class Patient(TimestampMixin, Base):
    """Registered patient"""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    patient_number = Column(String(20), unique=True, nullable=False, index=True)

    # Personal information
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100))
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)

    # Contact information
    phone = Column(String(20))
    email = Column(String(255))
    address = Column(Text)

    # Medical and identification
    blood_group = Column(String(5))
    national_id = Column(String(50), index=True)
    allergies = Column(JSON, default=list)

    # Next of kin
    next_of_kin_name = Column(String(200))
    next_of_kin_phone = Column(String(20))
    next_of_kin_relationship = Column(String(50))

    # Insurance
    insurance_provider = Column(String(200))
    insurance_number = Column(String(100))

    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
