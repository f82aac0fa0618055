from sqlalchemy import Column, String, Integer, Float, Date, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class CabinetStatus(str, enum.Enum):
    ACTIVE = "Active"
    MAINTENANCE = "Maintenance"
    OUT_OF_SERVICE = "Out of Service"


class CorpseSex(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"


class CorpseStatus(str, enum.Enum):
    IN_STORAGE = "In Storage"
    PENDING_RELEASE = "Pending Release"
    RELEASED = "Released"


class ReleaseType(str, enum.Enum):
    BURIAL = "Burial"
    CREMATION = "Cremation"
    TRANSFER = "Transfer"
    REPATRIATION = "Repatriation"


class ReleaseStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    RELEASED = "Released"
    CANCELLED = "Cancelled"


OPEN_RELEASE_STATUSES = [ReleaseStatus.PENDING.value, ReleaseStatus.APPROVED.value]


class Cabinet(TimestampMixin, Base):
    """Cold-room cabinet; occupancy is derived from the corpses assigned to it"""
    __tablename__ = "cabinets"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    number = Column(String(20), unique=True, nullable=False, index=True)
    location = Column(String(100))
    capacity = Column(Integer, nullable=False, default=1)
    temperature = Column(Float, nullable=False, default=4.0)
    status = Column(String(20), nullable=False, default=CabinetStatus.ACTIVE.value, index=True)
    next_maintenance = Column(Date)
    notes = Column(Text)

    corpses = relationship("Corpse", back_populates="cabinet", lazy="selectin")

    @property
    def occupants(self):
        return [c for c in self.corpses if c.status != CorpseStatus.RELEASED.value]

    @property
    def occupancy(self) -> int:
        return len(self.occupants)

    @property
    def available_space(self) -> int:
        return max(self.capacity - self.occupancy, 0)

    @property
    def is_occupied(self) -> bool:
        return self.occupancy >= self.capacity

    @property
    def is_active(self) -> bool:
        return self.status == CabinetStatus.ACTIVE.value


class Corpse(TimestampMixin, Base):
    __tablename__ = "corpses"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    corpse_number = Column(String(20), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100))
    last_name = Column(String(100), nullable=False)
    sex = Column(String(10), nullable=False)
    date_of_birth = Column(Date)
    date_of_death = Column(Date, nullable=False)
    cause_of_death = Column(Text)
    place_of_death = Column(String(200))
    patient_id = Column(String(36), ForeignKey("patients.id"), index=True)
    cabinet_id = Column(String(36), ForeignKey("cabinets.id"), index=True)

    brought_by_name = Column(String(200))
    brought_by_phone = Column(String(20))
    brought_by_relationship = Column(String(50))

    status = Column(String(20), nullable=False, default=CorpseStatus.IN_STORAGE.value, index=True)
    notes = Column(Text)
    registered_by = Column(String(36), ForeignKey("users.id"))

    cabinet = relationship("Cabinet", back_populates="corpses", lazy="selectin")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.middle_name, self.last_name) if part)

    @property
    def cabinet_number(self):
        return self.cabinet.number if self.cabinet else None


class Release(TimestampMixin, Base):
    """Release of a body to next of kin or a funeral home"""
    __tablename__ = "corpse_releases"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    corpse_id = Column(String(36), ForeignKey("corpses.id"), nullable=False, index=True)
    release_type = Column(String(20), nullable=False)
    release_date = Column(Date, nullable=False)
    released_to = Column(JSON, nullable=False)
    funeral_home = Column(JSON)
    release_notes = Column(Text)
    status = Column(String(20), nullable=False, default=ReleaseStatus.PENDING.value, index=True)

    requested_by = Column(String(36), ForeignKey("users.id"))
    approved_by = Column(String(36), ForeignKey("users.id"))
    approved_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)

    corpse = relationship("Corpse", lazy="selectin")
