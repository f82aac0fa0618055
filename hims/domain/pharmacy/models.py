from sqlalchemy import Column, String, Integer, Float, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class StockItemType(str, enum.Enum):
    MEDICINE = "medicine"
    CONSUMABLE = "consumable"
    EQUIPMENT = "equipment"


class MovementType(str, enum.Enum):
    RECEIVE = "receive"
    DISPENSE = "dispense"
    ISSUE = "issue"
    ADJUST = "adjust"


class DispensingType(str, enum.Enum):
    PATIENT = "patient"
    DIRECT = "direct"


class StockItem(TimestampMixin, Base):
    """Store or pharmacy item with its running balance"""
    __tablename__ = "stock_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(200), unique=True, nullable=False, index=True)
    item_type = Column(String(20), nullable=False, default=StockItemType.MEDICINE.value)
    form = Column(String(50))
    strength = Column(String(50))
    unit = Column(String(30))
    quantity = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float, nullable=False, default=0.0)
    expiry_date = Column(Date)
    location = Column(String(50), nullable=False, default="MAIN STORE")

    @property
    def is_low(self) -> bool:
        return (self.quantity or 0) < (self.reorder_level or 0)


class StockMovement(Base):
    """Stock ledger row; balance_after is the item quantity after the change"""
    __tablename__ = "stock_movements"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    # Not a foreign key: ledger rows outlive deleted items
    item_id = Column(String(36), nullable=False, index=True)
    item_name = Column(String(200), nullable=False)
    movement_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference = Column(String(255))
    performed_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class Dispensing(TimestampMixin, Base):
    """Medicines handed to a patient or a walk-in customer"""
    __tablename__ = "dispensings"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    dispensing_type = Column(String(10), nullable=False, default=DispensingType.PATIENT.value)
    patient_id = Column(String(36), ForeignKey("patients.id"), index=True)
    customer_name = Column(String(200))
    visit_id = Column(String(36), ForeignKey("visits.id"))
    prescription_reference = Column(String(100))
    total_amount = Column(Float, nullable=False, default=0.0)
    notes = Column(Text)
    dispensed_by = Column(String(36), ForeignKey("users.id"))
    dispensed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    patient = relationship("Patient", lazy="selectin")
    dispenser = relationship("User", lazy="selectin")
    items = relationship(
        "DispensingItem", back_populates="dispensing", lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def recipient_name(self) -> str:
        if self.patient is not None:
            return self.patient.full_name
        return self.customer_name or ""


class DispensingItem(Base):
    __tablename__ = "dispensing_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    dispensing_id = Column(String(36), ForeignKey("dispensings.id"), nullable=False, index=True)
    stock_item_id = Column(String(36), nullable=False)
    item_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    instructions = Column(Text)

    dispensing = relationship("Dispensing", back_populates="items")
