from sqlalchemy import Column, String, Integer, Float, Date, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid

MAIN_STORE = "MAIN STORE"


class RequisitionStatus(str, enum.Enum):
    SENT = "Sent"
    PROCESSING = "Processing"
    CLOSED = "Closed"


class RequisitionItemStatus(str, enum.Enum):
    PENDING = "Pending"
    ISSUED = "Issued"
    REJECTED = "Rejected"


class Requisition(TimestampMixin, Base):
    """Internal stock request from a department to the main store"""
    __tablename__ = "requisitions"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    from_department = Column(String(100), nullable=False, index=True)
    requisition_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=RequisitionStatus.SENT.value, index=True)
    notes = Column(Text)
    requested_by = Column(String(36), ForeignKey("users.id"))

    items = relationship(
        "RequisitionItem", back_populates="requisition", lazy="selectin",
        cascade="all, delete-orphan", order_by="RequisitionItem.medicine",
    )

    @property
    def is_closed(self) -> bool:
        return self.status == RequisitionStatus.CLOSED.value


class RequisitionItem(Base):
    __tablename__ = "requisition_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    requisition_id = Column(String(36), ForeignKey("requisitions.id"), nullable=False, index=True)
    medicine = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=RequisitionItemStatus.PENDING.value)
    issued_qty = Column(Integer, nullable=False, default=0)
    remarks = Column(String(255))

    requisition = relationship("Requisition", back_populates="items")


class SupplierInvoice(TimestampMixin, Base):
    """Delivery note / invoice that stock is received against"""
    __tablename__ = "supplier_invoices"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    supplier = Column(String(200), nullable=False)
    notes = Column(Text)
    received_by = Column(String(36), ForeignKey("users.id"))

    items = relationship(
        "ReceivedItem", back_populates="invoice", lazy="selectin", order_by="ReceivedItem.created_at"
    )

    @property
    def total_value(self) -> float:
        return round(sum(item.quantity * item.unit_price for item in self.items), 2)


class ReceivedItem(TimestampMixin, Base):
    __tablename__ = "received_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    supplier_invoice_id = Column(String(36), ForeignKey("supplier_invoices.id"), nullable=False, index=True)
    stock_item_id = Column(String(36), nullable=False)
    medicine = Column(String(200), nullable=False)
    item_type = Column(String(20), nullable=False)
    strength = Column(String(50))
    expiry_date = Column(Date)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)
    receive_to = Column(String(50), nullable=False)

    invoice = relationship("SupplierInvoice", back_populates="items")


class IncomingStatus(str, enum.Enum):
    PENDING = "pending"
    RECEIVED = "received"
    ALL = "all"


class IncomingItem(TimestampMixin, Base):
    """Stock issued by the store and on its way to the requesting department"""
    __tablename__ = "incoming_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    requisition_id = Column(String(36), ForeignKey("requisitions.id"), nullable=False, index=True)
    requisition_item_id = Column(String(36), ForeignKey("requisition_items.id"), nullable=False)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    source = Column(String(100), nullable=False)
    department = Column(String(100), nullable=False, index=True)
    received = Column(Boolean, nullable=False, default=False, index=True)
    received_at = Column(DateTime)
    received_by = Column(String(36), ForeignKey("users.id"))
