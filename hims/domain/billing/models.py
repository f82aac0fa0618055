from sqlalchemy import Column, String, Float, Date, DateTime, ForeignKey, Text, Integer, and_
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from datetime import date, datetime
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceItemType(str, enum.Enum):
    SERVICE = "service"
    MEDICATION = "medication"
    OTHER = "other"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    INSURANCE = "insurance"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"


# Stored statuses of invoices that still have a balance; "overdue" is never stored
OPEN_INVOICE_STATUSES = [
    InvoiceStatus.PENDING.value,
    InvoiceStatus.PARTIAL.value,
]


class Invoice(TimestampMixin, Base):
    """Patient invoice; totals are kept in step with items and payments"""
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    invoice_number = Column(String(30), unique=True, nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    visit_id = Column(String(36), ForeignKey("visits.id"), index=True)

    subtotal = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    amount_paid = Column(Float, nullable=False, default=0.0)
    balance_due = Column(Float, nullable=False, default=0.0)

    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True)
    due_date = Column(Date)
    notes = Column(Text)
    created_by = Column(String(36), ForeignKey("users.id"))
    cancelled_at = Column(DateTime)

    patient = relationship("Patient", lazy="selectin")
    items = relationship(
        "InvoiceItem", back_populates="invoice", lazy="selectin", cascade="all, delete-orphan"
    )
    payments = relationship(
        "Payment", back_populates="invoice", lazy="selectin", order_by="Payment.paid_at"
    )

    @hybrid_property
    def is_overdue(self) -> bool:
        return (
            self.status in OPEN_INVOICE_STATUSES
            and self.due_date is not None
            and self.due_date < date.today()
            and (self.balance_due or 0) > 0
        )

    @is_overdue.expression
    def is_overdue(cls):
        return and_(
            cls.status.in_(OPEN_INVOICE_STATUSES),
            cls.due_date.is_not(None),
            cls.due_date < date.today(),
            cls.balance_due > 0,
        )

    @property
    def current_status(self) -> str:
        """Unpaid invoices past their due date read as overdue"""
        return InvoiceStatus.OVERDUE.value if self.is_overdue else self.status

    def apply_payment(self, amount: float) -> None:
        self.amount_paid = round((self.amount_paid or 0.0) + amount, 2)
        self.balance_due = round(self.total_amount - self.amount_paid, 2)
        if self.balance_due <= 0:
            self.balance_due = 0.0
            self.status = InvoiceStatus.PAID.value
        else:
            self.status = InvoiceStatus.PARTIAL.value


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    item_type = Column(String(20), nullable=False, default=InvoiceItemType.SERVICE.value)
    reference_id = Column(String(36))
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    reference = Column(String(100))
    received_by = Column(String(36), ForeignKey("users.id"))
    paid_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    invoice = relationship("Invoice", back_populates="payments")
    patient = relationship("Patient", lazy="selectin")
