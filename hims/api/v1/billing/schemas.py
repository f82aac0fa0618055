from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime

from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.billing.models import InvoiceItemType, PaymentMethod


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    item_type: InvoiceItemType = InvoiceItemType.SERVICE
    reference_id: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit_price: float = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    patient_id: str
    visit_id: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    discount: float = Field(0.0, ge=0)
    tax: float = Field(0.0, ge=0)
    due_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_discount(self):
        subtotal = sum(item.quantity * item.unit_price for item in self.items)
        if self.discount > subtotal:
            raise ValueError("Discount cannot exceed the subtotal")
        return self


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = Field(None, max_length=100)


class InvoiceItemResponse(BaseModel):
    id: str
    description: str
    item_type: str
    reference_id: Optional[str] = None
    quantity: int
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: str
    invoice_id: str
    patient_id: str
    amount: float
    method: str
    reference: Optional[str] = None
    received_by: Optional[str] = None
    paid_at: datetime
    patient: Optional[PatientSummary] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    patient_id: str
    visit_id: Optional[str] = None
    subtotal: float
    discount: float
    tax: float
    total_amount: float
    amount_paid: float
    balance_due: float
    status: str = Field(validation_alias="current_status")
    due_date: Optional[date] = None
    notes: Optional[str] = None
    patient: Optional[PatientSummary] = None
    items: List[InvoiceItemResponse] = []
    payments: List[PaymentResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceTotals(BaseModel):
    total_invoices: int
    total_amount: float
    total_paid: float
    total_due: float


class MethodTotal(BaseModel):
    method: str
    count: int
    total: float


class BillingStatistics(BaseModel):
    invoices: InvoiceTotals
    overdue_count: int
    by_method: List[MethodTotal]
    payments: List[PaymentResponse]


class BillableItem(BaseModel):
    id: str
    name: str
    price: float
    item_type: str
    available_quantity: Optional[int] = None


class CancelInvoiceRequest(BaseModel):
    reason: Optional[str] = None
