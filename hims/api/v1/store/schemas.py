from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime

from hims.api.v1.common import UpdateSchema
from hims.domain.pharmacy.models import StockItemType
from hims.domain.store.models import MAIN_STORE, Requisition, RequisitionItemStatus, RequisitionStatus


class RequisitionItemCreate(BaseModel):
    medicine: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(..., ge=1)


class RequisitionCreate(BaseModel):
    from_department: str = Field(..., min_length=1, max_length=100)
    requisition_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    items: List[RequisitionItemCreate] = Field(..., min_length=1)


class RequisitionItemDecision(BaseModel):
    item_id: str
    status: RequisitionItemStatus
    issued_qty: Optional[int] = Field(None, ge=0)
    remarks: Optional[str] = Field(None, max_length=255)


class RequisitionUpdate(UpdateSchema):
    orm_model = Requisition

    status: Optional[RequisitionStatus] = None
    items: Optional[List[RequisitionItemDecision]] = None
    notes: Optional[str] = None


class RequisitionItemResponse(BaseModel):
    id: str
    medicine: str
    quantity: int
    status: str
    issued_qty: int
    remarks: Optional[str] = None

    class Config:
        from_attributes = True


class RequisitionResponse(BaseModel):
    id: str
    from_department: str
    requisition_date: date
    status: str
    notes: Optional[str] = None
    requested_by: Optional[str] = None
    items: List[RequisitionItemResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SupplierInvoiceCreate(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=50)
    invoice_date: date = Field(default_factory=date.today)
    supplier: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = None


class ItemReceiveCreate(BaseModel):
    invoice_id: str
    medicine: str = Field(..., min_length=1, max_length=200)
    item_type: StockItemType = StockItemType.MEDICINE
    strength: Optional[str] = Field(None, max_length=50)
    expiry_date: Optional[date] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(0.0, ge=0)
    receive_to: str = Field(MAIN_STORE, min_length=1, max_length=50)


class ReceivedItemResponse(BaseModel):
    id: str
    supplier_invoice_id: str
    stock_item_id: str
    medicine: str
    item_type: str
    strength: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int
    unit_price: float
    receive_to: str
    created_at: datetime

    class Config:
        from_attributes = True


class SupplierInvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    invoice_date: date
    supplier: str
    notes: Optional[str] = None
    received_by: Optional[str] = None
    total_value: float
    items: List[ReceivedItemResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class IncomingItemUpdate(BaseModel):
    received: bool


class IncomingItemResponse(BaseModel):
    id: str
    requisition_id: str
    name: str
    quantity: int
    source: str
    department: str
    received: bool
    received_at: Optional[datetime] = None
    received_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
