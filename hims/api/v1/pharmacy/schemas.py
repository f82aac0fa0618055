from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime

from hims.api.v1.common import UpdateSchema
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.pharmacy.models import StockItem, StockItemType


class StockItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    item_type: StockItemType = StockItemType.MEDICINE
    form: Optional[str] = Field(None, max_length=50)
    strength: Optional[str] = Field(None, max_length=50)
    unit: Optional[str] = Field(None, max_length=30)
    reorder_level: int = Field(0, ge=0)
    unit_cost: float = Field(0.0, ge=0)
    selling_price: float = Field(0.0, ge=0)
    expiry_date: Optional[date] = None
    location: str = Field("MAIN STORE", min_length=1, max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class StockItemCreate(StockItemBase):
    quantity: int = Field(0, ge=0)


class StockItemUpdate(UpdateSchema):
    orm_model = StockItem

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    item_type: Optional[StockItemType] = None
    form: Optional[str] = Field(None, max_length=50)
    strength: Optional[str] = Field(None, max_length=50)
    unit: Optional[str] = Field(None, max_length=30)
    quantity: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    unit_cost: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    expiry_date: Optional[date] = None
    location: Optional[str] = Field(None, min_length=1, max_length=50)
    reason: Optional[str] = Field(None, max_length=200)


class StockItemResponse(BaseModel):
    id: str
    name: str
    item_type: str
    form: Optional[str] = None
    strength: Optional[str] = None
    unit: Optional[str] = None
    quantity: int
    reorder_level: int
    unit_cost: float
    selling_price: float
    expiry_date: Optional[date] = None
    location: str
    is_low: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockMovementResponse(BaseModel):
    id: str
    item_id: str
    item_name: str
    movement_type: str
    quantity: int
    balance_after: int
    reference: Optional[str] = None
    performed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StockTakeEntry(BaseModel):
    item_id: str
    actual: int = Field(..., ge=0)


class StockTakeRequest(BaseModel):
    counts: List[StockTakeEntry] = Field(..., min_length=1)
    reference: Optional[str] = Field(None, max_length=200)


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportResult(BaseModel):
    created: int = 0
    updated: int = 0
    errors: List[ImportRowError] = []


class DispensingItemCreate(BaseModel):
    stock_item_id: str
    quantity: int = Field(..., ge=1)
    unit_price: Optional[float] = Field(None, ge=0)
    instructions: Optional[str] = None


class DispensingCreate(BaseModel):
    """Dispensing against a registered patient"""
    patient_id: str
    visit_id: Optional[str] = None
    prescription_reference: Optional[str] = Field(None, max_length=100)
    items: List[DispensingItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None


class DirectDispensingCreate(BaseModel):
    """Over-the-counter sale to a walk-in customer"""
    customer_name: str = Field(..., min_length=1, max_length=200)
    patient_id: Optional[str] = None
    prescription_reference: Optional[str] = Field(None, max_length=100)
    items: List[DispensingItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None


class DispensingItemResponse(BaseModel):
    id: str
    stock_item_id: str
    item_name: str
    quantity: int
    unit_price: float
    total: float
    instructions: Optional[str] = None

    class Config:
        from_attributes = True


class DispensingResponse(BaseModel):
    id: str
    dispensing_type: str
    patient_id: Optional[str] = None
    customer_name: Optional[str] = None
    recipient_name: str
    visit_id: Optional[str] = None
    prescription_reference: Optional[str] = None
    total_amount: float
    notes: Optional[str] = None
    dispensed_by: Optional[str] = None
    dispensed_at: datetime
    patient: Optional[PatientSummary] = None
    items: List[DispensingItemResponse] = []

    class Config:
        from_attributes = True
