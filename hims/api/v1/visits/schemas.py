from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from hims.api.v1.common import UpdateSchema
from hims.api.v1.auth.schemas import StaffOption
from hims.api.v1.diagnostics.schemas import LabTestResponse
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.visits.models import PaymentStatus, Visit, VisitType


class VisitCreate(BaseModel):
    """Start a visit; the patient joins the doctor's queue"""
    patient_id: str
    doctor_id: Optional[str] = None
    visit_type: VisitType = VisitType.OPD
    chief_complaint: Optional[str] = None
    notes: Optional[str] = None


class VisitUpdate(UpdateSchema):
    orm_model = Visit

    doctor_id: Optional[str] = None
    visit_type: Optional[VisitType] = None
    chief_complaint: Optional[str] = None
    notes: Optional[str] = None


class VitalsUpdate(BaseModel):
    blood_pressure: Optional[str] = Field(None, max_length=20)
    heart_rate: Optional[int] = Field(None, ge=0, le=300)
    temperature: Optional[float] = Field(None, ge=25, le=45)
    respiratory_rate: Optional[int] = Field(None, ge=0, le=100)
    oxygen_saturation: Optional[float] = Field(None, ge=0, le=100)
    weight: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


class DiagnosisUpdate(BaseModel):
    primary: str = Field(..., min_length=1)
    secondary: List[str] = []
    icd_code: Optional[str] = None
    notes: Optional[str] = None


class LabOrderItem(BaseModel):
    test_name: str = Field(..., min_length=1, max_length=200)
    service_id: Optional[str] = None


class LabOrderRequest(BaseModel):
    tests: List[LabOrderItem] = Field(..., min_length=1)


class PrescriptionItem(BaseModel):
    medication: str = Field(..., min_length=1, max_length=200)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    instructions: Optional[str] = None


class PrescriptionRequest(BaseModel):
    items: List[PrescriptionItem] = Field(..., min_length=1)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class PrescriptionResponse(PrescriptionItem):
    id: str
    visit_id: str
    prescribed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VisitResponse(BaseModel):
    id: str
    visit_number: str
    patient_id: str
    doctor_id: Optional[str] = None
    visit_type: str
    status: str
    payment_status: str
    chief_complaint: Optional[str] = None
    vitals: Optional[Dict[str, Any]] = None
    diagnosis: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None
    doctor: Optional[StaffOption] = None
    prescriptions: List[PrescriptionResponse] = []
    lab_tests: List[LabTestResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
