from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from hims.api.v1.common import UpdateSchema
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.diagnostics.models import LabTest, LabTestStatus


class LabTestCreate(BaseModel):
    patient_id: str
    visit_id: Optional[str] = None
    service_id: Optional[str] = None
    test_name: str = Field(..., min_length=1, max_length=200)


class LabTestUpdate(UpdateSchema):
    """Progress or result entry for a lab test"""
    orm_model = LabTest

    status: Optional[LabTestStatus] = None
    result: Optional[str] = None
    result_notes: Optional[str] = None


class LabTestResponse(BaseModel):
    id: str
    patient_id: str
    visit_id: Optional[str] = None
    service_id: Optional[str] = None
    test_name: str
    status: str
    result: Optional[str] = None
    result_notes: Optional[str] = None
    ordered_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RadiologyCreate(BaseModel):
    patient_id: str
    visit_id: Optional[str] = None
    service_id: Optional[str] = None
    test_name: str = Field(..., min_length=1, max_length=200)
    clinical_notes: Optional[str] = None


class RadiologyResult(BaseModel):
    findings: str = Field(..., min_length=1)
    impression: Optional[str] = None


class RadiologyResponse(BaseModel):
    id: str
    patient_id: str
    visit_id: Optional[str] = None
    service_id: Optional[str] = None
    test_name: str
    clinical_notes: Optional[str] = None
    status: str
    findings: Optional[str] = None
    impression: Optional[str] = None
    requested_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True
