from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from hims.api.v1.auth.schemas import StaffOption
from hims.api.v1.common import to_naive_utc
from hims.api.v1.patients.schemas import PatientSummary
from hims.api.v1.wards.schemas import WardSummary
from hims.domain.ipd.models import AdmissionType, NoteCategory
from hims.domain.theatres.models import DischargeReason


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    relationship: Optional[str] = Field(None, max_length=50)
    phone: str = Field(..., min_length=1, max_length=20)


class AdmissionCreate(BaseModel):
    patient_id: str
    ward_id: str
    bed_id: str
    admission_date: Optional[datetime] = None
    admission_reason: str = Field(..., min_length=1)
    admission_type: AdmissionType = AdmissionType.ELECTIVE
    admitting_doctor_id: Optional[str] = None
    attending_physician_id: Optional[str] = None
    assigned_nurse_id: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator('admission_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class VitalsCreate(BaseModel):
    blood_pressure: Optional[str] = Field(None, pattern=r"^\d{2,3}/\d{2,3}$")
    heart_rate: Optional[int] = Field(None, ge=20, le=300)
    temperature: Optional[float] = Field(None, ge=25, le=45)
    respiratory_rate: Optional[int] = Field(None, ge=4, le=80)
    oxygen_saturation: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class NursingNoteCreate(BaseModel):
    note: str = Field(..., min_length=1)
    category: NoteCategory = NoteCategory.GENERAL


class TransferRequest(BaseModel):
    ward_id: str
    bed_id: str
    reason: Optional[str] = None


class AdmissionDischarge(BaseModel):
    discharge_reason: DischargeReason = DischargeReason.COMPLETED
    discharge_summary: Optional[str] = None
    discharge_date: Optional[datetime] = None

    @field_validator('discharge_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class VitalsResponse(BaseModel):
    id: str
    blood_pressure: Optional[str] = None
    heart_rate: Optional[int] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[float] = None
    notes: Optional[str] = None
    recorded_by: Optional[str] = None
    recorded_at: datetime

    class Config:
        from_attributes = True


class NursingNoteResponse(BaseModel):
    id: str
    note: str
    category: str
    recorded_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BedSummary(BaseModel):
    id: str
    bed_number: str
    status: str

    class Config:
        from_attributes = True


class AdmissionResponse(BaseModel):
    id: str
    admission_number: str
    patient_id: str
    ward_id: str
    bed_id: str
    admission_date: datetime
    admission_reason: str
    admission_type: str
    admitting_doctor_id: Optional[str] = None
    attending_physician_id: Optional[str] = None
    assigned_nurse_id: Optional[str] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    status: str
    diagnoses: List[Dict[str, Any]] = []
    medications: List[Dict[str, Any]] = []
    transfers: List[Dict[str, Any]] = []
    discharge_date: Optional[datetime] = None
    discharge_reason: Optional[str] = None
    discharge_summary: Optional[str] = None
    length_of_stay_days: int
    patient: Optional[PatientSummary] = None
    ward: Optional[WardSummary] = None
    bed: Optional[BedSummary] = None
    admitting_doctor: Optional[StaffOption] = None
    attending_physician: Optional[StaffOption] = None
    assigned_nurse: Optional[StaffOption] = None
    vitals: List[VitalsResponse] = []
    nursing_notes: List[NursingNoteResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class StatusCount(BaseModel):
    status: str
    count: int


class AdmissionStatistics(BaseModel):
    current_admissions: int
    status_counts: List[StatusCount]
    admissions_this_month: int
    average_length_of_stay_days: float
