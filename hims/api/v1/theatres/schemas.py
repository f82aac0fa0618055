from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from hims.api.v1.auth.schemas import StaffOption
from hims.api.v1.common import UpdateSchema, to_naive_utc
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.theatres.models import DischargeReason, ProcedureStatus, Theatre, TheatreProcedure, TheatreStatus, TheatreType
from hims.domain.theatres.repository import MAX_PROCEDURE_MINUTES


class TheatreCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    theatre_number: str = Field(..., min_length=1, max_length=20)
    theatre_type: TheatreType = TheatreType.GENERAL
    floor: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    status: TheatreStatus = TheatreStatus.ACTIVE


class TheatreUpdate(UpdateSchema):
    orm_model = Theatre

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    theatre_number: Optional[str] = Field(None, min_length=1, max_length=20)
    theatre_type: Optional[TheatreType] = None
    floor: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    status: Optional[TheatreStatus] = None


class TheatreResponse(BaseModel):
    id: str
    name: str
    theatre_number: str
    theatre_type: str
    floor: Optional[str] = None
    description: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class TheatreSummary(BaseModel):
    id: str
    name: str
    theatre_number: str

    class Config:
        from_attributes = True


class TheatreStatistics(BaseModel):
    total_theatres: int
    theatres_by_status: Dict[str, int]
    procedures_by_status: Dict[str, int]
    procedures_today: int


class ProcedureCreate(BaseModel):
    patient_id: str
    theatre_id: str
    procedure_name: str = Field(..., min_length=1, max_length=200)
    surgeon_id: Optional[str] = None
    anaesthetist_id: Optional[str] = None
    scheduled_date: datetime
    estimated_duration_minutes: int = Field(60, ge=1, le=MAX_PROCEDURE_MINUTES)
    pre_op_notes: Optional[str] = None

    @field_validator('scheduled_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class ProcedureUpdate(UpdateSchema):
    orm_model = TheatreProcedure

    theatre_id: Optional[str] = None
    procedure_name: Optional[str] = Field(None, min_length=1, max_length=200)
    surgeon_id: Optional[str] = None
    anaesthetist_id: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    estimated_duration_minutes: Optional[int] = Field(None, ge=1, le=MAX_PROCEDURE_MINUTES)
    status: Optional[ProcedureStatus] = None
    pre_op_notes: Optional[str] = None

    @field_validator('scheduled_date')
    @classmethod
    def normalise_date(cls, v):
        return to_naive_utc(v)


class MedicationEntry(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    dosage: Optional[str] = None
    route: Optional[str] = None
    frequency: Optional[str] = None
    notes: Optional[str] = None


class MedicationRequest(BaseModel):
    medications: List[MedicationEntry] = Field(..., min_length=1)


class DiagnosisEntry(BaseModel):
    description: str = Field(..., min_length=1)
    code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class DiagnosisRequest(BaseModel):
    diagnoses: List[DiagnosisEntry] = Field(..., min_length=1)


class ProcedureDischarge(BaseModel):
    discharge_reason: DischargeReason
    discharge_summary: Optional[str] = None


class ProcedureResponse(BaseModel):
    id: str
    procedure_number: str
    patient_id: str
    theatre_id: str
    procedure_name: str
    surgeon_id: Optional[str] = None
    anaesthetist_id: Optional[str] = None
    scheduled_date: datetime
    estimated_duration_minutes: int
    status: str
    pre_op_notes: Optional[str] = None
    medications: List[Dict[str, Any]] = []
    diagnoses: List[Dict[str, Any]] = []
    discharge_reason: Optional[str] = None
    discharge_summary: Optional[str] = None
    completed_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None
    theatre: Optional[TheatreSummary] = None
    surgeon: Optional[StaffOption] = None
    anaesthetist: Optional[StaffOption] = None
    created_at: datetime

    class Config:
        from_attributes = True
