from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from hims.api.v1.common import UpdateSchema
from hims.api.v1.patients.schemas import PatientSummary
from hims.domain.wards.models import Bed, BedStatus, BedType, Ward, WardStatus, WardType


class WardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    ward_number: str = Field(..., min_length=1, max_length=20)
    ward_type: WardType = WardType.GENERAL
    floor: Optional[str] = Field(None, max_length=20)
    capacity: int = Field(..., ge=1)
    description: Optional[str] = None
    facilities: List[str] = []
    status: WardStatus = WardStatus.ACTIVE


class WardUpdate(UpdateSchema):
    orm_model = Ward

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    ward_number: Optional[str] = Field(None, min_length=1, max_length=20)
    ward_type: Optional[WardType] = None
    floor: Optional[str] = Field(None, max_length=20)
    capacity: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None
    facilities: Optional[List[str]] = None
    status: Optional[WardStatus] = None


class WardResponse(BaseModel):
    id: str
    name: str
    ward_number: str
    ward_type: str
    floor: Optional[str] = None
    capacity: int
    description: Optional[str] = None
    facilities: List[str] = []
    status: str
    total_beds: int
    occupied_beds: int
    available_beds: int
    created_at: datetime

    class Config:
        from_attributes = True


class WardSummary(BaseModel):
    id: str
    name: str
    ward_number: str

    class Config:
        from_attributes = True


class WardOccupancy(BaseModel):
    ward_id: str
    name: str
    capacity: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float


class WardStatistics(BaseModel):
    total_wards: int
    active_wards: int
    by_type: Dict[str, int]
    total_capacity: int
    wards: List[WardOccupancy]


class BedCreate(BaseModel):
    ward_id: str
    bed_number: str = Field(..., min_length=1, max_length=20)
    bed_type: BedType = BedType.STANDARD
    features: List[str] = []
    notes: Optional[str] = None


class BedUpdate(UpdateSchema):
    """Manual bed changes; occupancy is set by admissions only"""
    orm_model = Bed

    bed_number: Optional[str] = Field(None, min_length=1, max_length=20)
    bed_type: Optional[BedType] = None
    features: Optional[List[str]] = None
    status: Optional[BedStatus] = None
    notes: Optional[str] = None


class BedResponse(BaseModel):
    id: str
    bed_number: str
    ward_id: str
    ward: Optional[WardSummary] = None
    bed_type: str
    features: List[str] = []
    status: str
    notes: Optional[str] = None
    current_patient_id: Optional[str] = None
    current_admission_id: Optional[str] = None
    current_patient: Optional[PatientSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BedStatistics(BaseModel):
    total_beds: int
    by_status: Dict[str, int]
    occupancy_rate: float
