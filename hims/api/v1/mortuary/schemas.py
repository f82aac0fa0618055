from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime

from hims.api.v1.common import UpdateSchema
from hims.domain.mortuary.models import Cabinet, CabinetStatus, Corpse, CorpseSex, Release, ReleaseType


# Cabinets

class CabinetCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(1, ge=1)
    temperature: float = 4.0
    status: CabinetStatus = CabinetStatus.ACTIVE
    next_maintenance: Optional[date] = None
    notes: Optional[str] = None


class CabinetUpdate(UpdateSchema):
    orm_model = Cabinet

    number: Optional[str] = Field(None, min_length=1, max_length=20)
    location: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=1)
    temperature: Optional[float] = None
    status: Optional[CabinetStatus] = None
    next_maintenance: Optional[date] = None
    notes: Optional[str] = None


class CabinetResponse(BaseModel):
    id: str
    number: str
    location: Optional[str] = None
    capacity: int
    temperature: float
    status: str
    next_maintenance: Optional[date] = None
    notes: Optional[str] = None
    occupancy: int
    available_space: int
    is_occupied: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CabinetStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    total_capacity: int
    occupied: int
    available: int


# Corpses

def _check_death_date(date_of_death: Optional[date], date_of_birth: Optional[date]) -> None:
    if date_of_death and date_of_death > date.today():
        raise ValueError("Date of death cannot be in the future")
    if date_of_death and date_of_birth and date_of_death < date_of_birth:
        raise ValueError("Date of death cannot be before date of birth")


class CorpseCreate(BaseModel):
    """Registration of a body; the cabinet may be given by id or number"""
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    sex: CorpseSex
    date_of_birth: Optional[date] = None
    date_of_death: date
    cause_of_death: Optional[str] = None
    place_of_death: Optional[str] = Field(None, max_length=200)
    patient_id: Optional[str] = None
    cabinet_id: Optional[str] = None
    cabinet_number: Optional[str] = None
    brought_by_name: Optional[str] = Field(None, max_length=200)
    brought_by_phone: Optional[str] = Field(None, max_length=20)
    brought_by_relationship: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_death_date(self.date_of_death, self.date_of_birth)
        return self


class CorpseUpdate(UpdateSchema):
    orm_model = Corpse

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    sex: Optional[CorpseSex] = None
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None
    cause_of_death: Optional[str] = None
    place_of_death: Optional[str] = Field(None, max_length=200)
    cabinet_id: Optional[str] = None
    brought_by_name: Optional[str] = Field(None, max_length=200)
    brought_by_phone: Optional[str] = Field(None, max_length=20)
    brought_by_relationship: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_death_date(self.date_of_death, self.date_of_birth)
        return self


class CabinetSummary(BaseModel):
    id: str
    number: str
    location: Optional[str] = None

    class Config:
        from_attributes = True


class CorpseResponse(BaseModel):
    id: str
    corpse_number: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    full_name: str
    sex: str
    date_of_birth: Optional[date] = None
    date_of_death: date
    cause_of_death: Optional[str] = None
    place_of_death: Optional[str] = None
    patient_id: Optional[str] = None
    cabinet_id: Optional[str] = None
    cabinet: Optional[CabinetSummary] = None
    brought_by_name: Optional[str] = None
    brought_by_phone: Optional[str] = None
    brought_by_relationship: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CorpseSummary(BaseModel):
    id: str
    corpse_number: str
    full_name: str
    status: str

    class Config:
        from_attributes = True


class CorpseStatistics(BaseModel):
    total: int
    in_storage: int
    pending_release: int
    released: int
    registered_this_month: int


# Releases

class ReleasedTo(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    relationship: str = Field(..., min_length=1, max_length=50)
    id_number: str = Field(..., min_length=1, max_length=50)
    phone: str = Field(..., min_length=1, max_length=20)
    address: Optional[str] = None


class FuneralHome(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None


class ReleaseCreate(BaseModel):
    corpse_id: str
    release_type: ReleaseType
    release_date: date
    released_to: ReleasedTo
    funeral_home: Optional[FuneralHome] = None
    release_notes: Optional[str] = None


class ReleaseUpdate(UpdateSchema):
    orm_model = Release

    release_type: Optional[ReleaseType] = None
    release_date: Optional[date] = None
    released_to: Optional[ReleasedTo] = None
    funeral_home: Optional[FuneralHome] = None
    release_notes: Optional[str] = None


class ReleaseCancel(BaseModel):
    reason: str = Field(..., min_length=1)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Cancellation reason is required")
        return v.strip()


class ReleaseResponse(BaseModel):
    id: str
    corpse_id: str
    corpse: Optional[CorpseSummary] = None
    release_type: str
    release_date: date
    released_to: Dict
    funeral_home: Optional[Dict] = None
    release_notes: Optional[str] = None
    status: str
    requested_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReleasedCabinet(BaseModel):
    cabinet: CabinetResponse
    released: List[CorpseSummary]
