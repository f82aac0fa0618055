from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict
from datetime import date, datetime

from hims.api.v1.common import UpdateSchema
from hims.domain.patients.models import BloodGroup, Gender, Patient


class PatientBase(BaseModel):
    """Base schema for patient data"""
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: Gender
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    blood_group: Optional[BloodGroup] = None
    national_id: Optional[str] = Field(None, max_length=50)
    allergies: List[str] = []
    next_of_kin_name: Optional[str] = Field(None, max_length=200)
    next_of_kin_phone: Optional[str] = Field(None, max_length=20)
    next_of_kin_relationship: Optional[str] = Field(None, max_length=50)
    insurance_provider: Optional[str] = Field(None, max_length=200)
    insurance_number: Optional[str] = Field(None, max_length=100)

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, v):
        if v and v > date.today():
            raise ValueError('Date of birth cannot be in the future')
        return v


class PatientCreate(PatientBase):
    """Schema for registering a patient"""
    pass


class PatientUpdate(UpdateSchema):
    """Schema for updating patient information"""
    orm_model = Patient

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    blood_group: Optional[BloodGroup] = None
    national_id: Optional[str] = Field(None, max_length=50)
    allergies: Optional[List[str]] = None
    next_of_kin_name: Optional[str] = Field(None, max_length=200)
    next_of_kin_phone: Optional[str] = Field(None, max_length=20)
    next_of_kin_relationship: Optional[str] = Field(None, max_length=50)
    insurance_provider: Optional[str] = Field(None, max_length=200)
    insurance_number: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, v):
        if v and v > date.today():
            raise ValueError('Date of birth cannot be in the future')
        return v


class PatientResponse(BaseModel):
    """Schema for patient response data"""
    id: str
    patient_number: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    full_name: str
    date_of_birth: date
    gender: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    national_id: Optional[str] = None
    allergies: List[str] = []
    next_of_kin_name: Optional[str] = None
    next_of_kin_phone: Optional[str] = None
    next_of_kin_relationship: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_number: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator('allergies', mode='before')
    @classmethod
    def default_allergies(cls, v):
        return v or []

    class Config:
        from_attributes = True


class PatientSummary(BaseModel):
    """Patient reference embedded in other resources"""
    id: str
    patient_number: str
    full_name: str

    class Config:
        from_attributes = True


class PatientStatistics(BaseModel):
    total: int
    active: int
    by_gender: Dict[str, int]
    registered_this_month: int
