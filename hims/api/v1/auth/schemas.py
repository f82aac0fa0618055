from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from hims.api.v1.common import UpdateSchema
from hims.domain.auth.models import User, UserRole


def check_phone(v: Optional[str]) -> Optional[str]:
    if v and not v.replace('+', '').replace('-', '').replace(' ', '').isdigit():
        raise ValueError('Phone number must contain only digits, +, -, and spaces')
    return v


def check_password_strength(v: str) -> str:
    if not any(c.isalpha() for c in v) or not any(c.isdigit() for c in v):
        raise ValueError('Password must contain letters and digits')
    return v


class BaseUserSchema(BaseModel):
    """Base schema for user data"""
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole
    specialization: Optional[str] = Field(None, max_length=100)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return check_phone(v)


class UserCreate(BaseUserSchema):
    """Schema for creating a new user"""
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return check_password_strength(v)


class UserUpdate(UpdateSchema):
    """Schema for updating user information"""
    orm_model = User

    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[UserRole] = None
    specialization: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    """Schema for user response data"""
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    role: str
    specialization: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StaffOption(BaseModel):
    """Compact staff record for pickers"""
    id: str
    full_name: str
    role: str
    specialization: Optional[str] = None

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    """Schema for login request"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfileUpdate(UpdateSchema):
    """Fields a user may change on their own account"""
    orm_model = User

    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    specialization: Optional[str] = Field(None, max_length=100)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return check_phone(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return check_password_strength(v)


class MessageData(BaseModel):
    message: str
