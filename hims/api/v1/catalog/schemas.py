from pydantic import BaseModel, Field, field_validator
from typing import Dict, Optional
from datetime import datetime

from hims.api.v1.common import UpdateSchema
from hims.domain.catalog.models import ItemPrice, PriceCategory, Service, ServiceCategory


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: ServiceCategory = ServiceCategory.OTHER
    price: float = Field(..., ge=0)
    description: Optional[str] = None
    is_active: bool = True


class ServiceUpdate(UpdateSchema):
    orm_model = Service

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[ServiceCategory] = None
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: str
    name: str
    category: str
    price: float
    description: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


def check_prices(prices: Optional[Dict[PriceCategory, float]]) -> Optional[Dict[PriceCategory, float]]:
    if prices is None:
        return None
    for category, price in prices.items():
        if price < 0:
            raise ValueError(f"{category.value} price cannot be negative")
    return {category: round(price, 2) for category, price in prices.items()}


class ItemPriceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    prices: Dict[PriceCategory, float] = {}

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Medicine name is required")
        return v

    @field_validator("prices")
    @classmethod
    def validate_prices(cls, v):
        return check_prices(v)


class ItemPriceUpdate(UpdateSchema):
    """Categories left out of ``prices`` keep their current price"""
    orm_model = ItemPrice

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    prices: Optional[Dict[PriceCategory, float]] = None

    @field_validator("prices")
    @classmethod
    def validate_prices(cls, v):
        return check_prices(v)


class ItemPriceResponse(BaseModel):
    id: str
    name: str
    prices: Dict[str, float]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
