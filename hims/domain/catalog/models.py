from sqlalchemy import Column, String, Float, Boolean, Text, JSON
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class ServiceCategory(str, enum.Enum):
    CONSULTATION = "Consultation"
    LABORATORY = "Laboratory"
    IMAGING = "Imaging"
    PROCEDURE = "Procedure"
    PHARMACY = "Pharmacy"
    OTHER = "Other"


class Service(TimestampMixin, Base):
    """Billable hospital service"""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(200), nullable=False, index=True)
    category = Column(String(30), nullable=False, default=ServiceCategory.OTHER.value)
    price = Column(Float, nullable=False, default=0.0)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)


class PriceCategory(str, enum.Enum):
    """Payers and outlets that carry their own price list"""
    BRITAM = "BRITAM"
    NSSF = "NSSF"
    NHIF = "NHIF"
    ASSEMBLE = "ASSEMBLE"
    PHARMACY = "Pharmacy"
    HOSPITAL_SHOP = "HospitalShop"


class ItemPrice(TimestampMixin, Base):
    """Price of one item under every payer category"""
    __tablename__ = "item_prices"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    name = Column(String(200), unique=True, nullable=False, index=True)
    prices = Column(JSON, nullable=False, default=dict)
