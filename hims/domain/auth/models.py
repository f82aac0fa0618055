from sqlalchemy import Column, String, Boolean, DateTime, Integer
import enum

from hims.infrastructure.database import Base, TimestampMixin, gen_uuid


class UserRole(str, enum.Enum):
    """Staff roles in the hospital information system"""
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"
    PHARMACIST = "pharmacist"
    CASHIER = "cashier"
    LAB_TECHNICIAN = "lab_technician"
    RADIOLOGIST = "radiologist"
    MORTUARY_ATTENDANT = "mortuary_attendant"
    STORE_KEEPER = "store_keeper"


class User(TimestampMixin, Base):
    """Staff account used for authentication and authorization"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=gen_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20))
    role = Column(String(30), nullable=False, default=UserRole.RECEPTIONIST.value)
    specialization = Column(String(100))

    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime)
    reset_token_hash = Column(String(64), index=True)
    reset_token_expires_at = Column(DateTime)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def set_password(self, password: str):
        from hims.core.security import get_password_hash
        self.password_hash = get_password_hash(password)

    def verify_password(self, password: str) -> bool:
        from hims.core.security import verify_password
        return verify_password(password, self.password_hash)

    def get_permissions(self) -> list:
        """Default permissions of the user's role"""
        from hims.core.permissions import permissions_for_role
        return permissions_for_role(self.role)
