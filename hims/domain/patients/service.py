from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime
import logging
import random
import string

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import ConflictError, NotFoundError
from hims.domain.patients.models import Patient
from hims.domain.patients.repository import PatientRepository
from hims.api.v1.patients.schemas import PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "patient_number", "full_name", "gender", "date_of_birth", "phone",
    "email", "national_id", "blood_group", "insurance_provider", "is_active",
]


class PatientService:
    """Service layer for patient registration and lookup"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.patient_repo = PatientRepository(db)

    def _generate_patient_number(self) -> str:
        """Format: PT + YYYY + 6-digit random number"""
        year = datetime.now().year
        random_digits = ''.join(random.choices(string.digits, k=6))
        return f"PT{year}{random_digits}"

    async def create_patient(self, patient_data: PatientCreate) -> Patient:
        patient_number = self._generate_patient_number()
        while await self.patient_repo.get_by_patient_number(patient_number):
            patient_number = self._generate_patient_number()

        patient_dict = patient_data.model_dump(mode="json")
        patient_dict["date_of_birth"] = patient_data.date_of_birth
        patient_dict["patient_number"] = patient_number

        patient = await self.patient_repo.create(patient_dict)
        await self.db.commit()
        logger.info(f"Registered patient {patient_number}")
        return await self.patient_repo.get_by_id(patient.id)

    async def get_patient(self, patient_id: str) -> Patient:
        patient = await self.patient_repo.get_by_id(patient_id)
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    async def get_patients(
        self,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        gender: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Tuple[List[Patient], int]:
        return await self.patient_repo.get_all(
            skip=skip, limit=limit, search=search, gender=gender, is_active=is_active
        )

    async def update_patient(self, patient_id: str, patient_data: PatientUpdate) -> Patient:
        patient = await self.get_patient(patient_id)
        update_dict = patient_data.model_dump(mode="json", exclude_unset=True)
        if "date_of_birth" in update_dict:
            update_dict["date_of_birth"] = patient_data.date_of_birth

        await self.patient_repo.update(patient, update_dict)
        await self.db.commit()
        return await self.patient_repo.get_by_id(patient_id)

    async def delete_patient(self, patient_id: str) -> None:
        patient = await self.get_patient(patient_id)
        if await self.patient_repo.has_dependent_records(patient_id):
            raise ConflictError("Patient has clinical or billing records and cannot be deleted")
        try:
            await self.patient_repo.delete(patient)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Patient has clinical or billing records and cannot be deleted")

    async def get_statistics(self) -> Dict[str, Any]:
        month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return {
            "total": await self.patient_repo.count_all(),
            "active": await self.patient_repo.count_all(is_active=True),
            "by_gender": await self.patient_repo.count_by_gender(),
            "registered_this_month": await self.patient_repo.count_registered_since(month_start),
        }

    async def export_rows(self, limit: int, search: Optional[str] = None) -> List[Dict[str, Any]]:
        patients = await self.patient_repo.export_rows(limit, search)
        return [{column: getattr(p, column) for column in EXPORT_COLUMNS} for p in patients]
