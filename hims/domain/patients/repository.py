from typing import Optional, List, Tuple, Dict
from datetime import datetime
from sqlalchemy import select, or_, func

from hims.domain.patients.models import Patient
from hims.infrastructure.repository import BaseRepository


class PatientRepository(BaseRepository[Patient]):
    """Repository for patient data access operations"""

    model = Patient

    async def get_by_patient_number(self, patient_number: str) -> Optional[Patient]:
        return await self.get_by(patient_number=patient_number)

    def _filtered(
        self,
        search: Optional[str] = None,
        gender: Optional[str] = None,
        is_active: Optional[bool] = None
    ):
        stmt = self.query()
        if gender:
            stmt = stmt.where(Patient.gender == gender)
        if is_active is not None:
            stmt = stmt.where(Patient.is_active == is_active)
        if search:
            term = f"%{search}%"
            stmt = stmt.where(or_(
                Patient.first_name.ilike(term),
                Patient.middle_name.ilike(term),
                Patient.last_name.ilike(term),
                Patient.patient_number.ilike(term),
                Patient.phone.ilike(term),
                Patient.national_id.ilike(term),
                (Patient.first_name + " " + Patient.last_name).ilike(term)
            ))
        return stmt.order_by(Patient.created_at.desc())

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        gender: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Tuple[List[Patient], int]:
        """Get patients with filtering and pagination"""
        return await self.paginate(self._filtered(search, gender, is_active), skip, limit)

    async def export_rows(self, limit: int, search: Optional[str] = None) -> List[Patient]:
        return await self.all(self._filtered(search).limit(limit))

    async def count_all(self, is_active: Optional[bool] = None) -> int:
        stmt = select(func.count(Patient.id))
        if is_active is not None:
            stmt = stmt.where(Patient.is_active == is_active)
        return (await self.db.execute(stmt)).scalar_one()

    async def count_by_gender(self) -> Dict[str, int]:
        result = await self.db.execute(
            select(Patient.gender, func.count(Patient.id)).group_by(Patient.gender)
        )
        return {gender: count for gender, count in result.all()}

    async def count_registered_since(self, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Patient.id)).where(Patient.created_at >= since)
        )
        return result.scalar_one()

    async def has_dependent_records(self, patient_id: str) -> bool:
        """Visits, appointments, invoices or admissions reference the patient"""
        from hims.domain.appointments.models import Appointment
        from hims.domain.billing.models import Invoice
        from hims.domain.ipd.models import Admission
        from hims.domain.visits.models import Visit

        for model in (Visit, Appointment, Invoice, Admission):
            result = await self.db.execute(
                select(model.id).where(model.patient_id == patient_id).limit(1)
            )
            if result.first() is not None:
                return True
        return False
