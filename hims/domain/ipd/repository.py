from typing import Optional, List, Tuple, Dict
from datetime import datetime
from sqlalchemy import func, select

from hims.domain.ipd.models import Admission, AdmissionStatus
from hims.infrastructure.repository import BaseRepository


class AdmissionRepository(BaseRepository[Admission]):
    model = Admission

    async def get_by_number(self, admission_number: str) -> Optional[Admission]:
        return await self.get_by(admission_number=admission_number)

    async def active_for_patient(self, patient_id: str) -> Optional[Admission]:
        return await self.get_by(patient_id=patient_id, status=AdmissionStatus.ADMITTED.value)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        patient_id: Optional[str] = None,
        ward_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[Admission], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(Admission.status == status)
        if patient_id:
            stmt = stmt.where(Admission.patient_id == patient_id)
        if ward_id:
            stmt = stmt.where(Admission.ward_id == ward_id)
        if start:
            stmt = stmt.where(Admission.admission_date >= start)
        if end:
            stmt = stmt.where(Admission.admission_date < end)
        return await self.paginate(stmt.order_by(Admission.admission_date.desc()), skip, limit)

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.db.execute(select(Admission.status, func.count(Admission.id)).group_by(Admission.status))
        return {status: count for status, count in result.all()}

    async def count_admitted_since(self, since: datetime) -> int:
        result = await self.db.execute(select(func.count(Admission.id)).where(Admission.admission_date >= since))
        return result.scalar_one()

    async def completed_stays(self) -> List[Tuple[datetime, datetime]]:
        result = await self.db.execute(
            select(Admission.admission_date, Admission.discharge_date).where(Admission.discharge_date.is_not(None))
        )
        return [tuple(row) for row in result.all()]
