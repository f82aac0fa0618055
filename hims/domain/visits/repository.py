from typing import Optional, List, Tuple
from sqlalchemy import or_

from hims.domain.patients.models import Patient
from hims.domain.visits.models import Visit, VisitStatus, Prescription
from hims.infrastructure.repository import BaseRepository


class VisitRepository(BaseRepository[Visit]):
    """Repository for outpatient visits"""

    model = Visit

    async def get_by_number(self, visit_number: str) -> Optional[Visit]:
        return await self.get_by(visit_number=visit_number)

    async def get_open_visit(self, patient_id: str) -> Optional[Visit]:
        result = await self.db.execute(
            self.query().where(
                Visit.patient_id == patient_id,
                Visit.status != VisitStatus.COMPLETED.value,
            )
        )
        return result.scalars().first()

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        status: Optional[str] = None,
        doctor_id: Optional[str] = None,
        active_only: bool = False
    ) -> Tuple[List[Visit], int]:
        stmt = self.query()
        if search:
            term = f"%{search}%"
            stmt = stmt.join(Patient, Visit.patient_id == Patient.id).where(or_(
                Visit.visit_number.ilike(term),
                Patient.patient_number.ilike(term),
                Patient.first_name.ilike(term),
                Patient.last_name.ilike(term),
                (Patient.first_name + " " + Patient.last_name).ilike(term),
            ))
        if status:
            stmt = stmt.where(Visit.status == status)
        if active_only:
            stmt = stmt.where(Visit.status != VisitStatus.COMPLETED.value)
        if doctor_id:
            stmt = stmt.where(Visit.doctor_id == doctor_id)
        return await self.paginate(stmt.order_by(Visit.created_at.desc()), skip, limit)

    async def doctor_queue(self, doctor_id: str) -> List[Visit]:
        """Waiting and running visits of a doctor, oldest first"""
        stmt = self.query().where(
            Visit.doctor_id == doctor_id,
            Visit.status.in_([VisitStatus.IN_QUEUE.value, VisitStatus.IN_PROGRESS.value]),
        ).order_by(Visit.created_at.asc())
        return await self.all(stmt)


class PrescriptionRepository(BaseRepository[Prescription]):
    model = Prescription
