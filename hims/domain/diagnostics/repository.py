from typing import Optional, List, Tuple

from hims.domain.diagnostics.models import LabTest, RadiologyRequest
from hims.infrastructure.repository import BaseRepository


class LabTestRepository(BaseRepository[LabTest]):
    model = LabTest

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        patient_id: Optional[str] = None,
        visit_id: Optional[str] = None
    ) -> Tuple[List[LabTest], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(LabTest.status == status)
        if patient_id:
            stmt = stmt.where(LabTest.patient_id == patient_id)
        if visit_id:
            stmt = stmt.where(LabTest.visit_id == visit_id)
        return await self.paginate(stmt.order_by(LabTest.created_at.desc()), skip, limit)


class RadiologyRepository(BaseRepository[RadiologyRequest]):
    model = RadiologyRequest

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        patient_id: Optional[str] = None
    ) -> Tuple[List[RadiologyRequest], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(RadiologyRequest.status == status)
        if patient_id:
            stmt = stmt.where(RadiologyRequest.patient_id == patient_id)
        return await self.paginate(stmt.order_by(RadiologyRequest.created_at.desc()), skip, limit)
