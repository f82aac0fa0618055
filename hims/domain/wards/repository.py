from typing import Optional, List, Tuple, Dict
from sqlalchemy import func, select

from hims.domain.wards.models import Ward, Bed, BedStatus
from hims.infrastructure.repository import BaseRepository


class WardRepository(BaseRepository[Ward]):
    model = Ward

    async def get_by_number(self, ward_number: str) -> Optional[Ward]:
        return await self.get_by(ward_number=ward_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        ward_type: Optional[str] = None,
        status: Optional[str] = None
    ) -> Tuple[List[Ward], int]:
        stmt = self.query()
        if ward_type:
            stmt = stmt.where(Ward.ward_type == ward_type)
        if status:
            stmt = stmt.where(Ward.status == status)
        return await self.paginate(stmt.order_by(Ward.ward_number), skip, limit)

    async def list_all(self) -> List[Ward]:
        return await self.all(self.query().order_by(Ward.ward_number))


class BedRepository(BaseRepository[Bed]):
    model = Bed

    async def get_in_ward(self, ward_id: str, bed_number: str) -> Optional[Bed]:
        return await self.get_by(ward_id=ward_id, bed_number=bed_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        ward_id: Optional[str] = None,
        status: Optional[str] = None,
        bed_type: Optional[str] = None
    ) -> Tuple[List[Bed], int]:
        stmt = self.query()
        if ward_id:
            stmt = stmt.where(Bed.ward_id == ward_id)
        if status:
            stmt = stmt.where(Bed.status == status)
        if bed_type:
            stmt = stmt.where(Bed.bed_type == bed_type)
        return await self.paginate(stmt.order_by(Bed.ward_id, Bed.bed_number), skip, limit)

    async def available_in_ward(self, ward_id: str) -> List[Bed]:
        return await self.all(
            self.query()
            .where(Bed.ward_id == ward_id, Bed.status == BedStatus.AVAILABLE.value)
            .order_by(Bed.bed_number)
        )

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.db.execute(select(Bed.status, func.count(Bed.id)).group_by(Bed.status))
        return {status: count for status, count in result.all()}
