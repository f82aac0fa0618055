from typing import Optional, List, Tuple, Dict
from sqlalchemy import func, or_, select

from hims.domain.mortuary.models import (
    Cabinet,
    Corpse,
    CorpseStatus,
    Release,
    OPEN_RELEASE_STATUSES,
)
from hims.infrastructure.repository import BaseRepository


class CabinetRepository(BaseRepository[Cabinet]):
    model = Cabinet

    async def get_by_number(self, number: str) -> Optional[Cabinet]:
        return await self.get_by(number=number)

    async def get_all(self, status: Optional[str] = None, location: Optional[str] = None) -> List[Cabinet]:
        stmt = self.query()
        if status:
            stmt = stmt.where(Cabinet.status == status)
        if location:
            stmt = stmt.where(Cabinet.location.ilike(f"%{location}%"))
        return await self.all(stmt.order_by(Cabinet.number))


class CorpseRepository(BaseRepository[Corpse]):
    model = Corpse

    async def get_by_number(self, corpse_number: str) -> Optional[Corpse]:
        return await self.get_by(corpse_number=corpse_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        search: Optional[str] = None
    ) -> Tuple[List[Corpse], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(Corpse.status == status)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Corpse.corpse_number.ilike(pattern),
                    Corpse.first_name.ilike(pattern),
                    Corpse.last_name.ilike(pattern),
                    Corpse.brought_by_name.ilike(pattern),
                )
            )
        return await self.paginate(stmt.order_by(Corpse.created_at.desc()), skip, limit)

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.db.execute(select(Corpse.status, func.count(Corpse.id)).group_by(Corpse.status))
        return {status: count for status, count in result.all()}

    async def count_in_storage(self) -> int:
        return await self.count(self.query().where(Corpse.status != CorpseStatus.RELEASED.value))


class ReleaseRepository(BaseRepository[Release]):
    model = Release

    async def open_for_corpse(self, corpse_id: str) -> Optional[Release]:
        result = await self.db.execute(
            self.query().where(Release.corpse_id == corpse_id, Release.status.in_(OPEN_RELEASE_STATUSES))
        )
        return result.scalars().first()

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        release_type: Optional[str] = None
    ) -> Tuple[List[Release], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(Release.status == status)
        if release_type:
            stmt = stmt.where(Release.release_type == release_type)
        return await self.paginate(stmt.order_by(Release.created_at.desc()), skip, limit)
