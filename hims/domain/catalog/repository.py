from typing import Optional, List, Tuple
from sqlalchemy import func

from hims.domain.catalog.models import ItemPrice, Service
from hims.infrastructure.repository import BaseRepository


class ServiceRepository(BaseRepository[Service]):
    model = Service

    async def get_by_name(self, name: str) -> Optional[Service]:
        result = await self.db.execute(self.query().where(func.lower(Service.name) == name.lower()))
        return result.scalars().first()

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        category: Optional[str] = None,
        name: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Tuple[List[Service], int]:
        stmt = self.query()
        if category:
            stmt = stmt.where(Service.category == category)
        if name:
            stmt = stmt.where(Service.name.ilike(f"%{name}%"))
        if is_active is not None:
            stmt = stmt.where(Service.is_active == is_active)
        return await self.paginate(stmt.order_by(Service.name), skip, limit)


class ItemPriceRepository(BaseRepository[ItemPrice]):
    model = ItemPrice

    async def get_by_name(self, name: str) -> Optional[ItemPrice]:
        result = await self.db.execute(self.query().where(func.lower(ItemPrice.name) == name.lower()))
        return result.scalars().first()

    async def get_all(self, skip: int = 0, limit: int = 20, search: Optional[str] = None) -> Tuple[List[ItemPrice], int]:
        stmt = self.query()
        if search:
            stmt = stmt.where(ItemPrice.name.ilike(f"%{search}%"))
        return await self.paginate(stmt.order_by(ItemPrice.name), skip, limit)
