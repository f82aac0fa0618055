from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Common data access for one mapped model.

    Writes only flush; the owning service commits so that multi-row
    operations stay in one transaction.
    """

    model: Type[ModelT]
    load_options: Sequence[Any] = ()

    def __init__(self, db: AsyncSession):
        self.db = db

    def query(self) -> Select:
        return select(self.model).options(*self.load_options)

    async def get_by_id(self, obj_id: str) -> Optional[ModelT]:
        result = await self.db.execute(
            self.query()
            .where(self.model.id == obj_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by(self, **filters: Any) -> Optional[ModelT]:
        result = await self.db.execute(self.query().filter_by(**filters))
        return result.scalars().first()

    async def create(self, data: Dict[str, Any]) -> ModelT:
        obj = self.model(**data)
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def update(self, obj: ModelT, data: Dict[str, Any]) -> ModelT:
        for field, value in data.items():
            setattr(obj, field, value)
        await self.db.flush()
        return obj

    async def delete(self, obj: ModelT) -> None:
        await self.db.delete(obj)
        await self.db.flush()

    async def all(self, stmt: Select) -> List[ModelT]:
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def count(self, stmt: Select) -> int:
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        return (await self.db.execute(count_stmt)).scalar_one()

    async def paginate(self, stmt: Select, skip: int, limit: int) -> Tuple[List[ModelT], int]:
        total = await self.count(stmt)
        items = await self.all(stmt.offset(skip).limit(limit))
        return items, total
