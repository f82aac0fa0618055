from typing import Any, List, Optional, Sequence
from datetime import datetime
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


class ReportRepository:
    """Read-only queries spanning several tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def rows(
        self,
        model: Any,
        date_column: Any,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        criteria: Sequence[Any] = (),
        limit: int = 1000,
    ) -> List[Any]:
        stmt = select(model).where(*criteria)
        if start:
            stmt = stmt.where(date_column >= start)
        if end:
            stmt = stmt.where(date_column < end)
        result = await self.db.execute(stmt.order_by(date_column.desc()).limit(limit))
        return list(result.scalars().all())

    async def count(self, model: Any, *criteria: Any) -> int:
        result = await self.db.execute(select(func.count(model.id)).where(*criteria))
        return result.scalar_one()
