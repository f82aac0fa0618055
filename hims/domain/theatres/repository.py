from typing import Optional, List, Tuple, Dict
from datetime import datetime, timedelta
from sqlalchemy import func, select

from hims.domain.theatres.models import Theatre, TheatreProcedure, ACTIVE_PROCEDURE_STATUSES
from hims.infrastructure.repository import BaseRepository

# Longest booking considered when searching for overlaps
MAX_PROCEDURE_MINUTES = 24 * 60


class TheatreRepository(BaseRepository[Theatre]):
    model = Theatre

    async def get_by_number(self, theatre_number: str) -> Optional[Theatre]:
        return await self.get_by(theatre_number=theatre_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        theatre_type: Optional[str] = None,
        status: Optional[str] = None
    ) -> Tuple[List[Theatre], int]:
        stmt = self.query()
        if theatre_type:
            stmt = stmt.where(Theatre.theatre_type == theatre_type)
        if status:
            stmt = stmt.where(Theatre.status == status)
        return await self.paginate(stmt.order_by(Theatre.theatre_number), skip, limit)

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.db.execute(select(Theatre.status, func.count(Theatre.id)).group_by(Theatre.status))
        return {status: count for status, count in result.all()}


class ProcedureRepository(BaseRepository[TheatreProcedure]):
    model = TheatreProcedure

    async def get_by_number(self, procedure_number: str) -> Optional[TheatreProcedure]:
        return await self.get_by(procedure_number=procedure_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        theatre_id: Optional[str] = None,
        patient_id: Optional[str] = None
    ) -> Tuple[List[TheatreProcedure], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(TheatreProcedure.status == status)
        if theatre_id:
            stmt = stmt.where(TheatreProcedure.theatre_id == theatre_id)
        if patient_id:
            stmt = stmt.where(TheatreProcedure.patient_id == patient_id)
        return await self.paginate(stmt.order_by(TheatreProcedure.scheduled_date.desc()), skip, limit)

    async def find_overlapping(
        self,
        theatre_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None
    ) -> List[TheatreProcedure]:
        """Unfinished procedures in the theatre whose booking intersects [start, end)"""
        stmt = self.query().where(
            TheatreProcedure.theatre_id == theatre_id,
            TheatreProcedure.status.in_(ACTIVE_PROCEDURE_STATUSES),
            TheatreProcedure.scheduled_date < end,
            TheatreProcedure.scheduled_date > start - timedelta(minutes=MAX_PROCEDURE_MINUTES),
        )
        if exclude_id:
            stmt = stmt.where(TheatreProcedure.id != exclude_id)
        candidates = await self.all(stmt)
        return [p for p in candidates if p.end_time > start]

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.db.execute(
            select(TheatreProcedure.status, func.count(TheatreProcedure.id)).group_by(TheatreProcedure.status)
        )
        return {status: count for status, count in result.all()}

    async def count_scheduled_between(self, start: datetime, end: datetime) -> int:
        return await self.count(
            self.query().where(TheatreProcedure.scheduled_date >= start, TheatreProcedure.scheduled_date < end)
        )
