from typing import Optional, List, Tuple
from datetime import datetime
from sqlalchemy import Select, func, or_, select

from hims.domain.auth.models import User
from hims.domain.patients.models import Patient
from hims.domain.pharmacy.models import StockItem, StockMovement, Dispensing, DispensingItem
from hims.infrastructure.repository import BaseRepository


class StockItemRepository(BaseRepository[StockItem]):
    model = StockItem

    def _locked(self, stmt: Select, lock: bool) -> Select:
        """Row lock for read-check-write on quantities; a no-op on SQLite"""
        if not lock:
            return stmt
        return stmt.with_for_update(of=StockItem).execution_options(populate_existing=True)

    async def get_by_name(self, name: str, lock: bool = False) -> Optional[StockItem]:
        stmt = self.query().where(func.lower(StockItem.name) == name.strip().lower())
        result = await self.db.execute(self._locked(stmt, lock))
        return result.scalars().first()

    async def get_locked(self, item_id: str) -> Optional[StockItem]:
        result = await self.db.execute(self._locked(self.query().where(StockItem.id == item_id), True))
        return result.scalar_one_or_none()

    def _filtered(
        self,
        search: Optional[str] = None,
        item_type: Optional[str] = None,
        location: Optional[str] = None,
    ):
        stmt = self.query()
        if search:
            stmt = stmt.where(StockItem.name.ilike(f"%{search}%"))
        if item_type:
            stmt = stmt.where(StockItem.item_type == item_type)
        if location:
            stmt = stmt.where(StockItem.location == location)
        return stmt.order_by(StockItem.name)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        item_type: Optional[str] = None,
        location: Optional[str] = None
    ) -> Tuple[List[StockItem], int]:
        return await self.paginate(self._filtered(search, item_type, location), skip, limit)

    async def export_rows(self, location: Optional[str] = None) -> List[StockItem]:
        return await self.all(self._filtered(location=location))

    async def low_stock(self) -> List[StockItem]:
        return await self.all(
            self.query().where(StockItem.quantity < StockItem.reorder_level).order_by(StockItem.quantity)
        )

    async def count_low(self) -> int:
        return await self.count(self.query().where(StockItem.quantity < StockItem.reorder_level))

    async def sellable(self, search: Optional[str] = None, limit: int = 50) -> List[StockItem]:
        stmt = self.query().where(StockItem.selling_price > 0, StockItem.quantity > 0)
        if search:
            stmt = stmt.where(StockItem.name.ilike(f"%{search}%"))
        return await self.all(stmt.order_by(StockItem.name).limit(limit))

    async def get_many(self, item_ids: List[str], lock: bool = False) -> List[StockItem]:
        # Locks are taken in id order
        stmt = self.query().where(StockItem.id.in_(item_ids)).order_by(StockItem.id)
        return await self.all(self._locked(stmt, lock))


class StockMovementRepository(BaseRepository[StockMovement]):
    model = StockMovement

    async def for_item(self, item_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[StockMovement], int]:
        stmt = (
            self.query()
            .where(StockMovement.item_id == item_id)
            .order_by(StockMovement.created_at.desc())
        )
        return await self.paginate(stmt, skip, limit)


class DispensingRepository(BaseRepository[Dispensing]):
    model = Dispensing

    def _filtered(
        self,
        dispensing_type: Optional[str] = None,
        search: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ):
        stmt = self.query()
        if dispensing_type:
            stmt = stmt.where(Dispensing.dispensing_type == dispensing_type)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.outerjoin(Patient, Dispensing.patient_id == Patient.id).where(
                or_(
                    Dispensing.customer_name.ilike(pattern),
                    Dispensing.prescription_reference.ilike(pattern),
                    Patient.first_name.ilike(pattern),
                    Patient.last_name.ilike(pattern),
                    Patient.patient_number.ilike(pattern),
                )
            )
        if start:
            stmt = stmt.where(Dispensing.dispensed_at >= start)
        if end:
            stmt = stmt.where(Dispensing.dispensed_at < end)
        return stmt.order_by(Dispensing.dispensed_at.desc())

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        dispensing_type: Optional[str] = None,
        search: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[Dispensing], int]:
        return await self.paginate(self._filtered(dispensing_type, search, start, end), skip, limit)

    async def ledger(self, start: Optional[datetime] = None, end: Optional[datetime] = None, limit: int = 1000):
        """One row per dispensed line, newest first"""
        stmt = (
            select(
                Dispensing.dispensed_at,
                Dispensing.customer_name,
                Patient.first_name,
                Patient.last_name,
                Patient.patient_number,
                DispensingItem.item_name,
                DispensingItem.quantity,
                User.first_name.label("issuer_first_name"),
                User.last_name.label("issuer_last_name"),
            )
            .join(DispensingItem, DispensingItem.dispensing_id == Dispensing.id)
            .outerjoin(Patient, Dispensing.patient_id == Patient.id)
            .outerjoin(User, Dispensing.dispensed_by == User.id)
        )
        if start:
            stmt = stmt.where(Dispensing.dispensed_at >= start)
        if end:
            stmt = stmt.where(Dispensing.dispensed_at < end)
        result = await self.db.execute(stmt.order_by(Dispensing.dispensed_at.desc()).limit(limit))
        return result.all()
