from typing import Optional, List, Tuple
from sqlalchemy import or_

from hims.domain.store.models import IncomingItem, Requisition, SupplierInvoice
from hims.infrastructure.repository import BaseRepository


class RequisitionRepository(BaseRepository[Requisition]):
    model = Requisition

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        from_department: Optional[str] = None
    ) -> Tuple[List[Requisition], int]:
        stmt = self.query()
        if status:
            stmt = stmt.where(Requisition.status == status)
        if from_department:
            stmt = stmt.where(Requisition.from_department.ilike(f"%{from_department}%"))
        stmt = stmt.order_by(Requisition.requisition_date.desc(), Requisition.created_at.desc())
        return await self.paginate(stmt, skip, limit)


class SupplierInvoiceRepository(BaseRepository[SupplierInvoice]):
    model = SupplierInvoice

    async def get_by_number(self, invoice_number: str) -> Optional[SupplierInvoice]:
        return await self.get_by(invoice_number=invoice_number)

    async def get_all(self, skip: int = 0, limit: int = 20, search: Optional[str] = None) -> Tuple[List[SupplierInvoice], int]:
        stmt = self.query()
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(SupplierInvoice.invoice_number.ilike(pattern), SupplierInvoice.supplier.ilike(pattern)))
        stmt = stmt.order_by(SupplierInvoice.invoice_date.desc(), SupplierInvoice.created_at.desc())
        return await self.paginate(stmt, skip, limit)


class IncomingItemRepository(BaseRepository[IncomingItem]):
    model = IncomingItem

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        received: Optional[bool] = False,
        department: Optional[str] = None
    ) -> Tuple[List[IncomingItem], int]:
        stmt = self.query()
        if received is not None:
            stmt = stmt.where(IncomingItem.received == received)
        if department:
            stmt = stmt.where(IncomingItem.department.ilike(f"%{department}%"))
        return await self.paginate(stmt.order_by(IncomingItem.created_at, IncomingItem.name), skip, limit)

    async def get_locked(self, item_id: str) -> Optional[IncomingItem]:
        stmt = self.query().where(IncomingItem.id == item_id).with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
