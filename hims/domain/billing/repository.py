from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime
from sqlalchemy import select, func

from hims.domain.billing.models import OPEN_INVOICE_STATUSES, Invoice, InvoiceStatus, Payment
from hims.infrastructure.repository import BaseRepository


class InvoiceRepository(BaseRepository[Invoice]):
    model = Invoice

    async def get_by_number(self, invoice_number: str) -> Optional[Invoice]:
        return await self.get_by(invoice_number=invoice_number)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        patient_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[Invoice], int]:
        stmt = self.query()
        if status == InvoiceStatus.OVERDUE.value:
            stmt = stmt.where(Invoice.is_overdue)
        elif status:
            stmt = stmt.where(Invoice.status == status)
            if status in OPEN_INVOICE_STATUSES:
                stmt = stmt.where(~Invoice.is_overdue)
        if patient_id:
            stmt = stmt.where(Invoice.patient_id == patient_id)
        if start:
            stmt = stmt.where(Invoice.created_at >= start)
        if end:
            stmt = stmt.where(Invoice.created_at < end)
        return await self.paginate(stmt.order_by(Invoice.created_at.desc()), skip, limit)

    async def totals(self) -> Dict[str, Any]:
        result = await self.db.execute(
            select(
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.total_amount), 0.0),
                func.coalesce(func.sum(Invoice.amount_paid), 0.0),
                func.coalesce(func.sum(Invoice.balance_due), 0.0),
            ).where(Invoice.status != InvoiceStatus.CANCELLED.value)
        )
        count, total_amount, total_paid, total_due = result.one()
        return {
            "total_invoices": count,
            "total_amount": round(float(total_amount), 2),
            "total_paid": round(float(total_paid), 2),
            "total_due": round(float(total_due), 2),
        }

    async def count_overdue(self) -> int:
        result = await self.db.execute(select(func.count(Invoice.id)).where(Invoice.is_overdue))
        return result.scalar_one()


class PaymentRepository(BaseRepository[Payment]):
    model = Payment

    def _ranged(self, start: Optional[datetime], end: Optional[datetime]):
        stmt = self.query()
        if start:
            stmt = stmt.where(Payment.paid_at >= start)
        if end:
            stmt = stmt.where(Payment.paid_at < end)
        return stmt

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 20,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Tuple[List[Payment], int]:
        return await self.paginate(self._ranged(start, end).order_by(Payment.paid_at.desc()), skip, limit)

    async def recent(self, limit: int = 10) -> List[Payment]:
        return await self.all(self.query().order_by(Payment.paid_at.desc()).limit(limit))

    async def totals_by_method(self) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Payment.method, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0.0))
            .group_by(Payment.method)
            .order_by(Payment.method)
        )
        return [
            {"method": method, "count": count, "total": round(float(total), 2)}
            for method, count, total in result.all()
        ]

    async def revenue_between(self, start: datetime, end: Optional[datetime] = None) -> float:
        stmt = select(func.coalesce(func.sum(Payment.amount), 0.0)).where(Payment.paid_at >= start)
        if end:
            stmt = stmt.where(Payment.paid_at < end)
        return round(float((await self.db.execute(stmt)).scalar_one()), 2)
