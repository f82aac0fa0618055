"""
Billing Domain Service

Invoices, payments and the billing summary. Amounts are kept to two decimal
places; an invoice's balance and status always follow its payments.
"""

from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime
import logging
import random
import string

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, NotFoundError
from hims.domain.billing.models import Invoice, InvoiceItem, InvoiceStatus, Payment
from hims.domain.billing.repository import InvoiceRepository, PaymentRepository
from hims.domain.catalog.repository import ServiceRepository
from hims.domain.patients.repository import PatientRepository
from hims.domain.pharmacy.repository import StockItemRepository
from hims.domain.visits.models import PaymentStatus
from hims.domain.visits.repository import VisitRepository
from hims.api.v1.billing.schemas import InvoiceCreate, PaymentCreate, BillableItem

logger = logging.getLogger(__name__)


class BillingService:
    """Service layer for invoices and payments"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.patient_repo = PatientRepository(db)
        self.visit_repo = VisitRepository(db)

    def _generate_invoice_number(self) -> str:
        """Format: INV-YYYYMMDD-NNNN"""
        suffix = ''.join(random.choices(string.digits, k=4))
        return f"INV-{datetime.now():%Y%m%d}-{suffix}"

    async def create_invoice(self, data: InvoiceCreate, created_by: str) -> Invoice:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        if data.visit_id:
            visit = await self.visit_repo.get_by_id(data.visit_id)
            if not visit or visit.patient_id != data.patient_id:
                raise NotFoundError("Visit not found for this patient")

        invoice_number = self._generate_invoice_number()
        while await self.repo.get_by_number(invoice_number):
            invoice_number = self._generate_invoice_number()

        items = [
            InvoiceItem(
                description=item.description,
                item_type=item.item_type.value,
                reference_id=item.reference_id,
                quantity=item.quantity,
                unit_price=round(item.unit_price, 2),
                total=round(item.quantity * item.unit_price, 2),
            )
            for item in data.items
        ]
        subtotal = round(sum(item.total for item in items), 2)
        discount = round(data.discount, 2)
        tax = round(data.tax, 2)
        total = round(subtotal - discount + tax, 2)

        invoice = Invoice(
            invoice_number=invoice_number,
            patient_id=data.patient_id,
            visit_id=data.visit_id,
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total_amount=total,
            amount_paid=0.0,
            balance_due=total,
            status=InvoiceStatus.PAID.value if total <= 0 else InvoiceStatus.PENDING.value,
            due_date=data.due_date,
            notes=data.notes,
            created_by=created_by,
            items=items,
        )
        self.db.add(invoice)
        await self.db.commit()
        logger.info(f"Invoice {invoice_number} created for patient {data.patient_id}: {total:.2f}")
        return await self.repo.get_by_id(invoice.id)

    async def get_invoice(self, invoice_id: str) -> Invoice:
        invoice = await self.repo.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    async def list_invoices(self, skip: int, limit: int, **filters) -> Tuple[List[Invoice], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def cancel_invoice(self, invoice_id: str, reason: Optional[str] = None) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise BusinessLogicError("Invoice is already cancelled")
        if invoice.payments:
            raise BusinessLogicError("Cannot cancel an invoice that has payments")
        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.balance_due = 0.0
        invoice.cancelled_at = datetime.utcnow()
        if reason:
            invoice.notes = f"{invoice.notes}\nCancelled: {reason}" if invoice.notes else f"Cancelled: {reason}"
        await self.db.commit()
        logger.info(f"Invoice {invoice.invoice_number} cancelled")
        return await self.repo.get_by_id(invoice_id)

    async def add_payment(self, invoice_id: str, data: PaymentCreate, received_by: str) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
            raise BusinessLogicError(f"Cannot record a payment on a {invoice.status} invoice")
        amount = round(data.amount, 2)
        if amount > invoice.balance_due:
            raise BusinessLogicError(
                "Payment exceeds the balance due",
                details={"balance_due": invoice.balance_due, "amount": amount},
            )

        self.db.add(Payment(
            invoice_id=invoice.id,
            patient_id=invoice.patient_id,
            amount=amount,
            method=data.method.value,
            reference=data.reference,
            received_by=received_by,
        ))
        invoice.apply_payment(amount)

        if invoice.status == InvoiceStatus.PAID.value and invoice.visit_id:
            visit = await self.visit_repo.get_by_id(invoice.visit_id)
            if visit:
                visit.payment_status = PaymentStatus.PAID.value

        await self.db.commit()
        logger.info(f"Payment of {amount:.2f} recorded on invoice {invoice.invoice_number}")
        return await self.repo.get_by_id(invoice_id)

    async def list_payments(self, skip: int, limit: int, **filters) -> Tuple[List[Payment], int]:
        return await self.payment_repo.get_all(skip=skip, limit=limit, **filters)

    async def get_statistics(self) -> Dict[str, Any]:
        return {
            "invoices": await self.repo.totals(),
            "overdue_count": await self.repo.count_overdue(),
            "by_method": await self.payment_repo.totals_by_method(),
            "payments": await self.payment_repo.recent(),
        }

    async def billable_items(self, search: Optional[str] = None, limit: int = 50) -> List[BillableItem]:
        """Active services and sellable stock for the invoice item picker"""
        services, _ = await ServiceRepository(self.db).get_all(
            skip=0, limit=limit, name=search, is_active=True
        )
        stock = await StockItemRepository(self.db).sellable(search, limit)
        items = [
            BillableItem(id=s.id, name=s.name, price=s.price, item_type="service")
            for s in services
        ]
        items.extend(
            BillableItem(
                id=s.id, name=s.name, price=s.selling_price,
                item_type="medication", available_quantity=s.quantity,
            )
            for s in stock
        )
        return items
