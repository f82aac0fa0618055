"""
Store Domain Service

Departmental requisitions against the main store and receiving of supplier
deliveries. Both move stock through ``StockService.move``. Issued lines show
up as incoming items until the requesting department records receipt.
"""

from typing import List, Optional, Tuple
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from hims.domain.pharmacy.models import MovementType
from hims.domain.pharmacy.service import StockService
from hims.domain.store.models import (
    MAIN_STORE,
    IncomingItem,
    ReceivedItem,
    Requisition,
    RequisitionItem,
    RequisitionItemStatus,
    RequisitionStatus,
    SupplierInvoice,
)
from hims.domain.store.repository import IncomingItemRepository, RequisitionRepository, SupplierInvoiceRepository
from hims.api.v1.store.schemas import (
    IncomingItemUpdate,
    ItemReceiveCreate,
    RequisitionCreate,
    RequisitionItemDecision,
    RequisitionUpdate,
    SupplierInvoiceCreate,
)

logger = logging.getLogger(__name__)


class RequisitionService:
    """Service layer for store requisitions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = RequisitionRepository(db)
        self.stock = StockService(db)

    async def create_requisition(self, data: RequisitionCreate, requested_by: str) -> Requisition:
        requisition = Requisition(
            from_department=data.from_department,
            requisition_date=data.requisition_date,
            notes=data.notes,
            requested_by=requested_by,
            status=RequisitionStatus.SENT.value,
            items=[RequisitionItem(medicine=i.medicine.strip(), quantity=i.quantity) for i in data.items],
        )
        self.db.add(requisition)
        await self.db.commit()
        logger.info(f"Requisition from {data.from_department} with {len(data.items)} item(s)")
        return await self.repo.get_by_id(requisition.id)

    async def get_requisition(self, requisition_id: str) -> Requisition:
        requisition = await self.repo.get_by_id(requisition_id)
        if not requisition:
            raise NotFoundError("Requisition not found")
        return requisition

    async def list_requisitions(self, skip: int, limit: int, **filters) -> Tuple[List[Requisition], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def _apply_decision(self, requisition: Requisition, decision: RequisitionItemDecision, user_id: str) -> None:
        item = next((i for i in requisition.items if i.id == decision.item_id), None)
        if item is None:
            raise NotFoundError("Requisition item not found", details={"item_id": decision.item_id})
        if item.status == RequisitionItemStatus.ISSUED.value:
            raise BusinessLogicError(f"{item.medicine} has already been issued")

        if decision.status == RequisitionItemStatus.ISSUED:
            issued_qty = decision.issued_qty if decision.issued_qty is not None else item.quantity
            if issued_qty < 1:
                raise BusinessLogicError("Issued quantity must be at least 1")
            if issued_qty > item.quantity:
                raise BusinessLogicError(
                    f"Issued quantity for {item.medicine} cannot exceed the requested {item.quantity}"
                )
            stock_item = await self.stock.repo.get_by_name(item.medicine, lock=True)
            if not stock_item:
                raise BusinessLogicError(f"{item.medicine} is not in stock")
            self.stock.move(
                stock_item, -issued_qty, MovementType.ISSUE,
                f"Requisition {requisition.from_department}", user_id,
            )
            item.issued_qty = issued_qty
            self.db.add(IncomingItem(
                requisition_id=requisition.id,
                requisition_item_id=item.id,
                name=item.medicine,
                quantity=issued_qty,
                source=MAIN_STORE,
                department=requisition.from_department,
            ))
        else:
            item.issued_qty = 0

        item.status = decision.status.value
        if decision.remarks is not None:
            item.remarks = decision.remarks

    async def update_requisition(self, requisition_id: str, data: RequisitionUpdate, user_id: str) -> Requisition:
        requisition = await self.get_requisition(requisition_id)
        if requisition.is_closed:
            raise BusinessLogicError("Requisition is closed")

        if data.items:
            for decision in data.items:
                await self._apply_decision(requisition, decision, user_id)
            if requisition.status == RequisitionStatus.SENT.value:
                requisition.status = RequisitionStatus.PROCESSING.value

        if data.status is not None:
            requisition.status = data.status.value
        if data.notes is not None:
            requisition.notes = data.notes

        await self.db.commit()
        logger.info(f"Requisition {requisition_id} updated: {requisition.status}")
        return await self.repo.get_by_id(requisition_id)


class ReceivingService:
    """Supplier invoices and received stock"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = SupplierInvoiceRepository(db)
        self.stock = StockService(db)

    async def create_invoice(self, data: SupplierInvoiceCreate, received_by: str) -> SupplierInvoice:
        if await self.repo.get_by_number(data.invoice_number):
            raise ConflictError("A supplier invoice with this number already exists")
        invoice = await self.repo.create({**data.model_dump(), "received_by": received_by})
        await self.db.commit()
        return await self.repo.get_by_id(invoice.id)

    async def get_invoice(self, invoice_id: str) -> SupplierInvoice:
        invoice = await self.repo.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError("Supplier invoice not found")
        return invoice

    async def list_invoices(self, skip: int, limit: int, search=None) -> Tuple[List[SupplierInvoice], int]:
        return await self.repo.get_all(skip=skip, limit=limit, search=search)

    async def receive_item(self, data: ItemReceiveCreate, received_by: str) -> ReceivedItem:
        """Add a delivered line to stock, creating the stock item on first receipt"""
        invoice = await self.get_invoice(data.invoice_id)
        price = round(data.price, 2)

        stock_item = await self.stock.repo.get_by_name(data.medicine, lock=True)
        if stock_item:
            if data.strength:
                stock_item.strength = data.strength
            if data.expiry_date:
                stock_item.expiry_date = data.expiry_date
            if price:
                stock_item.unit_cost = price
        else:
            stock_item = await self.stock.repo.create({
                "name": data.medicine.strip(),
                "item_type": data.item_type.value,
                "strength": data.strength,
                "expiry_date": data.expiry_date,
                "unit_cost": price,
                "location": data.receive_to,
                "quantity": 0,
            })

        self.stock.move(stock_item, data.quantity, MovementType.RECEIVE,
                        f"Supplier invoice {invoice.invoice_number}", received_by)
        received = ReceivedItem(
            supplier_invoice_id=invoice.id,
            stock_item_id=stock_item.id,
            medicine=stock_item.name,
            item_type=data.item_type.value,
            strength=data.strength,
            expiry_date=data.expiry_date,
            quantity=data.quantity,
            unit_price=price,
            receive_to=data.receive_to,
        )
        self.db.add(received)
        await self.db.commit()
        logger.info(f"Received {data.quantity} x {stock_item.name} on invoice {invoice.invoice_number}")
        return received


class IncomingItemService:
    """Issued requisition lines awaiting receipt by the requesting department"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = IncomingItemRepository(db)

    async def list_items(
        self, skip: int, limit: int, received: Optional[bool] = False, department: Optional[str] = None
    ) -> Tuple[List[IncomingItem], int]:
        return await self.repo.get_all(skip=skip, limit=limit, received=received, department=department)

    async def get_item(self, item_id: str) -> IncomingItem:
        item = await self.repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("Incoming item not found")
        return item

    async def mark_received(self, item_id: str, data: IncomingItemUpdate, user_id: str) -> IncomingItem:
        item = await self.repo.get_locked(item_id)
        if not item:
            raise NotFoundError("Incoming item not found")
        if not data.received:
            raise BusinessLogicError("Only receipt of an item can be recorded")
        if item.received:
            raise BusinessLogicError(f"{item.name} has already been received")

        item.received = True
        item.received_at = datetime.utcnow()
        item.received_by = user_id
        await self.db.commit()
        logger.info(f"Received {item.quantity} of {item.name} at {item.department}")
        return await self.repo.get_by_id(item_id)
