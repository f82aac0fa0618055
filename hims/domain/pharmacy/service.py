"""
Pharmacy Domain Service

Stock items, the stock movement ledger, Excel import/export and dispensing.
Every change to an item's quantity goes through ``StockService.move`` so the
ledger's ``balance_after`` always equals the item quantity. Write paths load
the item rows with ``lock=True`` before checking or changing quantities.
"""

from typing import Optional, List, Tuple, Dict, Any
from collections import defaultdict
from zipfile import BadZipFile
import logging

from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from hims.domain.patients.repository import PatientRepository
from hims.domain.pharmacy.models import (
    Dispensing,
    DispensingItem,
    DispensingType,
    MovementType,
    StockItem,
    StockMovement,
)
from hims.domain.pharmacy.repository import (
    DispensingRepository,
    StockItemRepository,
    StockMovementRepository,
)
from hims.exports.excel import as_date, read_excel_rows
from hims.api.v1.pharmacy.schemas import (
    DirectDispensingCreate,
    DispensingCreate,
    DispensingItemCreate,
    ImportResult,
    ImportRowError,
    StockItemCreate,
    StockItemUpdate,
    StockTakeRequest,
)

logger = logging.getLogger(__name__)

STOCK_EXPORT_COLUMNS = [
    "name", "item_type", "form", "strength", "unit", "quantity", "reorder_level",
    "unit_cost", "selling_price", "expiry_date", "location",
]

TEXT_IMPORT_FIELDS = ("name", "item_type", "form", "strength", "unit", "location")

LEDGER_COLUMNS = ["Date", "Patient Name", "Patient ID", "Medicine", "Quantity", "Issued By"]


def _import_error_message(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first['msg']}" if field else first["msg"]


class StockService:
    """Stock items and their movement ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = StockItemRepository(db)
        self.movement_repo = StockMovementRepository(db)

    def move(
        self,
        item: StockItem,
        delta: int,
        movement_type: MovementType,
        reference: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> StockMovement:
        """Apply a quantity change and record it; the caller commits"""
        new_quantity = (item.quantity or 0) + delta
        if new_quantity < 0:
            raise BusinessLogicError(
                f"Insufficient stock for {item.name}",
                details={"item_id": item.id, "available": item.quantity, "requested": -delta},
            )
        item.quantity = new_quantity
        movement = StockMovement(
            item_id=item.id,
            item_name=item.name,
            movement_type=movement_type.value,
            quantity=delta,
            balance_after=new_quantity,
            reference=reference,
            performed_by=performed_by,
        )
        self.db.add(movement)
        return movement

    async def get_item(self, item_id: str) -> StockItem:
        item = await self.repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("Stock item not found")
        return item

    async def create_item(self, data: StockItemCreate, performed_by: Optional[str] = None) -> StockItem:
        if await self.repo.get_by_name(data.name):
            raise ConflictError("A stock item with this name already exists")
        values = data.model_dump(exclude={"quantity"})
        values["item_type"] = data.item_type.value
        item = await self.repo.create({**values, "quantity": 0})
        if data.quantity:
            self.move(item, data.quantity, MovementType.RECEIVE, "Opening balance", performed_by)
        await self.db.commit()
        logger.info(f"Stock item created: {item.name} ({data.quantity})")
        return await self.repo.get_by_id(item.id)

    async def list_items(self, skip: int, limit: int, **filters) -> Tuple[List[StockItem], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def low_stock(self) -> List[StockItem]:
        return await self.repo.low_stock()

    async def update_item(self, item_id: str, data: StockItemUpdate, performed_by: Optional[str] = None) -> StockItem:
        item = await self.repo.get_locked(item_id)
        if not item:
            raise NotFoundError("Stock item not found")
        update_dict = data.model_dump(exclude_unset=True, exclude={"quantity", "reason"})
        if update_dict.get("name"):
            update_dict["name"] = update_dict["name"].strip()
            existing = await self.repo.get_by_name(update_dict["name"])
            if existing and existing.id != item_id:
                raise ConflictError("A stock item with this name already exists")
        if update_dict.get("item_type"):
            update_dict["item_type"] = data.item_type.value
        await self.repo.update(item, update_dict)

        if data.quantity is not None and data.quantity != item.quantity:
            self.move(item, data.quantity - item.quantity, MovementType.ADJUST,
                      data.reason or "Manual adjustment", performed_by)
        await self.db.commit()
        return await self.repo.get_by_id(item_id)

    async def delete_item(self, item_id: str) -> None:
        item = await self.get_item(item_id)
        await self.repo.delete(item)
        await self.db.commit()
        logger.info(f"Stock item deleted: {item.name}")

    async def stock_take(self, data: StockTakeRequest, performed_by: Optional[str] = None) -> List[StockMovement]:
        """Adjust every counted item whose physical count differs from the book balance"""
        counted = await self.repo.get_many([c.item_id for c in data.counts], lock=True)
        items = {item.id: item for item in counted}
        missing = [c.item_id for c in data.counts if c.item_id not in items]
        if missing:
            raise NotFoundError("Stock item not found", details={"item_ids": missing})

        reference = data.reference or "Stock take"
        movements = []
        for count in data.counts:
            item = items[count.item_id]
            if count.actual != item.quantity:
                movements.append(
                    self.move(item, count.actual - item.quantity, MovementType.ADJUST, reference, performed_by)
                )
        await self.db.commit()
        logger.info(f"Stock take recorded {len(movements)} adjustments")
        return movements

    async def movements(self, item_id: str, skip: int, limit: int) -> Tuple[List[StockMovement], int]:
        await self.get_item(item_id)
        return await self.movement_repo.for_item(item_id, skip, limit)

    async def import_items(self, content: bytes, performed_by: Optional[str] = None) -> ImportResult:
        """Upsert stock items by name from the first sheet of an Excel workbook"""
        try:
            rows = list(read_excel_rows(content))
        except (BadZipFile, InvalidFileException, KeyError, OSError):
            raise ValidationError("Uploaded file is not a valid Excel workbook")

        result = ImportResult()
        for row_number, record in rows:
            if not record.get("name"):
                result.errors.append(ImportRowError(row=row_number, message="name: Field required"))
                continue
            try:
                for key in TEXT_IMPORT_FIELDS:
                    if record.get(key) is not None:
                        record[key] = str(record[key]).strip()
                record["expiry_date"] = as_date(record.get("expiry_date"))
                payload = {k: v for k, v in record.items() if k in StockItemCreate.model_fields and v is not None}
                data = StockItemCreate(**payload)
            except PydanticValidationError as exc:
                result.errors.append(ImportRowError(row=row_number, message=_import_error_message(exc)))
                continue
            except ValueError as exc:
                result.errors.append(ImportRowError(row=row_number, message=f"expiry_date: {exc}"))
                continue

            item = await self.repo.get_by_name(data.name, lock=True)
            if item:
                fields = data.model_dump(include=set(payload) - {"name", "quantity"})
                if "item_type" in fields:
                    fields["item_type"] = data.item_type.value
                await self.repo.update(item, fields)
                if "quantity" in payload and data.quantity != item.quantity:
                    self.move(item, data.quantity - item.quantity, MovementType.ADJUST, "Excel import", performed_by)
                result.updated += 1
            else:
                values = data.model_dump(exclude={"quantity"})
                values["item_type"] = data.item_type.value
                item = await self.repo.create({**values, "quantity": 0})
                if data.quantity:
                    self.move(item, data.quantity, MovementType.RECEIVE, "Excel import", performed_by)
                result.created += 1

        await self.db.commit()
        logger.info(
            f"Stock import: {result.created} created, {result.updated} updated, {len(result.errors)} errors"
        )
        return result

    async def export_rows(self, location: Optional[str] = None) -> List[Dict[str, Any]]:
        items = await self.repo.export_rows(location)
        return [{column: getattr(item, column) for column in STOCK_EXPORT_COLUMNS} for item in items]


class DispensingService:
    """Patient and over-the-counter dispensing"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = DispensingRepository(db)
        self.stock = StockService(db)
        self.patient_repo = PatientRepository(db)

    async def _dispense(
        self,
        dispensing_type: DispensingType,
        lines: List[DispensingItemCreate],
        dispensed_by: str,
        **fields: Any,
    ) -> Dispensing:
        item_ids = [line.stock_item_id for line in lines]
        items = {item.id: item for item in await self.stock.repo.get_many(item_ids, lock=True)}
        missing = [line.stock_item_id for line in lines if line.stock_item_id not in items]
        if missing:
            raise NotFoundError("Stock item not found", details={"item_ids": missing})

        # Check every line before touching stock
        requested: Dict[str, int] = defaultdict(int)
        for line in lines:
            requested[line.stock_item_id] += line.quantity
        short = [
            {"item_id": item_id, "name": items[item_id].name, "available": items[item_id].quantity, "requested": qty}
            for item_id, qty in requested.items()
            if items[item_id].quantity < qty
        ]
        if short:
            raise BusinessLogicError("Insufficient stock", details={"items": short})

        dispensing = Dispensing(dispensing_type=dispensing_type.value, dispensed_by=dispensed_by, **fields)
        total = 0.0
        for line in lines:
            item = items[line.stock_item_id]
            unit_price = round(line.unit_price if line.unit_price is not None else item.selling_price, 2)
            line_total = round(unit_price * line.quantity, 2)
            total += line_total
            dispensing.items.append(DispensingItem(
                stock_item_id=item.id,
                item_name=item.name,
                quantity=line.quantity,
                unit_price=unit_price,
                total=line_total,
                instructions=line.instructions,
            ))
        dispensing.total_amount = round(total, 2)
        self.db.add(dispensing)
        await self.db.flush()

        for line in lines:
            self.stock.move(items[line.stock_item_id], -line.quantity, MovementType.DISPENSE,
                            f"Dispensing {dispensing.id}", dispensed_by)
        await self.db.commit()
        logger.info(f"Dispensed {len(lines)} item(s), total {dispensing.total_amount:.2f}")
        return await self.repo.get_by_id(dispensing.id)

    async def dispense_to_patient(self, data: DispensingCreate, dispensed_by: str) -> Dispensing:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        return await self._dispense(
            DispensingType.PATIENT,
            data.items,
            dispensed_by,
            patient_id=data.patient_id,
            visit_id=data.visit_id,
            prescription_reference=data.prescription_reference,
            notes=data.notes,
        )

    async def dispense_direct(self, data: DirectDispensingCreate, dispensed_by: str) -> Dispensing:
        if data.patient_id and not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        return await self._dispense(
            DispensingType.DIRECT,
            data.items,
            dispensed_by,
            patient_id=data.patient_id,
            customer_name=data.customer_name,
            prescription_reference=data.prescription_reference,
            notes=data.notes,
        )

    async def get_dispensing(self, dispensing_id: str) -> Dispensing:
        dispensing = await self.repo.get_by_id(dispensing_id)
        if not dispensing:
            raise NotFoundError("Dispensing record not found")
        return dispensing

    async def list_dispensings(self, skip: int, limit: int, **filters) -> Tuple[List[Dispensing], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def ledger_rows(self, start=None, end=None) -> List[Dict[str, Any]]:
        rows = await self.repo.ledger(start, end)
        return [
            {
                "Date": row.dispensed_at.strftime("%Y-%m-%d %H:%M"),
                "Patient Name": (
                    f"{row.first_name} {row.last_name}" if row.first_name else (row.customer_name or "")
                ),
                "Patient ID": row.patient_number or "",
                "Medicine": row.item_name,
                "Quantity": row.quantity,
                "Issued By": (
                    f"{row.issuer_first_name} {row.issuer_last_name}" if row.issuer_first_name else ""
                ),
            }
            for row in rows
        ]
