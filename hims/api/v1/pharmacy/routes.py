from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import DateRange, PaginationParams, date_range_params, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, listing, ok, paginated
from hims.api.v1.downloads import ExportFormat, file_response
from hims.api.v1.pharmacy.schemas import (
    DirectDispensingCreate,
    DispensingCreate,
    DispensingResponse,
    ImportResult,
    StockItemCreate,
    StockItemResponse,
    StockItemUpdate,
    StockMovementResponse,
    StockTakeRequest,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.pharmacy.models import DispensingType
from hims.domain.pharmacy.service import (
    LEDGER_COLUMNS,
    STOCK_EXPORT_COLUMNS,
    DispensingService,
    StockService,
)
from hims.infrastructure.database import get_db

stock_router = APIRouter(prefix="/stock", tags=["Stock"])
dispensing_router = APIRouter(prefix="/dispensing", tags=["Dispensing"])
direct_router = APIRouter(prefix="/direct-dispensing", tags=["Dispensing"])

# Pharmacy and store staff share the stock ledger
can_read_stock = require_permissions(Permissions.PHARMACY_READ, Permissions.STORE_READ)
can_write_stock = require_permissions(Permissions.PHARMACY_WRITE, Permissions.STORE_WRITE)
can_read = require_permissions(Permissions.PHARMACY_READ)
can_dispense = require_permissions(Permissions.PHARMACY_WRITE)


def _item(item) -> Dict[str, Any]:
    return ok(StockItemResponse.model_validate(item))


# Stock

@stock_router.get("", response_model=ListResponse[StockItemResponse])
async def list_stock(
    search: Optional[str] = None,
    item_type: Optional[str] = None,
    location: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read_stock),
):
    items, total = await StockService(db).list_items(
        paging.skip, paging.limit, search=search, item_type=item_type, location=location
    )
    return paginated([StockItemResponse.model_validate(i) for i in items], total, paging)


@stock_router.get("/search", response_model=ListResponse[StockItemResponse])
async def search_stock(
    name: str = "",
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read_stock),
):
    items, total = await StockService(db).list_items(paging.skip, paging.limit, search=name or None)
    return paginated([StockItemResponse.model_validate(i) for i in items], total, paging)


@stock_router.get("/low", response_model=ListResponse[StockItemResponse])
async def low_stock(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read_stock)):
    return listing([StockItemResponse.model_validate(i) for i in await StockService(db).low_stock()])


@stock_router.get("/export")
async def export_stock(
    format: ExportFormat = ExportFormat.XLSX,
    location: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read_stock),
):
    rows = await StockService(db).export_rows(location)
    return file_response(rows, format, "store_balance", "Store Balance", STOCK_EXPORT_COLUMNS)


@stock_router.post("/import", response_model=DataResponse[ImportResult])
async def import_stock(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write_stock),
):
    content = await file.read()
    return ok(await StockService(db).import_items(content, current_user["sub"]))


@stock_router.post("/stock-take", response_model=ListResponse[StockMovementResponse])
async def stock_take(
    data: StockTakeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write_stock),
):
    movements = await StockService(db).stock_take(data, current_user["sub"])
    return listing([StockMovementResponse.model_validate(m) for m in movements])


@stock_router.post("", response_model=DataResponse[StockItemResponse], status_code=status.HTTP_201_CREATED)
async def create_stock_item(
    data: StockItemCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write_stock),
):
    return _item(await StockService(db).create_item(data, current_user["sub"]))


@stock_router.get("/{item_id}", response_model=DataResponse[StockItemResponse])
async def get_stock_item(item_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read_stock)):
    return _item(await StockService(db).get_item(item_id))


@stock_router.put("/{item_id}", response_model=DataResponse[StockItemResponse])
async def update_stock_item(
    item_id: str,
    data: StockItemUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write_stock),
):
    return _item(await StockService(db).update_item(item_id, data, current_user["sub"]))


@stock_router.delete("/{item_id}", response_model=DeleteResponse)
async def delete_stock_item(item_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write_stock)):
    await StockService(db).delete_item(item_id)
    return deleted()


@stock_router.get("/{item_id}/movements", response_model=ListResponse[StockMovementResponse])
async def stock_movements(
    item_id: str,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read_stock),
):
    movements, total = await StockService(db).movements(item_id, paging.skip, paging.limit)
    return paginated([StockMovementResponse.model_validate(m) for m in movements], total, paging)


# Dispensing

@dispensing_router.post("", response_model=DataResponse[DispensingResponse], status_code=status.HTTP_201_CREATED)
async def dispense(
    data: DispensingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_dispense),
):
    return ok(DispensingResponse.model_validate(
        await DispensingService(db).dispense_to_patient(data, current_user["sub"])
    ))


@dispensing_router.get("", response_model=ListResponse[DispensingResponse])
async def list_dispensings(
    search: Optional[str] = None,
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    records, total = await DispensingService(db).list_dispensings(
        paging.skip, paging.limit, dispensing_type=DispensingType.PATIENT.value,
        search=search, start=start, end=end,
    )
    return paginated([DispensingResponse.model_validate(r) for r in records], total, paging)


@dispensing_router.get("/ledger")
async def dispensing_ledger(
    format: ExportFormat = ExportFormat.PDF,
    dates: DateRange = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    rows = await DispensingService(db).ledger_rows(start, end)
    return file_response(rows, format, "dispensing_ledger", "Dispensing Ledger", LEDGER_COLUMNS)


@dispensing_router.get("/{dispensing_id}", response_model=DataResponse[DispensingResponse])
async def get_dispensing(dispensing_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(DispensingResponse.model_validate(await DispensingService(db).get_dispensing(dispensing_id)))


@direct_router.post("", response_model=DataResponse[DispensingResponse], status_code=status.HTTP_201_CREATED)
async def dispense_direct(
    data: DirectDispensingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_dispense),
):
    return ok(DispensingResponse.model_validate(
        await DispensingService(db).dispense_direct(data, current_user["sub"])
    ))


@direct_router.get("", response_model=ListResponse[DispensingResponse])
async def list_direct_dispensings(
    search: Optional[str] = None,
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    records, total = await DispensingService(db).list_dispensings(
        paging.skip, paging.limit, dispensing_type=DispensingType.DIRECT.value,
        search=search, start=start, end=end,
    )
    return paginated([DispensingResponse.model_validate(r) for r in records], total, paging)
