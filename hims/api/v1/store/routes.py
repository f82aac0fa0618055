from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, ListResponse, ok, paginated
from hims.api.v1.store.schemas import (
    IncomingItemResponse,
    IncomingItemUpdate,
    ItemReceiveCreate,
    ReceivedItemResponse,
    RequisitionCreate,
    RequisitionResponse,
    RequisitionUpdate,
    SupplierInvoiceCreate,
    SupplierInvoiceResponse,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.store.models import IncomingStatus
from hims.domain.store.service import IncomingItemService, ReceivingService, RequisitionService
from hims.infrastructure.database import get_db

requisitions_router = APIRouter(prefix="/requisitions", tags=["Store"])
receiving_router = APIRouter(prefix="/item-receiving", tags=["Store"])
incoming_router = APIRouter(prefix="/incoming-items", tags=["Store"])

# Departments raise requisitions; the store decides them
can_request = require_permissions(Permissions.STORE_WRITE, Permissions.PHARMACY_WRITE)
can_read = require_permissions(Permissions.STORE_READ, Permissions.PHARMACY_READ)
can_write = require_permissions(Permissions.STORE_WRITE)


@requisitions_router.get("", response_model=ListResponse[RequisitionResponse])
async def list_requisitions(
    status: Optional[str] = None,
    from_department: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    requisitions, total = await RequisitionService(db).list_requisitions(
        paging.skip, paging.limit, status=status, from_department=from_department
    )
    return paginated([RequisitionResponse.model_validate(r) for r in requisitions], total, paging)


@requisitions_router.post("", response_model=DataResponse[RequisitionResponse], status_code=status.HTTP_201_CREATED)
async def create_requisition(
    data: RequisitionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_request),
):
    return ok(RequisitionResponse.model_validate(
        await RequisitionService(db).create_requisition(data, current_user["sub"])
    ))


@requisitions_router.get("/{requisition_id}", response_model=DataResponse[RequisitionResponse])
async def get_requisition(requisition_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(RequisitionResponse.model_validate(await RequisitionService(db).get_requisition(requisition_id)))


@requisitions_router.put("/{requisition_id}", response_model=DataResponse[RequisitionResponse])
async def update_requisition(
    requisition_id: str,
    data: RequisitionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return ok(RequisitionResponse.model_validate(
        await RequisitionService(db).update_requisition(requisition_id, data, current_user["sub"])
    ))


@receiving_router.get("/invoices", response_model=ListResponse[SupplierInvoiceResponse])
async def list_supplier_invoices(
    search: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    invoices, total = await ReceivingService(db).list_invoices(paging.skip, paging.limit, search)
    return paginated([SupplierInvoiceResponse.model_validate(i) for i in invoices], total, paging)


@receiving_router.post("/invoices", response_model=DataResponse[SupplierInvoiceResponse], status_code=status.HTTP_201_CREATED)
async def create_supplier_invoice(
    data: SupplierInvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return ok(SupplierInvoiceResponse.model_validate(
        await ReceivingService(db).create_invoice(data, current_user["sub"])
    ))


@receiving_router.get("/invoices/{invoice_id}", response_model=DataResponse[SupplierInvoiceResponse])
async def get_supplier_invoice(invoice_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(SupplierInvoiceResponse.model_validate(await ReceivingService(db).get_invoice(invoice_id)))


@receiving_router.post("", response_model=DataResponse[ReceivedItemResponse], status_code=status.HTTP_201_CREATED)
async def receive_item(
    data: ItemReceiveCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return ok(ReceivedItemResponse.model_validate(
        await ReceivingService(db).receive_item(data, current_user["sub"])
    ))


@incoming_router.get("", response_model=ListResponse[IncomingItemResponse])
async def list_incoming_items(
    status: IncomingStatus = IncomingStatus.PENDING,
    department: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    received = None if status == IncomingStatus.ALL else status == IncomingStatus.RECEIVED
    items, total = await IncomingItemService(db).list_items(
        paging.skip, paging.limit, received=received, department=department
    )
    return paginated([IncomingItemResponse.model_validate(i) for i in items], total, paging)


@incoming_router.get("/{item_id}", response_model=DataResponse[IncomingItemResponse])
async def get_incoming_item(item_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(IncomingItemResponse.model_validate(await IncomingItemService(db).get_item(item_id)))


@incoming_router.put("/{item_id}", response_model=DataResponse[IncomingItemResponse])
async def receive_incoming_item(
    item_id: str,
    data: IncomingItemUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_request),
):
    return ok(IncomingItemResponse.model_validate(
        await IncomingItemService(db).mark_received(item_id, data, current_user["sub"])
    ))
