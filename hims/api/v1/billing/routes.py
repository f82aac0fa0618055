from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import DateRange, PaginationParams, date_range_params, pagination_params
from hims.api.v1.billing.schemas import (
    BillableItem,
    BillingStatistics,
    CancelInvoiceRequest,
    InvoiceCreate,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
)
from hims.api.v1.common import DataResponse, ListResponse, listing, ok, paginated
from hims.core.permissions import Permissions, get_current_user, require_permissions
from hims.domain.billing.service import BillingService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/billing", tags=["Billing"])

can_read = require_permissions(Permissions.BILLING_READ)
can_write = require_permissions(Permissions.BILLING_WRITE)


def _invoice(invoice) -> Dict[str, Any]:
    return ok(InvoiceResponse.model_validate(invoice))


@router.post("/invoices", response_model=DataResponse[InvoiceResponse], status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _invoice(await BillingService(db).create_invoice(data, current_user["sub"]))


@router.get("/invoices", response_model=ListResponse[InvoiceResponse])
async def list_invoices(
    status: Optional[str] = None,
    patient_id: Optional[str] = None,
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    invoices, total = await BillingService(db).list_invoices(
        paging.skip, paging.limit, status=status, patient_id=patient_id, start=start, end=end
    )
    return paginated([InvoiceResponse.model_validate(i) for i in invoices], total, paging)


@router.get("/invoices/{invoice_id}", response_model=DataResponse[InvoiceResponse])
async def get_invoice(invoice_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return _invoice(await BillingService(db).get_invoice(invoice_id))


@router.post("/invoices/{invoice_id}/cancel", response_model=DataResponse[InvoiceResponse])
async def cancel_invoice(
    invoice_id: str,
    data: Optional[CancelInvoiceRequest] = None,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    reason = data.reason if data else None
    return _invoice(await BillingService(db).cancel_invoice(invoice_id, reason))


@router.post("/invoices/{invoice_id}/payments", response_model=DataResponse[InvoiceResponse])
async def add_payment(
    invoice_id: str,
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _invoice(await BillingService(db).add_payment(invoice_id, data, current_user["sub"]))


@router.get("/payments", response_model=ListResponse[PaymentResponse])
async def list_payments(
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    payments, total = await BillingService(db).list_payments(paging.skip, paging.limit, start=start, end=end)
    return paginated([PaymentResponse.model_validate(p) for p in payments], total, paging)


@router.get("/statistics", response_model=DataResponse[BillingStatistics])
async def billing_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    stats = await BillingService(db).get_statistics()
    stats["payments"] = [PaymentResponse.model_validate(p) for p in stats["payments"]]
    return ok(BillingStatistics(**stats))


@router.get("/billable-items", response_model=ListResponse[BillableItem])
async def billable_items(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(get_current_user),
):
    return listing(await BillingService(db).billable_items(search))
