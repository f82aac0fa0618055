from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, ListResponse, listing, ok, paginated
from hims.api.v1.visits.schemas import (
    DiagnosisUpdate,
    LabOrderRequest,
    PaymentStatusUpdate,
    PrescriptionRequest,
    VisitCreate,
    VisitResponse,
    VisitUpdate,
    VitalsUpdate,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.visits.service import VisitService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/visits", tags=["Visits"])
queue_router = APIRouter(prefix="/doctors", tags=["Doctor Queue"])

can_read = require_permissions(Permissions.VISITS_READ)
can_write = require_permissions(Permissions.VISITS_WRITE)
can_bill = require_permissions(Permissions.VISITS_WRITE, Permissions.BILLING_WRITE)


def _visit(visit) -> Dict[str, Any]:
    return ok(VisitResponse.model_validate(visit))


@router.post("", response_model=DataResponse[VisitResponse], status_code=status.HTTP_201_CREATED)
async def start_visit(data: VisitCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return _visit(await VisitService(db).start_visit(data))


@router.get("", response_model=ListResponse[VisitResponse])
async def list_visits(
    search: Optional[str] = None,
    status: Optional[str] = None,
    doctor_id: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    visits, total = await VisitService(db).list_visits(
        paging.skip, paging.limit, search=search, status=status, doctor_id=doctor_id
    )
    return paginated([VisitResponse.model_validate(v) for v in visits], total, paging)


@router.get("/active", response_model=ListResponse[VisitResponse])
async def list_active_visits(
    search: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    visits, total = await VisitService(db).list_visits(
        paging.skip, paging.limit, search=search, active_only=True
    )
    return paginated([VisitResponse.model_validate(v) for v in visits], total, paging)


@router.get("/{visit_id}", response_model=DataResponse[VisitResponse])
async def get_visit(visit_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return _visit(await VisitService(db).get_visit(visit_id))


@router.put("/{visit_id}", response_model=DataResponse[VisitResponse])
async def update_visit(
    visit_id: str,
    data: VisitUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).update_visit(visit_id, data))


@router.put("/{visit_id}/vitals", response_model=DataResponse[VisitResponse])
async def record_vitals(
    visit_id: str,
    data: VitalsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).record_vitals(visit_id, data, current_user["sub"]))


@router.put("/{visit_id}/diagnosis", response_model=DataResponse[VisitResponse])
async def record_diagnosis(
    visit_id: str,
    data: DiagnosisUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).record_diagnosis(visit_id, data))


@router.post("/{visit_id}/lab-orders", response_model=DataResponse[VisitResponse], status_code=status.HTTP_201_CREATED)
async def order_lab_tests(
    visit_id: str,
    data: LabOrderRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).order_lab_tests(visit_id, data, current_user["sub"]))


@router.post("/{visit_id}/prescriptions", response_model=DataResponse[VisitResponse], status_code=status.HTTP_201_CREATED)
async def add_prescriptions(
    visit_id: str,
    data: PrescriptionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).add_prescriptions(visit_id, data, current_user["sub"]))


@router.patch("/{visit_id}/payment-status", response_model=DataResponse[VisitResponse])
async def update_payment_status(
    visit_id: str,
    data: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_bill),
):
    return _visit(await VisitService(db).update_payment_status(visit_id, data))


@router.patch("/{visit_id}/end-visit", response_model=DataResponse[VisitResponse])
async def end_visit(visit_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return _visit(await VisitService(db).end_visit(visit_id))


@queue_router.get("/my-queue", response_model=ListResponse[VisitResponse])
async def my_queue(db: AsyncSession = Depends(get_db), current_user: Dict[str, Any] = Depends(can_read)):
    """Waiting and in-progress visits assigned to the current doctor"""
    visits = await VisitService(db).doctor_queue(current_user["sub"])
    return listing([VisitResponse.model_validate(v) for v in visits])


@queue_router.patch("/visits/{visit_id}/start", response_model=DataResponse[VisitResponse])
async def start_consultation(
    visit_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _visit(await VisitService(db).start_consultation(visit_id, current_user["sub"]))
