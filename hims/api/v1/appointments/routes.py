"""
Appointments API Routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import DateRange, PaginationParams, date_range_params, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, ok, paginated
from hims.api.v1.appointments.schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.appointments.service import AppointmentService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/appointments", tags=["Appointments"])

can_read = require_permissions(Permissions.APPOINTMENTS_READ)
can_write = require_permissions(Permissions.APPOINTMENTS_WRITE)


@router.get("", response_model=ListResponse[AppointmentResponse])
async def list_appointments(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    status: Optional[str] = None,
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    AppointmentService.validate_range(start, end)
    appointments, total = await AppointmentService(db).list_appointments(
        paging.skip, paging.limit,
        patient_id=patient_id, doctor_id=doctor_id, status=status, start=start, end=end,
    )
    return paginated([AppointmentResponse.model_validate(a) for a in appointments], total, paging)


@router.post("/check-conflicts", response_model=DataResponse[ConflictCheckResponse])
async def check_conflicts(
    data: ConflictCheckRequest,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    conflicts = await AppointmentService(db).check_conflicts(
        data.doctor_id, data.appointment_date, data.duration_minutes, data.exclude_id
    )
    return ok(ConflictCheckResponse(
        has_conflict=bool(conflicts),
        conflicts=[AppointmentResponse.model_validate(a) for a in conflicts],
    ))


@router.post("", response_model=DataResponse[AppointmentResponse], status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    appointment = await AppointmentService(db).create_appointment(data)
    return ok(AppointmentResponse.model_validate(appointment))


@router.get("/{appointment_id}", response_model=DataResponse[AppointmentResponse])
async def get_appointment(appointment_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(AppointmentResponse.model_validate(await AppointmentService(db).get_appointment(appointment_id)))


@router.put("/{appointment_id}", response_model=DataResponse[AppointmentResponse])
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    appointment = await AppointmentService(db).update_appointment(appointment_id, data)
    return ok(AppointmentResponse.model_validate(appointment))


@router.patch("/{appointment_id}/status", response_model=DataResponse[AppointmentResponse])
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    appointment = await AppointmentService(db).update_status(appointment_id, data)
    return ok(AppointmentResponse.model_validate(appointment))


@router.delete("/{appointment_id}", response_model=DeleteResponse)
async def delete_appointment(appointment_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await AppointmentService(db).delete_appointment(appointment_id)
    return deleted()
