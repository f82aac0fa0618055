from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, ok, paginated
from hims.api.v1.downloads import ExportFormat, file_response
from hims.api.v1.patients.schemas import (
    PatientCreate,
    PatientResponse,
    PatientStatistics,
    PatientUpdate,
)
from hims.core.config import settings
from hims.core.permissions import Permissions, require_permissions
from hims.domain.patients.service import EXPORT_COLUMNS, PatientService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/patients", tags=["Patients"])

can_read = require_permissions(Permissions.PATIENTS_READ)
can_write = require_permissions(Permissions.PATIENTS_WRITE)


@router.get("", response_model=ListResponse[PatientResponse])
async def get_patients(
    search: Optional[str] = None,
    gender: Optional[str] = None,
    is_active: Optional[bool] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    """Get patients with filtering and pagination"""
    patients, total = await PatientService(db).get_patients(
        skip=paging.skip, limit=paging.limit, search=search, gender=gender, is_active=is_active
    )
    return paginated([PatientResponse.model_validate(p) for p in patients], total, paging)


@router.get("/search", response_model=ListResponse[PatientResponse])
async def search_patients(
    q: str = Query(..., min_length=1),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    """Search by name, patient number, phone or national id"""
    patients, total = await PatientService(db).get_patients(skip=paging.skip, limit=paging.limit, search=q)
    return paginated([PatientResponse.model_validate(p) for p in patients], total, paging)


@router.get("/statistics", response_model=DataResponse[PatientStatistics])
async def patient_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await PatientService(db).get_statistics())


@router.get("/export")
async def export_patients(
    format: ExportFormat = ExportFormat.CSV,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    rows = await PatientService(db).export_rows(settings.REPORT_ROW_LIMIT, search)
    return file_response(rows, format, "patients", "Patient Register", EXPORT_COLUMNS)


@router.post("", response_model=DataResponse[PatientResponse], status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    """Register a new patient"""
    patient = await PatientService(db).create_patient(patient_data)
    return ok(PatientResponse.model_validate(patient))


@router.get("/{patient_id}", response_model=DataResponse[PatientResponse])
async def get_patient(patient_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(PatientResponse.model_validate(await PatientService(db).get_patient(patient_id)))


@router.put("/{patient_id}", response_model=DataResponse[PatientResponse])
async def update_patient(
    patient_id: str,
    patient_data: PatientUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    patient = await PatientService(db).update_patient(patient_id, patient_data)
    return ok(PatientResponse.model_validate(patient))


@router.delete("/{patient_id}", response_model=DeleteResponse)
async def delete_patient(patient_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await PatientService(db).delete_patient(patient_id)
    return deleted()
