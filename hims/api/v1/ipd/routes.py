from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import DateRange, PaginationParams, date_range_params, pagination_params
from hims.api.v1.common import DataResponse, ListResponse, ok, paginated
from hims.api.v1.ipd.schemas import (
    AdmissionCreate,
    AdmissionDischarge,
    AdmissionResponse,
    AdmissionStatistics,
    NursingNoteCreate,
    TransferRequest,
    VitalsCreate,
)
from hims.api.v1.theatres.schemas import DiagnosisRequest, MedicationRequest
from hims.core.permissions import Permissions, require_permissions
from hims.domain.ipd.service import AdmissionService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/ipd-records", tags=["IPD"])

can_read = require_permissions(Permissions.IPD_READ)
can_write = require_permissions(Permissions.IPD_WRITE)


def _admission(admission) -> Dict[str, Any]:
    return ok(AdmissionResponse.model_validate(admission))


@router.post("", response_model=DataResponse[AdmissionResponse], status_code=status.HTTP_201_CREATED)
async def admit_patient(
    data: AdmissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).admit(data, current_user["sub"]))


@router.get("", response_model=ListResponse[AdmissionResponse])
async def list_admissions(
    status: Optional[str] = None,
    patient_id: Optional[str] = None,
    ward_id: Optional[str] = None,
    dates: DateRange = Depends(date_range_params),
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    start, end = dates.bounds()
    admissions, total = await AdmissionService(db).list_admissions(
        paging.skip, paging.limit, status=status, patient_id=patient_id, ward_id=ward_id, start=start, end=end
    )
    return paginated([AdmissionResponse.model_validate(a) for a in admissions], total, paging)


@router.get("/statistics", response_model=DataResponse[AdmissionStatistics])
async def admission_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await AdmissionService(db).get_statistics())


@router.get("/{admission_id}", response_model=DataResponse[AdmissionResponse])
async def get_admission(admission_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return _admission(await AdmissionService(db).get_admission(admission_id))


@router.post("/{admission_id}/vitals", response_model=DataResponse[AdmissionResponse])
async def record_vitals(
    admission_id: str,
    data: VitalsCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).record_vitals(admission_id, data, current_user["sub"]))


@router.post("/{admission_id}/nursing-notes", response_model=DataResponse[AdmissionResponse])
async def add_nursing_note(
    admission_id: str,
    data: NursingNoteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).add_nursing_note(admission_id, data, current_user["sub"]))


@router.post("/{admission_id}/diagnosis", response_model=DataResponse[AdmissionResponse])
async def add_diagnosis(
    admission_id: str,
    data: DiagnosisRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).add_diagnoses(admission_id, data, current_user["sub"]))


@router.post("/{admission_id}/medications", response_model=DataResponse[AdmissionResponse])
async def add_medications(
    admission_id: str,
    data: MedicationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).add_medications(admission_id, data, current_user["sub"]))


@router.put("/{admission_id}/transfer", response_model=DataResponse[AdmissionResponse])
async def transfer_patient(
    admission_id: str,
    data: TransferRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).transfer(admission_id, data, current_user["sub"]))


@router.put("/{admission_id}/discharge", response_model=DataResponse[AdmissionResponse])
async def discharge_patient(
    admission_id: str,
    data: AdmissionDischarge,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _admission(await AdmissionService(db).discharge(admission_id, data))
