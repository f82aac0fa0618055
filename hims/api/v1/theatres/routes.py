from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, ok, paginated
from hims.api.v1.theatres.schemas import (
    DiagnosisRequest,
    MedicationRequest,
    ProcedureCreate,
    ProcedureDischarge,
    ProcedureResponse,
    ProcedureUpdate,
    TheatreCreate,
    TheatreResponse,
    TheatreStatistics,
    TheatreUpdate,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.theatres.service import ProcedureService, TheatreService
from hims.infrastructure.database import get_db

theatres_router = APIRouter(prefix="/theatres", tags=["Theatres"])
procedures_router = APIRouter(prefix="/theatre-procedures", tags=["Theatre Procedures"])

can_read = require_permissions(Permissions.THEATRES_READ)
can_write = require_permissions(Permissions.THEATRES_WRITE)


@theatres_router.get("", response_model=ListResponse[TheatreResponse])
async def list_theatres(
    theatre_type: Optional[str] = None,
    status: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    theatres, total = await TheatreService(db).list_theatres(
        paging.skip, paging.limit, theatre_type=theatre_type, status=status
    )
    return paginated([TheatreResponse.model_validate(t) for t in theatres], total, paging)


@theatres_router.get("/statistics", response_model=DataResponse[TheatreStatistics])
async def theatre_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await TheatreService(db).get_statistics())


@theatres_router.post("", response_model=DataResponse[TheatreResponse], status_code=status.HTTP_201_CREATED)
async def create_theatre(data: TheatreCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(TheatreResponse.model_validate(await TheatreService(db).create_theatre(data)))


@theatres_router.get("/{theatre_id}", response_model=DataResponse[TheatreResponse])
async def get_theatre(theatre_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(TheatreResponse.model_validate(await TheatreService(db).get_theatre(theatre_id)))


@theatres_router.put("/{theatre_id}", response_model=DataResponse[TheatreResponse])
async def update_theatre(
    theatre_id: str,
    data: TheatreUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(TheatreResponse.model_validate(await TheatreService(db).update_theatre(theatre_id, data)))


@theatres_router.delete("/{theatre_id}", response_model=DeleteResponse)
async def delete_theatre(theatre_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await TheatreService(db).delete_theatre(theatre_id)
    return deleted()


def _procedure(procedure) -> Dict[str, Any]:
    return ok(ProcedureResponse.model_validate(procedure))


@procedures_router.post("", response_model=DataResponse[ProcedureResponse], status_code=status.HTTP_201_CREATED)
async def schedule_procedure(data: ProcedureCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return _procedure(await ProcedureService(db).schedule(data))


@procedures_router.get("", response_model=ListResponse[ProcedureResponse])
async def list_procedures(
    status: Optional[str] = None,
    theatre_id: Optional[str] = None,
    patient_id: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    procedures, total = await ProcedureService(db).list_procedures(
        paging.skip, paging.limit, status=status, theatre_id=theatre_id, patient_id=patient_id
    )
    return paginated([ProcedureResponse.model_validate(p) for p in procedures], total, paging)


@procedures_router.get("/{procedure_id}", response_model=DataResponse[ProcedureResponse])
async def get_procedure(procedure_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return _procedure(await ProcedureService(db).get_procedure(procedure_id))


@procedures_router.put("/{procedure_id}", response_model=DataResponse[ProcedureResponse])
async def update_procedure(
    procedure_id: str,
    data: ProcedureUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _procedure(await ProcedureService(db).update_procedure(procedure_id, data))


@procedures_router.post("/{procedure_id}/medications", response_model=DataResponse[ProcedureResponse])
async def add_procedure_medications(
    procedure_id: str,
    data: MedicationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _procedure(await ProcedureService(db).add_medications(procedure_id, data, current_user["sub"]))


@procedures_router.post("/{procedure_id}/diagnosis", response_model=DataResponse[ProcedureResponse])
async def add_procedure_diagnosis(
    procedure_id: str,
    data: DiagnosisRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _procedure(await ProcedureService(db).add_diagnoses(procedure_id, data, current_user["sub"]))


@procedures_router.put("/{procedure_id}/discharge", response_model=DataResponse[ProcedureResponse])
async def discharge_procedure(
    procedure_id: str,
    data: ProcedureDischarge,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _procedure(await ProcedureService(db).discharge(procedure_id, data))
