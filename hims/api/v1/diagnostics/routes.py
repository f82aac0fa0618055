from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, ListResponse, ok, paginated
from hims.api.v1.diagnostics.schemas import (
    LabTestCreate,
    LabTestResponse,
    LabTestUpdate,
    RadiologyCreate,
    RadiologyResponse,
    RadiologyResult,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.diagnostics.service import LabService, RadiologyService
from hims.infrastructure.database import get_db

lab_router = APIRouter(prefix="/lab-tests", tags=["Laboratory"])
radiology_router = APIRouter(prefix="/radiology", tags=["Radiology"])

can_read = require_permissions(Permissions.DIAGNOSTICS_READ)
can_write = require_permissions(Permissions.DIAGNOSTICS_WRITE)


@lab_router.get("", response_model=ListResponse[LabTestResponse])
async def list_lab_tests(
    status: Optional[str] = None,
    patient_id: Optional[str] = None,
    visit_id: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    tests, total = await LabService(db).list_tests(
        paging.skip, paging.limit, status=status, patient_id=patient_id, visit_id=visit_id
    )
    return paginated([LabTestResponse.model_validate(t) for t in tests], total, paging)


@lab_router.post("", response_model=DataResponse[LabTestResponse], status_code=status.HTTP_201_CREATED)
async def order_lab_test(
    data: LabTestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    lab_test = await LabService(db).order_test(data, current_user["sub"])
    return ok(LabTestResponse.model_validate(lab_test))


@lab_router.get("/{test_id}", response_model=DataResponse[LabTestResponse])
async def get_lab_test(test_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(LabTestResponse.model_validate(await LabService(db).get_test(test_id)))


@lab_router.put("/{test_id}", response_model=DataResponse[LabTestResponse])
async def update_lab_test(
    test_id: str,
    data: LabTestUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    """Record progress or the result of a lab test"""
    return ok(LabTestResponse.model_validate(await LabService(db).update_test(test_id, data)))


@radiology_router.get("", response_model=ListResponse[RadiologyResponse])
async def list_radiology_requests(
    status: Optional[str] = None,
    patient_id: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    requests, total = await RadiologyService(db).list_requests(
        paging.skip, paging.limit, status=status, patient_id=patient_id
    )
    return paginated([RadiologyResponse.model_validate(r) for r in requests], total, paging)


@radiology_router.post("", response_model=DataResponse[RadiologyResponse], status_code=status.HTTP_201_CREATED)
async def create_radiology_request(
    data: RadiologyCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    request = await RadiologyService(db).create_request(data, current_user["sub"])
    return ok(RadiologyResponse.model_validate(request))


@radiology_router.get("/{request_id}", response_model=DataResponse[RadiologyResponse])
async def get_radiology_request(request_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(RadiologyResponse.model_validate(await RadiologyService(db).get_request(request_id)))


@radiology_router.put("/{request_id}", response_model=DataResponse[RadiologyResponse])
async def fulfil_radiology_request(
    request_id: str,
    data: RadiologyResult,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(RadiologyResponse.model_validate(await RadiologyService(db).fulfil(request_id, data)))
