from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, listing, ok, paginated
from hims.api.v1.wards.schemas import (
    BedCreate,
    BedResponse,
    BedStatistics,
    BedUpdate,
    WardCreate,
    WardResponse,
    WardStatistics,
    WardUpdate,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.wards.service import BedService, WardService
from hims.infrastructure.database import get_db

wards_router = APIRouter(prefix="/wards", tags=["Wards"])
beds_router = APIRouter(prefix="/beds", tags=["Beds"])

can_read = require_permissions(Permissions.WARDS_READ)
can_write = require_permissions(Permissions.WARDS_WRITE)


@wards_router.get("", response_model=ListResponse[WardResponse])
async def list_wards(
    ward_type: Optional[str] = None,
    status: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    wards, total = await WardService(db).list_wards(paging.skip, paging.limit, ward_type=ward_type, status=status)
    return paginated([WardResponse.model_validate(w) for w in wards], total, paging)


@wards_router.get("/statistics", response_model=DataResponse[WardStatistics])
async def ward_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await WardService(db).get_statistics())


@wards_router.post("", response_model=DataResponse[WardResponse], status_code=status.HTTP_201_CREATED)
async def create_ward(data: WardCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(WardResponse.model_validate(await WardService(db).create_ward(data)))


@wards_router.get("/{ward_id}", response_model=DataResponse[WardResponse])
async def get_ward(ward_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(WardResponse.model_validate(await WardService(db).get_ward(ward_id)))


@wards_router.put("/{ward_id}", response_model=DataResponse[WardResponse])
async def update_ward(
    ward_id: str,
    data: WardUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(WardResponse.model_validate(await WardService(db).update_ward(ward_id, data)))


@wards_router.delete("/{ward_id}", response_model=DeleteResponse)
async def delete_ward(ward_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await WardService(db).delete_ward(ward_id)
    return deleted()


@beds_router.get("", response_model=ListResponse[BedResponse])
async def list_beds(
    ward_id: Optional[str] = None,
    status: Optional[str] = None,
    bed_type: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    beds, total = await BedService(db).list_beds(
        paging.skip, paging.limit, ward_id=ward_id, status=status, bed_type=bed_type
    )
    return paginated([BedResponse.model_validate(b) for b in beds], total, paging)


@beds_router.get("/statistics", response_model=DataResponse[BedStatistics])
async def bed_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await BedService(db).get_statistics())


@beds_router.get("/available/{ward_id}", response_model=ListResponse[BedResponse])
async def available_beds(ward_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return listing([BedResponse.model_validate(b) for b in await BedService(db).available_in_ward(ward_id)])


@beds_router.post("", response_model=DataResponse[BedResponse], status_code=status.HTTP_201_CREATED)
async def create_bed(data: BedCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(BedResponse.model_validate(await BedService(db).create_bed(data)))


@beds_router.get("/{bed_id}", response_model=DataResponse[BedResponse])
async def get_bed(bed_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(BedResponse.model_validate(await BedService(db).get_bed(bed_id)))


@beds_router.put("/{bed_id}", response_model=DataResponse[BedResponse])
async def update_bed(
    bed_id: str,
    data: BedUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(BedResponse.model_validate(await BedService(db).update_bed(bed_id, data)))


@beds_router.put("/{bed_id}/cleaned", response_model=DataResponse[BedResponse])
async def mark_bed_cleaned(bed_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(BedResponse.model_validate(await BedService(db).mark_cleaned(bed_id)))


@beds_router.delete("/{bed_id}", response_model=DeleteResponse)
async def delete_bed(bed_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await BedService(db).delete_bed(bed_id)
    return deleted()
