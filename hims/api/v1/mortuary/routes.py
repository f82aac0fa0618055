from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, listing, ok, paginated
from hims.api.v1.mortuary.schemas import (
    CabinetCreate,
    CabinetResponse,
    CabinetStats,
    CabinetUpdate,
    CorpseCreate,
    CorpseResponse,
    CorpseStatistics,
    CorpseSummary,
    CorpseUpdate,
    ReleaseCancel,
    ReleaseCreate,
    ReleasedCabinet,
    ReleaseResponse,
    ReleaseUpdate,
)
from hims.core.permissions import Permissions, require_permissions
from hims.domain.mortuary.models import ReleaseStatus
from hims.domain.mortuary.service import CabinetService, CorpseService, ReleaseService
from hims.infrastructure.database import get_db

cabinets_router = APIRouter(prefix="/cabinets", tags=["Mortuary"])
corpses_router = APIRouter(prefix="/corpses", tags=["Mortuary"])
releases_router = APIRouter(prefix="/releases", tags=["Mortuary"])

can_read = require_permissions(Permissions.MORTUARY_READ)
can_write = require_permissions(Permissions.MORTUARY_WRITE)


# Cabinets

@cabinets_router.get("", response_model=ListResponse[CabinetResponse])
async def list_cabinets(
    status: Optional[str] = None,
    location: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    cabinets = await CabinetService(db).list_cabinets(status=status, location=location)
    return listing([CabinetResponse.model_validate(c) for c in cabinets])


@cabinets_router.get("/stats", response_model=DataResponse[CabinetStats])
async def cabinet_stats(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await CabinetService(db).get_stats())


@cabinets_router.post("", response_model=DataResponse[CabinetResponse], status_code=status.HTTP_201_CREATED)
async def create_cabinet(data: CabinetCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(CabinetResponse.model_validate(await CabinetService(db).create_cabinet(data)))


@cabinets_router.get("/{cabinet_id}", response_model=DataResponse[CabinetResponse])
async def get_cabinet(cabinet_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(CabinetResponse.model_validate(await CabinetService(db).get_cabinet(cabinet_id)))


@cabinets_router.put("/{cabinet_id}", response_model=DataResponse[CabinetResponse])
async def update_cabinet(
    cabinet_id: str,
    data: CabinetUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(CabinetResponse.model_validate(await CabinetService(db).update_cabinet(cabinet_id, data)))


@cabinets_router.delete("/{cabinet_id}", response_model=DeleteResponse)
async def delete_cabinet(cabinet_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await CabinetService(db).delete_cabinet(cabinet_id)
    return deleted()


@cabinets_router.post("/{cabinet_id}/release", response_model=DataResponse[ReleasedCabinet])
async def release_cabinet(cabinet_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    cabinet, released = await CabinetService(db).release_cabinet(cabinet_id)
    return ok(ReleasedCabinet(
        cabinet=CabinetResponse.model_validate(cabinet),
        released=[CorpseSummary.model_validate(c) for c in released],
    ))


# Corpses

@corpses_router.get("", response_model=ListResponse[CorpseResponse])
async def list_corpses(
    status: Optional[str] = None,
    search: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    corpses, total = await CorpseService(db).list_corpses(paging.skip, paging.limit, status=status, search=search)
    return paginated([CorpseResponse.model_validate(c) for c in corpses], total, paging)


@corpses_router.get("/statistics", response_model=DataResponse[CorpseStatistics])
async def corpse_statistics(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(await CorpseService(db).get_statistics())


@corpses_router.post("", response_model=DataResponse[CorpseResponse], status_code=status.HTTP_201_CREATED)
async def register_corpse(
    data: CorpseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return ok(CorpseResponse.model_validate(await CorpseService(db).register(data, current_user["sub"])))


@corpses_router.get("/{corpse_id}", response_model=DataResponse[CorpseResponse])
async def get_corpse(corpse_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(CorpseResponse.model_validate(await CorpseService(db).get_corpse(corpse_id)))


@corpses_router.put("/{corpse_id}", response_model=DataResponse[CorpseResponse])
async def update_corpse(
    corpse_id: str,
    data: CorpseUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(CorpseResponse.model_validate(await CorpseService(db).update_corpse(corpse_id, data)))


# Releases

def _release(release) -> Dict[str, Any]:
    return ok(ReleaseResponse.model_validate(release))


@releases_router.get("", response_model=ListResponse[ReleaseResponse])
async def list_releases(
    status: Optional[str] = None,
    release_type: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    releases, total = await ReleaseService(db).list_releases(
        paging.skip, paging.limit, status=status, release_type=release_type
    )
    return paginated([ReleaseResponse.model_validate(r) for r in releases], total, paging)


@releases_router.get("/pending", response_model=ListResponse[ReleaseResponse])
async def pending_releases(
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    releases, total = await ReleaseService(db).list_releases(
        paging.skip, paging.limit, status=ReleaseStatus.PENDING.value
    )
    return paginated([ReleaseResponse.model_validate(r) for r in releases], total, paging)


@releases_router.post("", response_model=DataResponse[ReleaseResponse], status_code=status.HTTP_201_CREATED)
async def create_release(
    data: ReleaseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _release(await ReleaseService(db).create_release(data, current_user["sub"]))


@releases_router.get("/{release_id}", response_model=DataResponse[ReleaseResponse])
async def get_release(release_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return _release(await ReleaseService(db).get_release(release_id))


@releases_router.put("/{release_id}", response_model=DataResponse[ReleaseResponse])
async def update_release(
    release_id: str,
    data: ReleaseUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _release(await ReleaseService(db).update_release(release_id, data))


@releases_router.post("/{release_id}/approve", response_model=DataResponse[ReleaseResponse])
async def approve_release(
    release_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(can_write),
):
    return _release(await ReleaseService(db).approve(release_id, current_user["sub"]))


@releases_router.post("/{release_id}/complete", response_model=DataResponse[ReleaseResponse])
async def complete_release(release_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return _release(await ReleaseService(db).complete(release_id))


@releases_router.post("/{release_id}/cancel", response_model=DataResponse[ReleaseResponse])
async def cancel_release(
    release_id: str,
    data: ReleaseCancel,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return _release(await ReleaseService(db).cancel(release_id, data.reason))
