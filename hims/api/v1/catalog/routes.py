from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.catalog.schemas import (
    ItemPriceCreate,
    ItemPriceResponse,
    ItemPriceUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, ok, paginated
from hims.core.permissions import Permissions, require_permissions
from hims.domain.catalog.service import CatalogService, ItemPricingService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/services", tags=["Services"])
pricing_router = APIRouter(prefix="/item-pricing", tags=["Item Pricing"])

can_read = require_permissions(Permissions.SERVICES_READ)
can_write = require_permissions(Permissions.SERVICES_WRITE)
# Pharmacy keeps its own price lists alongside the service catalog
can_read_prices = require_permissions(Permissions.SERVICES_READ, Permissions.PHARMACY_READ, Permissions.BILLING_READ)
can_write_prices = require_permissions(Permissions.SERVICES_WRITE, Permissions.PHARMACY_WRITE)


@router.get("", response_model=ListResponse[ServiceResponse])
async def list_services(
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    services, total = await CatalogService(db).list_services(
        paging.skip, paging.limit, category=category, is_active=is_active
    )
    return paginated([ServiceResponse.model_validate(s) for s in services], total, paging)


@router.get("/search", response_model=ListResponse[ServiceResponse])
async def search_services(
    name: Optional[str] = None,
    category: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read),
):
    services, total = await CatalogService(db).search(paging.skip, paging.limit, name, category)
    return paginated([ServiceResponse.model_validate(s) for s in services], total, paging)


@router.post("", response_model=DataResponse[ServiceResponse], status_code=status.HTTP_201_CREATED)
async def create_service(data: ServiceCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    return ok(ServiceResponse.model_validate(await CatalogService(db).create_service(data)))


@router.get("/{service_id}", response_model=DataResponse[ServiceResponse])
async def get_service(service_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read)):
    return ok(ServiceResponse.model_validate(await CatalogService(db).get_service(service_id)))


@router.put("/{service_id}", response_model=DataResponse[ServiceResponse])
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write),
):
    return ok(ServiceResponse.model_validate(await CatalogService(db).update_service(service_id, data)))


@router.delete("/{service_id}", response_model=DeleteResponse)
async def delete_service(service_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write)):
    await CatalogService(db).delete_service(service_id)
    return deleted()


@pricing_router.get("", response_model=ListResponse[ItemPriceResponse])
async def list_item_prices(
    search: Optional[str] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_read_prices),
):
    items, total = await ItemPricingService(db).list_items(paging.skip, paging.limit, search)
    return paginated([ItemPriceResponse.model_validate(i) for i in items], total, paging)


@pricing_router.post("", response_model=DataResponse[ItemPriceResponse], status_code=status.HTTP_201_CREATED)
async def create_item_price(
    data: ItemPriceCreate, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write_prices)
):
    return ok(ItemPriceResponse.model_validate(await ItemPricingService(db).create_item(data)))


@pricing_router.get("/{item_id}", response_model=DataResponse[ItemPriceResponse])
async def get_item_price(item_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_read_prices)):
    return ok(ItemPriceResponse.model_validate(await ItemPricingService(db).get_item(item_id)))


@pricing_router.put("/{item_id}", response_model=DataResponse[ItemPriceResponse])
async def update_item_price(
    item_id: str,
    data: ItemPriceUpdate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(can_write_prices),
):
    return ok(ItemPriceResponse.model_validate(await ItemPricingService(db).update_item(item_id, data)))


@pricing_router.delete("/{item_id}", response_model=DeleteResponse)
async def delete_item_price(item_id: str, db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(can_write_prices)):
    await ItemPricingService(db).delete_item(item_id)
    return deleted()
