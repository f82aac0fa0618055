from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import ConflictError, NotFoundError
from hims.domain.catalog.models import ItemPrice, PriceCategory, Service
from hims.domain.catalog.repository import ItemPriceRepository, ServiceRepository
from hims.api.v1.catalog.schemas import ItemPriceCreate, ItemPriceUpdate, ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class CatalogService:
    """Billable service catalog"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ServiceRepository(db)

    async def create_service(self, data: ServiceCreate) -> Service:
        if await self.repo.get_by_name(data.name):
            raise ConflictError("A service with this name already exists")
        service = await self.repo.create({**data.model_dump(mode="json"), "price": round(data.price, 2)})
        await self.db.commit()
        return await self.repo.get_by_id(service.id)

    async def get_service(self, service_id: str) -> Service:
        service = await self.repo.get_by_id(service_id)
        if not service:
            raise NotFoundError("Service not found")
        return service

    async def list_services(self, skip: int, limit: int, **filters) -> Tuple[List[Service], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def search(self, skip: int, limit: int, name: Optional[str], category: Optional[str]) -> Tuple[List[Service], int]:
        """Case-insensitive name fragment search over active services"""
        return await self.repo.get_all(skip=skip, limit=limit, name=name, category=category, is_active=True)

    async def update_service(self, service_id: str, data: ServiceUpdate) -> Service:
        service = await self.get_service(service_id)
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if update_dict.get("name"):
            existing = await self.repo.get_by_name(update_dict["name"])
            if existing and existing.id != service_id:
                raise ConflictError("A service with this name already exists")
        if update_dict.get("price") is not None:
            update_dict["price"] = round(update_dict["price"], 2)
        await self.repo.update(service, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(service_id)

    async def delete_service(self, service_id: str) -> None:
        service = await self.get_service(service_id)
        await self.repo.delete(service)
        await self.db.commit()


class ItemPricingService:
    """Per-payer price lists; every category always carries a price"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ItemPriceRepository(db)

    @staticmethod
    def _full_price_list(
        prices: Dict[PriceCategory, float], current: Optional[Dict[str, float]] = None
    ) -> Dict[str, float]:
        merged = {category.value: 0.0 for category in PriceCategory}
        merged.update(current or {})
        merged.update({PriceCategory(category).value: price for category, price in prices.items()})
        return merged

    async def _check_name(self, name: str, item_id: Optional[str] = None) -> None:
        existing = await self.repo.get_by_name(name)
        if existing and existing.id != item_id:
            raise ConflictError(f"A price list for {name} already exists")

    async def create_item(self, data: ItemPriceCreate) -> ItemPrice:
        await self._check_name(data.name)
        item = await self.repo.create({"name": data.name, "prices": self._full_price_list(data.prices)})
        await self.db.commit()
        logger.info(f"Item price added for {item.name}")
        return await self.repo.get_by_id(item.id)

    async def get_item(self, item_id: str) -> ItemPrice:
        item = await self.repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("Item price not found")
        return item

    async def list_items(self, skip: int, limit: int, search: Optional[str] = None) -> Tuple[List[ItemPrice], int]:
        return await self.repo.get_all(skip=skip, limit=limit, search=search)

    async def update_item(self, item_id: str, data: ItemPriceUpdate) -> ItemPrice:
        item = await self.get_item(item_id)
        update_dict: Dict[str, Any] = data.model_dump(exclude_unset=True)
        if "name" in update_dict:
            update_dict["name"] = update_dict["name"].strip()
            await self._check_name(update_dict["name"], item_id)
        if "prices" in update_dict:
            update_dict["prices"] = self._full_price_list(update_dict["prices"], item.prices)
        await self.repo.update(item, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(item_id)

    async def delete_item(self, item_id: str) -> None:
        item = await self.get_item(item_id)
        await self.repo.delete(item)
        await self.db.commit()
        logger.info(f"Item price removed for {item.name}")
