from typing import List, Tuple, Dict, Any
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from hims.domain.wards.models import Bed, BedStatus, Ward, WardStatus, WardType
from hims.domain.wards.repository import BedRepository, WardRepository
from hims.api.v1.wards.schemas import BedCreate, BedUpdate, WardCreate, WardUpdate

logger = logging.getLogger(__name__)


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class WardService:
    """Service layer for wards"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = WardRepository(db)

    async def create_ward(self, data: WardCreate) -> Ward:
        if await self.repo.get_by_number(data.ward_number):
            raise ConflictError("A ward with this number already exists")
        ward = await self.repo.create(data.model_dump(mode="json"))
        await self.db.commit()
        logger.info(f"Ward {data.ward_number} created")
        return await self.repo.get_by_id(ward.id)

    async def get_ward(self, ward_id: str) -> Ward:
        ward = await self.repo.get_by_id(ward_id)
        if not ward:
            raise NotFoundError("Ward not found")
        return ward

    async def list_wards(self, skip: int, limit: int, **filters) -> Tuple[List[Ward], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_ward(self, ward_id: str, data: WardUpdate) -> Ward:
        ward = await self.get_ward(ward_id)
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if update_dict.get("ward_number"):
            existing = await self.repo.get_by_number(update_dict["ward_number"])
            if existing and existing.id != ward_id:
                raise ConflictError("A ward with this number already exists")
        if update_dict.get("capacity") is not None and update_dict["capacity"] < ward.total_beds:
            raise BusinessLogicError(f"Capacity cannot be below the {ward.total_beds} beds in this ward")
        await self.repo.update(ward, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(ward_id)

    async def delete_ward(self, ward_id: str) -> None:
        ward = await self.get_ward(ward_id)
        if ward.occupied_beds:
            raise ConflictError("Cannot delete a ward with occupied beds")
        try:
            for bed in list(ward.beds):
                await self.db.delete(bed)
            await self.repo.delete(ward)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Ward is referenced by admission records; deactivate it instead")
        logger.info(f"Ward {ward.ward_number} deleted")

    async def get_statistics(self) -> Dict[str, Any]:
        wards = await self.repo.list_all()
        by_type = {t.value: 0 for t in WardType}
        for ward in wards:
            by_type[ward.ward_type] = by_type.get(ward.ward_type, 0) + 1
        return {
            "total_wards": len(wards),
            "active_wards": sum(1 for w in wards if w.status == WardStatus.ACTIVE.value),
            "by_type": by_type,
            "total_capacity": sum(w.capacity for w in wards),
            "wards": [
                {
                    "ward_id": w.id,
                    "name": w.name,
                    "capacity": w.capacity,
                    "total_beds": w.total_beds,
                    "occupied_beds": w.occupied_beds,
                    "available_beds": w.available_beds,
                    "occupancy_rate": _rate(w.occupied_beds, w.total_beds),
                }
                for w in wards
            ],
        }


class BedService:
    """Service layer for beds"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = BedRepository(db)
        self.ward_repo = WardRepository(db)

    async def create_bed(self, data: BedCreate) -> Bed:
        ward = await self.ward_repo.get_by_id(data.ward_id)
        if not ward:
            raise NotFoundError("Ward not found")
        if ward.total_beds >= ward.capacity:
            raise BusinessLogicError(f"Ward {ward.ward_number} is at its capacity of {ward.capacity} beds")
        if await self.repo.get_in_ward(data.ward_id, data.bed_number):
            raise ConflictError("A bed with this number already exists in the ward")
        bed = await self.repo.create({**data.model_dump(mode="json"), "status": BedStatus.AVAILABLE.value})
        await self.db.commit()
        return await self.repo.get_by_id(bed.id)

    async def get_bed(self, bed_id: str) -> Bed:
        bed = await self.repo.get_by_id(bed_id)
        if not bed:
            raise NotFoundError("Bed not found")
        return bed

    async def list_beds(self, skip: int, limit: int, **filters) -> Tuple[List[Bed], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def available_in_ward(self, ward_id: str) -> List[Bed]:
        if not await self.ward_repo.get_by_id(ward_id):
            raise NotFoundError("Ward not found")
        return await self.repo.available_in_ward(ward_id)

    async def update_bed(self, bed_id: str, data: BedUpdate) -> Bed:
        bed = await self.get_bed(bed_id)
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if "status" in update_dict:
            if bed.is_occupied and update_dict["status"] != BedStatus.OCCUPIED.value:
                raise ConflictError("Occupied beds are released by discharging or transferring the patient")
            if not bed.is_occupied and update_dict["status"] == BedStatus.OCCUPIED.value:
                raise BusinessLogicError("Beds are occupied by admitting a patient")
        if update_dict.get("bed_number"):
            existing = await self.repo.get_in_ward(bed.ward_id, update_dict["bed_number"])
            if existing and existing.id != bed_id:
                raise ConflictError("A bed with this number already exists in the ward")
        await self.repo.update(bed, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(bed_id)

    async def mark_cleaned(self, bed_id: str) -> Bed:
        bed = await self.get_bed(bed_id)
        if bed.status != BedStatus.CLEANING.value:
            raise BusinessLogicError(f"Only beds being cleaned can be marked clean (bed is {bed.status})")
        bed.status = BedStatus.AVAILABLE.value
        await self.db.commit()
        return await self.repo.get_by_id(bed_id)

    async def delete_bed(self, bed_id: str) -> None:
        bed = await self.get_bed(bed_id)
        if bed.is_occupied:
            raise ConflictError("Cannot delete an occupied bed")
        try:
            await self.repo.delete(bed)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Bed is referenced by admission records; set it to maintenance instead")

    async def get_statistics(self) -> Dict[str, Any]:
        counts = await self.repo.count_by_status()
        by_status = {s.value: counts.get(s.value, 0) for s in BedStatus}
        total = sum(counts.values())
        return {
            "total_beds": total,
            "by_status": by_status,
            "occupancy_rate": _rate(by_status[BedStatus.OCCUPIED.value], total),
        }
