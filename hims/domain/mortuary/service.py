"""
Mortuary Domain Service

Cabinets, registered bodies and the release workflow
(Pending -> Approved -> Released, or Cancelled before completion).
"""

from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime, date
import logging
import random
import string

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from hims.domain.mortuary.models import (
    Cabinet,
    CabinetStatus,
    Corpse,
    CorpseStatus,
    Release,
    ReleaseStatus,
)
from hims.domain.mortuary.repository import CabinetRepository, CorpseRepository, ReleaseRepository
from hims.domain.patients.repository import PatientRepository
from hims.api.v1.mortuary.schemas import (
    CabinetCreate,
    CabinetUpdate,
    CorpseCreate,
    CorpseUpdate,
    ReleaseCreate,
    ReleaseUpdate,
)

logger = logging.getLogger(__name__)


class CabinetService:
    """Service layer for mortuary cabinets"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = CabinetRepository(db)

    async def create_cabinet(self, data: CabinetCreate) -> Cabinet:
        if await self.repo.get_by_number(data.number):
            raise ConflictError("A cabinet with this number already exists")
        cabinet = await self.repo.create({**data.model_dump(mode="json"), "next_maintenance": data.next_maintenance})
        await self.db.commit()
        logger.info(f"Cabinet {data.number} created")
        return await self.repo.get_by_id(cabinet.id)

    async def get_cabinet(self, cabinet_id: str) -> Cabinet:
        cabinet = await self.repo.get_by_id(cabinet_id)
        if not cabinet:
            raise NotFoundError("Cabinet not found")
        return cabinet

    async def list_cabinets(self, **filters) -> List[Cabinet]:
        return await self.repo.get_all(**filters)

    async def update_cabinet(self, cabinet_id: str, data: CabinetUpdate) -> Cabinet:
        cabinet = await self.get_cabinet(cabinet_id)
        update_dict = data.model_dump(exclude_unset=True)
        if update_dict.get("number"):
            existing = await self.repo.get_by_number(update_dict["number"])
            if existing and existing.id != cabinet_id:
                raise ConflictError("A cabinet with this number already exists")
        if update_dict.get("capacity") is not None and update_dict["capacity"] < cabinet.occupancy:
            raise BusinessLogicError(
                f"Capacity cannot be below the current occupancy of {cabinet.occupancy}"
            )
        if update_dict.get("status"):
            update_dict["status"] = data.status.value
        await self.repo.update(cabinet, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(cabinet_id)

    async def delete_cabinet(self, cabinet_id: str) -> None:
        cabinet = await self.get_cabinet(cabinet_id)
        if cabinet.occupancy:
            raise ConflictError("Cannot delete a cabinet that holds bodies")
        for corpse in list(cabinet.corpses):
            corpse.cabinet = None
        await self.repo.delete(cabinet)
        await self.db.commit()
        logger.info(f"Cabinet {cabinet.number} deleted")

    async def release_cabinet(self, cabinet_id: str) -> Tuple[Cabinet, List[Corpse]]:
        """Detach every body still assigned to the cabinet"""
        cabinet = await self.get_cabinet(cabinet_id)
        released = list(cabinet.occupants)
        for corpse in list(cabinet.corpses):
            corpse.cabinet = None
        await self.db.commit()
        logger.info(f"Cabinet {cabinet.number} released {len(released)} bodies")
        return await self.repo.get_by_id(cabinet_id), released

    async def get_stats(self) -> Dict[str, Any]:
        cabinets = await self.repo.get_all()
        by_status = {status.value: 0 for status in CabinetStatus}
        for cabinet in cabinets:
            by_status[cabinet.status] = by_status.get(cabinet.status, 0) + 1
        return {
            "total": len(cabinets),
            "by_status": by_status,
            "total_capacity": sum(c.capacity for c in cabinets),
            "occupied": sum(c.occupancy for c in cabinets),
            "available": sum(c.available_space for c in cabinets if c.is_active),
        }


class CorpseService:
    """Service layer for registered bodies"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = CorpseRepository(db)
        self.cabinet_repo = CabinetRepository(db)
        self.patient_repo = PatientRepository(db)

    def _generate_corpse_number(self) -> str:
        """Format: MRT-YYYY-NNNN"""
        suffix = ''.join(random.choices(string.digits, k=4))
        return f"MRT-{datetime.now().year}-{suffix}"

    async def _resolve_cabinet(self, cabinet_id: Optional[str], cabinet_number: Optional[str] = None) -> Optional[Cabinet]:
        if cabinet_id:
            cabinet = await self.cabinet_repo.get_by_id(cabinet_id)
        elif cabinet_number:
            cabinet = await self.cabinet_repo.get_by_number(cabinet_number)
        else:
            return None
        if not cabinet:
            raise NotFoundError("Cabinet not found")
        return cabinet

    def _check_space(self, cabinet: Cabinet, corpse_id: Optional[str] = None) -> None:
        if not cabinet.is_active:
            raise ConflictError(f"Cabinet {cabinet.number} is not active")
        others = [c for c in cabinet.occupants if c.id != corpse_id]
        if len(others) >= cabinet.capacity:
            raise ConflictError(f"Cabinet {cabinet.number} is full")

    async def register(self, data: CorpseCreate, registered_by: str) -> Corpse:
        if data.patient_id and not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        cabinet = await self._resolve_cabinet(data.cabinet_id, data.cabinet_number)
        if cabinet:
            self._check_space(cabinet)

        corpse_number = self._generate_corpse_number()
        while await self.repo.get_by_number(corpse_number):
            corpse_number = self._generate_corpse_number()

        corpse = Corpse(
            **data.model_dump(exclude={"cabinet_id", "cabinet_number", "sex"}),
            sex=data.sex.value,
            corpse_number=corpse_number,
            status=CorpseStatus.IN_STORAGE.value,
            registered_by=registered_by,
        )
        corpse.cabinet = cabinet
        self.db.add(corpse)
        await self.db.commit()
        logger.info(f"Registered body {corpse_number}")
        return await self.repo.get_by_id(corpse.id)

    async def get_corpse(self, corpse_id: str) -> Corpse:
        corpse = await self.repo.get_by_id(corpse_id)
        if not corpse:
            raise NotFoundError("Record not found")
        return corpse

    async def list_corpses(self, skip: int, limit: int, **filters) -> Tuple[List[Corpse], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_corpse(self, corpse_id: str, data: CorpseUpdate) -> Corpse:
        corpse = await self.get_corpse(corpse_id)
        if corpse.status == CorpseStatus.RELEASED.value:
            raise BusinessLogicError("Released records cannot be changed")

        update_dict = data.model_dump(exclude_unset=True)
        birth = update_dict.get("date_of_birth", corpse.date_of_birth)
        death = update_dict.get("date_of_death", corpse.date_of_death)
        if birth and death and death < birth:
            raise ValidationError("Date of death cannot be before date of birth")

        if "cabinet_id" in update_dict:
            cabinet = await self._resolve_cabinet(update_dict.pop("cabinet_id"))
            if cabinet and cabinet.id != corpse.cabinet_id:
                self._check_space(cabinet, corpse.id)
            corpse.cabinet = cabinet
        if update_dict.get("sex"):
            update_dict["sex"] = data.sex.value

        await self.repo.update(corpse, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(corpse_id)

    async def get_statistics(self) -> Dict[str, int]:
        counts = await self.repo.count_by_status()
        month_start = datetime.combine(date.today().replace(day=1), datetime.min.time())
        registered = await self.repo.count(self.repo.query().where(Corpse.created_at >= month_start))
        return {
            "total": sum(counts.values()),
            "in_storage": counts.get(CorpseStatus.IN_STORAGE.value, 0),
            "pending_release": counts.get(CorpseStatus.PENDING_RELEASE.value, 0),
            "released": counts.get(CorpseStatus.RELEASED.value, 0),
            "registered_this_month": registered,
        }


class ReleaseService:
    """Service layer for the release workflow"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ReleaseRepository(db)
        self.corpse_repo = CorpseRepository(db)

    async def get_release(self, release_id: str) -> Release:
        release = await self.repo.get_by_id(release_id)
        if not release:
            raise NotFoundError("Release not found")
        return release

    async def list_releases(self, skip: int, limit: int, **filters) -> Tuple[List[Release], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def create_release(self, data: ReleaseCreate, requested_by: str) -> Release:
        corpse = await self.corpse_repo.get_by_id(data.corpse_id)
        if not corpse:
            raise NotFoundError("Record not found")
        if corpse.status == CorpseStatus.RELEASED.value:
            raise ConflictError("This body has already been released")
        existing = await self.repo.open_for_corpse(corpse.id)
        if existing:
            raise ConflictError("A release is already in progress", details={"release_id": existing.id})

        release = await self.repo.create({
            **data.model_dump(mode="json"),
            "release_date": data.release_date,
            "status": ReleaseStatus.PENDING.value,
            "requested_by": requested_by,
        })
        corpse.status = CorpseStatus.PENDING_RELEASE.value
        await self.db.commit()
        logger.info(f"Release requested for {corpse.corpse_number}")
        return await self.repo.get_by_id(release.id)

    async def update_release(self, release_id: str, data: ReleaseUpdate) -> Release:
        release = await self.get_release(release_id)
        if release.status != ReleaseStatus.PENDING.value:
            raise BusinessLogicError(f"Cannot edit a release that is {release.status}")
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if "release_date" in update_dict:
            update_dict["release_date"] = data.release_date
        await self.repo.update(release, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(release_id)

    async def approve(self, release_id: str, approved_by: str) -> Release:
        release = await self.get_release(release_id)
        if release.status != ReleaseStatus.PENDING.value:
            raise BusinessLogicError(f"Cannot approve a release that is {release.status}")
        release.status = ReleaseStatus.APPROVED.value
        release.approved_by = approved_by
        release.approved_at = datetime.utcnow()
        await self.db.commit()
        return await self.repo.get_by_id(release_id)

    async def complete(self, release_id: str) -> Release:
        release = await self.get_release(release_id)
        if release.status != ReleaseStatus.APPROVED.value:
            raise BusinessLogicError(f"Cannot complete a release that is {release.status}")
        release.status = ReleaseStatus.RELEASED.value
        release.completed_at = datetime.utcnow()
        corpse = release.corpse
        corpse.status = CorpseStatus.RELEASED.value
        corpse.cabinet = None
        await self.db.commit()
        logger.info(f"Body {corpse.corpse_number} released")
        return await self.repo.get_by_id(release_id)

    async def cancel(self, release_id: str, reason: str) -> Release:
        release = await self.get_release(release_id)
        if release.status not in (ReleaseStatus.PENDING.value, ReleaseStatus.APPROVED.value):
            raise BusinessLogicError(f"Cannot cancel a release that is {release.status}")
        release.status = ReleaseStatus.CANCELLED.value
        release.cancellation_reason = reason
        release.cancelled_at = datetime.utcnow()
        release.corpse.status = CorpseStatus.IN_STORAGE.value
        await self.db.commit()
        return await self.repo.get_by_id(release_id)
