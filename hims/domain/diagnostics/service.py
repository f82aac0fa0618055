from typing import Optional, List, Tuple
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, NotFoundError
from hims.domain.diagnostics.models import LabTest, LabTestStatus, RadiologyRequest, RadiologyStatus
from hims.domain.diagnostics.repository import LabTestRepository, RadiologyRepository
from hims.domain.patients.repository import PatientRepository
from hims.domain.visits.models import Visit
from hims.api.v1.diagnostics.schemas import LabTestCreate, LabTestUpdate, RadiologyCreate, RadiologyResult

logger = logging.getLogger(__name__)


class LabService:
    """Lab test ordering and result entry"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = LabTestRepository(db)
        self.patient_repo = PatientRepository(db)

    async def check_order_target(self, patient_id: str, visit_id: Optional[str]) -> None:
        if not await self.patient_repo.get_by_id(patient_id):
            raise NotFoundError("Patient not found")
        if visit_id:
            visit = await self.db.get(Visit, visit_id)
            if not visit or visit.patient_id != patient_id:
                raise NotFoundError("Visit not found")
            if visit.is_completed:
                raise BusinessLogicError("Cannot order tests on a completed visit")

    async def order_test(self, data: LabTestCreate, ordered_by: Optional[str]) -> LabTest:
        await self.check_order_target(data.patient_id, data.visit_id)
        lab_test = await self.repo.create({**data.model_dump(), "ordered_by": ordered_by})
        await self.db.commit()
        return await self.repo.get_by_id(lab_test.id)

    async def get_test(self, test_id: str) -> LabTest:
        lab_test = await self.repo.get_by_id(test_id)
        if not lab_test:
            raise NotFoundError("Lab test not found")
        return lab_test

    async def list_tests(self, skip: int, limit: int, **filters) -> Tuple[List[LabTest], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_test(self, test_id: str, data: LabTestUpdate) -> LabTest:
        lab_test = await self.get_test(test_id)
        if lab_test.status == LabTestStatus.COMPLETED.value:
            raise BusinessLogicError("Lab test is already completed")

        update_dict = data.model_dump(exclude_unset=True)
        new_status = update_dict.pop("status", None)
        if new_status is not None:
            new_status = LabTestStatus(new_status)
        elif update_dict.get("result"):
            new_status = LabTestStatus.COMPLETED

        if new_status == LabTestStatus.COMPLETED:
            if not (update_dict.get("result") or lab_test.result):
                raise BusinessLogicError("A result is required to complete a lab test")
            update_dict["completed_at"] = datetime.utcnow()
        if new_status is not None:
            update_dict["status"] = new_status.value

        await self.repo.update(lab_test, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(test_id)


class RadiologyService:
    """Imaging requests and reports"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = RadiologyRepository(db)
        self.lab = LabService(db)

    async def create_request(self, data: RadiologyCreate, requested_by: Optional[str]) -> RadiologyRequest:
        await self.lab.check_order_target(data.patient_id, data.visit_id)
        request = await self.repo.create({**data.model_dump(), "requested_by": requested_by})
        await self.db.commit()
        return await self.repo.get_by_id(request.id)

    async def list_requests(self, skip: int, limit: int, **filters) -> Tuple[List[RadiologyRequest], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def get_request(self, request_id: str) -> RadiologyRequest:
        request = await self.repo.get_by_id(request_id)
        if not request:
            raise NotFoundError("Radiology request not found")
        return request

    async def fulfil(self, request_id: str, data: RadiologyResult) -> RadiologyRequest:
        request = await self.get_request(request_id)
        if request.status == RadiologyStatus.COMPLETED.value:
            raise BusinessLogicError("Radiology request is already completed")

        await self.repo.update(request, {
            "findings": data.findings,
            "impression": data.impression,
            "status": RadiologyStatus.COMPLETED.value,
            "completed_at": datetime.utcnow(),
        })
        await self.db.commit()
        logger.info(f"Radiology request {request_id} reported")
        return await self.repo.get_by_id(request_id)
