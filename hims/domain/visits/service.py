"""
Visits Domain Service

Outpatient encounters: queueing, clinical documentation, orders and the
doctor work queue. A patient has at most one visit that is not completed.
"""

from typing import Optional, List, Tuple
from datetime import datetime
import logging
import random
import string

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from hims.domain.auth.models import UserRole
from hims.domain.auth.repository import UserRepository
from hims.domain.diagnostics.models import LabTest
from hims.domain.patients.repository import PatientRepository
from hims.domain.visits.models import Visit, VisitStatus, Prescription
from hims.domain.visits.repository import VisitRepository
from hims.api.v1.visits.schemas import (
    DiagnosisUpdate,
    LabOrderRequest,
    PaymentStatusUpdate,
    PrescriptionRequest,
    VisitCreate,
    VisitUpdate,
    VitalsUpdate,
)

logger = logging.getLogger(__name__)


class VisitService:
    """Service layer for outpatient visits"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = VisitRepository(db)
        self.patient_repo = PatientRepository(db)
        self.user_repo = UserRepository(db)

    def _generate_visit_number(self) -> str:
        """Format: VIS-YYYYMMDD-NNNN"""
        suffix = ''.join(random.choices(string.digits, k=4))
        return f"VIS-{datetime.now():%Y%m%d}-{suffix}"

    async def _check_doctor(self, doctor_id: str) -> None:
        doctor = await self.user_repo.get_by_id(doctor_id)
        if not doctor or doctor.role != UserRole.DOCTOR.value:
            raise NotFoundError("Doctor not found")

    async def get_visit(self, visit_id: str) -> Visit:
        visit = await self.repo.get_by_id(visit_id)
        if not visit:
            raise NotFoundError("Visit not found")
        return visit

    async def _get_open_visit(self, visit_id: str) -> Visit:
        visit = await self.get_visit(visit_id)
        if visit.is_completed:
            raise BusinessLogicError("Visit is already completed")
        return visit

    async def start_visit(self, data: VisitCreate) -> Visit:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        if data.doctor_id:
            await self._check_doctor(data.doctor_id)

        open_visit = await self.repo.get_open_visit(data.patient_id)
        if open_visit:
            raise ConflictError(
                "Patient already has an active visit",
                details={"visit_id": open_visit.id, "visit_number": open_visit.visit_number},
            )

        visit_number = self._generate_visit_number()
        while await self.repo.get_by_number(visit_number):
            visit_number = self._generate_visit_number()

        visit = await self.repo.create({
            **data.model_dump(mode="json"),
            "visit_number": visit_number,
            "status": VisitStatus.IN_QUEUE.value,
        })
        await self.db.commit()
        logger.info(f"Started visit {visit_number} for patient {data.patient_id}")
        return await self.repo.get_by_id(visit.id)

    async def list_visits(self, skip: int, limit: int, **filters) -> Tuple[List[Visit], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_visit(self, visit_id: str, data: VisitUpdate) -> Visit:
        visit = await self._get_open_visit(visit_id)
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if update_dict.get("doctor_id"):
            await self._check_doctor(update_dict["doctor_id"])
        await self.repo.update(visit, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def record_vitals(self, visit_id: str, data: VitalsUpdate, recorded_by: str) -> Visit:
        visit = await self._get_open_visit(visit_id)
        vitals = data.model_dump(exclude_none=True)
        vitals["recorded_by"] = recorded_by
        vitals["recorded_at"] = datetime.utcnow().isoformat()
        visit.vitals = vitals
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def record_diagnosis(self, visit_id: str, data: DiagnosisUpdate) -> Visit:
        visit = await self._get_open_visit(visit_id)
        visit.diagnosis = data.model_dump(exclude_none=True)
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def order_lab_tests(self, visit_id: str, data: LabOrderRequest, ordered_by: str) -> Visit:
        visit = await self._get_open_visit(visit_id)
        for item in data.tests:
            self.db.add(LabTest(
                patient_id=visit.patient_id,
                visit_id=visit.id,
                service_id=item.service_id,
                test_name=item.test_name,
                ordered_by=ordered_by,
            ))
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def add_prescriptions(self, visit_id: str, data: PrescriptionRequest, prescribed_by: str) -> Visit:
        await self._get_open_visit(visit_id)
        for item in data.items:
            self.db.add(Prescription(visit_id=visit_id, prescribed_by=prescribed_by, **item.model_dump()))
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def update_payment_status(self, visit_id: str, data: PaymentStatusUpdate) -> Visit:
        visit = await self.get_visit(visit_id)
        visit.payment_status = data.payment_status.value
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)

    async def end_visit(self, visit_id: str) -> Visit:
        visit = await self._get_open_visit(visit_id)
        now = datetime.utcnow()
        visit.status = VisitStatus.COMPLETED.value
        visit.started_at = visit.started_at or now
        visit.ended_at = now
        await self.db.commit()
        logger.info(f"Visit {visit.visit_number} completed")
        return await self.repo.get_by_id(visit_id)

    # Doctor queue

    async def doctor_queue(self, doctor_id: str) -> List[Visit]:
        return await self.repo.doctor_queue(doctor_id)

    async def start_consultation(self, visit_id: str, doctor_id: str) -> Visit:
        visit = await self.get_visit(visit_id)
        if visit.status != VisitStatus.IN_QUEUE.value:
            raise BusinessLogicError(f"Cannot start a visit that is {visit.status}")
        visit.status = VisitStatus.IN_PROGRESS.value
        visit.started_at = datetime.utcnow()
        if not visit.doctor_id:
            visit.doctor_id = doctor_id
        await self.db.commit()
        return await self.repo.get_by_id(visit_id)
