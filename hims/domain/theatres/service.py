"""
Theatres Domain Service

Operating theatres and the procedures booked into them. A theatre holds at
most one unfinished procedure at any moment.
"""

from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime, date, time, timedelta
import logging
import random
import string

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from hims.domain.auth.repository import UserRepository
from hims.domain.patients.repository import PatientRepository
from hims.domain.theatres.models import ProcedureStatus, Theatre, TheatreProcedure
from hims.domain.theatres.repository import ProcedureRepository, TheatreRepository
from hims.api.v1.theatres.schemas import (
    DiagnosisRequest,
    MedicationRequest,
    ProcedureCreate,
    ProcedureDischarge,
    ProcedureUpdate,
    TheatreCreate,
    TheatreUpdate,
)

logger = logging.getLogger(__name__)


class TheatreService:
    """Service layer for theatres"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = TheatreRepository(db)
        self.procedure_repo = ProcedureRepository(db)

    async def create_theatre(self, data: TheatreCreate) -> Theatre:
        if await self.repo.get_by_number(data.theatre_number):
            raise ConflictError("A theatre with this number already exists")
        theatre = await self.repo.create(data.model_dump(mode="json"))
        await self.db.commit()
        return await self.repo.get_by_id(theatre.id)

    async def get_theatre(self, theatre_id: str) -> Theatre:
        theatre = await self.repo.get_by_id(theatre_id)
        if not theatre:
            raise NotFoundError("Theatre not found")
        return theatre

    async def list_theatres(self, skip: int, limit: int, **filters) -> Tuple[List[Theatre], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_theatre(self, theatre_id: str, data: TheatreUpdate) -> Theatre:
        theatre = await self.get_theatre(theatre_id)
        update_dict = data.model_dump(mode="json", exclude_unset=True)
        if update_dict.get("theatre_number"):
            existing = await self.repo.get_by_number(update_dict["theatre_number"])
            if existing and existing.id != theatre_id:
                raise ConflictError("A theatre with this number already exists")
        await self.repo.update(theatre, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(theatre_id)

    async def delete_theatre(self, theatre_id: str) -> None:
        theatre = await self.get_theatre(theatre_id)
        try:
            await self.repo.delete(theatre)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Theatre has procedures; set it to inactive instead")

    async def get_statistics(self) -> Dict[str, Any]:
        theatres = await self.repo.count_by_status()
        today = datetime.combine(date.today(), time.min)
        return {
            "total_theatres": sum(theatres.values()),
            "theatres_by_status": theatres,
            "procedures_by_status": await self.procedure_repo.count_by_status(),
            "procedures_today": await self.procedure_repo.count_scheduled_between(today, today + timedelta(days=1)),
        }


class ProcedureService:
    """Service layer for theatre procedures"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ProcedureRepository(db)
        self.theatre_repo = TheatreRepository(db)
        self.patient_repo = PatientRepository(db)
        self.user_repo = UserRepository(db)

    def _generate_procedure_number(self) -> str:
        """Format: PRC-YYYYMMDD-NNNN"""
        suffix = ''.join(random.choices(string.digits, k=4))
        return f"PRC-{datetime.now():%Y%m%d}-{suffix}"

    async def _check_staff(self, user_id: Optional[str], label: str) -> None:
        if user_id and not await self.user_repo.get_by_id(user_id):
            raise NotFoundError(f"{label} not found")

    async def _check_slot(
        self,
        theatre_id: str,
        start: datetime,
        duration: int,
        exclude_id: Optional[str] = None
    ) -> None:
        theatre = await self.theatre_repo.get_by_id(theatre_id)
        if not theatre:
            raise NotFoundError("Theatre not found")
        if not theatre.is_active:
            raise BusinessLogicError(f"Theatre {theatre.theatre_number} is not active")
        clashes = await self.repo.find_overlapping(
            theatre_id, start, start + timedelta(minutes=duration), exclude_id
        )
        if clashes:
            raise ConflictError(
                "Theatre is already booked for this time",
                details={"procedures": [p.procedure_number for p in clashes]},
            )

    async def get_procedure(self, procedure_id: str) -> TheatreProcedure:
        procedure = await self.repo.get_by_id(procedure_id)
        if not procedure:
            raise NotFoundError("Procedure not found")
        return procedure

    async def _get_open_procedure(self, procedure_id: str) -> TheatreProcedure:
        procedure = await self.get_procedure(procedure_id)
        if procedure.is_closed:
            raise BusinessLogicError(f"Procedure is {procedure.status}")
        return procedure

    async def schedule(self, data: ProcedureCreate) -> TheatreProcedure:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        await self._check_staff(data.surgeon_id, "Surgeon")
        await self._check_staff(data.anaesthetist_id, "Anaesthetist")
        await self._check_slot(data.theatre_id, data.scheduled_date, data.estimated_duration_minutes)

        procedure_number = self._generate_procedure_number()
        while await self.repo.get_by_number(procedure_number):
            procedure_number = self._generate_procedure_number()

        procedure = await self.repo.create({
            **data.model_dump(),
            "procedure_number": procedure_number,
            "status": ProcedureStatus.SCHEDULED.value,
            "medications": [],
            "diagnoses": [],
        })
        await self.db.commit()
        logger.info(f"Procedure {procedure_number} scheduled in theatre {data.theatre_id}")
        return await self.repo.get_by_id(procedure.id)

    async def list_procedures(self, skip: int, limit: int, **filters) -> Tuple[List[TheatreProcedure], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def update_procedure(self, procedure_id: str, data: ProcedureUpdate) -> TheatreProcedure:
        procedure = await self._get_open_procedure(procedure_id)
        update_dict = data.model_dump(exclude_unset=True)

        if update_dict.get("status") == ProcedureStatus.COMPLETED:
            raise BusinessLogicError("Use discharge to complete a procedure")
        if update_dict.get("status"):
            update_dict["status"] = data.status.value
        await self._check_staff(update_dict.get("surgeon_id"), "Surgeon")
        await self._check_staff(update_dict.get("anaesthetist_id"), "Anaesthetist")

        if {"theatre_id", "scheduled_date", "estimated_duration_minutes"} & update_dict.keys():
            await self._check_slot(
                update_dict.get("theatre_id") or procedure.theatre_id,
                update_dict.get("scheduled_date") or procedure.scheduled_date,
                update_dict.get("estimated_duration_minutes") or procedure.estimated_duration_minutes,
                exclude_id=procedure.id,
            )

        await self.repo.update(procedure, update_dict)
        await self.db.commit()
        return await self.repo.get_by_id(procedure_id)

    async def add_medications(self, procedure_id: str, data: MedicationRequest, recorded_by: str) -> TheatreProcedure:
        procedure = await self._get_open_procedure(procedure_id)
        stamp = datetime.utcnow().isoformat()
        entries = [{**m.model_dump(), "recorded_by": recorded_by, "recorded_at": stamp} for m in data.medications]
        procedure.medications = list(procedure.medications or []) + entries
        await self.db.commit()
        return await self.repo.get_by_id(procedure_id)

    async def add_diagnoses(self, procedure_id: str, data: DiagnosisRequest, recorded_by: str) -> TheatreProcedure:
        procedure = await self._get_open_procedure(procedure_id)
        stamp = datetime.utcnow().isoformat()
        entries = [{**d.model_dump(), "recorded_by": recorded_by, "recorded_at": stamp} for d in data.diagnoses]
        procedure.diagnoses = list(procedure.diagnoses or []) + entries
        await self.db.commit()
        return await self.repo.get_by_id(procedure_id)

    async def discharge(self, procedure_id: str, data: ProcedureDischarge) -> TheatreProcedure:
        procedure = await self._get_open_procedure(procedure_id)
        procedure.status = ProcedureStatus.COMPLETED.value
        procedure.discharge_reason = data.discharge_reason.value
        procedure.discharge_summary = data.discharge_summary
        procedure.completed_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"Procedure {procedure.procedure_number} completed: {data.discharge_reason.value}")
        return await self.repo.get_by_id(procedure_id)
