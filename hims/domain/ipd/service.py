"""
IPD Domain Service

In-patient admissions. Admitting occupies the bed; transfer and discharge
send the vacated bed to cleaning.
"""

from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime, date
import logging
import random
import string

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from hims.domain.auth.repository import UserRepository
from hims.domain.ipd.models import Admission, AdmissionStatus, AdmissionVitals, NursingNote
from hims.domain.ipd.repository import AdmissionRepository
from hims.domain.patients.repository import PatientRepository
from hims.domain.theatres.models import DischargeReason
from hims.domain.wards.models import Bed, BedStatus, Ward
from hims.domain.wards.repository import BedRepository, WardRepository
from hims.api.v1.ipd.schemas import (
    AdmissionCreate,
    AdmissionDischarge,
    NursingNoteCreate,
    TransferRequest,
    VitalsCreate,
)
from hims.api.v1.theatres.schemas import DiagnosisRequest, MedicationRequest

logger = logging.getLogger(__name__)


class AdmissionService:
    """Service layer for in-patient admissions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = AdmissionRepository(db)
        self.patient_repo = PatientRepository(db)
        self.ward_repo = WardRepository(db)
        self.bed_repo = BedRepository(db)
        self.user_repo = UserRepository(db)

    def _generate_admission_number(self) -> str:
        """Format: IPD-YYYY-NNNNN"""
        suffix = ''.join(random.choices(string.digits, k=5))
        return f"IPD-{datetime.now().year}-{suffix}"

    async def _check_placement(self, ward_id: str, bed_id: str) -> Tuple[Ward, Bed]:
        ward = await self.ward_repo.get_by_id(ward_id)
        if not ward:
            raise NotFoundError("Ward not found")
        if not ward.is_active:
            raise BusinessLogicError(f"Ward {ward.ward_number} is not active")
        bed = await self.bed_repo.get_by_id(bed_id)
        if not bed:
            raise NotFoundError("Bed not found")
        if bed.ward_id != ward.id:
            raise BusinessLogicError("Bed does not belong to the selected ward")
        if bed.status != BedStatus.AVAILABLE.value:
            raise ConflictError(f"Bed {bed.bed_number} is {bed.status}")
        return ward, bed

    async def _check_staff(self, *user_ids: Optional[str]) -> None:
        for user_id in user_ids:
            if user_id and not await self.user_repo.get_by_id(user_id):
                raise NotFoundError("Staff member not found", details={"user_id": user_id})

    async def admit(self, data: AdmissionCreate, admitted_by: str) -> Admission:
        if not await self.patient_repo.get_by_id(data.patient_id):
            raise NotFoundError("Patient not found")
        current = await self.repo.active_for_patient(data.patient_id)
        if current:
            raise ConflictError(
                "Patient is already admitted",
                details={"admission_id": current.id, "admission_number": current.admission_number},
            )
        await self._check_staff(data.admitting_doctor_id, data.attending_physician_id, data.assigned_nurse_id)
        _, bed = await self._check_placement(data.ward_id, data.bed_id)

        admission_number = self._generate_admission_number()
        while await self.repo.get_by_number(admission_number):
            admission_number = self._generate_admission_number()

        values = data.model_dump(mode="json", exclude={"admission_date"})
        admission = await self.repo.create({
            **values,
            "admission_number": admission_number,
            "admission_date": data.admission_date or datetime.utcnow(),
            "admitting_doctor_id": data.admitting_doctor_id or admitted_by,
            "status": AdmissionStatus.ADMITTED.value,
            "diagnoses": [],
            "medications": [],
            "transfers": [],
        })
        bed.occupy(data.patient_id, admission.id)
        await self.db.commit()
        logger.info(f"Admitted patient {data.patient_id} as {admission_number} to bed {bed.bed_number}")
        return await self.repo.get_by_id(admission.id)

    async def get_admission(self, admission_id: str) -> Admission:
        admission = await self.repo.get_by_id(admission_id)
        if not admission:
            raise NotFoundError("Admission not found")
        return admission

    async def _get_active(self, admission_id: str) -> Admission:
        admission = await self.get_admission(admission_id)
        if not admission.is_active:
            raise BusinessLogicError(f"Admission is {admission.status}")
        return admission

    async def list_admissions(self, skip: int, limit: int, **filters) -> Tuple[List[Admission], int]:
        return await self.repo.get_all(skip=skip, limit=limit, **filters)

    async def record_vitals(self, admission_id: str, data: VitalsCreate, recorded_by: str) -> Admission:
        admission = await self._get_active(admission_id)
        self.db.add(AdmissionVitals(admission_id=admission.id, recorded_by=recorded_by, **data.model_dump()))
        await self.db.commit()
        return await self.repo.get_by_id(admission_id)

    async def add_nursing_note(self, admission_id: str, data: NursingNoteCreate, recorded_by: str) -> Admission:
        admission = await self._get_active(admission_id)
        self.db.add(NursingNote(
            admission_id=admission.id,
            note=data.note,
            category=data.category.value,
            recorded_by=recorded_by,
        ))
        await self.db.commit()
        return await self.repo.get_by_id(admission_id)

    async def add_diagnoses(self, admission_id: str, data: DiagnosisRequest, recorded_by: str) -> Admission:
        admission = await self._get_active(admission_id)
        stamp = datetime.utcnow().isoformat()
        entries = [{**d.model_dump(), "recorded_by": recorded_by, "recorded_at": stamp} for d in data.diagnoses]
        admission.diagnoses = list(admission.diagnoses or []) + entries
        await self.db.commit()
        return await self.repo.get_by_id(admission_id)

    async def add_medications(self, admission_id: str, data: MedicationRequest, recorded_by: str) -> Admission:
        admission = await self._get_active(admission_id)
        stamp = datetime.utcnow().isoformat()
        entries = [{**m.model_dump(), "recorded_by": recorded_by, "recorded_at": stamp} for m in data.medications]
        admission.medications = list(admission.medications or []) + entries
        await self.db.commit()
        return await self.repo.get_by_id(admission_id)

    async def transfer(self, admission_id: str, data: TransferRequest, transferred_by: str) -> Admission:
        admission = await self._get_active(admission_id)
        if data.bed_id == admission.bed_id:
            raise BusinessLogicError("Patient is already in this bed")
        new_ward, new_bed = await self._check_placement(data.ward_id, data.bed_id)

        old_bed = admission.bed
        admission.transfers = list(admission.transfers or []) + [{
            "from_ward_id": admission.ward_id,
            "from_bed_id": admission.bed_id,
            "to_ward_id": data.ward_id,
            "to_bed_id": data.bed_id,
            "reason": data.reason,
            "transferred_by": transferred_by,
            "transferred_at": datetime.utcnow().isoformat(),
        }]
        if old_bed is not None:
            old_bed.vacate()
        new_bed.occupy(admission.patient_id, admission.id)
        admission.ward = new_ward
        admission.bed = new_bed
        await self.db.commit()
        logger.info(f"Admission {admission.admission_number} transferred to bed {new_bed.bed_number}")
        return await self.repo.get_by_id(admission_id)

    async def discharge(self, admission_id: str, data: AdmissionDischarge) -> Admission:
        admission = await self._get_active(admission_id)
        discharge_date = data.discharge_date or datetime.utcnow()
        if discharge_date < admission.admission_date:
            raise BusinessLogicError("Discharge date cannot be before the admission date")

        admission.status = (
            AdmissionStatus.TRANSFERRED.value
            if data.discharge_reason == DischargeReason.TRANSFERRED
            else AdmissionStatus.DISCHARGED.value
        )
        admission.discharge_date = discharge_date
        admission.discharge_reason = data.discharge_reason.value
        admission.discharge_summary = data.discharge_summary
        if admission.bed is not None:
            admission.bed.vacate()
        await self.db.commit()
        logger.info(f"Admission {admission.admission_number} closed: {admission.status}")
        return await self.repo.get_by_id(admission_id)

    async def get_statistics(self) -> Dict[str, Any]:
        counts = await self.repo.count_by_status()
        month_start = datetime.combine(date.today().replace(day=1), datetime.min.time())
        stays = await self.repo.completed_stays()
        average = (
            round(sum((end - start).total_seconds() for start, end in stays) / len(stays) / 86400, 1)
            if stays else 0.0
        )
        return {
            "current_admissions": counts.get(AdmissionStatus.ADMITTED.value, 0),
            "status_counts": [{"status": s.value, "count": counts.get(s.value, 0)} for s in AdmissionStatus],
            "admissions_this_month": await self.repo.count_admitted_since(month_start),
            "average_length_of_stay_days": average,
        }
