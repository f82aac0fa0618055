"""
Reports Domain Service

Tabular reports over the operational tables and the dashboard counters.
Every report is a fixed query filtered by an optional date range and
capped at ``REPORT_ROW_LIMIT`` rows. A row builder turns one record into
zero or more value tuples matching the report's columns.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from datetime import date, datetime, time, timedelta
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.config import settings
from hims.core.exceptions import NotFoundError
from hims.domain.appointments.models import Appointment, AppointmentStatus
from hims.domain.billing.models import OPEN_INVOICE_STATUSES, Invoice, InvoiceStatus, Payment
from hims.domain.billing.repository import PaymentRepository
from hims.domain.diagnostics.models import LabTest
from hims.domain.ipd.models import Admission, AdmissionStatus
from hims.domain.ipd.repository import AdmissionRepository
from hims.domain.mortuary.models import Corpse, CorpseStatus, Release
from hims.domain.mortuary.repository import CorpseRepository
from hims.domain.patients.models import Patient
from hims.domain.patients.repository import PatientRepository
from hims.domain.pharmacy.models import Dispensing, DispensingType, StockItem
from hims.domain.pharmacy.repository import StockItemRepository
from hims.domain.reports.repository import ReportRepository
from hims.domain.store.models import Requisition, SupplierInvoice
from hims.domain.theatres.models import ProcedureStatus, TheatreProcedure
from hims.domain.visits.models import Visit, VisitStatus
from hims.domain.wards.models import BedStatus
from hims.domain.wards.repository import BedRepository

logger = logging.getLogger(__name__)

REPORT_CATEGORIES = [
    ("patient", "Patient Reports"),
    ("clinical", "Clinical Reports"),
    ("ipd", "IPD Reports"),
    ("financial", "Financial Reports"),
    ("pharmacy", "Pharmacy Reports"),
    ("theatre", "Theatre Reports"),
    ("store", "Store Reports"),
    ("mortuary", "Mortuary Reports"),
]

Row = Tuple[Any, ...]


@dataclass(frozen=True)
class ReportDefinition:
    id: str
    name: str
    description: str
    category: str
    model: Any
    date_column: Any
    columns: Tuple[str, ...]
    rows: Callable[[Any], Iterable[Row]]
    criteria: Tuple[Any, ...] = ()


def _name(person) -> Optional[str]:
    return person.full_name if person is not None else None


def _number(patient) -> Optional[str]:
    return patient.patient_number if patient is not None else None


PATIENT_COLUMNS = (
    "Patient Number", "Name", "Gender", "Date of Birth", "Phone",
    "Insurance Provider", "Insurance Number", "Registered",
)


def _patient_rows(p: Patient) -> Iterable[Row]:
    yield (p.patient_number, p.full_name, p.gender, p.date_of_birth, p.phone,
           p.insurance_provider, p.insurance_number, p.created_at)


VISIT_COLUMNS = (
    "Visit Number", "Patient", "Patient Number", "Doctor", "Type", "Status",
    "Payment Status", "Chief Complaint", "Date",
)


def _visit_rows(v: Visit) -> Iterable[Row]:
    yield (v.visit_number, _name(v.patient), _number(v.patient), _name(v.doctor), v.visit_type,
           v.status, v.payment_status, v.chief_complaint, v.created_at)


PRESCRIPTION_COLUMNS = ("Visit Number", "Patient", "Medication", "Dosage", "Frequency", "Duration", "Quantity", "Date")


def _prescription_rows(v: Visit) -> Iterable[Row]:
    for p in v.prescriptions:
        yield (v.visit_number, _name(v.patient), p.medication, p.dosage, p.frequency,
               p.duration, p.quantity, p.created_at)


LAB_COLUMNS = ("Test", "Patient", "Status", "Result", "Ordered", "Completed")


def _lab_rows(t: LabTest) -> Iterable[Row]:
    yield (t.test_name, _name(t.patient), t.status, t.result, t.created_at, t.completed_at)


ADMISSION_COLUMNS = (
    "Admission Number", "Patient", "Patient Number", "Ward", "Bed", "Type", "Status",
    "Admitted", "Discharged", "Discharge Reason", "Length of Stay (days)",
)


def _admission_rows(a: Admission) -> Iterable[Row]:
    yield (a.admission_number, _name(a.patient), _number(a.patient),
           a.ward.name if a.ward else None, a.bed.bed_number if a.bed else None,
           a.admission_type, a.status, a.admission_date, a.discharge_date,
           a.discharge_reason, a.length_of_stay_days)


INVOICE_COLUMNS = ("Invoice Number", "Patient", "Total", "Paid", "Balance", "Status", "Due Date", "Created")


def _invoice_rows(i: Invoice) -> Iterable[Row]:
    yield (i.invoice_number, _name(i.patient), i.total_amount, i.amount_paid, i.balance_due,
           i.current_status, i.due_date, i.created_at)


PAYMENT_COLUMNS = ("Patient", "Amount", "Method", "Reference", "Paid At")


def _payment_rows(p: Payment) -> Iterable[Row]:
    yield (_name(p.patient), p.amount, p.method, p.reference, p.paid_at)


DISPENSING_COLUMNS = ("Date", "Recipient", "Medicine", "Quantity", "Total", "Issued By")


def _dispensing_rows(d: Dispensing) -> Iterable[Row]:
    for item in d.items:
        yield (d.dispensed_at, d.recipient_name, item.item_name, item.quantity, item.total, _name(d.dispenser))


STOCK_COLUMNS = (
    "Item", "Type", "Strength", "Quantity", "Reorder Level", "Unit Cost", "Selling Price", "Expiry", "Location",
)


def _stock_rows(s: StockItem) -> Iterable[Row]:
    yield (s.name, s.item_type, s.strength, s.quantity, s.reorder_level, s.unit_cost,
           s.selling_price, s.expiry_date, s.location)


PROCEDURE_COLUMNS = ("Procedure Number", "Procedure", "Patient", "Theatre", "Surgeon", "Scheduled", "Status")


def _procedure_rows(p: TheatreProcedure) -> Iterable[Row]:
    yield (p.procedure_number, p.procedure_name, _name(p.patient),
           p.theatre.name if p.theatre else None, _name(p.surgeon), p.scheduled_date, p.status)


REQUISITION_COLUMNS = ("Date", "Department", "Requisition Status", "Medicine", "Requested", "Issued", "Item Status")


def _requisition_rows(r: Requisition) -> Iterable[Row]:
    for item in r.items:
        yield (r.requisition_date, r.from_department, r.status, item.medicine,
               item.quantity, item.issued_qty, item.status)


RECEIVED_COLUMNS = ("Invoice Number", "Invoice Date", "Supplier", "Medicine", "Quantity", "Unit Price", "Received To")


def _received_rows(s: SupplierInvoice) -> Iterable[Row]:
    for item in s.items:
        yield (s.invoice_number, s.invoice_date, s.supplier, item.medicine,
               item.quantity, item.unit_price, item.receive_to)


CORPSE_COLUMNS = ("Corpse Number", "Name", "Sex", "Date of Death", "Cabinet", "Status", "Registered")


def _corpse_rows(c: Corpse) -> Iterable[Row]:
    yield (c.corpse_number, c.full_name, c.sex, c.date_of_death, c.cabinet_number, c.status, c.created_at)


RELEASE_COLUMNS = ("Corpse Number", "Name", "Release Type", "Release Date", "Released To", "Status")


def _release_rows(r: Release) -> Iterable[Row]:
    corpse = r.corpse
    yield (corpse.corpse_number if corpse else None, corpse.full_name if corpse else None,
           r.release_type, r.release_date, (r.released_to or {}).get("name"), r.status)


REPORTS: List[ReportDefinition] = [
    ReportDefinition("patient-list", "Patient List", "Complete list of all patients", "patient",
                     Patient, Patient.created_at, PATIENT_COLUMNS, _patient_rows),
    ReportDefinition("patient-insurance", "Insurance Coverage", "Patients with insurance details", "patient",
                     Patient, Patient.created_at, PATIENT_COLUMNS, _patient_rows,
                     (Patient.insurance_provider.is_not(None),)),
    ReportDefinition("visits-summary", "Visits Summary", "All patient visits", "clinical",
                     Visit, Visit.created_at, VISIT_COLUMNS, _visit_rows),
    ReportDefinition("prescriptions", "Prescription Report", "All prescriptions by visit", "clinical",
                     Visit, Visit.created_at, PRESCRIPTION_COLUMNS, _prescription_rows),
    ReportDefinition("lab-tests", "Laboratory Tests", "Ordered laboratory tests and results", "clinical",
                     LabTest, LabTest.created_at, LAB_COLUMNS, _lab_rows),
    ReportDefinition("ipd-admissions", "Admissions Report", "All IPD admissions", "ipd",
                     Admission, Admission.admission_date, ADMISSION_COLUMNS, _admission_rows),
    ReportDefinition("ipd-active", "Active Admissions", "Currently admitted patients", "ipd",
                     Admission, Admission.admission_date, ADMISSION_COLUMNS, _admission_rows,
                     (Admission.status == AdmissionStatus.ADMITTED.value,)),
    ReportDefinition("ipd-discharged", "Discharged Patients", "Discharge summary report", "ipd",
                     Admission, Admission.admission_date, ADMISSION_COLUMNS, _admission_rows,
                     (Admission.status != AdmissionStatus.ADMITTED.value,)),
    ReportDefinition("invoice-list", "All Invoices", "Complete invoice listing", "financial",
                     Invoice, Invoice.created_at, INVOICE_COLUMNS, _invoice_rows),
    ReportDefinition("invoice-pending", "Pending Invoices", "Unpaid invoices", "financial",
                     Invoice, Invoice.created_at, INVOICE_COLUMNS, _invoice_rows,
                     (Invoice.status.in_(OPEN_INVOICE_STATUSES),)),
    ReportDefinition("invoice-paid", "Paid Invoices", "Completed payments", "financial",
                     Invoice, Invoice.created_at, INVOICE_COLUMNS, _invoice_rows,
                     (Invoice.status == InvoiceStatus.PAID.value,)),
    ReportDefinition("payments-summary", "Payments Summary", "All payment transactions", "financial",
                     Payment, Payment.paid_at, PAYMENT_COLUMNS, _payment_rows),
    ReportDefinition("dispensing-records", "Dispensing Records", "Patient medicine dispensing", "pharmacy",
                     Dispensing, Dispensing.dispensed_at, DISPENSING_COLUMNS, _dispensing_rows,
                     (Dispensing.dispensing_type == DispensingType.PATIENT.value,)),
    ReportDefinition("direct-dispensing", "Direct Dispensing", "Over-the-counter sales", "pharmacy",
                     Dispensing, Dispensing.dispensed_at, DISPENSING_COLUMNS, _dispensing_rows,
                     (Dispensing.dispensing_type == DispensingType.DIRECT.value,)),
    ReportDefinition("stock-balance", "Stock Balance", "Current quantity of every stock item", "pharmacy",
                     StockItem, StockItem.created_at, STOCK_COLUMNS, _stock_rows),
    ReportDefinition("procedures-list", "All Procedures", "Complete procedure listing", "theatre",
                     TheatreProcedure, TheatreProcedure.scheduled_date, PROCEDURE_COLUMNS, _procedure_rows),
    ReportDefinition("procedures-scheduled", "Scheduled Procedures", "Upcoming procedures", "theatre",
                     TheatreProcedure, TheatreProcedure.scheduled_date, PROCEDURE_COLUMNS, _procedure_rows,
                     (TheatreProcedure.status == ProcedureStatus.SCHEDULED.value,)),
    ReportDefinition("procedures-completed", "Completed Procedures", "Finished procedures", "theatre",
                     TheatreProcedure, TheatreProcedure.scheduled_date, PROCEDURE_COLUMNS, _procedure_rows,
                     (TheatreProcedure.status == ProcedureStatus.COMPLETED.value,)),
    ReportDefinition("requisitions", "Requisitions", "Department requisitions and issued quantities", "store",
                     Requisition, Requisition.created_at, REQUISITION_COLUMNS, _requisition_rows),
    ReportDefinition("items-received", "Items Received", "Items received against supplier invoices", "store",
                     SupplierInvoice, SupplierInvoice.created_at, RECEIVED_COLUMNS, _received_rows),
    ReportDefinition("corpses-in-storage", "Bodies in Storage", "Mortuary records not yet released", "mortuary",
                     Corpse, Corpse.created_at, CORPSE_COLUMNS, _corpse_rows,
                     (Corpse.status != CorpseStatus.RELEASED.value,)),
    ReportDefinition("corpse-releases", "Releases", "Mortuary release requests", "mortuary",
                     Release, Release.created_at, RELEASE_COLUMNS, _release_rows),
]

REPORTS_BY_ID = {report.id: report for report in REPORTS}


class ReportService:
    """Report catalogue and report rows"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ReportRepository(db)

    def catalogue(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": category,
                "title": title,
                "reports": [
                    {"id": r.id, "name": r.name, "description": r.description}
                    for r in REPORTS if r.category == category
                ],
            }
            for category, title in REPORT_CATEGORIES
        ]

    def get_definition(self, report_id: str) -> ReportDefinition:
        report = REPORTS_BY_ID.get(report_id)
        if not report:
            raise NotFoundError(f"Report '{report_id}' not found")
        return report

    async def run(
        self,
        report_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> Tuple[ReportDefinition, List[Dict[str, Any]]]:
        report = self.get_definition(report_id)
        limit = limit or settings.REPORT_ROW_LIMIT
        records = await self.repo.rows(
            report.model, report.date_column, start=start, end=end, criteria=report.criteria, limit=limit
        )

        rows: List[Dict[str, Any]] = []
        for record in records:
            for values in report.rows(record):
                rows.append(dict(zip(report.columns, values)))
                if len(rows) >= limit:
                    break
            if len(rows) >= limit:
                break
        logger.info(f"Report {report_id} produced {len(rows)} rows")
        return report, rows


class DashboardService:
    """Landing page counters"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = ReportRepository(db)

    async def get_stats(self) -> Dict[str, Any]:
        today = datetime.combine(date.today(), time.min)
        tomorrow = today + timedelta(days=1)

        admissions = await AdmissionRepository(self.db).count_by_status()
        beds = await BedRepository(self.db).count_by_status()
        return {
            "total_patients": await PatientRepository(self.db).count_all(is_active=True),
            "todays_appointments": await self.repo.count(
                Appointment,
                Appointment.appointment_date >= today,
                Appointment.appointment_date < tomorrow,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            ),
            "active_visits": await self.repo.count(
                Visit, Visit.status.in_([VisitStatus.IN_QUEUE.value, VisitStatus.IN_PROGRESS.value])
            ),
            "current_admissions": admissions.get(AdmissionStatus.ADMITTED.value, 0),
            "revenue_this_month": await PaymentRepository(self.db).revenue_between(today.replace(day=1)),
            "pending_invoices": await self.repo.count(Invoice, Invoice.status.in_(OPEN_INVOICE_STATUSES)),
            "low_stock_items": await StockItemRepository(self.db).count_low(),
            "bodies_in_storage": await CorpseRepository(self.db).count_in_storage(),
            "available_beds": beds.get(BedStatus.AVAILABLE.value, 0),
        }
