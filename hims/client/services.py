"""
Resource service objects.

Each object wraps one API resource and returns unwrapped ``data``. Paged
listings are also available with their pagination block through
``list_page``.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from loguru import logger

from hims.client.http import ApiClient, unwrap

Payload = Mapping[str, Any]


class ResourceService:
    path: str = ""

    def __init__(self, client: ApiClient):
        self.client = client

    def _url(self, *parts: Any) -> str:
        return "/".join([self.path, *(str(p) for p in parts)])

    async def _get(self, *parts: Any, params: Optional[Payload] = None) -> Any:
        return unwrap(await self.client.get(self._url(*parts), params=params))

    async def _post(self, *parts: Any, json: Any = None) -> Any:
        return unwrap(await self.client.post(self._url(*parts), json=json))

    async def _put(self, *parts: Any, json: Any = None) -> Any:
        return unwrap(await self.client.put(self._url(*parts), json=json))

    async def _patch(self, *parts: Any, json: Any = None) -> Any:
        return unwrap(await self.client.patch(self._url(*parts), json=json))

    async def list(self, **params: Any) -> List[Dict[str, Any]]:
        return await self._get(params=params)

    async def list_page(self, **params: Any) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        body = await self.client.get(self.path, params=params)
        return unwrap(body), body.get("pagination") if isinstance(body, dict) else None

    async def get(self, resource_id: str) -> Dict[str, Any]:
        return await self._get(resource_id)

    async def create(self, data: Payload) -> Dict[str, Any]:
        return await self._post(json=dict(data))

    async def update(self, resource_id: str, data: Payload) -> Dict[str, Any]:
        return await self._put(resource_id, json=dict(data))

    async def delete(self, resource_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.delete(self._url(resource_id)))


class AuthService(ResourceService):
    path = "/auth"

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        result = await self._post("login", json={"email": email, "password": password})
        self.client.token_store.set(result["token"])
        logger.info(f"Signed in as {email}")
        return result["user"]

    def logout(self) -> None:
        self.client.token_store.clear()

    async def me(self) -> Dict[str, Any]:
        return await self._get("me")

    async def register(self, data: Payload) -> Dict[str, Any]:
        return await self._post("register", json=dict(data))

    async def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self._put(
            "change-password", json={"current_password": current_password, "new_password": new_password}
        )

    async def forgot_password(self, email: str) -> Dict[str, Any]:
        return await self._post("forgotpassword", json={"email": email})

    async def reset_password(self, token: str, password: str) -> Dict[str, Any]:
        """Set a new password from a reset link and sign in with it"""
        result = await self._put("resetpassword", token, json={"password": password})
        self.client.token_store.set(result["token"])
        return result["user"]


class UserService(ResourceService):
    path = "/users"

    async def profile(self) -> Dict[str, Any]:
        return await self._get("profile")

    async def update_profile(self, data: Payload) -> Dict[str, Any]:
        return await self._put("profile", json=dict(data))

    async def toggle_status(self, user_id: str) -> Dict[str, Any]:
        return await self._patch(user_id, "toggle-status")


class StaffService(ResourceService):
    path = ""

    async def doctors(self) -> List[Dict[str, Any]]:
        return await self._get("doctors")

    async def nurses(self) -> List[Dict[str, Any]]:
        return await self._get("nurses")

    async def surgeons(self) -> List[Dict[str, Any]]:
        return await self._get("surgeons")


class PatientService(ResourceService):
    path = "/patients"

    async def search(self, q: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._get("search", params={"q": q, "limit": limit})

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")

    async def export(self, destination: Union[str, Path], format: str = "xlsx", search: Optional[str] = None) -> Path:
        return await self.client.download_file(
            self._url("export"), destination, params={"format": format, "search": search}
        )


class AppointmentService(ResourceService):
    path = "/appointments"

    async def check_conflicts(self, data: Payload) -> Dict[str, Any]:
        return await self._post("check-conflicts", json=dict(data))

    async def update_status(self, appointment_id: str, status: str, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self._patch(appointment_id, "status", json={"status": status, "notes": notes})


class VisitService(ResourceService):
    path = "/visits"

    async def active(self, **params: Any) -> List[Dict[str, Any]]:
        return await self._get("active", params=params)

    async def record_vitals(self, visit_id: str, vitals: Payload) -> Dict[str, Any]:
        return await self._put(visit_id, "vitals", json=dict(vitals))

    async def record_diagnosis(self, visit_id: str, data: Payload) -> Dict[str, Any]:
        return await self._put(visit_id, "diagnosis", json=dict(data))

    async def order_labs(self, visit_id: str, data: Payload) -> Dict[str, Any]:
        return await self._post(visit_id, "lab-orders", json=dict(data))

    async def prescribe(self, visit_id: str, data: Payload) -> Dict[str, Any]:
        return await self._post(visit_id, "prescriptions", json=dict(data))

    async def update_payment_status(self, visit_id: str, payment_status: str) -> Dict[str, Any]:
        return await self._patch(visit_id, "payment-status", json={"payment_status": payment_status})

    async def end_visit(self, visit_id: str) -> Dict[str, Any]:
        return await self._patch(visit_id, "end-visit")

    async def my_queue(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/doctors/my-queue"))

    async def start(self, visit_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.patch(f"/doctors/visits/{visit_id}/start"))


class LabTestService(ResourceService):
    path = "/lab-tests"


class RadiologyService(ResourceService):
    path = "/radiology"


class CatalogService(ResourceService):
    path = "/services"

    async def search(self, name: Optional[str] = None, category: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._get("search", params={"name": name, "category": category})


class BillingService(ResourceService):
    path = "/billing"

    async def list(self, **params: Any) -> List[Dict[str, Any]]:
        return await self._get("invoices", params=params)

    async def list_page(self, **params: Any) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        body = await self.client.get(self._url("invoices"), params=params)
        return unwrap(body), body.get("pagination") if isinstance(body, dict) else None

    async def get(self, invoice_id: str) -> Dict[str, Any]:
        return await self._get("invoices", invoice_id)

    async def create(self, data: Payload) -> Dict[str, Any]:
        return await self._post("invoices", json=dict(data))

    async def cancel(self, invoice_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._post("invoices", invoice_id, "cancel", json={"reason": reason})

    async def add_payment(self, invoice_id: str, data: Payload) -> Dict[str, Any]:
        return await self._post("invoices", invoice_id, "payments", json=dict(data))

    async def payments(self, **params: Any) -> List[Dict[str, Any]]:
        return await self._get("payments", params=params)

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")

    async def billable_items(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._get("billable-items", params={"search": search})


class StockService(ResourceService):
    path = "/stock"

    async def search(self, name: str) -> List[Dict[str, Any]]:
        return await self._get("search", params={"name": name})

    async def low_stock(self) -> List[Dict[str, Any]]:
        return await self._get("low")

    async def movements(self, item_id: str, **params: Any) -> List[Dict[str, Any]]:
        return await self._get(item_id, "movements", params=params)

    async def stock_take(self, counts: List[Payload], reference: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._post("stock-take", json={"counts": [dict(c) for c in counts], "reference": reference})

    async def import_items(self, content: bytes, filename: str = "stock.xlsx") -> Dict[str, Any]:
        return unwrap(await self.client.upload_file(self._url("import"), content, filename))

    async def export(self, destination: Union[str, Path], format: str = "xlsx",
                     location: Optional[str] = None) -> Path:
        return await self.client.download_file(
            self._url("export"), destination, params={"format": format, "location": location}
        )


class DispensingService(ResourceService):
    path = "/dispensing"

    async def ledger(self, destination: Union[str, Path], format: str = "pdf",
                     start_date: Optional[str] = None, end_date: Optional[str] = None) -> Path:
        return await self.client.download_file(
            self._url("ledger"), destination,
            params={"format": format, "start_date": start_date, "end_date": end_date},
        )


class DirectDispensingService(ResourceService):
    path = "/direct-dispensing"


class RequisitionService(ResourceService):
    path = "/requisitions"


class ItemReceivingService(ResourceService):
    path = "/item-receiving"

    async def list(self, **params: Any) -> List[Dict[str, Any]]:
        return await self._get("invoices", params=params)

    async def get(self, invoice_id: str) -> Dict[str, Any]:
        return await self._get("invoices", invoice_id)

    async def create(self, data: Payload) -> Dict[str, Any]:
        return await self._post("invoices", json=dict(data))

    async def receive(self, data: Payload) -> Dict[str, Any]:
        return await self._post(json=dict(data))


class IncomingItemService(ResourceService):
    path = "/incoming-items"

    async def receive(self, item_id: str) -> Dict[str, Any]:
        return await self._put(item_id, json={"received": True})


class ItemPricingService(ResourceService):
    path = "/item-pricing"


class CabinetService(ResourceService):
    path = "/cabinets"

    async def stats(self) -> Dict[str, Any]:
        return await self._get("stats")

    async def release(self, cabinet_id: str) -> Dict[str, Any]:
        return await self._post(cabinet_id, "release")


class CorpseService(ResourceService):
    path = "/corpses"

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")


class ReleaseService(ResourceService):
    path = "/releases"

    async def pending(self) -> List[Dict[str, Any]]:
        return await self._get("pending")

    async def approve(self, release_id: str) -> Dict[str, Any]:
        return await self._post(release_id, "approve")

    async def complete(self, release_id: str) -> Dict[str, Any]:
        return await self._post(release_id, "complete")

    async def cancel(self, release_id: str, reason: str) -> Dict[str, Any]:
        return await self._post(release_id, "cancel", json={"reason": reason})


class WardService(ResourceService):
    path = "/wards"

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")


class BedService(ResourceService):
    path = "/beds"

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")

    async def available(self, ward_id: str) -> List[Dict[str, Any]]:
        return await self._get("available", ward_id)

    async def mark_cleaned(self, bed_id: str) -> Dict[str, Any]:
        return await self._put(bed_id, "cleaned")


class TheatreService(ResourceService):
    path = "/theatres"

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")


class ProcedureService(ResourceService):
    path = "/theatre-procedures"

    async def add_medications(self, procedure_id: str, medications: List[Payload]) -> Dict[str, Any]:
        return await self._post(procedure_id, "medications", json={"medications": [dict(m) for m in medications]})

    async def add_diagnoses(self, procedure_id: str, diagnoses: List[Payload]) -> Dict[str, Any]:
        return await self._post(procedure_id, "diagnosis", json={"diagnoses": [dict(d) for d in diagnoses]})

    async def discharge(self, procedure_id: str, data: Payload) -> Dict[str, Any]:
        return await self._put(procedure_id, "discharge", json=dict(data))


class AdmissionService(ResourceService):
    path = "/ipd-records"

    async def statistics(self) -> Dict[str, Any]:
        return await self._get("statistics")

    async def record_vitals(self, admission_id: str, vitals: Payload) -> Dict[str, Any]:
        return await self._post(admission_id, "vitals", json=dict(vitals))

    async def add_nursing_note(self, admission_id: str, note: str, category: str = "general") -> Dict[str, Any]:
        return await self._post(admission_id, "nursing-notes", json={"note": note, "category": category})

    async def add_diagnoses(self, admission_id: str, diagnoses: List[Payload]) -> Dict[str, Any]:
        return await self._post(admission_id, "diagnosis", json={"diagnoses": [dict(d) for d in diagnoses]})

    async def add_medications(self, admission_id: str, medications: List[Payload]) -> Dict[str, Any]:
        return await self._post(admission_id, "medications", json={"medications": [dict(m) for m in medications]})

    async def transfer(self, admission_id: str, ward_id: str, bed_id: str,
                       reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._put(admission_id, "transfer", json={"ward_id": ward_id, "bed_id": bed_id, "reason": reason})

    async def discharge(self, admission_id: str, data: Payload) -> Dict[str, Any]:
        return await self._put(admission_id, "discharge", json=dict(data))


class DashboardService(ResourceService):
    path = "/dashboard"

    async def stats(self) -> Dict[str, Any]:
        return await self._get("stats")


class ReportService(ResourceService):
    path = "/reports"

    async def catalogue(self) -> List[Dict[str, Any]]:
        return await self._get()

    async def run(self, report_id: str, start_date: Optional[str] = None,
                  end_date: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(report_id, params={"start_date": start_date, "end_date": end_date})

    async def download(self, report_id: str, destination: Union[str, Path], format: str = "xlsx",
                       start_date: Optional[str] = None, end_date: Optional[str] = None) -> Path:
        return await self.client.download_file(
            self._url(report_id), destination,
            params={"format": format, "start_date": start_date, "end_date": end_date},
        )


class HimsClient:
    """Every resource service over one ``ApiClient``"""

    def __init__(self, client: Optional[ApiClient] = None, **client_options: Any):
        self.api = client or ApiClient(**client_options)
        self.auth = AuthService(self.api)
        self.users = UserService(self.api)
        self.staff = StaffService(self.api)
        self.patients = PatientService(self.api)
        self.appointments = AppointmentService(self.api)
        self.visits = VisitService(self.api)
        self.lab_tests = LabTestService(self.api)
        self.radiology = RadiologyService(self.api)
        self.services = CatalogService(self.api)
        self.billing = BillingService(self.api)
        self.stock = StockService(self.api)
        self.dispensing = DispensingService(self.api)
        self.direct_dispensing = DirectDispensingService(self.api)
        self.requisitions = RequisitionService(self.api)
        self.item_receiving = ItemReceivingService(self.api)
        self.incoming_items = IncomingItemService(self.api)
        self.item_pricing = ItemPricingService(self.api)
        self.cabinets = CabinetService(self.api)
        self.corpses = CorpseService(self.api)
        self.releases = ReleaseService(self.api)
        self.wards = WardService(self.api)
        self.beds = BedService(self.api)
        self.theatres = TheatreService(self.api)
        self.procedures = ProcedureService(self.api)
        self.ipd = AdmissionService(self.api)
        self.dashboard = DashboardService(self.api)
        self.reports = ReportService(self.api)

    @property
    def notifier(self):
        return self.api.notifier

    async def __aenter__(self) -> "HimsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.api.aclose()
