import pytest
from httpx import AsyncClient

from hims.domain.auth.models import User, UserRole
from tests.conftest import auth_headers


async def _visit(client: AsyncClient, patient_id: str, doctor_id: str = None) -> dict:
    response = await client.post(
        "/api/v1/visits", json={"patient_id": patient_id, "doctor_id": doctor_id, "chief_complaint": "Cough"}
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.patients
@pytest.mark.integration
class TestVisits:
    """Outpatient visits and the doctor queue."""

    async def test_start_visit(self, admin_client: AsyncClient, patient: dict, doctor_user: User) -> None:
        visit = await _visit(admin_client, patient["id"], doctor_user.id)

        assert visit["visit_number"].startswith("VIS-")
        assert visit["status"] == "in_queue"
        assert visit["payment_status"] == "pending"
        assert visit["doctor"]["id"] == doctor_user.id

    async def test_one_open_visit_per_patient(self, admin_client: AsyncClient, patient: dict) -> None:
        first = await _visit(admin_client, patient["id"])

        response = await admin_client.post("/api/v1/visits", json={"patient_id": patient["id"]})

        assert response.status_code == 409
        assert response.json()["details"]["visit_id"] == first["id"]

        await admin_client.patch(f"/api/v1/visits/{first['id']}/end-visit")
        response = await admin_client.post("/api/v1/visits", json={"patient_id": patient["id"]})
        assert response.status_code == 201

    async def test_doctor_queue(
        self, client: AsyncClient, admin_client: AsyncClient, patient: dict, doctor_user: User
    ) -> None:
        visit = await _visit(admin_client, patient["id"], doctor_user.id)
        headers = auth_headers(doctor_user)

        queue = (await client.get("/api/v1/doctors/my-queue", headers=headers)).json()
        assert queue["count"] == 1
        assert queue["data"][0]["id"] == visit["id"]

        response = await client.patch(f"/api/v1/doctors/visits/{visit['id']}/start", headers=headers)
        assert response.json()["data"]["status"] == "in_progress"
        assert response.json()["data"]["started_at"] is not None

        response = await client.patch(f"/api/v1/doctors/visits/{visit['id']}/start", headers=headers)
        assert response.status_code == 400

    async def test_clinical_documentation(self, admin_client: AsyncClient, patient: dict) -> None:
        visit = await _visit(admin_client, patient["id"])
        base = f"/api/v1/visits/{visit['id']}"

        response = await admin_client.put(f"{base}/vitals", json={"blood_pressure": "130/85", "temperature": 37.2})
        vitals = response.json()["data"]["vitals"]
        assert vitals["temperature"] == 37.2
        assert "recorded_at" in vitals

        response = await admin_client.put(f"{base}/vitals", json={"temperature": 60})
        assert response.status_code == 422

        response = await admin_client.put(f"{base}/diagnosis", json={"primary": "Bronchitis", "icd_code": "J20"})
        assert response.json()["data"]["diagnosis"]["primary"] == "Bronchitis"

        response = await admin_client.post(f"{base}/lab-orders", json={"tests": [{"test_name": "Full Haemogram"}]})
        assert response.status_code == 201
        assert response.json()["data"]["lab_tests"][0]["status"] == "pending"

        response = await admin_client.post(f"{base}/prescriptions", json={
            "items": [{"medication": "Amoxicillin", "dosage": "500mg", "frequency": "tds", "quantity": 15}],
        })
        assert response.json()["data"]["prescriptions"][0]["medication"] == "Amoxicillin"

        response = await admin_client.patch(f"{base}/end-visit")
        assert response.json()["data"]["status"] == "completed"
        assert response.json()["data"]["ended_at"] is not None

        response = await admin_client.put(f"{base}/vitals", json={"heart_rate": 80})
        assert response.status_code == 400

    async def test_payment_status_needs_billing(
        self, client: AsyncClient, admin_client: AsyncClient, patient: dict, make_user
    ) -> None:
        visit = await _visit(admin_client, patient["id"])
        technician = await make_user(UserRole.LAB_TECHNICIAN)
        cashier = await make_user(UserRole.CASHIER)
        url = f"/api/v1/visits/{visit['id']}/payment-status"

        response = await client.patch(url, json={"payment_status": "paid"}, headers=auth_headers(technician))
        assert response.status_code == 403

        response = await client.patch(url, json={"payment_status": "paid"}, headers=auth_headers(cashier))
        assert response.json()["data"]["payment_status"] == "paid"


@pytest.mark.patients
@pytest.mark.integration
class TestDiagnostics:
    async def test_lab_result_completes_test(self, admin_client: AsyncClient, patient: dict) -> None:
        response = await admin_client.post(
            "/api/v1/lab-tests", json={"patient_id": patient["id"], "test_name": "Malaria BS"}
        )
        assert response.status_code == 201
        test = response.json()["data"]

        response = await admin_client.put(f"/api/v1/lab-tests/{test['id']}", json={"status": "completed"})
        assert response.status_code == 400

        response = await admin_client.put(f"/api/v1/lab-tests/{test['id']}", json={"result": "Negative"})
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_at"] is not None

        response = await admin_client.put(f"/api/v1/lab-tests/{test['id']}", json={"result": "Positive"})
        assert response.status_code == 400

    async def test_cannot_order_on_completed_visit(self, admin_client: AsyncClient, patient: dict) -> None:
        visit = await _visit(admin_client, patient["id"])
        await admin_client.patch(f"/api/v1/visits/{visit['id']}/end-visit")

        response = await admin_client.post("/api/v1/radiology", json={
            "patient_id": patient["id"], "visit_id": visit["id"], "test_name": "Chest X-ray",
        })
        assert response.status_code == 400

    async def test_radiology_report(self, admin_client: AsyncClient, patient: dict) -> None:
        request = (await admin_client.post("/api/v1/radiology", json={
            "patient_id": patient["id"], "test_name": "Chest X-ray", "clinical_notes": "Persistent cough",
        })).json()["data"]
        assert request["status"] == "requested"

        response = await admin_client.put(
            f"/api/v1/radiology/{request['id']}", json={"findings": "Clear lung fields"}
        )
        assert response.json()["data"]["status"] == "completed"

        listing = (await admin_client.get("/api/v1/radiology", params={"status": "completed"})).json()
        assert listing["pagination"]["total"] == 1
