import pytest
from httpx import AsyncClient

from hims.domain.auth.models import UserRole
from tests.conftest import auth_headers


async def _theatre(client: AsyncClient, number: str = "TH-1") -> dict:
    response = await client.post("/api/v1/theatres", json={"name": f"Theatre {number}", "theatre_number": number})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _booking(patient_id: str, theatre_id: str, start: str, minutes: int = 60) -> dict:
    return {
        "patient_id": patient_id,
        "theatre_id": theatre_id,
        "procedure_name": "Appendicectomy",
        "scheduled_date": start,
        "estimated_duration_minutes": minutes,
    }


@pytest.mark.wards
@pytest.mark.integration
class TestTheatres:
    async def test_create_theatre(self, admin_client: AsyncClient) -> None:
        theatre = await _theatre(admin_client)
        assert theatre["status"] == "active"
        assert theatre["theatre_type"] == "general"

        response = await admin_client.post("/api/v1/theatres", json={"name": "Dup", "theatre_number": "TH-1"})
        assert response.status_code == 409

    async def test_schedule_procedure(
        self, admin_client: AsyncClient, patient: dict, doctor_user
    ) -> None:
        theatre = await _theatre(admin_client)
        payload = _booking(patient["id"], theatre["id"], "2030-01-01T09:00:00")
        payload["surgeon_id"] = doctor_user.id

        response = await admin_client.post("/api/v1/theatre-procedures", json=payload)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["procedure_number"].startswith("PRC-")
        assert data["status"] == "scheduled"
        assert data["theatre"]["theatre_number"] == "TH-1"
        assert data["surgeon"]["id"] == doctor_user.id

    async def test_overlapping_booking_conflicts(self, admin_client: AsyncClient, patient: dict) -> None:
        theatre = await _theatre(admin_client)
        first = (await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:00:00")
        )).json()["data"]

        response = await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:30:00")
        )
        assert response.status_code == 409
        assert response.json()["details"]["procedures"] == [first["procedure_number"]]

        # Back-to-back bookings do not overlap
        response = await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T10:00:00")
        )
        assert response.status_code == 201

        # A cancelled booking frees its slot
        await admin_client.put(f"/api/v1/theatre-procedures/{first['id']}", json={"status": "cancelled"})
        response = await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:15:00", 30)
        )
        assert response.status_code == 201

    async def test_inactive_theatre_rejected(self, admin_client: AsyncClient, patient: dict) -> None:
        theatre = await _theatre(admin_client)
        await admin_client.put(f"/api/v1/theatres/{theatre['id']}", json={"status": "maintenance"})

        response = await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:00:00")
        )
        assert response.status_code == 400

    async def test_discharge_closes_procedure(self, admin_client: AsyncClient, patient: dict) -> None:
        theatre = await _theatre(admin_client)
        procedure = (await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:00:00")
        )).json()["data"]
        base = f"/api/v1/theatre-procedures/{procedure['id']}"

        response = await admin_client.put(base, json={"status": "completed"})
        assert response.status_code == 400

        response = await admin_client.post(
            f"{base}/medications", json={"medications": [{"name": "Ketamine", "dosage": "50mg"}]}
        )
        assert response.json()["data"]["medications"][0]["name"] == "Ketamine"

        response = await admin_client.post(f"{base}/diagnosis", json={"diagnoses": [{"description": "Appendicitis"}]})
        assert response.json()["data"]["diagnoses"][0]["description"] == "Appendicitis"

        response = await admin_client.put(
            f"{base}/discharge", json={"discharge_reason": "completed", "discharge_summary": "Uneventful"}
        )
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_at"] is not None

        response = await admin_client.post(f"{base}/diagnosis", json={"diagnoses": [{"description": "Late"}]})
        assert response.status_code == 400

    async def test_statistics(self, admin_client: AsyncClient, patient: dict) -> None:
        theatre = await _theatre(admin_client)
        await _theatre(admin_client, "TH-2")
        await admin_client.post(
            "/api/v1/theatre-procedures", json=_booking(patient["id"], theatre["id"], "2030-01-01T09:00:00")
        )

        data = (await admin_client.get("/api/v1/theatres/statistics")).json()["data"]

        assert data["total_theatres"] == 2
        assert data["theatres_by_status"] == {"active": 2}
        assert data["procedures_by_status"] == {"scheduled": 1}
        assert data["procedures_today"] == 0

    async def test_receptionist_has_no_theatre_access(self, client: AsyncClient, make_user) -> None:
        receptionist = await make_user(UserRole.RECEPTIONIST)
        response = await client.get("/api/v1/theatres", headers=auth_headers(receptionist))
        assert response.status_code == 403
