import pytest
from httpx import AsyncClient

from hims.domain.auth.models import User, UserRole


def _booking(patient_id: str, doctor_id: str, when: str, minutes: int = 30) -> dict:
    return {
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "appointment_date": when,
        "duration_minutes": minutes,
        "reason": "Review",
    }


@pytest.mark.patients
@pytest.mark.integration
class TestAppointments:
    """Booking and doctor availability."""

    async def test_book_appointment(self, admin_client: AsyncClient, patient: dict, doctor_user: User) -> None:
        response = await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:00:00")
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "scheduled"
        assert data["doctor"]["specialization"] == "Surgery"
        assert data["patient"]["id"] == patient["id"]

    async def test_only_doctors_take_appointments(
        self, admin_client: AsyncClient, patient: dict, make_user
    ) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], nurse.id, "2030-05-01T10:00:00")
        )
        assert response.status_code == 404

    async def test_overlap_conflicts(self, admin_client: AsyncClient, patient: dict, doctor_user: User) -> None:
        first = (await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:00:00")
        )).json()["data"]

        response = await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:15:00")
        )
        assert response.status_code == 409
        assert response.json()["details"]["conflicts"] == [first["id"]]

        check = await admin_client.post("/api/v1/appointments/check-conflicts", json={
            "doctor_id": doctor_user.id, "appointment_date": "2030-05-01T10:30:00",
        })
        assert check.json()["data"]["has_conflict"] is False

        # Rescheduling onto its own slot is not a conflict
        response = await admin_client.put(
            f"/api/v1/appointments/{first['id']}", json={"appointment_date": "2030-05-01T10:10:00"}
        )
        assert response.status_code == 200

    async def test_cancelled_appointment_is_final(
        self, admin_client: AsyncClient, patient: dict, doctor_user: User
    ) -> None:
        appointment = (await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:00:00")
        )).json()["data"]

        response = await admin_client.patch(
            f"/api/v1/appointments/{appointment['id']}/status", json={"status": "cancelled"}
        )
        assert response.json()["data"]["status"] == "cancelled"

        response = await admin_client.put(f"/api/v1/appointments/{appointment['id']}", json={"reason": "x"})
        assert response.status_code == 400

        # The slot is free again
        response = await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:00:00")
        )
        assert response.status_code == 201

    async def test_list_by_date_range(self, admin_client: AsyncClient, patient: dict, doctor_user: User) -> None:
        await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-01T10:00:00")
        )
        await admin_client.post(
            "/api/v1/appointments", json=_booking(patient["id"], doctor_user.id, "2030-05-03T10:00:00")
        )

        response = await admin_client.get(
            "/api/v1/appointments", params={"start_date": "2030-05-01", "end_date": "2030-05-01"}
        )
        assert response.json()["pagination"]["total"] == 1

        response = await admin_client.get(
            "/api/v1/appointments", params={"start_date": "2030-05-03", "end_date": "2030-05-01"}
        )
        assert response.status_code == 422
