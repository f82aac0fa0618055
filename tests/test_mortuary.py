import pytest
from httpx import AsyncClient

from hims.domain.auth.models import UserRole
from tests.conftest import auth_headers


async def _cabinet(client: AsyncClient, number: str = "C-01", capacity: int = 1) -> dict:
    response = await client.post("/api/v1/cabinets", json={"number": number, "capacity": capacity})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _corpse(client: AsyncClient, cabinet_id: str = None, **extra) -> dict:
    payload = {
        "first_name": "Juma",
        "last_name": "Otieno",
        "sex": "Male",
        "date_of_death": "2024-03-01",
        "cabinet_id": cabinet_id,
    }
    payload.update(extra)
    response = await client.post("/api/v1/corpses", json=payload)
    return response


def _release_payload(corpse_id: str) -> dict:
    return {
        "corpse_id": corpse_id,
        "release_type": "Burial",
        "release_date": "2024-03-05",
        "released_to": {
            "name": "Akinyi Otieno",
            "relationship": "Spouse",
            "id_number": "12345678",
            "phone": "+254722000000",
        },
        "funeral_home": {"name": "Lee Funeral Home"},
    }


@pytest.mark.mortuary
@pytest.mark.integration
class TestCabinets:
    """Cabinet capacity and occupancy."""

    async def test_register_into_cabinet(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client, capacity=2)

        response = await _corpse(admin_client, cabinet["id"])

        assert response.status_code == 201
        corpse = response.json()["data"]
        assert corpse["corpse_number"].startswith("MRT-")
        assert corpse["status"] == "In Storage"
        assert corpse["cabinet"]["number"] == "C-01"

        cabinet = (await admin_client.get(f"/api/v1/cabinets/{cabinet['id']}")).json()["data"]
        assert cabinet["occupancy"] == 1
        assert cabinet["available_space"] == 1
        assert cabinet["is_occupied"] is False

    async def test_register_by_cabinet_number(self, admin_client: AsyncClient) -> None:
        await _cabinet(admin_client, number="C-07")
        response = await _corpse(admin_client, cabinet_number="C-07")
        assert response.status_code == 201
        assert response.json()["data"]["cabinet"]["number"] == "C-07"

    async def test_full_cabinet_conflicts(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client, capacity=1)
        assert (await _corpse(admin_client, cabinet["id"])).status_code == 201

        response = await _corpse(admin_client, cabinet["id"], first_name="Second")

        assert response.status_code == 409
        assert response.json()["message"] == "Cabinet C-01 is full"

    async def test_inactive_cabinet_conflicts(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client, capacity=3)
        await admin_client.put(f"/api/v1/cabinets/{cabinet['id']}", json={"status": "Maintenance"})

        response = await _corpse(admin_client, cabinet["id"])
        assert response.status_code == 409

    async def test_capacity_below_occupancy_rejected(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client, capacity=2)
        await _corpse(admin_client, cabinet["id"])
        await _corpse(admin_client, cabinet["id"], first_name="Second")

        response = await admin_client.put(f"/api/v1/cabinets/{cabinet['id']}", json={"capacity": 1})
        assert response.status_code == 400

    async def test_duplicate_cabinet_number(self, admin_client: AsyncClient) -> None:
        await _cabinet(admin_client)
        response = await admin_client.post("/api/v1/cabinets", json={"number": "C-01"})
        assert response.status_code == 409

    async def test_delete_occupied_cabinet(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client)
        await _corpse(admin_client, cabinet["id"])
        response = await admin_client.delete(f"/api/v1/cabinets/{cabinet['id']}")
        assert response.status_code == 409

    async def test_release_cabinet(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client, capacity=2)
        corpse = (await _corpse(admin_client, cabinet["id"])).json()["data"]

        response = await admin_client.post(f"/api/v1/cabinets/{cabinet['id']}/release")

        data = response.json()["data"]
        assert data["cabinet"]["occupancy"] == 0
        assert [c["id"] for c in data["released"]] == [corpse["id"]]

        corpse = (await admin_client.get(f"/api/v1/corpses/{corpse['id']}")).json()["data"]
        assert corpse["cabinet_id"] is None

    async def test_stats(self, admin_client: AsyncClient) -> None:
        first = await _cabinet(admin_client, capacity=2)
        await _cabinet(admin_client, number="C-02", capacity=3)
        await _corpse(admin_client, first["id"])

        data = (await admin_client.get("/api/v1/cabinets/stats")).json()["data"]

        assert data["total"] == 2
        assert data["total_capacity"] == 5
        assert data["occupied"] == 1
        assert data["available"] == 4
        assert data["by_status"]["Active"] == 2

    async def test_future_date_of_death_rejected(self, admin_client: AsyncClient) -> None:
        response = await _corpse(admin_client, date_of_death="2999-01-01")
        assert response.status_code == 422


@pytest.mark.mortuary
@pytest.mark.integration
class TestReleases:
    """Pending -> Approved -> Released, or Cancelled."""

    async def test_release_workflow(self, admin_client: AsyncClient) -> None:
        cabinet = await _cabinet(admin_client)
        corpse = (await _corpse(admin_client, cabinet["id"])).json()["data"]

        response = await admin_client.post("/api/v1/releases", json=_release_payload(corpse["id"]))
        assert response.status_code == 201
        release = response.json()["data"]
        assert release["status"] == "Pending"
        assert release["released_to"]["name"] == "Akinyi Otieno"
        assert release["corpse"]["status"] == "Pending Release"

        pending = (await admin_client.get("/api/v1/releases/pending")).json()
        assert pending["count"] == 1

        # Completing before approval is refused
        response = await admin_client.post(f"/api/v1/releases/{release['id']}/complete")
        assert response.status_code == 400

        response = await admin_client.post(f"/api/v1/releases/{release['id']}/approve")
        assert response.json()["data"]["status"] == "Approved"
        assert response.json()["data"]["approved_at"] is not None

        response = await admin_client.post(f"/api/v1/releases/{release['id']}/complete")
        data = response.json()["data"]
        assert data["status"] == "Released"
        assert data["corpse"]["status"] == "Released"

        cabinet = (await admin_client.get(f"/api/v1/cabinets/{cabinet['id']}")).json()["data"]
        assert cabinet["occupancy"] == 0

        # Released bodies are final
        response = await admin_client.post("/api/v1/releases", json=_release_payload(corpse["id"]))
        assert response.status_code == 409
        response = await admin_client.put(f"/api/v1/corpses/{corpse['id']}", json={"notes": "x"})
        assert response.status_code == 400

    async def test_one_open_release_per_body(self, admin_client: AsyncClient) -> None:
        corpse = (await _corpse(admin_client)).json()["data"]
        first = (await admin_client.post("/api/v1/releases", json=_release_payload(corpse["id"]))).json()["data"]

        response = await admin_client.post("/api/v1/releases", json=_release_payload(corpse["id"]))

        assert response.status_code == 409
        assert response.json()["details"] == {"release_id": first["id"]}

    async def test_cancel_returns_body_to_storage(self, admin_client: AsyncClient) -> None:
        corpse = (await _corpse(admin_client)).json()["data"]
        release = (await admin_client.post("/api/v1/releases", json=_release_payload(corpse["id"]))).json()["data"]

        response = await admin_client.post(f"/api/v1/releases/{release['id']}/cancel", json={"reason": "  "})
        assert response.status_code == 422

        response = await admin_client.post(
            f"/api/v1/releases/{release['id']}/cancel", json={"reason": "Family dispute"}
        )
        data = response.json()["data"]
        assert data["status"] == "Cancelled"
        assert data["cancellation_reason"] == "Family dispute"
        assert data["corpse"]["status"] == "In Storage"

        response = await admin_client.post(f"/api/v1/releases/{release['id']}/approve")
        assert response.status_code == 400

    async def test_corpse_statistics(self, admin_client: AsyncClient) -> None:
        stored = (await _corpse(admin_client)).json()["data"]
        pending = (await _corpse(admin_client, first_name="Second")).json()["data"]
        await admin_client.post("/api/v1/releases", json=_release_payload(pending["id"]))

        data = (await admin_client.get("/api/v1/corpses/statistics")).json()["data"]

        assert data["total"] == 2
        assert data["in_storage"] == 1
        assert data["pending_release"] == 1
        assert data["released"] == 0
        assert stored["status"] == "In Storage"

    async def test_mortuary_requires_role(self, client: AsyncClient, make_user) -> None:
        attendant = await make_user(UserRole.MORTUARY_ATTENDANT)
        doctor = await make_user(UserRole.DOCTOR)

        assert (await client.get("/api/v1/corpses", headers=auth_headers(attendant))).status_code == 200
        assert (await client.get("/api/v1/corpses", headers=auth_headers(doctor))).status_code == 403
