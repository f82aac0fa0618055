import pytest
from httpx import AsyncClient

from hims.domain.auth.models import User


@pytest.fixture
async def ward_with_beds(admin_client: AsyncClient) -> dict:
    response = await admin_client.post(
        "/api/v1/wards", json={"name": "Medical Ward", "ward_number": "MW-1", "capacity": 4}
    )
    ward = response.json()["data"]
    beds = []
    for number in ("B-01", "B-02"):
        response = await admin_client.post("/api/v1/beds", json={"ward_id": ward["id"], "bed_number": number})
        beds.append(response.json()["data"])
    return {"ward": ward, "beds": beds}


async def _admit(client: AsyncClient, patient_id: str, ward_id: str, bed_id: str, **extra):
    payload = {
        "patient_id": patient_id,
        "ward_id": ward_id,
        "bed_id": bed_id,
        "admission_reason": "Pneumonia",
        "admission_type": "emergency",
    }
    payload.update(extra)
    return await client.post("/api/v1/ipd-records", json=payload)


@pytest.mark.ipd
@pytest.mark.integration
class TestAdmissions:
    """Admission, transfer and discharge keep beds in step."""

    async def test_admit_occupies_bed(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict, admin_user: User
    ) -> None:
        ward = ward_with_beds["ward"]
        bed = ward_with_beds["beds"][0]

        response = await _admit(admin_client, patient["id"], ward["id"], bed["id"])

        assert response.status_code == 201
        admission = response.json()["data"]
        assert admission["admission_number"].startswith("IPD-")
        assert admission["status"] == "admitted"
        assert admission["admitting_doctor_id"] == admin_user.id
        assert admission["bed"]["status"] == "occupied"
        assert admission["length_of_stay_days"] == 0

        bed = (await admin_client.get(f"/api/v1/beds/{bed['id']}")).json()["data"]
        assert bed["status"] == "occupied"
        assert bed["current_patient_id"] == patient["id"]
        assert bed["current_admission_id"] == admission["id"]

    async def test_patient_cannot_be_admitted_twice(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        first_bed, second_bed = ward_with_beds["beds"]
        first = (await _admit(admin_client, patient["id"], ward["id"], first_bed["id"])).json()["data"]

        response = await _admit(admin_client, patient["id"], ward["id"], second_bed["id"])

        assert response.status_code == 409
        assert response.json()["details"]["admission_id"] == first["id"]

    async def test_occupied_bed_conflicts(
        self, admin_client: AsyncClient, patient: dict, sample_patient_data: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        bed = ward_with_beds["beds"][0]
        await _admit(admin_client, patient["id"], ward["id"], bed["id"])
        other = (await admin_client.post(
            "/api/v1/patients", json=dict(sample_patient_data, first_name="Peter")
        )).json()["data"]

        response = await _admit(admin_client, other["id"], ward["id"], bed["id"])

        assert response.status_code == 409
        assert response.json()["message"] == "Bed B-01 is occupied"

    async def test_bed_from_another_ward_rejected(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        other = (await admin_client.post(
            "/api/v1/wards", json={"name": "Surgical", "ward_number": "SW-1", "capacity": 2}
        )).json()["data"]

        response = await _admit(admin_client, patient["id"], other["id"], ward_with_beds["beds"][0]["id"])
        assert response.status_code == 400

    async def test_transfer_moves_patient(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        old_bed, new_bed = ward_with_beds["beds"]
        admission = (await _admit(admin_client, patient["id"], ward["id"], old_bed["id"])).json()["data"]

        response = await admin_client.put(
            f"/api/v1/ipd-records/{admission['id']}/transfer",
            json={"ward_id": ward["id"], "bed_id": new_bed["id"], "reason": "Closer to nursing station"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["bed_id"] == new_bed["id"]
        assert data["status"] == "admitted"
        assert data["transfers"][0]["from_bed_id"] == old_bed["id"]
        assert data["transfers"][0]["reason"] == "Closer to nursing station"

        old = (await admin_client.get(f"/api/v1/beds/{old_bed['id']}")).json()["data"]
        new = (await admin_client.get(f"/api/v1/beds/{new_bed['id']}")).json()["data"]
        assert old["status"] == "cleaning"
        assert old["current_patient_id"] is None
        assert new["status"] == "occupied"

        response = await admin_client.put(
            f"/api/v1/ipd-records/{admission['id']}/transfer",
            json={"ward_id": ward["id"], "bed_id": new_bed["id"]},
        )
        assert response.status_code == 400

    async def test_discharge_sends_bed_to_cleaning(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        bed = ward_with_beds["beds"][0]
        admission = (await _admit(admin_client, patient["id"], ward["id"], bed["id"])).json()["data"]

        response = await admin_client.put(
            f"/api/v1/ipd-records/{admission['id']}/discharge",
            json={"discharge_summary": "Recovered"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "discharged"
        assert data["discharge_reason"] == "completed"
        assert data["discharge_date"] is not None

        bed = (await admin_client.get(f"/api/v1/beds/{bed['id']}")).json()["data"]
        assert bed["status"] == "cleaning"

        response = await admin_client.put(f"/api/v1/beds/{bed['id']}/cleaned")
        assert response.json()["data"]["status"] == "available"

        # Closed admissions accept no further entries
        response = await admin_client.post(
            f"/api/v1/ipd-records/{admission['id']}/nursing-notes", json={"note": "late entry"}
        )
        assert response.status_code == 400

        # The patient may be admitted again
        response = await _admit(admin_client, patient["id"], ward["id"], bed["id"])
        assert response.status_code == 201

    async def test_discharge_as_transfer(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        admission = (await _admit(
            admin_client, patient["id"], ward["id"], ward_with_beds["beds"][0]["id"]
        )).json()["data"]

        response = await admin_client.put(
            f"/api/v1/ipd-records/{admission['id']}/discharge", json={"discharge_reason": "transferred"}
        )
        assert response.json()["data"]["status"] == "transferred"

    async def test_clinical_entries(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        admission = (await _admit(
            admin_client, patient["id"], ward["id"], ward_with_beds["beds"][0]["id"]
        )).json()["data"]
        base = f"/api/v1/ipd-records/{admission['id']}"

        response = await admin_client.post(f"{base}/vitals", json={"blood_pressure": "120/80", "heart_rate": 72})
        assert response.json()["data"]["vitals"][0]["blood_pressure"] == "120/80"

        response = await admin_client.post(f"{base}/vitals", json={"blood_pressure": "high"})
        assert response.status_code == 422

        response = await admin_client.post(
            f"{base}/nursing-notes", json={"note": "Comfortable overnight", "category": "observation"}
        )
        assert response.json()["data"]["nursing_notes"][0]["category"] == "observation"

        response = await admin_client.post(
            f"{base}/diagnosis", json={"diagnoses": [{"description": "Community acquired pneumonia", "code": "J18.9"}]}
        )
        assert response.json()["data"]["diagnoses"][0]["code"] == "J18.9"

        response = await admin_client.post(
            f"{base}/medications", json={"medications": [{"name": "Ceftriaxone", "dosage": "1g", "route": "IV"}]}
        )
        assert response.json()["data"]["medications"][0]["name"] == "Ceftriaxone"

    async def test_list_and_statistics(
        self, admin_client: AsyncClient, patient: dict, ward_with_beds: dict
    ) -> None:
        ward = ward_with_beds["ward"]
        await _admit(admin_client, patient["id"], ward["id"], ward_with_beds["beds"][0]["id"])

        listing = (await admin_client.get("/api/v1/ipd-records", params={"status": "admitted"})).json()
        assert listing["count"] == 1
        assert listing["data"][0]["patient"]["id"] == patient["id"]

        stats = (await admin_client.get("/api/v1/ipd-records/statistics")).json()["data"]
        assert stats["current_admissions"] == 1
        assert stats["admissions_this_month"] == 1
        assert {"status": "admitted", "count": 1} in stats["status_counts"]
