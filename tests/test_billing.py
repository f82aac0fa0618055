import pytest
from httpx import AsyncClient

from hims.domain.auth.models import UserRole
from hims.domain.billing.models import Invoice
from tests.conftest import auth_headers

INVOICES = "/api/v1/billing/invoices"


async def _invoice(client: AsyncClient, patient_id: str, **extra) -> dict:
    payload = {
        "patient_id": patient_id,
        "items": [
            {"description": "Consultation", "unit_price": 1000, "quantity": 1},
            {"description": "Full blood count", "unit_price": 250.5, "quantity": 2},
        ],
    }
    payload.update(extra)
    response = await client.post(INVOICES, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.billing
@pytest.mark.integration
class TestInvoices:
    """Invoice totals, payments and cancellation."""

    async def test_invoice_totals(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"], discount=100, tax=50)

        assert invoice["invoice_number"].startswith("INV-")
        assert invoice["subtotal"] == 1501.0
        assert invoice["total_amount"] == 1451.0
        assert invoice["balance_due"] == 1451.0
        assert invoice["amount_paid"] == 0.0
        assert invoice["status"] == "pending"
        assert [item["total"] for item in invoice["items"]] == [1000.0, 501.0]
        assert invoice["patient"]["id"] == patient["id"]

    async def test_discount_over_subtotal_rejected(self, admin_client: AsyncClient, patient: dict) -> None:
        response = await admin_client.post(INVOICES, json={
            "patient_id": patient["id"],
            "items": [{"description": "Dressing", "unit_price": 100}],
            "discount": 150,
        })
        assert response.status_code == 422

    async def test_unknown_patient(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(INVOICES, json={
            "patient_id": "nope",
            "items": [{"description": "Dressing", "unit_price": 100}],
        })
        assert response.status_code == 404

    async def test_partial_then_full_payment(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])

        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 500, "method": "cash"}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "partial"
        assert data["amount_paid"] == 500.0
        assert data["balance_due"] == 1001.0

        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments",
            json={"amount": 1001, "method": "mobile_money", "reference": "MPESA123"},
        )
        data = response.json()["data"]
        assert data["status"] == "paid"
        assert data["balance_due"] == 0.0
        assert len(data["payments"]) == 2

        # Nothing more can be paid on a settled invoice
        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 1, "method": "cash"}
        )
        assert response.status_code == 400

    async def test_overpayment_rejected(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])

        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 5000, "method": "cash"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "BUSINESS_LOGIC_ERROR"
        assert body["details"]["balance_due"] == 1501.0

        response = await admin_client.get(f"{INVOICES}/{invoice['id']}")
        assert response.json()["data"]["amount_paid"] == 0.0

    async def test_zero_payment_rejected(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])
        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 0, "method": "cash"}
        )
        assert response.status_code == 422

    async def test_cancel_invoice(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])

        response = await admin_client.post(f"{INVOICES}/{invoice['id']}/cancel", json={"reason": "Duplicate"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["balance_due"] == 0.0
        assert "Duplicate" in data["notes"]

        response = await admin_client.post(f"{INVOICES}/{invoice['id']}/cancel")
        assert response.status_code == 400

    async def test_cannot_cancel_paid_invoice(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])
        await admin_client.post(f"{INVOICES}/{invoice['id']}/payments", json={"amount": 100, "method": "cash"})

        response = await admin_client.post(f"{INVOICES}/{invoice['id']}/cancel")
        assert response.status_code == 400

    async def test_overdue_on_read(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"], due_date="2020-01-01")
        assert invoice["status"] == "pending"

        response = await admin_client.get(f"{INVOICES}/{invoice['id']}")
        assert response.json()["data"]["status"] == "overdue"

        response = await admin_client.get(INVOICES, params={"status": "overdue"})
        assert response.json()["count"] == 1

        response = await admin_client.get(INVOICES, params={"status": "pending"})
        assert response.json()["count"] == 0

    async def test_overdue_is_not_written_on_read(
        self, admin_client: AsyncClient, patient: dict, db_session
    ) -> None:
        invoice = await _invoice(admin_client, patient["id"], due_date="2020-01-01")
        await admin_client.get(f"{INVOICES}/{invoice['id']}")
        await admin_client.get("/api/v1/billing/statistics")

        stored = await db_session.get(Invoice, invoice["id"])
        assert stored.status == "pending"

    async def test_partial_payment_past_due_stays_overdue(
        self, admin_client: AsyncClient, patient: dict
    ) -> None:
        invoice = await _invoice(admin_client, patient["id"], due_date="2020-01-01")

        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 500, "method": "cash"}
        )

        data = response.json()["data"]
        assert data["status"] == "overdue"
        assert data["balance_due"] == 1001.0

        stats = (await admin_client.get("/api/v1/billing/statistics")).json()["data"]
        assert stats["overdue_count"] == 1

        response = await admin_client.post(
            f"{INVOICES}/{invoice['id']}/payments", json={"amount": 1001, "method": "mobile_money"}
        )
        assert response.json()["data"]["status"] == "paid"

    async def test_statistics(self, admin_client: AsyncClient, patient: dict) -> None:
        invoice = await _invoice(admin_client, patient["id"])
        await admin_client.post(f"{INVOICES}/{invoice['id']}/payments", json={"amount": 501, "method": "cash"})

        response = await admin_client.get("/api/v1/billing/statistics")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["invoices"]["total_invoices"] == 1
        assert data["invoices"]["total_paid"] == 501.0
        assert data["invoices"]["total_due"] == 1000.0
        assert data["by_method"] == [{"method": "cash", "count": 1, "total": 501.0}]
        assert len(data["payments"]) == 1

        response = await admin_client.get("/api/v1/billing/payments")
        assert response.json()["count"] == 1


@pytest.mark.billing
@pytest.mark.integration
class TestServiceCatalog:
    async def test_service_crud_and_billable_items(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/services", json={"name": "X-Ray Chest", "price": 1500})
        assert response.status_code == 201
        service = response.json()["data"]

        response = await admin_client.post("/api/v1/services", json={"name": "X-Ray Chest", "price": 1500})
        assert response.status_code == 409

        response = await admin_client.get("/api/v1/billing/billable-items", params={"search": "x-ray"})
        items = response.json()["data"]
        assert [i["id"] for i in items] == [service["id"]]
        assert items[0]["item_type"] == "service"


@pytest.mark.billing
@pytest.mark.integration
class TestItemPricing:
    """Per-payer price lists."""

    PRICING = "/api/v1/item-pricing"

    async def test_create_fills_every_category(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(self.PRICING, json={
            "name": "  Amoxicillin 500mg ",
            "prices": {"NHIF": 12.567, "Pharmacy": 15},
        })

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["name"] == "Amoxicillin 500mg"
        assert data["prices"] == {
            "BRITAM": 0.0, "NSSF": 0.0, "NHIF": 12.57, "ASSEMBLE": 0.0, "Pharmacy": 15.0, "HospitalShop": 0.0,
        }

    async def test_update_merges_prices(self, admin_client: AsyncClient) -> None:
        created = (await admin_client.post(self.PRICING, json={
            "name": "Paracetamol 500mg", "prices": {"BRITAM": 10, "NHIF": 8},
        })).json()["data"]

        response = await admin_client.put(f"{self.PRICING}/{created['id']}", json={"prices": {"NHIF": 9}})

        assert response.status_code == 200
        prices = response.json()["data"]["prices"]
        assert prices["BRITAM"] == 10.0
        assert prices["NHIF"] == 9.0

        response = await admin_client.get(self.PRICING, params={"search": "parac"})
        assert [i["id"] for i in response.json()["data"]] == [created["id"]]

    async def test_duplicate_name(self, admin_client: AsyncClient) -> None:
        await admin_client.post(self.PRICING, json={"name": "Gauze"})
        response = await admin_client.post(self.PRICING, json={"name": "gauze"})
        assert response.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"name": "Gauze", "prices": {"NHIF": -1}},
        {"name": "Gauze", "prices": {"AAR": 10}},
        {"name": "   "},
    ])
    async def test_invalid_price_list(self, admin_client: AsyncClient, payload: dict) -> None:
        response = await admin_client.post(self.PRICING, json=payload)
        assert response.status_code == 422

    async def test_null_prices_rejected(self, admin_client: AsyncClient) -> None:
        created = (await admin_client.post(self.PRICING, json={"name": "Gauze"})).json()["data"]
        response = await admin_client.put(f"{self.PRICING}/{created['id']}", json={"prices": None})
        assert response.status_code == 422

    async def test_delete(self, admin_client: AsyncClient) -> None:
        created = (await admin_client.post(self.PRICING, json={"name": "Gauze"})).json()["data"]

        response = await admin_client.delete(f"{self.PRICING}/{created['id']}")
        assert response.status_code == 200

        response = await admin_client.get(f"{self.PRICING}/{created['id']}")
        assert response.status_code == 404

    async def test_pharmacist_manages_prices(self, client: AsyncClient, make_user) -> None:
        pharmacist = await make_user(UserRole.PHARMACIST)
        nurse = await make_user(UserRole.NURSE)

        response = await client.post(self.PRICING, json={"name": "Gauze"}, headers=auth_headers(pharmacist))
        assert response.status_code == 201

        response = await client.post(self.PRICING, json={"name": "Gloves"}, headers=auth_headers(nurse))
        assert response.status_code == 403
