from unittest.mock import patch

import pytest
from httpx import AsyncClient

from hims.domain.auth.models import UserRole
from hims.domain.pharmacy.repository import StockItemRepository
from tests.conftest import auth_headers


async def _stock(client: AsyncClient, name: str, quantity: int) -> dict:
    response = await client.post("/api/v1/stock", json={"name": name, "quantity": quantity})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _requisition(client: AsyncClient, *items) -> dict:
    response = await client.post("/api/v1/requisitions", json={
        "from_department": "Pharmacy",
        "items": [{"medicine": name, "quantity": qty} for name, qty in items],
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.pharmacy
@pytest.mark.integration
class TestRequisitions:
    """Departmental requisitions against the main store."""

    async def test_create_requisition(self, admin_client: AsyncClient) -> None:
        requisition = await _requisition(admin_client, ("Paracetamol 500mg", 30))

        assert requisition["status"] == "Sent"
        assert requisition["items"][0]["status"] == "Pending"
        assert requisition["items"][0]["issued_qty"] == 0

    async def test_issue_moves_stock(self, admin_client: AsyncClient) -> None:
        stock = await _stock(admin_client, "Paracetamol 500mg", 100)
        requisition = await _requisition(admin_client, ("paracetamol 500mg", 30), ("Unknown Drug", 5))
        lines = {i["medicine"]: i for i in requisition["items"]}
        issued, rejected = lines["paracetamol 500mg"], lines["Unknown Drug"]

        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={
            "items": [
                {"item_id": issued["id"], "status": "Issued", "issued_qty": 25},
                {"item_id": rejected["id"], "status": "Rejected", "remarks": "Not stocked"},
            ],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "Processing"
        by_id = {i["id"]: i for i in data["items"]}
        assert by_id[issued["id"]]["issued_qty"] == 25
        assert by_id[rejected["id"]]["status"] == "Rejected"
        assert by_id[rejected["id"]]["remarks"] == "Not stocked"

        item = (await admin_client.get(f"/api/v1/stock/{stock['id']}")).json()["data"]
        assert item["quantity"] == 75
        movements = (await admin_client.get(f"/api/v1/stock/{stock['id']}/movements")).json()["data"]
        assert any(m["movement_type"] == "issue" and m["quantity"] == -25 for m in movements)

    async def test_issue_locks_stock_row(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gauze", 20)
        requisition = await _requisition(admin_client, ("Gauze", 5))
        original = StockItemRepository.get_by_name

        with patch.object(StockItemRepository, "get_by_name", autospec=True, side_effect=original) as spy:
            response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={
                "items": [{"item_id": requisition["items"][0]["id"], "status": "Issued"}],
            })

        assert response.status_code == 200
        assert spy.call_args.kwargs["lock"] is True

    async def test_issue_more_than_requested_rejected(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gloves", 500)
        requisition = await _requisition(admin_client, ("Gloves", 10))

        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={
            "items": [{"item_id": requisition["items"][0]["id"], "status": "Issued", "issued_qty": 11}],
        })
        assert response.status_code == 400

    async def test_issue_beyond_stock_rolls_back(self, admin_client: AsyncClient) -> None:
        stock = await _stock(admin_client, "Gloves", 5)
        requisition = await _requisition(admin_client, ("Gloves", 10))

        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={
            "items": [{"item_id": requisition["items"][0]["id"], "status": "Issued"}],
        })

        assert response.status_code == 400
        assert response.json()["details"]["available"] == 5
        item = (await admin_client.get(f"/api/v1/stock/{stock['id']}")).json()["data"]
        assert item["quantity"] == 5

    async def test_closed_requisition_is_frozen(self, admin_client: AsyncClient) -> None:
        requisition = await _requisition(admin_client, ("Gloves", 10))
        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={"status": "Closed"})
        assert response.json()["data"]["status"] == "Closed"

        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={"notes": "late"})
        assert response.status_code == 400

    async def test_pharmacist_requests_but_cannot_issue(self, client: AsyncClient, make_user) -> None:
        pharmacist = await make_user(UserRole.PHARMACIST)
        nurse = await make_user(UserRole.NURSE)

        response = await client.post(
            "/api/v1/requisitions",
            json={"from_department": "Ward A", "items": [{"medicine": "Gloves", "quantity": 1}]},
            headers=auth_headers(nurse),
        )
        assert response.status_code == 403

        response = await client.post(
            "/api/v1/requisitions",
            json={"from_department": "Pharmacy", "items": [{"medicine": "Gloves", "quantity": 1}]},
            headers=auth_headers(pharmacist),
        )
        assert response.status_code == 201


@pytest.mark.pharmacy
@pytest.mark.integration
class TestItemReceiving:
    async def test_receive_creates_and_tops_up_stock(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/item-receiving/invoices", json={
            "invoice_number": "SUP-001",
            "supplier": "Kenya Medical Supplies",
        })
        assert response.status_code == 201
        invoice = response.json()["data"]

        response = await admin_client.post("/api/v1/item-receiving", json={
            "invoice_id": invoice["id"],
            "medicine": "Ceftriaxone 1g",
            "quantity": 50,
            "price": 120,
            "expiry_date": "2028-01-31",
        })
        assert response.status_code == 201
        received = response.json()["data"]
        assert received["receive_to"] == "MAIN STORE"

        await admin_client.post("/api/v1/item-receiving", json={
            "invoice_id": invoice["id"], "medicine": "ceftriaxone 1g", "quantity": 10, "price": 110,
        })

        item = (await admin_client.get(f"/api/v1/stock/{received['stock_item_id']}")).json()["data"]
        assert item["quantity"] == 60
        assert item["unit_cost"] == 110.0
        assert item["expiry_date"] == "2028-01-31"

        invoice = (await admin_client.get(f"/api/v1/item-receiving/invoices/{invoice['id']}")).json()["data"]
        assert len(invoice["items"]) == 2
        assert invoice["total_value"] == 7100.0

    async def test_duplicate_supplier_invoice(self, admin_client: AsyncClient) -> None:
        payload = {"invoice_number": "SUP-001", "supplier": "KEMSA"}
        await admin_client.post("/api/v1/item-receiving/invoices", json=payload)
        response = await admin_client.post("/api/v1/item-receiving/invoices", json=payload)
        assert response.status_code == 409

    async def test_receive_against_unknown_invoice(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/item-receiving", json={
            "invoice_id": "missing", "medicine": "X", "quantity": 1,
        })
        assert response.status_code == 404


async def _issue_all(client: AsyncClient, requisition: dict) -> None:
    response = await client.put(f"/api/v1/requisitions/{requisition['id']}", json={
        "items": [{"item_id": i["id"], "status": "Issued"} for i in requisition["items"]],
    })
    assert response.status_code == 200, response.text


@pytest.mark.pharmacy
@pytest.mark.integration
class TestIncomingItems:
    """Issued requisition lines wait for the department to receive them."""

    async def test_issue_creates_incoming_item(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gauze", 50)
        requisition = await _requisition(admin_client, ("Gauze", 12))

        response = await admin_client.get("/api/v1/incoming-items")
        assert response.json()["count"] == 0

        await _issue_all(admin_client, requisition)

        response = await admin_client.get("/api/v1/incoming-items")
        assert response.status_code == 200
        items = response.json()["data"]
        assert len(items) == 1
        assert items[0]["name"] == "Gauze"
        assert items[0]["quantity"] == 12
        assert items[0]["source"] == "MAIN STORE"
        assert items[0]["department"] == "Pharmacy"
        assert items[0]["requisition_id"] == requisition["id"]
        assert items[0]["received"] is False

    async def test_mark_received(self, admin_client: AsyncClient, admin_user) -> None:
        await _stock(admin_client, "Gauze", 50)
        await _issue_all(admin_client, await _requisition(admin_client, ("Gauze", 12)))
        incoming = (await admin_client.get("/api/v1/incoming-items")).json()["data"][0]

        response = await admin_client.put(f"/api/v1/incoming-items/{incoming['id']}", json={"received": True})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["received"] is True
        assert data["received_by"] == admin_user.id
        assert data["received_at"] is not None

        assert (await admin_client.get("/api/v1/incoming-items")).json()["count"] == 0
        received = await admin_client.get("/api/v1/incoming-items", params={"status": "received"})
        assert [i["id"] for i in received.json()["data"]] == [incoming["id"]]
        assert (await admin_client.get("/api/v1/incoming-items", params={"status": "all"})).json()["count"] == 1

        response = await admin_client.put(f"/api/v1/incoming-items/{incoming['id']}", json={"received": True})
        assert response.status_code == 400

    async def test_receipt_cannot_be_undone(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gauze", 50)
        await _issue_all(admin_client, await _requisition(admin_client, ("Gauze", 2)))
        incoming = (await admin_client.get("/api/v1/incoming-items")).json()["data"][0]

        response = await admin_client.put(f"/api/v1/incoming-items/{incoming['id']}", json={"received": False})
        assert response.status_code == 400

    async def test_rejected_and_failed_lines_are_not_incoming(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gloves", 5)
        requisition = await _requisition(admin_client, ("Gloves", 10), ("Unknown Drug", 1))
        lines = {i["medicine"]: i for i in requisition["items"]}

        response = await admin_client.put(f"/api/v1/requisitions/{requisition['id']}", json={
            "items": [
                {"item_id": lines["Unknown Drug"]["id"], "status": "Rejected"},
                {"item_id": lines["Gloves"]["id"], "status": "Issued"},
            ],
        })
        assert response.status_code == 400

        response = await admin_client.get("/api/v1/incoming-items", params={"status": "all"})
        assert response.json()["count"] == 0

    async def test_filter_by_department(self, admin_client: AsyncClient) -> None:
        await _stock(admin_client, "Gauze", 50)
        await _issue_all(admin_client, await _requisition(admin_client, ("Gauze", 2)))

        response = await admin_client.get("/api/v1/incoming-items", params={"department": "ward"})
        assert response.json()["count"] == 0
        response = await admin_client.get("/api/v1/incoming-items", params={"department": "pharm"})
        assert response.json()["count"] == 1

    async def test_unknown_item(self, admin_client: AsyncClient) -> None:
        response = await admin_client.put("/api/v1/incoming-items/missing", json={"received": True})
        assert response.status_code == 404
