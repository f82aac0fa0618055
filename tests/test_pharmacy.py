import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from openpyxl import Workbook
from sqlalchemy.dialects import postgresql

from hims.domain.auth.models import UserRole
from hims.domain.pharmacy.repository import StockItemRepository
from tests.conftest import auth_headers


async def _stock_item(client: AsyncClient, name: str = "Paracetamol 500mg", quantity: int = 100, **extra) -> dict:
    payload = {"name": name, "quantity": quantity, "selling_price": 5, "reorder_level": 20}
    payload.update(extra)
    response = await client.post("/api/v1/stock", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _workbook(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.mark.pharmacy
@pytest.mark.integration
class TestStock:
    """Stock items and the movement ledger."""

    async def test_create_records_opening_balance(self, admin_client: AsyncClient) -> None:
        item = await _stock_item(admin_client)

        assert item["quantity"] == 100
        assert item["location"] == "MAIN STORE"
        assert item["is_low"] is False

        response = await admin_client.get(f"/api/v1/stock/{item['id']}/movements")
        movements = response.json()["data"]
        assert len(movements) == 1
        assert movements[0]["movement_type"] == "receive"
        assert movements[0]["quantity"] == 100
        assert movements[0]["balance_after"] == 100

    async def test_duplicate_name_conflicts(self, admin_client: AsyncClient) -> None:
        await _stock_item(admin_client)
        response = await admin_client.post("/api/v1/stock", json={"name": "Paracetamol 500mg"})
        assert response.status_code == 409

    async def test_manual_adjustment_logged(self, admin_client: AsyncClient) -> None:
        item = await _stock_item(admin_client)

        response = await admin_client.put(
            f"/api/v1/stock/{item['id']}", json={"quantity": 90, "reason": "Damaged"}
        )
        assert response.json()["data"]["quantity"] == 90

        movements = (await admin_client.get(f"/api/v1/stock/{item['id']}/movements")).json()["data"]
        adjust = [m for m in movements if m["movement_type"] == "adjust"]
        assert adjust[0]["quantity"] == -10
        assert adjust[0]["balance_after"] == 90
        assert adjust[0]["reference"] == "Damaged"

    async def test_low_stock(self, admin_client: AsyncClient) -> None:
        await _stock_item(admin_client)
        low = await _stock_item(admin_client, name="Amoxicillin 250mg", quantity=5)

        response = await admin_client.get("/api/v1/stock/low")

        data = response.json()["data"]
        assert [i["id"] for i in data] == [low["id"]]
        assert data[0]["is_low"] is True

    async def test_stock_take(self, admin_client: AsyncClient) -> None:
        counted = await _stock_item(admin_client)
        unchanged = await _stock_item(admin_client, name="Ibuprofen 400mg", quantity=40)

        response = await admin_client.post("/api/v1/stock/stock-take", json={
            "counts": [
                {"item_id": counted["id"], "actual": 97},
                {"item_id": unchanged["id"], "actual": 40},
            ],
            "reference": "Monthly count",
        })

        assert response.status_code == 200
        movements = response.json()["data"]
        assert len(movements) == 1
        assert movements[0]["item_id"] == counted["id"]
        assert movements[0]["quantity"] == -3
        assert movements[0]["balance_after"] == 97

    async def test_stock_take_unknown_item(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(
            "/api/v1/stock/stock-take", json={"counts": [{"item_id": "missing", "actual": 1}]}
        )
        assert response.status_code == 404
        assert response.json()["details"] == {"item_ids": ["missing"]}

    async def test_import_excel(self, admin_client: AsyncClient) -> None:
        existing = await _stock_item(admin_client)
        content = _workbook([
            ["Name", "Quantity", "Reorder Level", "Selling Price", "Expiry Date"],
            ["Paracetamol 500mg", 120, 25, 6, "2030-06-30"],
            ["Cotton Wool", 10, None, None, None],
            [None, None, None, None, None],
            [None, 5, None, None, None],
            ["Gauze", -4, None, None, None],
        ])

        response = await admin_client.post(
            "/api/v1/stock/import",
            files={"file": ("stock.xlsx", content, "application/octet-stream")},
        )

        assert response.status_code == 200
        result = response.json()["data"]
        assert result["created"] == 1
        assert result["updated"] == 1
        assert [e["row"] for e in result["errors"]] == [5, 6]
        assert result["errors"][0]["message"] == "name: Field required"

        item = (await admin_client.get(f"/api/v1/stock/{existing['id']}")).json()["data"]
        assert item["quantity"] == 120
        assert item["reorder_level"] == 25
        assert item["expiry_date"] == "2030-06-30"

    async def test_import_rejects_non_workbook(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(
            "/api/v1/stock/import", files={"file": ("stock.xlsx", b"not a workbook", "text/plain")}
        )
        assert response.status_code == 422

    async def test_export_xlsx(self, admin_client: AsyncClient) -> None:
        await _stock_item(admin_client)
        response = await admin_client.get("/api/v1/stock/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert response.content[:2] == b"PK"


@pytest.mark.pharmacy
@pytest.mark.integration
class TestDispensing:
    async def test_dispense_reduces_stock(self, admin_client: AsyncClient, patient: dict) -> None:
        item = await _stock_item(admin_client)

        response = await admin_client.post("/api/v1/dispensing", json={
            "patient_id": patient["id"],
            "items": [{"stock_item_id": item["id"], "quantity": 10, "instructions": "1x3"}],
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["dispensing_type"] == "patient"
        assert data["total_amount"] == 50.0
        assert data["recipient_name"] == "John Doe"
        assert data["items"][0]["item_name"] == "Paracetamol 500mg"

        stock = (await admin_client.get(f"/api/v1/stock/{item['id']}")).json()["data"]
        assert stock["quantity"] == 90

    async def test_insufficient_stock_changes_nothing(self, admin_client: AsyncClient, patient: dict) -> None:
        plenty = await _stock_item(admin_client)
        scarce = await _stock_item(admin_client, name="Insulin", quantity=2)

        response = await admin_client.post("/api/v1/dispensing", json={
            "patient_id": patient["id"],
            "items": [
                {"stock_item_id": plenty["id"], "quantity": 10},
                {"stock_item_id": scarce["id"], "quantity": 3},
            ],
        })

        assert response.status_code == 400
        short = response.json()["details"]["items"]
        assert short == [{"item_id": scarce["id"], "name": "Insulin", "available": 2, "requested": 3}]

        stock = (await admin_client.get(f"/api/v1/stock/{plenty['id']}")).json()["data"]
        assert stock["quantity"] == 100
        listing = (await admin_client.get("/api/v1/dispensing")).json()
        assert listing["count"] == 0

    async def test_direct_dispensing(self, admin_client: AsyncClient) -> None:
        item = await _stock_item(admin_client)

        response = await admin_client.post("/api/v1/direct-dispensing", json={
            "customer_name": "Walk-in Customer",
            "items": [{"stock_item_id": item["id"], "quantity": 2, "unit_price": 7.5}],
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["dispensing_type"] == "direct"
        assert data["recipient_name"] == "Walk-in Customer"
        assert data["total_amount"] == 15.0

        assert (await admin_client.get("/api/v1/direct-dispensing")).json()["count"] == 1
        assert (await admin_client.get("/api/v1/dispensing")).json()["count"] == 0

    async def test_ledger_csv(self, admin_client: AsyncClient, patient: dict) -> None:
        item = await _stock_item(admin_client)
        await admin_client.post("/api/v1/dispensing", json={
            "patient_id": patient["id"],
            "items": [{"stock_item_id": item["id"], "quantity": 4}],
        })

        response = await admin_client.get("/api/v1/dispensing/ledger", params={"format": "csv"})

        assert response.status_code == 200
        lines = response.text.strip().splitlines()
        assert lines[0] == "Date,Patient Name,Patient ID,Medicine,Quantity,Issued By"
        assert "John Doe" in lines[1]
        assert patient["patient_number"] in lines[1]
        assert lines[1].endswith(",4,Admin Tester")

    async def test_ledger_pdf_default(self, admin_client: AsyncClient) -> None:
        response = await admin_client.get("/api/v1/dispensing/ledger")
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    async def test_nurse_cannot_dispense(self, client: AsyncClient, make_user, patient: dict) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await client.post(
            "/api/v1/direct-dispensing",
            json={"customer_name": "X", "items": [{"stock_item_id": "a", "quantity": 1}]},
            headers=auth_headers(nurse),
        )
        assert response.status_code == 403


@pytest.mark.pharmacy
@pytest.mark.unit
class TestStockLocking:
    """Quantity writes read their stock rows with SELECT ... FOR UPDATE."""

    @pytest.mark.parametrize("lookup", [
        lambda repo: repo.get_many(["a", "b"], lock=True),
        lambda repo: repo.get_by_name("Gauze", lock=True),
        lambda repo: repo.get_locked("a"),
    ])
    async def test_write_lookups_lock_rows(self, lookup) -> None:
        db = MagicMock()
        db.execute = AsyncMock(return_value=MagicMock())

        await lookup(StockItemRepository(db))

        stmt = db.execute.await_args.args[0]
        assert "FOR UPDATE" in str(stmt.compile(dialect=postgresql.dialect()))

    async def test_read_lookups_do_not_lock(self) -> None:
        db = MagicMock()
        db.execute = AsyncMock(return_value=MagicMock())

        await StockItemRepository(db).get_by_name("Gauze")

        stmt = db.execute.await_args.args[0]
        assert "FOR UPDATE" not in str(stmt.compile(dialect=postgresql.dialect()))


@pytest.mark.pharmacy
@pytest.mark.integration
class TestLockedWritePaths:
    async def test_dispensing_locks_items(self, admin_client: AsyncClient, patient: dict) -> None:
        item = await _stock_item(admin_client)
        original = StockItemRepository.get_many

        with patch.object(StockItemRepository, "get_many", autospec=True, side_effect=original) as spy:
            response = await admin_client.post("/api/v1/dispensing", json={
                "patient_id": patient["id"],
                "items": [{"stock_item_id": item["id"], "quantity": 4}],
            })

        assert response.status_code == 201
        assert spy.call_args.kwargs["lock"] is True

        movements = (await admin_client.get(f"/api/v1/stock/{item['id']}/movements")).json()["data"]
        dispensed = [m for m in movements if m["movement_type"] == "dispense"]
        assert [m["balance_after"] for m in dispensed] == [96]

    async def test_adjustment_locks_item(self, admin_client: AsyncClient) -> None:
        item = await _stock_item(admin_client)
        original = StockItemRepository.get_locked

        with patch.object(StockItemRepository, "get_locked", autospec=True, side_effect=original) as spy:
            response = await admin_client.put(f"/api/v1/stock/{item['id']}", json={"quantity": 80})

        assert response.json()["data"]["quantity"] == 80
        spy.assert_called_once()
