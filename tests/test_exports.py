from datetime import date

import pytest

from hims.exports import flatten_record, read_excel_rows, to_csv, to_excel, to_json, to_pdf_table
from hims.exports.excel import as_date, normalise_header


@pytest.mark.unit
class TestTabular:
    def test_flatten_nested_record(self) -> None:
        record = {
            "name": "Akinyi",
            "released_to": {"name": "Otieno", "contact": {"phone": "0722"}},
            "allergies": ["Penicillin"],
            "date_of_birth": date(1990, 1, 1),
        }

        flat = flatten_record(record)

        assert flat == {
            "name": "Akinyi",
            "released_to.name": "Otieno",
            "released_to.contact.phone": "0722",
            "allergies": '["Penicillin"]',
            "date_of_birth": "1990-01-01",
        }

    def test_csv_union_of_columns(self) -> None:
        text = to_csv([{"a": 1}, {"b": 2, "a": None}])
        assert text == "a,b\n1,\n,2\n"

    def test_csv_explicit_columns_on_empty_rows(self) -> None:
        assert to_csv([], ["Date", "Medicine"]) == "Date,Medicine\n"

    def test_json_serialises_dates(self) -> None:
        assert '"2024-03-01"' in to_json([{"day": date(2024, 3, 1)}])


@pytest.mark.unit
class TestExcel:
    def test_workbook_reads_back(self) -> None:
        content = to_excel(
            [{"Name": "Gauze", "Reorder Level": 10}, {"Name": "Gloves"}],
            sheet_title="Stock",
        )

        rows = list(read_excel_rows(content))

        assert rows[0] == (2, {"name": "Gauze", "reorder_level": 10})
        assert rows[1][0] == 3
        assert rows[1][1]["name"] == "Gloves"
        assert rows[1][1].get("reorder_level") is None

    def test_header_normalisation(self) -> None:
        assert normalise_header(" Reorder Level ") == "reorder_level"
        assert normalise_header("Unit Cost (KES)") == "unit_cost_kes"
        assert normalise_header(None) == ""

    def test_as_date(self) -> None:
        assert as_date("2030-06-30") == date(2030, 6, 30)
        assert as_date("") is None
        assert as_date(date(2030, 1, 1)) == date(2030, 1, 1)


@pytest.mark.unit
class TestPdf:
    def test_table_is_pdf(self) -> None:
        content = to_pdf_table(
            "Dispensing Ledger",
            [{"Medicine": "Paracetamol <500mg>", "Quantity": 4}],
        )
        assert content.startswith(b"%PDF")

    def test_empty_table_still_renders(self) -> None:
        assert to_pdf_table("Empty", [], ["A", "B"]).startswith(b"%PDF")
        assert to_pdf_table("Nothing", []).startswith(b"%PDF")
