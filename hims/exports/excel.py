import io
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from hims.exports.tabular import prepare_rows

MAX_COLUMN_WIDTH = 60


def to_excel(
    rows: Iterable[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None,
    sheet_title: str = "Export",
) -> bytes:
    """Single-sheet workbook: bold frozen header, widths fitted to content."""
    header, flat_rows = prepare_rows(rows, columns)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    bold = Font(bold=True)
    for idx, name in enumerate(header, start=1):
        cell = ws.cell(row=1, column=idx, value=name)
        cell.font = bold

    for row_idx, row in enumerate(flat_rows, start=2):
        for col_idx, name in enumerate(header, start=1):
            ws.cell(row=row_idx, column=col_idx, value=row.get(name))

    for col_idx, name in enumerate(header, start=1):
        width = max([len(str(name))] + [len(str(row.get(name) or "")) for row in flat_rows])
        ws.column_dimensions[get_column_letter(col_idx)].width = min(width + 2, MAX_COLUMN_WIDTH)

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    wb.close()
    return buffer.getvalue()


def normalise_header(value: Any) -> str:
    """'Reorder Level' -> 'reorder_level'"""
    text = re.sub(r"[^0-9a-zA-Z]+", "_", str(value or "").strip()).strip("_")
    return text.lower()


def _cell_value(value: Any) -> Any:
    if isinstance(value, datetime) and value.time() == datetime.min.time():
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def read_excel_rows(content: bytes) -> Iterator[Tuple[int, Dict[str, Any]]]:
    """Yield ``(row_number, record)`` from the first sheet; blank rows skipped."""
    wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return
        header = [normalise_header(cell) for cell in header_row]

        for row_number, values in enumerate(rows, start=2):
            record = {
                name: _cell_value(value)
                for name, value in zip(header, values)
                if name
            }
            if all(value is None for value in record.values()):
                continue
            yield row_number, record
    finally:
        wb.close()


def as_date(value: Any) -> Optional[date]:
    """Coerce a spreadsheet cell into a date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
