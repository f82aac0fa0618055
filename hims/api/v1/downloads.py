from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from fastapi.responses import Response

from hims.exports import to_csv, to_excel, to_json, to_pdf_table


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    PDF = "pdf"
    JSON = "json"


MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.PDF: "application/pdf",
    ExportFormat.JSON: "application/json",
}


def file_response(
    rows: Iterable[Mapping[str, Any]],
    fmt: ExportFormat,
    basename: str,
    title: str,
    columns: Optional[Sequence[str]] = None,
) -> Response:
    """Render rows in the requested format as an attachment download"""
    rows = list(rows)
    if fmt == ExportFormat.CSV:
        content = to_csv(rows, columns).encode("utf-8")
    elif fmt == ExportFormat.XLSX:
        content = to_excel(rows, columns, sheet_title=title)
    elif fmt == ExportFormat.PDF:
        content = to_pdf_table(title, rows, columns)
    else:
        content = to_json(rows).encode("utf-8")

    filename = f"{basename}_{datetime.now():%Y%m%d}.{fmt.value}"
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
