import csv
import enum
import io
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)


def _scalar(value: Any) -> Any:
    if isinstance(value, (datetime, date, Decimal, enum.Enum)):
        return _json_default(value)
    return value


def flatten_record(record: Mapping[str, Any], parent_key: str = "", sep: str = ".") -> Dict[str, Any]:
    """Nested mappings become dot keys; lists become JSON strings."""
    flat: Dict[str, Any] = {}
    for key, value in record.items():
        full_key = f"{parent_key}{sep}{key}" if parent_key else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_record(value, full_key, sep=sep))
        elif isinstance(value, (list, tuple)):
            flat[full_key] = json.dumps(list(value), default=_json_default)
        else:
            flat[full_key] = _scalar(value)
    return flat


def collect_columns(rows: Iterable[Mapping[str, Any]]) -> List[str]:
    """Union of keys in first-seen order"""
    columns: List[str] = []
    seen = set()
    for row in rows:
        for key in row.keys():
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def prepare_rows(
    rows: Iterable[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None
) -> Tuple[List[str], List[Dict[str, Any]]]:
    flat_rows = [flatten_record(row) for row in rows]
    return (list(columns) if columns else collect_columns(flat_rows)), flat_rows


def to_csv(rows: Iterable[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    """CSV text with a header row; missing cells are empty."""
    header, flat_rows = prepare_rows(rows, columns)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=header, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in flat_rows:
        writer.writerow({key: "" if row.get(key) is None else row.get(key) for key in header})
    return buffer.getvalue()


def to_json(rows: Iterable[Mapping[str, Any]], indent: int = 2) -> str:
    return json.dumps([dict(row) for row in rows], indent=indent, default=_json_default)
