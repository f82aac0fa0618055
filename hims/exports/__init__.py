from hims.exports.tabular import flatten_record, to_csv, to_json
from hims.exports.excel import to_excel, read_excel_rows
from hims.exports.pdf import to_pdf_table

__all__ = [
    "flatten_record",
    "to_csv",
    "to_json",
    "to_excel",
    "read_excel_rows",
    "to_pdf_table",
]
