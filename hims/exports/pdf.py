from datetime import datetime
from io import BytesIO
from typing import Any, Iterable, Mapping, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from hims.exports.tabular import prepare_rows

HEADER_FILL = colors.Color(41 / 255, 128 / 255, 185 / 255)
LANDSCAPE_AFTER_COLUMNS = 6


def to_pdf_table(
    title: str,
    rows: Iterable[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render rows as a titled PDF table"""
    header, flat_rows = prepare_rows(rows, columns)
    pagesize = landscape(A4) if len(header) > LANDSCAPE_AFTER_COLUMNS else A4

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        title=title,
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
    )
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("Cell", parent=styles["BodyText"], fontSize=8, leading=10)
    header_style = ParagraphStyle(
        "HeaderCell", parent=cell_style, fontName="Helvetica-Bold", textColor=colors.white
    )

    generated_at = generated_at or datetime.now()
    elements = [
        Paragraph(escape(title), styles["Title"]),
        Paragraph(f"Exported on {generated_at:%Y-%m-%d %H:%M}", styles["Normal"]),
        Spacer(1, 0.2 * inch),
    ]

    data = [[Paragraph(escape(str(name)), header_style) for name in header]]
    for row in flat_rows:
        data.append([
            Paragraph("" if row.get(name) is None else escape(str(row.get(name))), cell_style)
            for name in header
        ])

    if header:
        usable_width = pagesize[0] - doc.leftMargin - doc.rightMargin
        table = Table(data, colWidths=[usable_width / len(header)] * len(header), repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_FILL),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 6),
        ]))
        elements.append(table)
    else:
        elements.append(Paragraph("No records", styles["Normal"]))

    doc.build(elements)
    return buffer.getvalue()
