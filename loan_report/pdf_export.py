"""
PDF renderer for projected loan tables.

Landscape A4: a blue title banner, then the table with a repeating header,
striped body and a single totals row after the last loan.
"""

from __future__ import annotations

import io
import re
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from loan_report.projection import RIGHT, ProjectedTable

BRAND_BLUE = colors.Color(37 / 255, 72 / 255, 199 / 255)
ROW_STRIPE = colors.Color(248 / 255, 249 / 255, 250 / 255)
FOOTER_FILL = colors.Color(236 / 255, 239 / 255, 241 / 255)
FOOTER_TEXT = colors.Color(44 / 255, 62 / 255, 80 / 255)

PAGE_MARGIN = 15 * mm
BANNER_HEIGHT = 20 * mm
DEFAULT_TITLE = "Report"


def report_stem(title: str) -> str:
    return re.sub(r"\s", "_", title.strip() or DEFAULT_TITLE)


def pdf_filename(title: str) -> str:
    return f"{report_stem(title)}_report.pdf"


def _sizing(column_count: int) -> tuple[float, float]:
    """(font size, cell padding) that keep wide selections on one page width."""
    if column_count > 12:
        return 7, 1.5
    if column_count > 8:
        return 8, 2
    return 9.5, 2.5


def _paragraph(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text), style)


def _cell_styles(font_size: float) -> dict[str, ParagraphStyle]:
    base = {"fontName": "Helvetica", "fontSize": font_size, "leading": font_size * 1.2}
    bold = {**base, "fontName": "Helvetica-Bold"}
    return {
        "body_left": ParagraphStyle("BodyLeft", alignment=TA_LEFT, **base),
        "body_right": ParagraphStyle("BodyRight", alignment=TA_RIGHT, **base),
        "head_left": ParagraphStyle("HeadLeft", alignment=TA_LEFT, textColor=colors.white, **{**bold, "fontSize": 10, "leading": 12}),
        "head_right": ParagraphStyle("HeadRight", alignment=TA_RIGHT, textColor=colors.white, **{**bold, "fontSize": 10, "leading": 12}),
        "foot_left": ParagraphStyle("FootLeft", alignment=TA_LEFT, textColor=FOOTER_TEXT, **bold),
        "foot_right": ParagraphStyle("FootRight", alignment=TA_RIGHT, textColor=FOOTER_TEXT, **bold),
    }


def _banner(title: str, width: float) -> Table:
    style = ParagraphStyle(
        "Banner",
        fontName="Helvetica-Bold",
        fontSize=22,
        leading=26,
        alignment=TA_CENTER,
        textColor=colors.white,
    )
    banner = Table([[_paragraph(title, style)]], colWidths=[width], rowHeights=[BANNER_HEIGHT])
    banner.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), BRAND_BLUE),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return banner


def build_table_data(projected: ProjectedTable, font_size: float) -> list[list[Paragraph]]:
    styles = _cell_styles(font_size)

    def side(align: str) -> str:
        return "right" if align == RIGHT else "left"

    head = [
        _paragraph(column.label, styles[f"head_{side(column.align)}"])
        for column in projected.columns
    ]
    body = [
        [
            _paragraph(text, styles[f"body_{side(column.align)}"])
            for column, text in zip(projected.columns, row)
        ]
        for row in projected.rows
    ]
    foot = [_paragraph(cell.text, styles[f"foot_{side(cell.align)}"]) for cell in projected.footer]
    return [head, *body, foot]


def render_pdf(title: str, projected: ProjectedTable) -> bytes:
    """Render the full projected table to PDF bytes."""
    buffer = io.BytesIO()
    page_size = landscape(A4)
    content_width = page_size[0] - 2 * PAGE_MARGIN
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=4 * mm,
        bottomMargin=4 * mm,
        title=title or DEFAULT_TITLE,
    )

    story = [_banner(title or DEFAULT_TITLE, content_width), Spacer(1, 3 * mm)]

    column_count = len(projected.columns)
    if column_count:
        font_size, padding = _sizing(column_count)
        data = build_table_data(projected, font_size)
        last = len(data) - 1
        table = Table(data, colWidths=[content_width / column_count] * column_count, repeatRows=1)
        commands = [
            ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), padding),
            ("BOTTOMPADDING", (0, 0), (-1, -1), padding),
            ("LEFTPADDING", (0, 0), (-1, -1), padding),
            ("RIGHTPADDING", (0, 0), (-1, -1), padding),
            ("BACKGROUND", (0, last), (-1, last), FOOTER_FILL),
            ("LINEABOVE", (0, last), (-1, last), 0.5, FOOTER_TEXT),
        ]
        if last > 1:
            commands.append(("ROWBACKGROUNDS", (0, 1), (-1, last - 1), [colors.white, ROW_STRIPE]))
        table.setStyle(TableStyle(commands))
        story.append(table)

    doc.build(story)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes
