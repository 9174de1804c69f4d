"""PNG renderer: draws the same cell grid the PDF uses as a matplotlib table."""

from __future__ import annotations

import io

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.table import Table as MplTable

from loan_report.pdf_export import DEFAULT_TITLE, report_stem
from loan_report.projection import ProjectedTable, table_cells

HEADER_FILL = "#F1F5F9"
HEADER_TEXT = "#475569"
BODY_TEXT = "#334155"
ROW_STRIPE = "#F8FAFC"
FOOTER_FILL = "#E2E8F0"
FOOTER_TEXT = "#1E293B"
EDGE = "#E2E8F0"

COLUMN_WIDTH_IN = 1.9
ROW_HEIGHT_IN = 0.32
FONT_SIZE = 9
DPI = 200


def png_filename(title: str) -> str:
    return f"{report_stem(title)}.png"


def render_png(title: str, projected: ProjectedTable) -> bytes:
    """Rasterize header, every body row and the totals row to PNG bytes."""
    grid = table_cells(projected)
    column_count = len(projected.columns)
    row_count = len(grid)
    last = row_count - 1

    fig, ax = plt.subplots(
        figsize=(max(column_count * COLUMN_WIDTH_IN, 4.0), max(row_count * ROW_HEIGHT_IN, 1.0))
    )
    ax.set_axis_off()

    if column_count:
        table = MplTable(ax, bbox=[0, 0, 1, 1])
        width = 1.0 / column_count
        height = 1.0 / row_count
        for r, row in enumerate(grid):
            for c, text in enumerate(row):
                column = projected.columns[c]
                if r == 0:
                    loc, face, color, weight = column.align, HEADER_FILL, HEADER_TEXT, "bold"
                elif r == last:
                    loc, face, color, weight = projected.footer[c].align, FOOTER_FILL, FOOTER_TEXT, "bold"
                else:
                    face = ROW_STRIPE if r % 2 == 0 else "white"
                    loc, color, weight = column.align, BODY_TEXT, "normal"
                cell = table.add_cell(
                    r, c, width, height,
                    text=text, loc=loc, facecolor=face, edgecolor=EDGE,
                )
                cell.get_text().set_color(color)
                cell.get_text().set_fontweight(weight)
        table.auto_set_font_size(False)
        table.set_fontsize(FONT_SIZE)
        ax.add_table(table)

    buffer = io.BytesIO()
    fig.savefig(
        buffer,
        format="png",
        dpi=DPI,
        bbox_inches="tight",
        facecolor="white",
        metadata={"Title": title or DEFAULT_TITLE},
    )
    plt.close(fig)
    png_bytes = buffer.getvalue()
    buffer.close()
    return png_bytes
