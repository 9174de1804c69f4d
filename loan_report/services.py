"""
External collaborators used by the CLI and the web app.

The projection core only produces ``ProjectedTable`` values. Decoding files and
turning projections into PDF/PNG bytes live behind these three callables so
front ends can swap them (tests inject fakes).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from loan_report.projection import ProjectedTable, Table

Decoder = Callable[[Path], Table]
DocumentRenderer = Callable[[str, ProjectedTable], bytes]
Rasterizer = Callable[[str, ProjectedTable], bytes]


@dataclass(frozen=True)
class ReportServices:
    decode: Decoder
    render_document: DocumentRenderer
    rasterize: Rasterizer


def default_services() -> ReportServices:
    from loan_report.image_export import render_png
    from loan_report.loader import load_table
    from loan_report.pdf_export import render_pdf

    return ReportServices(decode=load_table, render_document=render_pdf, rasterize=render_png)
