#!/usr/bin/env python3
from __future__ import annotations

import sys
import tempfile
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st
from pandas.io.formats.style import Styler

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loan_report.image_export import png_filename
from loan_report.loader import ALL_FORMATS
from loan_report.pdf_export import pdf_filename
from loan_report.projection import RIGHT, ProjectedTable, Table, project_export, project_preview
from loan_report.roles import default_selection
from loan_report.services import ReportServices, default_services

DEFAULT_REPORT_TITLE = "Account Portfolio (Lender)"
UPLOAD_TYPES = sorted(ext.lstrip(".") for ext in ALL_FORMATS)


@st.cache_resource(show_spinner=False)
def load_services() -> ReportServices:
    return default_services()


SERVICES = load_services()


def ensure_state() -> None:
    st.session_state.setdefault("upload_key", None)
    st.session_state.setdefault("table", None)
    st.session_state.setdefault("selected_headers", [])
    st.session_state.setdefault("report_title", "")
    st.session_state.setdefault("error", None)


def reset_state() -> None:
    st.session_state["upload_key"] = None
    st.session_state["table"] = None
    st.session_state["selected_headers"] = []
    st.session_state["report_title"] = ""
    st.session_state["error"] = None


def decode_upload(file_bytes: bytes, suffix: str) -> Table:
    with tempfile.TemporaryDirectory(prefix="loan_report_upload_") as tmpdir:
        tmp_path = Path(tmpdir) / f"upload{suffix}"
        tmp_path.write_bytes(file_bytes)
        return SERVICES.decode(tmp_path)


def handle_upload(upload) -> None:
    key = f"{upload.name}:{upload.size}"
    if st.session_state["upload_key"] == key:
        return
    try:
        table = decode_upload(upload.getvalue(), Path(upload.name).suffix.lower())
    except Exception as exc:
        reset_state()
        st.session_state["error"] = f"Could not process the file. Make sure it is a valid spreadsheet. ({exc})"
        return
    st.session_state["upload_key"] = key
    st.session_state["table"] = table
    st.session_state["selected_headers"] = default_selection(table.headers)
    st.session_state["report_title"] = DEFAULT_REPORT_TITLE
    st.session_state["error"] = None


def preview_frame(projected: ProjectedTable) -> Styler:
    records = [list(row) for row in projected.rows]
    records.append([cell.text for cell in projected.footer])
    df = pd.DataFrame(records, columns=pd.Index(projected.headers))
    right = [column.header for column in projected.columns if column.align == RIGHT]
    footer_index = len(records) - 1

    def footer_style(row: pd.Series) -> list[str]:
        if row.name == footer_index:
            return ["font-weight: bold; background-color: #e2e8f0"] * len(row)
        return [""] * len(row)

    styler = df.style.apply(footer_style, axis=1)
    if right:
        styler = styler.set_properties(subset=right, **{"text-align": "right"})
    return styler.relabel_index(projected.labels, axis=1)


def render_column_selector(table: Table) -> None:
    st.subheader("Select the columns for the report")
    left, right = st.columns([1, 1])
    with left:
        if st.button("Select all"):
            st.session_state["selected_headers"] = list(table.headers)
    with right:
        if st.button("Deselect all"):
            st.session_state["selected_headers"] = []
    st.multiselect(
        "Columns (report order follows the order you pick them in)",
        options=table.headers,
        key="selected_headers",
    )


def render_preview(table: Table, selected: list[str]) -> None:
    st.subheader("Report preview")
    if not selected:
        st.info("Select at least one column to see the preview.")
        return
    projected = project_preview(table, selected)
    st.dataframe(preview_frame(projected), width="stretch", hide_index=True)
    if projected.indicator:
        st.caption(projected.indicator)


def render_downloads(table: Table, selected: list[str], title: str) -> None:
    disabled = not selected or not table.rows
    left, right = st.columns(2)
    projected: Optional[ProjectedTable] = None if disabled else project_export(table, selected)

    with left:
        if st.button("Build image (PNG)", disabled=disabled) and projected is not None:
            try:
                with st.spinner("Building image..."):
                    payload = SERVICES.rasterize(title, projected)
            except Exception as exc:
                st.error(f"Could not build the image. Please try again. ({exc})")
            else:
                st.download_button(
                    "Download PNG",
                    data=payload,
                    file_name=png_filename(title),
                    mime="image/png",
                )
    with right:
        if st.button("Build PDF", type="primary", disabled=disabled) and projected is not None:
            try:
                with st.spinner("Building PDF..."):
                    payload = SERVICES.render_document(title, projected)
            except Exception as exc:
                st.error(f"Could not build the PDF. Please try again. ({exc})")
            else:
                st.download_button(
                    "Download PDF",
                    data=payload,
                    file_name=pdf_filename(title),
                    mime="application/pdf",
                )


def set_visuals() -> None:
    st.set_page_config(page_title="Loan Report", page_icon="📄", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        [data-testid="stSidebar"] {display: none !important;}
        [data-testid="collapsedControl"] {display: none !important;}
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    set_visuals()
    ensure_state()

    st.title("Loan Report")
    st.caption("Upload a loan tape, choose the columns, preview the totals, and download a PDF or PNG report.")

    upload = st.file_uploader("Spreadsheet", type=UPLOAD_TYPES)
    if upload is None:
        reset_state()
        st.info("Supported here: " + " ".join(f".{ext}" for ext in UPLOAD_TYPES))
        return

    handle_upload(upload)
    if st.session_state["error"]:
        st.error(st.session_state["error"])
    table: Optional[Table] = st.session_state["table"]
    if table is None:
        return

    st.write(f"**{upload.name}**: {len(table.rows)} rows loaded")
    render_column_selector(table)
    st.divider()
    st.text_input("Report title", key="report_title", placeholder="E.g., Q3 Loan Report")
    st.divider()
    selected = list(st.session_state["selected_headers"])
    render_preview(table, selected)
    render_downloads(table, selected, st.session_state["report_title"])


if __name__ == "__main__":
    main()
