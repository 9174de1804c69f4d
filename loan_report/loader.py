"""
loader.py - Spreadsheet loader for loan-report

Supports: .xlsx .xlsm .xls .csv

Public API:
    result = load_file("path/to/loans.xlsx")
    table  = result["table"]

Result dict keys:
    table             - Table(headers, rows); rows map header -> raw cell value
    detected_format   - "xlsx", "xls", "csv", ...
    detected_encoding - encoding name for .csv; None for workbooks
    sheet_name        - sheet that was read (always the first); None for .csv
    sheet_names       - all sheet names for workbooks; None for .csv
    original_rows     - non-blank row count including the header row
    original_columns  - column count
    warnings          - list of warning strings

Only the first worksheet is read. The first non-blank row is the header row;
blank header cells become "__EMPTY", "__EMPTY_1", ... and repeated names get
"_1", "_2" suffixes so every header is unique. Empty cells are left out of the
row mappings.
"""

from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Optional

from loan_report.projection import Table
from loan_report.values import format_plain

# ── Format groups ──────────────────────────────────────────────────────────────
OPENPYXL_FORMATS = {".xlsx", ".xlsm"}
LEGACY_FORMATS   = {".xls"}
TEXT_FORMATS     = {".csv"}
ALL_FORMATS      = OPENPYXL_FORMATS | LEGACY_FORMATS | TEXT_FORMATS

EMPTY_HEADER = "__EMPTY"
DATE_FORMAT  = "%m/%d/%Y"

_PERCENT_FORMAT_RE = re.compile(r"0(?:\.(0+))?%")


# ══════════════════════════════════════════════════════════════════════════════
# CELL NORMALISATION
# ══════════════════════════════════════════════════════════════════════════════

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _plain_value(value: Any, number_format: str = "") -> Any:
    """
    Convert a decoded cell to a number, text, or None.

    Dates become MM/DD/YYYY text. Numbers formatted as percentages in the
    workbook become percent-point text with the format's own decimals
    ("0.00%" gives "9.20%") so 0.092 is never read as 0.092%.
    """
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)) and "%" in (number_format or ""):
        return _percent_text(value, number_format)
    return value


def _percent_text(value: float, number_format: str) -> str:
    match = _PERCENT_FORMAT_RE.search(number_format)
    decimals = len(match.group(1) or "") if match else 2
    return f"{value * 100:.{decimals}f}%"


# ══════════════════════════════════════════════════════════════════════════════
# GRID -> TABLE
# ══════════════════════════════════════════════════════════════════════════════

def _unique_headers(header_row: list[Any], width: int) -> list[str]:
    headers: list[str] = []
    used: set[str] = set()
    for idx in range(width):
        raw = header_row[idx] if idx < len(header_row) else None
        base = EMPTY_HEADER if _is_blank(raw) else format_plain(raw)
        name = base
        suffix = 0
        while name in used:
            suffix += 1
            name = f"{base}_{suffix}"
        used.add(name)
        headers.append(name)
    return headers


def table_from_grid(grid: list[list[Any]]) -> Table:
    """Build a Table from raw rows (first non-blank row is the header)."""
    rows = [row for row in grid if any(not _is_blank(value) for value in row)]
    if not rows:
        return Table(headers=[], rows=[])

    width = 0
    for row in rows:
        for idx in range(len(row) - 1, -1, -1):
            if not _is_blank(row[idx]):
                width = max(width, idx + 1)
                break

    header_row, *data_rows = rows
    headers = _unique_headers(header_row, width)
    records = [
        {
            headers[idx]: value
            for idx, value in enumerate(row[:width])
            if value is not None and value != ""
        }
        for row in data_rows
    ]
    return Table(headers=headers, rows=records)


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    """chardet's best guess, falling back to utf-8."""
    import chardet

    result = chardet.detect(raw)
    detected = result.get("encoding") or "utf-8"
    if detected.upper().replace("-", "") == "ASCII":
        return "utf-8"
    return detected


def _decode_text(raw: bytes, encoding: str) -> str:
    for enc in ("utf-8-sig", encoding):
        try:
            return raw.decode(enc)
        except (LookupError, UnicodeDecodeError):
            continue
    return raw.decode("cp1252", errors="replace")


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _sheet_warnings(sheet_names: list[str]) -> list[str]:
    if len(sheet_names) <= 1:
        return []
    others = sheet_names[1:]
    return [
        f"Multiple sheets found ({len(sheet_names)} total); "
        f"used '{sheet_names[0]}'. Ignored: {others}"
    ]


def _load_openpyxl(path: Path, suffix: str) -> dict:
    """Load .xlsx/.xlsm with openpyxl so number formats are visible."""
    from openpyxl import load_workbook

    try:
        workbook = load_workbook(path, data_only=True)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc

    try:
        sheet_names = list(workbook.sheetnames)
        sheet = workbook.worksheets[0]
        grid = [
            [_plain_value(cell.value, getattr(cell, "number_format", "")) for cell in row]
            for row in sheet.iter_rows()
        ]
    finally:
        workbook.close()

    table = table_from_grid(grid)
    return _result(table, suffix, sheet_name=sheet_names[0], sheet_names=sheet_names)


def _load_legacy_excel(path: Path, suffix: str) -> dict:
    """Load .xls through pandas; requires xlrd."""
    import pandas as pd

    try:
        import xlrd  # noqa: F401
    except ImportError:
        raise ImportError(
            ".xls files require xlrd; run: pip install 'loan-report[excel-legacy]'"
        )

    try:
        with pd.ExcelFile(path) as xf:
            sheet_names = list(xf.sheet_names)
            df = pd.read_excel(xf, sheet_name=sheet_names[0], header=None)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc

    frame = df.astype(object).where(pd.notna(df), None)
    grid = [[_plain_value(value) for value in row] for row in frame.values.tolist()]
    table = table_from_grid(grid)
    return _result(table, suffix, sheet_name=sheet_names[0], sheet_names=sheet_names)


def _load_csv(path: Path, suffix: str) -> dict:
    """Load .csv as text cells; currency/percent parsing happens later."""
    import pandas as pd

    raw = path.read_bytes()
    encoding = _detect_encoding(raw)
    text = _decode_text(raw, encoding)
    records = [
        row for row in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in row)
    ]
    if not records:
        return _result(Table(headers=[], rows=[]), suffix, encoding=encoding)

    # Rows wider than the header are kept; their extra cells land in __EMPTY columns.
    width = max(len(row) for row in records)
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            engine="python",
        )
    except Exception as exc:
        raise ValueError(f"Could not parse {suffix} file: {exc}") from exc

    frame = df.astype(object).where(pd.notna(df), None)
    table = table_from_grid(frame.values.tolist())
    return _result(
        table,
        suffix,
        encoding=encoding,
        extra_warnings=_overflow_warnings(records),
    )


def _overflow_warnings(records: list[list[str]]) -> list[str]:
    header_width = len(records[0])
    overflow = [
        idx
        for idx, row in enumerate(records[1:], start=2)
        if any(cell.strip() for cell in row[header_width:])
    ]
    if not overflow:
        return []
    shown = ", ".join(str(idx) for idx in overflow[:10])
    return [
        f"{len(overflow)} row(s) have more fields than the header "
        f"(rows {shown}); extra values were kept under {EMPTY_HEADER} columns."
    ]


def _result(
    table: Table,
    suffix: str,
    *,
    encoding: Optional[str] = None,
    sheet_name: Optional[str] = None,
    sheet_names: Optional[list[str]] = None,
    extra_warnings: Optional[list[str]] = None,
) -> dict:
    warnings = _sheet_warnings(sheet_names or []) + list(extra_warnings or [])
    if not table.headers:
        warnings.append("No header row found; the table is empty.")
    return {
        "table":             table,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": encoding,
        "sheet_name":        sheet_name,
        "sheet_names":       sheet_names,
        "original_rows":     len(table.rows) + (1 if table.headers else 0),
        "original_columns":  len(table.headers),
        "warnings":          warnings,
    }


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_file(path: Path | str) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in OPENPYXL_FORMATS:
        return _load_openpyxl(path, suffix)
    if suffix in LEGACY_FORMATS:
        return _load_legacy_excel(path, suffix)
    if suffix in TEXT_FORMATS:
        return _load_csv(path, suffix)
    raise ValueError(
        f"Unsupported file type '{suffix or '[missing extension]'}'. "
        f"Supported: {', '.join(sorted(ALL_FORMATS))}"
    )


def load_table(path: Path | str) -> Table:
    return load_file(path)["table"]
