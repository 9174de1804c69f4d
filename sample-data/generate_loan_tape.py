#!/usr/bin/env python3
"""
Generates sample-data/loan_tape.xlsx, a 75-row loan tape for trying loan-report.

Run from the repo root:
    python sample-data/generate_loan_tape.py

Quirks baked in:
  Sheet "Loans"
    - "Regular Payment" mixes numbers, "$1,234.56" text and "(250.00)" negatives
    - "Loan Balance" has one "N/A" cell (shown verbatim, totals treat it as 0)
    - "Interest Rate" is a real percentage format on most rows, text on others,
      and blank on one row (the yield average still counts that row)
    - "Maturity Date" holds real dates
    - 75 rows, so the preview shows 50 and the exports show all of them
  Sheet "Notes"
    - Ignored: only the first sheet is read
"""

from datetime import date
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "loan_tape.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Loans ────────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Loans"
ws.append([
    "Loan Account", "Borrower Name", "Interest Rate", "Maturity Date",
    "Term Left", "Regular Payment", "Loan Balance", "Percent Owned", "Notes",
])

for i in range(1, 76):
    rate = 0.065 + (i % 7) * 0.005
    payment = 250 + i * 12.5
    balance = 10000 + i * 850
    row = [
        f"LN-{1000 + i}",
        f"Borrower {i:02d}",
        rate,
        date(2027 + i % 5, 1 + i % 12, 15),
        f"{12 + i % 48} months",
        payment,
        balance,
        "100%",
        "",
    ]
    if i % 10 == 0:
        row[5] = f"${payment:,.2f}"
    if i == 13:
        row[5] = "(250.00)"
        row[8] = "Refund adjustment"
    if i == 21:
        row[6] = "N/A"
        row[8] = "Balance pending"
    if i % 9 == 0:
        row[2] = f"{rate * 100:.2f}%"
    if i == 40:
        row[2] = None
    ws.append(row)

# Real percentage format on numeric rate cells
for cell in ws["C"][1:]:
    if isinstance(cell.value, float):
        cell.number_format = "0.00%"
for cell in ws["D"][1:]:
    cell.number_format = "mm/dd/yyyy"

# ── Sheet 2: Notes (ignored) ──────────────────────────────────────────────────
ws_notes = wb.create_sheet("Notes")
ws_notes.append(["note"])
ws_notes.append(["Only the first sheet is used for reports."])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
