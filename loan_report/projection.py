"""
projection.py - Turn a loaded table plus a column selection into display cells

The same ``ProjectedTable`` feeds the text/web preview, the PDF renderer and
the PNG renderer. Only the preview caps rows; exports always carry every row.

Public API:
    table     = Table(headers=[...], rows=[{...}, ...])
    preview   = project_preview(table, ["Loan Balance", "Borrower Name"])
    export    = project_export(table, ["Loan Balance", "Borrower Name"])
    grid      = table_cells(export)   # header labels + body + footer, as text
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from loan_report.aggregates import AggregateResult, compute_aggregates
from loan_report.roles import (
    INTEREST_RATE,
    LOAN_BALANCE,
    REGULAR_PAYMENT,
    RoleMapping,
    is_currency,
    is_right_aligned,
)
from loan_report.values import format_currency, format_plain, to_title_case

PREVIEW_ROW_LIMIT = 50
LEFT = "left"
RIGHT = "right"
TOTALS_LABEL = "Totals"


@dataclass(frozen=True)
class Table:
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)

    def unknown_headers(self, selected: Sequence[str]) -> list[str]:
        known = set(self.headers)
        return [header for header in selected if header not in known]


@dataclass(frozen=True)
class Column:
    header: str
    label: str
    align: str
    currency: bool


@dataclass(frozen=True)
class FooterCell:
    text: str
    align: str


@dataclass(frozen=True)
class ProjectedTable:
    columns: tuple[Column, ...]
    rows: tuple[tuple[str, ...], ...]
    footer: tuple[FooterCell, ...]
    aggregates: AggregateResult
    total_rows: int
    row_limit: Optional[int] = None

    @property
    def headers(self) -> list[str]:
        return [column.header for column in self.columns]

    @property
    def labels(self) -> list[str]:
        return [column.label for column in self.columns]

    @property
    def alignments(self) -> list[str]:
        return [column.align for column in self.columns]

    @property
    def hidden_rows(self) -> int:
        return self.total_rows - len(self.rows)

    @property
    def truncated(self) -> bool:
        return self.hidden_rows > 0

    @property
    def indicator(self) -> Optional[str]:
        if not self.truncated:
            return None
        return f"Showing the first {len(self.rows)} rows of {self.total_rows} total."


def column_for(header: str) -> Column:
    return Column(
        header=header,
        label=to_title_case(header),
        align=RIGHT if is_right_aligned(header) else LEFT,
        currency=is_currency(header),
    )


def format_cell(column: Column, value: Any) -> str:
    return format_currency(value) if column.currency else format_plain(value)


def yield_text(aggregates: AggregateResult) -> str:
    return f"Portfolio Yield: {aggregates.portfolio_yield:.4f}% ({aggregates.loan_count} loans)"


def build_footer(
    columns: Sequence[Column],
    aggregates: AggregateResult,
    roles: RoleMapping,
) -> tuple[FooterCell, ...]:
    """
    Lay out the totals row against the selected columns.

    Slot 0 always holds the "Totals" label and slot 1 the yield summary when
    an interest rate column is selected; currency totals sit under their own
    columns unless one of those two slots already claimed the position.
    """
    cells = [FooterCell("", column.align) for column in columns]

    payment_index = roles.index_of(REGULAR_PAYMENT)
    if payment_index is not None:
        cells[payment_index] = FooterCell(format_currency(aggregates.total_regular_payment), RIGHT)
    balance_index = roles.index_of(LOAN_BALANCE)
    if balance_index is not None:
        cells[balance_index] = FooterCell(format_currency(aggregates.total_loan_balance), RIGHT)

    if len(cells) > 1 and roles.has(INTEREST_RATE):
        cells[1] = FooterCell(yield_text(aggregates), LEFT)
    if cells:
        cells[0] = FooterCell(TOTALS_LABEL, LEFT)
    return tuple(cells)


def project(
    table: Table,
    selected_headers: Sequence[str],
    *,
    row_limit: Optional[int] = None,
) -> ProjectedTable:
    """
    Columns come out in ``selected_headers`` order; rows keep source order.

    Totals are computed over every row even when ``row_limit`` trims the
    displayed body, and only selected roles contribute to the footer.
    """
    selected = list(selected_headers)
    roles = RoleMapping.from_headers(selected)
    aggregates = compute_aggregates(selected, table.rows, roles)
    columns = tuple(column_for(header) for header in selected)

    visible: Sequence[Mapping[str, Any]] = table.rows if row_limit is None else table.rows[:row_limit]
    rows = tuple(
        tuple(format_cell(column, row.get(column.header)) for column in columns)
        for row in visible
    )
    return ProjectedTable(
        columns=columns,
        rows=rows,
        footer=build_footer(columns, aggregates, roles),
        aggregates=aggregates,
        total_rows=len(table.rows),
        row_limit=row_limit,
    )


def project_preview(table: Table, selected_headers: Sequence[str]) -> ProjectedTable:
    return project(table, selected_headers, row_limit=PREVIEW_ROW_LIMIT)


def project_export(table: Table, selected_headers: Sequence[str]) -> ProjectedTable:
    return project(table, selected_headers)


def table_cells(projected: ProjectedTable) -> list[list[str]]:
    """Header labels, body rows and footer as one text grid."""
    return [
        projected.labels,
        *[list(row) for row in projected.rows],
        [cell.text for cell in projected.footer],
    ]
