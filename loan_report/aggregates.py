"""Portfolio totals for the report footer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional, Sequence

from loan_report.roles import INTEREST_RATE, LOAN_BALANCE, REGULAR_PAYMENT, RoleMapping
from loan_report.values import or_zero, parse_currency, parse_percent


@dataclass(frozen=True)
class AggregateResult:
    total_regular_payment: float
    total_loan_balance: float
    portfolio_yield: float
    loan_count: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _sum_column(rows: Sequence[Mapping[str, Any]], header: Optional[str], parser) -> float:
    if header is None:
        return 0.0
    return sum((or_zero(parser(row.get(header))) for row in rows), 0.0)


def compute_aggregates(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    roles: Optional[RoleMapping] = None,
) -> AggregateResult:
    """
    Sum payments and balances, count loans, and average the interest rate.

    Unparseable cells count as zero. Portfolio yield is the plain mean over
    every row, so a row with a missing or bad rate pulls the average down
    instead of being left out. It is not balance-weighted.
    """
    roles = roles or RoleMapping.from_headers(headers)
    loan_count = len(rows)

    total_regular_payment = _sum_column(rows, roles.header_for(REGULAR_PAYMENT), parse_currency)
    total_loan_balance = _sum_column(rows, roles.header_for(LOAN_BALANCE), parse_currency)

    portfolio_yield = 0.0
    rate_header = roles.header_for(INTEREST_RATE)
    if rate_header is not None and loan_count > 0:
        portfolio_yield = _sum_column(rows, rate_header, parse_percent) / loan_count

    return AggregateResult(
        total_regular_payment=total_regular_payment,
        total_loan_balance=total_loan_balance,
        portfolio_yield=portfolio_yield,
        loan_count=loan_count,
    )
