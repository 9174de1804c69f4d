"""Semantic column roles and the per-selection header lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

REGULAR_PAYMENT = "Regular Payment"
LOAN_BALANCE = "Loan Balance"
INTEREST_RATE = "Interest Rate"
MATURITY_DATE = "Maturity Date"
TERM_LEFT = "Term Left"
PERCENT_OWNED = "Percent Owned"

RIGHT_ALIGNED_ROLES = frozenset(
    role.lower()
    for role in (INTEREST_RATE, MATURITY_DATE, TERM_LEFT, REGULAR_PAYMENT, LOAN_BALANCE, PERCENT_OWNED)
)
CURRENCY_ROLES = frozenset(role.lower() for role in (REGULAR_PAYMENT, LOAN_BALANCE))
TRACKED_ROLES = (REGULAR_PAYMENT, LOAN_BALANCE, INTEREST_RATE)

DEFAULT_SELECTED_HEADERS = [
    "Loan Account",
    "Borrower Name",
    INTEREST_RATE,
    MATURITY_DATE,
    TERM_LEFT,
    REGULAR_PAYMENT,
    LOAN_BALANCE,
]


def is_right_aligned(header: str) -> bool:
    return header.lower() in RIGHT_ALIGNED_ROLES


def is_currency(header: str) -> bool:
    return header.lower() in CURRENCY_ROLES


def default_selection(headers: Iterable[str]) -> list[str]:
    """Default report columns present in this file, in the default order."""
    available = set(headers)
    return [header for header in DEFAULT_SELECTED_HEADERS if header in available]


@dataclass(frozen=True)
class RoleMapping:
    """
    Case-insensitive role -> header lookup for one header list.

    Build it once per table/selection and hand the same instance to the
    aggregator and the projector so both agree on which column is which.
    When two headers differ only in case, the first one in header order wins.
    """

    headers: tuple[str, ...]
    matches: tuple[tuple[str, int], ...]

    @classmethod
    def from_headers(cls, headers: Sequence[str], roles: Iterable[str] = TRACKED_ROLES) -> "RoleMapping":
        matches: list[tuple[str, int]] = []
        lowered = [header.lower() for header in headers]
        for role in roles:
            target = role.lower()
            for index, header in enumerate(lowered):
                if header == target:
                    matches.append((role, index))
                    break
        return cls(headers=tuple(headers), matches=tuple(matches))

    def index_of(self, role: str) -> Optional[int]:
        for matched_role, index in self.matches:
            if matched_role == role:
                return index
        return None

    def header_for(self, role: str) -> Optional[str]:
        index = self.index_of(role)
        return None if index is None else self.headers[index]

    def has(self, role: str) -> bool:
        return self.index_of(role) is not None
