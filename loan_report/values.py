"""
values.py - Cell parsing and display formatting for loan tapes

Spreadsheet cells arrive as numbers, text, or nothing at all. Every helper in
this module first classifies the raw value into a ``Cell`` and then branches on
its kind, so callers never need their own isinstance checks.

Public API:
    parse_currency("$1,234.56")   -> 1234.56
    parse_currency("(1,234.56)")  -> -1234.56
    parse_percent("9.20%")        -> 9.2
    format_currency(-50)          -> "-$50.00"
    format_plain(None)            -> ""
    to_title_case("loan balance") -> "Loan Balance"

Parsers never raise. A value that cannot be read in the requested domain comes
back as the ``UNPARSEABLE`` sentinel, which is distinct from zero.
"""

from __future__ import annotations

import math
import numbers
import re
from typing import Any, NamedTuple, Union

NUMERIC = "numeric"
TEXT = "text"
ABSENT = "absent"
OTHER = "other"

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]+")
_FLOAT_PREFIX_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_WORD_RE = re.compile(r"\S+")


class Cell(NamedTuple):
    kind: str
    value: Any

    @classmethod
    def of(cls, raw: Any) -> "Cell":
        if isinstance(raw, Cell):
            return raw
        if raw is None:
            return cls(ABSENT, None)
        # bool is a Real subclass but never a spreadsheet number
        if isinstance(raw, bool):
            return cls(OTHER, raw)
        if isinstance(raw, numbers.Real):
            return cls(NUMERIC, raw)
        if isinstance(raw, str):
            return cls(TEXT, raw)
        return cls(OTHER, raw)


class _Unparseable:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNPARSEABLE"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNPARSEABLE"


UNPARSEABLE = _Unparseable()

Parsed = Union[float, int, _Unparseable]


def or_zero(value: Parsed) -> float:
    """Aggregation fallback: unparseable cells count as zero."""
    return 0.0 if value is UNPARSEABLE else value


def parse_currency(value: Any) -> Parsed:
    """
    Read a currency cell.

    Numbers pass through untouched. Text loses every character except digits,
    ``.`` and ``-``; a string holding both ``(`` and ``)`` is an accounting
    negative, so a positive result is flipped (an explicit minus is never
    negated twice).
    """
    cell = Cell.of(value)
    if cell.kind == NUMERIC:
        return cell.value
    if cell.kind != TEXT or not cell.value.strip():
        return UNPARSEABLE

    text = cell.value
    accounting_negative = "(" in text and ")" in text
    cleaned = _NON_NUMERIC_RE.sub("", text)
    if cleaned in ("", ".", "-"):
        return UNPARSEABLE

    try:
        number = float(cleaned)
    except ValueError:
        return UNPARSEABLE

    if accounting_negative and number > 0:
        return -number
    return number


def parse_percent(value: Any) -> Parsed:
    """
    Read a percentage cell in percent points ("9.20%" and 9.2 both mean 9.2%).

    Text is stripped of ``%`` signs and surrounding whitespace, then the
    leading float is taken; trailing junk after the number is ignored.
    """
    cell = Cell.of(value)
    if cell.kind == NUMERIC:
        return cell.value
    if cell.kind != TEXT or not cell.value.strip():
        return UNPARSEABLE

    cleaned = cell.value.replace("%", "").strip()
    match = _FLOAT_PREFIX_RE.match(cleaned)
    if not match:
        return UNPARSEABLE
    number = float(match.group(0))
    return number if math.isfinite(number) else UNPARSEABLE


def format_plain(value: Any) -> str:
    cell = Cell.of(value)
    if cell.kind == ABSENT:
        return ""
    if cell.kind == NUMERIC and isinstance(cell.value, float) and cell.value.is_integer():
        return str(int(cell.value))
    return str(cell.value)


def format_currency(value: Any) -> str:
    """
    Render a value as US dollars ("$1,234.56", "-$1,234.56").

    Anything that does not parse is shown as its raw text instead, so a bad
    cell is visible in the report rather than silently zeroed.
    """
    number = parse_currency(value)
    if number is UNPARSEABLE or not math.isfinite(number):
        return format_plain(value)
    sign = "-" if number < 0 else ""
    return f"{sign}${abs(number):,.2f}"


def to_title_case(text: Any) -> str:
    if not text:
        return ""
    return _WORD_RE.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), str(text))
