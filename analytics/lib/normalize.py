"""
Field normalization for opportunity and commitment exports.

Every parser here is total: malformed input degrades to an empty-string or
zero sentinel, so one bad cell never fails a whole batch.

Usage:
    from analytics.lib.normalize import parse_date, parse_currency, trim
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Sequence, Union

from analytics.lib.config import NO_COMMITMENT

MONTH_NAMES = {
    1: "January", 2: "February", 3: "March", 4: "April",
    5: "May", 6: "June", 7: "July", 8: "August",
    9: "September", 10: "October", 11: "November", 12: "December",
}

MIN_YEAR = 2000
MAX_YEAR = 2100

_NON_DIGITS = re.compile(r"[^0-9]")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

Column = Union[str, Sequence[str]]


@dataclass(frozen=True)
class ParsedDate:
    month: str = ""
    year: str = ""
    month_num: int = 0


@dataclass(frozen=True)
class ParsedProbability:
    display: str = ""
    numeric: int = 0


EMPTY_DATE = ParsedDate()
EMPTY_PROBABILITY = ParsedProbability()


def _is_number(val: Any) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def trim(val: Any) -> str:
    """Stringify and strip a raw cell. None becomes ''."""
    if val is None:
        return ""
    if isinstance(val, float):
        if not math.isfinite(val):
            return ""
        # Spreadsheet readers hand back integral ids as floats (12345.0)
        if val.is_integer():
            return str(int(val))
    return str(val).strip()


def read_raw(record: Mapping[str, Any], column: Column) -> Any:
    """Return the untouched cell for a column.

    ``column`` is either one header name or a list of candidate headers, in
    which case the first non-empty cell wins.
    """
    if isinstance(column, str):
        return record.get(column)
    for name in column:
        value = record.get(name)
        if trim(value):
            return value
    return None


def read_field(record: Mapping[str, Any], column: Column) -> str:
    """Read a column from a raw record as a trimmed string."""
    return trim(read_raw(record, column))


def _valid_month_year(month_num: int, year_text: str) -> bool:
    if not 1 <= month_num <= 12:
        return False
    if len(year_text) != 4:
        return False
    return MIN_YEAR <= int(year_text) <= MAX_YEAR


def parse_date(raw: Any) -> ParsedDate:
    """Parse a DD/MM/YYYY expected-close date into month name, year, month number.

    Returns EMPTY_DATE when the month is outside 1-12, the year is not exactly
    four digits, or the year falls outside [2000, 2100].
    """
    if isinstance(raw, (datetime, date)):
        year_text = f"{raw.year:04d}"
        if _valid_month_year(raw.month, year_text):
            return ParsedDate(MONTH_NAMES[raw.month], year_text, raw.month)
        return EMPTY_DATE

    text = trim(raw)
    if not text:
        return EMPTY_DATE

    parts = text.split("/")
    if len(parts) < 3:
        return EMPTY_DATE

    month_digits = _NON_DIGITS.sub("", parts[1])
    year_text = _NON_DIGITS.sub("", parts[2])
    if not month_digits or not year_text:
        return EMPTY_DATE

    month_num = int(month_digits)
    if not _valid_month_year(month_num, year_text):
        return EMPTY_DATE
    return ParsedDate(MONTH_NAMES[month_num], year_text, month_num)


def parse_probability(raw: Any) -> ParsedProbability:
    """Strip everything but digits and read the remainder as a percentage.

    Native numbers are percentages already (80 -> 80%), except fractions
    strictly between 0 and 1, which are ratios (0.75 -> 75%).
    """
    if _is_number(raw):
        if not math.isfinite(raw):
            return EMPTY_PROBABILITY
        number = abs(raw)
        if 0 < number < 1:
            number *= 100
        value = int(round(number))
        return ParsedProbability(f"{value}%", value)

    digits = _NON_DIGITS.sub("", trim(raw))
    if not digits:
        return EMPTY_PROBABILITY
    value = int(digits)
    return ParsedProbability(f"{value}%", value)


def parse_currency(raw: Any) -> float:
    """Parse a Brazilian-formatted amount ("1.234,56") into a float.

    '.' is the thousands separator and is dropped; ',' is the decimal
    separator. Anything unparseable is 0.0.
    """
    if _is_number(raw):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    text = trim(raw)
    if not text:
        return 0.0

    cleaned = text.replace(".", "").replace(",", ".", 1)
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return 0.0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def extract_sequence_number(identifier: Any) -> int:
    """Concatenate the digits of an opportunity id and read them as an int.

    "OPP-2024-0101" -> 20240101; ids without digits -> 0.
    """
    digits = _NON_DIGITS.sub("", trim(identifier))
    return int(digits) if digits else 0


def resolve_performer(commitment: Mapping[str, Any], fields: Iterable[str]) -> str:
    """Return the first non-empty performer field, or the NO_COMMITMENT sentinel."""
    if isinstance(fields, str):
        fields = [fields]
    for name in fields:
        value = trim(commitment.get(name))
        if value:
            return value
    return NO_COMMITMENT
