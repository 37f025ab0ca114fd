"""
Utilities Module

This module provides money and date helpers shared by the split and
recurrence engines of the shared property ledger.

Features:
    - Decimal-safe parsing of monetary and percentage inputs
    - Two-decimal rounding (half away from zero)
    - ISO date parsing/formatting
    - Calendar month arithmetic with month-end clamping
    - Currency formatting and sequential ID generation

Functions:
    to_decimal: Convert a number or numeric string to Decimal.
    round_money: Round a Decimal to 2 decimal places.
    is_representable_money: Check a value can be rounded to cents.
    has_at_most_two_decimals: Check monetary precision.
    parse_date: Parse a YYYY-MM-DD string (or pass a date through).
    format_date: Format a date as YYYY-MM-DD.
    add_months: Add calendar months, clamping to month end.
    format_currency: Format amount with currency symbol.
    generate_id: Generate a formatted identifier.
"""

import re
from calendar import monthrange
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")


def to_decimal(value) -> Optional[Decimal]:
    """
    Convert a number or numeric string to Decimal.

    Floats go through str() so 33.33 becomes Decimal("33.33") rather than
    its binary expansion.

    Args:
        value: int, float, str, Decimal or None.

    Returns:
        Decimal | None: The converted value, or None for None/empty string.

    Raises:
        ValueError: If value is not numeric or not finite.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if text == "":
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a numeric value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """
    Round a Decimal to 2 decimal places.

    ROUND_HALF_UP rounds halves away from zero: 0.125 -> 0.13, -0.125 -> -0.13.
    """
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_representable_money(value: Decimal) -> bool:
    """Return True when value can be rounded to cents within the decimal context."""
    try:
        value.quantize(CENT)
    except InvalidOperation:
        return False
    return True


def has_at_most_two_decimals(value: Decimal) -> bool:
    """Return True when value carries no precision beyond cents (False if out of range)."""
    try:
        return value == value.quantize(CENT)
    except InvalidOperation:
        return False


def parse_date(value) -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    date and datetime instances pass through (datetime is truncated to its
    date).

    Raises:
        ValueError: If the string is not a valid ISO date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Date must be in YYYY-MM-DD format, got: {value}")


def format_date(value: Optional[date]) -> Optional[str]:
    """Format a date as YYYY-MM-DD (None passes through)."""
    return value.isoformat() if value is not None else None


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    last_day = monthrange(y, m)[1]
    return date(y, m, min(start.day, last_day))


def format_currency(amount, symbol: str = "$") -> str:
    """
    Format a monetary amount with the appropriate currency symbol.

    Args:
        amount: The amount to format (Decimal, float or int).
        symbol: Currency symbol (default: $).

    Returns:
        str: Formatted string like "$1,234.56".
    """
    value = round_money(to_decimal(amount) or Decimal("0"))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def generate_id(prefix: str = "ID", number: int = 1) -> str:
    """
    Generate a formatted identifier.

    Args:
        prefix: Prefix for the ID (e.g., "E", "R").
        number: Numeric value to format.

    Returns:
        str: Formatted ID like "E001", "R042".
    """
    return f"{prefix}{number:03d}"


def next_sequential_id(prefix: str, existing_ids) -> str:
    """
    Return the next ID in the prefix### sequence.

    IDs that do not follow the prefix### format (e.g. legacy UUIDs) are
    ignored; an empty sequence starts at prefix001.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    max_num = 0
    for existing in existing_ids:
        match = pattern.match(existing)
        if match:
            max_num = max(max_num, int(match.group(1)))
    return generate_id(prefix, max_num + 1)
