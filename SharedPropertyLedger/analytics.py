"""
Analytics Module

This module provides the monthly financial snapshot of a property for the
shared property ledger dashboard.

Features:
    - Total expenses of the current calendar month
    - Category-wise breakdown of the month
    - Per-member payer totals of the month
    - Outstanding (owed) amounts per member across all expenses
    - Smart warnings for outstanding imbalances

Data Model:
    Input - members: list of members.Member

    Input - expenses: list of expenses.Expense (or dicts) with:
        - payer_id: string
        - amount: Decimal / float
        - category: string
        - date: date or string (YYYY-MM-DD)
        - splits: list of ExpenseSplit (or dicts with member_id, amount, status)

    Output - dict containing:
        - month_name: string ("October 2026")
        - total_expenses_this_month: float
        - category_breakdown: dict category -> float
        - payer_totals: dict member_id -> float
        - outstanding_by_member: dict member_id -> float
        - warnings: list of warning strings

Functions:
    generate_financial_snapshot: Build the monthly snapshot of a property.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from config.settings import CURRENCY_SYMBOL
from members import find_member
from splitter import SplitStatus
from utils import format_currency, parse_date, round_money, to_decimal

# An outstanding share above this fraction of all outstanding money is flagged
OUTSTANDING_WARNING_SHARE = Decimal("0.5")


def _field(record, name, default=None):
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _member_name(members, member_id: str) -> str:
    member = find_member(members or [], member_id)
    return member.name if member is not None and member.name else member_id


def generate_financial_snapshot(members, expenses, today=None) -> dict:
    """
    Build the monthly financial snapshot of a property.

    Month totals only count expenses dated within the calendar month of
    today. Outstanding amounts count every owed split regardless of date.

    Warnings generated (rule-based):
        - If one member owes more than half of all outstanding money

    Args:
        members: Members of the property (used for display names).
        expenses: Expenses of the property with their splits.
        today: Reference day (default: today).

    Returns:
        dict: See module docstring.

    Notes:
        - All amounts rounded to 2 decimal places
        - No Firebase code
    """
    today = parse_date(today) if today is not None else date.today()

    category_totals = defaultdict(Decimal)
    payer_totals = defaultdict(Decimal)
    outstanding = defaultdict(Decimal)
    month_total = Decimal("0")

    for expense in expenses:
        amount = to_decimal(_field(expense, "amount")) or Decimal("0")
        expense_date = parse_date(_field(expense, "date"))

        if (expense_date.year, expense_date.month) == (today.year, today.month):
            category_totals[_field(expense, "category", "other")] += amount
            payer_totals[_field(expense, "payer_id")] += amount
            month_total += amount

        for split in _field(expense, "splits", []) or []:
            if SplitStatus(_field(split, "status")) is SplitStatus.OWED:
                outstanding[_field(split, "member_id")] += to_decimal(_field(split, "amount")) or Decimal("0")

    warnings = []
    total_outstanding = sum(outstanding.values(), Decimal("0"))
    if total_outstanding > 0:
        for member_id, amount in outstanding.items():
            if amount > total_outstanding * OUTSTANDING_WARNING_SHARE:
                share = round_money(amount / total_outstanding * 100)
                warnings.append(
                    f"Warning: {_member_name(members, member_id)} owes {share}% of all outstanding expenses "
                    f"({format_currency(amount, CURRENCY_SYMBOL)} of {format_currency(total_outstanding, CURRENCY_SYMBOL)})"
                )

    return {
        "month_name": today.strftime("%B %Y"),
        "total_expenses_this_month": float(round_money(month_total)),
        "category_breakdown": {k: float(round_money(v)) for k, v in category_totals.items()},
        "payer_totals": {k: float(round_money(v)) for k, v in payer_totals.items()},
        "outstanding_by_member": {k: float(round_money(v)) for k, v in outstanding.items()},
        "warnings": warnings
    }
