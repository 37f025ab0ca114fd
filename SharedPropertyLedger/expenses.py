"""
Expenses Module

This module handles all expense-related operations for the shared property
ledger: every expense is validated, split between the property's members
and stored together with its splits.

Features:
    - Add/edit/delete expenses with their splits
    - Categorize expenses (utilities, maintenance, repairs, ...)
    - Track who paid and who owes what

Data Model:
    Expense stored at: properties/{property_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - property_id: string
        - description: string
        - amount: float (must be > 0, payer_only may be 0)
        - date: string (YYYY-MM-DD)
        - category: string (see VALID_CATEGORIES)
        - payer_id: string (member_id who paid)
        - split_method: string (equal, percentage, fixed, payer_only)
        - notes: string or None

    Splits stored at: properties/{property_id}/expenses/{expense_id}/splits/{member_id}
    Fields: see splitter.ExpenseSplit

Functions:
    add_expense_with_splits: Validate, split and store a new expense.
    update_expense_with_splits: Re-validate, re-split and replace an expense.
    get_expenses: Get all expenses of a property with their splits.
    get_expense_splits: Get the splits of one expense.
    delete_expense: Delete an expense and its splits.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from config.firebase_config import get_db
from errors import SplitValidationError, SplitWarning
from members import get_members
from split_validator import validate_split
from splitter import ExpenseSplit, SplitMethod, allocate_splits
from utils import format_date, next_sequential_id, parse_date, round_money, to_decimal

logger = logging.getLogger(__name__)


# Valid expense categories
VALID_CATEGORIES = {
    "utilities", "maintenance", "repairs", "supplies", "mortgage", "insurance",
    "taxes", "hoa_fees", "management_fees", "cleaning_fees", "other"
}


class Expense:
    """
    Represents a single expense of a property.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        property_id (str): Property the expense belongs to.
        description (str): What the expense was for.
        amount (Decimal): Total amount.
        date (date): Date of the expense.
        category (str): One of VALID_CATEGORIES.
        payer_id (str): Member who paid.
        split_method (SplitMethod): How the amount was split.
        notes (str | None): Optional notes.
        splits (list[ExpenseSplit]): Per-member splits.
    """

    def __init__(
        self,
        expense_id: Optional[str],
        property_id: str,
        description: str,
        amount,
        date,
        category: str,
        payer_id: str,
        split_method,
        notes: Optional[str] = None,
        splits: Optional[list] = None
    ):
        self.expense_id = expense_id
        self.property_id = property_id
        self.description = description
        self.amount = to_decimal(amount)
        self.date = parse_date(date)
        self.category = category
        self.payer_id = payer_id
        self.split_method = SplitMethod.parse(split_method)
        self.notes = notes
        self.splits = list(splits or [])

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage (splits are stored separately)."""
        return {
            "expense_id": self.expense_id,
            "property_id": self.property_id,
            "description": self.description,
            "amount": float(self.amount),
            "date": format_date(self.date),
            "category": self.category,
            "payer_id": self.payer_id,
            "split_method": self.split_method.value,
            "notes": self.notes
        }

    @classmethod
    def from_dict(cls, data: dict, splits: Optional[list] = None) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            property_id=data.get("property_id"),
            description=data.get("description", ""),
            amount=data.get("amount", 0),
            date=data.get("date"),
            category=data.get("category", "other"),
            payer_id=data.get("payer_id"),
            split_method=data.get("split_method", SplitMethod.EQUAL.value),
            notes=data.get("notes"),
            splits=splits
        )

    def __repr__(self) -> str:
        return f"Expense(id='{self.expense_id}', payer='{self.payer_id}', amount={self.amount}, method='{self.split_method.value}')"


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _expenses_ref(db, property_id: str):
    return db.collection("properties").document(property_id).collection("expenses")


def _require_db():
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def _split_expense(
    property_id: str,
    amount,
    payer_id: str,
    split_method,
    split_input: Optional[dict]
) -> tuple[Decimal, SplitMethod, list[ExpenseSplit], list[SplitWarning]]:
    """
    Validate and allocate an expense against the property's current members.

    Raises:
        SplitValidationError: If validation or allocation fails.
    """
    try:
        method = SplitMethod.parse(split_method)
    except ValueError:
        raise ValueError(f"split_method must be one of {[m.value for m in SplitMethod]}, got: {split_method}")

    members = get_members(property_id)

    validation = validate_split(method, amount, split_input, members)
    if not validation.is_valid:
        raise SplitValidationError(validation.errors)

    allocation = allocate_splits(method, amount, split_input, members, payer_id)
    if not allocation.ok:
        raise SplitValidationError([allocation.error])

    return round_money(to_decimal(amount)), method, allocation.value, allocation.warnings


def _check_expense_fields(property_id: str, description: str, expense_date, category: str, payer_id: str) -> date:
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(description, "description")
    _validate_non_empty_string(payer_id, "payer_id")
    if category not in VALID_CATEGORIES:
        raise ValueError(f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}")
    return parse_date(expense_date)


def _write_expense(db, expense: Expense, replace_splits: bool = False) -> None:
    """Write an expense and its splits in one batch."""
    expense_ref = _expenses_ref(db, expense.property_id).document(expense.expense_id)
    batch = db.batch()
    if replace_splits:
        for doc in expense_ref.collection("splits").stream():
            batch.delete(doc.reference)
    batch.set(expense_ref, expense.to_dict())
    for split in expense.splits:
        batch.set(expense_ref.collection("splits").document(split.member_id), split.to_dict())
    batch.commit()


def add_expense_with_splits(
    property_id: str,
    description: str,
    amount,
    expense_date,
    category: str,
    payer_id: str,
    split_method,
    split_input: Optional[dict] = None,
    notes: Optional[str] = None
) -> tuple[Expense, list[SplitWarning]]:
    """
    Validate, split and store a new expense.

    Request flow:
        1. Validate the plain fields (description, category, date)
        2. Fetch the property's members
        3. Validate the split input (split_validator.py)
        4. Allocate the splits (splitter.py)
        5. Store the expense and its splits in one batch

    Args:
        property_id: The ID of the property.
        description: What the expense was for.
        amount: Total amount.
        expense_date: Date of the expense (YYYY-MM-DD or date).
        category: One of VALID_CATEGORIES.
        payer_id: Member who paid.
        split_method: equal, percentage, fixed or payer_only.
        split_input: Percentages or amounts keyed by member_id.
        notes: Optional notes.

    Returns:
        tuple: (the stored Expense with its splits, allocation warnings)

    Raises:
        SplitValidationError: If the split input is rejected.
        ValueError: If any other input validation fails.
        RuntimeError: If Firestore is not available.
    """
    expense_day = _check_expense_fields(property_id, description, expense_date, category, payer_id)
    db = _require_db()

    total, method, splits, warnings = _split_expense(property_id, amount, payer_id, split_method, split_input)

    existing_ids = [doc.id for doc in _expenses_ref(db, property_id).stream()]
    expense = Expense(
        expense_id=next_sequential_id("E", existing_ids),
        property_id=property_id,
        description=description.strip(),
        amount=total,
        date=expense_day,
        category=category,
        payer_id=payer_id,
        split_method=method,
        notes=notes.strip() if notes else None,
        splits=splits
    )
    _write_expense(db, expense)
    logger.info("Stored expense %s (%s, %d splits) for property %s",
                expense.expense_id, expense.amount, len(splits), property_id)
    return expense, warnings


def update_expense_with_splits(
    property_id: str,
    expense_id: str,
    description: str,
    amount,
    expense_date,
    category: str,
    payer_id: str,
    split_method,
    split_input: Optional[dict] = None,
    notes: Optional[str] = None
) -> tuple[Expense, list[SplitWarning]]:
    """
    Re-validate, re-split and replace an existing expense.

    The previous splits are removed and replaced by the new allocation.

    Raises:
        LookupError: If the expense does not exist.
        SplitValidationError: If the split input is rejected.
        ValueError: If any other input validation fails.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(expense_id, "expense_id")
    expense_day = _check_expense_fields(property_id, description, expense_date, category, payer_id)
    db = _require_db()

    if not _expenses_ref(db, property_id).document(expense_id).get().exists:
        raise LookupError(f"Expense {expense_id} not found in property {property_id}")

    total, method, splits, warnings = _split_expense(property_id, amount, payer_id, split_method, split_input)

    expense = Expense(
        expense_id=expense_id,
        property_id=property_id,
        description=description.strip(),
        amount=total,
        date=expense_day,
        category=category,
        payer_id=payer_id,
        split_method=method,
        notes=notes.strip() if notes else None,
        splits=splits
    )
    _write_expense(db, expense, replace_splits=True)
    logger.info("Updated expense %s for property %s", expense_id, property_id)
    return expense, warnings


def get_expense_splits(property_id: str, expense_id: str) -> list[ExpenseSplit]:
    """
    Get the splits of one expense.

    Raises:
        LookupError: If the expense does not exist.
        ValueError: If an ID is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(expense_id, "expense_id")
    db = _require_db()

    expense_ref = _expenses_ref(db, property_id).document(expense_id)
    if not expense_ref.get().exists:
        raise LookupError(f"Expense {expense_id} not found in property {property_id}")

    docs = expense_ref.collection("splits").stream()
    return [ExpenseSplit.from_dict(doc.to_dict()) for doc in docs]


def get_expenses(property_id: str) -> list[Expense]:
    """
    Get all expenses of a property with their splits, newest first.

    Raises:
        ValueError: If property_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    db = _require_db()

    expenses = []
    for doc in _expenses_ref(db, property_id).stream():
        splits = [
            ExpenseSplit.from_dict(split_doc.to_dict())
            for split_doc in doc.reference.collection("splits").stream()
        ]
        expenses.append(Expense.from_dict(doc.to_dict(), splits=splits))

    expenses.sort(key=lambda e: (e.date, e.expense_id or ""), reverse=True)
    return expenses


def delete_expense(property_id: str, expense_id: str) -> None:
    """
    Delete an expense and its splits.

    Raises:
        LookupError: If the expense does not exist.
        ValueError: If an ID is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(expense_id, "expense_id")
    db = _require_db()

    expense_ref = _expenses_ref(db, property_id).document(expense_id)
    if not expense_ref.get().exists:
        raise LookupError(f"Expense {expense_id} not found in property {property_id}")

    batch = db.batch()
    for doc in expense_ref.collection("splits").stream():
        batch.delete(doc.reference)
    batch.delete(expense_ref)
    batch.commit()
    logger.info("Deleted expense %s from property %s", expense_id, property_id)
