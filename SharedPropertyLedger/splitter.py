"""
Splitter Module

This module handles the expense split allocation for the shared property
ledger: given a validated split method and a total, it produces the
definitive, persist-ready list of per-member splits.

Features:
    - Equal, percentage, fixed-amount and payer-only allocation
    - Decimal-safe rounding (half away from zero, 2 decimal places)
    - Paid/owed status assignment from the payer
    - Rounding drift detection (warning only, allocation proceeds)

Data Model:
    Input - participants: list of member ids, Member objects or dicts with
            a member_id key (order is preserved, duplicates dropped)

    Input - split_input (dict keyed by member_id):
        - percentage method: percentage (0-100) or None
        - fixed method: monetary amount or None
        - equal / payer_only: ignored

    Output - list of ExpenseSplit:
        - member_id: string
        - amount: Decimal (2 decimal places)
        - percentage: Decimal or None (percentage method only)
        - status: SplitStatus (paid for the payer, owed otherwise)

Functions:
    allocate_splits: Compute the per-member splits of one expense.
    participant_ids: Normalise a participant list to member ids.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Optional

from errors import ErrorKind, Result, SplitWarning, WarningKind
from utils import CENT, is_representable_money, round_money, to_decimal

logger = logging.getLogger(__name__)


class SplitMethod(str, Enum):
    """Strategy used to divide an expense's total among members."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    PAYER_ONLY = "payer_only"

    @classmethod
    def parse(cls, value) -> "SplitMethod":
        """
        Parse a method name, accepting the legacy "custom" alias for fixed.

        Raises:
            ValueError: If value names no split method.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "custom":
            return cls.FIXED
        return cls(text)


class SplitStatus(str, Enum):
    """Payment status of a split at allocation time."""
    PAID = "paid"
    OWED = "owed"


class ExpenseSplit:
    """
    One member's monetary obligation for an expense.

    Attributes:
        member_id (str): The member the split belongs to.
        amount (Decimal): Amount, 2 decimal places.
        status (SplitStatus): PAID for the payer, OWED otherwise.
        percentage (Decimal | None): Percentage (percentage method only).
    """

    def __init__(
        self,
        member_id: str,
        amount: Decimal,
        status: SplitStatus,
        percentage: Optional[Decimal] = None
    ):
        self.member_id = member_id
        self.amount = amount
        self.status = status
        self.percentage = percentage

    def to_dict(self) -> dict:
        """Convert split to dictionary for Firestore storage."""
        return {
            "member_id": self.member_id,
            "amount": float(self.amount),
            "percentage": float(self.percentage) if self.percentage is not None else None,
            "status": self.status.value
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExpenseSplit":
        """Create an ExpenseSplit instance from a dictionary."""
        percentage = data.get("percentage")
        return cls(
            member_id=data.get("member_id"),
            amount=round_money(to_decimal(data.get("amount", 0))),
            status=SplitStatus(data.get("status", SplitStatus.OWED.value)),
            percentage=to_decimal(percentage) if percentage is not None else None
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ExpenseSplit):
            return NotImplemented
        return (
            self.member_id == other.member_id
            and self.amount == other.amount
            and self.status == other.status
            and self.percentage == other.percentage
        )

    def __repr__(self) -> str:
        return f"ExpenseSplit(member='{self.member_id}', amount={self.amount}, status='{self.status.value}')"


def participant_ids(participants) -> list[str]:
    """
    Normalise a participant list to unique member ids, preserving order.

    Accepts plain ids, dicts with a member_id key, or objects with a
    member_id attribute (e.g. members.Member).
    """
    ids = []
    seen = set()
    for participant in participants or []:
        if isinstance(participant, dict):
            member_id = participant.get("member_id")
        else:
            member_id = getattr(participant, "member_id", participant)
        if member_id is None or member_id in seen:
            continue
        seen.add(member_id)
        ids.append(member_id)
    return ids


def _status_for(member_id: str, payer_id: str) -> SplitStatus:
    return SplitStatus.PAID if member_id == payer_id else SplitStatus.OWED


def _positive_entries(split_input: Optional[dict], member_ids: list[str]) -> list[tuple[str, Decimal]]:
    """Return (member_id, value) for participants with a positive entry, in participant order."""
    split_input = split_input or {}
    entries = []
    for member_id in member_ids:
        value = to_decimal(split_input.get(member_id))
        if value is not None and value > 0:
            entries.append((member_id, value))
    return entries


def _drift_warning(total: Decimal, allocated: Decimal, method: SplitMethod) -> Optional[SplitWarning]:
    drift = allocated - total
    if drift == 0:
        return None
    logger.warning(
        "Rounding drift in %s split: total %s, allocated %s (drift %s)",
        method.value, total, allocated, drift
    )
    return SplitWarning(
        WarningKind.ROUNDING_DRIFT,
        f"Rounded {method.value} shares sum to {allocated}, expected {total} (drift {drift})",
        amount=drift
    )


def _allocate_equal(total: Decimal, member_ids: list[str], payer_id: str) -> Result:
    # Every participant receives the same rounded share; no remainder redistribution
    share = round_money(total / Decimal(len(member_ids)))
    splits = [ExpenseSplit(member_id, share, _status_for(member_id, payer_id)) for member_id in member_ids]

    allocated = share * len(member_ids)
    warning = _drift_warning(total, allocated, SplitMethod.EQUAL)
    return Result.success(splits, warnings=[warning] if warning else [])


def _allocate_percentage(total: Decimal, split_input: dict, member_ids: list[str], payer_id: str) -> Result:
    splits = [
        ExpenseSplit(
            member_id,
            round_money(total * percentage / Decimal("100")),
            _status_for(member_id, payer_id),
            percentage=percentage
        )
        for member_id, percentage in _positive_entries(split_input, member_ids)
    ]
    if not splits:
        return Result.failure(ErrorKind.NO_POSITIVE_SPLITS, "Percentage split produced no splits")

    allocated = sum((split.amount for split in splits), Decimal("0"))
    if abs(allocated - total) > CENT:
        return Result.failure(
            ErrorKind.INVALID_SPLIT_TOTAL,
            f"Percentage splits sum to {allocated}, expected {total}"
        )
    warning = _drift_warning(total, allocated, SplitMethod.PERCENTAGE)
    return Result.success(splits, warnings=[warning] if warning else [])


def _allocate_fixed(total: Decimal, split_input: dict, member_ids: list[str], payer_id: str) -> Result:
    entries = _positive_entries(split_input, member_ids)
    for member_id, amount in entries:
        if not is_representable_money(amount):
            return Result.failure(ErrorKind.INVALID_SPLIT_TOTAL, f"Amount for {member_id} is out of range", member_id)

    # Amounts are taken verbatim; only participants' entries count towards the total
    splits = [
        ExpenseSplit(member_id, round_money(amount), _status_for(member_id, payer_id))
        for member_id, amount in entries
    ]
    if not splits:
        return Result.failure(ErrorKind.NO_POSITIVE_SPLITS, "Fixed split produced no splits")

    allocated = sum((split.amount for split in splits), Decimal("0"))
    if abs(allocated - total) > CENT:
        return Result.failure(
            ErrorKind.INVALID_SPLIT_TOTAL,
            f"Fixed splits sum to {allocated}, expected {total}"
        )
    warning = _drift_warning(total, allocated, SplitMethod.FIXED)
    return Result.success(splits, warnings=[warning] if warning else [])


def allocate_splits(
    method,
    total_amount,
    split_input: Optional[dict],
    participants,
    payer_id: str
) -> Result:
    """
    Compute the definitive per-member splits of one expense.

    Should be called on input that passed split_validator.validate_split.
    Entries for non-participants are ignored, so the allocated records are
    re-checked against the total. Empty participant lists, a missing payer
    and empty results are guarded too.

    Allocation per method:
        - equal: total / n rounded to cents for every participant
        - percentage: total * pct / 100 rounded, for positive percentages only
        - fixed: positive amounts verbatim, re-checked against the total
        - payer_only: one split for the payer with the full total

    Args:
        method: SplitMethod (or its string value).
        total_amount: Expense total (Decimal, float, int or numeric string).
        split_input: Dict keyed by member_id (see module docstring).
        participants: Eligible members of the property.
        payer_id: Member who paid the expense.

    Returns:
        Result: value is a list[ExpenseSplit] in participant order. Errors:
            - EMPTY_PARTICIPANTS: no participants
            - PAYER_NOT_FOUND: payer_id is not a participant
            - NO_POSITIVE_SPLITS: percentage/fixed produced no records
            - INVALID_SPLIT_TOTAL: percentage/fixed records not summing to the
              total within 1 cent
            - UNSUPPORTED_METHOD: unknown method
        Warnings: ROUNDING_DRIFT when rounded shares do not sum to the total.

    Notes:
        - Pure: does not modify its inputs
        - Does NOT write to Firestore
    """
    try:
        method = SplitMethod.parse(method)
    except ValueError:
        return Result.failure(ErrorKind.UNSUPPORTED_METHOD, f"Unsupported split method: {method}")

    try:
        total = to_decimal(total_amount)
    except ValueError:
        total = None
    if total is None:
        return Result.failure(ErrorKind.INVALID_AMOUNT, f"Amount must be a number, got: {total_amount}")
    if not is_representable_money(total):
        return Result.failure(ErrorKind.INVALID_AMOUNT, f"Amount is out of range: {total_amount}")
    total = round_money(total)
    member_ids = participant_ids(participants)

    if not member_ids:
        return Result.failure(
            ErrorKind.EMPTY_PARTICIPANTS,
            f"Cannot split by {method.value} with no members"
        )

    if payer_id not in member_ids:
        return Result.failure(
            ErrorKind.PAYER_NOT_FOUND,
            f"Payer '{payer_id}' is not a member of this property",
            member_id=payer_id
        )

    if method is SplitMethod.EQUAL:
        return _allocate_equal(total, member_ids, payer_id)
    if method is SplitMethod.PERCENTAGE:
        return _allocate_percentage(total, split_input, member_ids, payer_id)
    if method is SplitMethod.FIXED:
        return _allocate_fixed(total, split_input, member_ids, payer_id)

    # Payer only: the payer carries the whole expense
    return Result.success([ExpenseSplit(payer_id, total, SplitStatus.PAID)])
