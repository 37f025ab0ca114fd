"""
Split Validator Module

This module rejects malformed or inconsistent split input before any money
is allocated. One rule table keyed by split method serves every path that
creates or edits an expense (add, edit, duplicate, recurring templates).

Rules:
    All methods:
        - total must be numeric with at most two decimal places
        - total must be > 0 (payer_only tolerates 0)
    equal:
        - at least one participant
    percentage:
        - no entry below 0 or above 100
        - at least one positive entry
        - positive entries sum to 100 (tolerance 0.01)
    fixed:
        - no negative entry, at most two decimal places per entry
        - at least one positive entry
        - positive entries sum to the total (tolerance 0.01)

Unset (None) entries count as 0 and are never "positive". Entries for
members outside the participant list are rejected.

Functions:
    validate_split: Validate raw split input against a split method.
"""

from decimal import Decimal
from typing import Optional

from errors import ErrorKind, ValidationResult
from splitter import SplitMethod, participant_ids
from utils import has_at_most_two_decimals, is_representable_money, to_decimal

TOLERANCE = Decimal("0.01")
HUNDRED = Decimal("100")


def _parse_entries(split_input: Optional[dict], result: ValidationResult, participants) -> dict:
    """
    Convert raw entries to Decimal, recording failures.

    Non-numeric entries and non-zero entries for members outside the
    participant list are reported.

    Returns:
        dict: member_id -> Decimal for every set, numeric entry.
    """
    member_ids = set(participant_ids(participants))
    entries = {}
    for member_id, raw in (split_input or {}).items():
        try:
            value = to_decimal(raw)
        except ValueError:
            result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"Invalid split value for {member_id}: {raw!r}", member_id)
            continue
        if value is None:
            continue
        if member_id not in member_ids and value != 0:
            result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"{member_id} is not a member of this property", member_id)
            continue
        entries[member_id] = value
    return entries


def _check_equal(total: Decimal, split_input: Optional[dict], participants, result: ValidationResult) -> None:
    if not participant_ids(participants):
        result.add(ErrorKind.EMPTY_PARTICIPANTS, "Cannot split equally with no members.")


def _check_percentage(total: Decimal, split_input: Optional[dict], participants, result: ValidationResult) -> None:
    entries = _parse_entries(split_input, result, participants)

    for member_id, value in entries.items():
        if value < 0 or value > HUNDRED:
            result.add(
                ErrorKind.INVALID_SPLIT_TOTAL,
                f"Percentage for {member_id} must be between 0 and 100, got {value}",
                member_id
            )

    positives = [value for value in entries.values() if value > 0]
    if not positives:
        result.add(ErrorKind.INVALID_SPLIT_TOTAL, "At least one member needs a positive percentage.")
        return

    total_percent = sum(positives, Decimal("0"))
    if abs(total_percent - HUNDRED) > TOLERANCE:
        result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"Percentages must add up to 100%. Total: {total_percent}%")


def _check_fixed(total: Decimal, split_input: Optional[dict], participants, result: ValidationResult) -> None:
    entries = _parse_entries(split_input, result, participants)

    for member_id, value in entries.items():
        if value < 0:
            result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"Amount for {member_id} must be non-negative, got {value}", member_id)
        elif not has_at_most_two_decimals(value):
            result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"Amount for {member_id} has more than two decimal places", member_id)

    positives = [value for value in entries.values() if value > 0]
    if not positives:
        result.add(ErrorKind.INVALID_SPLIT_TOTAL, "At least one member needs a positive amount.")
        return

    fixed_total = sum(positives, Decimal("0"))
    if abs(fixed_total - total) > TOLERANCE:
        result.add(ErrorKind.INVALID_SPLIT_TOTAL, f"Fixed amounts must add up to {total}. Total: {fixed_total}")


def _check_payer_only(total: Decimal, split_input: Optional[dict], participants, result: ValidationResult) -> None:
    # No per-member input; the payer carries the whole amount
    return None


# Method-indexed rule table: (per-method check, whether a zero total is accepted)
_RULES = {
    SplitMethod.EQUAL: (_check_equal, False),
    SplitMethod.PERCENTAGE: (_check_percentage, False),
    SplitMethod.FIXED: (_check_fixed, False),
    SplitMethod.PAYER_ONLY: (_check_payer_only, True),
}


def validate_split(method, total_amount, split_input: Optional[dict], participants) -> ValidationResult:
    """
    Validate raw split input against a split method.

    Args:
        method: SplitMethod (or its string value, "custom" meaning fixed).
        total_amount: Expense total (Decimal, float, int or numeric string).
        split_input: Dict keyed by member_id with percentage/amount or None.
        participants: Eligible members of the property.

    Returns:
        ValidationResult: Every failure found; valid when empty.

    Notes:
        - Pure: no side effects
        - A zero total is accepted for payer_only only
    """
    result = ValidationResult()

    try:
        method = SplitMethod.parse(method)
    except ValueError:
        result.add(ErrorKind.UNSUPPORTED_METHOD, f"Unsupported split method: {method}")
        return result

    check, allows_zero = _RULES[method]

    try:
        total = to_decimal(total_amount)
    except ValueError:
        total = None

    if total is None:
        result.add(ErrorKind.INVALID_AMOUNT, "Amount is required and must be a number.")
        return result
    if not is_representable_money(total):
        result.add(ErrorKind.INVALID_AMOUNT, "Amount is out of range.")
        return result
    if not has_at_most_two_decimals(total):
        result.add(ErrorKind.INVALID_AMOUNT, "Amount must have at most two decimal places.")
    if total < 0 or (total == 0 and not allows_zero):
        result.add(ErrorKind.INVALID_AMOUNT, "Amount must be positive.")

    check(total, split_input, participants, result)
    return result
