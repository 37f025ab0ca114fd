"""
Recurrence Module

This module computes due dates and lifecycle status for recurring expense
templates of the shared property ledger. It never generates the expense
instances themselves.

Features:
    - Next due date from start date, frequency and interval
    - Calendar month arithmetic with month-end clamping
    - Derived template status (active / paused / ended)
    - Pure activation toggle and duplication transforms
    - Due-date advancement after an instance was generated elsewhere
    - Template validation, sorting and status filtering

Data Model:
    RecurringExpenseTemplate stored at:
        properties/{property_id}/recurring_expenses/{template_id}
    Fields:
        - template_id: string (R001, R002, ... format) or None
        - property_id: string
        - description: string
        - category: string
        - amount: Decimal (stored as float)
        - split_method: SplitMethod
        - split_details: dict (see split_details.py)
        - payer_id: string
        - frequency: Frequency
        - interval: int (>= 1)
        - start_date: date (stored as YYYY-MM-DD)
        - end_date: date or None
        - is_active: bool
        - next_due_date: date or None (cached)
        - notes: string or None

    Status is derived on every read and never stored:
        - ended: end_date is set and end_date < today
        - active: not ended and is_active
        - paused: not ended and not is_active

Functions:
    compute_next_due_date: First occurrence on or after a reference date.
    derive_status: Lifecycle status of a template on a given day.
    toggle_active: Set is_active (rejected once ended).
    duplicate_template: Copy a template as a fresh, open-ended one.
    refresh_next_due_date: Recompute the cached next due date.
    advance_due_date: Move past the current due date.
    is_due: Whether an instance is due on a given day.
    validate_template: Check a template before it is stored.
    sort_templates / filter_templates_by_status: List helpers.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from errors import ErrorKind, Result, ValidationResult
from split_details import decode_split_details, storable_split_details
from split_validator import validate_split
from splitter import SplitMethod, participant_ids
from utils import add_months, format_date, has_at_most_two_decimals, is_representable_money, parse_date, to_decimal

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    """Recurrence unit of a template."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUALLY = "biannually"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value) -> "Frequency":
        """Parse a frequency name, accepting "annually" for yearly."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "annually":
            return cls.YEARLY
        return cls(text)


class TemplateStatus(str, Enum):
    """Derived lifecycle status of a template."""
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


# Frequencies measured in days; the others in calendar months
_DAYS_PER_UNIT = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
}

_MONTHS_PER_UNIT = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.BIANNUALLY: 6,
    Frequency.YEARLY: 12,
}

_STATUS_ORDER = {
    TemplateStatus.ACTIVE: 1,
    TemplateStatus.PAUSED: 2,
    TemplateStatus.ENDED: 3,
}


class RecurringExpenseTemplate:
    """
    A reusable definition of an expense that occurs on a schedule.

    Attributes:
        template_id (str | None): Unique identifier in R### format.
        property_id (str | None): Property the template belongs to.
        description (str): What the expense is for.
        amount (Decimal): Total of each occurrence.
        split_method (SplitMethod): How each occurrence is split.
        split_details (dict): Persisted split configuration.
        payer_id (str): Member who pays each occurrence.
        frequency (Frequency): Recurrence unit.
        interval (int): Every N units.
        start_date (date): First occurrence.
        end_date (date | None): Last possible occurrence, None if open-ended.
        is_active (bool): False while paused.
        next_due_date (date | None): Cached next occurrence.
        category (str): Expense category.
        notes (str | None): Optional notes.
    """

    def __init__(
        self,
        description: str,
        amount,
        split_method,
        payer_id: str,
        frequency,
        start_date,
        interval: int = 1,
        split_details: Optional[dict] = None,
        end_date=None,
        is_active: bool = True,
        next_due_date=None,
        template_id: Optional[str] = None,
        property_id: Optional[str] = None,
        category: str = "other",
        notes: Optional[str] = None
    ):
        self.template_id = template_id
        self.property_id = property_id
        self.description = description
        self.amount = to_decimal(amount)
        self.split_method = SplitMethod.parse(split_method)
        self.split_details = split_details if split_details is not None else {"type": self.split_method.value}
        self.payer_id = payer_id
        self.frequency = Frequency.parse(frequency)
        self.interval = int(interval)
        self.start_date = parse_date(start_date)
        self.end_date = parse_date(end_date) if end_date else None
        self.is_active = bool(is_active)
        self.next_due_date = parse_date(next_due_date) if next_due_date else None
        self.category = category
        self.notes = notes

    def copy(self, **changes) -> "RecurringExpenseTemplate":
        """Return a new template with the given fields replaced."""
        fields = {
            "template_id": self.template_id,
            "property_id": self.property_id,
            "description": self.description,
            "amount": self.amount,
            "split_method": self.split_method,
            "split_details": dict(self.split_details),
            "payer_id": self.payer_id,
            "frequency": self.frequency,
            "interval": self.interval,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "is_active": self.is_active,
            "next_due_date": self.next_due_date,
            "category": self.category,
            "notes": self.notes,
        }
        fields.update(changes)
        return RecurringExpenseTemplate(**fields)

    def to_dict(self) -> dict:
        """Convert template to dictionary for Firestore storage (status is never stored)."""
        return {
            "template_id": self.template_id,
            "property_id": self.property_id,
            "description": self.description,
            "category": self.category,
            "amount": float(self.amount) if self.amount is not None else None,
            "split_method": self.split_method.value,
            "split_details": storable_split_details(self.split_details),
            "payer_id": self.payer_id,
            "frequency": self.frequency.value,
            "interval": self.interval,
            "start_date": format_date(self.start_date),
            "end_date": format_date(self.end_date),
            "is_active": self.is_active,
            "next_due_date": format_date(self.next_due_date),
            "notes": self.notes
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecurringExpenseTemplate":
        """Create a RecurringExpenseTemplate instance from a dictionary."""
        return cls(
            template_id=data.get("template_id"),
            property_id=data.get("property_id"),
            description=data.get("description", ""),
            category=data.get("category", "other"),
            amount=data.get("amount"),
            split_method=data.get("split_method", SplitMethod.EQUAL.value),
            split_details=data.get("split_details"),
            payer_id=data.get("payer_id"),
            frequency=data.get("frequency", Frequency.MONTHLY.value),
            interval=data.get("interval", 1),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            is_active=data.get("is_active", True),
            next_due_date=data.get("next_due_date"),
            notes=data.get("notes")
        )

    def __repr__(self) -> str:
        return (
            f"RecurringExpenseTemplate(id='{self.template_id}', description='{self.description}', "
            f"every {self.interval} {self.frequency.value}, next={self.next_due_date})"
        )


def compute_next_due_date(start_date, frequency, interval: int, reference_date) -> date:
    """
    Compute the first occurrence on or after a reference date.

    Occurrences are start_date + k * interval units (k >= 0). Month-based
    units are always counted from start_date, so a Jan 31 start gives
    Feb 28/29, Mar 31, Apr 30, ... rather than drifting to the 28th.

    Args:
        start_date: First occurrence (date or YYYY-MM-DD).
        frequency: Frequency (or its string value).
        interval: Every N units (>= 1).
        reference_date: Usually today (date or YYYY-MM-DD).

    Returns:
        date: The next due date. Equals start_date when the reference is on
            or before the start.

    Raises:
        ValueError: If interval < 1 or the frequency is unknown.

    Notes:
        - Idempotent for a given reference date
        - Monotonic: a later reference never yields an earlier date
    """
    start = parse_date(start_date)
    reference = parse_date(reference_date)
    frequency = Frequency.parse(frequency)
    interval = int(interval)
    if interval < 1:
        raise ValueError(f"interval must be 1 or greater, got: {interval}")

    if reference <= start:
        return start

    if frequency in _DAYS_PER_UNIT:
        step = _DAYS_PER_UNIT[frequency] * interval
        elapsed = (reference - start).days
        periods = -(-elapsed // step)  # ceiling division
        return start + timedelta(days=periods * step)

    step = _MONTHS_PER_UNIT[frequency] * interval
    months_between = (reference.year - start.year) * 12 + (reference.month - start.month)
    periods = max(0, months_between // step)
    candidate = add_months(start, periods * step)
    while candidate < reference:
        periods += 1
        candidate = add_months(start, periods * step)
    return candidate


def derive_status(template: RecurringExpenseTemplate, today=None) -> TemplateStatus:
    """
    Derive the lifecycle status of a template on a given day.

    Ended wins over is_active: a template whose end date has passed is ended
    even if it was never paused.
    """
    today = parse_date(today) if today is not None else date.today()
    if template.end_date is not None and template.end_date < today:
        return TemplateStatus.ENDED
    return TemplateStatus.ACTIVE if template.is_active else TemplateStatus.PAUSED


def toggle_active(template: RecurringExpenseTemplate, new_state: bool, today=None) -> Result:
    """
    Set a template's is_active flag.

    Start, end and next due dates are left untouched.

    Returns:
        Result: value is the updated copy; TEMPLATE_ENDED if the template's
            end date has passed.
    """
    if derive_status(template, today) is TemplateStatus.ENDED:
        logger.info("Rejected toggle of ended template %s", template.template_id)
        return Result.failure(
            ErrorKind.TEMPLATE_ENDED,
            f"Template '{template.description}' ended on {format_date(template.end_date)}"
        )
    return Result.success(template.copy(is_active=bool(new_state)))


def duplicate_template(template: RecurringExpenseTemplate, today=None, end_date=None) -> RecurringExpenseTemplate:
    """
    Copy a template to create a new one.

    The duplicate starts today, is open-ended unless end_date is supplied,
    is active regardless of the source's state, and has no ID yet.
    """
    today = parse_date(today) if today is not None else date.today()
    duplicate = template.copy(
        template_id=None,
        start_date=today,
        end_date=parse_date(end_date) if end_date else None,
        is_active=True,
        next_due_date=None
    )
    duplicate.next_due_date = compute_next_due_date(today, duplicate.frequency, duplicate.interval, today)
    return duplicate


def refresh_next_due_date(template: RecurringExpenseTemplate, today=None) -> RecurringExpenseTemplate:
    """Recompute the cached next due date against today (ended templates are returned unchanged)."""
    today = parse_date(today) if today is not None else date.today()
    if derive_status(template, today) is TemplateStatus.ENDED:
        return template
    next_due = compute_next_due_date(template.start_date, template.frequency, template.interval, today)
    return template.copy(next_due_date=next_due)


def advance_due_date(template: RecurringExpenseTemplate) -> RecurringExpenseTemplate:
    """
    Move a template past its current due date.

    Called once the occurrence on next_due_date has been recorded elsewhere.
    The template is deactivated when the following occurrence falls after
    its end date.
    """
    current = template.next_due_date or template.start_date
    next_due = compute_next_due_date(
        template.start_date, template.frequency, template.interval, current + timedelta(days=1)
    )
    is_active = template.is_active
    if template.end_date is not None and next_due > template.end_date:
        logger.info(
            "Next due date %s of template %s is past its end date %s; deactivating",
            next_due, template.template_id, template.end_date
        )
        is_active = False
    return template.copy(next_due_date=next_due, is_active=is_active)


def is_due(template: RecurringExpenseTemplate, today=None) -> bool:
    """Return True when an active template has an occurrence on or before today."""
    today = parse_date(today) if today is not None else date.today()
    if derive_status(template, today) is not TemplateStatus.ACTIVE:
        return False
    if template.next_due_date is None or template.next_due_date > today:
        return False
    return template.end_date is None or template.next_due_date <= template.end_date


def validate_template(template: RecurringExpenseTemplate, members, split_input: Optional[dict] = None) -> ValidationResult:
    """
    Check a template before it is stored.

    Args:
        template: The template to check.
        members: Members of the property.
        split_input: Raw split input; decoded from template.split_details
            when omitted.

    Returns:
        ValidationResult: Every failure found.
    """
    result = ValidationResult()

    amount = template.amount
    if amount is None or amount <= 0:
        result.add(ErrorKind.INVALID_AMOUNT, "Amount must be a positive number.")
    elif not is_representable_money(amount):
        result.add(ErrorKind.INVALID_AMOUNT, "Amount is out of range.")
    elif not has_at_most_two_decimals(amount):
        result.add(ErrorKind.INVALID_AMOUNT, "Amount must have at most two decimal places.")

    if template.interval < 1:
        result.add(ErrorKind.INVALID_INTERVAL, "Interval must be 1 or greater.")

    if template.end_date is not None and template.end_date < template.start_date:
        result.add(ErrorKind.INVALID_DATE_RANGE, "End date cannot be before start date.")

    member_ids = participant_ids(members)
    if not template.payer_id or template.payer_id not in member_ids:
        result.add(
            ErrorKind.PAYER_NOT_FOUND,
            "Selected payer is not a member of this property.",
            template.payer_id
        )

    if split_input is None:
        split_input = decode_split_details(template.split_details, template.split_method)

    split_result = validate_split(template.split_method, amount, split_input, member_ids)
    # The amount was already checked above
    result.errors.extend(e for e in split_result.errors if e.kind is not ErrorKind.INVALID_AMOUNT)
    return result


def filter_templates_by_status(templates: list, status, today=None) -> list:
    """Keep templates whose derived status matches (status "all" keeps everything)."""
    if status is None or str(getattr(status, "value", status)) == "all":
        return list(templates)
    wanted = TemplateStatus(getattr(status, "value", status))
    return [t for t in templates if derive_status(t, today) is wanted]


def sort_templates(templates: list, today=None, key: str = "next_due_date", descending: bool = False) -> list:
    """
    Sort templates for listing.

    Keys: next_due_date (templates without one last), status
    (active < paused < ended), amount, description.

    Raises:
        ValueError: If key is not supported.
    """
    if key == "next_due_date":
        far_future = date.max

        def sort_key(t):
            return t.next_due_date or far_future
    elif key == "status":
        def sort_key(t):
            return _STATUS_ORDER[derive_status(t, today)]
    elif key == "amount":
        def sort_key(t):
            return t.amount if t.amount is not None else Decimal("0")
    elif key == "description":
        def sort_key(t):
            return (t.description or "").lower()
    else:
        raise ValueError(f"Unsupported sort key: {key}")

    return sorted(templates, key=sort_key, reverse=descending)
