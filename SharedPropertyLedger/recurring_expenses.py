"""
Recurring Expenses Module

This module stores recurring expense templates of a property in Firestore
and applies the recurrence transforms (toggle, duplicate, advance) to them.

Data Model:
    Template stored at: properties/{property_id}/recurring_expenses/{template_id}
    Fields: see recurrence.RecurringExpenseTemplate (R001, R002, ... ids)

Every write validates the template against the property's members and
recomputes next_due_date. The derived status is never written.

Functions:
    add_recurring_expense: Validate and store a new template.
    update_recurring_expense: Validate and replace a template.
    get_recurring_expense: Get one template.
    get_recurring_expenses: List templates (status filter and sort).
    delete_recurring_expense: Delete a template.
    toggle_recurring_expense: Pause or resume a template.
    duplicate_recurring_expense: Store a copy of a template.
    get_due_recurring_expenses: Templates with an occurrence due.
    mark_recurring_expense_generated: Advance past the current due date.
"""

import logging
from datetime import date
from typing import Optional

from config.firebase_config import get_db
from errors import SplitValidationError
from members import get_members
from recurrence import (
    RecurringExpenseTemplate,
    advance_due_date,
    duplicate_template,
    filter_templates_by_status,
    is_due,
    refresh_next_due_date,
    sort_templates,
    toggle_active,
    validate_template,
)
from split_details import encode_split_details
from utils import next_sequential_id, parse_date

logger = logging.getLogger(__name__)


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _templates_ref(db, property_id: str):
    return db.collection("properties").document(property_id).collection("recurring_expenses")


def _require_db():
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def _today(today) -> date:
    return parse_date(today) if today is not None else date.today()


def _prepare(
    property_id: str,
    template: RecurringExpenseTemplate,
    split_input: Optional[dict],
    today: date
) -> RecurringExpenseTemplate:
    """
    Validate a template and bring its stored fields up to date.

    Raises:
        SplitValidationError: If the template fails validation.
    """
    _validate_non_empty_string(template.description, "description")

    members = get_members(property_id)
    result = validate_template(template, members, split_input)
    if not result.is_valid:
        raise SplitValidationError(result.errors)

    prepared = template.copy(property_id=property_id)
    if split_input is not None:
        prepared.split_details = encode_split_details(prepared.split_method, split_input)
    return refresh_next_due_date(prepared, today)


def _load(db, property_id: str, template_id: str) -> RecurringExpenseTemplate:
    doc = _templates_ref(db, property_id).document(template_id).get()
    if not doc.exists:
        raise LookupError(f"Recurring expense {template_id} not found in property {property_id}")
    return RecurringExpenseTemplate.from_dict(doc.to_dict())


def _save(db, template: RecurringExpenseTemplate) -> None:
    _templates_ref(db, template.property_id).document(template.template_id).set(template.to_dict())


def add_recurring_expense(
    property_id: str,
    template: RecurringExpenseTemplate,
    split_input: Optional[dict] = None,
    today=None
) -> RecurringExpenseTemplate:
    """
    Validate and store a new recurring expense template.

    Args:
        property_id: The ID of the property.
        template: The template to store (its template_id is ignored).
        split_input: Raw split input; when given it is encoded into
            split_details, otherwise the template's split_details are used.
        today: Reference day for next_due_date (default: today).

    Returns:
        RecurringExpenseTemplate: The stored template with its new R### ID.

    Raises:
        SplitValidationError: If the template fails validation.
        ValueError: If an ID is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    db = _require_db()

    stored = _prepare(property_id, template, split_input, _today(today))
    existing_ids = [doc.id for doc in _templates_ref(db, property_id).stream()]
    stored.template_id = next_sequential_id("R", existing_ids)

    _save(db, stored)
    logger.info("Stored recurring expense %s for property %s (next due %s)",
                stored.template_id, property_id, stored.next_due_date)
    return stored


def update_recurring_expense(
    property_id: str,
    template_id: str,
    template: RecurringExpenseTemplate,
    split_input: Optional[dict] = None,
    today=None
) -> RecurringExpenseTemplate:
    """
    Validate and replace an existing template.

    Raises:
        LookupError: If the template does not exist.
        SplitValidationError: If the template fails validation.
        ValueError: If an ID is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    db = _require_db()

    _load(db, property_id, template_id)
    stored = _prepare(property_id, template.copy(template_id=template_id), split_input, _today(today))

    _save(db, stored)
    logger.info("Updated recurring expense %s for property %s", template_id, property_id)
    return stored


def get_recurring_expense(property_id: str, template_id: str) -> RecurringExpenseTemplate:
    """
    Get one template.

    Raises:
        LookupError: If the template does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    return _load(_require_db(), property_id, template_id)


def get_recurring_expenses(
    property_id: str,
    status: str = "all",
    sort_by: str = "next_due_date",
    descending: bool = False,
    today=None
) -> list[RecurringExpenseTemplate]:
    """
    List the templates of a property.

    Args:
        property_id: The ID of the property.
        status: "all", "active", "paused" or "ended".
        sort_by: next_due_date, status, amount or description.
        descending: Reverse the sort order.
        today: Reference day for the derived status (default: today).

    Raises:
        ValueError: If the status or sort key is unknown.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    db = _require_db()
    day = _today(today)

    templates = [
        RecurringExpenseTemplate.from_dict(doc.to_dict())
        for doc in _templates_ref(db, property_id).stream()
    ]
    templates = filter_templates_by_status(templates, status, day)
    return sort_templates(templates, day, sort_by, descending)


def delete_recurring_expense(property_id: str, template_id: str) -> None:
    """
    Delete a template.

    Raises:
        LookupError: If the template does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    db = _require_db()

    _load(db, property_id, template_id)
    _templates_ref(db, property_id).document(template_id).delete()
    logger.info("Deleted recurring expense %s from property %s", template_id, property_id)


def toggle_recurring_expense(property_id: str, template_id: str, is_active: bool, today=None) -> RecurringExpenseTemplate:
    """
    Pause or resume a template.

    Raises:
        LookupError: If the template does not exist.
        SplitValidationError: If the template has already ended.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    db = _require_db()

    template = _load(db, property_id, template_id)
    result = toggle_active(template, is_active, _today(today))
    if not result.ok:
        raise SplitValidationError([result.error])

    _save(db, result.value)
    logger.info("Set recurring expense %s active=%s", template_id, result.value.is_active)
    return result.value


def duplicate_recurring_expense(property_id: str, template_id: str, end_date=None, today=None) -> RecurringExpenseTemplate:
    """
    Store a copy of a template that starts today.

    The copy goes through the same validation as a new template, so a
    source whose payer has since left the property cannot be duplicated.

    Raises:
        LookupError: If the source template does not exist.
        SplitValidationError: If the copy fails validation.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    db = _require_db()
    day = _today(today)

    source = _load(db, property_id, template_id)
    duplicate = duplicate_template(source, day, end_date)
    stored = add_recurring_expense(property_id, duplicate, today=day)
    logger.info("Duplicated recurring expense %s as %s", template_id, stored.template_id)
    return stored


def get_due_recurring_expenses(property_id: str, today=None) -> list[RecurringExpenseTemplate]:
    """Return the active templates with an occurrence due on or before today, soonest first."""
    day = _today(today)
    templates = get_recurring_expenses(property_id, status="active", today=day)
    return [template for template in templates if is_due(template, day)]


def mark_recurring_expense_generated(property_id: str, template_id: str) -> RecurringExpenseTemplate:
    """
    Advance a template past its current due date.

    Called after the occurrence on next_due_date has been recorded as an
    expense; the template is deactivated once its schedule runs past
    end_date.

    Raises:
        LookupError: If the template does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(template_id, "template_id")
    db = _require_db()

    advanced = advance_due_date(_load(db, property_id, template_id))
    _save(db, advanced)
    logger.info("Advanced recurring expense %s to %s", template_id, advanced.next_due_date)
    return advanced
