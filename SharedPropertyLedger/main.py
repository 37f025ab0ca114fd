"""
SharedPropertyLedger - FastAPI Web Backend

This module serves as the main entry point for the shared property expense
ledger using FastAPI.

Features:
    - Stateless split validation, allocation and split-details encoding
    - Due date computation for recurring schedules
    - RESTful API for members, expenses and recurring expense templates
    - Integration with Firebase Firestore backend
    - Monthly financial snapshot

Endpoints:
    GET    /health                                             - Liveness check
    POST   /splits/validate                                    - Validate split input
    POST   /splits/allocate                                    - Validate and allocate splits
    POST   /split-details/encode                               - Build a split details payload
    POST   /split-details/decode                               - Read a split details payload
    POST   /schedule/next-due-date                             - Next occurrence of a schedule
    POST   /properties/{property_id}/members                   - Add member
    GET    /properties/{property_id}/members                   - List members
    POST   /properties/{property_id}/expenses                  - Add expense with splits
    GET    /properties/{property_id}/expenses                  - List expenses with splits
    GET    /properties/{property_id}/expenses/{expense_id}/splits - Splits of one expense
    PUT    /properties/{property_id}/expenses/{expense_id}     - Re-split and replace expense
    DELETE /properties/{property_id}/expenses/{expense_id}     - Delete expense
    POST   /properties/{property_id}/recurring-expenses        - Create template
    GET    /properties/{property_id}/recurring-expenses        - List templates
    GET    /properties/{property_id}/recurring-expenses/due    - Templates due
    GET    /properties/{property_id}/recurring-expenses/{id}   - Get template
    PUT    /properties/{property_id}/recurring-expenses/{id}   - Update template
    DELETE /properties/{property_id}/recurring-expenses/{id}   - Delete template
    POST   /properties/{property_id}/recurring-expenses/{id}/toggle    - Pause/resume
    POST   /properties/{property_id}/recurring-expenses/{id}/duplicate - Duplicate
    POST   /properties/{property_id}/recurring-expenses/{id}/advance   - Advance due date
    GET    /properties/{property_id}/snapshot                  - Financial snapshot

Usage:
    uvicorn main:app --reload
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from analytics import generate_financial_snapshot
from config.settings import API_HOST, API_PORT, configure_logging
from errors import SplitValidationError
from expenses import (
    Expense,
    add_expense_with_splits,
    delete_expense,
    get_expense_splits,
    get_expenses,
    update_expense_with_splits,
)
from members import add_member, get_members
from recurrence import RecurringExpenseTemplate, compute_next_due_date, derive_status
from recurring_expenses import (
    add_recurring_expense,
    delete_recurring_expense,
    duplicate_recurring_expense,
    get_due_recurring_expenses,
    get_recurring_expense,
    get_recurring_expenses,
    mark_recurring_expense_generated,
    toggle_recurring_expense,
    update_recurring_expense,
)
from split_details import decode_split_details, encode_split_details, payload_method, storable_split_details
from split_validator import validate_split
from splitter import allocate_splits
from utils import format_date, parse_date

configure_logging()
logger = logging.getLogger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class SplitRequest(BaseModel):
    """Request model for stateless split validation and allocation."""
    split_method: str = Field(..., description="equal, percentage, fixed (or custom) or payer_only")
    total_amount: Optional[Decimal] = Field(None, description="Expense total")
    split_input: Optional[dict[str, Optional[Decimal]]] = Field(None, description="Percentages or amounts keyed by member_id")
    participants: list[str] = Field(default_factory=list, description="Member IDs of the property")
    payer_id: Optional[str] = Field(None, description="Member ID of payer (allocation only)")


class SplitDetailsEncodeRequest(BaseModel):
    """Request model for building a split details payload."""
    split_method: str
    split_input: Optional[dict[str, Optional[Decimal]]] = None


class SplitDetailsDecodeRequest(BaseModel):
    """Request model for reading a split details payload."""
    split_method: str
    payload: Optional[dict] = None


class NextDueDateRequest(BaseModel):
    """Request model for computing the next due date of a schedule."""
    start_date: str = Field(..., pattern=DATE_PATTERN)
    frequency: str
    interval: int = Field(1, description="Every N units (>= 1)")
    reference_date: Optional[str] = Field(None, pattern=DATE_PATTERN, description="Defaults to today")


class MemberCreate(BaseModel):
    """Request model for adding a member."""
    member_id: str = Field(..., min_length=1, description="Opaque member identifier")
    name: str = Field(..., min_length=1, description="Display name")


class MemberResponse(BaseModel):
    """Response model for member data."""
    member_id: str
    name: str


class ExpenseCreate(BaseModel):
    """Request model for adding or replacing an expense."""
    description: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(None, description="Expense total")
    date: str = Field(..., pattern=DATE_PATTERN, description="Expense date (YYYY-MM-DD)")
    category: str = Field("other", description="Expense category")
    payer_id: str = Field(..., min_length=1, description="Member ID of payer")
    split_method: str = Field("equal", description="equal, percentage, fixed (or custom) or payer_only")
    split_input: Optional[dict[str, Optional[Decimal]]] = None
    notes: Optional[str] = None


class RecurringExpenseCreate(BaseModel):
    """Request model for creating or replacing a recurring expense template."""
    description: str = Field(..., min_length=1)
    amount: Optional[Decimal] = None
    category: str = "other"
    split_method: str = "equal"
    split_input: Optional[dict[str, Optional[Decimal]]] = Field(None, description="Raw split input; encoded into split_details")
    split_details: Optional[dict] = Field(None, description="Stored payload, used when split_input is omitted")
    payer_id: str = Field(..., min_length=1)
    frequency: str = "monthly"
    interval: int = 1
    start_date: str = Field(..., pattern=DATE_PATTERN)
    end_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    is_active: bool = True
    notes: Optional[str] = None


class ToggleRequest(BaseModel):
    """Request model for pausing or resuming a template."""
    is_active: bool


class DuplicateRequest(BaseModel):
    """Request model for duplicating a template."""
    end_date: Optional[str] = Field(None, pattern=DATE_PATTERN)


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Shared Property Ledger",
    description="Expense splitting and recurring expense scheduling for co-owned properties",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _http_error(e: Exception) -> HTTPException:
    """Map a storage/domain exception to the HTTP error returned to the client."""
    if isinstance(e, SplitValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": str(e), "errors": [error.to_dict() for error in e.errors]}
        )
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    logger.exception("Unhandled error")
    return HTTPException(status_code=500, detail=str(e))


def _today(value: Optional[str]) -> date:
    return parse_date(value) if value else date.today()


def _expense_to_dict(expense: Expense, warnings: Optional[list] = None) -> dict:
    """Convert Expense object (with splits) to a response dictionary."""
    data = expense.to_dict()
    data["splits"] = [split.to_dict() for split in expense.splits]
    if warnings is not None:
        data["warnings"] = [warning.to_dict() for warning in warnings]
    return data


def _template_to_dict(template: RecurringExpenseTemplate, today: date) -> dict:
    """Convert a template to a response dictionary with its derived status."""
    data = template.to_dict()
    data["status"] = derive_status(template, today).value
    return data


def _template_from_request(data: RecurringExpenseCreate) -> RecurringExpenseTemplate:
    return RecurringExpenseTemplate(
        description=data.description,
        amount=data.amount,
        category=data.category,
        split_method=data.split_method,
        split_details=data.split_details,
        payer_id=data.payer_id,
        frequency=data.frequency,
        interval=data.interval,
        start_date=data.start_date,
        end_date=data.end_date,
        is_active=data.is_active,
        notes=data.notes
    )


# =============================================================================
# Stateless Endpoints
# =============================================================================

@app.post("/splits/validate")
async def validate_split_input(request: SplitRequest):
    """Validate split input against a split method; every failure is returned."""
    result = validate_split(request.split_method, request.total_amount, request.split_input, request.participants)
    return result.to_dict()


@app.post("/splits/allocate")
async def allocate_split_input(request: SplitRequest):
    """
    Validate split input, then compute the per-member splits.

    Request flow:
        1. Validate with validate_split() (split_validator.py)
        2. Allocate with allocate_splits() (splitter.py)
        3. Return splits and rounding warnings
    """
    validation = validate_split(request.split_method, request.total_amount, request.split_input, request.participants)
    if not validation.is_valid:
        raise _http_error(SplitValidationError(validation.errors))

    result = allocate_splits(
        request.split_method,
        request.total_amount,
        request.split_input,
        request.participants,
        request.payer_id
    )
    if not result.ok:
        raise _http_error(SplitValidationError([result.error]))

    return {
        "splits": [split.to_dict() for split in result.value],
        "warnings": [warning.to_dict() for warning in result.warnings]
    }


@app.post("/split-details/encode")
async def encode_details(request: SplitDetailsEncodeRequest):
    """Build the persisted split details payload."""
    try:
        return storable_split_details(encode_split_details(request.split_method, request.split_input))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/split-details/decode")
async def decode_details(request: SplitDetailsDecodeRequest):
    """Recover the split input of a payload for the selected method."""
    try:
        split_input = decode_split_details(request.payload, request.split_method)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    stored_method = payload_method(request.payload)
    return {
        "split_input": {member_id: float(value) for member_id, value in split_input.items()},
        "stored_method": stored_method.value if stored_method else None
    }


@app.post("/schedule/next-due-date")
async def next_due_date(request: NextDueDateRequest):
    """Compute the first occurrence on or after the reference date."""
    try:
        due = compute_next_due_date(
            request.start_date,
            request.frequency,
            request.interval,
            _today(request.reference_date)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"next_due_date": format_date(due)}


# =============================================================================
# Member Endpoints
# =============================================================================

@app.post("/properties/{property_id}/members", response_model=MemberResponse, status_code=201)
async def add_property_member(property_id: str, member_data: MemberCreate):
    """Add a member to a property."""
    try:
        member = add_member(property_id, member_data.member_id, member_data.name)
        return MemberResponse(member_id=member.member_id, name=member.name)
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/members", response_model=list[MemberResponse])
async def list_property_members(property_id: str):
    """List the members of a property."""
    try:
        return [MemberResponse(member_id=m.member_id, name=m.name) for m in get_members(property_id)]
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Expense Endpoints
# =============================================================================

@app.post("/properties/{property_id}/expenses", status_code=201)
async def add_property_expense(property_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a property.

    Request flow:
        1. Validate input using Pydantic model
        2. Call add_expense_with_splits() from expenses.py
        3. Return created expense with its splits and warnings
    """
    try:
        expense, warnings = add_expense_with_splits(
            property_id=property_id,
            description=expense_data.description,
            amount=expense_data.amount,
            expense_date=expense_data.date,
            category=expense_data.category,
            payer_id=expense_data.payer_id,
            split_method=expense_data.split_method,
            split_input=expense_data.split_input,
            notes=expense_data.notes
        )
        return _expense_to_dict(expense, warnings)
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/expenses")
async def list_property_expenses(property_id: str):
    """List the expenses of a property with their splits, newest first."""
    try:
        return [_expense_to_dict(expense) for expense in get_expenses(property_id)]
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/expenses/{expense_id}/splits")
async def list_expense_splits(property_id: str, expense_id: str):
    """List the splits of one expense."""
    try:
        return [split.to_dict() for split in get_expense_splits(property_id, expense_id)]
    except Exception as e:
        raise _http_error(e)


@app.put("/properties/{property_id}/expenses/{expense_id}")
async def replace_property_expense(property_id: str, expense_id: str, expense_data: ExpenseCreate):
    """Re-split and replace an existing expense."""
    try:
        expense, warnings = update_expense_with_splits(
            property_id=property_id,
            expense_id=expense_id,
            description=expense_data.description,
            amount=expense_data.amount,
            expense_date=expense_data.date,
            category=expense_data.category,
            payer_id=expense_data.payer_id,
            split_method=expense_data.split_method,
            split_input=expense_data.split_input,
            notes=expense_data.notes
        )
        return _expense_to_dict(expense, warnings)
    except Exception as e:
        raise _http_error(e)


@app.delete("/properties/{property_id}/expenses/{expense_id}", status_code=204)
async def remove_property_expense(property_id: str, expense_id: str):
    """Delete an expense and its splits."""
    try:
        delete_expense(property_id, expense_id)
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Recurring Expense Endpoints
# =============================================================================

@app.post("/properties/{property_id}/recurring-expenses", status_code=201)
async def create_recurring_expense(property_id: str, template_data: RecurringExpenseCreate, today: Optional[str] = None):
    """Validate and store a new recurring expense template."""
    try:
        day = _today(today)
        template = add_recurring_expense(
            property_id,
            _template_from_request(template_data),
            split_input=template_data.split_input,
            today=day
        )
        return _template_to_dict(template, day)
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/recurring-expenses")
async def list_recurring_expenses(
    property_id: str,
    status: str = "all",
    sort_by: str = "next_due_date",
    descending: bool = False,
    today: Optional[str] = None
):
    """List templates, filtered by derived status and sorted."""
    try:
        day = _today(today)
        templates = get_recurring_expenses(property_id, status, sort_by, descending, day)
        return [_template_to_dict(template, day) for template in templates]
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/recurring-expenses/due")
async def list_due_recurring_expenses(property_id: str, today: Optional[str] = None):
    """List the active templates with an occurrence due on or before today."""
    try:
        day = _today(today)
        return [_template_to_dict(template, day) for template in get_due_recurring_expenses(property_id, day)]
    except Exception as e:
        raise _http_error(e)


@app.get("/properties/{property_id}/recurring-expenses/{template_id}")
async def read_recurring_expense(property_id: str, template_id: str, today: Optional[str] = None):
    """Get one template with its derived status."""
    try:
        return _template_to_dict(get_recurring_expense(property_id, template_id), _today(today))
    except Exception as e:
        raise _http_error(e)


@app.put("/properties/{property_id}/recurring-expenses/{template_id}")
async def replace_recurring_expense(
    property_id: str,
    template_id: str,
    template_data: RecurringExpenseCreate,
    today: Optional[str] = None
):
    """Validate and replace a template."""
    try:
        day = _today(today)
        template = update_recurring_expense(
            property_id,
            template_id,
            _template_from_request(template_data),
            split_input=template_data.split_input,
            today=day
        )
        return _template_to_dict(template, day)
    except Exception as e:
        raise _http_error(e)


@app.delete("/properties/{property_id}/recurring-expenses/{template_id}", status_code=204)
async def remove_recurring_expense(property_id: str, template_id: str):
    """Delete a template."""
    try:
        delete_recurring_expense(property_id, template_id)
    except Exception as e:
        raise _http_error(e)


@app.post("/properties/{property_id}/recurring-expenses/{template_id}/toggle")
async def toggle_template(property_id: str, template_id: str, toggle: ToggleRequest, today: Optional[str] = None):
    """Pause or resume a template (rejected once it has ended)."""
    try:
        day = _today(today)
        return _template_to_dict(toggle_recurring_expense(property_id, template_id, toggle.is_active, day), day)
    except Exception as e:
        raise _http_error(e)


@app.post("/properties/{property_id}/recurring-expenses/{template_id}/duplicate", status_code=201)
async def duplicate_template_endpoint(
    property_id: str,
    template_id: str,
    request: Optional[DuplicateRequest] = None,
    today: Optional[str] = None
):
    """Store a copy of a template that starts today."""
    try:
        day = _today(today)
        end_date = request.end_date if request else None
        return _template_to_dict(duplicate_recurring_expense(property_id, template_id, end_date, day), day)
    except Exception as e:
        raise _http_error(e)


@app.post("/properties/{property_id}/recurring-expenses/{template_id}/advance")
async def advance_template(property_id: str, template_id: str, today: Optional[str] = None):
    """Move a template past its current due date once the occurrence was recorded."""
    try:
        return _template_to_dict(mark_recurring_expense_generated(property_id, template_id), _today(today))
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Snapshot Endpoint
# =============================================================================

@app.get("/properties/{property_id}/snapshot")
async def financial_snapshot(property_id: str, today: Optional[str] = None):
    """
    Get the monthly financial snapshot of a property.

    Request flow:
        1. Fetch members from Firestore
        2. Fetch expenses with their splits from Firestore
        3. Build the snapshot (analytics.py)
    """
    try:
        members = get_members(property_id)
        expenses = get_expenses(property_id)
        return generate_financial_snapshot(members, expenses, _today(today))
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Shared Property Ledger"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=API_HOST, port=API_PORT, reload=True)
