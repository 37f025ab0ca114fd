"""
Errors Module

This module defines the typed failures returned by the split and recurrence
engines of the shared property ledger.

Pure computations never raise for domain failures. They return a
ValidationResult (every failure found) or a Result (a value or one error,
plus advisory warnings) so the calling layer can present them without a
crash.

Data Model:
    SplitError:
        - kind: ErrorKind
        - message: string
        - member_id: string or None (entry the failure refers to, if any)

    SplitWarning:
        - kind: WarningKind
        - message: string
        - amount: Decimal or None (e.g. the rounding drift)

Classes:
    ErrorKind: Enumeration of failure kinds.
    WarningKind: Enumeration of non-fatal advisories.
    SplitError: One typed failure.
    SplitWarning: One advisory.
    ValidationResult: Outcome of a validation pass.
    Result: Outcome of an allocation or template transform.
    SplitValidationError: ValueError raised by the storage layer.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Kinds of typed failures."""
    INVALID_AMOUNT = "invalid_amount"
    INVALID_SPLIT_TOTAL = "invalid_split_total"
    EMPTY_PARTICIPANTS = "empty_participants"
    PAYER_NOT_FOUND = "payer_not_found"
    NO_POSITIVE_SPLITS = "no_positive_splits"
    TEMPLATE_ENDED = "template_ended"
    INVALID_INTERVAL = "invalid_interval"
    INVALID_DATE_RANGE = "invalid_date_range"
    UNSUPPORTED_METHOD = "unsupported_method"


class WarningKind(str, Enum):
    """Kinds of non-fatal advisories."""
    ROUNDING_DRIFT = "rounding_drift"


class SplitError:
    """
    A single typed failure.

    Attributes:
        kind (ErrorKind): What went wrong.
        message (str): Human-readable description.
        member_id (str | None): Member entry the failure refers to.
    """

    def __init__(self, kind: ErrorKind, message: str, member_id: Optional[str] = None):
        self.kind = kind
        self.message = message
        self.member_id = member_id

    def to_dict(self) -> dict:
        """Convert error to a plain dictionary."""
        data = {"kind": self.kind.value, "message": self.message}
        if self.member_id is not None:
            data["member_id"] = self.member_id
        return data

    def __eq__(self, other) -> bool:
        if not isinstance(other, SplitError):
            return NotImplemented
        return (self.kind, self.message, self.member_id) == (other.kind, other.message, other.member_id)

    def __repr__(self) -> str:
        return f"SplitError(kind='{self.kind.value}', message='{self.message}')"


class SplitWarning:
    """
    A non-fatal advisory attached to a successful result.

    Attributes:
        kind (WarningKind): Advisory kind.
        message (str): Human-readable description.
        amount (Decimal | None): Monetary figure the advisory is about.
    """

    def __init__(self, kind: WarningKind, message: str, amount: Optional[Decimal] = None):
        self.kind = kind
        self.message = message
        self.amount = amount

    def to_dict(self) -> dict:
        """Convert warning to a plain dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "amount": float(self.amount) if self.amount is not None else None
        }

    def __repr__(self) -> str:
        return f"SplitWarning(kind='{self.kind.value}', amount={self.amount})"


class ValidationResult:
    """Outcome of a validation pass: valid when no errors were collected."""

    def __init__(self, errors: Optional[list[SplitError]] = None):
        self.errors = list(errors or [])

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def kinds(self) -> list[ErrorKind]:
        return [error.kind for error in self.errors]

    def add(self, kind: ErrorKind, message: str, member_id: Optional[str] = None) -> None:
        self.errors.append(SplitError(kind, message, member_id))

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors]
        }

    def __bool__(self) -> bool:
        return self.is_valid

    def __repr__(self) -> str:
        return f"ValidationResult(is_valid={self.is_valid}, errors={self.errors})"


class Result:
    """
    Outcome of an allocation or a template transform.

    Exactly one of value/error is meaningful: a Result with an error carries
    no value. Warnings may accompany a successful value.

    Attributes:
        value: The computed value (split list, template, ...).
        error (SplitError | None): The failure, if any.
        warnings (list[SplitWarning]): Advisories; never block success.
    """

    def __init__(
        self,
        value: Any = None,
        error: Optional[SplitError] = None,
        warnings: Optional[list[SplitWarning]] = None
    ):
        self.value = value
        self.error = error
        self.warnings = list(warnings or [])

    @classmethod
    def success(cls, value: Any, warnings: Optional[list[SplitWarning]] = None) -> "Result":
        return cls(value=value, warnings=warnings)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, member_id: Optional[str] = None) -> "Result":
        return cls(error=SplitError(kind, message, member_id))

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        if self.ok:
            return f"Result(ok=True, value={self.value!r}, warnings={self.warnings})"
        return f"Result(ok=False, error={self.error!r})"


class SplitValidationError(ValueError):
    """
    Raised by the storage layer when a record fails validation.

    Carries the typed errors so the HTTP layer can return them as-is.
    """

    def __init__(self, errors: list[SplitError]):
        self.errors = list(errors)
        super().__init__("; ".join(error.message for error in self.errors) or "Validation failed")
