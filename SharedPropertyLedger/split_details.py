"""
Split Details Module

This module converts a split method's configuration (the percentage or
fixed-amount map) to and from the storage-neutral payload persisted with
recurring expense templates.

Payload shape:
    {"type": "equal" | "percentage" | "fixed" | "payer_only",
     "splits": {member_id: number}}      # percentage / fixed only

The payload is parsed as a tagged union (one pydantic model per method,
discriminated on "type"). Older payloads are still understood:
    - "custom" as the type of a fixed-amount split
    - "splits" as a list of {"user_id", "percentage" | "amount"} records

Functions:
    encode_split_details: Build the payload for a method and its input.
    decode_split_details: Recover the split input for the selected method.
    payload_method: Read the method a payload was stored with.
    storable_split_details: Convert a payload to plain JSON numbers.
"""

import logging
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, PlainSerializer, TypeAdapter, ValidationError, field_validator

from splitter import SplitMethod
from utils import to_decimal

logger = logging.getLogger(__name__)

# Exact Decimal in python mode; plain JSON numbers for storage and HTTP
StoredNumber = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _normalise_splits(value, value_key: str) -> dict:
    """Accept a mapping or the legacy list form; drop unset entries."""
    if value is None:
        return {}
    if isinstance(value, list):
        mapping = {}
        for item in value:
            if not isinstance(item, dict) or not item.get("user_id"):
                raise ValueError(f"Invalid split item: {item!r}")
            mapping[item["user_id"]] = item.get(value_key)
        value = mapping
    if not isinstance(value, dict):
        raise ValueError("splits must be a mapping of member id to number")
    splits = {}
    for member_id, raw in value.items():
        number = to_decimal(raw)
        if number is not None:
            splits[str(member_id)] = number
    return splits


class EqualSplitDetails(BaseModel):
    type: Literal["equal"] = "equal"


class PayerOnlySplitDetails(BaseModel):
    type: Literal["payer_only"] = "payer_only"


class PercentageSplitDetails(BaseModel):
    type: Literal["percentage"] = "percentage"
    splits: dict[str, StoredNumber] = Field(default_factory=dict)

    @field_validator("splits", mode="before")
    @classmethod
    def _coerce_splits(cls, value):
        return _normalise_splits(value, "percentage")


class FixedSplitDetails(BaseModel):
    type: Literal["fixed", "custom"] = "fixed"
    splits: dict[str, StoredNumber] = Field(default_factory=dict)

    @field_validator("splits", mode="before")
    @classmethod
    def _coerce_splits(cls, value):
        return _normalise_splits(value, "amount")


SplitDetails = Annotated[
    Union[EqualSplitDetails, PercentageSplitDetails, FixedSplitDetails, PayerOnlySplitDetails],
    Field(discriminator="type"),
]

_split_details_adapter = TypeAdapter(SplitDetails)

_MODELS = {
    SplitMethod.EQUAL: EqualSplitDetails,
    SplitMethod.PERCENTAGE: PercentageSplitDetails,
    SplitMethod.FIXED: FixedSplitDetails,
    SplitMethod.PAYER_ONLY: PayerOnlySplitDetails,
}


def encode_split_details(method, split_input: Optional[dict] = None) -> dict:
    """
    Build the persisted payload for a split method.

    Values are kept raw and exact (percentages for percentage, amounts for
    fixed); they are not re-derived from the expense total. Unset (None)
    entries are dropped. Equal and payer_only payloads carry no "splits" key.
    Use storable_split_details() before writing the payload out.

    Args:
        method: SplitMethod (or its string value).
        split_input: Dict keyed by member_id.

    Returns:
        dict: Payload with Decimal values.

    Raises:
        ValueError: If method is unknown or an entry is not numeric.
    """
    method = SplitMethod.parse(method)
    model = _MODELS[method]
    if method in (SplitMethod.PERCENTAGE, SplitMethod.FIXED):
        details = model(splits=split_input or {})
    else:
        details = model()
    return details.model_dump()


def _parse(payload) -> Optional[BaseModel]:
    if not isinstance(payload, dict):
        return None
    try:
        return _split_details_adapter.validate_python(payload)
    except ValidationError as e:
        logger.warning("Ignoring malformed split details payload: %s", e.errors(include_url=False))
        return None


def payload_method(payload) -> Optional[SplitMethod]:
    """Return the method a payload was stored with, or None if unreadable."""
    details = _parse(payload)
    return SplitMethod.parse(details.type) if details is not None else None


def storable_split_details(payload):
    """
    Convert a payload to plain JSON numbers for Firestore and HTTP responses.

    Payloads that cannot be read are returned unchanged.
    """
    details = _parse(payload)
    if details is None:
        return payload
    return details.model_dump(mode="json")


def decode_split_details(payload, method) -> dict:
    """
    Recover the split input for the currently selected method.

    A payload stored for another method (e.g. the template's method was
    changed after creation), a missing payload and a malformed payload all
    yield an empty input so the caller can prompt for fresh entry.

    Args:
        payload: Persisted payload (dict) or None.
        method: The currently selected SplitMethod.

    Returns:
        dict: member_id -> Decimal (empty for equal/payer_only).
    """
    method = SplitMethod.parse(method)
    details = _parse(payload)
    if details is None:
        return {}

    stored_method = SplitMethod.parse(details.type)
    if stored_method is not method:
        logger.info("Split details stored for %s, %s selected; starting empty", stored_method.value, method.value)
        return {}

    return dict(getattr(details, "splits", {}))
