from decimal import Decimal

import pytest

from errors import ErrorKind
from split_validator import validate_split

MEMBERS = ["alice", "bob", "carol"]


def test_equal_split_with_members_is_valid():
    result = validate_split("equal", Decimal("100.00"), None, MEMBERS)
    assert result.is_valid
    assert result.errors == []


def test_equal_split_without_members_is_rejected():
    result = validate_split("equal", 100, None, [])
    assert result.kinds == [ErrorKind.EMPTY_PARTICIPANTS]


@pytest.mark.parametrize("amount", [None, "", "abc"])
def test_missing_or_non_numeric_amount(amount):
    result = validate_split("equal", amount, None, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_AMOUNT]


def test_amount_with_three_decimals_is_rejected():
    result = validate_split("equal", 10.005, None, MEMBERS)
    assert ErrorKind.INVALID_AMOUNT in result.kinds


@pytest.mark.parametrize("method", ["equal", "percentage", "fixed"])
def test_zero_total_is_rejected_except_payer_only(method):
    result = validate_split(method, 0, {"alice": 100}, MEMBERS)
    assert ErrorKind.INVALID_AMOUNT in result.kinds


def test_payer_only_tolerates_zero_total():
    assert validate_split("payer_only", 0, None, MEMBERS).is_valid


def test_payer_only_still_rejects_negative_total():
    assert validate_split("payer_only", -5, None, MEMBERS).kinds == [ErrorKind.INVALID_AMOUNT]


def test_percentage_summing_to_hundred_is_valid():
    assert validate_split("percentage", 250, {"alice": 60, "bob": 40}, MEMBERS).is_valid


def test_percentage_within_tolerance_is_valid():
    split_input = {"alice": "33.33", "bob": "33.33", "carol": "33.33"}
    assert validate_split("percentage", 100, split_input, MEMBERS).is_valid


def test_percentage_not_summing_to_hundred():
    result = validate_split("percentage", 250, {"alice": 60, "bob": 30}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL]
    assert "90" in result.errors[0].message


def test_percentage_out_of_range_entries_are_all_reported():
    result = validate_split("percentage", 100, {"alice": 120, "bob": -20}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL] * 3
    assert [e.member_id for e in result.errors[:2]] == ["alice", "bob"]


def test_percentage_without_positive_entries():
    result = validate_split("percentage", 100, {"alice": None, "bob": 0}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL]


def test_fixed_amounts_matching_total_are_valid():
    assert validate_split("fixed", 90, {"alice": 30, "bob": 60}, MEMBERS).is_valid


def test_fixed_amounts_not_matching_total():
    result = validate_split("fixed", 90, {"alice": 30, "bob": 50}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL]


def test_fixed_custom_alias_uses_fixed_rules():
    result = validate_split("custom", 90, {"alice": 30, "bob": 50}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL]


def test_fixed_negative_entry_and_wrong_total():
    result = validate_split("fixed", 90, {"alice": -10, "bob": 100}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL, ErrorKind.INVALID_SPLIT_TOTAL]
    assert result.errors[0].member_id == "alice"


def test_fixed_entries_with_excess_precision():
    result = validate_split("fixed", 90, {"alice": "10.005", "bob": "79.995"}, MEMBERS)
    assert [e.member_id for e in result.errors] == ["alice", "bob"]


def test_non_numeric_entry_is_reported_against_its_member():
    result = validate_split("fixed", 90, {"alice": "x", "bob": 90}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_SPLIT_TOTAL]
    assert result.errors[0].member_id == "alice"


def test_unknown_method():
    result = validate_split("by_weight", 100, None, MEMBERS)
    assert result.kinds == [ErrorKind.UNSUPPORTED_METHOD]


def test_validation_does_not_modify_input():
    split_input = {"alice": 60, "bob": None}
    validate_split("percentage", 100, split_input, MEMBERS)
    assert split_input == {"alice": 60, "bob": None}


def test_fixed_entry_for_non_member_is_rejected():
    result = validate_split("fixed", 90, {"alice": 30, "dave": 60}, MEMBERS)
    assert not result.is_valid
    assert set(result.kinds) == {ErrorKind.INVALID_SPLIT_TOTAL}
    assert result.errors[0].member_id == "dave"


def test_percentage_entry_for_non_member_is_rejected():
    result = validate_split("percentage", 100, {"alice": 60, "dave": 40}, MEMBERS)
    assert not result.is_valid
    assert "dave" in [e.member_id for e in result.errors]


def test_zero_entry_for_non_member_is_ignored():
    assert validate_split("percentage", 100, {"alice": 100, "dave": 0}, MEMBERS).is_valid


@pytest.mark.parametrize("method", ["equal", "percentage", "fixed", "payer_only"])
def test_out_of_range_amount_is_reported(method):
    result = validate_split(method, "1e30", {"alice": 100}, MEMBERS)
    assert result.kinds == [ErrorKind.INVALID_AMOUNT]


def test_out_of_range_fixed_entry_is_reported_against_its_member():
    result = validate_split("fixed", 90, {"alice": "1e30", "bob": 90}, MEMBERS)
    assert not result.is_valid
    assert result.errors[0].member_id == "alice"
