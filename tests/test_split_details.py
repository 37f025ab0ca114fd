from decimal import Decimal

import pytest

from split_details import decode_split_details, encode_split_details, payload_method, storable_split_details
from splitter import SplitMethod


def test_encode_percentage_stores_raw_percentages():
    payload = encode_split_details("percentage", {"alice": 60, "bob": Decimal("40")})
    assert payload == {"type": "percentage", "splits": {"alice": Decimal("60"), "bob": Decimal("40")}}


def test_encode_drops_unset_entries():
    payload = encode_split_details(SplitMethod.FIXED, {"alice": "30.50", "bob": None})
    assert payload == {"type": "fixed", "splits": {"alice": Decimal("30.50")}}


@pytest.mark.parametrize("method", ["equal", "payer_only"])
def test_encode_methods_without_input(method):
    assert encode_split_details(method, {"alice": 100}) == {"type": method}


def test_encode_custom_alias_is_stored_as_fixed():
    assert encode_split_details("custom", {"alice": 10})["type"] == "fixed"


def test_encode_rejects_unknown_method():
    with pytest.raises(ValueError):
        encode_split_details("by_weight", {})


def test_decode_for_the_stored_method():
    payload = {"type": "percentage", "splits": {"alice": 60.0, "bob": 40.0}}
    assert decode_split_details(payload, "percentage") == {"alice": Decimal("60"), "bob": Decimal("40")}


@pytest.mark.parametrize("method", ["percentage", "fixed"])
@pytest.mark.parametrize("value", [
    Decimal("33.3333333333333333"),
    Decimal("0.01"),
    Decimal("12345678.99"),
    Decimal("100"),
    Decimal("0.1"),
])
def test_encoded_payload_decodes_to_the_same_input(method, value):
    split_input = {"alice": value, "bob": Decimal("66.67")}
    payload = encode_split_details(method, split_input)
    assert decode_split_details(payload, method) == split_input


def test_storable_payload_uses_plain_numbers():
    payload = encode_split_details("percentage", {"alice": Decimal("33.3333333333333333"), "bob": 60})
    stored = storable_split_details(payload)
    assert stored == {"type": "percentage", "splits": {"alice": 33.3333333333333333, "bob": 60.0}}
    assert all(type(value) is float for value in stored["splits"].values())


def test_storable_payload_of_method_without_input():
    assert storable_split_details(encode_split_details("equal")) == {"type": "equal"}


def test_storable_leaves_unreadable_payload_unchanged():
    payload = {"type": "by_weight", "splits": {"alice": 1}}
    assert storable_split_details(payload) is payload


def test_decode_after_method_change_starts_empty():
    payload = {"type": "percentage", "splits": {"alice": 60.0, "bob": 40.0}}
    assert decode_split_details(payload, "fixed") == {}


@pytest.mark.parametrize("payload", [
    None,
    "percentage",
    {},
    {"type": "by_weight"},
    {"type": "percentage", "splits": "garbage"},
    {"type": "fixed", "splits": {"alice": "lots"}},
])
def test_decode_missing_or_malformed_payload(payload):
    assert decode_split_details(payload, "percentage") == {}
    assert decode_split_details(payload, "fixed") == {}


def test_decode_equal_payload_has_no_input():
    assert decode_split_details({"type": "equal"}, "equal") == {}


def test_decode_legacy_list_payload():
    payload = {
        "type": "custom",
        "splits": [{"user_id": "alice", "amount": 30}, {"user_id": "bob", "amount": 60}],
    }
    assert payload_method(payload) is SplitMethod.FIXED
    assert decode_split_details(payload, "fixed") == {"alice": Decimal("30"), "bob": Decimal("60")}


def test_decode_legacy_percentage_list():
    payload = {"type": "percentage", "splits": [{"user_id": "alice", "percentage": 100}]}
    assert decode_split_details(payload, "percentage") == {"alice": Decimal("100")}


def test_payload_method_of_unreadable_payload():
    assert payload_method({"type": "nope"}) is None
