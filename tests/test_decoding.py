import pytest

from contractscan.domain.decoding import (
    APPROVAL_SELECTOR, TRANSFER_SELECTOR, decode_event, decode_events, estimate_timestamp, is_relevant,
    parse_hex, same_felt, validate_address,
)
from contractscan.errors import InvalidAddressError

from conftest import CONTRACT, OTHER, make_event, make_tx


def test_transfer_decodes_positional_fields():
    assert decode_event([TRANSFER_SELECTOR], ["0x1", "0x2", "0x64"]) == (
        "Transfer", {"from": "0x1", "to": "0x2", "amount": "100"})


def test_approval_decodes_positional_fields():
    name, fields = decode_event([APPROVAL_SELECTOR, "0x5"], ["0xa", "0xb", "0xde0b6b3a7640000"])
    assert name == "Approval"
    assert fields == {"owner": "0xa", "spender": "0xb", "amount": "1000000000000000000"}


def test_selector_matched_by_value_not_spelling():
    padded = "0x00" + TRANSFER_SELECTOR[2:].upper()
    assert decode_event([padded], ["0x1", "0x2", "0x3"])[0] == "Transfer"


@pytest.mark.parametrize("keys,data", [
    ([], ["0x1", "0x2", "0x3"]),
    (["0x1234"], ["0x1", "0x2", "0x3"]),
    ([TRANSFER_SELECTOR], ["0x1", "0x2"]),
    (["not-hex"], []),
])
def test_unknown_or_short_events_pass_through(keys, data):
    assert decode_event(keys, data) == ("Unknown Event", {})


def test_unparseable_amount_is_kept_raw():
    assert decode_event([TRANSFER_SELECTOR], ["0x1", "0x2", "0xzz"])[1]["amount"] == "0xzz"


def test_estimate_timestamp_interpolates_linearly():
    kw = dict(from_block=100, from_ts=1000, tip=200, tip_ts=2000)
    assert estimate_timestamp(200, **kw) == 2000
    assert estimate_timestamp(100, **kw) == 1000
    assert estimate_timestamp(150, **kw) == 1500
    assert estimate_timestamp(175, **kw) == 1750


def test_estimate_timestamp_degenerate_range_uses_tip():
    assert estimate_timestamp(5, from_block=5, from_ts=10, tip=5, tip_ts=99) == 99


def test_decode_events_keeps_raw_event_untouched():
    raw = make_event(150, [TRANSFER_SELECTOR], ["0x1", "0x2", "0x64"])
    (ev,) = decode_events([raw], from_block=100, from_ts=1000, tip=200, tip_ts=2000)
    assert ev.event is raw
    assert ev.estimated_timestamp == 1500
    assert ev.estimated_time_iso.startswith("1970-01-01T00:25:00")


def test_validate_address():
    assert validate_address(CONTRACT.upper().replace("0X", "0x")) == CONTRACT
    for bad in ("", "0x123", "ab" * 33, "0x" + "g" * 64, None, 42, "0x" + "1" * 65):
        with pytest.raises(InvalidAddressError):
            validate_address(bad)


def test_parse_hex_and_felts():
    assert parse_hex("0x64") == 100
    assert parse_hex("100") == 100
    assert parse_hex(None) == 0 and parse_hex("0x") == 0
    assert same_felt("0x0001", "0x1")
    assert not same_felt("0x1", None)


def test_relevance_rules():
    short = "0x" + CONTRACT[2:].lstrip("0")
    assert is_relevant(make_tx(1, 0, 0, sender=short), CONTRACT)
    assert is_relevant(make_tx(1, 0, 1, callee=CONTRACT), CONTRACT)
    assert is_relevant(make_tx(1, 0, 2, calldata=["0x1", "0x" + CONTRACT[2:].upper()]), CONTRACT)
    assert not is_relevant(make_tx(1, 0, 3, calldata=["0x1", OTHER]), CONTRACT)


def test_calldata_word_without_leading_zeros_is_relevant():
    padded = "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d"
    trimmed = "0x4718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d"
    assert is_relevant(make_tx(1, 0, 0, calldata=["0x2", trimmed]), padded)
    assert is_relevant(make_tx(1, 0, 1, calldata=[padded]), padded)
    assert not is_relevant(make_tx(1, 0, 2, calldata=["0x4718f5a0", "not-hex"]), padded)
