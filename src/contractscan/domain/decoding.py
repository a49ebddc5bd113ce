from __future__ import annotations

from typing import Sequence

from eth_utils import is_0x_prefixed, is_hexstr, remove_0x_prefix, to_int

from contractscan.domain.models import DecodedEvent, RawEvent, Transaction
from contractscan.domain.value_types import Address, EventName
from contractscan.errors import InvalidAddressError


# Selector constants (first event key), compared by value
TRANSFER_SELECTOR = "0x99cd8bde557814842a3121e8ddfd433a539b8c9f14bf31ebf108d12e6196e9"
APPROVAL_SELECTOR = "0x1dcde06aabdbca2f80aa51392b345d7549d7757aa855f7e37f5d335ac8243b1"

# name -> positional data fields
EVENT_LAYOUTS: dict[str, tuple[str, str, str]] = {
    "Transfer": ("from", "to", "amount"),
    "Approval": ("owner", "spender", "amount"),
}

UNKNOWN_EVENT: EventName = "Unknown Event"
ADDRESS_HEX_LEN = 64

# ---------- hex helpers --------------------------------------------------------

def parse_hex(value: str | int | None) -> int:
    """Handles 0x..., decimal strings, and native ints; None/"" -> 0."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise TypeError(f"cannot parse {type(value).__name__} as a number")
    s = value.strip().lower()
    if not s or s == "0x":
        return 0
    return to_int(hexstr=s) if is_0x_prefixed(s) else int(s)

def same_felt(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    try:
        return parse_hex(a) == parse_hex(b)
    except ValueError:
        return a.lower() == b.lower()

def _selector_ints() -> dict[int, EventName]:
    return {parse_hex(TRANSFER_SELECTOR): "Transfer", parse_hex(APPROVAL_SELECTOR): "Approval"}

_SELECTORS = _selector_ints()

# ---------- addresses ----------------------------------------------------------

def validate_address(address: object) -> Address:
    """Return the lowercased address or raise InvalidAddressError.

    Accepted form is the canonical one: "0x" followed by exactly 64 hex digits.
    """
    if not isinstance(address, str):
        raise InvalidAddressError(address)
    s = address.strip()
    if not is_0x_prefixed(s) or len(s) != ADDRESS_HEX_LEN + 2 or not is_hexstr(s):
        raise InvalidAddressError(address)
    return Address(s.lower())

def is_relevant(tx: Transaction, address: Address) -> bool:
    """Sender, callee, or any calldata word mentioning the address.

    A calldata word matches when it equals the address as a felt (nodes drop
    leading zeros) or contains its zero-padded hex. The substring part admits
    false positives.
    """
    if same_felt(tx.sender_address, address) or same_felt(tx.contract_address, address):
        return True
    needle = remove_0x_prefix(address).lower()
    return any(needle in str(word).lower() or same_felt(str(word), address) for word in tx.calldata)

# ---------- events -------------------------------------------------------------

def event_name_for(keys: Sequence[str]) -> EventName:
    if not keys:
        return UNKNOWN_EVENT
    try:
        return _SELECTORS.get(parse_hex(keys[0]), UNKNOWN_EVENT)
    except ValueError:
        return UNKNOWN_EVENT

def _amount_str(word: str) -> str:
    try:
        return str(parse_hex(word))
    except ValueError:
        return word

def decode_event(keys: Sequence[str], data: Sequence[str]) -> tuple[EventName, dict[str, str]]:
    name = event_name_for(keys)
    layout = EVENT_LAYOUTS.get(name)
    if layout is None or len(data) < len(layout):
        return UNKNOWN_EVENT, {}
    first, second, amount = layout
    return name, {first: data[0], second: data[1], amount: _amount_str(data[2])}

def estimate_timestamp(block_number: int, *, from_block: int, from_ts: int, tip: int, tip_ts: int) -> int:
    """Linear interpolation between the (from_block, from_ts) and (tip, tip_ts) anchors."""
    span = tip - from_block
    if span <= 0:
        return tip_ts
    return tip_ts - ((tip - block_number) * (tip_ts - from_ts)) // span

def decode_events(
    events: Sequence[RawEvent], *, from_block: int, from_ts: int, tip: int, tip_ts: int
) -> list[DecodedEvent]:
    out: list[DecodedEvent] = []
    for ev in events:
        name, fields = decode_event(ev.keys, ev.data)
        out.append(DecodedEvent(
            event=ev,
            event_name=name,
            decoded_fields=fields,
            estimated_timestamp=estimate_timestamp(
                ev.block_number, from_block=from_block, from_ts=from_ts, tip=tip, tip_ts=tip_ts
            ),
        ))
    return out
