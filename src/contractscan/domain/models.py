from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from .value_types import Address, AnalysisStatus, EventName, Felt, QueryKind

@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: int
    def span(self) -> int: return self.end - self.start + 1

@dataclass(slots=True, frozen=True)
class Transaction:
    hash: str
    sender_address: str | None
    contract_address: str | None       # callee, when the tx has one
    calldata: tuple[str, ...]
    max_fee: str                       # hex, "0x0" when absent
    type: str
    block_number: int
    block_timestamp: int

@dataclass(slots=True, frozen=True)
class Block:
    number: int
    timestamp: int
    transactions: tuple[Transaction, ...] = ()

@dataclass(slots=True, frozen=True)
class RawEvent:
    block_number: int
    transaction_hash: str
    keys: tuple[Felt, ...]
    data: tuple[Felt, ...]

@dataclass(slots=True, frozen=True)
class EventPage:
    events: tuple[RawEvent, ...]
    continuation_token: str | None = None

@dataclass(slots=True, frozen=True)
class DecodedEvent:
    """A raw event plus what could be decoded from it.

    `estimated_timestamp` is a linear interpolation between two block
    anchors, not the ledger timestamp of the event's block.
    """
    event: RawEvent
    event_name: EventName
    decoded_fields: dict[str, str]
    estimated_timestamp: int

    @property
    def estimated_time_iso(self) -> str:
        return datetime.fromtimestamp(self.estimated_timestamp, tz=timezone.utc).isoformat()

@dataclass(slots=True, frozen=True)
class ScanReport:
    transactions: tuple[Transaction, ...]   # newest block first
    blocks_scanned: int
    failed_blocks: tuple[int, ...] = ()

    @property
    def complete(self) -> bool: return not self.failed_blocks

@dataclass(slots=True, frozen=True)
class ContractAnalysis:
    contract_address: Address
    status: AnalysisStatus
    transaction_count: int
    total_fees: str          # display units, 4 decimals
    avg_fee: str             # display units, 6 decimals
    total_fees_raw: int      # native units
    unique_sender_count: int
    blocks_analyzed: int
    current_block: int
    from_block: int
    to_block: int
    sample_transactions: tuple[Transaction, ...]
    failed_blocks: tuple[int, ...] = ()
    contract_info: str | None = None
    message: str | None = None
    suggestion: str | None = None

@dataclass(slots=True, frozen=True)
class EventQueryResult:
    contract_address: Address
    decoded_events: tuple[DecodedEvent, ...]
    from_block: int
    to_block: int
    total_event_count: int
    pages_fetched: int
    complete: bool = True

@dataclass(slots=True, frozen=True)
class EndpointHealth:
    url: str
    ok: bool
    chain_id: str | None = None
    latency_ms: float | None = None
    error: str | None = None

@dataclass(slots=True, frozen=True)
class SavedQuery:
    query_id: str
    kind: QueryKind
    contract_address: Address
    from_date: str | None
    to_date: str | None
    created_at: float
    payload: dict[str, Any] = field(default_factory=dict)
