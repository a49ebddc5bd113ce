from __future__ import annotations

from typing import Any, Iterable

import pytest

from contractscan.config import Settings
from contractscan.domain.models import Block, EventPage, RawEvent, Transaction
from contractscan.domain.value_types import Address, Felt
from contractscan.errors import EndpointsExhaustedError, RPCError

CONTRACT = Address("0x" + "ab" * 32)
OTHER = "0x" + "12" * 32


def make_tx(block: int, ts: int, n: int, *, sender: str = OTHER, callee: str | None = None,
            calldata: Iterable[str] = (), max_fee: str = "0x0") -> Transaction:
    return Transaction(
        hash=f"0x{block:x}{n:04x}",
        sender_address=sender,
        contract_address=callee,
        calldata=tuple(calldata),
        max_fee=max_fee,
        type="INVOKE",
        block_number=block,
        block_timestamp=ts,
    )


def make_event(block: int, keys: Iterable[str], data: Iterable[str], tx: str = "0xfeed") -> RawEvent:
    return RawEvent(block_number=block, transaction_hash=tx,
                    keys=tuple(Felt(k) for k in keys), data=tuple(Felt(d) for d in data))


class FakeRPC:
    """In-memory chain: block n has timestamp `genesis_ts + n * block_time` unless overridden."""

    def __init__(self, tip: int, *, genesis_ts: int = 1_700_000_000, block_time: int = 6,
                 txs: dict[int, list[Transaction]] | None = None,
                 pages: dict[str | None, EventPage] | None = None,
                 failing_blocks: Iterable[int] = (), missing_blocks: Iterable[int] = (),
                 failing_tokens: Iterable[str | None] = (), class_deployed: bool = True,
                 timestamps: dict[int, int] | None = None) -> None:
        self.tip = tip
        self.genesis_ts = genesis_ts
        self.block_time = block_time
        self.txs = txs or {}
        self.pages = pages or {None: EventPage(events=())}
        self.failing_blocks = set(failing_blocks)
        self.missing_blocks = set(missing_blocks)
        self.failing_tokens = set(failing_tokens)
        self.class_deployed = class_deployed
        self.timestamps = timestamps or {}
        self.calls: list[tuple[str, Any]] = []

    def timestamp(self, n: int) -> int:
        return self.timestamps.get(n, self.genesis_ts + n * self.block_time)

    async def call(self, method: str, params: Any) -> Any:
        raise NotImplementedError

    async def block_number(self) -> int:
        self.calls.append(("block_number", None))
        return self.tip

    async def get_block(self, block_number: int) -> Block | None:
        self.calls.append(("get_block", block_number))
        if block_number in self.failing_blocks or block_number > self.tip:
            raise EndpointsExhaustedError("starknet_getBlockWithTxs", ["boom"])
        if block_number in self.missing_blocks:
            return None
        return Block(number=block_number, timestamp=self.timestamp(block_number),
                     transactions=tuple(self.txs.get(block_number, ())))

    async def get_events(self, address, from_block, to_block, chunk_size, continuation_token=None) -> EventPage:
        self.calls.append(("get_events", (from_block, to_block, chunk_size, continuation_token)))
        if continuation_token in self.failing_tokens:
            raise EndpointsExhaustedError("starknet_getEvents", ["boom"])
        return self.pages[continuation_token]

    async def get_class_at(self, address, block_id="latest") -> Any:
        self.calls.append(("get_class_at", (address, block_id)))
        if not self.class_deployed:
            raise RPCError("Contract not found", method="starknet_getClassAt")
        return {"abi": []}

    def count(self, name: str) -> int:
        return sum(1 for c, _ in self.calls if c == name)


@pytest.fixture
def settings() -> Settings:
    return Settings(rpc_endpoints=("http://a.test",), concurrency=4)
