# contractscan/ports/rpc.py
from __future__ import annotations

from typing import Any, Protocol
from ..domain.models import Block, EventPage
from ..domain.value_types import Address


class StarknetRPC(Protocol):
    """Port defining the contract for a failover-aware Starknet JSON-RPC client."""

    async def call(self, method: str, params: Any) -> Any:
        """Return the `result` of one logical call; raise EndpointsExhaustedError if no endpoint answers."""

    async def block_number(self) -> int:
        """Return the chain tip as an integer."""

    async def get_block(self, block_number: int) -> Block | None:
        """Return the block with its transactions, or None if the node has no usable block."""

    async def get_events(
        self,
        address: Address,
        from_block: int,
        to_block: int,
        chunk_size: int,
        continuation_token: str | None = None,
    ) -> EventPage:
        """Return one page of events for [from_block, to_block] inclusive."""

    async def get_class_at(self, address: Address, block_id: str = "latest") -> Any:
        """Return the contract class deployed at `address`."""
