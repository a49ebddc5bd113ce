# contractscan/ports/storage.py
from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import DecodedEvent, SavedQuery, Transaction


class EventSink(Protocol):
    """Port for exporting decoded events to durable storage (e.g., Parquet)."""

    async def write_events(self, name: str, events: Iterable[DecodedEvent]) -> str:
        """Persist the events under `name`; return where they were written."""


class TransactionSink(Protocol):
    async def write_transactions(self, name: str, transactions: Iterable[Transaction]) -> str:
        """Persist the transactions under `name`; return where they were written."""


class QueryStore(Protocol):
    """Port for the saved-query collaborator; payloads are opaque to it."""

    async def save(self, query: SavedQuery) -> str:
        """Store the query and return its id."""

    async def get(self, query_id: str) -> SavedQuery | None:
        """Return the query with this id, or None."""

    async def list(self, limit: int = 50) -> list[SavedQuery]:
        """Return up to `limit` queries, newest first."""
