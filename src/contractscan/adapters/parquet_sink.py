from __future__ import annotations
import asyncio, json, os, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..domain.models import DecodedEvent, Transaction
from ..ports.storage import EventSink, TransactionSink

EVENTS_SCHEMA = pa.schema([
    pa.field("block_number",        pa.int64()),
    pa.field("transaction_hash",    pa.large_string()),
    pa.field("event_name",          pa.large_string()),
    pa.field("keys",                pa.list_(pa.large_string())),
    pa.field("data",                pa.list_(pa.large_string())),
    pa.field("decoded_fields",      pa.large_string()),   # JSON object
    pa.field("estimated_timestamp", pa.int64()),
])

TRANSACTIONS_SCHEMA = pa.schema([
    pa.field("block_number",     pa.int64()),
    pa.field("block_timestamp",  pa.int64()),
    pa.field("transaction_hash", pa.large_string()),
    pa.field("sender_address",   pa.large_string()),
    pa.field("contract_address", pa.large_string()),
    pa.field("type",             pa.large_string()),
    pa.field("max_fee",          pa.large_string()),   # big ints as hex strings
])

def events_to_table(events: Iterable[DecodedEvent]) -> pa.Table:
    evs = list(events)
    table = pa.Table.from_pydict({
        "block_number":        [e.event.block_number for e in evs],
        "transaction_hash":    [e.event.transaction_hash for e in evs],
        "event_name":          [e.event_name for e in evs],
        "keys":                [list(e.event.keys) for e in evs],
        "data":                [list(e.event.data) for e in evs],
        "decoded_fields":      [json.dumps(e.decoded_fields, sort_keys=True) for e in evs],
        "estimated_timestamp": [e.estimated_timestamp for e in evs],
    }, schema=EVENTS_SCHEMA)
    return table.sort_by([("block_number", "ascending"), ("transaction_hash", "ascending")])

def transactions_to_table(transactions: Iterable[Transaction]) -> pa.Table:
    txs = list(transactions)
    table = pa.Table.from_pydict({
        "block_number":     [t.block_number for t in txs],
        "block_timestamp":  [t.block_timestamp for t in txs],
        "transaction_hash": [t.hash for t in txs],
        "sender_address":   [t.sender_address for t in txs],
        "contract_address": [t.contract_address for t in txs],
        "type":             [t.type for t in txs],
        "max_fee":          [t.max_fee for t in txs],
    }, schema=TRANSACTIONS_SCHEMA)
    return table.sort_by([("block_number", "descending"), ("transaction_hash", "ascending")])

def _write_atomic(table: pa.Table, path: str, codec: str) -> str:
    tmp = path + ".tmp"
    pq.write_table(table, tmp, compression=codec)
    os.replace(tmp, path)
    return path

class _ParquetDir:
    def __init__(self, root_dir: str, codec: str = "zstd") -> None:
        self.root = root_dir
        self.codec = codec
        os.makedirs(self.root, exist_ok=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.root, name if name.endswith(".parquet") else f"{name}.parquet")

class ParquetEventSink(_ParquetDir, EventSink):
    async def write_events(self, name: str, events: Iterable[DecodedEvent]) -> str:
        table = events_to_table(events)
        return await asyncio.to_thread(_write_atomic, table, self._path(name), self.codec)

class ParquetTransactionSink(_ParquetDir, TransactionSink):
    async def write_transactions(self, name: str, transactions: Iterable[Transaction]) -> str:
        table = transactions_to_table(transactions)
        return await asyncio.to_thread(_write_atomic, table, self._path(name), self.codec)
