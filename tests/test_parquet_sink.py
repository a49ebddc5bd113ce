import json
import os

import pyarrow.parquet as pq

from contractscan.adapters.parquet_sink import (
    EVENTS_SCHEMA, TRANSACTIONS_SCHEMA, ParquetEventSink, ParquetTransactionSink,
)
from contractscan.domain.decoding import APPROVAL_SELECTOR, TRANSFER_SELECTOR, decode_events

from conftest import CONTRACT, make_event, make_tx


async def test_events_written_sorted_by_block(tmp_path):
    raw = [
        make_event(120, [APPROVAL_SELECTOR], ["0x1", "0x2", "0x5"], tx="0xb"),
        make_event(110, [TRANSFER_SELECTOR], ["0x3", "0x4", "0x6"], tx="0xa"),
    ]
    decoded = decode_events(raw, from_block=100, from_ts=1000, tip=200, tip_ts=2000)
    path = await ParquetEventSink(str(tmp_path / "out")).write_events("events_x", decoded)
    assert path.endswith("events_x.parquet")
    assert not os.path.exists(path + ".tmp")

    table = pq.read_table(path)
    assert table.schema.equals(EVENTS_SCHEMA)
    rows = table.to_pylist()
    assert [r["block_number"] for r in rows] == [110, 120]
    assert rows[0]["event_name"] == "Transfer"
    assert json.loads(rows[1]["decoded_fields"]) == {"owner": "0x1", "spender": "0x2", "amount": "5"}
    assert rows[0]["estimated_timestamp"] == 1100


async def test_transactions_written_newest_first(tmp_path):
    txs = [
        make_tx(10, 1000, 0, sender=CONTRACT, max_fee="0x10"),
        make_tx(12, 1012, 0, callee=CONTRACT),
        make_tx(11, 1006, 3, calldata=[CONTRACT]),
    ]
    sink = ParquetTransactionSink(str(tmp_path))
    path = await sink.write_transactions("txs.parquet", txs)
    table = pq.read_table(path)
    assert table.schema.equals(TRANSACTIONS_SCHEMA)
    rows = table.to_pylist()
    assert [r["block_number"] for r in rows] == [12, 11, 10]
    assert rows[2]["max_fee"] == "0x10"
    assert rows[0]["contract_address"] == CONTRACT


async def test_empty_export_still_has_schema(tmp_path):
    path = await ParquetTransactionSink(str(tmp_path)).write_transactions("empty", [])
    table = pq.read_table(path)
    assert table.num_rows == 0
    assert table.schema.names == TRANSACTIONS_SCHEMA.names
