from __future__ import annotations
import asyncio, logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from contractscan.config import MAX_SCAN_BLOCKS, Settings
from contractscan.domain.decoding import decode_events, is_relevant, parse_hex, validate_address
from contractscan.domain.models import (
    BlockRange, ContractAnalysis, DecodedEvent, EventQueryResult, RawEvent, ScanReport, Transaction,
)
from contractscan.domain.value_types import Address
from contractscan.errors import ContractScanError, RPCError
from .planning import resolve_range, scan_order, search_blocks
from .utils import parse_date_to_ts
from ..ports.rpc import StarknetRPC

log = logging.getLogger(__name__)

NATIVE_UNIT = Decimal(10) ** 18
CONTRACT_DEPLOYED = "Valid Contract (Deployed)"
CONTRACT_NOT_FOUND = "Contract Not Found or Invalid"


# ---------- transaction scan ---------------------------------------------------

async def scan_transactions(
    rpc: StarknetRPC,
    address: Address,
    rng: BlockRange,
    *,
    cap: int = MAX_SCAN_BLOCKS,
    concurrency: int = 1,
) -> ScanReport:
    """Visit up to `cap` blocks from rng.end downwards and collect relevant transactions.

    Blocks are fetched in windows of `concurrency` and filtered as soon as they
    arrive, so only matching transactions outlive a fetch. Results are consumed
    newest first, so the output order does not depend on fetch timing.
    """
    order = scan_order(rng, min(cap, MAX_SCAN_BLOCKS))
    step = max(1, concurrency)

    async def fetch(n: int) -> tuple[Transaction, ...] | None:
        try:
            block = await rpc.get_block(n)
        except RPCError as e:
            log.warning("skipping block %d: %s", n, e)
            return None
        if block is None:
            return None
        return tuple(tx for tx in block.transactions if is_relevant(tx, address))

    collected: list[Transaction] = []
    failed: list[int] = []
    for i in range(0, len(order), step):
        window = order[i:i + step]
        for n, matched in zip(window, await asyncio.gather(*(fetch(n) for n in window))):
            if matched is None:
                failed.append(n)
            else:
                collected.extend(matched)

    if failed:
        log.warning("%d of %d blocks could not be fetched", len(failed), len(order))
    return ScanReport(transactions=tuple(collected), blocks_scanned=len(order), failed_blocks=tuple(failed))


def _fee(tx: Transaction) -> int:
    try:
        return parse_hex(tx.max_fee)
    except (TypeError, ValueError):
        log.debug("unparseable max_fee %r in %s", tx.max_fee, tx.hash)
        return 0


def _display(raw: Decimal, places: int) -> str:
    return str((raw / NATIVE_UNIT).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def summarize_fees(transactions: Sequence[Transaction]) -> tuple[int, str, str]:
    """Return (total_raw, total_display, avg_display) over every transaction given."""
    total = sum(_fee(tx) for tx in transactions)
    avg = Decimal(total) / len(transactions) if transactions else Decimal(0)
    return total, _display(Decimal(total), 4), _display(avg, 6)


async def probe_contract(rpc: StarknetRPC, address: Address) -> str:
    try:
        await rpc.get_class_at(address, "latest")
    except ContractScanError as e:
        log.debug("class lookup for %s failed: %s", address, e)
        return CONTRACT_NOT_FOUND
    return CONTRACT_DEPLOYED


async def analyze_contract_with_scan(
    rpc: StarknetRPC,
    contract_address: str,
    from_date: str | datetime | None = None,
    to_date: str | datetime | None = None,
    *,
    settings: Settings | None = None,
) -> tuple[ContractAnalysis, ScanReport]:
    """Aggregate the transactions touching a contract over a date range or the recent window.

    Also returns the ScanReport holding every collected transaction, not only the sample.
    """
    cfg = settings or Settings()
    address = validate_address(contract_address)
    from_ts, to_ts = parse_date_to_ts(from_date), parse_date_to_ts(to_date)

    tip = await rpc.block_number()
    rng = await resolve_range(rpc, tip, from_ts, to_ts, window=cfg.analyze_window)
    cap = min(cfg.scan_block_cap, MAX_SCAN_BLOCKS)
    n_blocks = search_blocks(rng, cap)
    log.info("analyzing %s over blocks %d..%d (%d blocks, tip %d)", address, rng.start, rng.end, n_blocks, tip)

    scan = await scan_transactions(rpc, address, rng, cap=cap, concurrency=cfg.concurrency)
    txs = scan.transactions
    total_raw, total_s, avg_s = summarize_fees(txs)

    common = dict(
        contract_address=address,
        transaction_count=len(txs),
        total_fees=total_s,
        avg_fee=avg_s,
        total_fees_raw=total_raw,
        unique_sender_count=len({tx.sender_address for tx in txs}),
        blocks_analyzed=n_blocks,
        current_block=tip,
        from_block=rng.start,
        to_block=rng.end,
        sample_transactions=txs[:cfg.sample_size],
        failed_blocks=scan.failed_blocks,
    )
    if txs:
        return ContractAnalysis(status="Active", **common), scan

    message = (f"No transactions found in blocks {rng.start} to {rng.end}. "
               "This contract may be inactive or have older transactions.")
    if scan.failed_blocks:
        message += f" {len(scan.failed_blocks)} block(s) could not be fetched, so coverage is incomplete."
    return ContractAnalysis(
        status="No Recent Activity",
        contract_info=await probe_contract(rpc, address),
        message=message,
        suggestion="Try a more active contract address or adjust the date range.",
        **common,
    ), scan


async def analyze_contract(
    rpc: StarknetRPC,
    contract_address: str,
    from_date: str | datetime | None = None,
    to_date: str | datetime | None = None,
    *,
    settings: Settings | None = None,
) -> ContractAnalysis:
    analysis, _ = await analyze_contract_with_scan(rpc, contract_address, from_date, to_date, settings=settings)
    return analysis


# ---------- events -------------------------------------------------------------

async def fetch_event_pages(
    rpc: StarknetRPC,
    address: Address,
    rng: BlockRange,
    *,
    chunk_size: int = 1_000,
    max_pages: int = 100,
) -> tuple[list[RawEvent], int, bool]:
    """Follow the continuation-token chain; return (events, pages_fetched, complete)."""
    events: list[RawEvent] = []
    token: str | None = None
    pages = 0
    while True:
        try:
            page = await rpc.get_events(address, rng.start, rng.end, chunk_size, token)
        except RPCError as e:
            if pages == 0:
                raise
            log.warning("event page %d failed, keeping %d events from earlier pages: %s", pages + 1, len(events), e)
            return events, pages, False
        pages += 1
        events.extend(page.events)
        token = page.continuation_token
        log.debug("page %d: %d events (total %d)", pages, len(page.events), len(events))
        if not token:
            return events, pages, True
        if pages >= max_pages:
            log.warning("stopped after %d pages with more events pending", pages)
            return events, pages, False


async def _timestamp_of(rpc: StarknetRPC, block_number: int) -> int:
    block = await rpc.get_block(block_number)
    if block is None:
        raise RPCError(f"block {block_number} has no timestamp", method="starknet_getBlockWithTxs")
    return block.timestamp


async def fetch_events(
    rpc: StarknetRPC,
    contract_address: str,
    from_date: str | datetime | None = None,
    to_date: str | datetime | None = None,
    *,
    settings: Settings | None = None,
) -> EventQueryResult:
    cfg = settings or Settings()
    address = validate_address(contract_address)
    from_ts, to_ts = parse_date_to_ts(from_date), parse_date_to_ts(to_date)

    tip = await rpc.block_number()
    rng = await resolve_range(rpc, tip, from_ts, to_ts, window=cfg.events_window)
    log.info("fetching events of %s over blocks %d..%d", address, rng.start, rng.end)

    raw, pages, complete = await fetch_event_pages(
        rpc, address, rng, chunk_size=cfg.events_chunk_size, max_pages=cfg.events_max_pages,
    )
    decoded: list[DecodedEvent] = []
    if raw:
        # two anchors per request, not per event
        tip_ts = await _timestamp_of(rpc, tip)
        from_ts_anchor = await _timestamp_of(rpc, rng.start)
        decoded = decode_events(raw, from_block=rng.start, from_ts=from_ts_anchor, tip=tip, tip_ts=tip_ts)

    return EventQueryResult(
        contract_address=address,
        decoded_events=tuple(decoded),
        from_block=rng.start,
        to_block=rng.end,
        total_event_count=len(decoded),
        pages_fetched=pages,
        complete=complete,
    )
