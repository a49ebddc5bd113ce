# contractscan/application/reports.py
from __future__ import annotations

from typing import Any

from ..domain.models import ContractAnalysis, DecodedEvent, EventQueryResult, Transaction
from ..errors import EndpointsExhaustedError, InvalidAddressError, InvalidDateError


def transaction_to_dict(tx: Transaction) -> dict[str, Any]:
    return {
        "block_number": tx.block_number,
        "transaction_hash": tx.hash,
        "sender_address": tx.sender_address,
        "contract_address": tx.contract_address,
        "max_fee": tx.max_fee,
        "type": tx.type,
        "timestamp": tx.block_timestamp,
    }


def event_to_dict(ev: DecodedEvent) -> dict[str, Any]:
    return {
        "block_number": ev.event.block_number,
        "transaction_hash": ev.event.transaction_hash,
        "keys": list(ev.event.keys),
        "data": list(ev.event.data),
        "event_name": ev.event_name,
        "decoded_fields": dict(ev.decoded_fields),
        "estimated_timestamp": ev.estimated_timestamp,
        "estimated_time": ev.estimated_time_iso,
    }


def analysis_to_dict(a: ContractAnalysis) -> dict[str, Any]:
    out: dict[str, Any] = {
        "contract_address": a.contract_address,
        "status": a.status,
        "transaction_count": a.transaction_count,
        "avg_fee": a.avg_fee,
        "total_fees": a.total_fees,
        "total_fees_raw": str(a.total_fees_raw),
        "unique_senders": a.unique_sender_count,
        "blocks_analyzed": a.blocks_analyzed,
        "current_block": a.current_block,
        "from_block": a.from_block,
        "to_block": a.to_block,
        "search_range": f"Block {a.from_block} to {a.to_block}",
        "failed_blocks": list(a.failed_blocks),
        "transactions": [transaction_to_dict(tx) for tx in a.sample_transactions],
    }
    for key in ("contract_info", "message", "suggestion"):
        value = getattr(a, key)
        if value is not None:
            out[key] = value
    return out


def events_result_to_dict(r: EventQueryResult) -> dict[str, Any]:
    return {
        "contract_address": r.contract_address,
        "events": [event_to_dict(ev) for ev in r.decoded_events],
        "from_block": r.from_block,
        "to_block": r.to_block,
        "total_events": r.total_event_count,
        "pages_fetched": r.pages_fetched,
        "complete": r.complete,
    }


def success_report(result: ContractAnalysis | EventQueryResult) -> dict[str, Any]:
    data = analysis_to_dict(result) if isinstance(result, ContractAnalysis) else events_result_to_dict(result)
    return {"success": True, "data": data}


def error_status(exc: BaseException) -> int:
    """HTTP status a route layer should answer with for `exc`."""
    if isinstance(exc, (InvalidAddressError, InvalidDateError)):
        return 400
    if isinstance(exc, EndpointsExhaustedError):
        return 502
    return 500


def error_report(exc: BaseException) -> dict[str, Any]:
    status = error_status(exc)
    message = {400: str(exc), 502: "All RPC endpoints failed"}.get(status, "Request failed")
    return {
        "success": False,
        "status": status,
        "message": message,
        "error": f"{type(exc).__name__}: {exc}",
    }
