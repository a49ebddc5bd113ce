from __future__ import annotations
import logging
from ..domain.models import BlockRange
from ..errors import RPCError
from ..ports.rpc import StarknetRPC

log = logging.getLogger(__name__)


async def find_block_by_timestamp(rpc: StarknetRPC, target_ts: int, *, tip: int | None = None) -> int:
    """Binary search for the block whose timestamp equals `target_ts`, else the first one after it.

    Assumes timestamps never decrease with block number. A block that cannot be
    fetched ends the search early and the current lower bound is returned.
    """
    low, high = 0, (await rpc.block_number() if tip is None else tip)
    while low <= high:
        mid = (low + high) // 2
        try:
            block = await rpc.get_block(mid)
        except RPCError as e:
            log.warning("timestamp search stopped at block %d: %s", mid, e)
            break
        if block is None:
            log.warning("timestamp search stopped at block %d: no block data", mid)
            break
        if block.timestamp < target_ts: low = mid + 1
        elif block.timestamp > target_ts: high = mid - 1
        else: return mid
    return low


def default_range(tip: int, window: int) -> BlockRange:
    return BlockRange(max(0, tip - window), tip)


def clamp_range(from_block: int, to_block: int, tip: int) -> BlockRange:
    to_block = max(0, min(to_block, tip))
    from_block = max(0, min(from_block, to_block))
    return BlockRange(from_block, to_block)


async def resolve_range(
    rpc: StarknetRPC,
    tip: int,
    from_ts: int | None,
    to_ts: int | None,
    *,
    window: int,
) -> BlockRange:
    """Dates -> block range; the recent `window` when dates are missing or inverted."""
    if from_ts is None or to_ts is None or from_ts > to_ts:
        if from_ts is not None or to_ts is not None:
            log.info("incomplete or inverted date range (%s, %s); using last %d blocks", from_ts, to_ts, window)
        return default_range(tip, window)
    fb = await find_block_by_timestamp(rpc, from_ts, tip=tip)
    tb = await find_block_by_timestamp(rpc, to_ts, tip=tip)
    rng = clamp_range(fb, tb, tip)
    log.info("dates %d..%d -> blocks %d..%d", from_ts, to_ts, rng.start, rng.end)
    return rng


def search_blocks(rng: BlockRange, cap: int) -> int:
    return min(rng.span(), cap)


def scan_order(rng: BlockRange, cap: int) -> list[int]:
    """Block numbers to visit, newest first, never more than `cap` of them."""
    n = search_blocks(rng, cap)
    return [rng.end - i for i in range(n) if rng.end - i >= rng.start]
