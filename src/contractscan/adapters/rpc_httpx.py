from __future__ import annotations
import itertools, logging, time, httpx
from typing import Any, Mapping, Sequence
from ..domain.decoding import parse_hex
from ..domain.models import Block, EndpointHealth, EventPage, RawEvent, Transaction
from ..domain.value_types import Address, Felt
from ..errors import EndpointsExhaustedError, RPCError
from ..ports.rpc import StarknetRPC
from .endpoint_pool import EndpointPool

log = logging.getLogger(__name__)

def _block_id(n: int) -> dict[str, int]: return {"block_number": int(n)}
def _felts(xs: Any) -> tuple[Felt, ...]: return tuple(Felt(str(x)) for x in (xs or ()))

def _parse_tx(tx: Mapping[str, Any], number: int, ts: int) -> Transaction:
    return Transaction(
        hash=str(tx.get("transaction_hash") or ""),
        sender_address=tx.get("sender_address"),
        contract_address=tx.get("contract_address"),
        calldata=tuple(str(w) for w in (tx.get("calldata") or ())),
        max_fee=str(tx.get("max_fee") or "0x0"),
        type=str(tx.get("type") or "INVOKE"),
        block_number=number,
        block_timestamp=ts,
    )

def _parse_block(res: Any, requested: int) -> Block | None:
    if not isinstance(res, dict) or res.get("timestamp") is None:
        return None
    number = parse_hex(res.get("block_number", requested))
    ts = parse_hex(res["timestamp"])
    txs = tuple(_parse_tx(tx, number, ts) for tx in (res.get("transactions") or ()) if isinstance(tx, dict))
    return Block(number=number, timestamp=ts, transactions=txs)

def _parse_event(ev: Mapping[str, Any]) -> RawEvent:
    return RawEvent(
        block_number=parse_hex(ev.get("block_number")),
        transaction_hash=str(ev.get("transaction_hash") or ""),
        keys=_felts(ev.get("keys")),
        data=_felts(ev.get("data")),
    )

class HttpxRPC(StarknetRPC):
    def __init__(
        self,
        pool: EndpointPool,
        timeout_s: float = 20,
        max_conn: int = 64,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.pool = pool
        self._ids = itertools.count(1)
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
            transport=transport,
        )

    async def __aenter__(self) -> "HttpxRPC": return self
    async def __aexit__(self, *exc: object) -> None: await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post(self, url: str, method: str, params: Any) -> Any:
        payload = {"jsonrpc":"2.0","id":next(self._ids),"method":method,"params":params}
        try:
            r = await self.client.post(url, json=payload)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            raise RPCError(f"{type(e).__name__}: {e}", method=method, url=url) from e
        except ValueError as e:
            raise RPCError(f"malformed response body: {e}", method=method, url=url) from e
        if not isinstance(data, dict):
            raise RPCError("malformed response body: not a JSON object", method=method, url=url)
        if data.get("error") is not None:
            err = data["error"]
            msg = f"code={err.get('code')} message={err.get('message')}" if isinstance(err, dict) else str(err)
            raise RPCError(f"RPC error {msg}", method=method, url=url)
        if data.get("result") is None:
            raise RPCError("response has no result", method=method, url=url)
        return data["result"]

    async def call(self, method: str, params: Any) -> Any:
        # one attempt per endpoint, starting from the pool's current preference
        errors: list[str] = []
        for _ in range(len(self.pool)):
            idx, url = self.pool.current()
            try:
                return await self._post(url, method, params)
            except RPCError as e:
                errors.append(str(e))
                new_idx = self.pool.advance(idx)
                log.warning("RPC endpoint failed, rotating %d -> %d: %s", idx, new_idx, e)
        raise EndpointsExhaustedError(method, errors)

    async def block_number(self) -> int:
        res = await self.call("starknet_blockNumber", [])
        try:
            return parse_hex(res)
        except (TypeError, ValueError) as e:
            raise RPCError(f"invalid block number {res!r}", method="starknet_blockNumber") from e

    async def get_block(self, block_number: int) -> Block | None:
        res = await self.call("starknet_getBlockWithTxs", [_block_id(block_number)])
        try:
            return _parse_block(res, block_number)
        except (TypeError, ValueError) as e:
            raise RPCError(f"malformed block {block_number}: {e}", method="starknet_getBlockWithTxs") from e

    async def get_events(
        self,
        address: Address,
        from_block: int,
        to_block: int,
        chunk_size: int,
        continuation_token: str | None = None,
    ) -> EventPage:
        flt: dict[str, Any] = {
            "from_block": _block_id(from_block),
            "to_block": _block_id(to_block),
            "address": str(address),
            "chunk_size": int(chunk_size),
        }
        if continuation_token:
            flt["continuation_token"] = continuation_token
        res = await self.call("starknet_getEvents", {"filter": flt})
        events = res.get("events") if isinstance(res, dict) else None
        if not isinstance(events, list):
            raise RPCError("invalid events response", method="starknet_getEvents")
        try:
            parsed = tuple(_parse_event(ev) for ev in events if isinstance(ev, dict))
        except (TypeError, ValueError) as e:
            raise RPCError(f"malformed event: {e}", method="starknet_getEvents") from e
        return EventPage(events=parsed, continuation_token=res.get("continuation_token") or None)

    async def get_class_at(self, address: Address, block_id: str = "latest") -> Any:
        return await self.call("starknet_getClassAt", [block_id, str(address)])

    async def check_endpoints(self) -> list[EndpointHealth]:
        """Ask every endpoint for its chain id, one by one, without rotating the pool."""
        out: list[EndpointHealth] = []
        for url in self.pool.urls:
            t0 = time.perf_counter()
            try:
                chain_id = await self._post(url, "starknet_chainId", [])
            except RPCError as e:
                out.append(EndpointHealth(url=url, ok=False, error=str(e)))
                continue
            out.append(EndpointHealth(
                url=url, ok=True, chain_id=str(chain_id),
                latency_ms=round((time.perf_counter() - t0) * 1000, 1),
            ))
        return out

async def check_endpoints(
    urls: Sequence[str],
    *,
    timeout_s: float = 20,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[EndpointHealth]:
    """Health of every URL in order; endpoint failures are reported, never raised."""
    async with HttpxRPC(EndpointPool(urls), timeout_s=timeout_s, transport=transport) as rpc:
        return await rpc.check_endpoints()
