from __future__ import annotations
import os, json, asyncio, logging
from dataclasses import asdict
from ..ports.storage import QueryStore
from ..domain.models import SavedQuery
from ..domain.value_types import Address

log = logging.getLogger(__name__)

class JSONLQueryStore(QueryStore):
    """Saved queries as one JSON object per line; later lines win on id clashes."""

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = asyncio.Lock()

    async def save(self, query: SavedQuery) -> str:
        line = json.dumps(asdict(query), separators=(",", ":"), default=str) + "\n"
        async with self._lock:
            await asyncio.to_thread(self._write_line, self.path, line)
        return query.query_id

    @staticmethod
    def _write_line(path: str, line: str) -> None:
        with open(path, "a", buffering=1) as f:
            f.write(line); f.flush(); os.fsync(f.fileno())

    def _load(self) -> list[SavedQuery]:
        if not os.path.exists(self.path):
            return []
        out: list[SavedQuery] = []
        with open(self.path, "r") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                    out.append(SavedQuery(
                        query_id=str(rec["query_id"]),
                        kind=rec["kind"],
                        contract_address=Address(rec["contract_address"]),
                        from_date=rec.get("from_date"),
                        to_date=rec.get("to_date"),
                        created_at=float(rec.get("created_at", 0.0)),
                        payload=rec.get("payload") or {},
                    ))
                except (ValueError, KeyError, TypeError) as e:
                    log.warning("skipping unreadable line %d in %s: %s", lineno, self.path, e)
        return out

    async def get(self, query_id: str) -> SavedQuery | None:
        async with self._lock:
            rows = await asyncio.to_thread(self._load)
        found = None
        for q in rows:
            if q.query_id == query_id:
                found = q
        return found

    async def list(self, limit: int = 50) -> list[SavedQuery]:
        async with self._lock:
            rows = await asyncio.to_thread(self._load)
        rows.sort(key=lambda q: q.created_at, reverse=True)
        return rows[:limit]
