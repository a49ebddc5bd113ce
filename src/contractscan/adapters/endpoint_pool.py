# contractscan/adapters/endpoint_pool.py
from __future__ import annotations

import threading
from typing import Sequence


class EndpointPool:
    """Ordered upstream URLs plus the index of the currently preferred one.

    The index is the only mutable state. It is shared by every call made
    through the pool and only moves forward, circularly, when an endpoint fails.
    """

    def __init__(self, urls: Sequence[str], start_index: int = 0) -> None:
        cleaned = tuple(u.strip() for u in urls if u and u.strip())
        if not cleaned:
            raise ValueError("EndpointPool needs at least one URL")
        self._urls = cleaned
        self._index = start_index % len(cleaned)
        self._lock = threading.Lock()

    def __len__(self) -> int: return len(self._urls)

    @property
    def urls(self) -> tuple[str, ...]: return self._urls

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    def current(self) -> tuple[int, str]:
        with self._lock:
            return self._index, self._urls[self._index]

    def advance(self, failed_index: int) -> int:
        """Rotate past `failed_index` unless another caller already did; return the new index."""
        with self._lock:
            if self._index == failed_index:
                self._index = (self._index + 1) % len(self._urls)
            return self._index
