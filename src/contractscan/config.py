from __future__ import annotations
import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

DEFAULT_RPC_ENDPOINTS: tuple[str, ...] = (
    "https://rpc.starknet.lava.build",
    "https://starknet-mainnet.g.alchemy.com/v2/demo",
    "https://starknet-mainnet.public.blastapi.io",
    "https://free-rpc.nethermind.io/mainnet-juno",
)

ENV_PREFIX = "CONTRACTSCAN_"
MAX_SCAN_BLOCKS = 20_000  # blocks visited per analysis, whatever the requested range

@dataclass(slots=True, frozen=True)
class Settings:
    rpc_endpoints: tuple[str, ...] = DEFAULT_RPC_ENDPOINTS
    timeout_s: float = 20.0
    max_connections: int = 64
    scan_block_cap: int = MAX_SCAN_BLOCKS   # may lower the cap, never raise it
    analyze_window: int = 1_000       # default lookback when no dates are given
    events_window: int = 2_000
    events_chunk_size: int = 1_000
    events_max_pages: int = 100
    sample_size: int = 10
    concurrency: int = 8

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from CONTRACTSCAN_* variables, e.g. CONTRACTSCAN_TIMEOUT_S=5."""
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            if f.name == "rpc_endpoints":
                urls = tuple(u.strip() for u in raw.split(",") if u.strip())
                if urls:
                    overrides[f.name] = urls
            elif f.name == "timeout_s":
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = int(raw)
        return replace(cls(), **overrides).validated()

    def validated(self) -> "Settings":
        if not self.rpc_endpoints:
            raise ValueError("At least one RPC endpoint is required")
        for name in ("scan_block_cap", "analyze_window", "events_window", "events_chunk_size",
                     "events_max_pages", "sample_size", "concurrency", "max_connections"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1 (got {getattr(self, name)})")
        if self.scan_block_cap > MAX_SCAN_BLOCKS:
            raise ValueError(f"scan_block_cap must be <= {MAX_SCAN_BLOCKS} (got {self.scan_block_cap})")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0 (got {self.timeout_s})")
        return self
