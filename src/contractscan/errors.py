# contractscan/errors.py
from __future__ import annotations

from typing import Sequence


class ContractScanError(Exception):
    """Base class for every error the engine raises on purpose."""


class InvalidAddressError(ContractScanError, ValueError):
    def __init__(self, address: object) -> None:
        super().__init__(f"Invalid contract address format: {address!r}")
        self.address = address


class InvalidDateError(ContractScanError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid date: {value!r} (expected ISO-8601, e.g. 2024-05-01 or 2024-05-01T12:00:00Z)")
        self.value = value


class RPCError(ContractScanError):
    """An upstream call did not produce a usable result."""

    def __init__(self, message: str, *, method: str, url: str | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class EndpointsExhaustedError(RPCError):
    """Every endpoint of the pool failed for one logical call."""

    def __init__(self, method: str, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(
            f"All RPC endpoints failed for {method} ({len(self.errors)} attempts): " + "; ".join(self.errors),
            method=method,
        )
