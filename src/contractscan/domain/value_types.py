from __future__ import annotations
from typing import NewType, Literal

Address = NewType("Address", str)   # 0x-prefixed, 64 hex digits, lowercase
Felt    = NewType("Felt", str)      # 0x-prefixed hex field element
AnalysisStatus = Literal["Active", "No Recent Activity"]
EventName = Literal["Transfer", "Approval", "Unknown Event"]
QueryKind = Literal["analyze", "events"]
