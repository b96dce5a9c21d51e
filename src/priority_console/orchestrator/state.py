"""
priority_console.orchestrator.state

Value types produced by the orchestrator and the bulk coordinator.

Responsibilities:
- Per-endpoint status rows.
- Priority change results that keep the primary outcome apart from auxiliary
  (best-effort demotion) outcomes.
- Bulk operation items, per-item results and live progress.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from priority_console.topology.models import ConsistencyMode, TargetState

UNREACHABLE = "unreachable"


@dataclass(frozen=True, slots=True)
class EndpointStatus:
    url: str
    hostname: str | None
    status: str
    method: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "hostname": self.hostname,
            "status": self.status,
            "method": self.method,
        }


@dataclass(frozen=True, slots=True)
class AuxiliaryOutcome:
    url: str
    target_state: TargetState
    ok: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PriorityChangeResult:
    service: str
    url: str
    target_state: TargetState
    mode: ConsistencyMode
    # Demotions issued to siblings in only_one mode; empty otherwise.
    demotions: tuple[AuxiliaryOutcome, ...] = ()

    @property
    def demotion_failures(self) -> list[AuxiliaryOutcome]:
        return [d for d in self.demotions if not d.ok]


class BulkState(enum.StrEnum):
    pending = "pending"
    running = "running"
    finished = "finished"
    cancelled = "cancelled"


@dataclass(frozen=True, slots=True)
class BulkItem:
    service: str
    url: str
    target_state: TargetState

    @property
    def label(self) -> str:
        return f"{self.service}: {self.url} -> {self.target_state.value}"


@dataclass(frozen=True, slots=True)
class BulkItemResult:
    service: str
    url: str
    target_state: TargetState
    success: bool
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "url": self.url,
            "targetState": self.target_state.value,
            "success": self.success,
            "error": self.error,
        }


@dataclass(slots=True)
class BulkOperation:
    """
    Live progress of one bulk apply. Mutated only by the coordinator running it;
    readers take `snapshot()`.
    """

    id: str
    owner: str
    items: tuple[BulkItem, ...]
    state: BulkState = BulkState.pending
    completed: int = 0
    failed: int = 0
    current_item: str = ""
    results: list[BulkItemResult] = field(default_factory=list)
    cancel_requested: bool = False

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def is_terminal(self) -> bool:
        return self.state in (BulkState.finished, BulkState.cancelled)

    def snapshot(self) -> dict[str, Any]:
        return {
            "operationId": self.id,
            "state": self.state.value,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "currentItem": self.current_item,
            "results": [r.as_dict() for r in self.results],
        }


@dataclass(frozen=True, slots=True)
class BulkReport:
    total: int
    completed: int
    failed: int
    cancelled: bool
    results: tuple[BulkItemResult, ...]
