"""
priority_console.orchestrator.bulk

Sequential bulk application of priority changes.

Responsibilities:
- Apply a list of (service, url, target state) items strictly one at a time.
- Record per-item success/failure and keep going after failures.
- Expose live progress for polling and honour cancellation between items.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable

from priority_console.auth.models import Principal
from priority_console.errors import ConsoleError
from priority_console.observability.logging import get_logger
from priority_console.orchestrator.priority import PriorityOrchestrator
from priority_console.orchestrator.state import (
    BulkItem,
    BulkItemResult,
    BulkOperation,
    BulkReport,
    BulkState,
)
from priority_console.topology.models import TargetState

log = get_logger(__name__)


class BulkOperationCoordinator:
    def __init__(self, *, orchestrator: PriorityOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def run(self, operation: BulkOperation, principal: Principal) -> BulkReport:
        """
        Apply every item of `operation` in order, mutating its progress as it goes.

        Never raises for item failures; each is recorded and the next item starts
        only after the previous one resolved.
        """
        operation.state = BulkState.running
        log.info("bulk_operation_started", operation_id=operation.id, total=operation.total)

        for item in operation.items:
            if operation.cancel_requested:
                operation.state = BulkState.cancelled
                break

            operation.current_item = item.label
            result = await self._apply(item, principal)
            operation.results.append(result)
            if result.success:
                operation.completed += 1
            else:
                operation.failed += 1
        else:
            operation.state = BulkState.finished

        operation.current_item = ""
        log.info(
            "bulk_operation_finished",
            operation_id=operation.id,
            state=operation.state.value,
            completed=operation.completed,
            failed=operation.failed,
        )
        return BulkReport(
            total=operation.total,
            completed=operation.completed,
            failed=operation.failed,
            cancelled=operation.state is BulkState.cancelled,
            results=tuple(operation.results),
        )

    async def _apply(self, item: BulkItem, principal: Principal) -> BulkItemResult:
        try:
            if item.target_state is TargetState.primary:
                await self._orchestrator.set_primary(item.service, item.url, principal)
            else:
                await self._orchestrator.set_secondary(item.service, item.url, principal)
        except ConsoleError as e:
            error = e.message
        except Exception as e:
            log.exception("bulk_item_crashed", item=item.label)
            error = str(e) or type(e).__name__
        else:
            return BulkItemResult(
                service=item.service, url=item.url, target_state=item.target_state, success=True
            )

        log.warning("bulk_item_failed", item=item.label, error=error)
        return BulkItemResult(
            service=item.service,
            url=item.url,
            target_state=item.target_state,
            success=False,
            error=error,
        )


class BulkOperationRegistry:
    """
    Tracks bulk operations running in the background of this process.

    Operations are visible to their owner only. A terminal operation is dropped
    after its final snapshot has been read once, or `retention_seconds` after it
    ended if nobody polls for it.
    """

    def __init__(
        self, *, coordinator: BulkOperationCoordinator, retention_seconds: float = 300.0
    ) -> None:
        self._coordinator = coordinator
        self._retention_seconds = retention_seconds
        self._operations: dict[str, BulkOperation] = {}
        self._tasks: dict[str, asyncio.Task[BulkReport]] = {}
        self._evictions: dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._operations)

    def start(
        self, *, owner: str, items: Iterable[BulkItem], principal: Principal
    ) -> BulkOperation:
        operation = BulkOperation(id=uuid.uuid4().hex, owner=owner, items=tuple(items))
        self._operations[operation.id] = operation

        task = asyncio.create_task(
            self._coordinator.run(operation, principal), name=f"bulk-{operation.id}"
        )
        self._tasks[operation.id] = task
        task.add_done_callback(lambda _t, op_id=operation.id: self._on_done(op_id))
        return operation

    def _on_done(self, operation_id: str) -> None:
        self._tasks.pop(operation_id, None)
        if operation_id in self._operations:
            self._evictions[operation_id] = asyncio.get_running_loop().call_later(
                self._retention_seconds, self._evict, operation_id
            )

    def _evict(self, operation_id: str) -> None:
        self._evictions.pop(operation_id, None)
        if self._operations.pop(operation_id, None) is not None:
            log.info("bulk_operation_expired", operation_id=operation_id)

    def get(self, operation_id: str, *, owner: str) -> BulkOperation | None:
        operation = self._operations.get(operation_id)
        if operation is None or operation.owner != owner:
            return None
        return operation

    def take_snapshot(self, operation_id: str, *, owner: str) -> dict | None:
        operation = self.get(operation_id, owner=owner)
        if operation is None:
            return None
        snapshot = operation.snapshot()
        if operation.is_terminal:
            self._operations.pop(operation_id, None)
            handle = self._evictions.pop(operation_id, None)
            if handle is not None:
                handle.cancel()
        return snapshot

    def cancel(self, operation_id: str, *, owner: str) -> BulkOperation | None:
        operation = self.get(operation_id, owner=owner)
        if operation is None:
            return None
        if not operation.is_terminal:
            operation.cancel_requested = True
            log.info("bulk_operation_cancel_requested", operation_id=operation_id)
        return operation

    async def wait(self, operation_id: str) -> None:
        task = self._tasks.get(operation_id)
        if task is not None:
            await asyncio.shield(task)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        self._tasks.clear()
        self._operations.clear()


# --- Module Notes -----------------------------------------------------------
# Cancellation is cooperative: the in-flight item call is allowed to finish and no
# further items start. Shutdown is the only path that aborts a running task.
