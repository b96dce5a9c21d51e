from __future__ import annotations

import asyncio

import httpx
import pytest
from conftest import TOPOLOGY, idp_client

from priority_console.auth.models import LocalPrincipal
from priority_console.auth.outbound import OutboundAuthorizer
from priority_console.auth.sessions import SessionStore
from priority_console.endpoint_clients.remote_http import RemoteEndpointClient
from priority_console.orchestrator.bulk import BulkOperationCoordinator, BulkOperationRegistry
from priority_console.orchestrator.priority import PriorityOrchestrator
from priority_console.orchestrator.state import BulkItem, BulkOperation, BulkState
from priority_console.topology.models import TargetState
from priority_console.topology.resolver import ServiceTopologyResolver

PRINCIPAL = LocalPrincipal(username="admin", password="s3cret", session_token="t")


def _coordinator(upstream, token_config) -> BulkOperationCoordinator:
    orchestrator = PriorityOrchestrator(
        topology=ServiceTopologyResolver.from_mapping(TOPOLOGY),
        client=RemoteEndpointClient(http=upstream.client()),
        authorizer=OutboundAuthorizer(
            sessions=SessionStore(token_config=token_config),
            identity_provider=idp_client(upstream),
        ),
    )
    return BulkOperationCoordinator(orchestrator=orchestrator)


def _operation(*items: BulkItem) -> BulkOperation:
    return BulkOperation(id="op-1", owner="admin", items=items)


ITEMS = (
    BulkItem("cache", "http://cache-a:8080/status", TargetState.primary),
    BulkItem("web", "http://web-a:8080/status", TargetState.secondary),
    BulkItem("cache", "http://cache-b", TargetState.secondary),
)


@pytest.mark.asyncio
async def test_every_item_failing_is_reported_not_raised(upstream, token_config) -> None:
    # No routes: every remote call fails as unreachable.
    coordinator = _coordinator(upstream, token_config)
    operation = _operation(*ITEMS)

    report = await coordinator.run(operation, PRINCIPAL)

    assert (report.total, report.completed, report.failed) == (3, 0, 3)
    assert report.cancelled is False
    assert operation.state is BulkState.finished
    assert operation.current_item == ""
    assert all(r.error for r in report.results)


@pytest.mark.asyncio
async def test_items_run_in_order_and_failures_do_not_stop_the_batch(
    upstream, token_config
) -> None:
    upstream.healthy_endpoints()
    coordinator = _coordinator(upstream, token_config)
    operation = _operation(*ITEMS)

    report = await coordinator.run(operation, PRINCIPAL)

    assert (report.completed, report.failed) == (2, 1)
    assert [r.success for r in report.results] == [True, False, True]
    # web is only_one: secondary is refused before any call is made
    assert "only_one" in report.results[1].error
    assert upstream.calls() == [
        "PUT http://cache-a:8080/priority?new_state=primary",
        "PUT http://cache-b:8080/priority?new_state=secondary",
    ]


@pytest.mark.asyncio
async def test_cancellation_stops_before_the_next_item(upstream, token_config) -> None:
    operation = _operation(*ITEMS)

    def cancel_after_first_call(request: httpx.Request) -> httpx.Response:
        operation.cancel_requested = True
        return httpx.Response(200, json={})

    upstream.route("PUT", "http://cache-a:8080/priority", handler=cancel_after_first_call)
    coordinator = _coordinator(upstream, token_config)

    report = await coordinator.run(operation, PRINCIPAL)

    assert report.cancelled is True
    assert operation.state is BulkState.cancelled
    assert (report.completed, report.failed) == (1, 0)
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_registry_snapshots_are_owner_scoped_and_terminal_once(
    upstream, token_config
) -> None:
    upstream.healthy_endpoints()
    registry = BulkOperationRegistry(coordinator=_coordinator(upstream, token_config))

    operation = registry.start(owner="admin", items=ITEMS[:1], principal=PRINCIPAL)
    await registry.wait(operation.id)

    assert registry.take_snapshot(operation.id, owner="mallory") is None
    assert registry.cancel(operation.id, owner="mallory") is None

    snapshot = registry.take_snapshot(operation.id, owner="admin")
    assert snapshot == {
        "operationId": operation.id,
        "state": "finished",
        "total": 1,
        "completed": 1,
        "failed": 0,
        "currentItem": "",
        "results": [
            {
                "service": "cache",
                "url": "http://cache-a:8080/status",
                "targetState": "primary",
                "success": True,
                "error": None,
            }
        ],
    }
    assert registry.take_snapshot(operation.id, owner="admin") is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_registry_shutdown_abandons_running_operations(upstream, token_config) -> None:
    registry = BulkOperationRegistry(coordinator=_coordinator(upstream, token_config))
    registry.start(owner="admin", items=ITEMS, principal=PRINCIPAL)

    await registry.shutdown()

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_registry_forgets_finished_operations_nobody_polls(upstream, token_config) -> None:
    upstream.healthy_endpoints()
    registry = BulkOperationRegistry(
        coordinator=_coordinator(upstream, token_config), retention_seconds=0.01
    )

    operations = [
        registry.start(owner="admin", items=ITEMS[:1], principal=PRINCIPAL) for _ in range(20)
    ]
    for operation in operations:
        await registry.wait(operation.id)
    await asyncio.sleep(0.1)

    assert len(registry) == 0
    assert registry.take_snapshot(operations[0].id, owner="admin") is None
