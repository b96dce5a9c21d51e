"""
priority_console.orchestrator.priority

Priority state-transition protocol.

Responsibilities:
- Query every endpoint's status (concurrent per service, sequential across services).
- Promote an endpoint to primary; in `only_one` mode also demote every sibling.
- Demote a single endpoint to secondary (`many` mode only).
- Translate transport/HTTP failures into domain errors with upstream context.

Ordering inside `set_primary`: the promotion is awaited before the demotion fan-out
starts; demotions run concurrently with no defined relative order. Demotion failures
are reported as auxiliary outcomes and never fail the promotion.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from priority_console.auth.models import Principal
from priority_console.auth.outbound import OutboundAuthorizer
from priority_console.endpoint_clients.remote_http import RemoteEndpointClient
from priority_console.errors import (
    Forbidden,
    InvalidTarget,
    UnsupportedOperation,
    UpstreamError,
)
from priority_console.observability.logging import get_logger
from priority_console.orchestrator.state import (
    UNREACHABLE,
    AuxiliaryOutcome,
    EndpointStatus,
    PriorityChangeResult,
)
from priority_console.topology.models import (
    ConsistencyMode,
    EndpointDescriptor,
    TargetState,
)
from priority_console.topology.resolver import ServiceTopologyResolver

log = get_logger(__name__)

# Reported when a 2xx status response carries no `state` field.
UNKNOWN_STATE = "unknown"


class PriorityOrchestrator:
    def __init__(
        self,
        *,
        topology: ServiceTopologyResolver,
        client: RemoteEndpointClient,
        authorizer: OutboundAuthorizer,
    ) -> None:
        self._topology = topology
        self._client = client
        self._authorizer = authorizer

    async def query_all_statuses(self, principal: Principal) -> dict[str, list[EndpointStatus]]:
        topology = self._topology.load()
        headers = await self._authorizer.headers_for(principal)

        result: dict[str, list[EndpointStatus]] = {}
        for svc in topology.services():
            # Fan out within a service, join before moving on to the next one.
            result[svc.name] = list(
                await asyncio.gather(*(self._probe(ep, headers) for ep in svc.endpoints))
            )
        return result

    async def _probe(self, ep: EndpointDescriptor, headers: dict[str, str]) -> EndpointStatus:
        try:
            data = await self._client.fetch_status(ep.status, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            log.warning("status_probe_failed", url=ep.status_url, error=_describe(e))
            return EndpointStatus(
                url=ep.status_url, hostname=None, status=UNREACHABLE, method=ep.status.method
            )

        hostname = data.get("hostname")
        state = data.get("state")
        return EndpointStatus(
            url=ep.status_url,
            hostname=str(hostname) if hostname is not None else None,
            status=str(state) if state is not None else UNKNOWN_STATE,
            method=ep.status.method,
        )

    async def set_primary(
        self, service: str, url: str, principal: Principal
    ) -> PriorityChangeResult:
        svc = self._topology.load().get(service)
        target = svc.endpoint_by_url(url) if svc is not None else None
        if svc is None or target is None:
            raise InvalidTarget(
                "Invalid service or url", detail={"service": service, "url": url}
            )

        log.debug(
            "priority_change_requested",
            service=service,
            url=url,
            mode=svc.mode.value,
            endpoint_count=len(svc.endpoints),
        )
        headers = await self._authorizer.headers_for(principal)
        await self._transition(service, target, TargetState.primary, headers)

        demotions: tuple[AuxiliaryOutcome, ...] = ()
        if svc.mode is ConsistencyMode.only_one:
            siblings = [ep for ep in svc.endpoints if ep.status_url != url]
            demotions = tuple(
                await asyncio.gather(*(self._demote(service, ep, headers) for ep in siblings))
            )

        result = PriorityChangeResult(
            service=service,
            url=url,
            target_state=TargetState.primary,
            mode=svc.mode,
            demotions=demotions,
        )
        log.info(
            "priority_changed",
            service=service,
            url=url,
            mode=svc.mode.value,
            demoted=len(demotions),
            demotion_failures=len(result.demotion_failures),
        )
        return result

    async def set_secondary(
        self, service: str, url: str, principal: Principal
    ) -> PriorityChangeResult:
        svc = self._topology.load().get(service)
        if svc is None:
            raise InvalidTarget(
                "Invalid service or url", detail={"service": service, "url": url}
            )
        if svc.mode is not ConsistencyMode.many:
            raise UnsupportedOperation(
                f"Operation is only available for many mode (current mode: {svc.mode.value})",
                mode=svc.mode.value,
                detail={"service": service},
            )

        # Callers may pass a base URL; the first endpoint whose status URL starts with it wins.
        target = svc.endpoint_by_prefix(url)
        if target is None:
            raise InvalidTarget(
                "Invalid service or url", detail={"service": service, "url": url}
            )

        headers = await self._authorizer.headers_for(principal)
        await self._transition(service, target, TargetState.secondary, headers)
        log.info("secondary_set", service=service, url=target.status_url)
        return PriorityChangeResult(
            service=service,
            url=target.status_url,
            target_state=TargetState.secondary,
            mode=svc.mode,
        )

    async def _transition(
        self,
        service: str,
        ep: EndpointDescriptor,
        state: TargetState,
        headers: dict[str, str],
    ) -> None:
        url = ep.priority.url
        try:
            await self._client.request_state(ep.priority, state, headers=headers)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = _response_body(e.response)
            log.warning(
                "priority_call_rejected",
                service=service,
                url=url,
                target_state=state.value,
                status=status,
                response=body,
            )
            if status == 403:
                raise Forbidden(
                    "No management permissions", url=url, status=status, body=body
                ) from e
            raise UpstreamError(
                f"{url} returned HTTP {status}", url=url, status=status, body=body
            ) from e
        # InvalidURL is not an HTTPError; a malformed topology URL fails only its own call.
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.warning(
                "priority_call_failed",
                service=service,
                url=url,
                target_state=state.value,
                error=_describe(e),
            )
            raise UpstreamError(f"{url}: {_describe(e)}", url=url) from e

    async def _demote(
        self, service: str, ep: EndpointDescriptor, headers: dict[str, str]
    ) -> AuxiliaryOutcome:
        try:
            await self._transition(service, ep, TargetState.secondary, headers)
        except UpstreamError as e:
            return AuxiliaryOutcome(
                url=ep.status_url, target_state=TargetState.secondary, ok=False, error=e.message
            )
        return AuxiliaryOutcome(url=ep.status_url, target_state=TargetState.secondary, ok=True)


def _describe(e: Exception) -> str:
    # httpx timeouts often carry an empty message.
    return str(e) or type(e).__name__


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


# --- Module Notes -----------------------------------------------------------
# Headers are derived once per top-level call so a near-expiry provider token is
# refreshed at most once, not once per endpoint in the fan-out.
