"""
priority_console.api.routers.services

Topology, status and priority endpoints.

Responsibilities:
- Expose the resolved topology and per-service consistency mode.
- Expose live endpoint status.
- Promote/demote endpoints, mapping orchestration failures to the documented
  403/500 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from priority_console.api.deps import orchestrator_dep, topology_dep
from priority_console.api.error_handling import orchestration_error_response
from priority_console.auth.deps import get_principal
from priority_console.auth.models import Principal
from priority_console.errors import OrchestrationError
from priority_console.observability.logging import get_logger
from priority_console.orchestrator.priority import PriorityOrchestrator
from priority_console.topology.resolver import ServiceTopologyResolver

log = get_logger(__name__)

router = APIRouter(tags=["services"])


class PriorityRequest(BaseModel):
    service: str = Field(min_length=1)
    url: str = Field(min_length=1)


@router.get("/services", dependencies=[Depends(get_principal)])
async def list_services(
    topology: ServiceTopologyResolver = Depends(topology_dep),
) -> dict[str, list[str]]:
    return topology.services_map()


@router.get("/service-configs", dependencies=[Depends(get_principal)])
async def list_service_configs(
    topology: ServiceTopologyResolver = Depends(topology_dep),
) -> dict[str, dict[str, str]]:
    return topology.service_configs()


@router.get("/statuses")
async def list_statuses(
    principal: Principal = Depends(get_principal),
    orchestrator: PriorityOrchestrator = Depends(orchestrator_dep),
) -> dict[str, list[dict[str, Any]]]:
    statuses = await orchestrator.query_all_statuses(principal)
    return {name: [row.as_dict() for row in rows] for name, rows in statuses.items()}


@router.put("/priority", response_model=None)
async def set_priority(
    request: Request,
    body: PriorityRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: PriorityOrchestrator = Depends(orchestrator_dep),
) -> dict[str, Any] | JSONResponse:
    log.debug("priority_request", service=body.service, url=body.url, username=principal.username)
    try:
        result = await orchestrator.set_primary(body.service, body.url, principal)
    except OrchestrationError as e:
        return orchestration_error_response(
            request, e, failure_message="Error changing primary server"
        )

    return {
        "success": True,
        "service": result.service,
        "url": result.url,
        "mode": result.mode.value,
        "demotions": [
            {"url": d.url, "success": d.ok, "error": d.error} for d in result.demotions
        ],
    }


@router.put("/set-secondary", response_model=None)
async def set_secondary(
    request: Request,
    body: PriorityRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: PriorityOrchestrator = Depends(orchestrator_dep),
) -> dict[str, Any] | JSONResponse:
    log.debug(
        "set_secondary_request", service=body.service, url=body.url, username=principal.username
    )
    try:
        result = await orchestrator.set_secondary(body.service, body.url, principal)
    except OrchestrationError as e:
        return orchestration_error_response(
            request, e, failure_message="Error setting secondary status"
        )

    return {"success": True, "service": result.service, "url": result.url}
