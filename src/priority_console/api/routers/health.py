"""
priority_console.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) reporting how many services the topology resolves.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from priority_console.api.deps import topology_dep
from priority_console.topology.resolver import ServiceTopologyResolver

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    # Liveness: process is up and serving HTTP.
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    topology: ServiceTopologyResolver = Depends(topology_dep),
) -> dict[str, Any]:
    # Readiness: the topology file is readable; an empty topology still counts as ready.
    return {"status": "ready", "services": len(topology.load())}
