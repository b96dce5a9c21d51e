"""
priority_console.api.routers.bulk

Bulk priority changes run server-side in the background.

Responsibilities:
- Start a bulk operation and return its id (202).
- Report progress snapshots; a terminal snapshot is handed out once.
- Request cancellation between items.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import HTTP_202_ACCEPTED

from priority_console.api.deps import bulk_registry_dep
from priority_console.auth.deps import get_principal
from priority_console.auth.models import Principal
from priority_console.errors import NotFound
from priority_console.orchestrator.bulk import BulkOperationRegistry
from priority_console.orchestrator.state import BulkItem
from priority_console.topology.models import TargetState

router = APIRouter(prefix="/bulk-operations", tags=["bulk"])


class BulkItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(min_length=1)
    url: str = Field(min_length=1)
    target_state: TargetState = Field(alias="targetState")


class BulkOperationRequest(BaseModel):
    items: list[BulkItemRequest] = Field(min_length=1, max_length=500)


@router.post("", status_code=HTTP_202_ACCEPTED)
async def start_bulk_operation(
    body: BulkOperationRequest,
    principal: Principal = Depends(get_principal),
    registry: BulkOperationRegistry = Depends(bulk_registry_dep),
) -> dict[str, Any]:
    operation = registry.start(
        owner=principal.owner_key,
        items=[
            BulkItem(service=i.service, url=i.url, target_state=i.target_state)
            for i in body.items
        ],
        principal=principal,
    )
    return {"success": True, "operationId": operation.id, "total": operation.total}


@router.get("/{operation_id}")
async def get_bulk_operation(
    operation_id: str,
    principal: Principal = Depends(get_principal),
    registry: BulkOperationRegistry = Depends(bulk_registry_dep),
) -> dict[str, Any]:
    snapshot = registry.take_snapshot(operation_id, owner=principal.owner_key)
    if snapshot is None:
        raise NotFound("Bulk operation not found")
    return snapshot


@router.delete("/{operation_id}")
async def cancel_bulk_operation(
    operation_id: str,
    principal: Principal = Depends(get_principal),
    registry: BulkOperationRegistry = Depends(bulk_registry_dep),
) -> dict[str, Any]:
    operation = registry.cancel(operation_id, owner=principal.owner_key)
    if operation is None:
        raise NotFound("Bulk operation not found")
    return {"success": True, "operationId": operation.id, "state": operation.state.value}


# --- Module Notes -----------------------------------------------------------
# The principal captured at start is reused for every item, so a provider session's
# token keeps being refreshed through the session store while the batch runs.
