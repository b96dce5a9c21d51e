"""
priority_console.endpoint_clients.remote_http

HTTP client boundary used by the orchestrator to call managed endpoints.

Responsibilities:
- Attach the caller-derived authorization header to every call.
- Honour each contract's method, body and timeout.
- Append the state-transition query string to priority calls.
"""

from __future__ import annotations

from typing import Any

import httpx

from priority_console.topology.models import CallContract, PriorityContract, TargetState

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class RemoteEndpointClient:
    def __init__(self, *, http: httpx.AsyncClient) -> None:
        self._http = http

    async def fetch_status(
        self,
        contract: CallContract,
        *,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        r = await self._send(
            method=contract.method,
            url=contract.url,
            body=contract.body,
            timeout=contract.timeout_seconds,
            headers=headers,
        )
        data = r.json()
        if not isinstance(data, dict):
            raise ValueError("status response is not a JSON object")
        return data

    async def request_state(
        self,
        contract: PriorityContract,
        state: TargetState,
        *,
        headers: dict[str, str],
    ) -> httpx.Response:
        params = contract.params_for(state)
        url = f"{contract.url}?{params}" if params else contract.url
        return await self._send(
            method=contract.method,
            url=url,
            body=contract.body,
            timeout=contract.timeout_seconds,
            headers=headers,
        )

    async def _send(
        self,
        *,
        method: str,
        url: str,
        body: dict[str, Any],
        timeout: float,
        headers: dict[str, str],
    ) -> httpx.Response:
        # Unknown methods fall back to GET, as a status probe would.
        if method in _BODY_METHODS:
            r = await self._http.request(method, url, json=body, headers=headers, timeout=timeout)
        else:
            r = await self._http.get(url, headers=headers, timeout=timeout)
        r.raise_for_status()
        return r


# --- Module Notes -----------------------------------------------------------
# Query strings come verbatim from the topology (e.g. `new_state=primary`) so that
# endpoints with their own parameter conventions need no code changes.
