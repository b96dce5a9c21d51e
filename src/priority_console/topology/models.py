"""
priority_console.topology.models

Typed view of the service topology.

Responsibilities:
- Describe one redundant endpoint (status + priority sub-contracts).
- Describe a logical service (consistency mode + ordered endpoints).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

DEFAULT_STATUS_METHOD = "GET"
DEFAULT_STATUS_TIMEOUT_MS = 2000
DEFAULT_PRIORITY_METHOD = "PUT"
DEFAULT_PRIORITY_TIMEOUT_MS = 10000
DEFAULT_PRIMARY_PARAMS = "new_state=primary"
DEFAULT_SECONDARY_PARAMS = "new_state=secondary"


class ConsistencyMode(enum.StrEnum):
    # Promoting one endpoint demotes every sibling.
    only_one = "only_one"
    # Each endpoint's primary/secondary state is independent.
    many = "many"


class TargetState(enum.StrEnum):
    primary = "primary"
    secondary = "secondary"


@dataclass(frozen=True, slots=True)
class CallContract:
    """One remote call: absolute URL, HTTP method, timeout and optional JSON body."""

    url: str
    method: str = DEFAULT_STATUS_METHOD
    timeout_ms: int = DEFAULT_STATUS_TIMEOUT_MS
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True, slots=True)
class PriorityContract:
    """The priority call plus the query strings that request each target state."""

    url: str
    method: str = DEFAULT_PRIORITY_METHOD
    timeout_ms: int = DEFAULT_PRIORITY_TIMEOUT_MS
    body: dict[str, Any] = field(default_factory=dict)
    primary_params: str = DEFAULT_PRIMARY_PARAMS
    secondary_params: str = DEFAULT_SECONDARY_PARAMS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def params_for(self, state: TargetState) -> str:
        if state is TargetState.primary:
            return self.primary_params
        return self.secondary_params


@dataclass(frozen=True, slots=True)
class EndpointDescriptor:
    status: CallContract
    priority: PriorityContract

    @property
    def status_url(self) -> str:
        # Endpoints are addressed by their status URL, unique within a service.
        return self.status.url


@dataclass(frozen=True, slots=True)
class ServiceDefinition:
    name: str
    mode: ConsistencyMode
    endpoints: tuple[EndpointDescriptor, ...]

    @property
    def status_urls(self) -> list[str]:
        return [ep.status_url for ep in self.endpoints]

    def endpoint_by_url(self, url: str) -> EndpointDescriptor | None:
        for ep in self.endpoints:
            if ep.status_url == url:
                return ep
        return None

    def endpoint_by_prefix(self, prefix: str) -> EndpointDescriptor | None:
        # First endpoint, in declaration order, whose status URL starts with `prefix`.
        if not prefix:
            return None
        for ep in self.endpoints:
            if ep.status_url.startswith(prefix):
                return ep
        return None
