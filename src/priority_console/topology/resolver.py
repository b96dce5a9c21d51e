"""
priority_console.topology.resolver

Declarative topology loading and normalization.

Responsibilities:
- Read the topology source fresh on every query (no caching; it may change at runtime).
- Expand the declarative form (`Types` + `Services`) into per-endpoint descriptors.
- Accept the already-expanded legacy form (`service -> [endpoint, ...]`) unchanged.
- Present a query surface independent of the declaration format.

Declarative form:

    Types:
      - name: haproxy
        status:   {path: /status, method: GET, timeout: 2000}
        priority: {path: /priority, method: PUT, timeout: 10000,
                   params: {primary: new_state=primary, secondary: new_state=secondary}}
    Services:
      - name: web
        type: haproxy
        primary_mode: only_one        # or: many
        url: [http://a:8080, http://b:8080]

Legacy form:

    web:
      - status:   {url: http://a:8080/status}
        priority: {url: http://a:8080/priority, params: {primary: new_state=primary}}
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from priority_console.observability.logging import get_logger
from priority_console.topology.models import (
    DEFAULT_PRIMARY_PARAMS,
    DEFAULT_PRIORITY_METHOD,
    DEFAULT_PRIORITY_TIMEOUT_MS,
    DEFAULT_SECONDARY_PARAMS,
    DEFAULT_STATUS_METHOD,
    DEFAULT_STATUS_TIMEOUT_MS,
    CallContract,
    ConsistencyMode,
    EndpointDescriptor,
    PriorityContract,
    ServiceDefinition,
)

log = get_logger(__name__)


class Topology:
    """
    Immutable snapshot of one load. Unknown services answer empty / default values.
    """

    def __init__(self, services: dict[str, ServiceDefinition]) -> None:
        self._services = dict(services)

    def __len__(self) -> int:
        return len(self._services)

    def service_names(self) -> list[str]:
        return list(self._services)

    def get(self, service: str) -> ServiceDefinition | None:
        return self._services.get(service)

    def endpoints(self, service: str) -> list[EndpointDescriptor]:
        svc = self._services.get(service)
        return list(svc.endpoints) if svc else []

    def mode(self, service: str) -> ConsistencyMode:
        svc = self._services.get(service)
        return svc.mode if svc else ConsistencyMode.only_one

    def status_urls(self, service: str) -> list[str]:
        svc = self._services.get(service)
        return svc.status_urls if svc else []

    def services(self) -> list[ServiceDefinition]:
        return list(self._services.values())


class ServiceTopologyResolver:
    def __init__(self, *, loader: Callable[[], Any]) -> None:
        self._loader = loader

    @classmethod
    def from_path(cls, path: Path) -> ServiceTopologyResolver:
        return cls(loader=lambda: _read_yaml(path))

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ServiceTopologyResolver:
        return cls(loader=lambda: data)

    def load(self) -> Topology:
        try:
            data = self._loader()
        except (OSError, yaml.YAMLError) as e:
            log.error("topology_load_failed", error=str(e))
            return Topology({})
        if not isinstance(data, dict):
            if data is not None:
                log.error("topology_load_failed", error="expected a mapping at top level")
            return Topology({})
        if "Types" in data and "Services" in data:
            return Topology(_expand_declarative(data))
        return Topology(_parse_expanded(data))

    # Convenience queries; each performs a fresh load.

    def list_service_names(self) -> list[str]:
        return self.load().service_names()

    def get_endpoints(self, service: str) -> list[EndpointDescriptor]:
        return self.load().endpoints(service)

    def get_mode(self, service: str) -> ConsistencyMode:
        return self.load().mode(service)

    def get_all_status_urls(self, service: str) -> list[str]:
        return self.load().status_urls(service)

    def services_map(self) -> dict[str, list[str]]:
        topology = self.load()
        return {name: topology.status_urls(name) for name in topology.service_names()}

    def service_configs(self) -> dict[str, dict[str, str]]:
        topology = self.load()
        return {
            svc.name: {"primary_mode": svc.mode.value} for svc in topology.services()
        }


def _read_yaml(path: Path) -> Any:
    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def _expand_declarative(data: dict[str, Any]) -> dict[str, ServiceDefinition]:
    types = {
        str(t.get("name")): t
        for t in (data.get("Types") or [])
        if isinstance(t, dict) and t.get("name")
    }

    services: dict[str, ServiceDefinition] = {}
    for raw in data.get("Services") or []:
        if not isinstance(raw, dict) or not raw.get("name"):
            log.warning("topology_service_skipped", reason="missing name")
            continue
        name = str(raw["name"])
        svc_type = types.get(str(raw.get("type")))
        if svc_type is None:
            log.warning("topology_type_not_found", service=name, type=raw.get("type"))
            continue

        status_tpl = svc_type.get("status") or {}
        priority_tpl = svc_type.get("priority") or {}
        base_urls = raw.get("url") or []
        if isinstance(base_urls, str):
            base_urls = [base_urls]

        endpoints = [
            EndpointDescriptor(
                status=_call_contract(
                    {**status_tpl, "url": f"{base}{status_tpl.get('path', '')}"}
                ),
                priority=_priority_contract(
                    {**priority_tpl, "url": f"{base}{priority_tpl.get('path', '')}"}
                ),
            )
            for base in base_urls
        ]
        services[name] = ServiceDefinition(
            name=name,
            mode=_mode(raw.get("primary_mode"), service=name),
            endpoints=_unique_by_status_url(name, endpoints),
        )
    return services


def _parse_expanded(data: dict[str, Any]) -> dict[str, ServiceDefinition]:
    services: dict[str, ServiceDefinition] = {}
    for name, entries in data.items():
        if not isinstance(entries, list):
            log.warning("topology_service_skipped", service=name, reason="expected a list")
            continue
        endpoints: list[EndpointDescriptor] = []
        for entry in entries:
            status = entry.get("status") if isinstance(entry, dict) else None
            priority = entry.get("priority") if isinstance(entry, dict) else None
            if not isinstance(status, dict) or not isinstance(priority, dict):
                log.warning("topology_endpoint_skipped", service=name, reason="malformed entry")
                continue
            if not status.get("url") or not priority.get("url"):
                log.warning("topology_endpoint_skipped", service=name, reason="missing url")
                continue
            endpoints.append(
                EndpointDescriptor(
                    status=_call_contract(status), priority=_priority_contract(priority)
                )
            )
        services[str(name)] = ServiceDefinition(
            name=str(name),
            mode=ConsistencyMode.only_one,
            endpoints=_unique_by_status_url(str(name), endpoints),
        )
    return services


def _call_contract(raw: dict[str, Any]) -> CallContract:
    return CallContract(
        url=str(raw["url"]),
        method=str(raw.get("method") or DEFAULT_STATUS_METHOD).upper(),
        timeout_ms=_timeout(raw.get("timeout"), DEFAULT_STATUS_TIMEOUT_MS),
        body=dict(raw.get("body") or {}),
    )


def _priority_contract(raw: dict[str, Any]) -> PriorityContract:
    params = raw.get("params") or {}
    return PriorityContract(
        url=str(raw["url"]),
        method=str(raw.get("method") or DEFAULT_PRIORITY_METHOD).upper(),
        timeout_ms=_timeout(raw.get("timeout"), DEFAULT_PRIORITY_TIMEOUT_MS),
        body=dict(raw.get("body") or {}),
        primary_params=str(params.get("primary") or DEFAULT_PRIMARY_PARAMS),
        secondary_params=str(params.get("secondary") or DEFAULT_SECONDARY_PARAMS),
    )


def _timeout(value: Any, default: int) -> int:
    if value in (None, "", 0):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        log.warning("topology_timeout_invalid", value=value, default=default)
        return default


def _mode(value: Any, *, service: str) -> ConsistencyMode:
    if value is None:
        return ConsistencyMode.only_one
    try:
        return ConsistencyMode(str(value))
    except ValueError:
        log.warning("topology_mode_invalid", service=service, mode=value)
        return ConsistencyMode.only_one


def _unique_by_status_url(
    service: str, endpoints: list[EndpointDescriptor]
) -> tuple[EndpointDescriptor, ...]:
    seen: set[str] = set()
    unique: list[EndpointDescriptor] = []
    for ep in endpoints:
        if ep.status_url in seen:
            log.warning("topology_duplicate_endpoint", service=service, url=ep.status_url)
            continue
        seen.add(ep.status_url)
        unique.append(ep)
    return tuple(unique)


# --- Module Notes -----------------------------------------------------------
# A load failure yields an empty topology (logged) rather than an exception, so the
# dashboard degrades to "no services" instead of failing every request.
