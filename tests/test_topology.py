from __future__ import annotations

from pathlib import Path

from conftest import TOPOLOGY

from priority_console.topology.models import ConsistencyMode, TargetState
from priority_console.topology.resolver import ServiceTopologyResolver


def test_declarative_form_expands_with_defaults() -> None:
    resolver = ServiceTopologyResolver.from_mapping(TOPOLOGY)

    assert resolver.list_service_names() == ["web", "cache"]
    assert resolver.get_mode("web") is ConsistencyMode.only_one
    assert resolver.get_mode("cache") is ConsistencyMode.many
    assert resolver.get_all_status_urls("web") == [
        "http://web-a:8080/status",
        "http://web-b:8080/status",
    ]

    ep = resolver.get_endpoints("web")[0]
    assert (ep.status.method, ep.status.timeout_ms) == ("GET", 2000)
    assert ep.priority.url == "http://web-a:8080/priority"
    assert (ep.priority.method, ep.priority.timeout_ms) == ("PUT", 10000)
    assert ep.priority.params_for(TargetState.primary) == "new_state=primary"
    assert ep.priority.params_for(TargetState.secondary) == "new_state=secondary"


def test_declarative_overrides() -> None:
    resolver = ServiceTopologyResolver.from_mapping(
        {
            "Types": [
                {
                    "name": "custom",
                    "status": {"path": "/health", "method": "post", "timeout": 500,
                               "body": {"probe": True}},
                    "priority": {
                        "path": "/role",
                        "method": "POST",
                        "timeout": 3000,
                        "params": {"primary": "role=active", "secondary": "role=standby"},
                    },
                }
            ],
            "Services": [{"name": "db", "type": "custom", "url": "http://db-1"}],
        }
    )

    [ep] = resolver.get_endpoints("db")
    assert ep.status.url == "http://db-1/health"
    assert (ep.status.method, ep.status.timeout_ms, ep.status.body) == ("POST", 500, {"probe": True})
    assert ep.status.timeout_seconds == 0.5
    assert ep.priority.params_for(TargetState.primary) == "role=active"
    assert ep.priority.params_for(TargetState.secondary) == "role=standby"
    # primary_mode omitted
    assert resolver.get_mode("db") is ConsistencyMode.only_one


def test_legacy_form_is_only_one() -> None:
    resolver = ServiceTopologyResolver.from_mapping(
        {
            "web": [
                {"status": {"url": "http://a/status"}, "priority": {"url": "http://a/priority"}},
                {"status": {"url": "http://b/status"}, "priority": {"url": "http://b/priority"}},
                {"status": {"url": "http://c/status"}},
            ]
        }
    )

    assert resolver.get_mode("web") is ConsistencyMode.only_one
    assert resolver.get_all_status_urls("web") == ["http://a/status", "http://b/status"]


def test_skips_unknown_types_and_duplicates() -> None:
    resolver = ServiceTopologyResolver.from_mapping(
        {
            "Types": TOPOLOGY["Types"],
            "Services": [
                {"name": "ghost", "type": "nope", "url": ["http://x"]},
                {"name": "web", "type": "haproxy", "primary_mode": "bogus",
                 "url": ["http://a", "http://a", "http://b"]},
            ],
        }
    )

    assert resolver.list_service_names() == ["web"]
    assert resolver.get_all_status_urls("web") == ["http://a/status", "http://b/status"]
    assert resolver.get_mode("web") is ConsistencyMode.only_one


def test_unknown_service_answers_defaults() -> None:
    resolver = ServiceTopologyResolver.from_mapping(TOPOLOGY)
    assert resolver.get_endpoints("nope") == []
    assert resolver.get_all_status_urls("nope") == []
    assert resolver.get_mode("nope") is ConsistencyMode.only_one


def test_prefix_lookup_takes_first_match() -> None:
    svc = ServiceTopologyResolver.from_mapping(TOPOLOGY).load().get("cache")

    assert svc.endpoint_by_prefix("http://cache-b").status_url == "http://cache-b:8080/status"
    assert svc.endpoint_by_prefix("http://cache-").status_url == "http://cache-a:8080/status"
    assert svc.endpoint_by_prefix("") is None
    assert svc.endpoint_by_prefix("http://elsewhere") is None
    assert svc.endpoint_by_url("http://cache-b") is None


def test_reads_source_fresh_each_time(tmp_path: Path) -> None:
    path = tmp_path / "settings.yml"
    resolver = ServiceTopologyResolver.from_path(path)
    assert resolver.services_map() == {}

    path.write_text(
        "Types:\n"
        "  - {name: haproxy, status: {path: /status}, priority: {path: /priority}}\n"
        "Services:\n"
        "  - {name: web, type: haproxy, primary_mode: many, url: [http://a]}\n",
        encoding="utf-8",
    )
    assert resolver.services_map() == {"web": ["http://a/status"]}
    assert resolver.service_configs() == {"web": {"primary_mode": "many"}}

    path.write_text("Types: [unclosed\n", encoding="utf-8")
    assert resolver.services_map() == {}
