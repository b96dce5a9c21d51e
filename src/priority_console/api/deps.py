"""
priority_console.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and the components composed on startup.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from fastapi import Request

from priority_console.auth.identity_provider import IdentityProviderClient
from priority_console.auth.local_credentials import LocalCredentialStore
from priority_console.auth.sessions import SessionStore
from priority_console.orchestrator.bulk import BulkOperationRegistry
from priority_console.orchestrator.priority import PriorityOrchestrator
from priority_console.settings import Settings
from priority_console.topology.resolver import ServiceTopologyResolver

# Everything below is created on app startup in `priority_console.api.app.create_app`.


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def sessions_dep(request: Request) -> SessionStore:
    return request.app.state.sessions  # type: ignore[attr-defined]


def identity_provider_dep(request: Request) -> IdentityProviderClient:
    return request.app.state.identity_provider  # type: ignore[attr-defined]


def credentials_dep(request: Request) -> LocalCredentialStore:
    return request.app.state.credentials  # type: ignore[attr-defined]


def topology_dep(request: Request) -> ServiceTopologyResolver:
    return request.app.state.topology  # type: ignore[attr-defined]


def orchestrator_dep(request: Request) -> PriorityOrchestrator:
    return request.app.state.orchestrator  # type: ignore[attr-defined]


def bulk_registry_dep(request: Request) -> BulkOperationRegistry:
    return request.app.state.bulk_operations  # type: ignore[attr-defined]
