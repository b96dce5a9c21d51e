"""
priority_console.api.app

FastAPI app factory for the priority console backend.

Responsibilities:
- Build the FastAPI application and register routers/middleware/exception handlers.
- Compose the auth and orchestration components once and dispose them on shutdown.
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI

from priority_console import __version__
from priority_console.api.error_handling import register_exception_handlers
from priority_console.api.routers.auth import router as auth_router
from priority_console.api.routers.bulk import router as bulk_router
from priority_console.api.routers.health import router as health_router
from priority_console.api.routers.services import router as services_router
from priority_console.api.routers.sso import router as sso_router
from priority_console.auth.gateway import AuthenticationGateway
from priority_console.auth.identity_provider import IdentityProviderClient, IdentityProviderConfig
from priority_console.auth.local_credentials import LocalCredentialStore
from priority_console.auth.outbound import OutboundAuthorizer
from priority_console.auth.sessions import SessionStore
from priority_console.auth.tokens import SessionTokenConfig
from priority_console.endpoint_clients.remote_http import RemoteEndpointClient
from priority_console.observability.logging import configure_logging, get_logger
from priority_console.observability.middleware import RequestContextMiddleware
from priority_console.orchestrator.bulk import BulkOperationCoordinator, BulkOperationRegistry
from priority_console.orchestrator.priority import PriorityOrchestrator
from priority_console.settings import Settings
from priority_console.topology.resolver import ServiceTopologyResolver

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Priority Console",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)
    app.include_router(health_router, tags=["health"])
    for router in (auth_router, sso_router, services_router, bulk_router):
        app.include_router(router, prefix=settings.api_prefix)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env, topology_path=str(settings.topology_path))

        # One pooled client for the identity provider and every managed endpoint.
        # Tests inject a MockTransport here.
        http = httpx.AsyncClient(transport=transport)
        app.state.http = http

        token_config = SessionTokenConfig.from_settings(settings)
        sessions = SessionStore(token_config=token_config)
        identity_provider = IdentityProviderClient(
            config=IdentityProviderConfig.from_settings(settings), http=http
        )
        topology = ServiceTopologyResolver.from_path(settings.topology_path)
        orchestrator = PriorityOrchestrator(
            topology=topology,
            client=RemoteEndpointClient(http=http),
            authorizer=OutboundAuthorizer(sessions=sessions, identity_provider=identity_provider),
        )

        app.state.sessions = sessions
        app.state.identity_provider = identity_provider
        app.state.credentials = LocalCredentialStore.from_settings(settings)
        app.state.topology = topology
        app.state.gateway = AuthenticationGateway(
            sessions=sessions, identity_provider=identity_provider, token_config=token_config
        )
        app.state.orchestrator = orchestrator
        app.state.bulk_operations = BulkOperationRegistry(
            coordinator=BulkOperationCoordinator(orchestrator=orchestrator),
            retention_seconds=settings.bulk_retention_seconds,
        )

        log.info(
            "identity_provider_configured",
            enabled=settings.keycloak_enabled,
            base_url=settings.keycloak_base_url,
            realm=settings.keycloak_realm,
            client_id=settings.keycloak_client_id,
            confidential_client=bool(settings.keycloak_client_secret),
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        bulk_operations = getattr(app.state, "bulk_operations", None)
        if bulk_operations is not None:
            await bulk_operations.shutdown()
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# Health probes stay at the root; the REST surface lives under `settings.api_prefix`.
