"""
tests.conftest

Shared fixtures and fakes.

Responsibilities:
- A scripted stand-in for the managed endpoints and the identity provider, served
  through `httpx.MockTransport`.
- Canonical topology / settings used across the suite.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
import yaml

from priority_console.auth.identity_provider import IdentityProviderClient, IdentityProviderConfig
from priority_console.auth.tokens import SessionTokenConfig
from priority_console.settings import Settings

IDP_BASE = "http://idp.test"
IDP_REALM = "ops"
IDP_OIDC = f"{IDP_BASE}/realms/{IDP_REALM}/protocol/openid-connect"

TOPOLOGY: dict[str, Any] = {
    "Types": [
        {
            "name": "haproxy",
            "status": {"path": "/status"},
            "priority": {"path": "/priority"},
        }
    ],
    "Services": [
        {
            "name": "web",
            "type": "haproxy",
            "primary_mode": "only_one",
            "url": ["http://web-a:8080", "http://web-b:8080"],
        },
        {
            "name": "cache",
            "type": "haproxy",
            "primary_mode": "many",
            "url": ["http://cache-a:8080", "http://cache-b:8080"],
        },
    ],
}

Handler = Callable[[httpx.Request], httpx.Response]


class FakeUpstream:
    """
    Routes requests by (method, url without query). Unrouted requests fail like an
    unreachable host. Every request is recorded in arrival order.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Handler] = {}

    def route(
        self,
        method: str,
        url: str,
        *,
        status: int = 200,
        json: Any = None,
        handler: Handler | None = None,
    ) -> None:
        if handler is None:

            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json if json is not None else {})

        self._routes[(method.upper(), url)] = handler

    def fail(self, method: str, url: str, error: type[httpx.TransportError]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error("scripted failure", request=request)

        self._routes[(method.upper(), url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get((request.method, str(request.url).split("?")[0]))
        if handler is None:
            raise httpx.ConnectError("connection refused", request=request)
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def calls(self, *, prefix: str = "http://") -> list[str]:
        return [f"{r.method} {r.url}" for r in self.requests if str(r.url).startswith(prefix)]

    # --- scripted managed endpoints ------------------------------------------

    def healthy_endpoints(self) -> None:
        for svc in TOPOLOGY["Services"]:
            for base in svc["url"]:
                host = base.split("//", 1)[1].split(":", 1)[0]
                self.route(
                    "GET", f"{base}/status", json={"hostname": host, "state": "secondary"}
                )
                self.route("PUT", f"{base}/priority", json={"ok": True})

    # --- scripted identity provider ------------------------------------------

    def identity_provider(
        self,
        *,
        active: bool = True,
        username: str = "alice",
        access_token: str = "idp-access",
        refresh_token: str = "idp-refresh",
        expires_in: int = 300,
    ) -> None:
        tokens = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_in": expires_in,
        }
        self.route("POST", f"{IDP_OIDC}/token", json=tokens)
        self.route("POST", f"{IDP_OIDC}/token/introspect", json={"active": active})
        self.route(
            "GET",
            f"{IDP_OIDC}/userinfo",
            json={"preferred_username": username, "email": f"{username}@example.test", "sub": "u-1"},
        )
        self.route("POST", f"{IDP_OIDC}/logout", status=204)


def form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8")))


def idp_config(*, enabled: bool = True, client_secret: str | None = "shh") -> IdentityProviderConfig:
    return IdentityProviderConfig(
        enabled=enabled,
        base_url=IDP_BASE,
        realm=IDP_REALM,
        client_id="console",
        client_secret=client_secret,
        frontend_url="http://console.test",
    )


def idp_client(upstream: FakeUpstream, **kwargs: Any) -> IdentityProviderClient:
    return IdentityProviderClient(config=idp_config(**kwargs), http=upstream.client())


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def token_config() -> SessionTokenConfig:
    return SessionTokenConfig(
        alg="HS256",
        issuer="priority-console",
        secret="test-secret",
        ttl=timedelta(hours=1),
    )


@pytest.fixture
def topology_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yml"
    path.write_text(yaml.safe_dump(TOPOLOGY), encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, topology_file: Path) -> Settings:
    return Settings(
        env="test",
        topology_path=topology_file,
        manage_user="admin",
        manage_password="s3cret",
        local_users_path=tmp_path / "local-users.yml",
        session_secret="test-secret",
        keycloak_enabled=True,
        keycloak_base_url=IDP_BASE,
        keycloak_realm=IDP_REALM,
        keycloak_client_id="console",
        keycloak_client_secret="shh",
        keycloak_redirect_uri="http://console.test/callback",
        frontend_url="http://console.test",
    )


# --- Module Notes -----------------------------------------------------------
# Async tests use explicit `@pytest.mark.asyncio`; fixtures stay synchronous so the
# suite runs in pytest-asyncio's strict mode.
