"""
priority_console.auth.deps

FastAPI dependency functions for authentication.

Responsibilities:
- Convert the `Authorization` header into a typed `Principal` via the gateway.
- Expose the raw session token for endpoints that act on the session itself.

Auth errors propagate as `ConsoleError` subclasses and are rendered as 401 by
`api.error_handling`; the route handler is never invoked on rejection.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from priority_console.auth.gateway import AuthenticationGateway
from priority_console.auth.models import Principal


def gateway_from_app(request: Request) -> AuthenticationGateway:
    # Built once on startup in `priority_console.api.app.create_app`.
    return request.app.state.gateway  # type: ignore[attr-defined]


async def get_principal(
    authorization: str | None = Header(default=None),
    gateway: AuthenticationGateway = Depends(gateway_from_app),
) -> Principal:
    return await gateway.authenticate(authorization)


def raw_authorization(authorization: str | None = Header(default=None)) -> str | None:
    return authorization or None


# --- Module Notes -----------------------------------------------------------
# Local session tokens travel as the bare header value (no scheme), bearer tokens as
# `Bearer <token>`; the gateway is the only place that interprets the difference.
