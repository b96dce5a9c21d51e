"""
priority_console.api.routers.auth

Login, logout and token maintenance endpoints.

Responsibilities:
- Local and identity-provider password login (exactly one path per request).
- Logout: destroy the local session, best-effort remote logout for provider sessions.
- Provider token refresh and logout URL construction.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from priority_console.api.deps import credentials_dep, identity_provider_dep, sessions_dep
from priority_console.auth.deps import get_principal, raw_authorization
from priority_console.auth.gateway import BEARER_PREFIX
from priority_console.auth.identity_provider import IdentityProviderClient
from priority_console.auth.local_credentials import LocalCredentialStore
from priority_console.auth.models import (
    AuthMethod,
    IdentityProviderTokens,
    LocalPrincipal,
    Principal,
)
from priority_console.auth.sessions import SessionStore
from priority_console.observability.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, repr=False)
    auth_type: AuthMethod = Field(default=AuthMethod.local, alias="authType")


class RefreshTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(min_length=1, alias="refreshToken", repr=False)


@router.post("/login")
async def login(
    body: LoginRequest,
    sessions: SessionStore = Depends(sessions_dep),
    credentials: LocalCredentialStore = Depends(credentials_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    log.info("login_attempt", username=body.username, auth_type=body.auth_type.value)

    if body.auth_type is AuthMethod.identity_provider:
        tokens = await identity_provider.password_grant(body.username, body.password)
        info = await identity_provider.get_user_info(tokens.access_token)
        username = info.username or body.username
        token = sessions.create(
            username=username, auth_method=AuthMethod.identity_provider, tokens=tokens
        )
        return {
            "success": True,
            "token": token,
            "authMethod": AuthMethod.identity_provider.value,
            "keycloakToken": tokens.access_token,
            "keycloakRefreshToken": tokens.refresh_token,
        }

    credentials.authenticate(body.username, body.password)
    token = sessions.create(
        username=body.username, auth_method=AuthMethod.local, password=body.password
    )
    return {"success": True, "token": token, "authMethod": AuthMethod.local.value}


@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_principal),
    sessions: SessionStore = Depends(sessions_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    token = principal.session_token
    if token is not None:
        session = sessions.get(token)
        if (
            session is not None
            and isinstance(session.secret, IdentityProviderTokens)
            and session.secret.refresh_token
        ):
            await identity_provider.logout(session.secret.refresh_token)
        sessions.delete(token)

    log.info("logout", username=principal.username, auth_method=principal.auth_method.value)
    return {
        "success": True,
        "message": "Logout successful",
        "authMethod": principal.auth_method.value,
    }


@router.post("/refresh-token")
async def refresh_token(
    body: RefreshTokenRequest,
    authorization: str | None = Depends(raw_authorization),
    sessions: SessionStore = Depends(sessions_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    tokens = await identity_provider.refresh(body.refresh_token)

    # Only server sessions are keyed by the header value; raw bearer callers have none.
    if authorization and not authorization.startswith(BEARER_PREFIX):
        updated = sessions.refresh_identity_provider_token(authorization, tokens)
        log.debug("refresh_token_session_update", updated=updated)
    return tokens.as_response()


@router.get("/logout-url")
async def logout_url(
    redirect_uri: str | None = None,
    principal: Principal = Depends(get_principal),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    if isinstance(principal, LocalPrincipal):
        return {"logoutUrl": None, "authMethod": AuthMethod.local.value}
    return {
        "logoutUrl": identity_provider.build_logout_url(redirect_uri),
        "authMethod": AuthMethod.identity_provider.value,
    }
