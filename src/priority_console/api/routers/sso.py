"""
priority_console.api.routers.sso

Identity-provider single sign-on endpoints.

Responsibilities:
- Authorization-code (+PKCE) callback: exchange, fetch user info, open a session.
- Token callback for frontends that already hold an access token.
- Unauthenticated diagnostics/bootstrap views of the provider configuration.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from priority_console.api.deps import identity_provider_dep, sessions_dep, settings_dep
from priority_console.auth.identity_provider import IdentityProviderClient
from priority_console.auth.models import AuthMethod, TokenSet
from priority_console.auth.sessions import SessionStore
from priority_console.errors import BadRequest, UserInfoError
from priority_console.observability.logging import get_logger
from priority_console.settings import Settings

log = get_logger(__name__)

router = APIRouter(tags=["sso"])


class SsoCallbackParams(BaseModel):
    code: str | None = None
    state: str | None = None
    code_verifier: str | None = None
    redirect_uri: str | None = None


class TokenCallbackRequest(BaseModel):
    access_token: str | None = None
    code_verifier: str | None = None


@router.post("/sso/callback")
async def sso_callback_post(
    body: SsoCallbackParams | None = None,
    query: SsoCallbackParams = Depends(),
    settings: Settings = Depends(settings_dep),
    sessions: SessionStore = Depends(sessions_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    # JSON body wins field by field; the query string fills the gaps.
    params = _merge(body, query)
    return await _complete_code_flow(params, settings, sessions, identity_provider)


@router.get("/sso/callback")
async def sso_callback_get(
    query: SsoCallbackParams = Depends(),
    settings: Settings = Depends(settings_dep),
    sessions: SessionStore = Depends(sessions_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    return await _complete_code_flow(query, settings, sessions, identity_provider)


@router.post("/sso/token-callback")
async def sso_token_callback(
    body: TokenCallbackRequest,
    sessions: SessionStore = Depends(sessions_dep),
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    if not body.access_token:
        raise BadRequest("Missing access_token")

    info = await identity_provider.get_user_info(body.access_token)
    if not info.username:
        raise UserInfoError("User information has no username")

    # No refresh token and no lifetime: the session is never refreshed.
    token = sessions.create(
        username=info.username,
        auth_method=AuthMethod.identity_provider,
        tokens=TokenSet(access_token=body.access_token),
    )
    log.info("sso_token_callback_ok", username=info.username)
    return {
        "success": True,
        "token": token,
        "authMethod": AuthMethod.identity_provider.value,
        "keycloakToken": body.access_token,
    }


@router.get("/keycloak-status")
async def keycloak_status(
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    return {"success": True, "keycloak": identity_provider.status()}


@router.get("/keycloak-config")
async def keycloak_config(
    identity_provider: IdentityProviderClient = Depends(identity_provider_dep),
) -> dict[str, Any]:
    return {"success": True, "config": identity_provider.frontend_config()}


def _merge(body: SsoCallbackParams | None, query: SsoCallbackParams) -> SsoCallbackParams:
    if body is None:
        return query
    return SsoCallbackParams(
        code=body.code or query.code,
        state=body.state or query.state,
        code_verifier=body.code_verifier or query.code_verifier,
        redirect_uri=body.redirect_uri or query.redirect_uri,
    )


async def _complete_code_flow(
    params: SsoCallbackParams,
    settings: Settings,
    sessions: SessionStore,
    identity_provider: IdentityProviderClient,
) -> dict[str, Any]:
    if not params.code or not params.state:
        raise BadRequest("Missing required parameters code or state")

    redirect_uri = params.redirect_uri or settings.keycloak_redirect_uri or settings.frontend_url
    log.info("sso_callback", redirect_uri=redirect_uri, pkce=bool(params.code_verifier))

    tokens = await identity_provider.exchange_authorization_code(
        params.code, redirect_uri, params.code_verifier
    )
    info = await identity_provider.get_user_info(tokens.access_token)
    if not info.username:
        raise UserInfoError("User information has no username")

    token = sessions.create(
        username=info.username, auth_method=AuthMethod.identity_provider, tokens=tokens
    )
    log.info("sso_callback_ok", username=info.username)
    return {
        "success": True,
        "token": token,
        "authMethod": AuthMethod.identity_provider.value,
        "keycloakToken": tokens.access_token,
        "keycloakRefreshToken": tokens.refresh_token,
    }


# --- Module Notes -----------------------------------------------------------
# `state` is generated and checked by the frontend that started the flow; the backend
# only requires its presence.
