"""
priority_console.auth.outbound

Authorization headers for calls to remote service endpoints.

Responsibilities:
- Local principals: HTTP Basic built from username + login password.
- Identity-provider principals: Bearer with the access token, refreshed first
  through the session store when the session's token is near expiry.
"""

from __future__ import annotations

import base64

from priority_console.auth.identity_provider import IdentityProviderClient
from priority_console.auth.models import (
    IdentityProviderPrincipal,
    IdentityProviderTokens,
    LocalPrincipal,
    Principal,
)
from priority_console.auth.sessions import SessionStore
from priority_console.errors import IdentityProviderError
from priority_console.observability.logging import get_logger

log = get_logger(__name__)


class OutboundAuthorizer:
    def __init__(
        self,
        *,
        sessions: SessionStore,
        identity_provider: IdentityProviderClient,
    ) -> None:
        self._sessions = sessions
        self._idp = identity_provider

    async def headers_for(self, principal: Principal) -> dict[str, str]:
        if isinstance(principal, LocalPrincipal):
            raw = f"{principal.username}:{principal.password}".encode()
            return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
        if isinstance(principal, IdentityProviderPrincipal):
            access_token = await self._current_access_token(principal)
            return {"Authorization": f"Bearer {access_token}"}
        raise TypeError(f"unknown principal: {type(principal).__name__}")

    async def _current_access_token(self, principal: IdentityProviderPrincipal) -> str:
        token = principal.session_token
        if token is None or not self._sessions.is_near_expiry(token):
            return self._stored_access_token(principal)

        session = self._sessions.get(token)
        if session is None or not isinstance(session.secret, IdentityProviderTokens):
            return principal.access_token
        refresh_token = session.secret.refresh_token
        if not refresh_token:
            return session.secret.access_token

        try:
            tokens = await self._idp.refresh(refresh_token)
        except IdentityProviderError as e:
            # Use the old token; the remote endpoint decides whether it still holds.
            log.warning("outbound_refresh_failed", username=principal.username, error=e.message)
            return session.secret.access_token

        self._sessions.refresh_identity_provider_token(token, tokens)
        return tokens.access_token

    def _stored_access_token(self, principal: IdentityProviderPrincipal) -> str:
        # A concurrent request may already have refreshed the session's token.
        if principal.session_token is not None:
            session = self._sessions.get(principal.session_token)
            if session is not None and isinstance(session.secret, IdentityProviderTokens):
                return session.secret.access_token
        return principal.access_token
