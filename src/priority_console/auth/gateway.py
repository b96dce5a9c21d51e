"""
priority_console.auth.gateway

Request-facing authentication.

Responsibilities:
- Turn the raw `Authorization` header value into a typed `Principal`.
- Dispatch deterministically on the scheme marker:
  - `Bearer <token>`  -> identity provider branch (introspection + userinfo)
  - anything else     -> local branch (signed session token + session lookup)

Rejections raise `Unauthenticated`, `InvalidToken` or `SessionNotFound`.
"""

from __future__ import annotations

from priority_console.auth.identity_provider import IdentityProviderClient
from priority_console.auth.models import (
    IdentityProviderPrincipal,
    IdentityProviderTokens,
    LocalPrincipal,
    LocalSecret,
    Principal,
    Session,
)
from priority_console.auth.sessions import SessionStore
from priority_console.auth.tokens import (
    SessionTokenConfig,
    SessionTokenError,
    decode_session_token,
)
from priority_console.errors import (
    IdentityProviderError,
    InvalidToken,
    SessionNotFound,
    Unauthenticated,
)
from priority_console.observability.logging import get_logger

log = get_logger(__name__)

BEARER_PREFIX = "Bearer "

# Username used when the bearer token is valid but the profile lookup failed.
PLACEHOLDER_USERNAME = "identity-provider-user"


class AuthenticationGateway:
    def __init__(
        self,
        *,
        sessions: SessionStore,
        identity_provider: IdentityProviderClient,
        token_config: SessionTokenConfig,
    ) -> None:
        self._sessions = sessions
        self._idp = identity_provider
        self._token_config = token_config

    async def authenticate(self, authorization: str | None) -> Principal:
        if not authorization:
            raise Unauthenticated("Authorization required")
        if authorization.startswith(BEARER_PREFIX):
            return await self._authenticate_bearer(authorization[len(BEARER_PREFIX) :])
        return self._authenticate_session(authorization)

    async def _authenticate_bearer(self, token: str) -> IdentityProviderPrincipal:
        if not token or not await self._idp.introspect(token):
            log.warning("bearer_rejected", reason="inactive")
            raise InvalidToken("Invalid or expired identity provider token")

        try:
            info = await self._idp.get_user_info(token)
        except IdentityProviderError as e:
            # The token itself is valid; only profile enrichment failed.
            log.warning("bearer_userinfo_degraded", error=e.message)
            return IdentityProviderPrincipal(
                username=PLACEHOLDER_USERNAME, access_token=token, anonymous=True
            )

        principal = IdentityProviderPrincipal(
            username=info.username or PLACEHOLDER_USERNAME,
            access_token=token,
            email=info.email,
            anonymous=not info.username,
        )
        log.info("bearer_accepted", username=principal.username)
        return principal

    def _authenticate_session(self, token: str) -> Principal:
        try:
            decode_session_token(cfg=self._token_config, token=token)
        except SessionTokenError as e:
            # Expired or tampered: purge any record still keyed by it.
            self._sessions.delete(token)
            log.warning("session_token_rejected", error=str(e))
            raise InvalidToken("Invalid or expired token") from e

        session = self._sessions.get(token)
        if session is None:
            log.warning("session_not_found")
            raise SessionNotFound("Session not found")

        principal = self.principal_for(token, session)
        log.debug("session_accepted", username=principal.username)
        return principal

    def principal_for(self, token: str, session: Session) -> Principal:
        secret = session.secret
        if isinstance(secret, LocalSecret):
            return LocalPrincipal(
                username=session.username,
                password=self._sessions.reveal_password(session),
                session_token=token,
            )
        if isinstance(secret, IdentityProviderTokens):
            return IdentityProviderPrincipal(
                username=session.username,
                access_token=secret.access_token,
                session_token=token,
            )
        raise TypeError(f"unknown session secret: {type(secret).__name__}")
