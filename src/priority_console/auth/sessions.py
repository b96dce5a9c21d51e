"""
priority_console.auth.sessions

In-memory session registry.

Responsibilities:
- Create sessions keyed by a freshly signed session token.
- Look up, delete and refresh (identity-provider tokens) sessions.
- Answer "is the provider access token about to expire?" with a fixed safety margin.
- Keep local passwords encrypted at rest in the map.

State lives in this process only and is lost on restart. Operations on unknown
tokens are no-ops returning None/False; they never raise.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from cryptography.fernet import Fernet

from priority_console.auth.models import (
    AuthMethod,
    IdentityProviderTokens,
    LocalSecret,
    Session,
    TokenSet,
)
from priority_console.auth.tokens import SessionTokenConfig, issue_session_token
from priority_console.observability.logging import get_logger

log = get_logger(__name__)

# Refresh the provider token this many seconds before it actually expires.
NEAR_EXPIRY_MARGIN_SECONDS = 60


class SessionStore:
    def __init__(
        self,
        *,
        token_config: SessionTokenConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._token_config = token_config
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        # Request handlers may run on the event loop or in the threadpool.
        self._lock = threading.RLock()
        # Per-process key: ciphertexts die with the process, same as the sessions.
        self._cipher = Fernet(Fernet.generate_key())

    def create(
        self,
        *,
        username: str,
        auth_method: AuthMethod,
        password: str | None = None,
        tokens: TokenSet | None = None,
    ) -> str:
        secret: LocalSecret | IdentityProviderTokens
        if auth_method is AuthMethod.local:
            if password is None or tokens is not None:
                raise ValueError("local sessions take a password and no provider tokens")
            secret = LocalSecret(ciphertext=self._cipher.encrypt(password.encode("utf-8")))
        else:
            if tokens is None or password is not None:
                raise ValueError("identity-provider sessions take provider tokens and no password")
            secret = IdentityProviderTokens(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_in=tokens.expires_in,
                expires_at=self._expiry(tokens.expires_in),
            )

        token = issue_session_token(
            cfg=self._token_config, subject=username, auth_method=auth_method.value
        )
        with self._lock:
            self._sessions[token] = Session(
                username=username, secret=secret, created_at=self._clock()
            )
        log.info("session_created", username=username, auth_method=auth_method.value)
        return token

    def get(self, token: str) -> Session | None:
        with self._lock:
            return self._sessions.get(token)

    def delete(self, token: str) -> bool:
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is None:
            return False
        log.info(
            "session_deleted",
            username=session.username,
            auth_method=session.auth_method.value,
        )
        return True

    def refresh_identity_provider_token(self, token: str, tokens: TokenSet) -> bool:
        with self._lock:
            session = self._sessions.get(token)
            if session is None or not isinstance(session.secret, IdentityProviderTokens):
                return False
            secret = session.secret
            secret.access_token = tokens.access_token
            secret.refresh_token = tokens.refresh_token
            secret.expires_in = tokens.expires_in
            secret.expires_at = self._expiry(tokens.expires_in)
        log.info("session_provider_token_refreshed", username=session.username)
        return True

    def is_near_expiry(self, token: str) -> bool:
        with self._lock:
            session = self._sessions.get(token)
            if session is None or not isinstance(session.secret, IdentityProviderTokens):
                return False
            expires_at = session.secret.expires_at
        if expires_at is None:
            return False
        return self._clock() >= expires_at - NEAR_EXPIRY_MARGIN_SECONDS

    def reveal_password(self, session: Session) -> str:
        if not isinstance(session.secret, LocalSecret):
            raise ValueError("session has no local password")
        return self._cipher.decrypt(session.secret.ciphertext).decode("utf-8")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expiry(self, expires_in: int | None) -> float | None:
        if expires_in is None:
            return None
        return self._clock() + expires_in


# --- Module Notes -----------------------------------------------------------
# The token is only a signed handle; a valid signature without a map entry means the
# session was destroyed (logout, restart), which the gateway reports as SessionNotFound.
