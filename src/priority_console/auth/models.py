"""
priority_console.auth.models

Auth domain models.

Responsibilities:
- Define the server-held `Session` record and its method-specific secret material.
- Define the per-request `Principal` variants injected into endpoints.
- Define the provider `TokenSet` / `UserInfo` value types.
"""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass, field
from typing import Any


class AuthMethod(enum.StrEnum):
    # Values are part of the REST contract (`authMethod` field).
    local = "local"
    identity_provider = "identity-provider"


@dataclass(frozen=True, slots=True)
class TokenSet:
    """
    Token material returned by the identity provider's token endpoint.
    """

    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> TokenSet:
        expires_in = data.get("expires_in")
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
        )

    def as_response(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
        }


@dataclass(frozen=True, slots=True)
class UserInfo:
    preferred_username: str | None
    email: str | None
    sub: str | None
    claims: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> UserInfo:
        return cls(
            preferred_username=claims.get("preferred_username") or claims.get("username"),
            email=claims.get("email"),
            sub=claims.get("sub"),
            claims=dict(claims),
        )

    @property
    def username(self) -> str | None:
        return self.preferred_username or self.sub


# --- Session secret material (exactly one variant per session) ---------------


@dataclass(frozen=True, slots=True)
class LocalSecret:
    # Fernet ciphertext of the login password; only SessionStore can decrypt it.
    ciphertext: bytes = field(repr=False)


@dataclass(slots=True)
class IdentityProviderTokens:
    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None
    # Absolute expiry in epoch seconds; None when the provider gave no lifetime.
    expires_at: float | None = None


@dataclass(slots=True)
class Session:
    """
    Server-held session record. Owned exclusively by `SessionStore`.
    """

    username: str
    secret: LocalSecret | IdentityProviderTokens
    created_at: float

    @property
    def auth_method(self) -> AuthMethod:
        if isinstance(self.secret, LocalSecret):
            return AuthMethod.local
        return AuthMethod.identity_provider


# --- Principal (per request, never persisted) --------------------------------


@dataclass(frozen=True, slots=True)
class LocalPrincipal:
    username: str
    password: str = field(repr=False)
    session_token: str = field(repr=False)

    @property
    def auth_method(self) -> AuthMethod:
        return AuthMethod.local

    @property
    def owner_key(self) -> str:
        return self.username


@dataclass(frozen=True, slots=True)
class IdentityProviderPrincipal:
    """
    Identity-provider caller. `session_token` is set when the principal was derived
    from a server session (SSO callback / password grant) and is the handle used to
    refresh the access token; raw bearer callers have no session and are never refreshed.

    `anonymous` marks a valid token whose profile lookup gave no username; such callers
    share a placeholder username, so `owner_key` falls back to a token fingerprint.
    """

    username: str
    access_token: str = field(repr=False)
    email: str | None = None
    session_token: str | None = field(default=None, repr=False)
    anonymous: bool = False

    @property
    def auth_method(self) -> AuthMethod:
        return AuthMethod.identity_provider

    @property
    def owner_key(self) -> str:
        if not self.anonymous:
            return self.username
        digest = hashlib.sha256(self.access_token.encode("utf-8")).hexdigest()
        return f"{self.username}:{digest[:16]}"


Principal = LocalPrincipal | IdentityProviderPrincipal


# --- Module Notes -----------------------------------------------------------
# Consumers branch with isinstance() on the Principal / secret variants rather than
# probing optional fields.
