"""
priority_console.auth.tokens

Session token issuing and validation helpers.

Responsibilities:
- Issue signed, time-bounded session tokens (HS256 via PyJWT).
- Decode and validate session tokens with strict claim requirements.

A token is only a tamper-evident handle; the authoritative state is the session
record keyed by the raw token in `SessionStore`.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from priority_console.settings import Settings


@dataclass(frozen=True, slots=True)
class SessionTokenConfig:
    alg: str
    issuer: str
    secret: str
    ttl: timedelta

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionTokenConfig:
        return cls(
            alg=settings.session_alg,
            issuer=settings.session_issuer,
            secret=settings.session_secret,
            ttl=timedelta(hours=settings.session_ttl_hours),
        )


class SessionTokenError(Exception):
    pass


def issue_session_token(*, cfg: SessionTokenConfig, subject: str, auth_method: str) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "sub": subject,
        "auth_method": auth_method,
        # Random jti keeps two logins by the same user in the same second distinct.
        "jti": secrets.token_urlsafe(16),
        "iat": int(now.timestamp()),
        "exp": int((now + cfg.ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_session_token(*, cfg: SessionTokenConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            options={"require": ["exp", "iat", "iss", "sub", "jti"]},
        )
    except InvalidTokenError as e:
        raise SessionTokenError(str(e)) from e
