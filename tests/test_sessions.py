from __future__ import annotations

import pytest

from priority_console.auth.models import (
    AuthMethod,
    IdentityProviderTokens,
    LocalSecret,
    TokenSet,
)
from priority_console.auth.sessions import NEAR_EXPIRY_MARGIN_SECONDS, SessionStore
from priority_console.auth.tokens import decode_session_token


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_local_session_keeps_password_encrypted(token_config) -> None:
    store = SessionStore(token_config=token_config)
    token = store.create(username="admin", auth_method=AuthMethod.local, password="s3cret")

    session = store.get(token)
    assert session is not None
    assert session.auth_method is AuthMethod.local
    assert isinstance(session.secret, LocalSecret)
    assert b"s3cret" not in session.secret.ciphertext
    assert store.reveal_password(session) == "s3cret"

    claims = decode_session_token(cfg=token_config, token=token)
    assert claims["sub"] == "admin"
    assert claims["auth_method"] == "local"


def test_tokens_are_unique_per_login(token_config) -> None:
    store = SessionStore(token_config=token_config)
    a = store.create(username="admin", auth_method=AuthMethod.local, password="x")
    b = store.create(username="admin", auth_method=AuthMethod.local, password="x")
    assert a != b
    assert len(store) == 2


def test_create_rejects_mismatched_secret_material(token_config) -> None:
    store = SessionStore(token_config=token_config)
    with pytest.raises(ValueError):
        store.create(username="admin", auth_method=AuthMethod.local)
    with pytest.raises(ValueError):
        store.create(
            username="alice",
            auth_method=AuthMethod.identity_provider,
            password="x",
            tokens=TokenSet(access_token="a"),
        )
    assert len(store) == 0


def test_delete_and_unknown_tokens_are_noops(token_config) -> None:
    store = SessionStore(token_config=token_config)
    token = store.create(username="admin", auth_method=AuthMethod.local, password="x")

    assert store.delete(token) is True
    assert store.delete(token) is False
    assert store.get(token) is None
    assert store.get("nope") is None
    assert store.is_near_expiry("nope") is False
    assert store.refresh_identity_provider_token("nope", TokenSet(access_token="a")) is False


def test_near_expiry_boundary(token_config) -> None:
    clock = FakeClock()
    store = SessionStore(token_config=token_config, clock=clock)
    token = store.create(
        username="alice",
        auth_method=AuthMethod.identity_provider,
        tokens=TokenSet(access_token="a", refresh_token="r", expires_in=300),
    )

    clock.now += 300 - NEAR_EXPIRY_MARGIN_SECONDS - 1
    assert store.is_near_expiry(token) is False
    clock.now += 1
    assert store.is_near_expiry(token) is True


def test_no_lifetime_never_near_expiry(token_config) -> None:
    clock = FakeClock()
    store = SessionStore(token_config=token_config, clock=clock)
    token = store.create(
        username="alice",
        auth_method=AuthMethod.identity_provider,
        tokens=TokenSet(access_token="a"),
    )
    clock.now += 10**9
    assert store.is_near_expiry(token) is False


def test_refresh_replaces_tokens_and_expiry(token_config) -> None:
    clock = FakeClock()
    store = SessionStore(token_config=token_config, clock=clock)
    token = store.create(
        username="alice",
        auth_method=AuthMethod.identity_provider,
        tokens=TokenSet(access_token="old", refresh_token="r1", expires_in=60),
    )
    assert store.is_near_expiry(token) is True

    clock.now += 30
    assert store.refresh_identity_provider_token(
        token, TokenSet(access_token="new", refresh_token="r2", expires_in=300)
    )

    secret = store.get(token).secret
    assert isinstance(secret, IdentityProviderTokens)
    assert (secret.access_token, secret.refresh_token) == ("new", "r2")
    assert secret.expires_at == clock.now + 300
    assert store.is_near_expiry(token) is False


def test_refresh_ignores_local_sessions(token_config) -> None:
    store = SessionStore(token_config=token_config)
    token = store.create(username="admin", auth_method=AuthMethod.local, password="x")
    assert store.refresh_identity_provider_token(token, TokenSet(access_token="a")) is False
    assert store.is_near_expiry(token) is False
