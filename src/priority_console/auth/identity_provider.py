"""
priority_console.auth.identity_provider

HTTP client boundary for the external OAuth2 / OpenID Connect identity provider
(Keycloak realm layout: `{base}/realms/{realm}/protocol/openid-connect/...`).

Responsibilities:
- Password grant, authorization-code (+PKCE) exchange and refresh.
- Token introspection (fail closed) and userinfo retrieval.
- Best-effort remote logout and pure logout-URL construction.
- Diagnostic views of the configuration that never expose the client secret.

The client is stateless apart from the shared `httpx.AsyncClient` it is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from priority_console.auth.models import TokenSet, UserInfo
from priority_console.errors import (
    InvalidCredentials,
    NotConfigured,
    ProviderError,
    RefreshError,
    UserInfoError,
)
from priority_console.observability.logging import get_logger
from priority_console.settings import Settings

log = get_logger(__name__)

# Seconds. Read-style calls are short; token-endpoint calls get more headroom.
READ_TIMEOUT = 5.0
TOKEN_TIMEOUT = 10.0

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


@dataclass(frozen=True, slots=True)
class IdentityProviderConfig:
    enabled: bool
    base_url: str | None
    realm: str | None
    client_id: str | None
    client_secret: str | None
    # Default post-logout redirect target.
    frontend_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> IdentityProviderConfig:
        return cls(
            enabled=settings.keycloak_enabled,
            base_url=(settings.keycloak_base_url or "").rstrip("/") or None,
            realm=settings.keycloak_realm,
            client_id=settings.keycloak_client_id,
            client_secret=settings.keycloak_client_secret,
            frontend_url=settings.frontend_url,
        )

    @property
    def oidc_url(self) -> str:
        return f"{self.base_url}/realms/{self.realm}/protocol/openid-connect"

    @property
    def token_url(self) -> str:
        return f"{self.oidc_url}/token"

    @property
    def introspect_url(self) -> str:
        return f"{self.oidc_url}/token/introspect"

    @property
    def userinfo_url(self) -> str:
        return f"{self.oidc_url}/userinfo"

    @property
    def logout_url(self) -> str:
        return f"{self.oidc_url}/logout"


class IdentityProviderClient:
    def __init__(self, *, config: IdentityProviderConfig, http: httpx.AsyncClient) -> None:
        self._cfg = config
        self._http = http

    @property
    def enabled(self) -> bool:
        return self._cfg.enabled

    def _require_enabled(self) -> None:
        if not self._cfg.enabled:
            raise NotConfigured("Identity provider is not configured")

    def _client_credentials(self) -> dict[str, str]:
        creds = {"client_id": self._cfg.client_id or ""}
        if self._cfg.client_secret:
            creds["client_secret"] = self._cfg.client_secret
        return creds

    async def _post_form(self, url: str, data: dict[str, str], *, timeout: float) -> httpx.Response:
        r = await self._http.post(url, data=data, headers=_FORM_HEADERS, timeout=timeout)
        r.raise_for_status()
        return r

    async def password_grant(self, username: str, password: str) -> TokenSet:
        self._require_enabled()
        log.debug("idp_password_grant", username=username, realm=self._cfg.realm)
        try:
            r = await self._post_form(
                self._cfg.token_url,
                {
                    "grant_type": "password",
                    **self._client_credentials(),
                    "username": username,
                    "password": password,
                },
                timeout=TOKEN_TIMEOUT,
            )
            tokens = TokenSet.from_response(r.json())
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                log.warning("idp_password_grant_rejected", username=username)
                raise InvalidCredentials("Invalid username or password in identity provider") from e
            log.error(
                "idp_password_grant_failed",
                username=username,
                status=e.response.status_code,
            )
            raise ProviderError(f"Identity provider authentication error: {e}") from e
        except (httpx.HTTPError, ValueError, KeyError) as e:
            log.error("idp_password_grant_failed", username=username, error=str(e))
            raise ProviderError(f"Identity provider authentication error: {e}") from e

        log.info("idp_password_grant_ok", username=username, expires_in=tokens.expires_in)
        return tokens

    async def exchange_authorization_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenSet:
        self._require_enabled()
        if not self._cfg.client_secret:
            # The code flow is only offered to a confidential client.
            log.error("idp_code_exchange_missing_client_secret")
            raise NotConfigured(
                "PC_KEYCLOAK_CLIENT_SECRET not set. The authorization code flow "
                "requires a confidential client with a client secret."
            )

        form = {
            "grant_type": "authorization_code",
            **self._client_credentials(),
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier

        log.debug(
            "idp_code_exchange",
            redirect_uri=redirect_uri,
            pkce=bool(code_verifier),
        )
        try:
            r = await self._post_form(self._cfg.token_url, form, timeout=TOKEN_TIMEOUT)
            tokens = TokenSet.from_response(r.json())
        except httpx.HTTPStatusError as e:
            body = _safe_json(e.response)
            log.error(
                "idp_code_exchange_failed",
                status=e.response.status_code,
                provider_error=body.get("error"),
            )
            if body.get("error"):
                raise ProviderError(
                    f"Identity provider error: {body['error']} - "
                    f"{body.get('error_description', '')}".rstrip(" -")
                ) from e
            raise ProviderError(f"Error exchanging authorization code for token: {e}") from e
        except (httpx.HTTPError, ValueError, KeyError) as e:
            log.error("idp_code_exchange_failed", error=str(e))
            raise ProviderError(f"Error exchanging authorization code for token: {e}") from e

        log.info("idp_code_exchange_ok", expires_in=tokens.expires_in)
        return tokens

    async def introspect(self, token: str) -> bool:
        if not self._cfg.enabled:
            return False
        try:
            r = await self._post_form(
                self._cfg.introspect_url,
                {"token": token, **self._client_credentials()},
                timeout=READ_TIMEOUT,
            )
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            # Fail closed: an unverifiable token is an inactive token.
            log.error("idp_introspection_failed", error=str(e))
            return False
        return isinstance(data, dict) and data.get("active") is True

    async def get_user_info(self, token: str) -> UserInfo:
        self._require_enabled()
        try:
            r = await self._http.get(
                self._cfg.userinfo_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=READ_TIMEOUT,
            )
            r.raise_for_status()
            claims = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error("idp_userinfo_failed", error=str(e))
            raise UserInfoError("Failed to get user information") from e
        if not isinstance(claims, dict):
            raise UserInfoError("Failed to get user information")

        info = UserInfo.from_claims(claims)
        log.info("idp_userinfo_ok", username=info.username)
        return info

    async def refresh(self, refresh_token: str) -> TokenSet:
        self._require_enabled()
        try:
            r = await self._post_form(
                self._cfg.token_url,
                {
                    "grant_type": "refresh_token",
                    **self._client_credentials(),
                    "refresh_token": refresh_token,
                },
                timeout=TOKEN_TIMEOUT,
            )
            tokens = TokenSet.from_response(r.json())
        except (httpx.HTTPError, ValueError, KeyError) as e:
            log.error("idp_refresh_failed", error=str(e))
            raise RefreshError("Failed to refresh token") from e
        log.info("idp_refresh_ok", expires_in=tokens.expires_in)
        return tokens

    async def logout(self, refresh_token: str) -> None:
        """
        Revoke the provider session. Best effort: the local session is destroyed by
        the caller regardless, so failures are logged and not raised.
        """

        if not self._cfg.enabled:
            return
        try:
            await self._post_form(
                self._cfg.logout_url,
                {**self._client_credentials(), "refresh_token": refresh_token},
                timeout=TOKEN_TIMEOUT,
            )
        except httpx.HTTPError as e:
            log.warning("idp_logout_failed", error=str(e))
            return
        log.info("idp_logout_ok")

    def build_logout_url(self, redirect_uri: str | None = None) -> str | None:
        if not self._cfg.enabled:
            return None
        query = urlencode(
            {
                "client_id": self._cfg.client_id or "",
                "post_logout_redirect_uri": redirect_uri or self._cfg.frontend_url,
            }
        )
        return f"{self._cfg.logout_url}?{query}"

    def status(self) -> dict[str, Any]:
        enabled = self._cfg.enabled
        return {
            "enabled": enabled,
            "baseUrl": self._cfg.base_url,
            "realm": self._cfg.realm,
            "clientId": self._cfg.client_id,
            "clientSecret": "***SET***" if self._cfg.client_secret else "***NOT SET***",
            "tokenUrl": self._cfg.token_url if enabled else None,
            "userInfoUrl": self._cfg.userinfo_url if enabled else None,
        }

    def frontend_config(self) -> dict[str, Any]:
        if not self._cfg.enabled:
            return {"enabled": False}
        return {
            "enabled": True,
            "baseUrl": self._cfg.base_url,
            "realm": self._cfg.realm,
            "clientId": self._cfg.client_id,
        }


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# --- Module Notes -----------------------------------------------------------
# Every call carries an explicit timeout; a timeout surfaces as httpx.TimeoutException,
# which is an httpx.HTTPError and is handled with the other transport failures.
