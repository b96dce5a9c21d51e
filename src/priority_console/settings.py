"""
priority_console.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (session secret, passwords, client secret).
- Refuse inconsistent configuration at construction time.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_SESSION_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    """
    Env-driven configuration (prefix `PC_`).
    Defaults are safe for local dev; prod refuses the dev session secret.
    """

    model_config = SettingsConfigDict(env_prefix="PC_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "priority-console"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3001
    api_prefix: str = "/api"

    # Default post-logout redirect and last-resort SSO redirect URI.
    frontend_url: str = "http://localhost:3001"

    # Session tokens
    session_secret: str = Field(default=_DEV_SESSION_SECRET, repr=False)
    session_alg: str = "HS256"
    session_issuer: str = "priority-console"
    session_ttl_hours: int = Field(default=12, ge=1, le=24 * 7)

    # Local credentials
    manage_user: str | None = None
    manage_password: str | None = Field(default=None, repr=False)
    local_users_path: Path = Path("./local-users.yml")

    # Declarative service topology
    topology_path: Path = Path("./settings.yml")

    # Unpolled finished bulk operations are forgotten after this long.
    bulk_retention_seconds: float = Field(default=300.0, gt=0)

    # Identity provider (Keycloak-compatible OpenID Connect endpoints)
    keycloak_enabled: bool = False
    keycloak_base_url: str | None = None
    keycloak_realm: str | None = None
    keycloak_client_id: str | None = None
    keycloak_client_secret: str | None = Field(default=None, repr=False)
    keycloak_redirect_uri: str | None = None

    @model_validator(mode="after")
    def _validate(self) -> Settings:
        errors: list[str] = []
        if self.keycloak_enabled:
            if not self.keycloak_base_url:
                errors.append("PC_KEYCLOAK_BASE_URL not set")
            if not self.keycloak_realm:
                errors.append("PC_KEYCLOAK_REALM not set")
            if not self.keycloak_client_id:
                errors.append("PC_KEYCLOAK_CLIENT_ID not set")
        if self.env == "prod" and self.session_secret == _DEV_SESSION_SECRET:
            errors.append("PC_SESSION_SECRET must be set in prod")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Env var names mirror the field names with the PC_ prefix, e.g. PC_KEYCLOAK_REALM.
