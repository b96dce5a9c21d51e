"""
priority_console.errors

Domain exception taxonomy shared by the auth and orchestration layers.

Responsibilities:
- Give every failure a stable HTTP status and error code.
- Carry enough context (detail dict, upstream status/body) for a useful response.
"""

from __future__ import annotations

from typing import Any


class ConsoleError(Exception):
    """
    Base class for errors mapped to HTTP responses by `api.error_handling`.
    Subclasses fix `status_code` and `error_code`; instances carry a message and detail.
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class BadRequest(ConsoleError):
    status_code = 400
    error_code = "bad_request"


class NotFound(ConsoleError):
    status_code = 404
    error_code = "not_found"


# --- Authentication ----------------------------------------------------------


class AuthError(ConsoleError):
    """Any failure that must surface as 401."""

    status_code = 401
    error_code = "unauthorized"


class Unauthenticated(AuthError):
    error_code = "unauthenticated"


class InvalidToken(AuthError):
    error_code = "invalid_token"


class SessionNotFound(AuthError):
    error_code = "session_not_found"


class InvalidCredentials(AuthError):
    error_code = "invalid_credentials"


# --- Identity provider -------------------------------------------------------


class IdentityProviderError(ConsoleError):
    error_code = "identity_provider_error"


class NotConfigured(IdentityProviderError):
    error_code = "not_configured"


class ProviderError(IdentityProviderError):
    error_code = "provider_error"


class UserInfoError(IdentityProviderError):
    error_code = "userinfo_error"


class RefreshError(IdentityProviderError):
    # A refresh token the provider will not honour means the caller must log in again.
    status_code = 401
    error_code = "refresh_failed"


# --- Orchestration -----------------------------------------------------------


class OrchestrationError(ConsoleError):
    error_code = "orchestration_error"


class InvalidTarget(OrchestrationError):
    error_code = "invalid_target"


class UnsupportedOperation(OrchestrationError):
    error_code = "unsupported_operation"

    def __init__(self, message: str, *, mode: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message, detail={"mode": mode, **(detail or {})})
        self.mode = mode


class UpstreamError(OrchestrationError):
    """A remote endpoint failed: non-2xx, timeout or connection error."""

    error_code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message, detail={"url": url, "status": status})
        self.url = url
        self.status = status
        self.body = body


class Forbidden(UpstreamError):
    status_code = 403
    error_code = "forbidden"


# --- Module Notes -----------------------------------------------------------
# Auth errors are resolved inside the gateway dependency and never reach orchestration.
# Orchestration errors are not retried here; retry is a caller decision.
