"""
priority_console.api.error_handling

Exception handlers that render every failure as the console's JSON envelope:

    {"success": false, "message": ..., "error": ..., "details": ...}

Responsibilities:
- Map `ConsoleError` subclasses to their HTTP status.
- Render request validation failures as 400.
- Turn anything unexpected into a generic 500 without a stack trace.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from priority_console.errors import ConsoleError, Forbidden, OrchestrationError, UpstreamError
from priority_console.observability.logging import get_logger

log = get_logger(__name__)


def error_response(
    status_code: int,
    message: str,
    *,
    error: str | None = None,
    details: Any = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error": error if error is not None else message,
            "details": details,
        },
    )


def orchestration_error_response(
    request: Request, exc: OrchestrationError, *, failure_message: str
) -> JSONResponse:
    """
    Render an orchestration failure with the endpoint-level message.

    Permission rejections become 403 "No management permissions"; everything else is
    a 500 carrying `failure_message`, the underlying error text and the upstream body.
    """
    details = exc.body if isinstance(exc, UpstreamError) else exc.detail or None
    log.error(
        "orchestration_failed",
        path=request.url.path,
        error_code=exc.error_code,
        message=exc.message,
        detail=exc.detail,
    )
    if isinstance(exc, Forbidden):
        return error_response(403, "No management permissions", error=exc.message, details=details)
    return error_response(500, failure_message, error=exc.message, details=details)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConsoleError)
    async def handle_console_error(request: Request, exc: ConsoleError):
        log_fn = log.error if exc.status_code >= 500 else log.warning
        log_fn(
            "request_failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        details = exc.body if isinstance(exc, UpstreamError) else exc.detail or None
        return error_response(exc.status_code, exc.message, details=details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
        ]
        log.warning("request_invalid", path=request.url.path, errors=errors)
        return error_response(400, "Invalid request", details=errors)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        log.exception("unhandled_error", path=request.url.path, method=request.method)
        return error_response(500, "Internal server error")


# --- Module Notes -----------------------------------------------------------
# Auth failures reach the client as {"success": false, "message": ...} with 401; the
# frontend keys its re-login prompt off the status code alone.
