from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from member_auth.domain.exceptions import DomainError, InternalError, RateLimitedError


logger = logging.getLogger(__name__)

STATUS_KINDS = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limited",
    500: "internal_error",
    502: "upstream_unavailable",
    503: "service_unavailable",
}


def error_body(kind: str, message: str, **extra) -> dict:
    body = {"error": kind, "message": message}
    body.update(extra)
    return body


def rate_limit_headers(exc: RateLimitedError) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(exc.limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": str(exc.reset_at_epoch_seconds),
        "Retry-After": str(exc.retry_after_seconds),
    }


def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "api: request_failed path=%s kind=%s status=%s",
            request.url.path,
            exc.kind,
            exc.status_code,
        )
    extra = {}
    errors = getattr(exc, "errors", None)
    if errors:
        extra["errors"] = errors
    headers = rate_limit_headers(exc) if isinstance(exc, RateLimitedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message, **extra),
        headers=headers,
    )


def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = STATUS_KINDS.get(exc.status_code, "http_error")
    message = str(exc.detail)
    if exc.status_code >= 500:
        logger.error(
            "api: request_failed path=%s status=%s detail=%s",
            request.url.path,
            exc.status_code,
            exc.detail,
        )
        message = InternalError().message
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, message),
        headers=getattr(exc, "headers", None),
    )


def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content=error_body("validation_error", "Invalid input.", errors=messages),
    )


def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api: unhandled_error path=%s", request.url.path)
    fallback = InternalError()
    return JSONResponse(status_code=500, content=error_body(fallback.kind, fallback.message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
