# api/memedo/errors.py
from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .responses import fail
from .settings import settings

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Base for every failure a service wants surfaced to the client as-is."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class PremiumRequiredError(ForbiddenError):
    code = "PREMIUM_REQUIRED"

    def __init__(self, message: str = "Premium subscription required to access this feature"):
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class QuotaExceededError(ApiError):
    status_code = 429
    code = "QUOTA_EXCEEDED"


class BillingProviderError(ApiError):
    """The billing provider failed or is not configured. Never retried."""

    status_code = 500
    code = "BILLING_PROVIDER_ERROR"


# HTTPExceptions raised by FastAPI itself (404 route, 405, bearer auto-errors)
_HTTP_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "QUOTA_EXCEEDED",
}


def _json(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=fail(code, message))


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    log = logger.bind(path=request.url.path, method=request.method, code=exc.code)
    if exc.status_code >= 500:
        log.error("request failed", status=exc.status_code, message=exc.message)
        message = exc.message
        if settings.is_production and not isinstance(exc, BillingProviderError):
            message = "An unexpected error occurred"
        return _json(exc.status_code, exc.code, message)

    log.warning("request rejected", status=exc.status_code, message=exc.message)
    return _json(exc.status_code, exc.code, exc.message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(
        "http exception", path=request.url.path, method=request.method,
        status=exc.status_code, message=message,
    )
    return _json(exc.status_code, code, message)


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.warning("validation failed", path=request.url.path, method=request.method, message=message)
    return _json(400, "VALIDATION_ERROR", message)


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", path=request.url.path, method=request.method)
    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return _json(500, "INTERNAL_SERVER_ERROR", message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
