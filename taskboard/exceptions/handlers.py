# taskboard/exceptions/handlers.py
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from taskboard.core import tracing
from taskboard.core.config import settings
from taskboard.exceptions.errors import TaskAPIError
import time


def get_safe_headers(request: Request) -> dict:
    """Extract the request headers worth logging"""
    headers = request.headers
    return {
        "user_agent": headers.get("user-agent", "unknown"),
        "referer": headers.get("referer", "none")
    }


def _error_body(status_code: int, detail, code: str, request: Request) -> dict:
    return {
        "detail": detail,
        "code": code,
        "status_code": status_code,
        "trace_id": tracing.get_current_trace_id(),
        "timestamp": time.time(),
        "path": request.url.path
    }


def _debug_info(exc: Exception) -> dict:
    """Diagnostics exposed only outside production-like environments"""
    return {"error_type": type(exc).__name__, "message": str(exc)}


async def task_api_error_handler(request: Request, exc: TaskAPIError) -> JSONResponse:
    log = tracing.error if exc.status_code >= 500 else tracing.warning
    log(
        f"HTTP {exc.status_code} {exc.code}: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    content = _error_body(exc.status_code, exc.detail, exc.code, request)
    if exc.details:
        content["details"] = exc.details

    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, 'headers', None))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    tracing.error(
        f"HTTP {exc.status_code}: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail, "HTTP_ERROR", request),
        headers=getattr(exc, 'headers', None)
    )


async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    tracing.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail, code, request),
        headers=getattr(exc, 'headers', None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]

    tracing.warning(
        f"Validation error: {len(errors)} errors",
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    content = _error_body(422, "Validation error", "VALIDATION_ERROR", request)
    content["errors"] = errors
    return JSONResponse(status_code=422, content=content)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    tracing.warning(
        f"Integrity violation: {exc.orig}",
        url=str(request.url),
        ip=get_remote_address(request)
    )

    content = _error_body(409, "A record with this data already exists", "CONFLICT", request)
    if settings.is_development:
        content["debug"] = _debug_info(exc)
    return JSONResponse(status_code=409, content=content)


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    tracing.log_error_with_context(
        f"Database error: {type(exc).__name__}",
        exception=exc,
        url=str(request.url),
        ip=get_remote_address(request)
    )

    content = _error_body(500, "Database error occurred", "DATABASE_ERROR", request)
    if settings.is_development:
        content["debug"] = _debug_info(exc)
    return JSONResponse(status_code=500, content=content)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    tracing.log_error_with_context(
        f"UNHANDLED EXCEPTION: {str(exc)}",
        exception=exc,
        url=str(request.url),
        ip=get_remote_address(request),
        **get_safe_headers(request)
    )

    content = _error_body(500, "Internal server error", "INTERNAL_SERVER_ERROR", request)
    if settings.is_development:
        content["debug"] = _debug_info(exc)
    return JSONResponse(status_code=500, content=content)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    tracing.warning(
        f"Rate limit exceeded: {exc.detail}",
        url=str(request.url),
        ip=get_remote_address(request)
    )

    response = JSONResponse(
        status_code=429,
        content=_error_body(429, f"Rate limit exceeded: {exc.detail}", "RATE_LIMITED", request)
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
