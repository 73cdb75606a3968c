# taskboard/main.py - Application assembly: middleware, handlers, routes
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager
from prometheus_fastapi_instrumentator import Instrumentator
import time

from taskboard.core.config import settings
from taskboard.core import tracing
from taskboard.db.database import get_db, init_db, ping_db, engine
from taskboard.api.v1 import api_router

from taskboard.middleware.security import SecurityHeadersMiddleware
from taskboard.middleware.cors import setup_cors_middleware
from taskboard.middleware.rate_limiting import setup_rate_limiting
from taskboard.middleware.monitoring import MonitoringMiddleware
from taskboard.middleware.compression import CompressionMiddleware

from taskboard.exceptions.errors import TaskAPIError
from taskboard.exceptions.handlers import (
    task_api_error_handler,
    http_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    database_exception_handler,
    global_exception_handler,
    starlette_http_exception_handler
)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup and release pooled connections on shutdown
    """
    tracing.info("Taskboard API startup initiated")

    try:
        await init_db()
    except Exception as e:
        tracing.error(f"Database initialization failed: {e}")
        raise

    tracing.info(f"Environment: {settings.ENVIRONMENT}")
    tracing.info(f"Log Level: {settings.LOG_LEVEL}")
    tracing.info(f"Rate Limiting: {'Enabled' if settings.RATE_LIMIT_ENABLED else 'Disabled'}")
    tracing.info(
        f"Ordering: compact on delete={settings.COMPACT_ORDER_ON_DELETE}, "
        f"clamp reorder index={settings.CLAMP_REORDER_INDEX}"
    )
    tracing.info(f"Taskboard API v{VERSION} startup complete")

    yield

    await engine.dispose()
    tracing.info("Taskboard API shutdown complete")


app = FastAPI(
    title="Taskboard API",
    description="Task management backend with ordered task lists, filtering and statistics",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None
)

# =============================================================================
# MIDDLEWARE SETUP (last added runs first)
# =============================================================================

app.add_middleware(
    CompressionMiddleware,
    minimum_size=1024,
    compression_level=6,
    exclude_paths=['/metrics', '/health']
)
app.add_middleware(MonitoringMiddleware)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)
setup_cors_middleware(app)
setup_rate_limiting(app)

# Outermost, so every response carries X-Trace-ID
tracing.setup_tracing(app)

tracing.info("Middleware pipeline configured")

# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

app.add_exception_handler(TaskAPIError, task_api_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StarletteHTTPException, starlette_http_exception_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics"],
    inprogress_labels=True
)
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# =============================================================================
# API ROUTES
# =============================================================================

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["System"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check with a database round trip
    """
    try:
        await ping_db(db)
    except Exception as e:
        tracing.error(f"Health check failed: {e}", endpoint="/health", error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy - database connection failed"
        )

    return {
        "status": "healthy",
        "service": "Taskboard API",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "connected",
        "timestamp": time.time(),
        "trace_id": tracing.get_current_trace_id()
    }


@app.get("/", tags=["System"])
async def api_information():
    """API information endpoint"""
    return {
        "message": "Taskboard API",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "operational",
        "trace_id": tracing.get_current_trace_id(),
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "tasks": f"{settings.API_PREFIX}/tasks",
            "documentation": "/docs" if settings.is_development else None
        },
        "timestamp": time.time()
    }
