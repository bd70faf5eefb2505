"""
Storefront API application.

Builds the FastAPI instance: logging, rate limiting, CORS, the request
context middleware (correlation id, access log, security headers), the
structured error handlers, the health endpoints and the versioned routers.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from storefront.api.v1 import (
    auth_router,
    categories_router,
    orders_router,
    products_router,
    users_router,
    wishlist_router,
)
from storefront.core.config import get_settings
from storefront.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from storefront.core.security import get_security_headers
from storefront.database.connection import (
    check_database_health,
    close_database_connections,
)

configure_logging()
logger = get_logger(__name__)
settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "Storefront API starting",
        environment=settings.environment,
        version=settings.app_version,
        rate_limiting=settings.rate_limit_enabled,
    )
    yield
    with log_performance(logger, "shutdown"):
        await close_database_connections()
    logger.info("Storefront API stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Storefront backend API: catalog, wishlist and order workflow",
    lifespan=lifespan,
    debug=settings.debug,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Bind a correlation id to the request and log its outcome.

    The incoming X-Request-ID is reused when present. The id is echoed back
    on the response together with the security headers.
    """
    clear_context()
    request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    method, path = request.method, request.url.path

    logger.info(
        "Request received",
        method=method,
        path=path,
        client_host=request.client.host if request.client else None,
    )

    with log_performance(logger, "request", method=method, path=path):
        response = await call_next(request)

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers.update(get_security_headers())

    logger.info(
        "Request completed",
        method=method,
        path=path,
        status_code=response.status_code,
    )
    return response


def _error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            **extra,
            "request_id": get_request_id(),
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        error_count=len(errors),
    )
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        "Request validation failed",
        detail=jsonable_encoder(errors),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer with a generic 500 body."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
    )


health_router = APIRouter(tags=["Health"])


@health_router.get("/health", summary="Health check")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@health_router.get("/live", summary="Liveness check")
async def liveness_check() -> dict[str, str]:
    return {
        "status": "alive",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@health_router.get(
    "/ready",
    summary="Readiness check",
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database unreachable"}},
)
async def readiness_check():
    """Report ready only while the database answers."""
    if not await check_database_health(max_retries=1):
        logger.warning("Readiness check failed", database="unhealthy")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "service": settings.app_name,
                "database": "unhealthy",
            },
        )

    return {
        "status": "ready",
        "service": settings.app_name,
        "version": settings.app_version,
        "database": "healthy",
    }


app.include_router(health_router)
for router in (
    auth_router,
    categories_router,
    products_router,
    users_router,
    orders_router,
    wishlist_router,
):
    app.include_router(router, prefix=settings.api_v1_prefix)
