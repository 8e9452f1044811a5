"""Main FastAPI application module."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from healthspot.api.v1.router import router as v1_router
from healthspot.core.config import settings
from healthspot.core.events import create_start_app_handler, create_stop_app_handler
from healthspot.core.logging import configure_logging
from healthspot.middleware.anonymous import AnonymousIdMiddleware
from healthspot.middleware.correlation import CorrelationMiddleware
from healthspot.middleware.errors import ErrorHandlingMiddleware, register_exception_handlers
from healthspot.middleware.metrics import MetricsMiddleware
from healthspot.middleware.rate_limit import RateLimitMiddleware, SlidingWindowRateLimiter
from healthspot.middleware.security import SecurityHeadersMiddleware


def create_app(rate_limiter: SlidingWindowRateLimiter | None = None) -> FastAPI:
    """Build the application with its middleware stack and routes."""
    configure_logging(
        testing=os.getenv("TESTING") == "true",
        level=settings.LOG_LEVEL,
        json_logs=settings.JSON_LOGS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await create_start_app_handler(app)()
        yield
        await create_stop_app_handler(app)()

    app = FastAPI(
        title=settings.app_name,
        description="Healthcare provider search with postal code geocoding",
        version=settings.version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        default_response_class=JSONResponse,
        lifespan=lifespan,
    )

    # Middleware runs outermost first:
    # 1. CORS
    # 2. Security headers
    # 3. Correlation (adds request ID)
    # 4. Metrics (tracks all requests, including rejected ones)
    # 5. Rate limiting
    # 6. Anonymous id cookie
    # 7. Error handling (innermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(AnonymousIdMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=rate_limiter
        or SlidingWindowRateLimiter(
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            max_clients=settings.RATE_LIMIT_MAX_CLIENTS,
        ),
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )

    register_exception_handlers(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", include_in_schema=False)
    async def health(request: Request) -> dict[str, str]:
        return {
            "status": "ok",
            "version": settings.version,
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        }

    app.include_router(v1_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run("healthspot.main:app", host="0.0.0.0", port=settings.PORT)  # nosec B104
