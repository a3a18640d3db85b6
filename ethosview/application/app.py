#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Composition root for the caching and freshness core: connects Redis and
PostgreSQL, builds the advanced cache, cache warmer, metrics registry and
alert manager, runs the background loops and exposes the admin routes.

Author: Senior Solution Architect
Date: 2025-12-13
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ethosview.application.api.middleware import RequestMetricsMiddleware
from ethosview.application.api.routes import cache_router, monitoring_router
from ethosview.core.config.constants import HEADER_REQUEST_ID, HEADER_RESPONSE_TIME
from ethosview.core.config.settings import get_settings
from ethosview.core.exceptions import CacheError, DatabaseError, EthosViewError
from ethosview.core.logging.logger import get_logger, setup_logging
from ethosview.infrastructure.cache.advanced_cache import AdvancedCache
from ethosview.infrastructure.cache.cache_warmer import CacheWarmer
from ethosview.infrastructure.cache.redis_client import close_redis, init_redis
from ethosview.infrastructure.database.postgres_client import close_database, init_database
from ethosview.infrastructure.monitoring.alert_manager import AlertManager, Thresholds
from ethosview.infrastructure.monitoring.metrics_registry import MetricsRegistry
from ethosview.infrastructure.monitoring.system_metrics import SystemMetricsSampler

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    Background loops are stopped before the clients they use are closed.
    """
    settings = get_settings()

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting EthosView cache service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    metrics: MetricsRegistry = app.state.metrics
    warmer: CacheWarmer | None = None
    alert_manager: AlertManager | None = None

    try:
        redis_client = await init_redis()
        database_client = await init_database()

        app.state.cache = AdvancedCache(
            redis_client, prefix=settings.cache.CACHE_PREFIX, metrics=metrics
        )

        warmer = CacheWarmer(redis_client, database_client)
        app.state.warmer = warmer

        sampler = SystemMetricsSampler(
            redis_client,
            database_client,
            metrics,
            disk_path=settings.monitoring.MONITORING_DISK_PATH,
        )
        alert_manager = AlertManager(
            sampler,
            redis_client,
            Thresholds.from_settings(settings.monitoring),
            metrics=metrics,
        )
        app.state.alert_manager = alert_manager

        if settings.cache.CACHE_WARMING_ENABLED:
            warmer.start_cache_warming(settings.cache.CACHE_WARMING_INTERVAL)
        if settings.monitoring.MONITORING_ENABLED:
            alert_manager.start_monitoring(settings.monitoring.MONITORING_INTERVAL)

        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application")

        if alert_manager is not None:
            await alert_manager.stop_monitoring()
        if warmer is not None:
            await warmer.stop()

        await close_database()
        await close_redis()

        logger.info("Application shutdown complete")


# ============================================================================
# Exception Handlers
# ============================================================================


async def ethosview_exception_handler(request: Request, exc: EthosViewError):
    """Store/database outages map to 503, everything else to 500."""
    status_code = 503 if isinstance(exc, (CacheError, DatabaseError)) else 500
    logger.error(
        f"Request failed: {exc.message}",
        error_type=type(exc).__name__,
        path=request.url.path,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ============================================================================
# Application Factory
# ============================================================================


def create_app(metrics: MetricsRegistry | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        metrics: Registry to record requests into (a fresh one when omitted)

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()
    metrics = metrics or MetricsRegistry()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Caching, cache warming and alerting core of the EthosView ESG backend",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.metrics = metrics

    # Middleware runs in reverse order of registration
    app.add_middleware(RequestMetricsMiddleware, metrics=metrics)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID, HEADER_RESPONSE_TIME],
    )

    app.add_exception_handler(EthosViewError, ethosview_exception_handler)

    base_path = settings.API_BASE_PATH
    app.include_router(monitoring_router, prefix=base_path)
    app.include_router(cache_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "ethosview.application.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
