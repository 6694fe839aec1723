"""
FastAPI application entry point for Storefront Pricing.

Run with:
    uvicorn storefront_pricing.webapp.main:app --reload

or through the CLI:
    python -m storefront_pricing.main serve
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from storefront_pricing import __version__
from storefront_pricing.services.container import AppServices, build_services
from storefront_pricing.utils.config_loader import AppConfig, load_config, load_env
from storefront_pricing.utils.logging_config import setup_logging
from storefront_pricing.webapp.exceptions import AppException
from storefront_pricing.webapp.routes import get_services, router

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig | None = None,
    services: AppServices | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration to use; loaded from config/config.yaml if omitted.
        services: Pre-built services (tests); built from config if omitted.
        start_scheduler: Start the background jobs for the app's lifetime.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        app_config = config or (services.config if services is not None else None)
        if app_config is None:
            load_env()
            app_config = load_config()
            setup_logging(
                level=app_config.logging.level,
                log_format=app_config.logging.format,
                log_file=app_config.logging.log_file,
            )

        app.state.services = services or build_services(app_config)
        scheduler = app.state.services.scheduler

        logger.info("Storefront Pricing - API starting...")
        if start_scheduler:
            scheduler.start(run_immediately=app_config.scheduler.run_on_start)
        yield
        logger.info("Storefront Pricing - API shutting down...")
        scheduler.stop()

    app = FastAPI(
        title="Storefront Pricing",
        description="Dynamic pricing, exchange rates and display-currency conversion",
        version=__version__,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def error_handling_middleware(request: Request, call_next):
        """Global error handling middleware."""
        start_time = time.time()
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = str(process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception(f"Unhandled error processing {request.url.path}: {e}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "details": {"path": str(request.url.path)},
                },
                headers={"X-Process-Time": str(process_time)},
            )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Render AppException subclasses as JSON."""
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message} {exc.details}")
        else:
            logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check(services: AppServices = Depends(get_services)) -> dict[str, Any]:
        """Detailed health check endpoint for monitoring."""
        report = services.health_service.get_full_health()
        return report.to_dict()

    @app.get("/health/simple")
    async def simple_health_check(services: AppServices = Depends(get_services)) -> dict[str, Any]:
        """Simple health check for load balancers."""
        return services.health_service.get_simple_health()

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront_pricing.webapp.main:app", host="127.0.0.1", port=8000, reload=True)
