"""Quart application for Scheduler Service.

The HTTP surface is limited to health and metrics. The outbox relay worker
and the daily reminder job run as background tasks started in
``before_serving`` and stopped in ``after_serving``.
"""

from __future__ import annotations

import asyncio

from clinic_service_libs.error_handling.quart import register_error_handlers
from clinic_service_libs.logging_utils import configure_service_logging, create_service_logger
from clinic_service_libs.quart_app import ClinicApp
from dishka import make_async_container
from quart_dishka import QuartDishka
from sqlalchemy.ext.asyncio import create_async_engine

from services.scheduler_service.api.health_routes import health_bp
from services.scheduler_service.config import Settings
from services.scheduler_service.di import (
    CoreProvider,
    ImplementationProvider,
    SchedulerServiceProvider,
    ServiceProvider,
)
from services.scheduler_service.startup_setup import initialize_services, shutdown_services

logger = create_service_logger("scheduler_service.app")


def create_app(settings: Settings | None = None) -> ClinicApp:
    """Create and configure the Quart application.

    Args:
        settings: Optional settings override for testing
    """
    if settings is None:
        settings = Settings()

    configure_service_logging("scheduler_service", log_level=settings.LOG_LEVEL)

    app = ClinicApp(__name__)
    app.config.update({"TESTING": False, "DEBUG": settings.LOG_LEVEL == "DEBUG"})

    app.database_engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
    )
    app.container = make_async_container(
        CoreProvider(),
        ImplementationProvider(),
        ServiceProvider(),
        SchedulerServiceProvider(engine=app.database_engine),
    )

    QuartDishka(app=app, container=app.container)
    app.register_blueprint(health_bp)
    register_error_handlers(app, "scheduler_service")

    @app.before_serving
    async def startup() -> None:
        try:
            await initialize_services(app, settings)
            logger.info("Scheduler Service started successfully")
            logger.info("Health endpoint: /healthz")
            logger.info("Metrics endpoint: /metrics")
        except Exception as e:
            logger.critical(f"Failed to start Scheduler Service: {e}", exc_info=True)
            raise

    @app.after_serving
    async def cleanup() -> None:
        await shutdown_services(app)
        logger.info("Scheduler Service shutdown complete")

    return app


if __name__ == "__main__":
    import hypercorn.asyncio
    from hypercorn.config import Config

    settings = Settings()
    app = create_app(settings)

    config = Config()
    config.bind = [f"0.0.0.0:{settings.HTTP_PORT}"]
    config.loglevel = settings.LOG_LEVEL.lower()

    asyncio.run(hypercorn.asyncio.serve(app, config))
