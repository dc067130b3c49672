"""Quart application for Notification Service.

Serves health and metrics; the appointment event consumer and the
dead-letter consumer run as background tasks for the lifetime of the server.
"""

from __future__ import annotations

import asyncio

from clinic_service_libs.error_handling.quart import register_error_handlers
from clinic_service_libs.logging_utils import configure_service_logging, create_service_logger
from clinic_service_libs.quart_app import ClinicApp
from dishka import make_async_container
from quart_dishka import QuartDishka
from sqlalchemy.ext.asyncio import create_async_engine

from services.notification_service.api.health_routes import health_bp
from services.notification_service.config import Settings
from services.notification_service.di import (
    CoreProvider,
    NotificationServiceProvider,
    ImplementationProvider,
    ServiceProvider,
)
from services.notification_service.startup_setup import initialize_services, shutdown_services

logger = create_service_logger("notification_service.app")


def create_app(settings: Settings | None = None) -> ClinicApp:
    if settings is None:
        settings = Settings()

    configure_service_logging("notification_service", log_level=settings.LOG_LEVEL)

    app = ClinicApp(__name__)
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
        NotificationServiceProvider(engine=app.database_engine),
    )

    QuartDishka(app=app, container=app.container)
    app.register_blueprint(health_bp)
    register_error_handlers(app, "notification_service")

    @app.before_serving
    async def startup() -> None:
        try:
            await initialize_services(app, settings)
            logger.info("Notification Service started successfully")
        except Exception as e:
            logger.critical(f"Failed to start Notification Service: {e}", exc_info=True)
            raise

    @app.after_serving
    async def cleanup() -> None:
        await shutdown_services(app)
        logger.info("Notification Service shutdown complete")

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
