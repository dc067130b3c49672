"""Startup and shutdown setup for Notification Service."""

from __future__ import annotations

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.quart_app import ClinicApp

from services.notification_service.config import Settings
from services.notification_service.kafka_consumer import (
    DeadLetterKafkaConsumer,
    NotificationKafkaConsumer,
)
from services.notification_service.models_db import Base

logger = create_service_logger("notification_service.startup_setup")


async def initialize_services(app: ClinicApp, settings: Settings) -> None:
    """Create the schema and start the primary and dead-letter consumers."""
    try:
        async with app.database_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")

        for consumer_type in (NotificationKafkaConsumer, DeadLetterKafkaConsumer):
            consumer = await app.container.get(consumer_type)
            await consumer.start()
            app.workers.append(consumer)

        logger.info(
            "Notification Service initialized successfully",
            email_provider=settings.EMAIL_PROVIDER,
            max_attempts=settings.MAX_NOTIFICATION_ATTEMPTS,
        )
    except Exception as e:
        logger.critical(f"Failed to initialize Notification Service: {e}", exc_info=True)
        raise


async def shutdown_services(app: ClinicApp) -> None:
    try:
        for worker in reversed(app.workers):
            await worker.stop()
        app.workers.clear()
        await app.container.close()
        await app.database_engine.dispose()
        logger.info("Notification Service shutdown tasks completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
