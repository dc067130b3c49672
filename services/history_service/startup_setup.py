"""Startup and shutdown setup for History Service."""

from __future__ import annotations

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.quart_app import ClinicApp

from services.history_service.config import Settings
from services.history_service.kafka_consumer import HistoryKafkaConsumer
from services.history_service.models_db import Base

logger = create_service_logger("history_service.startup_setup")


async def initialize_services(app: ClinicApp, settings: Settings) -> None:
    """Create the schema and start the appointment event consumer."""
    try:
        async with app.database_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")

        consumer = await app.container.get(HistoryKafkaConsumer)
        await consumer.start()
        app.workers.append(consumer)

        logger.info(
            "History Service initialized successfully",
            topic=settings.APPOINTMENT_EVENTS_TOPIC,
            group_id=settings.CONSUMER_GROUP,
        )
    except Exception as e:
        logger.critical(f"Failed to initialize History Service: {e}", exc_info=True)
        raise


async def shutdown_services(app: ClinicApp) -> None:
    try:
        for worker in reversed(app.workers):
            await worker.stop()
        app.workers.clear()
        await app.container.close()
        await app.database_engine.dispose()
        logger.info("History Service shutdown tasks completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
