"""Startup and shutdown setup for Scheduler Service."""

from __future__ import annotations

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.quart_app import ClinicApp

from services.scheduler_service.config import Settings
from services.scheduler_service.implementations.outbox_relay import OutboxRelayWorker
from services.scheduler_service.implementations.reminder_job import DailyReminderJob

logger = create_service_logger("scheduler_service.startup_setup")


async def initialize_services(app: ClinicApp, settings: Settings) -> None:
    """Create the schema and start the relay worker and reminder job."""
    try:
        async with app.database_engine.begin() as conn:
            from services.scheduler_service.models_db import Base

            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")

        async with app.container() as request_container:
            relay_worker = await request_container.get(OutboxRelayWorker)
            await relay_worker.start()
            app.workers.append(relay_worker)

            if settings.REMINDER_JOB_ENABLED:
                reminder_job = await request_container.get(DailyReminderJob)
                await reminder_job.start()
                app.workers.append(reminder_job)

        logger.info("Scheduler Service initialized successfully")
    except Exception as e:
        logger.critical(f"Failed to initialize Scheduler Service: {e}", exc_info=True)
        raise


async def shutdown_services(app: ClinicApp) -> None:
    """Stop background workers, then close the container and engine."""
    try:
        for worker in reversed(app.workers):
            await worker.stop()
        app.workers.clear()
        await app.container.close()
        await app.database_engine.dispose()
        logger.info("Scheduler Service shutdown tasks completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
