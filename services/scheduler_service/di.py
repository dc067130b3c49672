"""Dependency injection providers for Scheduler Service.

Every component is APP scoped: repositories are stateless and take the
session opened by the service layer for each unit of work.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from clinic_service_libs.distributed_lock import RedisDistributedLock
from clinic_service_libs.kafka_client import KafkaBus
from clinic_service_libs.protocols import (
    DistributedLockProtocol,
    KafkaPublisherProtocol,
    RedisClientProtocol,
)
from clinic_service_libs.redis_client import RedisClient
from dishka import Provider, Scope, provide
from prometheus_client import REGISTRY, CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.scheduler_service.appointment_service import AppointmentService
from services.scheduler_service.config import Settings
from services.scheduler_service.implementations.appointment_repository_impl import (
    SQLAlchemyAppointmentRepository,
)
from services.scheduler_service.implementations.outbox_relay import (
    OutboxRelay,
    OutboxRelayWorker,
)
from services.scheduler_service.implementations.outbox_repository_impl import (
    SQLAlchemyOutboxRepository,
)
from services.scheduler_service.implementations.reminder_job import (
    AppointmentReminderService,
    DailyReminderJob,
)
from services.scheduler_service.implementations.user_repository_impl import (
    SQLAlchemyUserRepository,
)
from services.scheduler_service.metrics import get_metrics
from services.scheduler_service.protocols import (
    AppointmentRepositoryProtocol,
    OutboxRepositoryProtocol,
    UserRepositoryProtocol,
)


class CoreProvider(Provider):
    """Core infrastructure providers."""

    scope = Scope.APP

    @provide
    def provide_settings(self) -> Settings:
        return Settings()

    @provide
    def provide_metrics_registry(self) -> CollectorRegistry:
        return REGISTRY

    @provide
    def provide_metrics(self) -> dict[str, Any]:
        return get_metrics()

    @provide
    async def provide_redis_client(
        self, settings: Settings
    ) -> AsyncIterator[RedisClientProtocol]:
        """Provide Redis client backing the relay lock."""
        client = RedisClient(
            client_id=f"{settings.SERVICE_NAME}-redis",
            redis_url=settings.REDIS_URL,
        )
        await client.start()
        try:
            yield client
        finally:
            await client.stop()

    @provide
    def provide_distributed_lock(
        self, redis_client: RedisClientProtocol, settings: Settings
    ) -> DistributedLockProtocol:
        return RedisDistributedLock(redis_client, key_prefix=f"{settings.SERVICE_NAME}:lock:")

    @provide
    async def provide_kafka_publisher(
        self, settings: Settings
    ) -> AsyncIterator[KafkaPublisherProtocol]:
        kafka_bus = KafkaBus(
            client_id=settings.PRODUCER_CLIENT_ID,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        )
        await kafka_bus.start()
        try:
            yield kafka_bus
        finally:
            await kafka_bus.stop()

    @provide
    def provide_session_maker(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class ImplementationProvider(Provider):
    """Repository implementations for protocol contracts."""

    scope = Scope.APP

    @provide
    def provide_outbox_repository(self) -> OutboxRepositoryProtocol:
        return SQLAlchemyOutboxRepository()

    @provide
    def provide_appointment_repository(self) -> AppointmentRepositoryProtocol:
        return SQLAlchemyAppointmentRepository()

    @provide
    def provide_user_repository(self) -> UserRepositoryProtocol:
        return SQLAlchemyUserRepository()


class ServiceProvider(Provider):
    """Business services and background workers."""

    scope = Scope.APP

    @provide
    def provide_appointment_service(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        appointment_repository: AppointmentRepositoryProtocol,
        user_repository: UserRepositoryProtocol,
        outbox_repository: OutboxRepositoryProtocol,
        settings: Settings,
    ) -> AppointmentService:
        return AppointmentService(
            session_factory=session_factory,
            appointment_repository=appointment_repository,
            user_repository=user_repository,
            outbox_repository=outbox_repository,
            settings=settings,
        )

    @provide
    def provide_outbox_relay(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        outbox_repository: OutboxRepositoryProtocol,
        kafka_publisher: KafkaPublisherProtocol,
        settings: Settings,
        metrics: dict[str, Any],
    ) -> OutboxRelay:
        return OutboxRelay(
            session_factory=session_factory,
            outbox_repository=outbox_repository,
            kafka_bus=kafka_publisher,
            settings=settings,
            metrics=metrics,
        )

    @provide
    def provide_outbox_relay_worker(
        self,
        relay: OutboxRelay,
        lock: DistributedLockProtocol,
        settings: Settings,
        metrics: dict[str, Any],
    ) -> OutboxRelayWorker:
        return OutboxRelayWorker(relay=relay, lock=lock, settings=settings, metrics=metrics)

    @provide
    def provide_reminder_service(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        appointment_repository: AppointmentRepositoryProtocol,
        outbox_repository: OutboxRepositoryProtocol,
        settings: Settings,
        metrics: dict[str, Any],
    ) -> AppointmentReminderService:
        return AppointmentReminderService(
            session_factory=session_factory,
            appointment_repository=appointment_repository,
            outbox_repository=outbox_repository,
            settings=settings,
            metrics=metrics,
        )

    @provide
    def provide_daily_reminder_job(
        self, reminder_service: AppointmentReminderService, settings: Settings
    ) -> DailyReminderJob:
        return DailyReminderJob(reminder_service=reminder_service, settings=settings)


class SchedulerServiceProvider(Provider):
    """Exposes the engine created in create_app."""

    def __init__(self, engine: AsyncEngine):
        super().__init__()
        self.engine = engine

    @provide(scope=Scope.APP)
    def provide_engine(self) -> AsyncEngine:
        return self.engine
