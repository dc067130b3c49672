"""Dependency injection providers for History Service."""

from __future__ import annotations

from typing import Any

from dishka import Provider, Scope, provide
from prometheus_client import REGISTRY, CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.history_service.config import Settings
from services.history_service.implementations.processed_event_ledger import (
    SQLAlchemyProcessedEventLedger,
)
from services.history_service.implementations.projection_repository_impl import (
    SQLAlchemyProjectionRepository,
)
from services.history_service.kafka_consumer import HistoryKafkaConsumer
from services.history_service.metrics import get_metrics
from services.history_service.projection_service import HistoryProjectionService
from services.history_service.protocols import (
    ProcessedEventLedgerProtocol,
    ProjectionRepositoryProtocol,
)
from services.history_service.query_service import HistoryQueryService


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
    def provide_session_maker(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class ImplementationProvider(Provider):
    scope = Scope.APP

    @provide
    def provide_ledger(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> ProcessedEventLedgerProtocol:
        return SQLAlchemyProcessedEventLedger(session_factory)

    @provide
    def provide_projection_repository(self) -> ProjectionRepositoryProtocol:
        return SQLAlchemyProjectionRepository()


class ServiceProvider(Provider):
    scope = Scope.APP

    @provide
    def provide_projection_service(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: ProcessedEventLedgerProtocol,
        repository: ProjectionRepositoryProtocol,
        metrics: dict[str, Any],
    ) -> HistoryProjectionService:
        return HistoryProjectionService(
            session_factory=session_factory,
            ledger=ledger,
            repository=repository,
            metrics=metrics,
        )

    @provide
    def provide_query_service(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: ProjectionRepositoryProtocol,
        settings: Settings,
    ) -> HistoryQueryService:
        return HistoryQueryService(
            session_factory=session_factory, repository=repository, settings=settings
        )

    @provide
    def provide_kafka_consumer(
        self,
        settings: Settings,
        projection_service: HistoryProjectionService,
        metrics: dict[str, Any],
    ) -> HistoryKafkaConsumer:
        return HistoryKafkaConsumer(
            settings=settings, projection_service=projection_service, metrics=metrics
        )


class HistoryServiceProvider(Provider):
    """Exposes the engine created in create_app."""

    def __init__(self, engine: AsyncEngine):
        super().__init__()
        self.engine = engine

    @provide(scope=Scope.APP)
    def provide_engine(self) -> AsyncEngine:
        return self.engine
