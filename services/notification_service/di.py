"""Dependency injection providers for Notification Service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from clinic_service_libs.kafka_client import KafkaBus
from clinic_service_libs.kafka_error_handler import DeadLetterErrorHandler
from clinic_service_libs.protocols import KafkaPublisherProtocol
from dishka import Provider, Scope, provide
from prometheus_client import REGISTRY, CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.notification_service.config import Settings
from services.notification_service.implementations.notification_repository_impl import (
    SQLAlchemyNotificationRepository,
)
from services.notification_service.implementations.provider_mock_impl import MockEmailProvider
from services.notification_service.implementations.provider_smtp_impl import SMTPEmailProvider
from services.notification_service.implementations.template_renderer_impl import (
    JinjaTemplateRenderer,
)
from services.notification_service.kafka_consumer import (
    DeadLetterKafkaConsumer,
    NotificationKafkaConsumer,
)
from services.notification_service.metrics import get_metrics
from services.notification_service.notification_handler import NotificationHandlerService
from services.notification_service.protocols import (
    EmailSenderProtocol,
    NotificationRepositoryProtocol,
    TemplateRendererProtocol,
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
    async def provide_kafka_publisher(
        self, settings: Settings
    ) -> AsyncIterator[KafkaPublisherProtocol]:
        """Producer used only for dead-letter routing."""
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
    scope = Scope.APP

    @provide
    def provide_notification_repository(self) -> NotificationRepositoryProtocol:
        return SQLAlchemyNotificationRepository()

    @provide
    def provide_email_sender(self, settings: Settings) -> EmailSenderProtocol:
        if settings.EMAIL_PROVIDER == "smtp":
            return SMTPEmailProvider(settings)
        return MockEmailProvider(settings)

    @provide
    def provide_template_renderer(self, settings: Settings) -> TemplateRendererProtocol:
        return JinjaTemplateRenderer(settings.TEMPLATE_PATH)

    @provide
    def provide_dead_letter_error_handler(
        self, publisher: KafkaPublisherProtocol, settings: Settings
    ) -> DeadLetterErrorHandler:
        return DeadLetterErrorHandler(
            publisher=publisher,
            backoff_ms=settings.RETRY_BACKOFF_MS,
            max_retries=settings.RETRY_MAX_RETRIES,
        )


class ServiceProvider(Provider):
    scope = Scope.APP

    @provide
    def provide_notification_handler(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: NotificationRepositoryProtocol,
        email_sender: EmailSenderProtocol,
        template_renderer: TemplateRendererProtocol,
        settings: Settings,
        metrics: dict[str, Any],
    ) -> NotificationHandlerService:
        return NotificationHandlerService(
            session_factory=session_factory,
            repository=repository,
            email_sender=email_sender,
            template_renderer=template_renderer,
            settings=settings,
            metrics=metrics,
        )

    @provide
    def provide_notification_consumer(
        self,
        settings: Settings,
        handler_service: NotificationHandlerService,
        error_handler: DeadLetterErrorHandler,
        metrics: dict[str, Any],
    ) -> NotificationKafkaConsumer:
        return NotificationKafkaConsumer(
            settings=settings,
            handler_service=handler_service,
            error_handler=error_handler,
            metrics=metrics,
        )

    @provide
    def provide_dead_letter_consumer(
        self, settings: Settings, metrics: dict[str, Any]
    ) -> DeadLetterKafkaConsumer:
        return DeadLetterKafkaConsumer(settings=settings, metrics=metrics)


class NotificationServiceProvider(Provider):
    """Exposes the engine created in create_app."""

    def __init__(self, engine: AsyncEngine):
        super().__init__()
        self.engine = engine

    @provide(scope=Scope.APP)
    def provide_engine(self) -> AsyncEngine:
        return self.engine
