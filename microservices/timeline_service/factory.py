"""
Timeline Service Factory

Factory for creating timeline service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import PlannerConfig, get_settings
from core.nats_client import NATSEventBus
from core.postgres_client import PostgresClient

from .events.publishers import TimelineEventPublisher
from .timeline_repository import TimelineRepository
from .timeline_service import TimelineService

logger = logging.getLogger(__name__)


class TimelineServiceFactory:
    """Factory for creating timeline service components"""

    def __init__(self, config: Optional[PlannerConfig] = None):
        self.config = config or get_settings()
        self._repository: Optional[TimelineRepository] = None
        self._service: Optional[TimelineService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._event_publisher: Optional[TimelineEventPublisher] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Timeline Service components...")
        service_config = self.config.service

        # Initialize repository
        db = PostgresClient(
            service_name=service_config.service_name,
            infra=self.config.infrastructure,
        )
        self._repository = TimelineRepository(db=db, config=service_config)
        await self._repository.initialize()

        # Initialize NATS client
        if service_config.events_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=service_config.service_name,
                    infra=self.config.infrastructure,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None

        self._event_publisher = TimelineEventPublisher(self._nats_client)

        # Initialize main service
        self._service = TimelineService(
            repository=self._repository,
            event_bus=self._nats_client,
            config=service_config,
            event_publisher=self._event_publisher,
        )

        if service_config.sync_organization_id:
            await self._service.start_sync(service_config.sync_organization_id)

        logger.info("Timeline Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Timeline Service components...")

        if self._service:
            await self._service.stop_sync()

        if self._nats_client:
            await self._nats_client.close()

        if self._repository:
            await self._repository.close()

        logger.info("Timeline Service components closed")

    @property
    def repository(self) -> TimelineRepository:
        """Get timeline repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def service(self) -> TimelineService:
        """Get timeline service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def event_publisher(self) -> Optional[TimelineEventPublisher]:
        """Get event publisher"""
        return self._event_publisher


__all__ = ["TimelineServiceFactory"]
