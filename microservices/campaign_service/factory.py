"""
Campaign Service Factory

Factory for creating campaign service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import CampaignServiceConfig, get_settings
from core.nats_client import NATSEventBus
from core.postgres_client import PostgresClientWrapper

from .campaign_repository import CampaignRepository
from .campaign_service import CampaignService
from .cleanup import DraftCleanupScheduler
from .clients.account_client import AccountClient
from .clients.organization_client import OrganizationClient
from .draft_repository import DraftRepository
from .query_service import CampaignQueryService

logger = logging.getLogger(__name__)


class CampaignServiceFactory:
    """Factory for creating campaign service components"""

    def __init__(self, config: Optional[CampaignServiceConfig] = None):
        self.config = config or get_settings()
        self._db: Optional[PostgresClientWrapper] = None
        self._repository: Optional[CampaignRepository] = None
        self._draft_repository: Optional[DraftRepository] = None
        self._service: Optional[CampaignService] = None
        self._query_service: Optional[CampaignQueryService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._organization_client: Optional[OrganizationClient] = None
        self._account_client: Optional[AccountClient] = None
        self._cleanup_scheduler: Optional[DraftCleanupScheduler] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Campaign Service components...")

        # Both repositories share one pool
        self._db = PostgresClientWrapper(
            service_name=self.config.service_name,
            config=self.config.infra,
        )
        self._repository = CampaignRepository(db=self._db)
        self._draft_repository = DraftRepository(db=self._db)
        await self._repository.initialize()
        await self._draft_repository.initialize()

        # Initialize NATS client
        if self.config.infra.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=self.config.service_name,
                    config=self.config.infra,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}. Continuing without event publishing.")
                self._nats_client = None

        # Initialize service clients
        if self.config.verify_organizations:
            self._organization_client = OrganizationClient(self.config.services)
        self._account_client = AccountClient(self.config.services)

        # Initialize main services
        self._service = CampaignService(
            repository=self._repository,
            draft_repository=self._draft_repository,
            event_bus=self._nats_client,
            organization_client=self._organization_client,
        )
        self._query_service = CampaignQueryService(
            repository=self._repository,
            draft_repository=self._draft_repository,
        )

        if self.config.draft_cleanup_enabled:
            self._cleanup_scheduler = DraftCleanupScheduler(
                self._service,
                interval_seconds=self.config.draft_cleanup_interval_seconds,
            )
            self._cleanup_scheduler.start()

        logger.info("Campaign Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Campaign Service components...")

        if self._cleanup_scheduler:
            await self._cleanup_scheduler.stop()

        if self._nats_client:
            await self._nats_client.close()

        if self._db:
            await self._db.close()

        logger.info("Campaign Service components closed")

    @property
    def repository(self) -> CampaignRepository:
        """Get campaign repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def draft_repository(self) -> DraftRepository:
        """Get draft repository"""
        if not self._draft_repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._draft_repository

    @property
    def service(self) -> CampaignService:
        """Get campaign service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def query_service(self) -> CampaignQueryService:
        """Get campaign query service"""
        if not self._query_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._query_service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def account_client(self) -> AccountClient:
        """Get account client"""
        if not self._account_client:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._account_client

    @property
    def cleanup_scheduler(self) -> Optional[DraftCleanupScheduler]:
        return self._cleanup_scheduler


__all__ = ["CampaignServiceFactory"]
