"""
Component Test Fixtures for Campaign Service

Provides fixtures for component testing with mocked dependencies.
Uses FastAPI TestClient for API testing.
"""

import asyncio
import pytest
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.protocols import CampaignConflictError
from microservices.campaign_service.query_service import CampaignQueryService
from tests.contracts.campaign.data_contract import (
    Campaign,
    CampaignBuilder,
    CampaignDraft,
    CampaignStatus,
    CampaignTestDataFactory,
    TeamRole,
)


# ====================
# Mock Repositories
# ====================


class MockCampaignRepository:
    """Mock repository for component testing"""

    def __init__(self):
        self.campaigns: Dict[str, Campaign] = {}
        self.updates: List[Dict[str, Any]] = []
        self.locks: Dict[str, asyncio.Lock] = {}

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        source = campaign.import_source
        if source and await self.find_by_import_source(source.platform, source.external_id):
            raise CampaignConflictError(
                f"Campaign already imported from {source.platform} (ID: {source.external_id})"
            )
        self.campaigns[campaign.campaign_id] = campaign
        return campaign

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self.campaigns.get(campaign_id)

    @asynccontextmanager
    async def lock_campaign(self, campaign_id: str):
        async with self.locks.setdefault(campaign_id, asyncio.Lock()):
            # Yield like a database round trip so other mutations can interleave
            await asyncio.sleep(0)
            yield self.campaigns.get(campaign_id)

    async def update_campaign(self, campaign_id: str, updates: dict) -> Optional[Campaign]:
        await asyncio.sleep(0)
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            return None
        self.updates.append(dict(updates))
        merged = campaign.model_dump()
        merged.update(updates)
        updated = Campaign.model_validate(merged)
        self.campaigns[campaign_id] = updated
        return updated

    async def delete_campaign(self, campaign_id: str) -> bool:
        return self.campaigns.pop(campaign_id, None) is not None

    async def list_campaigns(
        self,
        organization_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        created_by: Optional[str] = None,
    ) -> List[Campaign]:
        results = list(self.campaigns.values())
        if organization_id:
            results = [c for c in results if c.organization_id == organization_id]
        if status:
            results = [c for c in results if c.status == CampaignStatus(status)]
        if created_by:
            results = [c for c in results if c.created_by == created_by]
        results.sort(key=lambda c: c.created_at, reverse=True)
        return results

    async def find_by_import_source(self, platform: str, external_id: str) -> List[Campaign]:
        return [
            c for c in self.campaigns.values()
            if c.import_source
            and c.import_source.platform == platform
            and c.import_source.external_id == external_id
        ]

    def add(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.campaign_id] = campaign
        return campaign


class MockDraftRepository:
    """Mock draft repository for component testing"""

    def __init__(self):
        self.drafts: Dict[str, CampaignDraft] = {}
        self.deleted: List[str] = []

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def create_draft(self, draft: CampaignDraft) -> CampaignDraft:
        self.drafts[draft.draft_id] = draft
        return draft

    async def get_draft(self, draft_id: str) -> Optional[CampaignDraft]:
        return self.drafts.get(draft_id)

    async def update_draft(self, draft_id: str, updates: dict) -> Optional[CampaignDraft]:
        draft = self.drafts.get(draft_id)
        if draft is None:
            return None
        allowed = {k: v for k, v in updates.items() if k in {"name", "data", "step", "updated_at"}}
        updated = draft.model_copy(update=allowed)
        self.drafts[draft_id] = updated
        return updated

    async def delete_draft(self, draft_id: str) -> bool:
        if self.drafts.pop(draft_id, None) is None:
            return False
        self.deleted.append(draft_id)
        return True

    async def list_drafts(
        self, created_by: str, organization_id: Optional[str] = None
    ) -> List[CampaignDraft]:
        results = [d for d in self.drafts.values() if d.created_by == created_by]
        if organization_id:
            results = [d for d in results if d.organization_id == organization_id]
        results.sort(key=lambda d: d.updated_at, reverse=True)
        return results

    async def list_expired_drafts(self, now: datetime) -> List[CampaignDraft]:
        return [d for d in self.drafts.values() if d.expires_at < now]

    def add(self, draft: CampaignDraft) -> CampaignDraft:
        self.drafts[draft.draft_id] = draft
        return draft


# ====================
# Mock Collaborators
# ====================


class MockEventBus:
    """Mock NATS event bus recording published events"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []
        self.fail = False

    async def publish_event(self, event) -> bool:
        if self.fail:
            raise ConnectionError("NATS unavailable")
        self.published_events.append(event.to_dict())
        return True

    async def close(self) -> None:
        pass

    def get_events_by_type(self, event_type) -> List[Dict]:
        value = getattr(event_type, "value", event_type)
        return [e for e in self.published_events if e["type"] == value]

    def clear_events(self):
        self.published_events = []


class MockOrganizationClient:
    """Mock organization service client"""

    def __init__(self):
        self.missing: set = set()
        self.checked: List[str] = []

    async def organization_exists(self, organization_id: str) -> bool:
        self.checked.append(organization_id)
        return organization_id not in self.missing


class MutableClock:
    """Injectable clock for the services"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide CampaignTestDataFactory"""
    return CampaignTestDataFactory


@pytest.fixture
def mock_repository():
    """Fresh mock repository for each test"""
    return MockCampaignRepository()


@pytest.fixture
def mock_draft_repository():
    return MockDraftRepository()


@pytest.fixture
def mock_event_bus():
    """Fresh mock event bus for each test"""
    return MockEventBus()


@pytest.fixture
def mock_org_client():
    return MockOrganizationClient()


@pytest.fixture
def clock():
    return MutableClock(CampaignTestDataFactory.NOW)


@pytest.fixture
def campaign_service(mock_repository, mock_draft_repository, mock_event_bus, mock_org_client, clock):
    """CampaignService wired to mocks"""
    return CampaignService(
        repository=mock_repository,
        draft_repository=mock_draft_repository,
        event_bus=mock_event_bus,
        organization_client=mock_org_client,
        clock=clock,
    )


@pytest.fixture
def query_service(mock_repository, mock_draft_repository, clock):
    return CampaignQueryService(
        repository=mock_repository,
        draft_repository=mock_draft_repository,
        clock=clock,
    )


@pytest.fixture
def users():
    """One acting user per role"""
    return {
        role: CampaignTestDataFactory.make_user()
        for role in ("creator", "owner", "editor", "viewer", "client", "stranger")
    }


@pytest.fixture
def team_campaign(users, mock_repository):
    """Stored draft campaign with one user per role"""
    campaign = (
        CampaignBuilder(users["creator"].user_id)
        .with_member(users["owner"].user_id, TeamRole.OWNER)
        .with_member(users["editor"].user_id, TeamRole.EDITOR)
        .with_member(users["viewer"].user_id, TeamRole.VIEWER)
        .with_client(users["client"].user_id)
        .build()
    )
    return mock_repository.add(campaign)
