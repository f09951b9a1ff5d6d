"""
Campaign Query Service

Read operations. Candidate rows are loaded through the repository
indexes (organization, creator, import source) and then filtered with
the authorization predicates; nothing here writes.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from . import permissions
from .campaign_service import require_user
from .helpers import (
    calculate_campaign_duration,
    calculate_estimated_reach,
    is_draft_expired,
)
from .models import (
    Campaign,
    CampaignCategory,
    CampaignDraft,
    CampaignPermissions,
    CampaignStats,
    CampaignStatus,
    CampaignTeam,
    CurrentUser,
    TeamRole,
)
from .protocols import (
    CampaignNotFoundError,
    CampaignPermissionError,
    CampaignRepositoryProtocol,
    DraftRepositoryProtocol,
)

logger = logging.getLogger(__name__)


class CampaignQueryService:
    """Authorization-filtered reads over campaigns and drafts"""

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        draft_repository: DraftRepositoryProtocol,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.draft_repository = draft_repository
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _visible(self, campaigns: List[Campaign], user: CurrentUser) -> List[Campaign]:
        return [c for c in campaigns if permissions.can_view(user.user_id, c)]

    # ====================
    # Campaign reads
    # ====================

    async def list_campaigns_by_organization(
        self,
        organization_id: str,
        user: CurrentUser,
        status: Optional[CampaignStatus] = None,
    ) -> List[Campaign]:
        user = require_user(user)
        campaigns = await self.repository.list_campaigns(organization_id=organization_id, status=status)
        return self._visible(campaigns, user)

    async def get_campaign(self, campaign_id: str, user: CurrentUser) -> Optional[Campaign]:
        """
        Single campaign read.

        Missing id returns None; an existing campaign the user cannot
        view raises a permission error.
        """
        user = require_user(user)
        campaign = await self.repository.get_campaign(campaign_id)
        if campaign is None:
            return None
        if not permissions.can_view(user.user_id, campaign):
            raise CampaignPermissionError("Not authorized to view this campaign")
        return campaign

    async def list_campaigns_by_creator(
        self,
        user: CurrentUser,
        created_by: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
    ) -> List[Campaign]:
        """Campaigns created by a user (the caller by default)"""
        user = require_user(user)
        campaigns = await self.repository.list_campaigns(
            created_by=created_by or user.user_id, status=status
        )
        return self._visible(campaigns, user)

    async def list_campaigns_by_import_source(
        self, platform: str, external_id: str, user: CurrentUser
    ) -> List[Campaign]:
        user = require_user(user)
        campaigns = await self.repository.find_by_import_source(platform, external_id)
        return self._visible(campaigns, user)

    async def search_campaigns(
        self,
        organization_id: str,
        term: str,
        user: CurrentUser,
        status: Optional[CampaignStatus] = None,
        category: Optional[CampaignCategory] = None,
    ) -> List[Campaign]:
        """Case-insensitive match on name or description"""
        campaigns = await self.list_campaigns_by_organization(organization_id, user, status=status)
        needle = (term or "").strip().lower()
        results = []
        for campaign in campaigns:
            if category and campaign.category != CampaignCategory(category):
                continue
            if needle and needle not in campaign.name.lower() and needle not in campaign.description.lower():
                continue
            results.append(campaign)
        return results

    async def get_campaign_stats(self, organization_id: str, user: CurrentUser) -> CampaignStats:
        """Counts, budget, reach and duration over the campaigns the user can view"""
        campaigns = await self.list_campaigns_by_organization(organization_id, user)
        stats = CampaignStats(total=len(campaigns))
        total_days = 0
        for campaign in campaigns:
            field = campaign.status.value
            setattr(stats, field, getattr(stats, field) + 1)
            stats.total_budget += campaign.budget
            stats.estimated_reach += calculate_estimated_reach(campaign.audiences)
            total_days += calculate_campaign_duration(campaign.start_date, campaign.end_date)
        if stats.total:
            stats.average_budget = stats.total_budget / stats.total
            stats.average_duration_days = total_days / stats.total
        return stats

    # ====================
    # Membership reads
    # ====================

    async def get_campaign_team(self, campaign_id: str, user: CurrentUser) -> CampaignTeam:
        user = require_user(user)
        campaign = await self.repository.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError("Campaign not found")
        if not permissions.can_view(user.user_id, campaign):
            raise CampaignPermissionError("Not authorized to view this campaign")
        return CampaignTeam(
            team_members=campaign.team_members,
            clients=campaign.clients,
            created_by=campaign.created_by,
        )

    async def list_campaigns_as_team_member(
        self,
        user: CurrentUser,
        organization_id: Optional[str] = None,
        role: Optional[TeamRole] = None,
    ) -> List[Campaign]:
        user = require_user(user)
        campaigns = await self.repository.list_campaigns(organization_id=organization_id)
        return [
            c for c in self._visible(campaigns, user)
            if permissions.is_team_member(user.user_id, c, role)
        ]

    async def list_campaigns_as_client(
        self, user: CurrentUser, organization_id: Optional[str] = None
    ) -> List[Campaign]:
        user = require_user(user)
        campaigns = await self.repository.list_campaigns(organization_id=organization_id)
        return [c for c in self._visible(campaigns, user) if permissions.is_client(user.user_id, c)]

    async def get_user_campaign_permissions(
        self, campaign_id: str, user: CurrentUser
    ) -> CampaignPermissions:
        user = require_user(user)
        campaign = await self.repository.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError("Campaign not found")
        return permissions.get_campaign_permissions(user.user_id, campaign)

    # ====================
    # Draft reads
    # ====================

    async def list_user_drafts(
        self, user: CurrentUser, organization_id: Optional[str] = None
    ) -> List[CampaignDraft]:
        """The caller's drafts that have not expired yet"""
        user = require_user(user)
        now = self.clock()
        drafts = await self.draft_repository.list_drafts(user.user_id, organization_id)
        return [d for d in drafts if not is_draft_expired(d.expires_at, now)]

    async def get_draft(self, draft_id: str, user: CurrentUser) -> Optional[CampaignDraft]:
        user = require_user(user)
        draft = await self.draft_repository.get_draft(draft_id)
        if draft is None or is_draft_expired(draft.expires_at, self.clock()):
            return None
        if draft.created_by != user.user_id:
            raise CampaignPermissionError("Not authorized to access this draft")
        return draft

    async def list_expired_drafts(self, now: Optional[datetime] = None) -> List[CampaignDraft]:
        """Internal: drafts past their expiry that cleanup would remove"""
        return await self.draft_repository.list_expired_drafts(now or self.clock())


__all__ = ["CampaignQueryService"]
