"""
Campaign Event Data Models

Event type definitions and data structures for campaign service events.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class CampaignEventType(str, Enum):
    """
    Events published by campaign_service.

    These are the authoritative event types for this service.
    Other services should reference these when subscribing.
    """
    # Campaign lifecycle events
    CREATED = "campaign.created"
    IMPORTED = "campaign.imported"
    UPDATED = "campaign.updated"
    PUBLISHED = "campaign.published"
    STATUS_CHANGED = "campaign.status_changed"
    DELETED = "campaign.deleted"

    # Membership events
    TEAM_MEMBER_ADDED = "campaign.team_member.added"
    TEAM_MEMBER_REMOVED = "campaign.team_member.removed"
    TEAM_MEMBER_ROLE_CHANGED = "campaign.team_member.role_changed"
    CLIENT_ADDED = "campaign.client.added"
    CLIENT_REMOVED = "campaign.client.removed"

    # Draft events
    DRAFT_SAVED = "campaign.draft.saved"
    DRAFT_DELETED = "campaign.draft.deleted"
    DRAFTS_CLEANED = "campaign.drafts.cleaned"


class CampaignStreamConfig:
    """Stream configuration for campaign_service"""
    STREAM_NAME = "campaign-stream"
    SUBJECTS = ["campaign.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "campaign"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Event Data Models - Published Events
# =============================================================================


class CampaignEventData(BaseModel):
    """Fields shared by every campaign event"""
    campaign_id: str = Field(..., description="Campaign ID")
    organization_id: str = Field(..., description="Organization ID")
    actor_id: str = Field(..., description="User who performed the change")
    recipients: List[str] = Field(
        default_factory=list,
        description="Team members to notify (actor and muted members excluded)",
    )
    timestamp: datetime = Field(default_factory=_utcnow, description="Event timestamp")


class CampaignCreatedEventData(CampaignEventData):
    """campaign.created / campaign.imported event data"""
    name: str = Field(..., description="Campaign name")
    status: str = Field(..., description="Initial status")
    source: str = Field(..., description="direct, wizard or import")
    import_platform: Optional[str] = Field(None, description="Platform for imported campaigns")
    import_external_id: Optional[str] = Field(None, description="External ID for imported campaigns")


class CampaignUpdatedEventData(CampaignEventData):
    """campaign.updated event data"""
    name: str = Field(..., description="Campaign name")
    changed_fields: List[str] = Field(..., description="List of changed field names")


class CampaignStatusChangedEventData(CampaignEventData):
    """campaign.published / campaign.status_changed event data"""
    name: str = Field(..., description="Campaign name")
    old_status: str = Field(..., description="Status before the transition")
    new_status: str = Field(..., description="Status after the transition")


class CampaignDeletedEventData(CampaignEventData):
    """campaign.deleted event data"""
    name: str = Field(..., description="Campaign name")


class TeamMemberEventData(CampaignEventData):
    """campaign.team_member.* event data"""
    user_id: str = Field(..., description="Affected team member")
    role: Optional[str] = Field(None, description="Role after the change")
    old_role: Optional[str] = Field(None, description="Role before a role change")


class ClientEventData(CampaignEventData):
    """campaign.client.* event data"""
    user_id: str = Field(..., description="Affected client")


class DraftEventData(BaseModel):
    """campaign.draft.* event data"""
    draft_id: str = Field(..., description="Draft ID")
    organization_id: str = Field(..., description="Organization ID")
    actor_id: str = Field(..., description="Draft owner")
    name: Optional[str] = Field(None, description="Draft name")
    step: Optional[int] = Field(None, description="Wizard step")
    created: bool = Field(False, description="True when the save inserted a new draft")
    timestamp: datetime = Field(default_factory=_utcnow, description="Event timestamp")


class DraftsCleanedEventData(BaseModel):
    """campaign.drafts.cleaned event data"""
    deleted_count: int = Field(..., description="Number of drafts removed")
    deleted_ids: List[str] = Field(default_factory=list, description="Removed draft IDs")
    triggered_by: Optional[str] = Field(None, description="User for manual sweeps, None for scheduled")
    timestamp: datetime = Field(default_factory=_utcnow, description="Event timestamp")


__all__ = [
    "CampaignEventType",
    "CampaignStreamConfig",
    "CampaignEventData",
    "CampaignCreatedEventData",
    "CampaignUpdatedEventData",
    "CampaignStatusChangedEventData",
    "CampaignDeletedEventData",
    "TeamMemberEventData",
    "ClientEventData",
    "DraftEventData",
    "DraftsCleanedEventData",
]
