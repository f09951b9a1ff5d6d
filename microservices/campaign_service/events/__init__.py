"""
Campaign Service Events

Event types, payloads and publisher for campaign service.
"""

from .models import (
    CampaignEventType,
    CampaignStreamConfig,
    CampaignEventData,
    CampaignCreatedEventData,
    CampaignUpdatedEventData,
    CampaignStatusChangedEventData,
    CampaignDeletedEventData,
    TeamMemberEventData,
    ClientEventData,
    DraftEventData,
    DraftsCleanedEventData,
)
from .publishers import CampaignEventPublisher

__all__ = [
    # Event Types
    "CampaignEventType",
    "CampaignStreamConfig",
    # Event Data Models
    "CampaignEventData",
    "CampaignCreatedEventData",
    "CampaignUpdatedEventData",
    "CampaignStatusChangedEventData",
    "CampaignDeletedEventData",
    "TeamMemberEventData",
    "ClientEventData",
    "DraftEventData",
    "DraftsCleanedEventData",
    # Publisher
    "CampaignEventPublisher",
]
