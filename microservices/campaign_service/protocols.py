"""
Campaign Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol

from .models import (
    Campaign,
    CampaignDraft,
    CampaignStatus,
)


# ====================
# Repository Protocols
# ====================


class CampaignRepositoryProtocol(Protocol):
    """Protocol for campaign data repository"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        """Insert a new campaign"""
        ...

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID"""
        ...

    def lock_campaign(self, campaign_id: str) -> AsyncContextManager[Optional[Campaign]]:
        """Hold a campaign exclusively; writes inside the block are atomic with the read"""
        ...

    async def update_campaign(
        self, campaign_id: str, updates: Dict[str, Any]
    ) -> Optional[Campaign]:
        """Persist changed fields only"""
        ...

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete campaign; False when it was already absent"""
        ...

    async def list_campaigns(
        self,
        organization_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        created_by: Optional[str] = None,
    ) -> List[Campaign]:
        """List campaigns narrowed by organization, status or creator"""
        ...

    async def find_by_import_source(
        self, platform: str, external_id: str
    ) -> List[Campaign]:
        """Campaigns imported from (platform, external_id)"""
        ...


class DraftRepositoryProtocol(Protocol):
    """Protocol for campaign draft repository"""

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def create_draft(self, draft: CampaignDraft) -> CampaignDraft:
        """Insert a new draft"""
        ...

    async def get_draft(self, draft_id: str) -> Optional[CampaignDraft]:
        """Get draft by ID, expired or not"""
        ...

    async def update_draft(
        self, draft_id: str, updates: Dict[str, Any]
    ) -> Optional[CampaignDraft]:
        """Update draft fields; expires_at is never among them"""
        ...

    async def delete_draft(self, draft_id: str) -> bool:
        """Delete draft; deleting an absent draft is a no-op returning False"""
        ...

    async def list_drafts(
        self, created_by: str, organization_id: Optional[str] = None
    ) -> List[CampaignDraft]:
        """Drafts of a user, optionally within one organization"""
        ...

    async def list_expired_drafts(self, now: datetime) -> List[CampaignDraft]:
        """Drafts whose expires_at is before now"""
        ...


# ====================
# Collaborator Protocols
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...


class OrganizationClientProtocol(Protocol):
    """Protocol for organization service client"""

    async def organization_exists(self, organization_id: str) -> bool:
        """Check that an organization exists"""
        ...


class IdentityClientProtocol(Protocol):
    """Protocol for the identity collaborator (account service)"""

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stable profile for a user id, None when unknown"""
        ...


# ====================
# Custom Exceptions
# ====================


class CampaignServiceError(Exception):
    """Base exception for campaign service errors"""
    pass


class NotAuthenticatedError(CampaignServiceError):
    """Raised when no acting user could be resolved"""
    pass


class ResourceNotFoundError(CampaignServiceError):
    """Raised when a referenced entity is absent"""
    pass


class CampaignNotFoundError(ResourceNotFoundError):
    """Raised when campaign is not found"""
    pass


class DraftNotFoundError(ResourceNotFoundError):
    """Raised when draft is not found"""
    pass


class OrganizationNotFoundError(ResourceNotFoundError):
    """Raised when organization is not found"""
    pass


class TeamMemberNotFoundError(ResourceNotFoundError):
    """Raised when a user is not on the team or client list"""
    pass


class CampaignPermissionError(CampaignServiceError):
    """Raised when an authorization predicate denies the action"""
    pass


class CampaignValidationError(CampaignServiceError):
    """
    Raised when validation fails.

    Carries every violated rule; the message joins them with the
    validation delimiter so callers can split it back apart.
    """

    def __init__(self, errors: List[str], prefix: Optional[str] = None):
        from .validation import VALIDATION_ERROR_DELIMITER, VALIDATION_ERROR_PREFIX

        prefix = prefix or VALIDATION_ERROR_PREFIX
        self.errors = list(errors)
        super().__init__(f"{prefix}: {VALIDATION_ERROR_DELIMITER.join(self.errors)}")


class CampaignConflictError(CampaignServiceError):
    """Raised on duplicate import source or duplicate assignment"""
    pass


class InvalidCampaignStateError(CampaignServiceError):
    """Raised when campaign is in invalid state for operation"""

    def __init__(self, message: str, current_status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.current_status = current_status


__all__ = [
    "CampaignRepositoryProtocol",
    "DraftRepositoryProtocol",
    "EventBusProtocol",
    "OrganizationClientProtocol",
    "IdentityClientProtocol",
    "CampaignServiceError",
    "NotAuthenticatedError",
    "ResourceNotFoundError",
    "CampaignNotFoundError",
    "DraftNotFoundError",
    "OrganizationNotFoundError",
    "TeamMemberNotFoundError",
    "CampaignPermissionError",
    "CampaignValidationError",
    "CampaignConflictError",
    "InvalidCampaignStateError",
]
