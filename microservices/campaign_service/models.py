"""
Campaign Service Data Models

Canonical data structures for campaigns, drafts, wizard assembly payloads
and request/response contracts.

Nested structures are typed but deliberately carry no business-rule
constraints (budget sums, KPI weights, age ranges...). Those rules live
in validation.py so that every violation is reported together instead of
failing on the first pydantic error.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class CampaignStatus(str, Enum):
    """Campaign lifecycle status"""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class CampaignCategory(str, Enum):
    """Campaign category"""
    PR = "pr"
    CONTENT = "content"
    SOCIAL = "social"
    PAID = "paid"
    MIXED = "mixed"


class CampaignPriority(str, Enum):
    """Campaign priority"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TeamRole(str, Enum):
    """Role of a team member on a campaign"""
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class EffectiveRole(str, Enum):
    """Resolved role of a user against a campaign, in priority order"""
    CREATOR = "creator"
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    CLIENT = "client"


class ChannelType(str, Enum):
    """Marketing channel"""
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    EMAIL = "email"
    CONTENT = "content"
    PR = "pr"
    GOOGLE_ADS = "google_ads"
    YOUTUBE = "youtube"


class KPIType(str, Enum):
    """Tracked KPI"""
    REACH = "reach"
    ENGAGEMENT = "engagement"
    CONVERSIONS = "conversions"
    BRAND_AWARENESS = "brand_awareness"
    ROI = "roi"
    CTR = "ctr"
    CPC = "cpc"
    CPM = "cpm"


class KPITimeframe(str, Enum):
    """Measurement window of a KPI"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CAMPAIGN = "campaign"


class AssemblySource(str, Enum):
    """Entry point a campaign document was assembled from"""
    DIRECT = "direct"
    WIZARD = "wizard"
    IMPORT = "import"


SUPPORTED_CURRENCIES = ["USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "SEK", "NOK", "DKK"]

# Fixed lookup, not user-configurable
CHANNEL_MINIMUM_BUDGETS: Dict[str, float] = {
    ChannelType.FACEBOOK.value: 5,
    ChannelType.INSTAGRAM.value: 5,
    ChannelType.TWITTER.value: 10,
    ChannelType.LINKEDIN.value: 10,
    ChannelType.YOUTUBE.value: 15,
    ChannelType.GOOGLE_ADS.value: 20,
    ChannelType.EMAIL.value: 0,
    ChannelType.CONTENT.value: 0,
    ChannelType.PR.value: 0,
}

DRAFT_EXPIRY_DAYS = 30
WIZARD_PREVIEW_STEP = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all contracts"""

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


# =============================================================================
# CAMPAIGN BUILDING BLOCKS
# =============================================================================

class Demographics(BaseContract):
    """Demographic filters of an audience segment"""
    age_range: List[int] = Field(default_factory=lambda: [18, 65])
    gender: Optional[str] = "all"
    locations: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)


class Audience(BaseContract):
    """Audience segment"""
    id: str = Field(default_factory=lambda: f"aud_{uuid4().hex[:12]}")
    name: str = ""
    demographics: Demographics = Field(default_factory=Demographics)
    estimated_size: Optional[int] = None


class ChannelConfig(BaseContract):
    """Channel configuration"""
    type: ChannelType
    enabled: bool = True
    budget: float = 0
    settings: Dict[str, Any] = Field(default_factory=dict)


class KPI(BaseContract):
    """Weighted target metric"""
    type: KPIType
    target: float
    timeframe: KPITimeframe = KPITimeframe.CAMPAIGN
    weight: float = 0


class CustomMetric(BaseContract):
    """User-defined metric"""
    name: str
    description: str = ""
    target: float = 0
    unit: str = ""


class TeamMember(BaseContract):
    """Team member assignment"""
    user_id: str
    role: TeamRole
    assigned_at: datetime = Field(default_factory=_utcnow)
    notifications: bool = True


class CampaignClient(BaseContract):
    """Client (read-only) assignment"""
    user_id: str
    assigned_at: datetime = Field(default_factory=_utcnow)


class ImportSource(BaseContract):
    """Origin of an imported campaign"""
    platform: str
    external_id: str
    imported_at: datetime = Field(default_factory=_utcnow)
    last_sync_at: Optional[datetime] = None


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Campaign(BaseContract):
    """Finalized campaign record"""
    campaign_id: str = Field(default_factory=lambda: f"cmp_{uuid4().hex[:16]}")
    name: str
    description: str = ""
    status: CampaignStatus = CampaignStatus.DRAFT

    start_date: datetime
    end_date: datetime

    budget: float = 0
    currency: str = "USD"
    budget_allocation: Dict[str, float] = Field(default_factory=dict)

    category: CampaignCategory
    priority: CampaignPriority = CampaignPriority.MEDIUM

    audiences: List[Audience] = Field(default_factory=list)
    channels: List[ChannelConfig] = Field(default_factory=list)
    kpis: List[KPI] = Field(default_factory=list)
    custom_metrics: List[CustomMetric] = Field(default_factory=list)

    organization_id: str
    created_by: str
    team_members: List[TeamMember] = Field(default_factory=list)
    clients: List[CampaignClient] = Field(default_factory=list)

    import_source: Optional[ImportSource] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def find_team_member(self, user_id: str) -> Optional[TeamMember]:
        for member in self.team_members:
            if member.user_id == user_id:
                return member
        return None

    def is_client(self, user_id: str) -> bool:
        return any(client.user_id == user_id for client in self.clients)

    def notification_recipients(self, exclude_user_id: Optional[str] = None) -> List[str]:
        """Team members to notify about a change, excluding the actor"""
        return [
            member.user_id
            for member in self.team_members
            if member.user_id != exclude_user_id and member.notifications
        ]


class CampaignDraft(BaseContract):
    """Ephemeral staging record for in-progress wizard data"""
    draft_id: str = Field(default_factory=lambda: f"drf_{uuid4().hex[:16]}")
    name: str
    data: Dict[str, Any] = Field(default_factory=dict)
    step: int = 1
    created_by: str
    organization_id: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime

    @property
    def campaign_name(self) -> Optional[str]:
        """Campaign name stored in the wizard payload, if any"""
        basics = self.data.get("basics") if isinstance(self.data, dict) else None
        if isinstance(basics, dict):
            return basics.get("name")
        return None


# =============================================================================
# IDENTITY
# =============================================================================

class CurrentUser(BaseContract):
    """Resolved acting user, passed explicitly into every operation"""
    user_id: str
    organization_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


# =============================================================================
# WIZARD ASSEMBLY
# =============================================================================

class CampaignWizardData(BaseContract):
    """
    Wizard payload as collected step by step.

    Sections are loosely typed blobs; they are validated field by field
    in assembly.py before becoming a Campaign.
    """
    basics: Optional[Dict[str, Any]] = None
    audience_channels: Optional[Dict[str, Any]] = None
    kpis_metrics: Optional[Dict[str, Any]] = None
    team_access: Optional[Dict[str, Any]] = None


class CampaignAssembly(BaseContract):
    """Tagged campaign document awaiting validation"""
    source: AssemblySource
    document: Dict[str, Any]


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CampaignCreateRequest(BaseContract):
    """Direct campaign creation"""
    name: str
    description: str = ""
    start_date: datetime
    end_date: datetime
    budget: float
    currency: Optional[str] = None
    category: CampaignCategory
    priority: Optional[CampaignPriority] = None
    organization_id: str
    budget_allocation: Optional[Dict[str, float]] = None
    audiences: Optional[List[Audience]] = None
    channels: Optional[List[ChannelConfig]] = None
    kpis: Optional[List[KPI]] = None
    custom_metrics: Optional[List[CustomMetric]] = None


class CampaignWizardCreateRequest(BaseContract):
    """Campaign creation from completed wizard data"""
    organization_id: str
    campaign_data: CampaignWizardData


class CampaignUpdateRequest(BaseContract):
    """Partial campaign update; only supplied fields are merged"""
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    budget: Optional[float] = None
    currency: Optional[str] = None
    budget_allocation: Optional[Dict[str, float]] = None
    category: Optional[CampaignCategory] = None
    priority: Optional[CampaignPriority] = None
    audiences: Optional[List[Audience]] = None
    channels: Optional[List[ChannelConfig]] = None
    kpis: Optional[List[KPI]] = None
    custom_metrics: Optional[List[CustomMetric]] = None


class ImportedCampaignData(BaseContract):
    """Campaign data handed off by an ad-platform import adapter"""
    name: str
    description: str = ""
    start_date: datetime
    end_date: datetime
    budget: float
    currency: str = "USD"
    category: CampaignCategory
    priority: CampaignPriority = CampaignPriority.MEDIUM
    audiences: List[Audience] = Field(default_factory=list)
    channels: List[ChannelConfig] = Field(default_factory=list)
    kpis: List[KPI] = Field(default_factory=list)
    custom_metrics: List[CustomMetric] = Field(default_factory=list)
    budget_allocation: Dict[str, float] = Field(default_factory=dict)
    import_source: ImportSource


class CampaignImportRequest(BaseContract):
    """Import from an external platform"""
    organization_id: str
    campaign_data: ImportedCampaignData


class DraftSaveRequest(BaseContract):
    """Create or update a draft"""
    name: str
    data: Dict[str, Any] = Field(default_factory=dict)
    step: int
    organization_id: str
    draft_id: Optional[str] = None


class StatusUpdateRequest(BaseContract):
    status: CampaignStatus


class TeamMemberAddRequest(BaseContract):
    user_id: str
    role: TeamRole


class TeamMemberRoleUpdateRequest(BaseContract):
    role: TeamRole


class ClientAddRequest(BaseContract):
    user_id: str


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ValidationReport(BaseContract):
    """Outcome of a validation run; never raised"""
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class CampaignResponse(BaseContract):
    campaign: Campaign
    message: Optional[str] = None


class CampaignListResponse(BaseContract):
    campaigns: List[Campaign] = Field(default_factory=list)
    total: int = 0


class DraftResponse(BaseContract):
    draft: CampaignDraft
    message: Optional[str] = None


class DraftListResponse(BaseContract):
    drafts: List[CampaignDraft] = Field(default_factory=list)
    total: int = 0


class CampaignStats(BaseContract):
    """Statistics over the campaigns a user can view in an organization"""
    total: int = 0
    draft: int = 0
    active: int = 0
    paused: int = 0
    completed: int = 0
    total_budget: float = 0
    average_budget: float = 0
    estimated_reach: int = 0
    average_duration_days: float = 0


class CampaignTeam(BaseContract):
    team_members: List[TeamMember] = Field(default_factory=list)
    clients: List[CampaignClient] = Field(default_factory=list)
    created_by: str


class CampaignPermissions(BaseContract):
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_team: bool = False
    can_manage_clients: bool = False
    can_publish: bool = False
    role: Optional[EffectiveRole] = None
    role_display: Optional[str] = None


class CleanupResult(BaseContract):
    deleted_count: int = 0
    deleted_ids: List[str] = Field(default_factory=list)


class MutationResponse(BaseContract):
    """Identifier or boolean success of a mutation"""
    success: bool = True
    id: Optional[str] = None
    message: Optional[str] = None


class ErrorResponse(BaseContract):
    detail: str
    errors: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float
