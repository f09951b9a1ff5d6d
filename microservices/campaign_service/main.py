"""
Campaign Service Main Application

FastAPI application for collaborative campaign authoring.
Port: 8251
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.auth_dependencies import require_internal_service, require_user_id
from core.config import get_settings

from .factory import CampaignServiceFactory
from .models import (
    CampaignCategory,
    CampaignCreateRequest,
    CampaignImportRequest,
    CampaignListResponse,
    CampaignPermissions,
    CampaignResponse,
    CampaignStats,
    CampaignStatus,
    CampaignTeam,
    CampaignUpdateRequest,
    CampaignWizardCreateRequest,
    CleanupResult,
    ClientAddRequest,
    CurrentUser,
    DraftListResponse,
    DraftResponse,
    DraftSaveRequest,
    HealthResponse,
    LivenessResponse,
    MutationResponse,
    ReadinessResponse,
    StatusUpdateRequest,
    TeamMemberAddRequest,
    TeamMemberRoleUpdateRequest,
    TeamRole,
)
from .protocols import (
    CampaignConflictError,
    CampaignPermissionError,
    CampaignServiceError,
    CampaignValidationError,
    InvalidCampaignStateError,
    NotAuthenticatedError,
    ResourceNotFoundError,
)
from .routes_registry import SERVICE_METADATA, get_route_metadata

settings = get_settings()
settings.logging.apply()
logger = logging.getLogger(__name__)

# Service configuration
SERVICE_NAME = settings.service_name
SERVICE_PORT = settings.service_port
SERVICE_VERSION = settings.service_version

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[CampaignServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    factory = CampaignServiceFactory(settings)
    await factory.initialize()

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()


# Create FastAPI application
app = FastAPI(
    title="Campaign Service",
    description="Collaborative authoring, validation and publication of marketing campaigns",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(CampaignPermissionError)
async def permission_handler(request: Request, exc: CampaignPermissionError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": str(exc)},
    )


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
    )


@app.exception_handler(CampaignValidationError)
async def validation_error_handler(request: Request, exc: CampaignValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "errors": exc.errors},
    )


@app.exception_handler(CampaignConflictError)
async def conflict_handler(request: Request, exc: CampaignConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(InvalidCampaignStateError)
async def invalid_state_handler(request: Request, exc: InvalidCampaignStateError):
    content = {"detail": str(exc)}
    if exc.current_status is not None:
        content["current_status"] = exc.current_status.value
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)


@app.exception_handler(CampaignServiceError)
async def service_error_handler(request: Request, exc: CampaignServiceError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "type": type(exc).__name__},
    )


# ====================
# Dependencies
# ====================


def _require_factory() -> CampaignServiceFactory:
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory


def get_service():
    """Get campaign service from factory"""
    return _require_factory().service


def get_query_service():
    """Get campaign query service from factory"""
    return _require_factory().query_service


async def get_current_user(
    user_id: str = Depends(require_user_id),
    organization_id: Optional[str] = Header(None, alias="X-Organization-Id"),
) -> CurrentUser:
    """
    Resolve the acting user from gateway headers.

    With identity verification enabled the account service must know
    the user; its profile fills in email and name.
    """
    if not settings.verify_identity or not factory:
        return CurrentUser(user_id=user_id, organization_id=organization_id)

    profile = await factory.account_client.get_user_profile(user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required",
        )
    return CurrentUser(
        user_id=user_id,
        organization_id=organization_id,
        email=profile.get("email"),
        name=profile.get("name"),
    )


# ====================
# Health Endpoints
# ====================


@app.get("/api/v1/campaigns/health")
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            checks["database"] = db_healthy
            details["database"] = "Connected" if db_healthy else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        if factory.nats_client:
            checks["nats"] = factory.nats_client.is_connected
            details["nats"] = "Connected" if factory.nats_client.is_connected else "Disconnected"
        else:
            checks["nats"] = True  # Optional
            details["nats"] = "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])

    return ReadinessResponse(
        ready=ready,
        checks=checks,
        details=details,
    )


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(
        alive=True,
        uptime_seconds=time.time() - startup_time,
    )


@app.get("/api/v1/campaigns/info", tags=["Health"])
async def service_info():
    """Service metadata and route summary"""
    return {**SERVICE_METADATA, **get_route_metadata()}


# ====================
# Campaign Creation Endpoints
# ====================


@app.post(
    "/api/v1/campaigns",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def create_campaign(
    request: CampaignCreateRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Create a campaign in draft status"""
    campaign = await service.create_campaign(request, user)
    return CampaignResponse(campaign=campaign, message="Campaign created successfully")


@app.post(
    "/api/v1/campaigns/wizard",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def create_campaign_from_wizard(
    request: CampaignWizardCreateRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Create an active campaign from completed wizard data"""
    campaign = await service.create_campaign_from_wizard(request, user)
    return CampaignResponse(campaign=campaign, message="Campaign created successfully")


@app.post(
    "/api/v1/campaigns/import",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Campaigns"],
)
async def import_campaign(
    request: CampaignImportRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Import a campaign from an external ad platform"""
    campaign = await service.import_campaign(request, user)
    return CampaignResponse(campaign=campaign, message="Campaign imported successfully")


# ====================
# Campaign Query Endpoints
# ====================


def _list_response(campaigns) -> CampaignListResponse:
    return CampaignListResponse(campaigns=campaigns, total=len(campaigns))


@app.get("/api/v1/campaigns", response_model=CampaignListResponse, tags=["Campaigns"])
async def list_campaigns(
    organization_id: str = Query(..., description="Organization to list"),
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    """List the organization's campaigns visible to the caller"""
    campaigns = await queries.list_campaigns_by_organization(organization_id, user, status=status_filter)
    return _list_response(campaigns)


@app.get("/api/v1/campaigns/mine", response_model=CampaignListResponse, tags=["Campaigns"])
async def list_my_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Campaigns created by the caller"""
    campaigns = await queries.list_campaigns_by_creator(user, status=status_filter)
    return _list_response(campaigns)


@app.get("/api/v1/campaigns/search", response_model=CampaignListResponse, tags=["Campaigns"])
async def search_campaigns(
    organization_id: str = Query(...),
    q: str = Query("", description="Matched against name and description"),
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    category: Optional[CampaignCategory] = Query(None),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaigns = await queries.search_campaigns(
        organization_id, q, user, status=status_filter, category=category
    )
    return _list_response(campaigns)


@app.get("/api/v1/campaigns/stats", response_model=CampaignStats, tags=["Campaigns"])
async def get_campaign_stats(
    organization_id: str = Query(...),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await queries.get_campaign_stats(organization_id, user)


@app.get("/api/v1/campaigns/import-source", response_model=CampaignListResponse, tags=["Campaigns"])
async def list_campaigns_by_import_source(
    platform: str = Query(...),
    external_id: str = Query(...),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaigns = await queries.list_campaigns_by_import_source(platform, external_id, user)
    return _list_response(campaigns)


@app.get("/api/v1/campaigns/team-member", response_model=CampaignListResponse, tags=["Team"])
async def list_campaigns_as_team_member(
    organization_id: Optional[str] = Query(None),
    role: Optional[TeamRole] = Query(None),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Campaigns on which the caller holds an explicit team role"""
    campaigns = await queries.list_campaigns_as_team_member(user, organization_id, role)
    return _list_response(campaigns)


@app.get("/api/v1/campaigns/client", response_model=CampaignListResponse, tags=["Team"])
async def list_campaigns_as_client(
    organization_id: Optional[str] = Query(None),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Campaigns on which the caller is a client"""
    campaigns = await queries.list_campaigns_as_client(user, organization_id)
    return _list_response(campaigns)


# ====================
# Draft Endpoints
# ====================


@app.post("/api/v1/campaigns/drafts", response_model=DraftResponse, tags=["Drafts"])
async def save_draft(
    request: DraftSaveRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Create a draft, or update the caller's draft when draft_id is given"""
    draft = await service.save_draft(request, user)
    return DraftResponse(draft=draft, message="Draft saved")


@app.get("/api/v1/campaigns/drafts", response_model=DraftListResponse, tags=["Drafts"])
async def list_drafts(
    organization_id: Optional[str] = Query(None),
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    drafts = await queries.list_user_drafts(user, organization_id)
    return DraftListResponse(drafts=drafts, total=len(drafts))


@app.post("/api/v1/campaigns/drafts/cleanup", response_model=CleanupResult, tags=["Drafts"])
async def cleanup_drafts(
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Sweep expired drafts across all organizations"""
    return await service.manual_cleanup_expired_drafts(user)


@app.get("/api/v1/campaigns/drafts/{draft_id}", response_model=DraftResponse, tags=["Drafts"])
async def get_draft(
    draft_id: str,
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    draft = await queries.get_draft(draft_id, user)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return DraftResponse(draft=draft)


@app.delete("/api/v1/campaigns/drafts/{draft_id}", response_model=MutationResponse, tags=["Drafts"])
async def delete_draft(
    draft_id: str,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    deleted = await service.delete_draft(draft_id, user)
    return MutationResponse(success=deleted, id=draft_id, message="Draft deleted")


# ====================
# Internal Endpoints
# ====================


@app.post(
    "/api/v1/campaigns/internal/drafts/cleanup",
    response_model=CleanupResult,
    tags=["Internal"],
)
async def internal_cleanup_drafts(
    service=Depends(get_service),
    _internal: str = Depends(require_internal_service),
):
    """Scheduled-style sweep for other services"""
    return await service.cleanup_expired_drafts()


@app.get(
    "/api/v1/campaigns/internal/drafts/expired",
    response_model=DraftListResponse,
    tags=["Internal"],
)
async def internal_list_expired_drafts(
    queries=Depends(get_query_service),
    _internal: str = Depends(require_internal_service),
):
    drafts = await queries.list_expired_drafts()
    return DraftListResponse(drafts=drafts, total=len(drafts))


# ====================
# Single Campaign Endpoints
# ====================


@app.get("/api/v1/campaigns/{campaign_id}", response_model=CampaignResponse, tags=["Campaigns"])
async def get_campaign(
    campaign_id: str,
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Get campaign by ID"""
    campaign = await queries.get_campaign(campaign_id, user)
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return CampaignResponse(campaign=campaign)


@app.patch("/api/v1/campaigns/{campaign_id}", response_model=CampaignResponse, tags=["Campaigns"])
async def update_campaign(
    campaign_id: str,
    request: CampaignUpdateRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Merge a partial update into the campaign"""
    campaign = await service.update_campaign(campaign_id, request, user)
    return CampaignResponse(campaign=campaign, message="Campaign updated successfully")


@app.put(
    "/api/v1/campaigns/{campaign_id}/status",
    response_model=CampaignResponse,
    tags=["Campaigns"],
)
async def update_campaign_status(
    campaign_id: str,
    request: StatusUpdateRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.update_campaign_status(campaign_id, request.status, user)
    return CampaignResponse(campaign=campaign, message=f"Campaign is now {campaign.status.value}")


@app.post(
    "/api/v1/campaigns/{campaign_id}/publish",
    response_model=CampaignResponse,
    tags=["Campaigns"],
)
async def publish_campaign(
    campaign_id: str,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    """Publish a draft campaign"""
    campaign = await service.publish_campaign(campaign_id, user)
    return CampaignResponse(campaign=campaign, message="Campaign published successfully")


@app.delete(
    "/api/v1/campaigns/{campaign_id}",
    response_model=MutationResponse,
    tags=["Campaigns"],
)
async def delete_campaign(
    campaign_id: str,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    deleted = await service.delete_campaign(campaign_id, user)
    return MutationResponse(success=deleted, id=campaign_id, message="Campaign deleted")


@app.get(
    "/api/v1/campaigns/{campaign_id}/permissions",
    response_model=CampaignPermissions,
    tags=["Team"],
)
async def get_campaign_permissions(
    campaign_id: str,
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await queries.get_user_campaign_permissions(campaign_id, user)


# ====================
# Team & Client Endpoints
# ====================


@app.get("/api/v1/campaigns/{campaign_id}/team", response_model=CampaignTeam, tags=["Team"])
async def get_campaign_team(
    campaign_id: str,
    queries=Depends(get_query_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await queries.get_campaign_team(campaign_id, user)


@app.post(
    "/api/v1/campaigns/{campaign_id}/team",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Team"],
)
async def add_team_member(
    campaign_id: str,
    request: TeamMemberAddRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.add_team_member(campaign_id, request.user_id, request.role, user)
    return CampaignResponse(campaign=campaign, message="Team member added")


@app.put(
    "/api/v1/campaigns/{campaign_id}/team/{member_id}",
    response_model=CampaignResponse,
    tags=["Team"],
)
async def update_team_member_role(
    campaign_id: str,
    member_id: str,
    request: TeamMemberRoleUpdateRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.update_team_member_role(campaign_id, member_id, request.role, user)
    return CampaignResponse(campaign=campaign, message="Team member role updated")


@app.delete(
    "/api/v1/campaigns/{campaign_id}/team/{member_id}",
    response_model=CampaignResponse,
    tags=["Team"],
)
async def remove_team_member(
    campaign_id: str,
    member_id: str,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.remove_team_member(campaign_id, member_id, user)
    return CampaignResponse(campaign=campaign, message="Team member removed")


@app.post(
    "/api/v1/campaigns/{campaign_id}/clients",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Team"],
)
async def add_client(
    campaign_id: str,
    request: ClientAddRequest,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.add_client(campaign_id, request.user_id, user)
    return CampaignResponse(campaign=campaign, message="Client added")


@app.delete(
    "/api/v1/campaigns/{campaign_id}/clients/{client_id}",
    response_model=CampaignResponse,
    tags=["Team"],
)
async def remove_client(
    campaign_id: str,
    client_id: str,
    service=Depends(get_service),
    user: CurrentUser = Depends(get_current_user),
):
    campaign = await service.remove_client(campaign_id, client_id, user)
    return CampaignResponse(campaign=campaign, message="Client removed")


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.campaign_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
