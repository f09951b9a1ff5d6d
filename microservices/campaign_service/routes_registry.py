"""
Campaign Service Routes Registry

Defines service metadata and the route table served by /api/v1/campaigns/info.
"""

SERVICE_METADATA = {
    "service_name": "campaign_service",
    "version": "1.0.0",
    "tags": ['campaign', 'marketing', 'v1'],
    "capabilities": [
        'campaign_management',
        'campaign_drafts',
        'campaign_team_access',
        'campaign_import',
    ],
}

BASE_PATH = "/api/v1/campaigns"

ROUTES = [
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": "/health/ready", "methods": ["GET"], "description": "Readiness check"},
    {"path": "/health/live", "methods": ["GET"], "description": "Liveness check"},
    {"path": f"{BASE_PATH}/health", "methods": ["GET"], "description": "Service health check (API v1)"},
    {"path": f"{BASE_PATH}/info", "methods": ["GET"], "description": "Service metadata"},
    {"path": BASE_PATH, "methods": ["GET", "POST"], "description": "List or create campaigns"},
    {"path": f"{BASE_PATH}/wizard", "methods": ["POST"], "description": "Create from wizard data"},
    {"path": f"{BASE_PATH}/import", "methods": ["POST"], "description": "Import from ad platform"},
    {"path": f"{BASE_PATH}/mine", "methods": ["GET"], "description": "Campaigns created by caller"},
    {"path": f"{BASE_PATH}/search", "methods": ["GET"], "description": "Search campaigns"},
    {"path": f"{BASE_PATH}/stats", "methods": ["GET"], "description": "Campaign statistics"},
    {"path": f"{BASE_PATH}/import-source", "methods": ["GET"], "description": "Campaigns by import source"},
    {"path": f"{BASE_PATH}/team-member", "methods": ["GET"], "description": "Campaigns as team member"},
    {"path": f"{BASE_PATH}/client", "methods": ["GET"], "description": "Campaigns as client"},
    {"path": f"{BASE_PATH}/drafts", "methods": ["GET", "POST"], "description": "List or save drafts"},
    {"path": f"{BASE_PATH}/drafts/cleanup", "methods": ["POST"], "description": "Sweep expired drafts"},
    {"path": f"{BASE_PATH}/drafts/{{draft_id}}", "methods": ["GET", "DELETE"], "description": "Draft by ID"},
    {"path": f"{BASE_PATH}/internal/drafts/cleanup", "methods": ["POST"], "description": "Internal draft sweep"},
    {"path": f"{BASE_PATH}/internal/drafts/expired", "methods": ["GET"], "description": "Internal expired drafts"},
    {"path": f"{BASE_PATH}/{{campaign_id}}", "methods": ["GET", "PATCH", "DELETE"], "description": "Campaign by ID"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/status", "methods": ["PUT"], "description": "Change status"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/publish", "methods": ["POST"], "description": "Publish draft campaign"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/permissions", "methods": ["GET"], "description": "Caller permissions"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/team", "methods": ["GET", "POST"], "description": "Team members"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/team/{{member_id}}", "methods": ["PUT", "DELETE"], "description": "Team member"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/clients", "methods": ["POST"], "description": "Add client"},
    {"path": f"{BASE_PATH}/{{campaign_id}}/clients/{{client_id}}", "methods": ["DELETE"], "description": "Remove client"},
]


def get_route_metadata():
    """Summary of the route table"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join([r["path"] for r in ROUTES]),
        "api_version": "v1",
        "base_path": BASE_PATH,
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "BASE_PATH", "get_route_metadata"]
