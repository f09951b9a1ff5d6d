"""
Organization Service Client

Client for calling organization_service to check that an organization
exists before campaigns or drafts are attached to it.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import ServiceConfig

logger = logging.getLogger(__name__)


class OrganizationClient:
    """Client for organization_service"""

    def __init__(self, config: Optional[ServiceConfig] = None):
        config = config or ServiceConfig.from_env()
        self.base_url = config.organization_service_url.rstrip("/")
        self.timeout = config.http_timeout

    async def get_organization(
        self, organization_id: str, user_id: str = "internal-service"
    ) -> Optional[Dict[str, Any]]:
        """
        Get organization details.

        Returns None if the organization does not exist. Transport errors
        propagate to the caller.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}/api/v1/organizations/{organization_id}",
                headers={"X-User-Id": user_id},
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    async def organization_exists(self, organization_id: str) -> bool:
        """
        Check organization existence.

        An unreachable organization service does not block campaign work:
        the failure is logged and the organization is assumed to exist.
        """
        try:
            return await self.get_organization(organization_id) is not None
        except httpx.HTTPError as e:
            logger.warning(
                f"Organization service unavailable, skipping existence check for "
                f"{organization_id}: {e}"
            )
            return True


__all__ = ["OrganizationClient"]
