"""
Account Service Client

Client for calling account_service to resolve user profiles.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import ServiceConfig

logger = logging.getLogger(__name__)


class AccountClient:
    """Client for account_service"""

    def __init__(self, config: Optional[ServiceConfig] = None):
        config = config or ServiceConfig.from_env()
        self.base_url = config.account_service_url.rstrip("/")
        self.timeout = config.http_timeout

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the stable profile of a user.

        Returns user_id, email and name, or None when the account is
        unknown or the account service cannot be reached.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/api/v1/accounts/profile/{user_id}"
                )
                response.raise_for_status()
                data = response.json()

            return {
                "user_id": data.get("user_id", user_id),
                "email": data.get("email"),
                "name": data.get("name"),
            }

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning(f"User not found: {user_id}")
                return None
            logger.error(f"Error getting user profile for {user_id}: {e}")
            return None

        except httpx.HTTPError as e:
            logger.error(f"Error getting user profile for {user_id}: {e}")
            return None


__all__ = ["AccountClient"]
