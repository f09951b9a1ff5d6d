"""
FastAPI Authentication Dependencies for Microservices

Shared authentication dependencies. The gateway resolves the caller's
identity and forwards it as headers; services read it from there.
"""

from fastapi import Header, HTTPException, status, Request
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

# Internal service authentication
INTERNAL_SERVICE_SECRET = os.getenv(
    "INTERNAL_SERVICE_SECRET",
    "dev-internal-secret-change-in-production"
)

INTERNAL_SERVICE_USER = "internal-service"


async def require_user_id(
    user_id: Optional[str] = Header(None, alias="user-id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    Require an authenticated user.

    Returns:
        user_id from the user-id or X-User-Id header

    Raises:
        HTTPException 401: no identity was forwarded
    """
    user_id_value = user_id or x_user_id
    if user_id_value:
        return user_id_value

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="User authentication required"
    )


async def require_internal_service(
    request: Request,
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Require internal service authentication (X-Internal-Service + secret).

    Returns:
        "internal-service"

    Raises:
        HTTPException 401: missing or invalid internal service credentials
    """
    if x_internal_service == "true" and x_internal_service_secret:
        if x_internal_service_secret == INTERNAL_SERVICE_SECRET:
            logger.debug(f"Internal service request to {request.url.path}")
            return INTERNAL_SERVICE_USER
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid internal service secret from {client_host}")

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Internal service authentication required"
    )


__all__ = [
    "require_user_id",
    "require_internal_service",
    "INTERNAL_SERVICE_USER",
]
