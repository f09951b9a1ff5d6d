"""
Campaign Service Clients

Clients for calling other microservices.
"""

from .account_client import AccountClient
from .organization_client import OrganizationClient

__all__ = [
    "AccountClient",
    "OrganizationClient",
]
