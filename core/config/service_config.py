#!/usr/bin/env python3
"""Service configuration

Peer service endpoints the campaign service calls, and the campaign
service's own settings.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Peer service endpoints"""

    # Organization existence checks
    organization_service_url: str = "http://localhost:8212"

    # Identity resolution (user profiles)
    account_service_url: str = "http://localhost:8202"

    # HTTP timeout for peer calls (seconds)
    http_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            organization_service_url=os.getenv("ORGANIZATION_SERVICE_URL", "http://localhost:8212"),
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            http_timeout=_float(os.getenv("PEER_HTTP_TIMEOUT", "5.0"), 5.0),
        )


@dataclass
class CampaignServiceConfig:
    """Top-level settings for the campaign service"""

    service_name: str = "campaign_service"
    service_port: int = 8251
    service_version: str = "1.0.0"

    # Draft lifecycle
    draft_cleanup_interval_seconds: int = 3600
    draft_cleanup_enabled: bool = True

    # Collaborators
    verify_organizations: bool = True
    verify_identity: bool = False

    infra: InfraConfig = field(default_factory=InfraConfig)
    services: ServiceConfig = field(default_factory=ServiceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'CampaignServiceConfig':
        """Load campaign service settings from environment variables"""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "campaign_service"),
            service_port=_int(os.getenv("SERVICE_PORT", "8251"), 8251),
            service_version=os.getenv("SERVICE_VERSION", "1.0.0"),
            draft_cleanup_interval_seconds=_int(os.getenv("DRAFT_CLEANUP_INTERVAL_SECONDS", "3600"), 3600),
            draft_cleanup_enabled=_bool(os.getenv("DRAFT_CLEANUP_ENABLED", "true")),
            verify_organizations=_bool(os.getenv("VERIFY_ORGANIZATIONS", "true")),
            verify_identity=_bool(os.getenv("VERIFY_IDENTITY", "false")),
            infra=InfraConfig.from_env(),
            services=ServiceConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )
