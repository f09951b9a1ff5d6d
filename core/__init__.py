#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure components for the microservices in this repository.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - postgres_client.py: asyncpg-backed PostgreSQL access
    - nats_client.py: NATS event bus for event-driven architecture
    - auth_dependencies.py: FastAPI identity dependencies

USAGE:
    from core.config import get_settings
    from core.postgres_client import PostgresClientWrapper

    settings = get_settings()
    db = PostgresClientWrapper("campaign_service", config=settings.infra)
"""

__version__ = "2.0.0"
