"""
NATS Client for Python Microservices

Provides event-driven communication between services on top of the
nats-py client. Publishing is best effort: callers get a bool back and
a broker outage never propagates into business operations.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

import nats
from nats.aio.client import Client as NATS

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal and datetime types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class ServiceSource(Enum):
    """Event sources"""
    CAMPAIGN_SERVICE = "campaign_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: Union[Enum, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value if isinstance(event_type, Enum) else event_type
        self.source = source.value if isinstance(source, Enum) else source
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS event bus using the nats-py asyncio client"""

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
        servers: Optional[str] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Optional infrastructure config, loaded from environment if omitted
            servers: Optional NATS URL override
        """
        config = config or InfraConfig.from_env()

        self.service_name = service_name
        self.servers = servers or config.nats_servers

        self._client: Optional[NATS] = None
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS"""
        try:
            self._client = await nats.connect(
                servers=[self.servers],
                name=self.service_name,
            )
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS.

        The event type doubles as the subject (e.g. "campaign.published").
        """
        if not self._is_connected or not self._client:
            logger.error("Not connected to NATS")
            return False

        try:
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            await self._client.publish(event.type, data)
            logger.info(f"Published event {event.type} [{event.id}]")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event.type}: {e}")
            return False

    async def close(self):
        """Drain and close the NATS connection"""
        if self._client:
            try:
                await self._client.drain()
            except Exception as e:
                logger.warning(f"Error draining NATS connection: {e}")
            self._client = None

        self._is_connected = False
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._is_connected

