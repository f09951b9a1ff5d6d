"""
Campaign Event Publishers

Publishes events to NATS.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from core.nats_client import Event, ServiceSource
from .models import CampaignEventType

logger = logging.getLogger(__name__)


class CampaignEventPublisher:
    """Publisher for campaign service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = ServiceSource.CAMPAIGN_SERVICE

    async def publish(
        self,
        event_type: CampaignEventType,
        data: Union[BaseModel, Dict[str, Any]],
        subject: Optional[str] = None,
    ) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event data payload
            subject: Entity the event is about (campaign or draft ID)

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            payload = data.model_dump(mode="json") if isinstance(data, BaseModel) else data
            event = Event(
                event_type=event_type,
                source=self.source,
                data=payload,
                subject=subject,
            )
            published = await self.event_bus.publish_event(event)
            logger.debug(f"Published event: {event_type.value}")
            return bool(published)

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False


__all__ = ["CampaignEventPublisher"]
