"""
Campaign Helpers

Small derivations over campaign data used by the service, queries and
API responses.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional

from .models import DRAFT_EXPIRY_DAYS

SECONDS_PER_DAY = 24 * 60 * 60

STATUS_DISPLAY = {
    "draft": "Draft",
    "active": "Active",
    "paused": "Paused",
    "completed": "Completed",
}

PRIORITY_DISPLAY = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
}

ROLE_DISPLAY = {
    "creator": "Creator",
    "owner": "Owner",
    "editor": "Editor",
    "viewer": "Viewer",
    "client": "Client",
}

CHANNEL_DISPLAY = {
    "facebook": "Facebook",
    "instagram": "Instagram",
    "twitter": "Twitter/X",
    "linkedin": "LinkedIn",
    "email": "Email Marketing",
    "content": "Content Marketing",
    "pr": "Public Relations",
    "google_ads": "Google Ads",
    "youtube": "YouTube",
}


def _value(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def calculate_campaign_duration(start_date: datetime, end_date: datetime) -> int:
    """Campaign length in days, partial days rounded up"""
    seconds = (end_date - start_date).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


def calculate_total_kpi_weight(kpis: Iterable[Any]) -> float:
    return sum(_value(kpi, "weight") or 0 for kpi in kpis)


def normalize_kpi_weights(kpis: List[Any]) -> List[float]:
    """Weights as fractions of the total; unchanged when the total is 0"""
    weights = [_value(kpi, "weight") or 0 for kpi in kpis]
    total = sum(weights)
    if total == 0:
        return weights
    return [weight / total for weight in weights]


def calculate_estimated_reach(audiences: Iterable[Any]) -> int:
    return sum(_value(audience, "estimated_size") or 0 for audience in audiences)


def calculate_draft_expiry(created_at: datetime, days: int = DRAFT_EXPIRY_DAYS) -> datetime:
    return created_at + timedelta(days=days)


def is_draft_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    return (now or datetime.now(timezone.utc)) > expires_at


def _display(mapping: dict, value: Any) -> str:
    key = getattr(value, "value", value)
    return mapping.get(key, key)


def get_status_display(status: Any) -> str:
    return _display(STATUS_DISPLAY, status)


def get_priority_display(priority: Any) -> str:
    return _display(PRIORITY_DISPLAY, priority)


def get_role_display(role: Any) -> str:
    return _display(ROLE_DISPLAY, role)


def get_channel_display(channel_type: Any) -> str:
    return _display(CHANNEL_DISPLAY, channel_type)
