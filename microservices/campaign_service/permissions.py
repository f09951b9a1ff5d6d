"""
Campaign Authorization Predicates

The single source of campaign access rules. Every mutation and every
query filter calls these; none re-derives the rules inline.

All predicates take (user_id, campaign) where campaign is anything with
created_by, team_members and clients (a Campaign model or a mapping).
"""

from typing import Any, Dict, Optional

from .helpers import get_role_display
from .models import CampaignPermissions, EffectiveRole, TeamRole


def _field(campaign: Any, name: str) -> Any:
    if isinstance(campaign, dict):
        return campaign.get(name)
    return getattr(campaign, name, None)


def _member_user_id(entry: Any) -> Optional[str]:
    return entry.get("user_id") if isinstance(entry, dict) else getattr(entry, "user_id", None)


def _member_role(entry: Any) -> Optional[str]:
    role = entry.get("role") if isinstance(entry, dict) else getattr(entry, "role", None)
    return getattr(role, "value", role)


def _team_role(user_id: str, campaign: Any) -> Optional[str]:
    for member in _field(campaign, "team_members") or []:
        if _member_user_id(member) == user_id:
            return _member_role(member)
    return None


def is_creator(user_id: Optional[str], campaign: Any) -> bool:
    return bool(user_id) and _field(campaign, "created_by") == user_id


def is_client(user_id: Optional[str], campaign: Any) -> bool:
    return bool(user_id) and any(
        _member_user_id(client) == user_id for client in _field(campaign, "clients") or []
    )


def get_effective_role(user_id: Optional[str], campaign: Any) -> Optional[EffectiveRole]:
    """creator, then team role, then client, else None"""
    if not user_id:
        return None
    if is_creator(user_id, campaign):
        return EffectiveRole.CREATOR
    role = _team_role(user_id, campaign)
    if role is not None:
        return EffectiveRole(role)
    if is_client(user_id, campaign):
        return EffectiveRole.CLIENT
    return None


# Actions granted per effective role; the creator holds every action
_ROLE_ACTIONS: Dict[EffectiveRole, frozenset] = {
    EffectiveRole.OWNER: frozenset(
        {"view", "edit", "delete", "manage_team", "manage_clients", "publish"}
    ),
    EffectiveRole.EDITOR: frozenset({"view", "edit", "manage_clients", "publish"}),
    EffectiveRole.VIEWER: frozenset({"view"}),
    EffectiveRole.CLIENT: frozenset({"view"}),
}


def _allowed(user_id: Optional[str], campaign: Any, action: str) -> bool:
    role = get_effective_role(user_id, campaign)
    if role is None:
        return False
    if role == EffectiveRole.CREATOR:
        return True
    return action in _ROLE_ACTIONS.get(role, frozenset())


def can_view(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "view")


def can_edit(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "edit")


def can_delete(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "delete")


def can_manage_team(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "manage_team")


def can_manage_clients(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "manage_clients")


def can_publish(user_id: Optional[str], campaign: Any) -> bool:
    return _allowed(user_id, campaign, "publish")


def get_campaign_permissions(user_id: Optional[str], campaign: Any) -> CampaignPermissions:
    """Full permission matrix of a user on one campaign"""
    role = get_effective_role(user_id, campaign)
    return CampaignPermissions(
        can_view=can_view(user_id, campaign),
        can_edit=can_edit(user_id, campaign),
        can_delete=can_delete(user_id, campaign),
        can_manage_team=can_manage_team(user_id, campaign),
        can_manage_clients=can_manage_clients(user_id, campaign),
        can_publish=can_publish(user_id, campaign),
        role=role,
        role_display=get_role_display(role) if role else None,
    )


def is_team_member(user_id: Optional[str], campaign: Any, role: Optional[TeamRole] = None) -> bool:
    """Explicit team membership, optionally with a specific role"""
    member_role = _team_role(user_id, campaign) if user_id else None
    if member_role is None:
        return False
    return role is None or member_role == getattr(role, "value", role)


__all__ = [
    "is_creator",
    "is_client",
    "is_team_member",
    "get_effective_role",
    "can_view",
    "can_edit",
    "can_delete",
    "can_manage_team",
    "can_manage_clients",
    "can_publish",
    "get_campaign_permissions",
]
