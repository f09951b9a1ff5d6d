"""
Campaign Assembly

Builds a tagged CampaignAssembly from each creation entry point (direct
request, wizard payload, platform import), validates the assembled
document field by field, and only then coerces it into a Campaign.
Nothing reaches a repository without passing through finalize_assembly.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .models import (
    AssemblySource,
    Campaign,
    CampaignAssembly,
    CampaignCreateRequest,
    CampaignPriority,
    CampaignStatus,
    CampaignWizardData,
    CurrentUser,
    ImportedCampaignData,
    TeamRole,
)
from .protocols import CampaignValidationError
from .validation import to_timestamp, validate_campaign_data

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
DEFAULT_PRIORITY = CampaignPriority.MEDIUM.value

WIZARD_SECTIONS = ("basics", "audience_channels", "kpis_metrics", "team_access")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _creator_owner(user_id: str, now: datetime) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "role": TeamRole.OWNER.value,
        "assigned_at": now,
        "notifications": True,
    }


def _coerce_instant(value: Any) -> Any:
    """Wizard dates arrive as epoch milliseconds or ISO strings"""
    if isinstance(value, datetime) or value is None:
        return value
    timestamp = to_timestamp(value)
    if timestamp is None:
        return value
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def assemble_from_request(
    request: CampaignCreateRequest,
    user: CurrentUser,
    now: Optional[datetime] = None,
) -> CampaignAssembly:
    """Direct creation: status draft, creator seeded as the only owner"""
    now = now or _utcnow()
    document = request.model_dump(exclude_none=True)
    document.update(
        status=CampaignStatus.DRAFT.value,
        currency=request.currency or DEFAULT_CURRENCY,
        priority=(request.priority.value if request.priority else DEFAULT_PRIORITY),
        created_by=user.user_id,
        team_members=[_creator_owner(user.user_id, now)],
        clients=[],
        created_at=now,
        updated_at=now,
    )
    return CampaignAssembly(source=AssemblySource.DIRECT, document=document)


def _wizard_team(
    entries: List[Any], creator_id: str, now: datetime
) -> List[Dict[str, Any]]:
    """Creator first as owner, wizard members after; creator entries fold in"""
    team = [_creator_owner(creator_id, now)]
    for entry in entries or []:
        member = dict(entry) if isinstance(entry, dict) else {"user_id": entry}
        if member.get("user_id") == creator_id:
            continue
        member.setdefault("assigned_at", now)
        member["assigned_at"] = _coerce_instant(member["assigned_at"]) or now
        team.append(member)
    return team


def _wizard_clients(entries: List[Any], now: datetime) -> List[Dict[str, Any]]:
    clients = []
    for entry in entries or []:
        client = dict(entry) if isinstance(entry, dict) else {"user_id": entry}
        client["assigned_at"] = _coerce_instant(client.get("assigned_at")) or now
        clients.append(client)
    return clients


def assemble_from_wizard(
    data: CampaignWizardData,
    organization_id: str,
    user: CurrentUser,
    now: Optional[datetime] = None,
) -> CampaignAssembly:
    """Wizard completion: every section required, campaign starts active"""
    if any(getattr(data, section) is None for section in WIZARD_SECTIONS):
        raise CampaignValidationError(["Incomplete campaign data"])

    now = now or _utcnow()
    basics = dict(data.basics)
    audience_channels = dict(data.audience_channels)
    kpis_metrics = dict(data.kpis_metrics)
    team_access = dict(data.team_access)

    document: Dict[str, Any] = {
        "name": basics.get("name"),
        "description": basics.get("description") or "",
        "status": CampaignStatus.ACTIVE.value,
        "start_date": _coerce_instant(basics.get("start_date")),
        "end_date": _coerce_instant(basics.get("end_date")),
        "budget": basics.get("budget", 0),
        "currency": basics.get("currency") or DEFAULT_CURRENCY,
        "category": basics.get("category"),
        "priority": basics.get("priority") or DEFAULT_PRIORITY,
        "audiences": audience_channels.get("audiences") or [],
        "channels": audience_channels.get("channels") or [],
        "budget_allocation": audience_channels.get("budget_allocation") or {},
        "kpis": kpis_metrics.get("primary_kpis") or [],
        "custom_metrics": kpis_metrics.get("custom_metrics") or [],
        "organization_id": organization_id,
        "created_by": user.user_id,
        "team_members": _wizard_team(team_access.get("team_members"), user.user_id, now),
        "clients": _wizard_clients(team_access.get("clients"), now),
        "created_at": now,
        "updated_at": now,
    }
    return CampaignAssembly(source=AssemblySource.WIZARD, document=document)


def assemble_from_import(
    data: ImportedCampaignData,
    organization_id: str,
    user: CurrentUser,
    now: Optional[datetime] = None,
) -> CampaignAssembly:
    """Platform import: like direct creation but active, with provenance"""
    now = now or _utcnow()
    document = data.model_dump()
    document.update(
        status=CampaignStatus.ACTIVE.value,
        currency=data.currency or DEFAULT_CURRENCY,
        organization_id=organization_id,
        created_by=user.user_id,
        team_members=[_creator_owner(user.user_id, now)],
        clients=[],
        created_at=now,
        updated_at=now,
    )
    return CampaignAssembly(source=AssemblySource.IMPORT, document=document)


def _pydantic_messages(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
    return messages


def finalize_assembly(assembly: CampaignAssembly) -> Campaign:
    """
    Validate an assembled document and coerce it into a Campaign.

    Business-rule violations are reported together; shape errors that
    only surface during coercion are reported the same way.
    """
    report = validate_campaign_data(assembly.document)
    if not report.is_valid:
        logger.debug(
            f"Rejected {assembly.source.value} assembly with {len(report.errors)} violation(s)"
        )
        raise CampaignValidationError(report.errors)

    try:
        return Campaign.model_validate(assembly.document)
    except ValidationError as e:
        raise CampaignValidationError(_pydantic_messages(e))


__all__ = [
    "assemble_from_request",
    "assemble_from_wizard",
    "assemble_from_import",
    "finalize_assembly",
]
