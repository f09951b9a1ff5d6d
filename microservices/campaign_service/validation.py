"""
Campaign Validation Library

Pure checkers for campaign-shaped data. Every checker returns a
ValidationReport and never raises, so callers can aggregate all
violations into one error. Inputs may be pydantic models or the loosely
typed dicts produced by the wizard and drafts.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from .models import (
    CHANNEL_MINIMUM_BUDGETS,
    SUPPORTED_CURRENCIES,
    WIZARD_PREVIEW_STEP,
    CampaignStatus,
    ChannelType,
    KPIType,
    KPITimeframe,
    TeamRole,
    ValidationReport,
)

# Joins aggregated violations into one message; callers split on it
VALIDATION_ERROR_DELIMITER = "; "
# Leads the message of a raised validation error
VALIDATION_ERROR_PREFIX = "Validation failed"

BUDGET_TOLERANCE = 0.01
MIN_AUDIENCE_AGE = 13
MAX_AUDIENCE_AGE = 100
MAX_KPI_WEIGHT_TOTAL = 100

_STATUSES = [s.value for s in CampaignStatus]
_ROLES = [r.value for r in TeamRole]
_CHANNEL_TYPES = [c.value for c in ChannelType]
_KPI_TYPES = [k.value for k in KPIType]
_KPI_TIMEFRAMES = [t.value for t in KPITimeframe]


# ====================
# Coercion helpers
# ====================


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _as_list(value: Any) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _number(value: Any) -> Optional[float]:
    """Finite float, or None when the value is not a usable number"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def to_timestamp(value: Any) -> Optional[float]:
    """
    Convert an instant to epoch seconds.

    Accepts datetimes, ISO-8601 strings, and epoch milliseconds (the
    wizard's wire format). Returns None for anything else.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_timestamp(parsed)
    number = _number(value)
    if number is None:
        return None
    return number / 1000.0


def _report(errors: List[str], warnings: Optional[List[str]] = None) -> ValidationReport:
    return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings or [])


def merge_reports(reports: Iterable[ValidationReport]) -> ValidationReport:
    errors: List[str] = []
    warnings: List[str] = []
    for report in reports:
        errors.extend(report.errors)
        warnings.extend(report.warnings)
    return _report(errors, warnings)


# ====================
# Field checkers
# ====================


def validate_campaign_status(status: Any) -> ValidationReport:
    if _enum_value(status) not in _STATUSES:
        return _report([f"Invalid campaign status: {_enum_value(status)}"])
    return _report([])


def validate_campaign_dates(start_date: Any, end_date: Any) -> ValidationReport:
    """Both instants present and end strictly after start"""
    errors = []
    start = to_timestamp(start_date)
    end = to_timestamp(end_date)
    if start is None:
        errors.append("Start date is required and must be a valid date")
    if end is None:
        errors.append("End date is required and must be a valid date")
    if start is not None and end is not None and end <= start:
        errors.append("End date must be after start date")
    return _report(errors)


def validate_budget(budget: Any) -> ValidationReport:
    number = _number(budget)
    if number is None or number < 0:
        return _report(["Budget must be a non-negative number"])
    return _report([])


def validate_currency(currency: Any) -> ValidationReport:
    if currency not in SUPPORTED_CURRENCIES:
        return _report([f"Unsupported currency: {currency}"])
    return _report([])


def validate_budget_allocation(budget: Any, allocation: Any) -> ValidationReport:
    """
    Per-channel allocation: every slice non-negative, and the total may
    not exceed the campaign budget (beyond tolerance) when budget > 0.
    """
    if allocation is None:
        return _report([])
    if not isinstance(allocation, Mapping):
        return _report(["Budget allocation must map channels to amounts"])

    errors = []
    total = 0.0
    for channel, amount in allocation.items():
        number = _number(amount)
        if number is None:
            errors.append(f"Budget allocation for {_enum_value(channel)} must be a number")
            continue
        if number < 0:
            errors.append(f"Budget allocation for {_enum_value(channel)} cannot be negative")
        total += number

    total_budget = _number(budget)
    if total_budget is not None and total_budget > 0 and total > total_budget + BUDGET_TOLERANCE:
        errors.append(
            f"Total channel allocation ({total:g}) exceeds campaign budget ({total_budget:g})"
        )
    return _report(errors)


def validate_audience(audience: Any, position: int = 1) -> ValidationReport:
    data = _as_dict(audience)
    label = f"Audience {position}"
    errors = []

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(f"{label}: name is required")

    demographics = _as_dict(data.get("demographics"))
    locations = _as_list(demographics.get("locations"))
    if not locations or not any(isinstance(loc, str) and loc.strip() for loc in locations):
        errors.append(f"{label}: at least one location is required")

    age_range = _as_list(demographics.get("age_range"))
    if age_range is not None:
        ages = [_number(age) for age in age_range]
        if len(ages) != 2 or any(age is None for age in ages):
            errors.append(f"{label}: age range must be a pair of ages")
        else:
            min_age, max_age = ages
            if min_age < MIN_AUDIENCE_AGE or max_age > MAX_AUDIENCE_AGE:
                errors.append(
                    f"{label}: age range must be within {MIN_AUDIENCE_AGE}-{MAX_AUDIENCE_AGE}"
                )
            if min_age > max_age:
                errors.append(f"{label}: minimum age cannot exceed maximum age")

    estimated_size = data.get("estimated_size")
    if estimated_size is not None:
        size = _number(estimated_size)
        if size is None or size < 0:
            errors.append(f"{label}: estimated size cannot be negative")

    return _report(errors)


def validate_channel(channel: Any, position: int = 1) -> ValidationReport:
    data = _as_dict(channel)
    channel_type = _enum_value(data.get("type"))
    label = f"Channel {position}"
    errors = []

    if channel_type not in _CHANNEL_TYPES:
        errors.append(f"{label}: invalid channel type {channel_type}")
        return _report(errors)

    budget = _number(data.get("budget", 0))
    if budget is None or budget < 0:
        errors.append(f"{label}: budget must be a non-negative number")
        return _report(errors)

    minimum = CHANNEL_MINIMUM_BUDGETS[channel_type]
    if data.get("enabled", True) and budget < minimum:
        errors.append(f"{label}: {channel_type} requires a minimum budget of {minimum:g}")

    return _report(errors)


def validate_kpis(kpis: Any) -> ValidationReport:
    """
    Per-KPI checks plus the weight total: over 100 is an error, under
    100 is only a warning.
    """
    items = _as_list(kpis)
    if items is None:
        return _report([])

    errors = []
    warnings = []
    total_weight = 0.0
    for position, kpi in enumerate(items, start=1):
        data = _as_dict(kpi)
        label = f"KPI {position}"
        if _enum_value(data.get("type")) not in _KPI_TYPES:
            errors.append(f"{label}: invalid KPI type {_enum_value(data.get('type'))}")
        timeframe = data.get("timeframe")
        if timeframe is not None and _enum_value(timeframe) not in _KPI_TIMEFRAMES:
            errors.append(f"{label}: invalid timeframe {_enum_value(timeframe)}")
        target = _number(data.get("target"))
        if target is None or target < 0:
            errors.append(f"{label}: target must be a non-negative number")
        weight = _number(data.get("weight", 0))
        if weight is None or weight < 0 or weight > 100:
            errors.append(f"{label}: weight must be between 0 and 100")
        else:
            total_weight += weight

    if total_weight > MAX_KPI_WEIGHT_TOTAL:
        errors.append(f"Total KPI weight ({total_weight:g}) cannot exceed {MAX_KPI_WEIGHT_TOTAL}")
    elif items and total_weight < MAX_KPI_WEIGHT_TOTAL:
        warnings.append(f"Total KPI weight is {total_weight:g}, below {MAX_KPI_WEIGHT_TOTAL}")

    return _report(errors, warnings)


def validate_custom_metric(metric: Any, position: int = 1) -> ValidationReport:
    data = _as_dict(metric)
    label = f"Custom metric {position}"
    errors = []

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(f"{label}: name is required")

    target = _number(data.get("target", 0))
    if target is None or target < 0:
        errors.append(f"{label}: target must be a non-negative number")
    elif target > 0:
        unit = data.get("unit")
        if not isinstance(unit, str) or not unit.strip():
            errors.append(f"{label}: unit is required when a target is set")

    return _report(errors)


def validate_team_members(team_members: Any) -> ValidationReport:
    """Roles are enumerated and no user appears twice"""
    items = _as_list(team_members)
    if items is None:
        return _report([])

    errors = []
    seen = set()
    for position, member in enumerate(items, start=1):
        data = _as_dict(member)
        user_id = data.get("user_id")
        if not user_id:
            errors.append(f"Team member {position}: user is required")
            continue
        if _enum_value(data.get("role")) not in _ROLES:
            errors.append(f"Team member {position}: invalid role {_enum_value(data.get('role'))}")
        if user_id in seen:
            errors.append(f"Duplicate team member: {user_id}")
        seen.add(user_id)
    return _report(errors)


def validate_clients(clients: Any, team_members: Any = None, created_by: Optional[str] = None) -> ValidationReport:
    """Clients are unique, are not team members, and never the creator"""
    items = _as_list(clients)
    if items is None:
        return _report([])

    member_ids = {_as_dict(m).get("user_id") for m in (_as_list(team_members) or [])}
    errors = []
    seen = set()
    for position, client in enumerate(items, start=1):
        user_id = _as_dict(client).get("user_id")
        if not user_id:
            errors.append(f"Client {position}: user is required")
            continue
        if user_id in seen:
            errors.append(f"Duplicate client: {user_id}")
        if user_id in member_ids:
            errors.append(f"User {user_id} cannot be both a team member and a client")
        if created_by and user_id == created_by:
            errors.append("Campaign creator cannot be assigned as client")
        seen.add(user_id)
    return _report(errors)


def has_owner(team_members: Any) -> bool:
    return any(
        _enum_value(_as_dict(member).get("role")) == TeamRole.OWNER.value
        for member in (_as_list(team_members) or [])
    )


# ====================
# Aggregates
# ====================


def validate_campaign_data(campaign: Any, partial: bool = False) -> ValidationReport:
    """
    Run every checker whose fields are present.

    With partial=True (drafts) nothing is required: only supplied values
    are checked, and date ordering is checked once both dates exist.
    """
    data = _as_dict(campaign)
    reports: List[ValidationReport] = []

    if not partial:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            reports.append(_report(["Campaign name is required"]))

    if "status" in data and data["status"] is not None:
        reports.append(validate_campaign_status(data["status"]))

    has_start = data.get("start_date") is not None
    has_end = data.get("end_date") is not None
    if partial:
        if has_start and has_end:
            reports.append(validate_campaign_dates(data["start_date"], data["end_date"]))
    elif "start_date" in data or "end_date" in data:
        reports.append(validate_campaign_dates(data.get("start_date"), data.get("end_date")))

    if "budget" in data and (data["budget"] is not None or not partial):
        reports.append(validate_budget(data["budget"]))

    if data.get("currency") is not None:
        reports.append(validate_currency(data["currency"]))

    if data.get("budget_allocation") is not None:
        reports.append(validate_budget_allocation(data.get("budget"), data["budget_allocation"]))

    for position, audience in enumerate(_as_list(data.get("audiences")) or [], start=1):
        reports.append(validate_audience(audience, position))

    for position, channel in enumerate(_as_list(data.get("channels")) or [], start=1):
        reports.append(validate_channel(channel, position))

    if data.get("kpis") is not None:
        reports.append(validate_kpis(data["kpis"]))

    for position, metric in enumerate(_as_list(data.get("custom_metrics")) or [], start=1):
        reports.append(validate_custom_metric(metric, position))

    if data.get("team_members") is not None:
        reports.append(validate_team_members(data["team_members"]))
        if not partial and not has_owner(data["team_members"]):
            reports.append(_report(["Campaign must have at least one owner"]))

    if data.get("clients") is not None:
        reports.append(
            validate_clients(data["clients"], data.get("team_members"), data.get("created_by"))
        )

    return merge_reports(reports)


def draft_document(data: Any) -> Dict[str, Any]:
    """Flatten wizard sections into campaign fields, keeping only supplied values"""
    payload = _as_dict(data)
    basics = _as_dict(payload.get("basics"))
    audience_channels = _as_dict(payload.get("audience_channels"))
    kpis_metrics = _as_dict(payload.get("kpis_metrics"))
    team_access = _as_dict(payload.get("team_access"))

    document: Dict[str, Any] = {}
    for key in ("name", "description", "start_date", "end_date", "budget",
                "currency", "category", "priority"):
        if basics.get(key) is not None:
            document[key] = basics[key]
    for key in ("audiences", "channels", "budget_allocation"):
        if audience_channels.get(key) is not None:
            document[key] = audience_channels[key]
    if kpis_metrics.get("primary_kpis") is not None:
        document["kpis"] = kpis_metrics["primary_kpis"]
    if kpis_metrics.get("custom_metrics") is not None:
        document["custom_metrics"] = kpis_metrics["custom_metrics"]
    for key in ("team_members", "clients"):
        if team_access.get(key) is not None:
            document[key] = team_access[key]
    return document


def validate_draft_data(data: Any) -> ValidationReport:
    """Apply campaign rules to whatever the draft payload currently holds"""
    return validate_campaign_data(draft_document(data), partial=True)


def validate_draft(name: Any, step: Any, data: Any) -> ValidationReport:
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append("Draft name is required")
    if isinstance(step, bool) or not isinstance(step, int) or not 1 <= step <= WIZARD_PREVIEW_STEP:
        errors.append("Invalid wizard step")
    return merge_reports([_report(errors), validate_draft_data(data)])


def allocated_total(campaign: Any) -> float:
    """
    Allocated spend: the allocation mapping when present, otherwise the
    budgets of the enabled channels.
    """
    data = _as_dict(campaign)
    allocation = data.get("budget_allocation")
    if isinstance(allocation, Mapping) and allocation:
        return sum(_number(amount) or 0.0 for amount in allocation.values())
    return sum(
        _number(_as_dict(channel).get("budget")) or 0.0
        for channel in (_as_list(data.get("channels")) or [])
        if _as_dict(channel).get("enabled", True)
    )


def validate_publication_readiness(campaign: Any) -> ValidationReport:
    """
    Stricter composite check run only when publishing: the general rules
    plus an enabled channel, an audience, owner coverage and a fully
    balanced budget.
    """
    data = _as_dict(campaign)
    errors: List[str] = []

    enabled_channels = [
        channel for channel in (_as_list(data.get("channels")) or [])
        if _as_dict(channel).get("enabled", True)
    ]
    if not enabled_channels:
        errors.append("Campaign must have at least one enabled channel")

    if not _as_list(data.get("audiences")):
        errors.append("Campaign must have at least one audience")

    if not has_owner(data.get("team_members")):
        errors.append("Campaign must have at least one team member with the owner role")

    budget = _number(data.get("budget"))
    if budget is not None and budget > 0:
        total = allocated_total(data)
        if abs(total - budget) > BUDGET_TOLERANCE:
            errors.append(
                f"Budget allocation ({total:g}) must match campaign budget ({budget:g})"
            )

    base = validate_campaign_data(data)
    # Owner coverage is already reported above with publication wording
    base_errors = [e for e in base.errors if e != "Campaign must have at least one owner"]
    return _report(base_errors + errors, base.warnings)


def split_validation_message(message: str, prefix: str = VALIDATION_ERROR_PREFIX) -> List[str]:
    """Inverse of the aggregate error message join; accepts str() of the raised error"""
    lead = f"{prefix}: "
    if message.startswith(lead):
        message = message[len(lead):]
    return [part for part in message.split(VALIDATION_ERROR_DELIMITER) if part]


__all__ = [
    "VALIDATION_ERROR_DELIMITER",
    "VALIDATION_ERROR_PREFIX",
    "BUDGET_TOLERANCE",
    "to_timestamp",
    "merge_reports",
    "validate_campaign_status",
    "validate_campaign_dates",
    "validate_budget",
    "validate_currency",
    "validate_budget_allocation",
    "validate_audience",
    "validate_channel",
    "validate_kpis",
    "validate_custom_metric",
    "validate_team_members",
    "validate_clients",
    "has_owner",
    "validate_campaign_data",
    "draft_document",
    "validate_draft_data",
    "validate_draft",
    "allocated_total",
    "validate_publication_readiness",
    "split_validation_message",
]
