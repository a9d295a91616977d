"""
Usage and cost alerts service.

Usage alerts are deduplicated per (organization, resource, billing period,
threshold): the first crossing inserts a row, repeats bump occurrence_count
and last_seen_at. Cost thresholds only report the implied action.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachcrm.core.plans import (
    COST_RATIO_NOTIFY,
    COST_RATIO_SUSPEND,
    COST_RATIO_THROTTLE,
    CRITICAL_THRESHOLD,
    HIGH_WARNING_THRESHOLD,
    WARNING_THRESHOLD,
    calculate_usage_percentage,
)
from coachcrm.core.structured_logging import build_log_context
from coachcrm.db.enums import AlertSeverity, CostAction, ResourceType
from coachcrm.db.models import OrganizationUsage, UsageAlert
from coachcrm.db.upsert import upsert_insert
from coachcrm.schemas.usage import UsageCheckResult

logger = logging.getLogger(__name__)


def classify_threshold(percentage: float) -> tuple[int, AlertSeverity] | None:
    """Map a usage percentage to its alert band, or None below the first band."""
    if percentage >= CRITICAL_THRESHOLD:
        return CRITICAL_THRESHOLD, AlertSeverity.CRITICAL
    if percentage >= HIGH_WARNING_THRESHOLD:
        return HIGH_WARNING_THRESHOLD, AlertSeverity.WARNING
    if percentage >= WARNING_THRESHOLD:
        return WARNING_THRESHOLD, AlertSeverity.WARNING
    return None


def build_alert_message(resource: ResourceType, threshold: int, current: int, limit: int) -> str:
    suffix = (
        "Upgrade or purchase add-ons to continue."
        if threshold >= CRITICAL_THRESHOLD
        else "Consider upgrading to avoid interruption."
    )
    return (
        f"You've used {threshold}% of your {resource.display_name} limit "
        f"({current}/{limit}). {suffix}"
    )


def record_usage_alert(
    db: Session,
    org_id: UUID,
    resource: ResourceType,
    billing_period: date,
    threshold: int,
    severity: AlertSeverity,
    current: int,
    limit: int,
) -> UsageAlert:
    """
    Insert the alert for this threshold, or bump the existing one.

    A single INSERT ... ON CONFLICT DO UPDATE keyed by
    uq_usage_alerts_threshold, so concurrent callers never duplicate.
    """
    now = datetime.now(timezone.utc)
    percentage = round(calculate_usage_percentage(current, limit), 2)
    message = build_alert_message(resource, threshold, current, limit)

    stmt = upsert_insert(db, UsageAlert).values(
        organization_id=org_id,
        resource_type=resource.value,
        billing_period=billing_period,
        threshold=threshold,
        current_usage=current,
        limit_value=limit,
        usage_percentage=percentage,
        severity=severity.value,
        message=message,
        occurrence_count=1,
        last_seen_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["organization_id", "resource_type", "billing_period", "threshold"],
        set_={
            "current_usage": current,
            "limit_value": limit,
            "usage_percentage": percentage,
            "message": message,
            "occurrence_count": UsageAlert.occurrence_count + 1,
            "last_seen_at": now,
        },
    )
    db.execute(stmt)
    db.commit()

    alert = db.scalar(
        select(UsageAlert).where(
            UsageAlert.organization_id == org_id,
            UsageAlert.resource_type == resource.value,
            UsageAlert.billing_period == billing_period,
            UsageAlert.threshold == threshold,
        )
    )
    logger.info(
        "Usage alert %s%% for %s (occurrence %s)",
        threshold,
        resource.value,
        alert.occurrence_count,
        extra=build_log_context(org_id=org_id, resource_type=resource.value),
    )
    return alert


def check_and_record_usage_alerts(
    db: Session,
    org_id: UUID,
    resource: ResourceType,
    usage: UsageCheckResult,
    billing_period: date,
) -> UsageAlert | None:
    """
    Record an alert if a usage check lands in the 80/90/100% bands.

    Unlimited and zero limits never alert.
    """
    if usage.limit == "unlimited" or usage.limit == 0:
        return None

    band = classify_threshold(calculate_usage_percentage(usage.current, usage.limit))
    if band is None:
        return None

    threshold, severity = band
    return record_usage_alert(
        db,
        org_id=org_id,
        resource=resource,
        billing_period=billing_period,
        threshold=threshold,
        severity=severity,
        current=usage.current,
        limit=usage.limit,
    )


def list_usage_alerts(
    db: Session,
    org_id: UUID,
    billing_period: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[UsageAlert]:
    """List usage alerts, most recently seen first."""
    query = select(UsageAlert).where(UsageAlert.organization_id == org_id)
    if billing_period:
        query = query.where(UsageAlert.billing_period == billing_period)
    query = query.order_by(UsageAlert.last_seen_at.desc(), UsageAlert.threshold.desc())
    return list(db.scalars(query.offset(offset).limit(limit)))


# =============================================================================
# Cost thresholds
# =============================================================================

def classify_cost_ratio(actual: Decimal, estimated: Decimal) -> CostAction:
    if not estimated:
        return CostAction.NONE
    ratio = Decimal(actual) / Decimal(estimated)
    if ratio >= COST_RATIO_SUSPEND:
        return CostAction.SUSPEND
    if ratio >= COST_RATIO_THROTTLE:
        return CostAction.THROTTLE
    if ratio >= COST_RATIO_NOTIFY:
        return CostAction.NOTIFY
    return CostAction.NONE


def check_cost_thresholds(db: Session, org_id: UUID, billing_period: date) -> CostAction:
    """
    Compare actual cost to the period estimate and log the implied action.

    Suspension, throttling and customer notification are not enforced here.
    """
    usage = db.scalar(
        select(OrganizationUsage).where(
            OrganizationUsage.organization_id == org_id,
            OrganizationUsage.billing_period == billing_period,
        )
    )
    if usage is None:
        return CostAction.NONE

    action = classify_cost_ratio(usage.actual_cost_to_date, usage.estimated_monthly_cost)
    context = build_log_context(org_id=org_id)
    if action == CostAction.SUSPEND:
        logger.warning("Account exceeds 300%% cost threshold - should be suspended", extra=context)
    elif action == CostAction.THROTTLE:
        logger.warning("Account exceeds 200%% cost threshold - should be throttled", extra=context)
    elif action == CostAction.NOTIFY:
        logger.info("Account at 150%% cost threshold - customer should be notified", extra=context)
    return action
