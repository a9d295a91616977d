"""
Usage limiter: plan-limit checks, metering, and cost tracking.

Counters live in one organization_usage row per organization per billing
period (first day of the month, UTC). Rows are created lazily by the first
increment, so a new month starts from zero without any reset job.

check_usage_limit fails closed. increment_usage and track_cost never raise:
a metering failure is logged and must not block an action that already
happened.
"""

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coachcrm.core.config import settings
from coachcrm.core.plans import (
    PLAN_COST_ESTIMATES,
    UNLIMITED,
    calculate_overage_cost,
    get_fair_use_limit,
    get_plan_limits,
)
from coachcrm.core.structured_logging import build_log_context
from coachcrm.db.enums import USABLE_SUBSCRIPTION_STATUSES, ResourceType, SubscriptionPlan
from coachcrm.db.models import CostEvent, Organization, OrganizationUsage
from coachcrm.db.upsert import upsert_insert
from coachcrm.schemas.usage import UsageCheckResult, UsageSummary
from coachcrm.services import alert_service

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024 ** 3
CENTS = Decimal("0.01")
# Scale of cost_events.total_cost and actual_cost_to_date
COST_QUANTUM = Decimal("0.000001")

# Resource -> organization_usage counter column
USAGE_COUNTER_COLUMNS: dict[ResourceType, str] = {
    ResourceType.CLIENTS: "active_clients_count",
    ResourceType.EMAILS: "emails_sent",
    ResourceType.SMS: "sms_sent",
    ResourceType.WHATSAPP: "whatsapp_sent",
    ResourceType.VIDEO_MINUTES: "video_participants_minutes",
    ResourceType.AI_SUMMARIES: "ai_summaries_generated",
    ResourceType.AI_INSIGHTS: "ai_insights_generated",
    ResourceType.TRANSCRIPTION_MINUTES: "transcription_minutes_used",
    ResourceType.TEAM_MEMBERS: "team_members_count",
    ResourceType.STORAGE: "storage_used_bytes",  # limits are in GB
}


def _deny(message: str, limit: int = 0, current: int = 0) -> UsageCheckResult:
    return UsageCheckResult(allowed=False, limit=limit, current=current, remaining=0, message=message)


def _format_money(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def to_limit_units(resource: ResourceType | str, amount: int) -> int:
    """
    Convert a metered amount into the unit plan limits are expressed in.

    Storage is metered in bytes and limited in GB; a partial GB counts as a
    whole one. Every other resource is metered in its limit unit.
    """
    if resource == ResourceType.STORAGE:
        return -(-amount // BYTES_PER_GB)
    return amount


def get_billing_period(today: date | None = None) -> date:
    """First day of the current (UTC) month."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.replace(day=1)


def get_usage_row(db: Session, org_id: UUID, billing_period: date | None = None) -> OrganizationUsage | None:
    return db.scalar(
        select(OrganizationUsage).where(
            OrganizationUsage.organization_id == org_id,
            OrganizationUsage.billing_period == (billing_period or get_billing_period()),
        )
    )


def get_current_usage(
    db: Session,
    org_id: UUID,
    resource: ResourceType,
    billing_period: date | None = None,
) -> int:
    """
    Current-period usage for a resource, 0 if no row exists yet.

    Storage is reported in whole GB, rounded half up.
    """
    usage = get_usage_row(db, org_id, billing_period)
    if usage is None:
        return 0
    value = getattr(usage, USAGE_COUNTER_COLUMNS[resource]) or 0
    if resource == ResourceType.STORAGE:
        return int((Decimal(value) / BYTES_PER_GB).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return value


# =============================================================================
# Limit checks
# =============================================================================

def check_usage_limit(
    db: Session,
    org_id: UUID,
    resource: ResourceType | str,
    requested_amount: int = 1,
) -> UsageCheckResult:
    """
    Decide whether an organization may consume ``requested_amount`` of a resource.

    Order: organization exists, subscription usable, plan known, then the
    resource limit (unlimited with fair use, unavailable, or finite).
    Never raises; unexpected errors deny.
    """
    try:
        if not ResourceType.has_value(resource):
            return _deny(f"Unknown resource type: {resource}")
        resource = ResourceType(resource)

        org = db.get(Organization, org_id)
        if org is None:
            return _deny("Organization not found")

        if org.subscription_status not in USABLE_SUBSCRIPTION_STATUSES:
            return _deny("Subscription inactive. Please update your payment method.")

        limits = get_plan_limits(org.subscription_plan)
        if limits is None:
            return _deny("Invalid subscription plan")
        plan = SubscriptionPlan(org.subscription_plan)

        current = get_current_usage(db, org.id, resource)
        plan_limit = limits[resource]

        if plan_limit == UNLIMITED:
            fair_use_limit = get_fair_use_limit(plan, resource)
            if fair_use_limit is None:
                logger.info(
                    "No fair-use ceiling configured for %s on %s",
                    resource.value,
                    plan.value,
                    extra=build_log_context(org_id=org.id, resource_type=resource.value),
                )
            elif current > fair_use_limit:
                return _deny(
                    f"Fair use limit exceeded ({fair_use_limit}). Please contact support.",
                    limit=fair_use_limit,
                    current=current,
                )
            return UsageCheckResult(allowed=True, limit=UNLIMITED, current=current, remaining=-1)

        if plan_limit == 0:
            return _deny(
                f"{resource.display_name} is not available "
                "in your plan. Please upgrade to access this feature.",
                current=current,
            )

        remaining = plan_limit - current
        if remaining < requested_amount:
            overage = requested_amount - remaining
            overage_cost = calculate_overage_cost(plan, resource, overage)
            if overage_cost > 0:
                upsell = (
                    f"Purchase add-ons for {settings.CURRENCY_SYMBOL}{_format_money(overage_cost)} "
                    "or upgrade your plan."
                )
            else:
                upsell = "Please upgrade your plan."
            return UsageCheckResult(
                allowed=False,
                limit=plan_limit,
                current=current,
                remaining=max(0, remaining),
                message=(
                    f"Usage limit exceeded. {current}/{plan_limit} {resource.display_name} used. {upsell}"
                ),
                overage_cost=overage_cost,
            )

        return UsageCheckResult(allowed=True, limit=plan_limit, current=current, remaining=remaining)
    except Exception:
        logger.exception(
            "Error checking usage limit",
            extra=build_log_context(org_id=org_id, resource_type=str(resource)),
        )
        return _deny("Error checking usage limits")


# =============================================================================
# Metering
# =============================================================================

def _upsert_usage_row(
    db: Session,
    org: Organization,
    billing_period: date,
    increments: dict[str, Any],
) -> None:
    """
    Atomically add ``increments`` to the period row, creating it if missing.

    One INSERT ... ON CONFLICT DO UPDATE so concurrent increments never
    lose updates.
    """
    estimate = Decimal("0")
    if SubscriptionPlan.has_value(org.subscription_plan):
        estimate = PLAN_COST_ESTIMATES[SubscriptionPlan(org.subscription_plan)]

    stmt = upsert_insert(db, OrganizationUsage).values(
        organization_id=org.id,
        billing_period=billing_period,
        estimated_monthly_cost=estimate,
        **increments,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["organization_id", "billing_period"],
        set_={
            **{
                column: getattr(OrganizationUsage, column) + amount
                for column, amount in increments.items()
            },
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)


def increment_usage(
    db: Session,
    org_id: UUID,
    resource: ResourceType | str,
    amount: int = 1,
    metadata: dict | None = None,
) -> None:
    """
    Add ``amount`` to the resource counter, then evaluate usage alerts.

    Storage amounts are in bytes. Never raises.
    """
    context = build_log_context(org_id=org_id, resource_type=str(getattr(resource, "value", resource)))
    billing_period = get_billing_period()
    try:
        resource = ResourceType(resource)
        org = db.get(Organization, org_id)
        if org is None:
            logger.warning("Usage increment for unknown organization", extra=context)
            return
        _upsert_usage_row(db, org, billing_period, {USAGE_COUNTER_COLUMNS[resource]: amount})
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error incrementing usage", extra=context)
        return

    if metadata:
        logger.debug("Incremented usage by %s (metadata keys: %s)", amount, sorted(metadata), extra=context)

    if not settings.USAGE_ALERTS_ENABLED:
        return
    try:
        usage = check_usage_limit(db, org_id, resource)
        alert_service.check_and_record_usage_alerts(db, org_id, resource, usage, billing_period)
    except Exception:
        db.rollback()
        logger.exception("Error checking usage alerts", extra=context)


def track_cost(
    db: Session,
    org_id: UUID,
    cost_type: str,
    quantity: Decimal | int | float,
    unit_cost: Decimal | int | float,
    metadata: dict | None = None,
) -> None:
    """
    Record an internal cost-of-goods event and re-evaluate cost thresholds.

    Adds the event total to actual_cost_to_date for the period. Never raises.
    """
    context = build_log_context(org_id=org_id)
    billing_period = get_billing_period()
    try:
        org = db.get(Organization, org_id)
        if org is None:
            logger.warning("Cost event for unknown organization", extra=context)
            return

        quantity = Decimal(str(quantity))
        unit_cost = Decimal(str(unit_cost))
        total_cost = (quantity * unit_cost).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)

        db.add(
            CostEvent(
                organization_id=org.id,
                billing_period=billing_period,
                cost_type=cost_type,
                quantity=quantity,
                unit_cost=unit_cost,
                total_cost=total_cost,
                details=metadata or {},
            )
        )
        _upsert_usage_row(db, org, billing_period, {"actual_cost_to_date": total_cost})
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Error tracking cost", extra=context)
        return

    try:
        alert_service.check_cost_thresholds(db, org_id, billing_period)
    except Exception:
        logger.exception("Error checking cost thresholds", extra=context)


# =============================================================================
# Reporting
# =============================================================================

def get_usage_summary(db: Session, org_id: UUID) -> UsageSummary | None:
    """Current period usage in display units, or None if nothing was metered yet."""
    try:
        usage = get_usage_row(db, org_id)
    except Exception:
        logger.exception("Error getting usage summary", extra=build_log_context(org_id=org_id))
        return None
    if usage is None:
        return None

    return UsageSummary(
        billing_period=usage.billing_period,
        active_clients=usage.active_clients_count,
        emails_sent=usage.emails_sent,
        sms_sent=usage.sms_sent,
        whatsapp_sent=usage.whatsapp_sent,
        video_minutes=usage.video_participants_minutes,
        ai_summaries=usage.ai_summaries_generated,
        ai_insights=usage.ai_insights_generated,
        transcription_minutes=usage.transcription_minutes_used,
        team_members=usage.team_members_count,
        storage_gb=round((usage.storage_used_bytes or 0) / BYTES_PER_GB, 1),
        estimated_cost=usage.estimated_monthly_cost,
        actual_cost=usage.actual_cost_to_date,
    )
