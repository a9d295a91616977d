"""
Plan limits and overage pricing.

Defines per-plan monthly limits for each metered resource, the fair-use
ceilings applied to nominally unlimited resources, and per-unit overage prices.
A limit of 0 means the resource is not available on the plan.
"""

from decimal import Decimal
from typing import Literal

from coachcrm.db.enums import ResourceType, SubscriptionPlan

UNLIMITED: Literal["unlimited"] = "unlimited"

LimitValue = int | Literal["unlimited"]

R = ResourceType

# Monthly limits per plan tier. Storage is in GB, minutes are participant-minutes.
PLAN_LIMITS: dict[SubscriptionPlan, dict[ResourceType, LimitValue]] = {
    SubscriptionPlan.STANDARD: {
        R.CLIENTS: 50,
        R.EMAILS: 500,
        R.SMS: 25,
        R.WHATSAPP: 0,
        R.VIDEO_MINUTES: 0,
        R.AI_SUMMARIES: 0,
        R.AI_INSIGHTS: 0,
        R.TRANSCRIPTION_MINUTES: 0,
        R.TEAM_MEMBERS: 2,
        R.STORAGE: 5,
    },
    SubscriptionPlan.PRO: {
        R.CLIENTS: 100,
        R.EMAILS: 2000,
        R.SMS: 100,
        R.WHATSAPP: 500,
        R.VIDEO_MINUTES: 3000,  # 50 hours
        R.AI_SUMMARIES: 80,
        R.AI_INSIGHTS: 20,
        R.TRANSCRIPTION_MINUTES: 0,  # add-on only
        R.TEAM_MEMBERS: 5,
        R.STORAGE: 50,
    },
    SubscriptionPlan.PREMIUM: {
        R.CLIENTS: UNLIMITED,
        R.EMAILS: 10000,
        R.SMS: 300,
        R.WHATSAPP: 2000,
        R.VIDEO_MINUTES: 12000,  # 200 hours
        R.AI_SUMMARIES: UNLIMITED,
        R.AI_INSIGHTS: 200,
        R.TRANSCRIPTION_MINUTES: 80 * 60,
        R.TEAM_MEMBERS: UNLIMITED,
        R.STORAGE: UNLIMITED,
    },
}

# Soft caps on "unlimited" resources. A plan/resource pair that is unlimited
# and absent here is truly unbounded.
FAIR_USE_LIMITS: dict[SubscriptionPlan, dict[ResourceType, int]] = {
    SubscriptionPlan.PREMIUM: {
        R.CLIENTS: 500,
        R.AI_SUMMARIES: 300,
        R.TEAM_MEMBERS: 20,
    },
}

# Price per unit of overage, in the billing currency
OVERAGE_PRICING: dict[ResourceType, Decimal] = {
    R.CLIENTS: Decimal("99"),
    R.EMAILS: Decimal("0"),  # no email overage, upgrade only
    R.SMS: Decimal("0.10"),
    R.WHATSAPP: Decimal("0.15"),
    R.VIDEO_MINUTES: Decimal("1"),
    R.AI_SUMMARIES: Decimal("5"),
    R.AI_INSIGHTS: Decimal("5"),
    R.TRANSCRIPTION_MINUTES: Decimal("2"),
    R.TEAM_MEMBERS: Decimal("99"),
    R.STORAGE: Decimal("50"),  # per GB
}

# Internal cost-of-goods estimate per organization per month, used as the
# baseline for cost-threshold checks.
PLAN_COST_ESTIMATES: dict[SubscriptionPlan, Decimal] = {
    SubscriptionPlan.STANDARD: Decimal("353"),
    SubscriptionPlan.PRO: Decimal("1706"),
    SubscriptionPlan.PREMIUM: Decimal("5390"),
}

PLAN_FEATURES: dict[SubscriptionPlan, frozenset[str]] = {
    SubscriptionPlan.STANDARD: frozenset({
        "client_management",
        "basic_scheduling",
        "email_notifications",
        "sms_notifications",
        "client_portal",
        "basic_analytics",
        "payment_processing",
        "mobile_app",
        "basic_automation",
    }),
    SubscriptionPlan.PRO: frozenset({
        "client_management",
        "advanced_scheduling",
        "email_notifications",
        "sms_notifications",
        "whatsapp_notifications",
        "whitelabel_portal",
        "advanced_analytics",
        "custom_reports",
        "payment_processing",
        "mobile_app",
        "advanced_automation",
        "video_calling",
        "ai_summaries",
        "ai_insights",
        "custom_branding",
        "email_campaigns",
        "progress_tracking",
        "document_management",
    }),
    SubscriptionPlan.PREMIUM: frozenset({
        "client_management",
        "ai_scheduling",
        "email_notifications",
        "sms_notifications",
        "whatsapp_notifications",
        "inapp_messaging",
        "whitelabel_platform",
        "advanced_analytics",
        "custom_reports",
        "bi_integrations",
        "payment_processing",
        "mobile_app",
        "unlimited_automation",
        "video_calling",
        "ai_summaries",
        "ai_insights",
        "ai_transcription",
        "churn_prediction",
        "custom_branding",
        "multiple_domains",
        "advanced_email_marketing",
        "ai_coaching",
        "progress_tracking",
        "document_management",
        "esignatures",
        "api_access",
        "webhooks",
        "custom_integrations",
        "sso",
        "two_factor_auth",
        "sla_guarantee",
        "priority_features",
    }),
}

# Alert bands (percent of limit)
WARNING_THRESHOLD = 80
HIGH_WARNING_THRESHOLD = 90
CRITICAL_THRESHOLD = 100

# actual_cost_to_date / estimated_monthly_cost
COST_RATIO_NOTIFY = Decimal("1.5")
COST_RATIO_THROTTLE = Decimal("2.0")
COST_RATIO_SUSPEND = Decimal("3.0")


def get_plan_limits(plan: str) -> dict[ResourceType, LimitValue] | None:
    """Get the limit table for a plan, or None for an unknown plan."""
    if not SubscriptionPlan.has_value(plan):
        return None
    return PLAN_LIMITS[SubscriptionPlan(plan)]


def get_fair_use_limit(plan: SubscriptionPlan, resource: ResourceType) -> int | None:
    return FAIR_USE_LIMITS.get(plan, {}).get(resource)


def calculate_overage_cost(
    plan: SubscriptionPlan, resource: ResourceType, overage: int
) -> Decimal:
    """Overage charge for ``overage`` units beyond the plan limit."""
    return OVERAGE_PRICING.get(resource, Decimal("0")) * overage


def calculate_usage_percentage(current: int, limit: int) -> float:
    """Calculate usage as percentage of limit"""
    if limit == 0:
        return 0.0
    return (current / limit) * 100


def has_feature(plan: str, feature: str) -> bool:
    """Check if a plan includes a named feature."""
    if not SubscriptionPlan.has_value(plan):
        return False
    return feature in PLAN_FEATURES[SubscriptionPlan(plan)]
