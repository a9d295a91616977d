"""Usage limit and summary schemas."""

from datetime import date
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from coachcrm.db.enums import AlertSeverity


class UsageCheckResult(BaseModel):
    """
    Outcome of a usage-limit check.

    remaining is -1 when the limit is "unlimited". overage_cost is only set
    on a limit-exceeded denial.
    """
    allowed: bool
    limit: int | Literal["unlimited"]
    current: int
    remaining: int
    message: str | None = None
    overage_cost: Decimal | None = None


class UsageSummary(BaseModel):
    """Flat projection of the current billing period's usage row."""
    billing_period: date
    active_clients: int
    emails_sent: int
    sms_sent: int
    whatsapp_sent: int
    video_minutes: int
    ai_summaries: int
    ai_insights: int
    transcription_minutes: int
    team_members: int
    storage_gb: float
    estimated_cost: Decimal
    actual_cost: Decimal


class UsageAlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource_type: str
    billing_period: date
    threshold: int
    current_usage: int
    limit_value: int
    usage_percentage: float
    severity: AlertSeverity
    message: str
    occurrence_count: int
