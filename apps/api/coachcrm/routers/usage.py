"""Usage dashboard and metering routes."""

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from coachcrm.core.deps import get_current_session, get_db, require_permission
from coachcrm.core.permissions import PermissionKey as P
from coachcrm.db.enums import ResourceType
from coachcrm.schemas.auth import UserSession
from coachcrm.schemas.usage import UsageAlertRead, UsageCheckResult, UsageSummary
from coachcrm.services import alert_service, usage_service

router = APIRouter(prefix="/usage", tags=["usage"])


class UsageRecordRequest(BaseModel):
    amount: int = Field(default=1, ge=1)
    metadata: dict[str, Any] | None = None


@router.get("/summary", response_model=UsageSummary | None)
def get_usage_summary(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission(P.ACCESS_USAGE_DASHBOARD)),
):
    """Current billing period usage (null before anything is metered)."""
    return usage_service.get_usage_summary(db, session.org_id)


@router.get("/check/{resource}", response_model=UsageCheckResult)
def check_usage(
    resource: ResourceType,
    amount: int = 1,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission(P.ACCESS_USAGE_DASHBOARD)),
):
    """Dry-run a usage check; a denial is reported in the body, not as an error."""
    return usage_service.check_usage_limit(db, session.org_id, resource, amount)


@router.get("/alerts", response_model=list[UsageAlertRead])
def list_usage_alerts(
    billing_period: date | None = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission(P.ACCESS_USAGE_DASHBOARD)),
):
    return alert_service.list_usage_alerts(
        db, session.org_id, billing_period=billing_period, limit=limit, offset=offset
    )


@router.post("/{resource}/record", response_model=UsageCheckResult)
def record_usage(
    resource: ResourceType,
    body: UsageRecordRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    Meter consumption of a resource for the caller's organization.

    ``amount`` is in the metering unit (bytes for storage). Returns 402 with
    the denial message when the plan does not allow it.
    """
    requested = usage_service.to_limit_units(resource, body.amount)
    check = usage_service.check_usage_limit(db, session.org_id, resource, requested)
    if not check.allowed:
        raise HTTPException(status_code=402, detail=check.message)

    usage_service.increment_usage(db, session.org_id, resource, body.amount, body.metadata)
    return usage_service.check_usage_limit(db, session.org_id, resource, 0)
