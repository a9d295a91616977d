"""Usage metering and threshold alert tests."""

from datetime import date

import pytest

from coachcrm.core.config import settings
from coachcrm.db.enums import AlertSeverity, ResourceType, SubscriptionPlan
from coachcrm.db.models import OrganizationUsage, UsageAlert
from coachcrm.services import alert_service, usage_service
from coachcrm.schemas.usage import UsageCheckResult


def _alerts(db, org):
    return db.query(UsageAlert).filter(UsageAlert.organization_id == org.id).all()


@pytest.fixture
def pro_org(make_org):
    return make_org(SubscriptionPlan.PRO)


# =============================================================================
# increment_usage
# =============================================================================


def test_first_increment_creates_period_row(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, ResourceType.EMAILS, 3)

    row = usage_service.get_usage_row(db, pro_org.id)
    assert row is not None
    assert row.billing_period == usage_service.get_billing_period()
    assert row.emails_sent == 3
    assert row.sms_sent == 0
    assert row.estimated_monthly_cost == 1706


def test_increments_accumulate(db, pro_org):
    for _ in range(5):
        usage_service.increment_usage(db, pro_org.id, "sms")
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 10)

    assert usage_service.get_current_usage(db, pro_org.id, ResourceType.SMS) == 15
    assert db.query(OrganizationUsage).count() == 1


def test_storage_increment_is_in_bytes(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, ResourceType.STORAGE, 3 * 1024 ** 3)

    row = usage_service.get_usage_row(db, pro_org.id)
    assert row.storage_used_bytes == 3 * 1024 ** 3
    assert usage_service.get_current_usage(db, pro_org.id, ResourceType.STORAGE) == 3


def test_increment_never_raises(db, pro_org, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(usage_service, "_upsert_usage_row", broken)
    usage_service.increment_usage(db, pro_org.id, ResourceType.EMAILS)

    assert usage_service.get_usage_row(db, pro_org.id) is None


def test_increment_unknown_resource_is_swallowed(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, "carrier_pigeons")
    assert usage_service.get_usage_row(db, pro_org.id) is None


def test_new_period_starts_from_zero(db, pro_org):
    db.add(
        OrganizationUsage(
            organization_id=pro_org.id,
            billing_period=date(2000, 1, 1),
            sms_sent=99,
        )
    )
    db.commit()

    assert usage_service.get_current_usage(db, pro_org.id, ResourceType.SMS) == 0


def test_billing_period_is_first_of_month():
    assert usage_service.get_billing_period(date(2026, 3, 17)) == date(2026, 3, 1)


# =============================================================================
# Threshold alerts
# =============================================================================


def test_crossing_80_percent_creates_one_warning(db, pro_org):
    """Pro video minutes: 79% -> 81% yields exactly one 80% warning."""
    limit = 3000
    usage_service.increment_usage(db, pro_org.id, ResourceType.VIDEO_MINUTES, int(limit * 0.79))
    assert _alerts(db, pro_org) == []

    usage_service.increment_usage(db, pro_org.id, ResourceType.VIDEO_MINUTES, int(limit * 0.02))

    alerts = _alerts(db, pro_org)
    assert len(alerts) == 1
    assert alerts[0].severity == AlertSeverity.WARNING.value
    assert alerts[0].threshold == 80
    assert alerts[0].resource_type == "video_minutes"
    assert alerts[0].current_usage == 2430
    assert alerts[0].limit_value == 3000
    assert alerts[0].message == (
        "You've used 80% of your video minutes limit (2430/3000). Consider upgrading to avoid interruption."
    )


def test_repeat_in_same_band_is_deduplicated(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 81)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 1)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 1)

    alerts = _alerts(db, pro_org)
    assert len(alerts) == 1
    db.refresh(alerts[0])
    assert alerts[0].occurrence_count == 3
    assert alerts[0].current_usage == 83


def test_each_band_gets_its_own_alert(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 85)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 10)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 10)

    by_threshold = {a.threshold: a for a in _alerts(db, pro_org)}
    assert set(by_threshold) == {80, 90, 100}
    assert by_threshold[90].severity == "warning"
    assert by_threshold[100].severity == "critical"
    assert by_threshold[100].message.endswith("Upgrade or purchase add-ons to continue.")


def test_unlimited_resources_never_alert(db, make_org):
    org = make_org(SubscriptionPlan.PREMIUM)
    usage_service.increment_usage(db, org.id, ResourceType.STORAGE, 10 * 1024 ** 3)
    assert _alerts(db, org) == []


def test_alerts_can_be_disabled(db, pro_org, monkeypatch):
    monkeypatch.setattr(settings, "USAGE_ALERTS_ENABLED", False)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 95)

    assert usage_service.get_current_usage(db, pro_org.id, ResourceType.SMS) == 95
    assert _alerts(db, pro_org) == []


def test_alert_failure_keeps_increment(db, pro_org, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("alert store down")

    monkeypatch.setattr(alert_service, "record_usage_alert", broken)
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 95)

    assert usage_service.get_current_usage(db, pro_org.id, ResourceType.SMS) == 95


@pytest.mark.parametrize(
    "current,expected",
    [(79, None), (80, (80, AlertSeverity.WARNING)), (95, (90, AlertSeverity.WARNING)), (130, (100, AlertSeverity.CRITICAL))],
)
def test_classify_threshold(current, expected):
    assert alert_service.classify_threshold(current) == expected


def test_zero_limit_check_does_not_alert(db, pro_org):
    usage = UsageCheckResult(allowed=False, limit=0, current=5, remaining=0)
    assert alert_service.check_and_record_usage_alerts(
        db, pro_org.id, ResourceType.TRANSCRIPTION_MINUTES, usage, usage_service.get_billing_period()
    ) is None


def test_list_usage_alerts_filters_by_period(db, pro_org):
    usage_service.increment_usage(db, pro_org.id, ResourceType.SMS, 85)
    alert_service.record_usage_alert(
        db,
        org_id=pro_org.id,
        resource=ResourceType.EMAILS,
        billing_period=date(2000, 1, 1),
        threshold=100,
        severity=AlertSeverity.CRITICAL,
        current=2000,
        limit=2000,
    )

    assert len(alert_service.list_usage_alerts(db, pro_org.id)) == 2
    current = alert_service.list_usage_alerts(db, pro_org.id, billing_period=usage_service.get_billing_period())
    assert [a.resource_type for a in current] == ["sms"]
