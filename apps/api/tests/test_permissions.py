"""
Permission resolution tests.

Tests cover:
- Role completeness (owner holds every permission)
- Fail-closed behavior on missing users and lookup errors
- Biller modifier additivity
- require_permission error contract
- Role and modifier management guards
"""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from coachcrm.core.permissions import (
    BILLER_PERMISSIONS,
    PERMISSION_REGISTRY,
    ROLE_DEFAULTS,
    PermissionKey,
    get_role_default_permissions,
    is_valid_permission,
)
from coachcrm.db.enums import Role
from coachcrm.services import permission_service
from coachcrm.services.permission_service import PermissionDeniedError


# =============================================================================
# Catalog
# =============================================================================


def test_owner_holds_every_permission():
    assert ROLE_DEFAULTS[Role.OWNER] == frozenset(PermissionKey)


@pytest.mark.parametrize("role", [r for r in Role if r != Role.OWNER])
def test_owner_is_superset_of_every_role(role):
    assert ROLE_DEFAULTS[role] <= ROLE_DEFAULTS[Role.OWNER]


def test_every_role_has_defaults():
    assert set(ROLE_DEFAULTS) == set(Role)


def test_registry_covers_catalog():
    assert set(PERMISSION_REGISTRY) == {p.value for p in PermissionKey}
    assert len(PERMISSION_REGISTRY) == 62


def test_manager_lacks_manage_integrations():
    assert PermissionKey.MANAGE_INTEGRATIONS not in ROLE_DEFAULTS[Role.MANAGER]


def test_coach_lacks_financial_reports():
    assert PermissionKey.VIEW_FINANCIAL_REPORTS not in ROLE_DEFAULTS[Role.COACH]
    assert PermissionKey.VIEW_FINANCIAL_REPORTS in BILLER_PERMISSIONS


def test_admin_cannot_change_subscription():
    assert PermissionKey.CHANGE_SUBSCRIPTION not in ROLE_DEFAULTS[Role.ADMIN]
    assert PermissionKey.VIEW_BILLING in ROLE_DEFAULTS[Role.ADMIN]


def test_unknown_role_has_no_defaults():
    assert get_role_default_permissions("superuser") == frozenset()
    assert get_role_default_permissions("coach") == ROLE_DEFAULTS[Role.COACH]


def test_is_valid_permission():
    assert is_valid_permission("manage_integrations")
    assert not is_valid_permission("manage_everything")


# =============================================================================
# has_permission
# =============================================================================


@pytest.mark.parametrize("role", list(Role))
def test_has_permission_follows_role_defaults(db, make_user, test_org, role):
    user = make_user(test_org, role)
    for permission in PermissionKey:
        expected = permission in ROLE_DEFAULTS[role]
        assert permission_service.has_permission(db, user.id, permission) is expected


def test_has_permission_accepts_string_keys(db, owner_user):
    assert permission_service.has_permission(db, owner_user.id, "delete_account") is True


def test_unknown_permission_denied(db, owner_user):
    assert permission_service.has_permission(db, owner_user.id, "launch_rockets") is False


def test_missing_user_denied_for_every_permission(db):
    missing = uuid.uuid4()
    for permission in PermissionKey:
        assert permission_service.has_permission(db, missing, permission) is False


def test_malformed_user_id_denied(db):
    assert permission_service.has_permission(db, "not-a-uuid", PermissionKey.VIEW_BILLING) is False


def test_lookup_error_fails_closed(db, owner_user, monkeypatch):
    """A persistence error must deny, not raise and not allow."""
    def broken_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "get", broken_get)
    for permission in PermissionKey:
        assert permission_service.has_permission(db, owner_user.id, permission) is False


def test_unknown_stored_role_denied(db, make_user, test_org):
    user = make_user(test_org, "superuser")
    assert permission_service.has_permission(db, user.id, PermissionKey.VIEW_OWN_CLIENTS) is False
    assert permission_service.get_current_user_role(db, user.id) is None


# =============================================================================
# Biller modifier
# =============================================================================


def test_biller_modifier_grants_financial_reports(db, make_user, test_org):
    biller_coach = make_user(test_org, Role.COACH, is_biller=True)
    plain_coach = make_user(test_org, Role.COACH, is_biller=False)

    assert permission_service.has_permission(db, biller_coach.id, PermissionKey.VIEW_FINANCIAL_REPORTS) is True
    assert permission_service.has_permission(db, plain_coach.id, PermissionKey.VIEW_FINANCIAL_REPORTS) is False


def test_biller_modifier_is_additive_only(db, make_user, test_org):
    biller_coach = make_user(test_org, Role.COACH, is_biller=True)
    effective = permission_service.get_effective_permissions(db, biller_coach.id)

    assert effective == ROLE_DEFAULTS[Role.COACH] | BILLER_PERMISSIONS
    assert PermissionKey.DELETE_INVOICES not in effective


def test_supervisor_modifier_grants_nothing_extra(db, make_user, test_org):
    supervisor = make_user(test_org, Role.COACH, is_supervisor=True)
    assert permission_service.get_effective_permissions(db, supervisor.id) == ROLE_DEFAULTS[Role.COACH]


def test_effective_permissions_empty_for_missing_user(db):
    assert permission_service.get_effective_permissions(db, uuid.uuid4()) == frozenset()


# =============================================================================
# require_permission / get_current_user_role
# =============================================================================


def test_require_permission_manager_manage_integrations(db, make_user, test_org):
    manager = make_user(test_org, Role.MANAGER)

    with pytest.raises(PermissionDeniedError) as exc_info:
        permission_service.require_permission(db, manager.id, "manage_integrations")

    assert "manage_integrations" in str(exc_info.value)
    assert exc_info.value.permission == "manage_integrations"


def test_require_permission_passes_when_held(db, owner_user):
    assert permission_service.require_permission(db, owner_user.id, PermissionKey.MANAGE_INTEGRATIONS) is None


def test_require_permission_missing_user_raises_denial(db):
    with pytest.raises(PermissionDeniedError):
        permission_service.require_permission(db, uuid.uuid4(), PermissionKey.VIEW_BILLING)


def test_get_current_user_role(db, coach_user):
    assert permission_service.get_current_user_role(db, coach_user.id) == Role.COACH
    assert permission_service.get_current_user_role(db, uuid.uuid4()) is None


# =============================================================================
# Role management
# =============================================================================


def test_owner_can_change_coach_to_manager(db, owner_user, coach_user):
    old_version = coach_user.token_version

    updated = permission_service.change_user_role(db, owner_user.id, coach_user.id, Role.MANAGER)

    assert updated.role == Role.MANAGER.value
    assert updated.token_version == old_version + 1
    assert permission_service.has_permission(db, coach_user.id, PermissionKey.VIEW_ALL_CLIENTS) is True


def test_coach_cannot_change_roles(db, make_user, test_org, coach_user):
    other = make_user(test_org, Role.SUPPORT)
    with pytest.raises(PermissionDeniedError):
        permission_service.change_user_role(db, coach_user.id, other.id, Role.ADMIN)


def test_admin_cannot_grant_owner(db, make_user, test_org, coach_user):
    """Admin holds change_permissions but not transfer_ownership."""
    admin = make_user(test_org, Role.ADMIN)
    with pytest.raises(PermissionDeniedError) as exc_info:
        permission_service.change_user_role(db, admin.id, coach_user.id, Role.OWNER)
    assert exc_info.value.permission == "transfer_ownership"


def test_admin_cannot_demote_owner(db, make_user, test_org, owner_user):
    admin = make_user(test_org, Role.ADMIN)
    with pytest.raises(PermissionDeniedError):
        permission_service.change_user_role(db, admin.id, owner_user.id, Role.COACH)


def test_cannot_change_own_role(db, owner_user):
    with pytest.raises(ValueError, match="own role"):
        permission_service.change_user_role(db, owner_user.id, owner_user.id, Role.COACH)


def test_invalid_role_rejected(db, owner_user, coach_user):
    with pytest.raises(ValueError, match="Invalid role"):
        permission_service.change_user_role(db, owner_user.id, coach_user.id, "developer")


def test_cross_org_change_rejected(db, make_org, make_user, owner_user):
    other_org = make_org(name="Other Coaching")
    outsider = make_user(other_org, Role.COACH)
    with pytest.raises(ValueError, match="User not found"):
        permission_service.change_user_role(db, owner_user.id, outsider.id, Role.MANAGER)


def test_set_user_modifiers(db, owner_user, coach_user):
    updated = permission_service.set_user_modifiers(db, owner_user.id, coach_user.id, is_biller=True)

    assert updated.is_biller is True
    assert updated.is_supervisor is False
    assert permission_service.has_permission(db, coach_user.id, PermissionKey.VIEW_FINANCIAL_REPORTS) is True


def test_set_user_modifiers_requires_change_permissions(db, make_user, test_org, coach_user):
    support = make_user(test_org, Role.SUPPORT)
    with pytest.raises(PermissionDeniedError):
        permission_service.set_user_modifiers(db, support.id, coach_user.id, is_biller=True)
