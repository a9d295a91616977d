"""Coach client-scoping and assignment tests."""

import uuid

import pytest

from coachcrm.db.enums import AssignmentType, Role
from coachcrm.db.models import CoachClientAssignment
from coachcrm.services import permission_service


@pytest.fixture
def client_record(make_client, test_org):
    return make_client(test_org, name="Asha")


@pytest.mark.parametrize("role", [Role.OWNER, Role.ADMIN, Role.MANAGER, Role.SUPPORT])
def test_org_wide_roles_see_every_client(db, make_user, test_org, client_record, role):
    user = make_user(test_org, role)
    assert permission_service.can_access_client(db, user.id, client_record.id) is True


def test_coach_needs_assignment(db, coach_user, client_record):
    assert permission_service.can_access_client(db, coach_user.id, client_record.id) is False


def test_assign_then_remove_toggles_access(db, owner_user, coach_user, client_record):
    result = permission_service.assign_client_to_coach(
        db, client_record.id, coach_user.id, owner_user.id, AssignmentType.PRIMARY
    )
    assert result.success is True
    assert result.error is None
    assert permission_service.can_access_client(db, coach_user.id, client_record.id) is True

    removed = permission_service.remove_client_assignment(db, client_record.id, coach_user.id)
    assert removed.success is True
    assert permission_service.can_access_client(db, coach_user.id, client_record.id) is False


def test_assignment_is_pair_specific(db, make_user, make_client, test_org, owner_user, coach_user, client_record):
    other_coach = make_user(test_org, Role.COACH)
    other_client = make_client(test_org, name="Ravi")
    permission_service.assign_client_to_coach(db, client_record.id, coach_user.id, owner_user.id)

    assert permission_service.can_access_client(db, coach_user.id, other_client.id) is False
    assert permission_service.can_access_client(db, other_coach.id, client_record.id) is False


def test_assignment_records_metadata(db, owner_user, coach_user, client_record, test_org):
    permission_service.assign_client_to_coach(
        db, client_record.id, coach_user.id, owner_user.id, AssignmentType.SUPERVISOR
    )

    assignment = db.query(CoachClientAssignment).filter_by(client_id=client_record.id).one()
    assert assignment.organization_id == test_org.id
    assert assignment.assignment_type == "supervisor"
    assert assignment.assigned_by == owner_user.id
    assert assignment.assigned_at is not None


def test_reassigning_updates_in_place(db, owner_user, coach_user, client_record):
    permission_service.assign_client_to_coach(db, client_record.id, coach_user.id, owner_user.id)
    result = permission_service.assign_client_to_coach(
        db, client_record.id, coach_user.id, owner_user.id, "secondary"
    )

    assert result.success is True
    rows = db.query(CoachClientAssignment).filter_by(client_id=client_record.id).all()
    assert len(rows) == 1
    assert rows[0].assignment_type == "secondary"


def test_assign_missing_client(db, owner_user, coach_user):
    result = permission_service.assign_client_to_coach(db, uuid.uuid4(), coach_user.id, owner_user.id)
    assert result.success is False
    assert result.error == "Client not found"


def test_assign_invalid_type_reports_failure(db, owner_user, coach_user, client_record):
    result = permission_service.assign_client_to_coach(
        db, client_record.id, coach_user.id, owner_user.id, "mentor"
    )
    assert result.success is False
    assert result.error


def test_get_assigned_clients(db, make_client, test_org, owner_user, coach_user, client_record):
    second = make_client(test_org, name="Meera")
    permission_service.assign_client_to_coach(db, client_record.id, coach_user.id, owner_user.id)
    permission_service.assign_client_to_coach(db, second.id, coach_user.id, owner_user.id)

    assert set(permission_service.get_assigned_clients(db, coach_user.id)) == {client_record.id, second.id}
    assert permission_service.get_assigned_clients(db, uuid.uuid4()) == []


def test_get_assigned_clients_empty_on_error(db):
    assert permission_service.get_assigned_clients(db, "not-a-uuid") == []


def test_client_in_other_org_is_hidden(db, make_org, make_client, owner_user):
    other_org = make_org(name="Other Coaching")
    foreign_client = make_client(other_org)
    assert permission_service.can_access_client(db, owner_user.id, foreign_client.id) is False


def test_can_access_client_fails_closed(db, owner_user):
    assert permission_service.can_access_client(db, uuid.uuid4(), uuid.uuid4()) is False
    assert permission_service.can_access_client(db, owner_user.id, "bogus") is False
