"""Permission service: RBAC resolution, client scoping, and role management.

Resolution: role_default | (BILLER_PERMISSIONS if is_biller)
Missing user, unknown role, unknown permission, or lookup failure: deny

Read/decision functions never raise; they log and return the fail-closed
value. Only require_permission and the role-management writes raise.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachcrm.core.permissions import (
    BILLER_PERMISSIONS,
    PermissionKey,
    get_role_default_permissions,
)
from coachcrm.core.structured_logging import build_log_context
from coachcrm.db.enums import ROLES_SEE_ALL_CLIENTS, AssignmentType, Role
from coachcrm.db.models import Client, CoachClientAssignment, User
from coachcrm.schemas.permissions import AssignmentResult

logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised when a user lacks a required permission."""

    def __init__(self, permission: PermissionKey | str):
        self.permission = permission.value if isinstance(permission, PermissionKey) else str(permission)
        super().__init__(f"Permission denied: {self.permission}")


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _coerce_permission(permission: PermissionKey | str) -> PermissionKey | None:
    if isinstance(permission, PermissionKey):
        return permission
    if PermissionKey.has_value(permission):
        return PermissionKey(permission)
    return None


def _load_user(db: Session, user_id: uuid.UUID | str) -> User | None:
    return db.get(User, _as_uuid(user_id))


def resolve_permissions(role: Role | str, is_biller: bool) -> frozenset[PermissionKey]:
    """Pure resolution of a role plus modifiers into a permission set."""
    permissions = get_role_default_permissions(role)
    if is_biller:
        permissions = permissions | BILLER_PERMISSIONS
    return permissions


# =============================================================================
# Permission Checks
# =============================================================================

def has_permission(db: Session, user_id: uuid.UUID | str, permission: PermissionKey | str) -> bool:
    """
    Check if a user holds a permission.

    Fail-closed: a missing user, an unknown role or permission key, or any
    lookup error returns False.
    """
    key = _coerce_permission(permission)
    if key is None:
        logger.warning(
            "Unknown permission key %r", permission, extra=build_log_context(user_id=user_id)
        )
        return False

    try:
        user = _load_user(db, user_id)
    except Exception:
        logger.exception(
            "Permission lookup failed, denying %s", key.value, extra=build_log_context(user_id=user_id)
        )
        return False

    if user is None:
        return False

    if not Role.has_value(user.role):
        logger.warning("User has unknown role %r", user.role, extra=build_log_context(user_id=user_id))
        return False

    return key in resolve_permissions(user.role, user.is_biller)


def require_permission(db: Session, user_id: uuid.UUID | str, permission: PermissionKey | str) -> None:
    """
    Raise PermissionDeniedError unless the user holds the permission.

    Lookup failures surface as the same denial.
    """
    if not has_permission(db, user_id, permission):
        raise PermissionDeniedError(permission)


def get_current_user_role(db: Session, user_id: uuid.UUID | str) -> Role | None:
    """Get a user's role, or None if the user is missing or the lookup fails."""
    try:
        user = _load_user(db, user_id)
    except Exception:
        logger.exception("Error fetching user role", extra=build_log_context(user_id=user_id))
        return None
    if user is None or not Role.has_value(user.role):
        return None
    return Role(user.role)


def get_effective_permissions(db: Session, user_id: uuid.UUID | str) -> frozenset[PermissionKey]:
    """All permissions a user currently holds (empty on any failure)."""
    try:
        user = _load_user(db, user_id)
    except Exception:
        logger.exception("Error resolving permissions", extra=build_log_context(user_id=user_id))
        return frozenset()
    if user is None:
        return frozenset()
    return resolve_permissions(user.role, user.is_biller)


# =============================================================================
# Client Scoping
# =============================================================================

def can_access_client(db: Session, user_id: uuid.UUID | str, client_id: uuid.UUID | str) -> bool:
    """
    Check whether a user may see a client.

    Owner, admin, manager and support see every client in their organization.
    A coach sees a client only through an explicit assignment.
    """
    try:
        user = _load_user(db, user_id)
        if user is None or not Role.has_value(user.role):
            return False

        client = db.get(Client, _as_uuid(client_id))
        if client is None or client.organization_id != user.organization_id:
            return False

        role = Role(user.role)
        if role in ROLES_SEE_ALL_CLIENTS or role == Role.SUPPORT:
            return True

        assignment_id = db.scalar(
            select(CoachClientAssignment.id).where(
                CoachClientAssignment.coach_id == user.id,
                CoachClientAssignment.client_id == client.id,
            )
        )
        return assignment_id is not None
    except Exception:
        logger.exception("Error checking client access", extra=build_log_context(user_id=user_id))
        return False


def get_assigned_clients(db: Session, coach_id: uuid.UUID | str) -> list[uuid.UUID]:
    """Client ids explicitly assigned to a coach (empty list on error)."""
    try:
        return list(
            db.scalars(
                select(CoachClientAssignment.client_id)
                .where(CoachClientAssignment.coach_id == _as_uuid(coach_id))
                .order_by(CoachClientAssignment.assigned_at)
            )
        )
    except Exception:
        logger.exception("Error fetching assigned clients", extra=build_log_context(user_id=coach_id))
        return []


def assign_client_to_coach(
    db: Session,
    client_id: uuid.UUID | str,
    coach_id: uuid.UUID | str,
    assigned_by: uuid.UUID | str | None,
    assignment_type: AssignmentType | str = AssignmentType.PRIMARY,
) -> AssignmentResult:
    """
    Assign a client to a coach within the client's organization.

    Re-assigning an existing pair updates its type, assigner and timestamp.
    """
    try:
        client = db.get(Client, _as_uuid(client_id))
        if client is None:
            return AssignmentResult(success=False, error="Client not found")

        assignment_type = AssignmentType(assignment_type)
        coach_uuid = _as_uuid(coach_id)
        assigner_uuid = _as_uuid(assigned_by) if assigned_by else None
        now = datetime.now(timezone.utc)

        existing = db.scalar(
            select(CoachClientAssignment).where(
                CoachClientAssignment.client_id == client.id,
                CoachClientAssignment.coach_id == coach_uuid,
            )
        )
        if existing:
            existing.assignment_type = assignment_type.value
            existing.assigned_by = assigner_uuid
            existing.assigned_at = now
        else:
            db.add(
                CoachClientAssignment(
                    organization_id=client.organization_id,
                    client_id=client.id,
                    coach_id=coach_uuid,
                    assignment_type=assignment_type.value,
                    assigned_by=assigner_uuid,
                    assigned_at=now,
                )
            )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Failed to assign client", extra=build_log_context(user_id=coach_id))
        return AssignmentResult(success=False, error=str(exc) or "Failed to assign client")

    logger.info(
        "Assigned client %s to coach %s (%s)",
        client_id,
        coach_id,
        assignment_type.value,
        extra=build_log_context(user_id=assigned_by, org_id=client.organization_id),
    )
    return AssignmentResult(success=True)


def remove_client_assignment(
    db: Session,
    client_id: uuid.UUID | str,
    coach_id: uuid.UUID | str,
) -> AssignmentResult:
    """Delete a coach-client assignment. Removing a missing pair succeeds."""
    try:
        assignment = db.scalar(
            select(CoachClientAssignment).where(
                CoachClientAssignment.client_id == _as_uuid(client_id),
                CoachClientAssignment.coach_id == _as_uuid(coach_id),
            )
        )
        if assignment:
            db.delete(assignment)
            db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Failed to remove client assignment", extra=build_log_context(user_id=coach_id))
        return AssignmentResult(success=False, error=str(exc) or "Failed to remove assignment")
    return AssignmentResult(success=True)


# =============================================================================
# Role Management
# =============================================================================

def _authorize_member_change(db: Session, actor_id: uuid.UUID | str, target_user_id: uuid.UUID | str) -> User:
    """
    Shared checks for changing another member's role or modifiers.

    Returns the target user.
    """
    require_permission(db, actor_id, PermissionKey.CHANGE_PERMISSIONS)

    actor = _load_user(db, actor_id)
    target = _load_user(db, target_user_id)
    if actor is None or target is None or target.organization_id != actor.organization_id:
        raise ValueError("User not found")
    if actor.id == target.id:
        raise ValueError("Cannot change your own role or modifiers")
    return target


def change_user_role(
    db: Session,
    actor_id: uuid.UUID | str,
    target_user_id: uuid.UUID | str,
    new_role: Role | str,
) -> User:
    """
    Change a team member's role.

    Granting or removing owner additionally requires transfer_ownership.
    Bumps token_version so existing sessions carry the new role.
    """
    if not Role.has_value(new_role):
        raise ValueError(f"Invalid role: {new_role}")
    new_role = Role(new_role)

    target = _authorize_member_change(db, actor_id, target_user_id)
    if new_role == Role.OWNER or target.role == Role.OWNER.value:
        require_permission(db, actor_id, PermissionKey.TRANSFER_OWNERSHIP)

    old_role = target.role
    if old_role == new_role.value:
        return target

    target.role = new_role.value
    target.token_version += 1
    db.commit()
    db.refresh(target)

    logger.info(
        "Role changed %s -> %s",
        old_role,
        new_role.value,
        extra=build_log_context(user_id=target.id, org_id=target.organization_id),
    )
    return target


def set_user_modifiers(
    db: Session,
    actor_id: uuid.UUID | str,
    target_user_id: uuid.UUID | str,
    is_biller: bool | None = None,
    is_supervisor: bool | None = None,
) -> User:
    """Set the biller/supervisor modifiers on a team member. None leaves a flag unchanged."""
    target = _authorize_member_change(db, actor_id, target_user_id)

    if is_biller is not None:
        target.is_biller = is_biller
    if is_supervisor is not None:
        target.is_supervisor = is_supervisor
    db.commit()
    db.refresh(target)
    return target
