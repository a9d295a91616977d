"""Permissions router - effective permissions, role catalog, client access.

Endpoints for:
- The caller's effective permissions
- Role and permission catalog for the team settings UI
- Client visibility checks
- Changing a member's role or modifiers
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from coachcrm.core.deps import get_current_session, get_db
from coachcrm.core.permissions import (
    ROLE_COLORS,
    ROLE_DEFAULTS,
    ROLE_DESCRIPTIONS,
    ROLE_LABELS,
    get_permissions_by_category,
)
from coachcrm.db.enums import Role
from coachcrm.db.models import User
from coachcrm.schemas.auth import UserSession
from coachcrm.schemas.permissions import (
    ClientAccessResponse,
    EffectivePermissionsResponse,
    PermissionRead,
    RoleRead,
    RolesCatalogResponse,
)
from coachcrm.services import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


class MemberUpdate(BaseModel):
    """Update member role or modifiers. Omitted fields are unchanged."""
    role: Role | None = None
    is_biller: bool | None = None
    is_supervisor: bool | None = None


class MemberRead(BaseModel):
    user_id: UUID
    role: Role
    is_biller: bool
    is_supervisor: bool


@router.get("/me", response_model=EffectivePermissionsResponse)
def get_my_permissions(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Effective permissions for the current user (role defaults plus modifiers)."""
    user = db.get(User, session.user_id)
    permissions = permission_service.get_effective_permissions(db, session.user_id)
    return EffectivePermissionsResponse(
        user_id=session.user_id,
        role=session.role,
        is_biller=bool(user and user.is_biller),
        permissions=sorted(p.value for p in permissions),
    )


@router.get("/roles", response_model=RolesCatalogResponse)
def get_role_catalog(session: UserSession = Depends(get_current_session)):
    """Role labels, descriptions and default permission sets."""
    roles = [
        RoleRead(
            role=role,
            label=ROLE_LABELS[role],
            description=ROLE_DESCRIPTIONS[role],
            color=ROLE_COLORS[role],
            permissions=sorted(p.value for p in ROLE_DEFAULTS[role]),
        )
        for role in Role
    ]
    categories = {
        category: [
            PermissionRead(
                key=p.key.value,
                label=p.label,
                description=p.description,
                category=p.category,
            )
            for p in perms
        ]
        for category, perms in get_permissions_by_category().items()
    }
    return RolesCatalogResponse(roles=roles, categories=categories)


@router.get("/clients/{client_id}/access", response_model=ClientAccessResponse)
def check_client_access(
    client_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return ClientAccessResponse(
        client_id=client_id,
        allowed=permission_service.can_access_client(db, session.user_id, client_id),
    )


@router.patch("/members/{user_id}", response_model=MemberRead)
def update_member(
    user_id: UUID,
    body: MemberUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Change a member's role and/or biller/supervisor modifiers."""
    if body.role is None and body.is_biller is None and body.is_supervisor is None:
        raise HTTPException(status_code=400, detail="No changes requested")

    try:
        if body.role is not None:
            user = permission_service.change_user_role(db, session.user_id, user_id, body.role)
        if body.is_biller is not None or body.is_supervisor is not None:
            user = permission_service.set_user_modifiers(
                db,
                session.user_id,
                user_id,
                is_biller=body.is_biller,
                is_supervisor=body.is_supervisor,
            )
    except permission_service.PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MemberRead(
        user_id=user.id,
        role=Role(user.role),
        is_biller=user.is_biller,
        is_supervisor=user.is_supervisor,
    )
