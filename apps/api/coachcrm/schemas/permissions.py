"""Permission and assignment schemas."""

from uuid import UUID

from pydantic import BaseModel

from coachcrm.db.enums import Role


class AssignmentResult(BaseModel):
    """Result of an assignment write; failures carry a display message."""
    success: bool
    error: str | None = None


class PermissionRead(BaseModel):
    key: str
    label: str
    description: str
    category: str


class RoleRead(BaseModel):
    role: Role
    label: str
    description: str
    color: str
    permissions: list[str]


class EffectivePermissionsResponse(BaseModel):
    """Response for GET /permissions/me."""
    user_id: UUID
    role: Role
    is_biller: bool
    permissions: list[str]


class RolesCatalogResponse(BaseModel):
    roles: list[RoleRead]
    categories: dict[str, list[PermissionRead]]


class ClientAccessResponse(BaseModel):
    client_id: UUID
    allowed: bool
