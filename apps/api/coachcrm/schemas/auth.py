"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from coachcrm.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    org_id: UUID
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency. Carries identity only;
    permission decisions always go back through permission_service with
    the explicit user_id.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
    email: str
    display_name: str
