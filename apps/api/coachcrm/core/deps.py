"""Request dependencies: database session, authentication and permission gates."""

import logging
from typing import Generator

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from coachcrm.core.permissions import PermissionKey
from coachcrm.core.security import decode_session_token
from coachcrm.core.structured_logging import build_log_context
from coachcrm.db.enums import Role
from coachcrm.db.models import User
from coachcrm.db.session import SessionLocal
from coachcrm.schemas.auth import TokenPayload, UserSession
from coachcrm.services import permission_service

logger = logging.getLogger(__name__)

COOKIE_NAME = "crm_session"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(request: Request) -> TokenPayload:
    raw = request.cookies.get(COOKIE_NAME)
    if not raw:
        raise _unauthorized("Not authenticated")
    try:
        return TokenPayload.model_validate(decode_session_token(raw))
    except (jwt.InvalidTokenError, ValidationError):
        raise _unauthorized("Invalid session")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the team member behind the session cookie.

    401 when the cookie is missing or invalid, the user is gone or disabled,
    or the token predates a token_version bump.
    """
    token = _read_token(request)

    user = db.get(User, token.sub)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account disabled")
    if user.token_version != token.token_version:
        logger.info("Rejected revoked session", extra=build_log_context(user_id=user.id))
        raise _unauthorized("Session revoked")
    return user


def get_current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """Identity of the caller. An unrecognised stored role is a 403, not a 500."""
    user = get_current_user(request, db)
    if not Role.has_value(user.role):
        raise HTTPException(status_code=403, detail=f"Unknown role '{user.role}'. Contact administrator.")

    return UserSession(
        user_id=user.id,
        org_id=user.organization_id,
        role=Role(user.role),
        email=user.email,
        display_name=user.display_name,
    )


def require_permission(permission: PermissionKey):
    """
    Route gate resolving the caller's permissions from the database.

        @router.get("/summary", dependencies=[Depends(require_permission(P.ACCESS_USAGE_DASHBOARD))])
    """
    def gate(request: Request, db: Session = Depends(get_db)) -> UserSession:
        session = get_current_session(request, db)
        try:
            permission_service.require_permission(db, session.user_id, permission)
        except permission_service.PermissionDeniedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        return session

    return gate
