"""Session token signing and verification."""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt

from coachcrm.core.config import settings

ALGORITHM = "HS256"


def _session_claims(user_id: UUID, org_id: UUID, role: str, token_version: int) -> dict[str, Any]:
    issued_at = datetime.now(timezone.utc)
    return {
        "sub": str(user_id),
        "org_id": str(org_id),
        "role": role,
        "token_version": token_version,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }


def create_session_token(user_id: UUID, org_id: UUID, role: str, token_version: int) -> str:
    """
    Sign a session token for a team member.

    The role claim is informational only; permissions are always resolved
    from the database. Bumping users.token_version revokes the token.
    """
    claims = _session_claims(user_id, org_id, role, token_version)
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Verify a session token against each accepted secret in turn.

    Raises jwt.InvalidTokenError when no secret verifies it.
    """
    secrets = settings.jwt_secrets
    for secret in secrets[:-1]:
        try:
            return jwt.decode(token, secret, algorithms=[ALGORITHM])
        except jwt.InvalidTokenError:
            continue
    return jwt.decode(token, secrets[-1], algorithms=[ALGORITHM])
