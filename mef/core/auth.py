"""JWT authentication for FastAPI.

The auth collaborator (wallet / Discord login) issues an HS256 token whose
``sub`` is the platform user id. It arrives either as the access-token
cookie or as a bearer header.
"""

import uuid
from dataclasses import dataclass

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.config import get_settings
from mef.db.base import get_db_session
from mef.db.models.user import User

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    """Authenticated user extracted from the access token."""

    user_id: uuid.UUID
    claims: dict


def decode_access_token(token: str) -> AuthUser:
    """Verify and decode an access token.

    Raises ``HTTPException(401)`` on any validation failure.
    """
    settings = get_settings()
    try:
        payload = pyjwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": True, "require": ["sub", "exp"]},
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise HTTPException(status_code=401, detail="Token sub is not a user id")

    return AuthUser(user_id=user_id, claims=payload)


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthUser:
    """FastAPI dependency that extracts and validates the access token.

    Usage::

        @router.get("/protected")
        async def protected(user: AuthUser = Depends(require_auth)):
            ...
    """
    settings = get_settings()
    token = request.cookies.get(settings.auth_cookie_name)
    if token is None and credentials is not None:
        token = credentials.credentials
    if token is None:
        raise HTTPException(status_code=401, detail="Missing access token")

    user = decode_access_token(token)

    # Set user_id on request state for downstream use (error handlers, audit logging)
    request.state.user_id = str(user.user_id)
    return user


async def require_admin(
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
) -> AuthUser:
    """FastAPI dependency that requires ``User.is_admin``."""
    result = await session.execute(select(User.id).where(User.id == user.user_id, User.is_admin.is_(True)))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
