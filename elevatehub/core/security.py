# elevatehub/core/security.py
# Verifies bearer tokens issued by the external identity provider and turns
# them into local User rows. Sign-up, passwords and sessions live with the
# provider; this service never sees credentials.
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from fastapi import Depends, Query, WebSocket, WebSocketException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from elevatehub.core.config import settings
from elevatehub.core.database import get_db, get_session_factory
from elevatehub.core.exceptions import AppError, AuthenticationError, ForbiddenError
from elevatehub.core.permissions import ensure_role
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.schemas.user_schema import IdentityClaims
from elevatehub.services.user_service import UserService

logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields our 401 body instead of FastAPI's
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    """
    Sign an identity token the same way the provider does.
    Used by tests and local tooling only.
    """
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    if settings.IDP_ISSUER and "iss" not in to_encode:
        to_encode["iss"] = settings.IDP_ISSUER
    if settings.IDP_AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = settings.IDP_AUDIENCE
    return jwt.encode(to_encode, settings.IDP_JWT_SECRET, algorithm=settings.IDP_JWT_ALGORITHM)


def verify_identity_token(token: str) -> IdentityClaims:
    try:
        payload = jwt.decode(
            token,
            settings.IDP_JWT_SECRET,
            algorithms=[settings.IDP_JWT_ALGORITHM],
            audience=settings.IDP_AUDIENCE,
            issuer=settings.IDP_ISSUER,
            options={"verify_aud": bool(settings.IDP_AUDIENCE)},
        )
    except JWTError as e:
        logger.info(f"Rejected identity token: {e}")
        raise AuthenticationError()

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError()

    first_name = payload.get("given_name") or ""
    last_name = payload.get("family_name") or ""
    if not (first_name or last_name) and payload.get("name"):
        first_name, _, last_name = str(payload["name"]).partition(" ")

    email = payload.get("email")
    return IdentityClaims(
        sub=str(subject),
        email=email.strip().lower() if email else None,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        picture=payload.get("picture") or "",
    )


async def resolve_user(token: str, db: AsyncSession) -> User:
    claims = verify_identity_token(token)
    user = await UserService(db).get_or_provision(claims)
    if not user.is_active:
        raise ForbiddenError("This account has been deleted")
    if user.is_suspended:
        raise ForbiddenError("This account has been suspended")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency for REST routes: bearer token -> active User."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authenticated")
    return await resolve_user(credentials.credentials, db)


def require_roles(*roles: UserRoleEnum):
    """Router-level guard, e.g. dependencies=[Depends(require_roles(UserRoleEnum.admin))]."""
    async def checker(user: User = Depends(get_current_user)) -> User:
        ensure_role(user, *roles)
        return user
    return checker


async def get_current_user_from_websocket_token(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> User:
    """
    WebSocket variant: the token travels as ?token=..., and any failure
    closes the handshake with 1008 instead of an HTTP error body.
    The returned user is detached; the lookup session is closed before
    the connection is accepted.
    """
    if not token:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
    async with session_factory() as db:
        try:
            user = await resolve_user(token, db)
        except AppError as e:
            raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        db.expunge(user)
    return user
