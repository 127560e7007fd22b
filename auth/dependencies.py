"""
FastAPI dependencies for authentication.

Provides ``db_session``, ``get_current_user`` and ``require_roles``
dependencies that are used across all protected routes.  Handlers that
need identity declare an ``AuthenticatedUser`` parameter; nothing is
attached to the request object.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Awaitable, Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import ForbiddenError, InvalidTokenError, UnauthenticatedError
from auth.jwt import verify_token
from auth.models import AuthenticatedUser
from database.helpers import get_user_by_id
from database.models import UserRole
from database.session import get_db_session

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserRole.ADMIN, UserRole.MODERATOR)

_bearer_scheme = HTTPBearer(auto_error=False)


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    session: AsyncSession = Depends(db_session),
) -> AuthenticatedUser:
    """
    Verify the Bearer token and resolve it to the stored user.

    Role and profile data come from the database, not from the token, so a
    demoted or deleted user loses access as soon as the row changes.
    """
    if credentials is None:
        raise UnauthenticatedError()
    claims = verify_token(credentials.credentials)

    user = await get_user_by_id(session, claims.user_id)
    if user is None:
        logger.info("Token for unknown user %s rejected", claims.user_id)
        raise InvalidTokenError()

    return AuthenticatedUser.from_user(user)


def require_roles(
    *roles: UserRole,
    message: str = "Admin access required",
) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """
    Build a dependency that admits only users holding one of *roles*.

    Authentication runs first, so a missing token is always a 401 before
    any 403 is considered.
    """
    allowed = frozenset(roles)

    async def _role_gate(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not user.has_role(*allowed):
            logger.info("User %s (%s) denied: requires %s", user.id, user.role.value,
                        sorted(r.value for r in allowed))
            raise ForbiddenError(message)
        return user

    return _role_gate


require_admin = require_roles(*ADMIN_ROLES)
