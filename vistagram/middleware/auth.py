"""
Vistagram Backend — Auth Gates
================================

What:  FastAPI dependencies resolving the bearer access token to a User.
         get_current_user   required: 401 unless a valid token names a user
         get_optional_user  optional: same check, but any auth failure means
                            "anonymous" (None) instead of a 401
How:   Authorization: Bearer <token> → TokenService.verify_access_token →
       user lookup. The accepted user is also put on request.state so the
       access log can name it.

Failure messages (required gate):
    no token                → "Access token required"
    bad / expired token     → "Invalid or expired token"
    token for unknown user  → "Invalid token"
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.database import get_db_session
from vistagram.exceptions import AuthenticationError, InvalidTokenError
from vistagram.models.user import User
from vistagram.services.auth_service import auth_service
from vistagram.services.token_service import token_service

logger = logging.getLogger(__name__)

# auto_error=False: a missing header must produce our 401 body, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


async def _authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Access token required", reason="missing_token")

    try:
        user_id = token_service.verify_access_token(credentials.credentials)
    except InvalidTokenError:
        raise AuthenticationError(message="Invalid or expired token", reason="invalid_token")

    user = await auth_service.find_by_id(db, user_id)
    if user is None:
        logger.info("Access token for unknown user %s rejected", user_id)
        raise AuthenticationError(message="Invalid token", reason="unknown_user")

    request.state.user = user
    request.state.user_id = user.id
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Required gate for protected routes."""
    return await _authenticate(request, credentials, db)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Optional gate: an invalid or missing token just means an anonymous viewer."""
    try:
        return await _authenticate(request, credentials, db)
    except AuthenticationError:
        return None
