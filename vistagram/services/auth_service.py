"""
Vistagram Backend — Auth Service (Register / Login / Refresh / Logout)
========================================================================

What:  The account and session lifecycle, independent of HTTP.
Who:   Called by routes/auth.py, which owns the cookie handling.

State machine over one user:
    Anonymous
      └─ login ──▶ Authenticated (access token) + refresh slot bound
                      ├─ refresh ──▶ new access token (slot unchanged)
                      ├─ login elsewhere ──▶ slot overwritten; old refresh token dead
                      └─ logout ──▶ slot emptied ──▶ Anonymous

Error Handling Strategy:
    - Duplicate username/email → ValidationError naming the field (400)
    - Unknown email or wrong password → one AuthenticationError (401)
    - Any refresh failure → one AuthenticationError "Invalid refresh token"
    - Logout never fails once the caller is authenticated
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.exceptions import AuthenticationError, InvalidTokenError, ValidationError
from vistagram.models.user import User
from vistagram.schemas.auth import LoginRequest, RegisterRequest
from vistagram.services.password_service import hash_password, verify_password
from vistagram.services.session_store import SessionStore, session_store
from vistagram.services.token_service import TokenService, token_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
REFRESH_TOKEN_REQUIRED = "Refresh token required"


@dataclass
class LoginResult:
    user: User
    access_token: str
    refresh_token: str


class AuthService:
    """
    What:      Register, login, refresh and logout over a caller-supplied session.
    Lifecycle: One module-level instance (auth_service) shared by all requests;
               holds no per-request state. Argon2 work runs in the threadpool.
    """

    def __init__(
        self,
        tokens: Optional[TokenService] = None,
        sessions: Optional[SessionStore] = None,
    ):
        self.tokens = tokens or token_service
        self.sessions = sessions or session_store

    # ── Lookups (user repository boundary) ────────────────────────────────

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def find_by_id(self, db: AsyncSession, user_id: str) -> Optional[User]:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            return None
        result = await db.execute(select(User).where(User.id == key))
        return result.scalar_one_or_none()

    async def taken_field(self, db: AsyncSession, username: str, email: str) -> Optional[str]:
        """Which of username / email already belongs to an account, username first."""
        result = await db.execute(
            select(User.username, User.email).where(
                or_(User.username == username, User.email == email)
            )
        )
        rows = result.all()
        if any(row.username == username for row in rows):
            return "username"
        if rows:
            return "email"
        return None

    # ── Register ──────────────────────────────────────────────────────────

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> User:
        """
        Create an account.

        Raises:
            ValidationError: username or email already taken (field named)
        """
        field = await self.taken_field(db, payload.username, payload.email)
        if field is not None:
            raise ValidationError(message=f"{field} already exists", field=field)

        user = User(
            username=payload.username,
            email=payload.email,
            password_hash=await run_in_threadpool(hash_password, payload.password),
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration; the winner is committed by now
            await db.rollback()
            field = await self.taken_field(db, payload.username, payload.email) or "username"
            raise ValidationError(message=f"{field} already exists", field=field)

        logger.info("User registered: %s (%s)", user.username, user.id)
        return user

    # ── Login ─────────────────────────────────────────────────────────────

    async def login(self, db: AsyncSession, payload: LoginRequest) -> LoginResult:
        """
        Check credentials, mint both tokens, bind the refresh token to the
        user's session slot (overwriting any earlier one).
        """
        user = await self.find_by_email(db, payload.email)
        if user is None or not await run_in_threadpool(
            verify_password, payload.password, user.password_hash
        ):
            logger.info("Failed login attempt for %s", payload.email)
            raise AuthenticationError(message=INVALID_CREDENTIALS, reason="invalid_credentials")

        access_token = self.tokens.issue_access_token(user.id)
        refresh_token = self.tokens.issue_refresh_token(user.id)
        await self.sessions.bind(db, user, refresh_token)

        logger.info("User logged in: %s", user.id)
        return LoginResult(user=user, access_token=access_token, refresh_token=refresh_token)

    # ── Refresh ───────────────────────────────────────────────────────────

    async def refresh(self, db: AsyncSession, refresh_token: Optional[str]) -> str:
        """
        Exchange the cookie's refresh token for a new access token.

        The refresh token itself is not rotated: the same cookie keeps
        working until it expires, is superseded by a login, or is revoked.
        """
        if not refresh_token:
            raise AuthenticationError(message=REFRESH_TOKEN_REQUIRED, reason="missing_token")

        try:
            subject_id = self.tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError:
            raise AuthenticationError(message=INVALID_REFRESH_TOKEN, reason="invalid_refresh_token")

        user = await self.find_by_id(db, subject_id)
        if user is None or not self.sessions.matches(user, refresh_token):
            # Logged out since, superseded by a later login, or tampered with
            raise AuthenticationError(message=INVALID_REFRESH_TOKEN, reason="stale_refresh_token")

        return self.tokens.issue_access_token(user.id)

    # ── Logout ────────────────────────────────────────────────────────────

    async def logout(self, db: AsyncSession, user: Optional[User]) -> None:
        """
        Empty the user's refresh slot. Best effort: a failure is logged and
        swallowed, since the route clears the cookie regardless.
        """
        if user is None:
            return
        try:
            await self.sessions.revoke(db, user.id)
            await db.commit()
        except Exception as e:
            logger.warning("Could not revoke refresh session for %s: %s", user.id, str(e))
            await db.rollback()


auth_service = AuthService()
