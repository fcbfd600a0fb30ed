"""
Vistagram Backend — Refresh Session Store
===========================================

What:  The single-slot session table: at most one refresh token is accepted
       per user at any time, held in users.current_refresh_token.
Why:   Every read and write of that column goes through this object, so the
       single-active-refresh-token rule lives in one place:
         bind()    - a new login overwrites the slot (older tokens die)
         matches() - a refresh token is valid iff it equals the slot exactly
         revoke()  - logout empties the slot
Note:  Access tokens are not tracked here; they stay valid until they expire
       regardless of what happens to the refresh slot.
"""

import hmac
import logging
import uuid
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.models.user import User

logger = logging.getLogger(__name__)


class SessionStore:
    """
    What:      bind / matches / revoke over users.current_refresh_token.
    Lifecycle: Stateless; one module-level instance (session_store). Writes
               are flushed, and committing is left to the caller.
    """

    async def bind(self, db: AsyncSession, user: User, refresh_token: str) -> None:
        """Make `refresh_token` the only accepted refresh token for `user`."""
        if user.current_refresh_token:
            logger.info("Superseding previous refresh session for user %s", user.id)
        user.current_refresh_token = refresh_token
        await db.flush()

    def matches(self, user: User, refresh_token: Optional[str]) -> bool:
        """Exact comparison against the stored slot; an empty slot matches nothing."""
        stored = user.current_refresh_token
        if not stored or not refresh_token:
            return False
        return hmac.compare_digest(stored.encode(), refresh_token.encode())

    async def revoke(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        """Empty the slot. Idempotent: revoking an empty slot is a no-op."""
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(current_refresh_token=None)
        )
        await db.flush()
        logger.info("Refresh session revoked for user %s", user_id)


session_store = SessionStore()
