"""
Vistagram Backend — User SQLAlchemy Model
===========================================

What:  ORM model for the `users` table: identity, credentials, and the
       single refresh-token slot.
Who:   Auth service (register/login/refresh/logout), auth dependencies,
       seeding job, post listings (author name).

Table Design Rationale:
    - UUID primary key: opaque, not enumerable, immutable after creation
    - username / email: both unique; email is the login key
    - password_hash: argon2 hash, never serialized by any response schema
    - current_refresh_token: the only refresh token currently accepted for
      this user. Overwritten on every login, set to NULL on logout. A
      refresh token is valid iff it equals this value exactly.
      Access to this column goes through SessionStore.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vistagram.database import Base

if TYPE_CHECKING:
    from vistagram.models.post import Post


class User(Base):
    """
    A registered (or seeded) account.

    Lifecycle:
        1. Created on registration or by the seeding job
        2. current_refresh_token set on login
        3. current_refresh_token cleared on logout
        4. Never deleted by the application
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Opaque unique identifier",
    )

    username: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        index=True,
        comment="Public handle shown next to posts",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Login key; stored lower-cased",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Argon2 hash of the password",
    )

    # Nullable: NULL means "no refresh token accepted" (never logged in, or logged out)
    current_refresh_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Single active refresh token; NULL after logout",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="Account creation time (UTC)",
    )

    posts: Mapped[List["Post"]] = relationship(
        back_populates="user",
        order_by="Post.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
