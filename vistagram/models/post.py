"""
Vistagram Backend — Post and Like Models
==========================================

What:  ORM models for `posts` and the `post_likes` association table.
Who:   PostService (create/list/like/share), UserService (profile posts),
       seeding job (synthetic posts).

Table Design Rationale:
    - image_url: either "/api/files/<relative path>" for media stored by
      MediaService, or an absolute URL when re-hosting failed during seeding
    - share_count: plain counter, incremented atomically with an UPDATE
    - post_likes: one row per (post, user); the composite primary key makes
      "like" idempotent at the storage level
    - created_at index: listings are always newest first
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vistagram.database import Base
from vistagram.models.user import User


post_likes = Table(
    "post_likes",
    Base.metadata,
    Column("post_id", Uuid, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    ),
)


class Post(Base):
    """An image post with caption, likes and a share counter."""

    __tablename__ = "posts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Author",
    )

    image_url: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Served media path or absolute fallback URL",
    )

    caption: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    share_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped[User] = relationship(back_populates="posts")

    liked_by: Mapped[List[User]] = relationship(
        secondary=post_likes,
        order_by=post_likes.c.created_at,
    )

    __table_args__ = (
        Index("idx_posts_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, user_id={self.user_id}, shares={self.share_count})>"
