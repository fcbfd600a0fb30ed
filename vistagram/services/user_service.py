"""
Vistagram Backend — User Service
==================================

What:  Public profile reads for GET /api/users/{id} and /api/users/{id}/posts.
Note:  Profiles are built field by field from the public schema, so the
       password hash and the stored refresh token can never leak through here.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.exceptions import NotFoundError
from vistagram.models.post import Post, post_likes
from vistagram.models.user import User
from vistagram.schemas.user import UserPostItem, UserPostsResponse, UserProfileResponse

logger = logging.getLogger(__name__)


class UserService:

    async def _get_or_404(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def get_profile(self, db: AsyncSession, user_id: uuid.UUID) -> UserProfileResponse:
        user = await self._get_or_404(db, user_id)
        posts_count = (
            await db.execute(select(func.count()).select_from(Post).where(Post.user_id == user.id))
        ).scalar_one()
        return UserProfileResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            posts_count=posts_count,
        )

    async def get_user_posts(self, db: AsyncSession, user_id: uuid.UUID) -> UserPostsResponse:
        """The user's posts, newest first, each with its like count."""
        await self._get_or_404(db, user_id)

        likes = (
            select(post_likes.c.post_id, func.count().label("likes_count"))
            .group_by(post_likes.c.post_id)
            .subquery()
        )
        result = await db.execute(
            select(Post, func.coalesce(likes.c.likes_count, 0))
            .outerjoin(likes, likes.c.post_id == Post.id)
            .where(Post.user_id == user_id)
            .order_by(Post.created_at.desc())
        )
        posts = [
            UserPostItem(
                id=post.id,
                image_url=post.image_url,
                caption=post.caption,
                share_count=post.share_count,
                likes_count=likes_count,
                created_at=post.created_at,
            )
            for post, likes_count in result.all()
        ]
        return UserPostsResponse(posts=posts)


user_service = UserService()
