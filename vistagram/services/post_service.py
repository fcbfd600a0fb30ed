"""
Vistagram Backend — Post Service (Posts, Likes, Shares)
=========================================================

What:  Post creation, the feed, single-post reads, like toggling and share
       counting.
Who:   routes/posts.py.

Viewer-dependent fields:
    likes_count    COUNT(post_likes) per post
    liked_by_user  whether the viewer has a post_likes row; False when
                   the viewer is anonymous

Writes are flushed here; the request's session dependency commits.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vistagram.exceptions import NotFoundError, ValidationError, VistagramError, DatabaseError
from vistagram.models.post import Post, post_likes
from vistagram.models.user import User
from vistagram.schemas.post import (
    LikeToggleResponse,
    PostAuthor,
    PostLikesResponse,
    PostResponse,
    ShareResponse,
)
from vistagram.services.media_service import media_service

logger = logging.getLogger(__name__)


class PostService:

    # ── Query helpers ─────────────────────────────────────────────────────

    async def _like_counts(self, db: AsyncSession, post_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
        ids = list(post_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(post_likes.c.post_id, func.count())
            .where(post_likes.c.post_id.in_(ids))
            .group_by(post_likes.c.post_id)
        )
        return {post_id: count for post_id, count in result.all()}

    async def _liked_by(
        self,
        db: AsyncSession,
        post_ids: Iterable[uuid.UUID],
        viewer_id: Optional[uuid.UUID],
    ) -> Set[uuid.UUID]:
        ids = list(post_ids)
        if viewer_id is None or not ids:
            return set()
        result = await db.execute(
            select(post_likes.c.post_id).where(
                post_likes.c.post_id.in_(ids),
                post_likes.c.user_id == viewer_id,
            )
        )
        return set(result.scalars().all())

    async def _render(
        self,
        db: AsyncSession,
        posts: List[Post],
        viewer_id: Optional[uuid.UUID],
    ) -> List[PostResponse]:
        ids = [p.id for p in posts]
        counts = await self._like_counts(db, ids)
        liked = await self._liked_by(db, ids, viewer_id)
        return [
            PostResponse(
                id=p.id,
                user=PostAuthor(id=p.user.id, username=p.user.username),
                image_url=p.image_url,
                caption=p.caption,
                share_count=p.share_count,
                likes_count=counts.get(p.id, 0),
                liked_by_user=p.id in liked,
                created_at=p.created_at,
            )
            for p in posts
        ]

    async def _get_or_404(self, db: AsyncSession, post_id: uuid.UUID) -> Post:
        result = await db.execute(
            select(Post).options(selectinload(Post.user)).where(Post.id == post_id)
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))
        return post

    # ── Posts ─────────────────────────────────────────────────────────────

    async def create_post(
        self,
        db: AsyncSession,
        author: User,
        filename: str,
        content: bytes,
        caption: str = "",
        content_length: Optional[int] = None,
    ) -> PostResponse:
        """
        Validate and store the image, then insert the post.

        Raises:
            ValidationError: bad image (type, size, content)
            FileStorageError: image could not be written
            DatabaseError: insert failed (the stored image is removed)
        """
        absolute_path, relative_path = await media_service.validate_and_store(
            filename=filename,
            content=content,
            content_length=content_length,
        )

        try:
            post = Post(
                user_id=author.id,
                image_url=media_service.public_url(relative_path),
                caption=(caption or "").strip(),
            )
            db.add(post)
            await db.flush()
        except Exception as e:
            await media_service.cleanup_file(absolute_path)
            if isinstance(e, VistagramError):
                raise
            logger.error("Unexpected error creating post: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="An error occurred while saving your post. Please try again.",
                context={"original_error": type(e).__name__},
            )

        logger.info("Post %s created by %s", post.id, author.id)
        return PostResponse(
            id=post.id,
            user=PostAuthor(id=author.id, username=author.username),
            image_url=post.image_url,
            caption=post.caption,
            share_count=post.share_count,
            likes_count=0,
            liked_by_user=False,
            created_at=post.created_at,
        )

    async def list_posts(
        self,
        db: AsyncSession,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> List[PostResponse]:
        """All posts, newest first."""
        result = await db.execute(
            select(Post)
            .options(selectinload(Post.user))
            .order_by(Post.created_at.desc())
        )
        posts = list(result.scalars().all())
        return await self._render(db, posts, viewer_id)

    async def get_post(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> PostResponse:
        post = await self._get_or_404(db, post_id)
        rendered = await self._render(db, [post], viewer_id)
        return rendered[0]

    # ── Likes ─────────────────────────────────────────────────────────────

    async def toggle_like(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> LikeToggleResponse:
        """Like if not yet liked, otherwise unlike."""
        await self._get_or_404(db, post_id)

        removed = await db.execute(
            delete(post_likes).where(
                post_likes.c.post_id == post_id,
                post_likes.c.user_id == user_id,
            )
        )
        liked = removed.rowcount == 0
        if liked:
            try:
                await db.execute(insert(post_likes).values(post_id=post_id, user_id=user_id))
            except IntegrityError:
                # A concurrent toggle inserted the same row first
                raise ValidationError(message="Post already liked", field="post")
        await db.flush()

        counts = await self._like_counts(db, [post_id])
        logger.info("Post %s %s by %s", post_id, "liked" if liked else "unliked", user_id)
        return LikeToggleResponse(
            message="Post liked" if liked else "Post unliked",
            liked=liked,
            likes_count=counts.get(post_id, 0),
        )

    async def get_likes(self, db: AsyncSession, post_id: uuid.UUID) -> PostLikesResponse:
        await self._get_or_404(db, post_id)
        result = await db.execute(
            select(User.id, User.username)
            .join(post_likes, post_likes.c.user_id == User.id)
            .where(post_likes.c.post_id == post_id)
            .order_by(post_likes.c.created_at)
        )
        users = [PostAuthor(id=uid, username=name) for uid, name in result.all()]
        return PostLikesResponse(likes_count=len(users), users=users)

    # ── Shares ────────────────────────────────────────────────────────────

    async def share_post(self, db: AsyncSession, post_id: uuid.UUID) -> ShareResponse:
        """Atomic increment; no per-user tracking."""
        result = await db.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(share_count=Post.share_count + 1)
            .returning(Post.share_count)
            .execution_options(synchronize_session=False)
        )
        share_count = result.scalar_one_or_none()
        if share_count is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))
        await db.flush()
        return ShareResponse(share_count=share_count)


post_service = PostService()
