"""
Vistagram Backend — Seeding Service (Database Population)
===========================================================

What:  Tops the database up to MIN_USERS users and MIN_POSTS posts with
       synthetic content.
How:   Usernames and captions come from the LLM service, post images are
       picsum.photos stock photos re-hosted by the media service.
Who:   SchedulerService (cron job and manual trigger).

Failure boundaries:
    - LLM call fails (any exception) → fallback username / caption
    - Re-hosting fails (any exception) → the post keeps the source image URL
    - One insert fails        → rolled back, logged, skipped; the run goes on
    - Anything else (counting, listing users, no database) → propagates
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.config import Settings, settings as default_settings
from vistagram.database import async_session_factory
from vistagram.exceptions import CircuitBreakerOpenError, FileStorageError, LLMServiceError
from vistagram.models.post import Post
from vistagram.models.user import User
from vistagram.services.llm_base import LLMService
from vistagram.services.media_service import MediaService
from vistagram.services.password_service import hash_password

logger = logging.getLogger(__name__)

FALLBACK_CAPTION = "A beautiful moment! ✨"
PICSUM_MAX_ID = 1084


@dataclass
class SeedReport:
    users_created: int = 0
    posts_created: int = 0
    total_users: int = 0
    total_posts: int = 0


def random_image_url() -> str:
    return f"https://picsum.photos/id/{random.randint(1, PICSUM_MAX_ID)}/800/600"


def random_past_date(now: Optional[datetime] = None) -> datetime:
    """Uniformly random moment within the year before `now`."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(seconds=random.uniform(0, timedelta(days=365).total_seconds()))


def fallback_username() -> str:
    return f"User{random.randint(0, 9999)}"


class SeedingService:
    """
    What:      One population run per populate_database() call, each in its
               own database session.
    Lifecycle: Stateless between runs; SchedulerService owns the instance and
               the guard that keeps runs from overlapping.
    """

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        media: Optional[MediaService] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        config: Optional[Settings] = None,
    ):
        if llm is None:
            from vistagram.services.gemini_service import gemini_service
            llm = gemini_service
        if media is None:
            from vistagram.services.media_service import media_service
            media = media_service
        self.llm = llm
        self.media = media
        self.session_factory = session_factory or async_session_factory
        self.config = config or default_settings

    # ── Content generation (with fallbacks) ───────────────────────────────

    async def generate_username(self) -> str:
        try:
            return await self.llm.generate_username()
        except (LLMServiceError, CircuitBreakerOpenError) as e:
            username = fallback_username()
            logger.warning("Username generation failed (%s), using %s", e.message, username)
            return username
        except Exception:
            username = fallback_username()
            logger.warning("Username generation crashed, using %s", username, exc_info=True)
            return username

    async def generate_caption(self, image_url: str) -> str:
        try:
            return await self.llm.caption_image(image_url)
        except (LLMServiceError, CircuitBreakerOpenError) as e:
            logger.warning("Caption generation failed (%s), using fallback", e.message)
            return FALLBACK_CAPTION
        except Exception:
            logger.warning("Caption generation crashed, using fallback", exc_info=True)
            return FALLBACK_CAPTION

    async def rehost_image(self, image_url: str) -> str:
        try:
            return await self.media.store_remote_image(image_url)
        except FileStorageError as e:
            logger.warning("Image re-hosting failed (%s), keeping %s", e.message, image_url)
            return image_url
        except Exception:
            logger.warning("Image re-hosting crashed, keeping %s", image_url, exc_info=True)
            return image_url

    # ── Single inserts ────────────────────────────────────────────────────

    async def create_user(self, db: AsyncSession, password_hash: str) -> Optional[User]:
        """Insert one synthetic user; None when the insert failed."""
        username = await self.generate_username()
        user = User(
            username=username,
            email=f"{username.lower()}@example.com",
            password_hash=password_hash,
        )
        try:
            db.add(user)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Error creating user %s: %s", username, str(e))
            return None

        logger.info("Created user: %s (%s)", user.username, user.email)
        return user

    async def create_post(self, db: AsyncSession, authors: List[Tuple[uuid.UUID, str]]) -> Optional[Post]:
        """
        Insert one synthetic post for a random author; None when the insert failed.

        Authors are plain (id, username) rows: a rollback expires ORM
        instances, and an expired instance cannot lazy-load under asyncio.
        """
        author_id, author_name = random.choice(authors)
        source_url = random_image_url()
        caption = await self.generate_caption(source_url)
        image_url = await self.rehost_image(source_url)

        post = Post(
            user_id=author_id,
            image_url=image_url,
            caption=caption,
            share_count=random.randint(0, 49),
            created_at=random_past_date(),
        )
        try:
            db.add(post)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Error creating post for %s: %s", author_name, str(e))
            return None

        logger.info("Created post by %s: %r", author_name, caption)
        return post

    # ── The job ───────────────────────────────────────────────────────────

    async def _count(self, db: AsyncSession, model) -> int:
        result = await db.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    async def populate_database(self) -> SeedReport:
        """
        Bring the user and post counts up to the configured minimums.
        Counts above the minimum are left alone.
        """
        report = SeedReport()
        min_users = self.config.min_users
        min_posts = self.config.min_posts

        async with self.session_factory() as db:
            logger.info("Starting database population...")

            user_count = await self._count(db, User)
            logger.info("Current users: %d (minimum %d)", user_count, min_users)
            missing_users = max(0, min_users - user_count)
            if missing_users:
                # Every seeded account shares the default password: hash it once, off the loop
                password_hash = await run_in_threadpool(hash_password, self.config.default_password)
                for _ in range(missing_users):
                    if await self.create_user(db, password_hash) is not None:
                        report.users_created += 1

            authors = [tuple(row) for row in (await db.execute(select(User.id, User.username))).all()]

            post_count = await self._count(db, Post)
            logger.info("Current posts: %d (minimum %d)", post_count, min_posts)
            missing_posts = max(0, min_posts - post_count)
            if missing_posts and not authors:
                logger.warning("No users available, skipping post creation")
            elif missing_posts:
                for i in range(missing_posts):
                    if await self.create_post(db, authors) is not None:
                        report.posts_created += 1
                    if i < missing_posts - 1 and self.config.seed_post_delay_seconds:
                        await asyncio.sleep(self.config.seed_post_delay_seconds)

            report.total_users = await self._count(db, User)
            report.total_posts = await self._count(db, Post)

        logger.info(
            "Database population completed: users=%d (+%d), posts=%d (+%d)",
            report.total_users,
            report.users_created,
            report.total_posts,
            report.posts_created,
        )
        return report
