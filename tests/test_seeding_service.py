"""
Vistagram Backend — Seeding Service Tests
===========================================

What:  Database population against in-memory SQLite with stubbed
       text generation and re-hosting.

What we test:
    ✅ An empty database is topped up to MIN_USERS / MIN_POSTS
    ✅ Counts already above the minimum are left alone
    ✅ LLM failures fall back to placeholder username / caption
    ✅ Re-hosting failure keeps the stock photo URL
    ✅ Posts are skipped when no user exists
    ✅ Any exception from the LLM or re-hosting falls back, the run finishes
    ✅ The configured delay separates consecutive posts, never after the last
    ✅ The default password is hashed once per run
"""

import re
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from vistagram.exceptions import CircuitBreakerOpenError, LLMServiceError
from vistagram.models.post import Post
from vistagram.models.user import User
from vistagram.services import seeding_service as seeding_module
from vistagram.services.llm_base import LLMService
from vistagram.services.password_service import hash_password, verify_password
from vistagram.services.seeding_service import (
    FALLBACK_CAPTION,
    SeedingService,
    fallback_username,
    random_image_url,
    random_past_date,
)


async def _count(session_factory, model):
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestPopulateDatabase:

    @pytest.mark.asyncio
    async def test_empty_database_is_topped_up(self, seeding_service, session_factory, stub_llm):
        report = await seeding_service.populate_database()

        assert report.users_created == 5
        assert report.posts_created == 10
        assert report.total_users == 5
        assert report.total_posts == 10
        assert await _count(session_factory, User) == 5
        assert await _count(session_factory, Post) == 10
        assert stub_llm.captions_issued == 10

    @pytest.mark.asyncio
    async def test_seeded_posts_look_real(self, seeding_service, session_factory):
        await seeding_service.populate_database()

        async with session_factory() as db:
            posts = (await db.execute(select(Post))).scalars().all()
            user_ids = set((await db.execute(select(User.id))).scalars().all())

        now = datetime.now(timezone.utc)
        for post in posts:
            assert post.user_id in user_ids
            assert post.caption == "Golden hour over the hills"
            assert re.fullmatch(r"https://picsum\.photos/id/\d+/800/600", post.image_url)
            assert 0 <= post.share_count < 50
            created = post.created_at
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            assert now - timedelta(days=366) <= created <= now

    @pytest.mark.asyncio
    async def test_seeded_users_can_log_in_with_default_password(self, seeding_service, session_factory):
        await seeding_service.populate_database()

        async with session_factory() as db:
            user = (await db.execute(select(User).limit(1))).scalar_one()

        assert user.email == f"{user.username.lower()}@example.com"
        assert verify_password(seeding_service.config.default_password, user.password_hash)

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, seeding_service, stub_llm):
        await seeding_service.populate_database()
        issued = stub_llm.usernames_issued

        report = await seeding_service.populate_database()

        assert report.users_created == 0
        assert report.posts_created == 0
        assert report.total_users == 5
        assert report.total_posts == 10
        assert stub_llm.usernames_issued == issued

    @pytest.mark.asyncio
    async def test_no_posts_without_users(self, stub_llm, stub_media, session_factory, monkeypatch):
        service = SeedingService(llm=stub_llm, media=stub_media, session_factory=session_factory)
        monkeypatch.setattr(service.config, "min_users", 0)

        report = await service.populate_database()

        assert report.users_created == 0
        assert report.posts_created == 0
        assert await _count(session_factory, Post) == 0
        assert stub_llm.captions_issued == 0

    @pytest.mark.asyncio
    async def test_failed_user_insert_is_skipped(self, stub_media, session_factory):
        """A duplicate generated username fails its insert; the run carries on."""
        llm = AsyncMock()
        llm.generate_username = AsyncMock(side_effect=["same_name", "same_name", "other_name", "third", "fourth"])
        llm.caption_image = AsyncMock(return_value="ok")
        service = SeedingService(llm=llm, media=stub_media, session_factory=session_factory)

        report = await service.populate_database()

        assert report.users_created == 4
        assert report.total_users == 4
        assert report.posts_created == 10


class TestFallbacks:

    @pytest.mark.asyncio
    async def test_username_falls_back_on_llm_error(self, stub_media, session_factory):
        llm = AsyncMock()
        llm.generate_username = AsyncMock(side_effect=LLMServiceError(message="quota"))
        service = SeedingService(llm=llm, media=stub_media, session_factory=session_factory)

        username = await service.generate_username()

        assert re.fullmatch(r"User\d{1,4}", username)

    @pytest.mark.asyncio
    async def test_caption_falls_back_on_open_circuit(self, stub_media, session_factory):
        llm = AsyncMock()
        llm.caption_image = AsyncMock(side_effect=CircuitBreakerOpenError(recovery_time=60))
        service = SeedingService(llm=llm, media=stub_media, session_factory=session_factory)

        assert await service.generate_caption("https://picsum.photos/id/1/800/600") == FALLBACK_CAPTION

    @pytest.mark.asyncio
    async def test_rehost_failure_keeps_source_url(self, seeding_service):
        url = "https://picsum.photos/id/42/800/600"
        assert await seeding_service.rehost_image(url) == url

    @pytest.mark.asyncio
    async def test_rehost_success_uses_stored_url(self, stub_llm, session_factory):
        media = AsyncMock()
        media.store_remote_image = AsyncMock(return_value="/api/files/2024/01/15/abc.jpg")
        service = SeedingService(llm=stub_llm, media=media, session_factory=session_factory)

        assert await service.rehost_image("https://picsum.photos/id/1/800/600") == "/api/files/2024/01/15/abc.jpg"


class TestHelpers:

    def test_random_image_url_shape(self):
        assert re.fullmatch(r"https://picsum\.photos/id/\d+/800/600", random_image_url())

    def test_random_past_date_within_a_year(self):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        for _ in range(50):
            moment = random_past_date(now)
            assert now - timedelta(days=365) <= moment <= now

    def test_fallback_username_shape(self):
        assert re.fullmatch(r"User\d{1,4}", fallback_username())


class BrokenLLM(LLMService):
    """Every call blows up with something other than an LLMServiceError."""

    async def generate_username(self) -> str:
        raise RuntimeError("provider returned HTML")

    async def caption_image(self, image_url: str) -> str:
        raise RuntimeError("provider returned HTML")

    async def health_check(self) -> bool:
        return False


class TestUnexpectedFailures:

    @pytest.mark.asyncio
    async def test_run_completes_when_llm_raises_anything(self, stub_media, session_factory, monkeypatch):
        numbers = iter(range(1, 100))
        monkeypatch.setattr(seeding_module, "fallback_username", lambda: f"User{next(numbers)}")
        service = SeedingService(llm=BrokenLLM(), media=stub_media, session_factory=session_factory)

        report = await service.populate_database()

        assert report.users_created == 5
        assert report.posts_created == 10
        async with session_factory() as db:
            usernames = (await db.execute(select(User.username))).scalars().all()
            captions = set((await db.execute(select(Post.caption))).scalars().all())
        assert all(re.fullmatch(r"User\d{1,4}", name) for name in usernames)
        assert captions == {FALLBACK_CAPTION}

    @pytest.mark.asyncio
    async def test_rehost_keeps_source_url_on_any_error(self, stub_llm, session_factory):
        media = AsyncMock()
        media.store_remote_image = AsyncMock(side_effect=ImportError("failed to find libmagic"))
        service = SeedingService(llm=stub_llm, media=media, session_factory=session_factory)
        url = "https://picsum.photos/id/7/800/600"

        assert await service.rehost_image(url) == url


class TestPacing:

    @pytest.mark.asyncio
    async def test_fixed_delay_between_posts_only(self, seeding_service, monkeypatch):
        monkeypatch.setattr(seeding_service.config, "min_posts", 3)
        monkeypatch.setattr(seeding_service.config, "seed_post_delay_seconds", 1.5)
        events = []
        real_create_post = seeding_service.create_post

        async def create_post(db, authors):
            events.append("post")
            return await real_create_post(db, authors)

        async def sleep(delay):
            events.append("sleep")

        monkeypatch.setattr(seeding_service, "create_post", create_post)
        with patch.object(seeding_module.asyncio, "sleep", AsyncMock(side_effect=sleep)) as fake_sleep:
            report = await seeding_service.populate_database()

        assert report.posts_created == 3
        assert fake_sleep.await_count == 2
        assert all(call.args == (1.5,) for call in fake_sleep.await_args_list)
        assert events == ["post", "sleep", "post", "sleep", "post"]

    @pytest.mark.asyncio
    async def test_zero_delay_never_sleeps(self, seeding_service, monkeypatch):
        monkeypatch.setattr(seeding_service.config, "min_posts", 3)
        with patch.object(seeding_module.asyncio, "sleep", AsyncMock()) as fake_sleep:
            await seeding_service.populate_database()

        fake_sleep.assert_not_awaited()


class TestDefaultPasswordHashing:

    @pytest.mark.asyncio
    async def test_hashed_once_per_run(self, seeding_service, session_factory):
        with patch.object(seeding_module, "hash_password", wraps=hash_password) as hasher:
            report = await seeding_service.populate_database()

        assert report.users_created == 5
        hasher.assert_called_once_with(seeding_service.config.default_password)
        async with session_factory() as db:
            hashes = set((await db.execute(select(User.password_hash))).scalars().all())
        assert len(hashes) == 1

    @pytest.mark.asyncio
    async def test_not_hashed_when_no_users_missing(self, seeding_service):
        await seeding_service.populate_database()

        with patch.object(seeding_module, "hash_password", wraps=hash_password) as hasher:
            await seeding_service.populate_database()

        hasher.assert_not_called()
