"""
Vistagram Backend — Auth Service Tests
========================================

What:  AuthService called directly against in-memory SQLite.

What we test:
    ✅ taken_field reports username before email
    ✅ A registration that loses the insert race still names the taken field
    ✅ Argon2 hashing and verification run in the threadpool
"""

from unittest.mock import patch

import pytest
from fastapi.concurrency import run_in_threadpool

from vistagram.exceptions import ValidationError
from vistagram.models.user import User
from vistagram.schemas.auth import LoginRequest, RegisterRequest
from vistagram.services import auth_service as auth_module
from vistagram.services.auth_service import AuthService
from vistagram.services.password_service import hash_password, verify_password


async def _existing_user(db, username="alice", email="alice@example.com"):
    db.add(User(username=username, email=email, password_hash=hash_password("secret123")))
    await db.commit()


class TestTakenField:

    def setup_method(self):
        self.service = AuthService()

    @pytest.mark.asyncio
    async def test_free_pair(self, db_session):
        assert await self.service.taken_field(db_session, "bob", "bob@example.com") is None

    @pytest.mark.asyncio
    async def test_email_taken(self, db_session):
        await _existing_user(db_session)
        assert await self.service.taken_field(db_session, "bob", "alice@example.com") == "email"

    @pytest.mark.asyncio
    async def test_username_wins_when_both_taken(self, db_session):
        await _existing_user(db_session)
        await _existing_user(db_session, username="bob", email="bob@example.com")
        assert await self.service.taken_field(db_session, "bob", "alice@example.com") == "username"


class TestRegisterRace:
    """The pre-check passes, then the insert hits the unique constraint."""

    def setup_method(self):
        self.service = AuthService()

    def _miss_first_check(self, monkeypatch):
        real = self.service.taken_field
        calls = []

        async def taken_field(db, username, email):
            calls.append((username, email))
            if len(calls) == 1:
                return None
            return await real(db, username, email)

        monkeypatch.setattr(self.service, "taken_field", taken_field)
        return calls

    @pytest.mark.asyncio
    async def test_email_collision_names_email(self, db_session, monkeypatch):
        await _existing_user(db_session)
        calls = self._miss_first_check(monkeypatch)
        payload = RegisterRequest(username="bob", email="alice@example.com", password="secret123")

        with pytest.raises(ValidationError) as exc_info:
            await self.service.register(db_session, payload)

        assert exc_info.value.field == "email"
        assert exc_info.value.message == "email already exists"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_username_collision_names_username(self, db_session, monkeypatch):
        await _existing_user(db_session)
        self._miss_first_check(monkeypatch)
        payload = RegisterRequest(username="alice", email="other@example.com", password="secret123")

        with pytest.raises(ValidationError) as exc_info:
            await self.service.register(db_session, payload)

        assert exc_info.value.field == "username"
        assert exc_info.value.message == "username already exists"


class TestPasswordWorkOffLoop:

    @pytest.mark.asyncio
    async def test_register_hashes_in_threadpool(self, db_session):
        payload = RegisterRequest(username="carol", email="carol@example.com", password="secret123")

        with patch.object(auth_module, "run_in_threadpool", wraps=run_in_threadpool) as offload:
            user = await AuthService().register(db_session, payload)

        offload.assert_awaited_once_with(hash_password, "secret123")
        assert verify_password("secret123", user.password_hash)

    @pytest.mark.asyncio
    async def test_login_verifies_in_threadpool(self, db_session):
        await _existing_user(db_session)
        payload = LoginRequest(email="alice@example.com", password="secret123")

        with patch.object(auth_module, "run_in_threadpool", wraps=run_in_threadpool) as offload:
            result = await AuthService().login(db_session, payload)

        assert offload.await_count == 1
        assert offload.await_args.args[0] is verify_password
        assert result.user.username == "alice"
