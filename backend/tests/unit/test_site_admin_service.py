"""Tests for site administration: password bootstrap, sessions, moderation."""

import logging
import uuid
from datetime import timedelta

import bcrypt
import pytest

from santa.core.errors import NotFoundError, UnauthorizedError, ValidationError
from santa.repositories.site_admin_repository import SiteAdminRepository
from santa.services.site_admin_service import SiteAdminService
from tests.conftest import (
    TEST_ADMIN_PASSWORD,
    TEST_BCRYPT_ROUNDS,
    TEST_PENDING_GAME,
    make_game_service,
)


@pytest.fixture
def service(db_session, clock):
    return SiteAdminService(
        db_session,
        session_lifetime=timedelta(hours=24),
        clock=clock,
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture
async def bootstrapped(service):
    await service.bootstrap_password(TEST_ADMIN_PASSWORD)
    return service


class TestBootstrap:
    """Initial credential."""

    async def test_uses_configured_password(self, service, db_session):
        assert await service.bootstrap_password(TEST_ADMIN_PASSWORD) is True

        stored = await SiteAdminRepository.get_password_hash(db_session)
        assert bcrypt.checkpw(TEST_ADMIN_PASSWORD.encode(), stored.encode())

    async def test_runs_only_once(self, bootstrapped, db_session):
        before = await SiteAdminRepository.get_password_hash(db_session)

        assert await bootstrapped.bootstrap_password("another-password") is False
        assert await SiteAdminRepository.get_password_hash(db_session) == before

    async def test_generates_and_logs_password_when_unset(self, service, caplog):
        with caplog.at_level(logging.WARNING, logger="santa.services.site_admin_service"):
            assert await service.bootstrap_password("") is True

        [record] = [r for r in caplog.records if "Generated" in r.getMessage()]
        generated = record.args[0]
        session = await service.login(generated)
        assert session.token

    async def test_rejects_password_longer_than_bcrypt_limit(self, service):
        with pytest.raises(ValueError, match="72 bytes"):
            await service.bootstrap_password("x" * 73)


class TestSessions:
    """Login and bearer sessions."""

    async def test_login_issues_session(self, bootstrapped, clock):
        session = await bootstrapped.login(TEST_ADMIN_PASSWORD)

        assert len(session.token) == 32
        assert session.expires_at == clock.now + timedelta(hours=24)
        authenticated = await bootstrapped.authenticate(session.token)
        assert authenticated.expires_at == session.expires_at

    async def test_session_token_stored_hashed(self, bootstrapped, db_session):
        session = await bootstrapped.login(TEST_ADMIN_PASSWORD)
        assert await SiteAdminRepository.get_session(db_session, token_hash=session.token) is None

    async def test_wrong_password(self, bootstrapped):
        with pytest.raises(UnauthorizedError):
            await bootstrapped.login("wrong-password")

    async def test_login_before_bootstrap(self, service):
        with pytest.raises(UnauthorizedError):
            await service.login(TEST_ADMIN_PASSWORD)

    async def test_overlong_password_refused(self, bootstrapped):
        with pytest.raises(UnauthorizedError):
            await bootstrapped.login("y" * 100)

    async def test_session_expires(self, bootstrapped, clock):
        session = await bootstrapped.login(TEST_ADMIN_PASSWORD)
        clock.advance(hours=24)

        with pytest.raises(UnauthorizedError):
            await bootstrapped.authenticate(session.token)

    async def test_unknown_token(self, bootstrapped):
        with pytest.raises(UnauthorizedError):
            await bootstrapped.authenticate("not-a-session")


class TestChangePassword:
    """Password change."""

    async def test_change_password_revokes_sessions(self, bootstrapped):
        session = await bootstrapped.login(TEST_ADMIN_PASSWORD)

        await bootstrapped.change_password(TEST_ADMIN_PASSWORD, "brand-new-secret")

        with pytest.raises(UnauthorizedError):
            await bootstrapped.authenticate(session.token)
        with pytest.raises(UnauthorizedError):
            await bootstrapped.login(TEST_ADMIN_PASSWORD)
        await bootstrapped.login("brand-new-secret")

    async def test_requires_current_password(self, bootstrapped):
        with pytest.raises(UnauthorizedError, match="Current password incorrect"):
            await bootstrapped.change_password("wrong", "brand-new-secret")

    async def test_minimum_length(self, bootstrapped):
        with pytest.raises(ValidationError, match="at least 8"):
            await bootstrapped.change_password(TEST_ADMIN_PASSWORD, "short")


class TestGameModeration:
    """Search, detail and delete of any game."""

    async def test_search_by_name_and_email(self, bootstrapped, db_session, email_sender, clock):
        games = make_game_service(db_session, email_sender, clock)
        first = await games.create_game(TEST_PENDING_GAME)
        clock.advance(minutes=1)
        second = await games.create_game(
            TEST_PENDING_GAME.__class__(
                name="Book Club",
                event_date=TEST_PENDING_GAME.event_date,
                organizer_email="reader@example.org",
            )
        )
        await db_session.commit()
        await games.add_participant(
            first.id, first.admin_token, name="Alice", email="alice@example.com"
        )

        rows, total = await bootstrapped.search_games(query=None, offset=0, limit=10)
        assert total == 2
        # Newest first
        assert [game.id for game, _ in rows] == [second.id, first.id]
        assert dict((game.id, count) for game, count in rows) == {
            first.id: 1,
            second.id: 0,
        }

        rows, total = await bootstrapped.search_games(query="BOOK", offset=0, limit=10)
        assert total == 1
        assert rows[0][0].id == second.id

        rows, total = await bootstrapped.search_games(
            query="example.org", offset=0, limit=10
        )
        assert [game.id for game, _ in rows] == [second.id]

    async def test_get_and_delete_game(self, bootstrapped, db_session, email_sender, clock):
        games = make_game_service(db_session, email_sender, clock)
        game = await games.create_game(TEST_PENDING_GAME)
        await db_session.commit()

        detail = await bootstrapped.get_game(game.id)
        assert detail.game.id == game.id
        assert detail.participants == []

        await bootstrapped.delete_game(game.id)
        with pytest.raises(NotFoundError):
            await bootstrapped.get_game(game.id)

    async def test_delete_unknown_game(self, bootstrapped):
        with pytest.raises(NotFoundError):
            await bootstrapped.delete_game(uuid.uuid4())
