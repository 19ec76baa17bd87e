"""Tests for the game service: participants, draw, reveal and resends."""

import asyncio
import uuid

import pytest

from santa.core.errors import (
    AlreadyDrawnError,
    CooldownActiveError,
    DeliveryError,
    InsufficientParticipantsError,
    InvalidStateError,
    NotFoundError,
    ParticipantLimitError,
    ResendLimitError,
    UnauthorizedError,
    ValidationError,
)
from santa.repositories.participant_repository import ParticipantRepository
from tests.conftest import TEST_ORGANIZER_EMAIL, TEST_PENDING_GAME, make_game_service

_NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin"]


@pytest.fixture
def service(db_session, email_sender, clock):
    return make_game_service(db_session, email_sender, clock)


@pytest.fixture
async def game(service, db_session):
    created = await service.create_game(TEST_PENDING_GAME)
    await db_session.commit()
    return created


async def _add_people(service, game, names=_NAMES):
    return [
        await service.add_participant(
            game.id, game.admin_token, name=name, email=f"{name.lower()}@example.com"
        )
        for name in names
    ]


class TestCreateGame:
    """Game creation and organizer authorization."""

    async def test_creates_undrawn_game_with_admin_token(self, game):
        assert game.name == "Office Party"
        assert game.organizer_email == TEST_ORGANIZER_EMAIL
        assert game.drawn is False
        assert len(game.admin_token) == 32

    async def test_admin_welcome_email(self, service, game, email_sender):
        assert await service.send_admin_welcome(game) is True
        [message] = email_sender.sent
        assert message.to == TEST_ORGANIZER_EMAIL
        assert game.admin_token in message.text

    async def test_admin_welcome_failure_is_not_raised(self, service, game, email_sender):
        email_sender.fail_all = True
        assert await service.send_admin_welcome(game) is False

    async def test_wrong_admin_token(self, service, game):
        with pytest.raises(UnauthorizedError):
            await service.get_status(game.id, "x" * 32)

    async def test_empty_admin_token(self, service, game):
        with pytest.raises(UnauthorizedError):
            await service.get_status(game.id, "")

    async def test_unknown_game(self, service):
        with pytest.raises(NotFoundError):
            await service.get_status(uuid.uuid4(), "x" * 32)


class TestParticipants:
    """Adding and editing participants."""

    async def test_add_participant(self, service, game):
        participant = await service.add_participant(
            game.id, game.admin_token, name=" Alice ", email="Alice@Example.com"
        )
        assert participant.name == "Alice"
        assert participant.email == "alice@example.com"
        assert len(participant.view_token) == 32
        assert participant.matched_with_id is None

        status = await service.get_status(game.id, game.admin_token)
        assert [p.id for p in status.participants] == [participant.id]

    async def test_participant_limit(self, db_session, email_sender, clock):
        service = make_game_service(db_session, email_sender, clock, max_participants=2)
        game = await service.create_game(TEST_PENDING_GAME)
        await db_session.commit()
        await _add_people(service, game, ["A", "B"])

        with pytest.raises(ParticipantLimitError):
            await _add_people(service, game, ["C"])

    async def test_cannot_add_after_draw(self, service, game):
        await _add_people(service, game, ["A", "B"])
        await service.draw(game.id, game.admin_token)

        with pytest.raises(InvalidStateError):
            await _add_people(service, game, ["C"])

    async def test_update_participant(self, service, game):
        [alice] = await _add_people(service, game, ["Alice"])

        updated = await service.update_participant(
            game.id, game.admin_token, alice.id, email="ALICE@new.example.com"
        )

        assert updated.email == "alice@new.example.com"
        assert updated.name == "Alice"

    async def test_update_requires_a_field(self, service, game):
        [alice] = await _add_people(service, game, ["Alice"])
        with pytest.raises(ValidationError):
            await service.update_participant(game.id, game.admin_token, alice.id)

    async def test_update_after_draw_allowed_until_viewed(self, service, game):
        people = await _add_people(service, game, ["A", "B", "C"])
        await service.draw(game.id, game.admin_token)

        await service.update_participant(
            game.id, game.admin_token, people[0].id, name="Anna"
        )
        await service.reveal(people[0].view_token)

        with pytest.raises(InvalidStateError):
            await service.update_participant(
                game.id, game.admin_token, people[0].id, name="Ann"
            )

    async def test_participant_of_other_game_not_found(self, service, game, db_session):
        other = await service.create_game(TEST_PENDING_GAME)
        await db_session.commit()
        [stranger] = await _add_people(service, other, ["Stranger"])

        with pytest.raises(NotFoundError):
            await service.update_participant(
                game.id, game.admin_token, stranger.id, name="Mine"
            )


class TestDraw:
    """Running the draw."""

    async def test_draw_matches_everyone(self, service, game, db_session):
        people = await _add_people(service, game)

        report = await service.draw(game.id, game.admin_token)

        assert report.sent == len(people)
        assert report.failed == 0
        participants = await ParticipantRepository.list_for_game(db_session, game.id)
        ids = {p.id for p in participants}
        recipients = [p.matched_with_id for p in participants]
        assert sorted(recipients) == sorted(ids)
        assert all(p.matched_with_id != p.id for p in participants)

        status = await service.get_status(game.id, game.admin_token)
        assert status.game.drawn is True
        assert status.game.drawn_at is not None

    async def test_draw_emails_participants_and_organizer(self, service, game, email_sender):
        people = await _add_people(service, game, ["A", "B", "C"])

        await service.draw(game.id, game.admin_token)

        for person in people:
            [message] = email_sender.sent_to(person.email)
            assert person.view_token in message.text
        [confirmation] = email_sender.sent_to(TEST_ORGANIZER_EMAIL)
        assert "3 participants" in confirmation.text

    async def test_draw_happens_once(self, service, game):
        await _add_people(service, game, ["A", "B"])
        await service.draw(game.id, game.admin_token)

        with pytest.raises(AlreadyDrawnError):
            await service.draw(game.id, game.admin_token)

    async def test_draw_needs_two_participants(self, service, game):
        await _add_people(service, game, ["Solo"])
        # The failed draw rolls back, which expires loaded rows
        game_id, admin_token = game.id, game.admin_token

        with pytest.raises(InsufficientParticipantsError):
            await service.draw(game_id, admin_token)

        status = await service.get_status(game_id, admin_token)
        assert status.game.drawn is False

    async def test_draw_with_wrong_token_changes_nothing(self, service, game):
        await _add_people(service, game, ["A", "B"])
        with pytest.raises(UnauthorizedError):
            await service.draw(game.id, "nope")

    async def test_failed_emails_do_not_undo_draw(self, service, game, email_sender):
        await _add_people(service, game, ["A", "B", "C"])
        email_sender.failing.add("b@example.com")

        report = await service.draw(game.id, game.admin_token)

        assert report.sent == 2
        assert report.failed == 1
        status = await service.get_status(game.id, game.admin_token)
        assert status.game.drawn is True
        assert all(p.matched_with_id is not None for p in status.participants)

    async def test_concurrent_draws_only_one_wins(
        self, session_factory, email_sender, clock
    ):
        async with session_factory() as db:
            setup = make_game_service(db, email_sender, clock)
            game = await setup.create_game(TEST_PENDING_GAME)
            await db.commit()
            await _add_people(setup, game)

        async def attempt(seed):
            async with session_factory() as db:
                svc = make_game_service(db, email_sender, clock, seed=seed)
                try:
                    await svc.draw(game.id, game.admin_token)
                except AlreadyDrawnError:
                    return False
                return True

        results = await asyncio.gather(*(attempt(seed) for seed in range(5)))

        assert results.count(True) == 1
        # Each participant got exactly one reveal email
        for name in _NAMES:
            assert len(email_sender.sent_to(f"{name.lower()}@example.com")) == 1


class TestReveal:
    """Participants viewing their match."""

    async def test_reveal_shows_recipient_and_marks_viewed(self, service, game, db_session):
        people = await _add_people(service, game, ["A", "B"])
        await service.draw(game.id, game.admin_token)

        result = await service.reveal(people[0].view_token)

        assert result.participant_name == "A"
        assert result.recipient_name == "B"
        assert result.game_name == "Office Party"
        assert result.first_view is True
        stored = await ParticipantRepository.get_by_id(db_session, people[0].id)
        assert stored.has_viewed is True
        assert stored.viewed_at is not None

    async def test_reveal_is_idempotent(self, service, game, db_session, clock):
        people = await _add_people(service, game, ["A", "B", "C"])
        await service.draw(game.id, game.admin_token)

        first = await service.reveal(people[1].view_token)
        first_viewed_at = (
            await ParticipantRepository.get_by_id(db_session, people[1].id)
        ).viewed_at
        clock.advance(hours=2)
        second = await service.reveal(people[1].view_token)

        assert second.recipient_name == first.recipient_name
        assert second.first_view is False
        stored = await ParticipantRepository.get_by_id(db_session, people[1].id)
        assert stored.viewed_at == first_viewed_at

    async def test_reveal_before_draw(self, service, game):
        [alice] = await _add_people(service, game, ["Alice"])
        with pytest.raises(InvalidStateError):
            await service.reveal(alice.view_token)

    async def test_unknown_view_token(self, service):
        with pytest.raises(NotFoundError):
            await service.reveal("z" * 32)


class TestResends:
    """Reveal-email resends."""

    async def test_resend_requires_draw(self, service, game):
        [alice] = await _add_people(service, game, ["Alice"])
        with pytest.raises(InvalidStateError):
            await service.resend_participant_email(game.id, game.admin_token, alice.id)

    async def test_participant_resend_cooldown_and_limit(
        self, service, game, email_sender, clock
    ):
        people = await _add_people(service, game, ["A", "B"])
        await service.draw(game.id, game.admin_token)

        await service.resend_participant_email(game.id, game.admin_token, people[0].id)
        with pytest.raises(CooldownActiveError) as exc_info:
            await service.resend_participant_email(
                game.id, game.admin_token, people[0].id
            )
        assert exc_info.value.retry_after_seconds == 3600

        for _ in range(2):
            clock.advance(hours=1)
            await service.resend_participant_email(
                game.id, game.admin_token, people[0].id
            )
        clock.advance(hours=1)
        with pytest.raises(ResendLimitError):
            await service.resend_participant_email(
                game.id, game.admin_token, people[0].id
            )

        # Draw email plus three resends
        assert len(email_sender.sent_to(people[0].email)) == 4
        # The other participant's allowance is untouched
        await service.resend_participant_email(game.id, game.admin_token, people[1].id)

    async def test_failed_participant_resend_is_not_counted(
        self, service, game, email_sender
    ):
        people = await _add_people(service, game, ["A", "B"])
        await service.draw(game.id, game.admin_token)
        email_sender.fail_all = True

        with pytest.raises(DeliveryError):
            await service.resend_participant_email(
                game.id, game.admin_token, people[0].id
            )

        email_sender.fail_all = False
        await service.resend_participant_email(game.id, game.admin_token, people[0].id)

    async def test_bulk_resend(self, service, game, email_sender, clock):
        people = await _add_people(service, game, ["A", "B", "C"])
        await service.draw(game.id, game.admin_token)
        email_sender.sent.clear()

        report = await service.resend_all(game.id, game.admin_token)

        assert report.sent == 3
        assert {m.to for m in email_sender.sent} == {p.email for p in people}
        with pytest.raises(CooldownActiveError):
            await service.resend_all(game.id, game.admin_token)

        for _ in range(2):
            clock.advance(hours=1, seconds=1)
            await service.resend_all(game.id, game.admin_token)
        clock.advance(hours=1, seconds=1)
        with pytest.raises(ResendLimitError):
            await service.resend_all(game.id, game.admin_token)


class TestDelete:
    """Organizer deletes a game."""

    async def test_delete_cascades(self, service, game, db_session):
        [alice] = await _add_people(service, game, ["Alice"])

        await service.delete_game(game.id, game.admin_token)

        assert await ParticipantRepository.get_by_id(db_session, alice.id) is None
        with pytest.raises(NotFoundError):
            await service.get_status(game.id, game.admin_token)

    async def test_delete_requires_token(self, service, game):
        with pytest.raises(UnauthorizedError):
            await service.delete_game(game.id, "wrong")
