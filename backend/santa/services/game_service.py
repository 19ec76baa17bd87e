"""Game lifecycle - participants, the draw, reveals and reveal-email resends.

Every organizer operation is authorized by the game's admin token, compared
in constant time. Participants authorize their reveal with their own view
token.

The draw is all-or-nothing: the ``drawn`` flag flips, every participant
gets a match, and the transaction commits, or nothing changes. Emails go
out only after the commit, and a failed email never undoes the draw.
"""

import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from santa.core.config import Settings
from santa.core.email import EmailMessage, EmailSender
from santa.core.email_templates import (
    admin_welcome_email,
    organizer_confirmation_email,
    participant_notification_email,
)
from santa.core.errors import (
    AlreadyDrawnError,
    CooldownActiveError,
    DeliveryError,
    DeliveryTimeoutError,
    InsufficientParticipantsError,
    InternalInvariantError,
    InvalidStateError,
    NotFoundError,
    ParticipantLimitError,
    ResendLimitError,
    UnauthorizedError,
    ValidationError,
)
from santa.core.identifiers import new_access_token, tokens_match
from santa.models.base import utcnow
from santa.models.email_resend import ResendKind
from santa.models.game import Game, Participant
from santa.repositories.email_resend_repository import EmailResendRepository
from santa.repositories.game_repository import GameRepository
from santa.repositories.participant_repository import ParticipantRepository
from santa.services.matching import MatchingEngine
from santa.services.verification import PendingGame, normalize_email

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class GamePolicy:
    """Limits for games and reveal-email resends."""

    max_participants: int = 100
    participant_resend_cooldown: timedelta = timedelta(hours=1)
    participant_resend_max: int = 3
    bulk_resend_cooldown: timedelta = timedelta(hours=1)
    bulk_resend_max: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "GamePolicy":
        """Build the policy from application settings."""
        return cls(
            max_participants=settings.max_participants_per_game,
            participant_resend_cooldown=timedelta(
                minutes=settings.participant_resend_cooldown_minutes
            ),
            participant_resend_max=settings.participant_resend_max,
            bulk_resend_cooldown=timedelta(
                minutes=settings.bulk_resend_cooldown_minutes
            ),
            bulk_resend_max=settings.bulk_resend_max,
        )


@dataclass(frozen=True)
class GameStatus:
    """Organizer view of a game."""

    game: Game
    participants: list[Participant]


@dataclass(frozen=True)
class DeliveryReport:
    """Outcome of a batch of reveal emails.

    Attributes:
        sent: Emails accepted by the provider.
        failed: Emails that could not be delivered (logged).
    """

    sent: int
    failed: int


@dataclass(frozen=True)
class RevealResult:
    """What a participant sees on their reveal page."""

    game_name: str
    event_date: date
    participant_name: str
    recipient_name: str
    first_view: bool


class GameService:
    """Organizer and participant operations on games.

    Args:
        db: Async database session. The service commits its own writes.
        sender: Notification sender.
        policy: Participant and resend limits.
        matching: Matching engine used by the draw.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        db: AsyncSession,
        sender: EmailSender,
        *,
        policy: GamePolicy,
        matching: MatchingEngine,
        clock: Clock = utcnow,
    ) -> None:
        self._db = db
        self._sender = sender
        self._policy = policy
        self._matching = matching
        self._clock = clock

    # -----------------------------------------------------------------
    # creation
    # -----------------------------------------------------------------

    async def create_game(self, pending: PendingGame) -> Game:
        """Create a game for a verified organizer.

        Flushes only; the caller commits together with the verification
        success so a game exists if and only if its request was consumed.
        """
        game = await GameRepository.create(
            self._db,
            name=pending.name,
            event_date=pending.event_date,
            organizer_email=pending.organizer_email,
            admin_token=new_access_token(),
            now=self._clock(),
        )
        logger.info("Game %s created", game.id)
        return game

    async def send_admin_welcome(self, game: Game) -> bool:
        """Email the organizer their admin link.

        Returns:
            True if the email was accepted. A failure is logged only: the
            game already exists and the admin token is also returned to the
            client that verified.
        """
        message = admin_welcome_email(
            to_email=game.organizer_email,
            game_id=game.id,
            game_name=game.name,
            event_date=game.event_date,
            admin_token=game.admin_token,
        )
        return await self._try_send(message, f"admin welcome for game {game.id}")

    # -----------------------------------------------------------------
    # organizer operations
    # -----------------------------------------------------------------

    async def get_authorized_game(self, game_id: uuid.UUID, admin_token: str) -> Game:
        """Load a game and check its admin token.

        Raises:
            NotFoundError: Unknown game.
            UnauthorizedError: Token does not match.
        """
        game = await GameRepository.get_by_id(self._db, game_id)
        if game is None:
            raise NotFoundError("Game")
        if not tokens_match(admin_token, game.admin_token):
            logger.info("Rejected admin token for game %s", game_id)
            raise UnauthorizedError("Invalid admin token")
        return game

    async def get_status(self, game_id: uuid.UUID, admin_token: str) -> GameStatus:
        """Game with its participants and their viewed flags."""
        game = await self.get_authorized_game(game_id, admin_token)
        participants = await ParticipantRepository.list_for_game(self._db, game.id)
        return GameStatus(game=game, participants=participants)

    async def delete_game(self, game_id: uuid.UUID, admin_token: str) -> None:
        """Delete a game with its participants and resend records."""
        game = await self.get_authorized_game(game_id, admin_token)
        await GameRepository.delete(self._db, game.id)
        await self._db.commit()
        logger.info("Game %s deleted by organizer", game_id)

    async def add_participant(
        self,
        game_id: uuid.UUID,
        admin_token: str,
        *,
        name: str,
        email: str,
    ) -> Participant:
        """Add a participant to an undrawn game.

        Raises:
            InvalidStateError: Game already drawn.
            ParticipantLimitError: Game is full.
        """
        game = await self.get_authorized_game(game_id, admin_token)
        self._ensure_not_drawn(game)
        count = await ParticipantRepository.count_for_game(self._db, game.id)
        if count >= self._policy.max_participants:
            raise ParticipantLimitError(self._policy.max_participants)

        participant = await ParticipantRepository.create(
            self._db,
            game_id=game.id,
            name=name.strip(),
            email=normalize_email(email),
            view_token=new_access_token(),
            now=self._clock(),
        )

        # Checked again now that this transaction holds the write lock.
        game = await self._get_game(game_id)
        drawn = game.drawn
        count = await ParticipantRepository.count_for_game(self._db, game.id)
        if drawn or count > self._policy.max_participants:
            await self._db.rollback()
            if drawn:
                raise InvalidStateError("Cannot add participants after the draw")
            raise ParticipantLimitError(self._policy.max_participants)

        await self._db.commit()
        logger.info("Participant %s added to game %s", participant.id, game_id)
        return participant

    async def update_participant(
        self,
        game_id: uuid.UUID,
        admin_token: str,
        participant_id: uuid.UUID,
        *,
        name: str | None = None,
        email: str | None = None,
    ) -> Participant:
        """Change a participant's name or email.

        Allowed before the draw, and after it until the participant has
        opened their reveal link (so a typo in an address can be fixed and
        the link resent).

        Raises:
            ValidationError: Nothing to change.
            InvalidStateError: Game drawn and participant already viewed.
        """
        game = await self.get_authorized_game(game_id, admin_token)
        participant = await self._get_participant(game, participant_id)
        if game.drawn and participant.has_viewed:
            raise InvalidStateError(
                "Cannot edit a participant who has already viewed their match"
            )

        changes: dict[str, str] = {}
        if name is not None:
            changes["name"] = name.strip()
        if email is not None:
            changes["email"] = normalize_email(email)
        if not changes:
            raise ValidationError("Provide a name or an email to update")

        participant = await ParticipantRepository.update(
            self._db, participant, **changes
        )
        await self._db.commit()
        return participant

    # -----------------------------------------------------------------
    # draw
    # -----------------------------------------------------------------

    async def draw(self, game_id: uuid.UUID, admin_token: str) -> DeliveryReport:
        """Run the draw once and notify everyone.

        The flag flips first so the transaction holds the write lock while
        participants are read and matched; a participant added concurrently
        either lands before (and is matched) or is refused.

        Returns:
            How many reveal emails were sent and how many failed.

        Raises:
            AlreadyDrawnError: Game already drawn, including by a
                concurrent draw that won the race.
            InsufficientParticipantsError: Fewer than two participants.
        """
        game = await self.get_authorized_game(game_id, admin_token)
        if game.drawn:
            raise AlreadyDrawnError()

        now = self._clock()
        if not await GameRepository.mark_drawn(self._db, game.id, now=now):
            await self._db.rollback()
            logger.info("Concurrent draw for game %s lost the race", game_id)
            raise AlreadyDrawnError()

        participants = await ParticipantRepository.list_for_game(self._db, game.id)
        try:
            matches = self._matching.draw([p.id for p in participants])
        except (InsufficientParticipantsError, InternalInvariantError):
            await self._db.rollback()
            raise

        await ParticipantRepository.set_matches(self._db, matches)
        await self._db.commit()
        logger.info("Draw completed for game %s (%d participants)", game_id, len(matches))

        game = await self._get_game(game_id)
        report = await self._send_reveal_emails(game, participants)
        await self._try_send(
            organizer_confirmation_email(
                to_email=game.organizer_email,
                game_id=game.id,
                game_name=game.name,
                event_date=game.event_date,
                admin_token=game.admin_token,
                participant_count=len(participants),
            ),
            f"draw confirmation for game {game.id}",
        )
        return report

    # -----------------------------------------------------------------
    # reveal
    # -----------------------------------------------------------------

    async def reveal(self, view_token: str) -> RevealResult:
        """Show a participant their recipient and mark them as having viewed.

        Idempotent: later calls return the same match and leave
        ``viewed_at`` at the first view.

        Raises:
            NotFoundError: Unknown view token.
            InvalidStateError: Game not drawn yet.
            InternalInvariantError: Drawn game with an unmatched participant.
        """
        participant = await ParticipantRepository.get_by_view_token(
            self._db, view_token
        )
        if participant is None or not tokens_match(view_token, participant.view_token):
            raise NotFoundError("Reveal link")

        game = await self._get_game(participant.game_id)
        if not game.drawn:
            raise InvalidStateError("The draw has not happened yet")

        recipient = None
        if participant.matched_with_id is not None:
            recipient = await ParticipantRepository.get_by_id(
                self._db, participant.matched_with_id
            )
        if recipient is None:
            logger.error(
                "Participant %s in drawn game %s has no match", participant.id, game.id
            )
            raise InternalInvariantError()

        first_view = await ParticipantRepository.mark_viewed(
            self._db, participant.id, now=self._clock()
        )
        await self._db.commit()
        return RevealResult(
            game_name=game.name,
            event_date=game.event_date,
            participant_name=participant.name,
            recipient_name=recipient.name,
            first_view=first_view,
        )

    # -----------------------------------------------------------------
    # resends
    # -----------------------------------------------------------------

    async def resend_participant_email(
        self,
        game_id: uuid.UUID,
        admin_token: str,
        participant_id: uuid.UUID,
    ) -> Participant:
        """Send one participant's reveal email again.

        Raises:
            InvalidStateError: Game not drawn yet.
            CooldownActiveError: Resent within the cooldown window.
            ResendLimitError: Lifetime allowance used up.
            DeliveryError: The email could not be sent (not counted).
        """
        game = await self.get_authorized_game(game_id, admin_token)
        self._ensure_drawn(game)
        participant = await self._get_participant(game, participant_id)

        now = self._clock()
        await self._check_resend_allowance(
            now,
            kind=ResendKind.PARTICIPANT,
            cooldown=self._policy.participant_resend_cooldown,
            limit=self._policy.participant_resend_max,
            participant_id=participant.id,
        )

        try:
            await self._sender.send(self._reveal_message(game, participant))
        except DeliveryTimeoutError as exc:
            raise DeliveryTimeoutError(resource_id=str(participant.id)) from exc
        except DeliveryError as exc:
            raise DeliveryError(resource_id=str(participant.id)) from exc

        await EmailResendRepository.record(
            self._db,
            kind=ResendKind.PARTICIPANT,
            now=now,
            game_id=game.id,
            participant_id=participant.id,
        )
        await self._db.commit()
        logger.info("Reveal email resent to participant %s", participant.id)
        return participant

    async def resend_all(self, game_id: uuid.UUID, admin_token: str) -> DeliveryReport:
        """Send every participant's reveal email again.

        Raises:
            InvalidStateError: Game not drawn yet.
            CooldownActiveError: Bulk resend within the cooldown window.
            ResendLimitError: Lifetime allowance used up.
        """
        game = await self.get_authorized_game(game_id, admin_token)
        self._ensure_drawn(game)

        now = self._clock()
        await self._check_resend_allowance(
            now,
            kind=ResendKind.BULK,
            cooldown=self._policy.bulk_resend_cooldown,
            limit=self._policy.bulk_resend_max,
            game_id=game.id,
        )

        participants = await ParticipantRepository.list_for_game(self._db, game.id)
        report = await self._send_reveal_emails(game, participants)

        await EmailResendRepository.record(
            self._db, kind=ResendKind.BULK, now=now, game_id=game.id
        )
        await self._db.commit()
        return report

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    async def _get_game(self, game_id: uuid.UUID) -> Game:
        game = await GameRepository.get_by_id(self._db, game_id)
        if game is None:
            raise NotFoundError("Game")
        return game

    async def _get_participant(
        self, game: Game, participant_id: uuid.UUID
    ) -> Participant:
        participant = await ParticipantRepository.get_by_id(self._db, participant_id)
        # Never reveal that a participant exists in another game
        if participant is None or participant.game_id != game.id:
            raise NotFoundError("Participant")
        return participant

    @staticmethod
    def _ensure_not_drawn(game: Game) -> None:
        if game.drawn:
            raise InvalidStateError("Cannot add participants after the draw")

    @staticmethod
    def _ensure_drawn(game: Game) -> None:
        if not game.drawn:
            raise InvalidStateError("The draw has not happened yet")

    async def _check_resend_allowance(
        self,
        now: datetime,
        *,
        kind: ResendKind,
        cooldown: timedelta,
        limit: int,
        game_id: uuid.UUID | None = None,
        participant_id: uuid.UUID | None = None,
    ) -> None:
        latest = await EmailResendRepository.latest(
            self._db, kind=kind, game_id=game_id, participant_id=participant_id
        )
        if latest is not None and now < latest + cooldown:
            remaining = (latest + cooldown - now).total_seconds()
            raise CooldownActiveError(max(1, math.ceil(remaining)))

        total = await EmailResendRepository.count(
            self._db, kind=kind, game_id=game_id, participant_id=participant_id
        )
        if total >= limit:
            raise ResendLimitError(limit)

    def _reveal_message(self, game: Game, participant: Participant) -> EmailMessage:
        return participant_notification_email(
            to_email=participant.email,
            participant_name=participant.name,
            game_name=game.name,
            event_date=game.event_date,
            view_token=participant.view_token,
        )

    async def _send_reveal_emails(
        self, game: Game, participants: list[Participant]
    ) -> DeliveryReport:
        sent = 0
        failed = 0
        for participant in participants:
            delivered = await self._try_send(
                self._reveal_message(game, participant),
                f"reveal email for participant {participant.id}",
            )
            if delivered:
                sent += 1
            else:
                failed += 1

        if failed:
            logger.warning(
                "Game %s: %d of %d reveal emails failed",
                game.id,
                failed,
                len(participants),
            )
        return DeliveryReport(sent=sent, failed=failed)

    async def _try_send(self, message: EmailMessage, description: str) -> bool:
        """Send and report success; failures are logged, never raised."""
        try:
            await self._sender.send(message)
        except DeliveryError:
            logger.warning("Could not deliver %s", description)
            return False
        return True
