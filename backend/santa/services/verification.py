"""Verification code engine - prove control of an email before game creation.

Lifecycle per request: pending -> verified (terminal success), or pending
-> expired / locked (terminal for the current code). A resend issues a new
code, resets the attempt counter and extends the expiry, subject to a
cooldown and an hourly cap.

Six digits is only ~20 bits. Brute force is bounded by the attempt limit
(5 guesses per code) and the short TTL, not by code length.

Concurrency: every check that guards a write is repeated inside the write
itself (see VerificationRequestRepository), so parallel guesses cannot
overrun the attempt limit and parallel resends cannot skip the cooldown.
"""

import logging
import math
import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from santa.core.config import Settings
from santa.core.email import EmailSender
from santa.core.email_templates import verification_code_email
from santa.core.errors import (
    AlreadyConsumedError,
    CooldownActiveError,
    DeliveryError,
    DeliveryTimeoutError,
    ExpiredError,
    IncorrectCodeError,
    InternalInvariantError,
    LockedError,
    NotFoundError,
    TooManyRequestsError,
)
from santa.core.identifiers import new_verification_code, tokens_match
from santa.models.base import utcnow
from santa.models.email_resend import ResendKind
from santa.models.verification_request import VerificationRequest, VerificationState
from santa.repositories.email_resend_repository import EmailResendRepository
from santa.repositories.verification_request_repository import (
    VerificationRequestRepository,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

RATE_WINDOW = timedelta(hours=1)
_RESOURCE = "Verification request"


@dataclass(frozen=True)
class PendingGame:
    """Game data held by a verification request until the email is proven.

    Attributes:
        name: Game display name.
        event_date: Date of the exchange.
        organizer_email: Email being verified (normalized).
    """

    name: str
    event_date: date
    organizer_email: str


@dataclass(frozen=True)
class VerificationPolicy:
    """Limits applied by the engine.

    Attributes:
        ttl: Lifetime of each issued code.
        max_attempts: Failed attempts before the request locks.
        resend_cooldown: Minimum gap between two sends of one request.
        requests_per_hour: New requests allowed per email per hour.
        resends_per_hour: Resends allowed per request per hour.
    """

    ttl: timedelta = timedelta(minutes=15)
    max_attempts: int = 5
    resend_cooldown: timedelta = timedelta(seconds=60)
    requests_per_hour: int = 3
    resends_per_hour: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "VerificationPolicy":
        """Build the policy from application settings."""
        return cls(
            ttl=timedelta(minutes=settings.verification_code_ttl_minutes),
            max_attempts=settings.verification_max_attempts,
            resend_cooldown=timedelta(
                seconds=settings.verification_resend_cooldown_seconds
            ),
            requests_per_hour=settings.verification_requests_per_hour,
            resends_per_hour=settings.verification_resends_per_hour,
        )


@dataclass(frozen=True)
class VerificationStatus:
    """Client-facing snapshot of a request.

    Attributes:
        state: Lifecycle state.
        expires_at: Expiry of the current code.
        attempts_remaining: Wrong guesses left for the current code.
        resend_available_in: Seconds until a resend is allowed (0 = now).
    """

    state: VerificationState
    expires_at: datetime
    attempts_remaining: int
    resend_available_in: int


def normalize_email(email: str) -> str:
    """Lowercase and strip an email address."""
    return email.strip().lower()


def _seconds_until(now: datetime, moment: datetime) -> int:
    return max(0, math.ceil((moment - now).total_seconds()))


class VerificationService:
    """Issues, checks and re-issues verification codes.

    Args:
        db: Async database session. The engine commits its own state
            changes except the final success transition, which the caller
            commits together with the game it creates.
        sender: Notification sender for the codes.
        policy: TTL, attempt and resend limits.
        rng: Random source for codes.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        db: AsyncSession,
        sender: EmailSender,
        *,
        policy: VerificationPolicy,
        rng: random.Random,
        clock: Clock = utcnow,
    ) -> None:
        self._db = db
        self._sender = sender
        self._policy = policy
        self._rng = rng
        self._clock = clock

    # -----------------------------------------------------------------
    # request
    # -----------------------------------------------------------------

    async def request(self, pending: PendingGame) -> VerificationRequest:
        """Create a request and email its code.

        Args:
            pending: Game to create once the organizer email is verified.

        Returns:
            The persisted request.

        Raises:
            TooManyRequestsError: Hourly cap for this email reached.
            DeliveryError: The code could not be sent. The request is
                already stored; details carry its id so the client can
                call resend.
        """
        now = self._clock()
        email = normalize_email(pending.organizer_email)

        recent = await VerificationRequestRepository.count_created_since(
            self._db, email=email, since=now - RATE_WINDOW
        )
        if recent >= self._policy.requests_per_hour:
            logger.info("Verification request cap reached for an email address")
            raise TooManyRequestsError()

        code = new_verification_code(self._rng)
        vr = await VerificationRequestRepository.create(
            self._db,
            email=email,
            code=code,
            game_name=pending.name.strip(),
            event_date=pending.event_date,
            now=now,
            expires_at=now + self._policy.ttl,
        )
        await self._db.commit()
        logger.info("Verification request %s created", vr.id)

        await self._deliver(vr, code)
        return vr

    # -----------------------------------------------------------------
    # verify
    # -----------------------------------------------------------------

    async def verify(
        self, verification_id: uuid.UUID, submitted_code: str
    ) -> PendingGame:
        """Check a submitted code.

        On success the request is marked verified in the current
        transaction and the pending game is returned; the caller creates
        the game and commits both together.

        Args:
            verification_id: Request id.
            submitted_code: Code typed by the user.

        Returns:
            The pending game payload.

        Raises:
            NotFoundError: Unknown request.
            AlreadyConsumedError: Request already verified.
            LockedError: Attempt limit reached (including by this guess).
            ExpiredError: Code past its TTL.
            IncorrectCodeError: Wrong code; carries attempts remaining.
        """
        now = self._clock()
        vr = await self._get(verification_id)
        self._ensure_open(vr, now)

        if not tokens_match(submitted_code.strip(), vr.code):
            await self._record_failure(vr, now)

        consumed = await VerificationRequestRepository.mark_verified(
            self._db,
            vr.id,
            code=vr.code,
            now=now,
            max_attempts=self._policy.max_attempts,
        )
        if not consumed:
            # Lost a race: another verify consumed it, or a resend replaced the code.
            fresh = await self._get(verification_id)
            self._ensure_open(fresh, now)
            raise IncorrectCodeError(self._policy.max_attempts - fresh.attempts)

        logger.info("Verification request %s verified", vr.id)
        return PendingGame(
            name=vr.game_name,
            event_date=vr.event_date,
            organizer_email=vr.email,
        )

    async def link_game(self, verification_id: uuid.UUID, game_id: uuid.UUID) -> None:
        """Record the game created from a verified request."""
        await VerificationRequestRepository.link_game(
            self._db, verification_id, game_id
        )

    # -----------------------------------------------------------------
    # resend
    # -----------------------------------------------------------------

    async def resend(self, verification_id: uuid.UUID) -> VerificationRequest:
        """Issue and email a new code for an existing request.

        The new code replaces the old one, the attempt counter resets (which
        also unlocks a locked request) and the expiry moves to now + TTL.

        Args:
            verification_id: Request id.

        Returns:
            The updated request.

        Raises:
            NotFoundError: Unknown request.
            AlreadyConsumedError: Request already verified.
            ExpiredError: Request expired; a new request is needed.
            CooldownActiveError: Last send was too recent.
            TooManyRequestsError: Hourly resend cap reached.
            DeliveryError: The new code could not be sent (it is stored).
        """
        now = self._clock()
        vr = await self._get(verification_id)
        state = vr.state(now, self._policy.max_attempts)
        if state is VerificationState.VERIFIED:
            raise AlreadyConsumedError()
        if state is VerificationState.EXPIRED:
            raise ExpiredError()

        self._ensure_cooldown_elapsed(vr.last_sent_at, now)

        recent = await EmailResendRepository.count(
            self._db,
            kind=ResendKind.VERIFICATION,
            verification_id=vr.id,
            since=now - RATE_WINDOW,
        )
        if recent >= self._policy.resends_per_hour:
            raise TooManyRequestsError("Too many resends. Try again in 1 hour.")

        code = new_verification_code(self._rng)
        reissued = await VerificationRequestRepository.reissue_code(
            self._db,
            vr.id,
            expected_last_sent_at=vr.last_sent_at,
            code=code,
            now=now,
            expires_at=now + self._policy.ttl,
        )
        if not reissued:
            # A concurrent resend or verify got there first.
            await self._db.rollback()
            fresh = await self._get(verification_id)
            if fresh.verified:
                raise AlreadyConsumedError()
            self._ensure_cooldown_elapsed(fresh.last_sent_at, now)
            raise InternalInvariantError()

        await EmailResendRepository.record(
            self._db,
            kind=ResendKind.VERIFICATION,
            verification_id=vr.id,
            now=now,
        )
        await self._db.commit()
        logger.info("Verification request %s re-issued", vr.id)

        vr = await self._get(verification_id)
        await self._deliver(vr, code)
        return vr

    # -----------------------------------------------------------------
    # status
    # -----------------------------------------------------------------

    async def status(self, verification_id: uuid.UUID) -> VerificationStatus:
        """Describe a request without changing it."""
        now = self._clock()
        vr = await self._get(verification_id)
        resend_at = vr.last_sent_at + self._policy.resend_cooldown
        return VerificationStatus(
            state=vr.state(now, self._policy.max_attempts),
            expires_at=vr.expires_at,
            attempts_remaining=max(0, self._policy.max_attempts - vr.attempts),
            resend_available_in=_seconds_until(now, resend_at),
        )

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    async def _get(self, verification_id: uuid.UUID) -> VerificationRequest:
        vr = await VerificationRequestRepository.get_by_id(self._db, verification_id)
        if vr is None:
            raise NotFoundError(_RESOURCE)
        return vr

    def _ensure_open(self, vr: VerificationRequest, now: datetime) -> None:
        """Raise unless the request can still accept a code."""
        state = vr.state(now, self._policy.max_attempts)
        if state is VerificationState.VERIFIED:
            raise AlreadyConsumedError()
        if state is VerificationState.LOCKED:
            raise LockedError()
        if state is VerificationState.EXPIRED:
            raise ExpiredError()

    def _ensure_cooldown_elapsed(self, last_sent_at: datetime, now: datetime) -> None:
        ready_at = last_sent_at + self._policy.resend_cooldown
        if now < ready_at:
            raise CooldownActiveError(_seconds_until(now, ready_at))

    async def _record_failure(
        self, vr: VerificationRequest, now: datetime
    ) -> NoReturn:
        """Persist a wrong guess and raise the matching outcome."""
        attempts = await VerificationRequestRepository.record_failed_attempt(
            self._db, vr.id, max_attempts=self._policy.max_attempts
        )
        await self._db.commit()

        if attempts is None:
            # Guard refused: a parallel request consumed or locked it first.
            fresh = await self._get(vr.id)
            self._ensure_open(fresh, now)
            raise InternalInvariantError()

        remaining = self._policy.max_attempts - attempts
        if remaining <= 0:
            logger.info("Verification request %s locked after failed attempts", vr.id)
            raise LockedError()
        raise IncorrectCodeError(remaining)

    async def _deliver(self, vr: VerificationRequest, code: str) -> None:
        message = verification_code_email(
            to_email=vr.email,
            game_name=vr.game_name,
            code=code,
            ttl_minutes=int(self._policy.ttl.total_seconds() // 60),
        )
        try:
            await self._sender.send(message)
        except DeliveryTimeoutError as exc:
            logger.error("Timed out sending code for verification %s", vr.id)
            raise DeliveryTimeoutError(resource_id=str(vr.id)) from exc
        except DeliveryError as exc:
            logger.error("Failed to send code for verification %s", vr.id)
            raise DeliveryError(
                "Failed to send verification email", resource_id=str(vr.id)
            ) from exc
