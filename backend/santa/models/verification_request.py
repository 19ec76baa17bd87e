"""Verification request model - email ownership proof before game creation.

A request holds a 6-digit code and the pending game it will create. It is
pending until one of: verified (terminal success), expired (TTL elapsed),
or locked (failed attempts reached the limit). A resend replaces the code,
resets the attempt counter and extends the expiry, which also reopens a
locked or nearly expired request.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, false, text
from sqlalchemy.orm import Mapped, mapped_column

from santa.models.base import Base, CreatedAtMixin, IdentifierMixin


class VerificationState(enum.StrEnum):
    """Lifecycle state of a verification request."""

    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    LOCKED = "locked"


class VerificationRequest(Base, IdentifierMixin, CreatedAtMixin):
    """Email verification request carrying a pending game.

    Attributes:
        id: UUIDv7 primary key, returned to the client.
        email: Organizer email being verified (lowercase).
        code: Current 6-digit code.
        game_name: Pending game name.
        event_date: Pending game date.
        expires_at: Code expiry.
        last_sent_at: When the current code was issued (resend cooldown).
        attempts: Failed attempts against the current code.
        verified: Single-use flag; once true the request is spent.
        verified_at: When verification succeeded.
        game_id: Game created from this request.
    """

    __tablename__ = "verification_requests"

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    game_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_date: Mapped[date] = mapped_column(Date(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    last_sent_at: Mapped[datetime] = mapped_column(nullable=False)
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    game_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("games.id", ondelete="SET NULL"),
        nullable=True,
    )

    def is_expired(self, now: datetime) -> bool:
        """Whether the current code is past its expiry at ``now``."""
        return now > self.expires_at

    def state(self, now: datetime, max_attempts: int) -> VerificationState:
        """Resolve the lifecycle state.

        Verified wins over everything. Expiry is checked before the attempt
        limit: an expired request can only be replaced by a new one, while
        a locked request that is still within its TTL can be reopened by a
        resend.

        Args:
            now: Current time.
            max_attempts: Failed-attempt threshold.

        Returns:
            The request's VerificationState.
        """
        if self.verified:
            return VerificationState.VERIFIED
        if self.is_expired(now):
            return VerificationState.EXPIRED
        if self.attempts >= max_attempts:
            return VerificationState.LOCKED
        return VerificationState.PENDING
