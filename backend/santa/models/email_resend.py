"""Email resend records.

One row per resend of a verification code or reveal email. Rows are the
history behind the hourly and lifetime resend limits.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from santa.models.base import Base, IdentifierMixin, utcnow


class ResendKind(enum.StrEnum):
    """What was resent."""

    VERIFICATION = "verification"
    PARTICIPANT = "participant"
    BULK = "bulk"


class EmailResend(Base, IdentifierMixin):
    """A single resend event.

    Attributes:
        id: UUIDv7 primary key.
        kind: ``verification``, ``participant`` (one reveal email) or
            ``bulk`` (all reveal emails of a game).
        verification_id: Set for verification resends.
        game_id: Set for participant and bulk resends.
        participant_id: Set for participant resends.
        resent_at: When the resend happened.
    """

    __tablename__ = "email_resends"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('verification', 'participant', 'bulk')",
            name="ck_email_resends_kind",
        ),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    verification_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("verification_requests.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    game_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    participant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    resent_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
