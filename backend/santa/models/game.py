"""Game and Participant models.

A Game owns its participants exclusively: deleting a game deletes them.
The ``drawn`` flag flips from false to true exactly once, in the same
transaction that stores every participant's match.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from santa.models.base import Base, CreatedAtMixin, IdentifierMixin


class Game(Base, IdentifierMixin, CreatedAtMixin):
    """A gift exchange.

    Attributes:
        id: UUIDv7 primary key.
        name: Display name.
        event_date: Date of the exchange.
        organizer_email: Verified email of the organizer.
        admin_token: Bearer token for the organizer panel.
        drawn: Whether the draw has run. Never reset.
        drawn_at: When the draw ran.
        created_at: Creation timestamp.
    """

    __tablename__ = "games"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_date: Mapped[date] = mapped_column(Date(), nullable=False)
    organizer_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    admin_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )
    drawn: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    drawn_at: Mapped[datetime | None] = mapped_column(nullable=True)

    participants: Mapped[list["Participant"]] = relationship(
        "Participant",
        back_populates="game",
        cascade="all, delete-orphan",
        passive_deletes=True,
        foreign_keys="Participant.game_id",
        order_by="Participant.id",
    )


class Participant(Base, IdentifierMixin, CreatedAtMixin):
    """A person taking part in a game.

    Attributes:
        id: UUIDv7 primary key (creation order).
        game_id: Owning game.
        name: Display name shown to whoever draws this participant.
        email: Where the reveal link is sent.
        view_token: Bearer token for this participant's reveal link.
        matched_with_id: Recipient assigned by the draw. NULL until then.
        has_viewed: Whether the reveal link has been opened.
        viewed_at: First successful reveal.
    """

    __tablename__ = "participants"

    game_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    view_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )
    matched_with_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
    )
    has_viewed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    viewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    game: Mapped[Game] = relationship(
        "Game",
        back_populates="participants",
        foreign_keys=[game_id],
    )
