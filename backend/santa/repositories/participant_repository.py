"""Repository for Participant operations."""

import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from santa.models.game import Participant

# Fields that may be changed via ParticipantRepository.update().
# Security: view_token, game_id and match fields are never user-editable.
_UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "email"})


class ParticipantRepository:
    """Stateless repository for the participants table."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        game_id: uuid.UUID,
        name: str,
        email: str,
        view_token: str,
        now: datetime,
    ) -> Participant:
        """Add a participant to a game.

        Args:
            db: Async database session.
            game_id: Owning game.
            name: Display name.
            email: Normalized email.
            view_token: Freshly generated reveal token.
            now: Creation time.

        Returns:
            Created Participant.
        """
        participant = Participant(
            game_id=game_id,
            name=name,
            email=email,
            view_token=view_token,
            created_at=now,
        )
        db.add(participant)
        await db.flush()
        return participant

    @staticmethod
    async def get_by_id(
        db: AsyncSession, participant_id: uuid.UUID
    ) -> Participant | None:
        """Fetch a participant by primary key with fresh column values."""
        stmt = (
            select(Participant)
            .where(Participant.id == participant_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_view_token(
        db: AsyncSession, view_token: str
    ) -> Participant | None:
        """Fetch the participant owning a reveal token."""
        stmt = select(Participant).where(Participant.view_token == view_token)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_game(
        db: AsyncSession, game_id: uuid.UUID
    ) -> list[Participant]:
        """All participants of a game in creation order."""
        stmt = (
            select(Participant)
            .where(Participant.game_id == game_id)
            .order_by(Participant.created_at, Participant.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_for_game(db: AsyncSession, game_id: uuid.UUID) -> int:
        """Number of participants in a game."""
        stmt = select(func.count()).where(Participant.game_id == game_id)
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def update(
        db: AsyncSession,
        participant: Participant,
        **kwargs: str,
    ) -> Participant:
        """Update editable participant fields.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        for field, value in kwargs.items():
            setattr(participant, field, value)

        await db.flush()
        return participant

    @staticmethod
    async def set_matches(
        db: AsyncSession, matches: dict[uuid.UUID, uuid.UUID]
    ) -> None:
        """Store every giver's recipient.

        Must run in the same transaction as GameRepository.mark_drawn so
        that all participants are matched or none are.
        """
        for giver_id, recipient_id in matches.items():
            stmt = (
                update(Participant)
                .where(Participant.id == giver_id)
                .values(matched_with_id=recipient_id)
                .execution_options(synchronize_session="fetch")
            )
            await db.execute(stmt)

    @staticmethod
    async def mark_viewed(
        db: AsyncSession, participant_id: uuid.UUID, *, now: datetime
    ) -> bool:
        """Set ``has_viewed`` on first reveal; later calls are no-ops.

        Returns:
            True if this call set the flag.
        """
        stmt = (
            update(Participant)
            .where(
                Participant.id == participant_id,
                Participant.has_viewed.is_(False),
            )
            .values(has_viewed=True, viewed_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]
