"""Repository for Game operations."""

import uuid
from datetime import date, datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from santa.models.game import Game, Participant


class GameRepository:
    """Stateless repository for the games table.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        name: str,
        event_date: date,
        organizer_email: str,
        admin_token: str,
        now: datetime,
    ) -> Game:
        """Create a new, undrawn game.

        Args:
            db: Async database session.
            name: Display name.
            event_date: Date of the exchange.
            organizer_email: Verified organizer email.
            admin_token: Freshly generated admin token.
            now: Creation time.

        Returns:
            Created Game.
        """
        game = Game(
            name=name,
            event_date=event_date,
            organizer_email=organizer_email,
            admin_token=admin_token,
            created_at=now,
        )
        db.add(game)
        await db.flush()
        return game

    @staticmethod
    async def get_by_id(db: AsyncSession, game_id: uuid.UUID) -> Game | None:
        """Fetch a game by primary key with fresh column values."""
        stmt = (
            select(Game)
            .where(Game.id == game_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_drawn(db: AsyncSession, game_id: uuid.UUID, *, now: datetime) -> bool:
        """Flip ``drawn`` from false to true.

        The ``drawn IS false`` guard makes this the single point where two
        concurrent draws are told apart: exactly one sees rowcount 1.

        Returns:
            True if this call performed the transition.
        """
        stmt = (
            update(Game)
            .where(Game.id == game_id, Game.drawn.is_(False))
            .values(drawn=True, drawn_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def delete(db: AsyncSession, game_id: uuid.UUID) -> bool:
        """Delete a game; participants and resend records cascade.

        Returns:
            True if a row was deleted.
        """
        stmt = delete(Game).where(Game.id == game_id)
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        query: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[tuple[Game, int]], int]:
        """Search games by name or organizer email, newest first.

        Args:
            db: Async database session.
            query: Case-insensitive substring, or None for all games.
            offset: Rows to skip.
            limit: Maximum rows to return.

        Returns:
            ((game, participant_count) rows for the page, total match count).
        """
        filters = []
        if query:
            pattern = f"%{query.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(Game.name).like(pattern),
                    func.lower(Game.organizer_email).like(pattern),
                )
            )

        total_stmt = select(func.count()).select_from(Game).where(*filters)
        total = int((await db.execute(total_stmt)).scalar_one())

        participant_count = (
            select(func.count(Participant.id))
            .where(Participant.game_id == Game.id)
            .correlate(Game)
            .scalar_subquery()
        )
        page_stmt = (
            select(Game, participant_count)
            .where(*filters)
            .order_by(Game.created_at.desc(), Game.id.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await db.execute(page_stmt)).all()
        return [(game, int(count)) for game, count in rows], total

    @staticmethod
    async def delete_created_before(db: AsyncSession, *, cutoff: datetime) -> int:
        """Delete games created before ``cutoff`` (retention).

        Returns:
            Number of deleted games.
        """
        stmt = delete(Game).where(Game.created_at < cutoff)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
