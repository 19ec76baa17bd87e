"""Repository for EmailResend records."""

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from santa.models.email_resend import EmailResend, ResendKind


def _subject_filter(
    *,
    verification_id: uuid.UUID | None,
    game_id: uuid.UUID | None,
    participant_id: uuid.UUID | None,
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if verification_id is not None:
        clauses.append(EmailResend.verification_id == verification_id)
    if game_id is not None:
        clauses.append(EmailResend.game_id == game_id)
    if participant_id is not None:
        clauses.append(EmailResend.participant_id == participant_id)
    if not clauses:
        msg = "One of verification_id, game_id or participant_id is required"
        raise ValueError(msg)
    return clauses


class EmailResendRepository:
    """Stateless repository for the email_resends table."""

    @staticmethod
    async def record(
        db: AsyncSession,
        *,
        kind: ResendKind,
        now: datetime,
        verification_id: uuid.UUID | None = None,
        game_id: uuid.UUID | None = None,
        participant_id: uuid.UUID | None = None,
    ) -> EmailResend:
        """Store one resend event.

        Args:
            db: Async database session.
            kind: What was resent.
            now: When it was resent.
            verification_id: Verification request (verification resends).
            game_id: Game (participant and bulk resends).
            participant_id: Participant (participant resends).

        Returns:
            Created EmailResend.
        """
        record = EmailResend(
            kind=kind.value,
            verification_id=verification_id,
            game_id=game_id,
            participant_id=participant_id,
            resent_at=now,
        )
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def count(
        db: AsyncSession,
        *,
        kind: ResendKind,
        since: datetime | None = None,
        verification_id: uuid.UUID | None = None,
        game_id: uuid.UUID | None = None,
        participant_id: uuid.UUID | None = None,
    ) -> int:
        """Count resends of ``kind`` for one subject, optionally after ``since``.

        Raises:
            ValueError: If no subject id is given.
        """
        stmt = select(func.count()).where(
            EmailResend.kind == kind.value,
            *_subject_filter(
                verification_id=verification_id,
                game_id=game_id,
                participant_id=participant_id,
            ),
        )
        if since is not None:
            stmt = stmt.where(EmailResend.resent_at > since)
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def latest(
        db: AsyncSession,
        *,
        kind: ResendKind,
        verification_id: uuid.UUID | None = None,
        game_id: uuid.UUID | None = None,
        participant_id: uuid.UUID | None = None,
    ) -> datetime | None:
        """Most recent resend time of ``kind`` for one subject."""
        stmt = select(func.max(EmailResend.resent_at)).where(
            EmailResend.kind == kind.value,
            *_subject_filter(
                verification_id=verification_id,
                game_id=game_id,
                participant_id=participant_id,
            ),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
