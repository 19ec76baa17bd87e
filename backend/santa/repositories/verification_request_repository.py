"""Repository for VerificationRequest operations.

State transitions are single guarded UPDATE statements so concurrent
requests cannot both pass a check: the WHERE clause re-states the check
and the rowcount (or RETURNING value) says who won.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from santa.models.verification_request import VerificationRequest


class VerificationRequestRepository:
    """Stateless repository for the verification_requests table.

    All methods are static; there is no instance state. Callers control
    transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        code: str,
        game_name: str,
        event_date: date,
        now: datetime,
        expires_at: datetime,
    ) -> VerificationRequest:
        """Store a new pending verification request.

        Args:
            db: Async database session.
            email: Normalized organizer email.
            code: 6-digit code.
            game_name: Pending game name.
            event_date: Pending game date.
            now: Creation time (also the first send time).
            expires_at: Code expiry.

        Returns:
            Created VerificationRequest.
        """
        vr = VerificationRequest(
            email=email,
            code=code,
            game_name=game_name,
            event_date=event_date,
            created_at=now,
            last_sent_at=now,
            expires_at=expires_at,
        )
        db.add(vr)
        await db.flush()
        return vr

    @staticmethod
    async def get_by_id(
        db: AsyncSession, verification_id: uuid.UUID
    ) -> VerificationRequest | None:
        """Fetch a request by primary key, bypassing the identity map cache."""
        stmt = (
            select(VerificationRequest)
            .where(VerificationRequest.id == verification_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_created_since(
        db: AsyncSession, *, email: str, since: datetime
    ) -> int:
        """Count requests created for an email after ``since``."""
        stmt = select(func.count()).where(
            VerificationRequest.email == email,
            VerificationRequest.created_at > since,
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def record_failed_attempt(
        db: AsyncSession,
        verification_id: uuid.UUID,
        *,
        max_attempts: int,
    ) -> int | None:
        """Atomically increment the failed-attempt counter.

        The increment only applies while the request is unverified and
        below the limit, so parallel wrong guesses can never push the
        counter past ``max_attempts`` unnoticed.

        Args:
            db: Async database session.
            verification_id: Request id.
            max_attempts: Attempt threshold.

        Returns:
            New attempt count, or None if the guard rejected the update.
        """
        stmt = (
            update(VerificationRequest)
            .where(
                VerificationRequest.id == verification_id,
                VerificationRequest.verified.is_(False),
                VerificationRequest.attempts < max_attempts,
            )
            .values(attempts=VerificationRequest.attempts + 1)
            .returning(VerificationRequest.attempts)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_verified(
        db: AsyncSession,
        verification_id: uuid.UUID,
        *,
        code: str,
        now: datetime,
        max_attempts: int,
    ) -> bool:
        """Atomically consume the request.

        Succeeds only for the code that was checked, while the request is
        unverified, unlocked and unexpired. A concurrent resend (new code)
        or a concurrent successful verify makes this return False.

        Returns:
            True if this call consumed the request.
        """
        stmt = (
            update(VerificationRequest)
            .where(
                VerificationRequest.id == verification_id,
                VerificationRequest.verified.is_(False),
                VerificationRequest.code == code,
                VerificationRequest.attempts < max_attempts,
                VerificationRequest.expires_at >= now,
            )
            .values(verified=True, verified_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def link_game(
        db: AsyncSession, verification_id: uuid.UUID, game_id: uuid.UUID
    ) -> None:
        """Record which game a verified request produced."""
        stmt = (
            update(VerificationRequest)
            .where(VerificationRequest.id == verification_id)
            .values(game_id=game_id)
        )
        await db.execute(stmt)

    @staticmethod
    async def reissue_code(
        db: AsyncSession,
        verification_id: uuid.UUID,
        *,
        expected_last_sent_at: datetime,
        code: str,
        now: datetime,
        expires_at: datetime,
    ) -> bool:
        """Replace the code if nobody else resent since we looked.

        Optimistic check-and-set on ``last_sent_at``: of two concurrent
        resends that both passed the cooldown check, only one matches.

        Returns:
            True if this call issued the new code.
        """
        stmt = (
            update(VerificationRequest)
            .where(
                VerificationRequest.id == verification_id,
                VerificationRequest.verified.is_(False),
                VerificationRequest.last_sent_at == expected_last_sent_at,
            )
            .values(
                code=code,
                attempts=0,
                last_sent_at=now,
                expires_at=expires_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def delete_expired_unverified(
        db: AsyncSession, *, now: datetime, created_before: datetime
    ) -> int:
        """Delete unverified requests whose code has expired.

        Rows created at or after ``created_before`` are kept even when
        expired; the per-email hourly cap counts them.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationRequest).where(
            VerificationRequest.expires_at < now,
            VerificationRequest.created_at < created_before,
            VerificationRequest.verified.is_(False),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
