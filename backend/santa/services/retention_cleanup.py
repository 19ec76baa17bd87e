"""Retention cleanup service.

Three cleanup jobs, run together by the cleanup worker:
- Expired, unverified verification requests (their codes can no longer be used)
- Expired site admin sessions
- Games older than the retention window (participants and resend records
  cascade)

Each job commits on its own so one failure does not undo the others.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from santa.core.errors import APIError
from santa.repositories.game_repository import GameRepository
from santa.repositories.site_admin_repository import SiteAdminRepository
from santa.repositories.verification_request_repository import (
    VerificationRequestRepository,
)
from santa.services.verification import RATE_WINDOW

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    """Aggregate result of one cleanup pass.

    Attributes:
        expired_verifications: Unverified requests deleted after expiry.
        expired_sessions: Site admin sessions deleted after expiry.
        old_games: Games deleted for exceeding the retention window.
        finished_at: When the pass completed.
    """

    expired_verifications: int
    expired_sessions: int
    old_games: int
    finished_at: datetime


class CleanupError(APIError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def cleanup_expired_verifications(db: AsyncSession, *, now: datetime) -> int:
    """Delete unverified verification requests past their expiry.

    Requests created within the last rate window are kept so the per-email
    request cap still sees them.

    Args:
        db: Database session.
        now: Current time.

    Returns:
        Number of requests deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        count = await VerificationRequestRepository.delete_expired_unverified(
            db, now=now, created_before=now - RATE_WINDOW
        )
        await db.commit()
        return count
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Expired verification cleanup failed: %s", exc)
        raise CleanupError("Expired verification cleanup failed") from exc


async def cleanup_expired_sessions(db: AsyncSession, *, now: datetime) -> int:
    """Delete site admin sessions past their expiry.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        count = await SiteAdminRepository.delete_expired_sessions(db, now=now)
        await db.commit()
        return count
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Expired session cleanup failed: %s", exc)
        raise CleanupError("Expired session cleanup failed") from exc


async def cleanup_old_games(
    db: AsyncSession, *, now: datetime, retention: timedelta
) -> int:
    """Delete games created more than ``retention`` ago.

    Args:
        db: Database session.
        now: Current time.
        retention: How long games are kept.

    Returns:
        Number of games deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        count = await GameRepository.delete_created_before(db, cutoff=now - retention)
        await db.commit()
        return count
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Old game cleanup failed: %s", exc)
        raise CleanupError("Old game cleanup failed") from exc


async def run_all_cleanups(
    db: AsyncSession, *, now: datetime, retention: timedelta
) -> CleanupResult:
    """Run all three cleanup jobs.

    Raises:
        CleanupError: If any database operation fails.
    """
    return CleanupResult(
        expired_verifications=await cleanup_expired_verifications(db, now=now),
        expired_sessions=await cleanup_expired_sessions(db, now=now),
        old_games=await cleanup_old_games(db, now=now, retention=retention),
        finished_at=now,
    )
