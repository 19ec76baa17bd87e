"""Repository for site admin credential and session rows."""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from santa.models.site_admin import (
    SITE_ADMIN_CREDENTIAL_ID,
    SiteAdminCredential,
    SiteAdminSession,
)


class SiteAdminRepository:
    """Stateless repository for site_admin_credentials and site_admin_sessions."""

    @staticmethod
    async def get_password_hash(db: AsyncSession) -> str | None:
        """Return the stored bcrypt hash, or None before bootstrap."""
        credential = await db.get(SiteAdminCredential, SITE_ADMIN_CREDENTIAL_ID)
        return credential.password_hash if credential else None

    @staticmethod
    async def set_password_hash(db: AsyncSession, password_hash: str) -> None:
        """Create or replace the single credential row."""
        credential = await db.get(SiteAdminCredential, SITE_ADMIN_CREDENTIAL_ID)
        if credential is None:
            db.add(
                SiteAdminCredential(
                    id=SITE_ADMIN_CREDENTIAL_ID,
                    password_hash=password_hash,
                )
            )
        else:
            credential.password_hash = password_hash
        await db.flush()

    @staticmethod
    async def create_session(
        db: AsyncSession,
        *,
        token_hash: str,
        now: datetime,
        expires_at: datetime,
    ) -> SiteAdminSession:
        """Store a new admin session by token hash."""
        session = SiteAdminSession(
            token_hash=token_hash,
            created_at=now,
            expires_at=expires_at,
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get_session(
        db: AsyncSession, *, token_hash: str
    ) -> SiteAdminSession | None:
        """Look up a session by token hash."""
        stmt = select(SiteAdminSession).where(
            SiteAdminSession.token_hash == token_hash
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_all_sessions(db: AsyncSession) -> None:
        """Sign out every admin session (after a password change)."""
        await db.execute(delete(SiteAdminSession))

    @staticmethod
    async def delete_expired_sessions(db: AsyncSession, *, now: datetime) -> int:
        """Delete sessions past their expiry.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(SiteAdminSession).where(SiteAdminSession.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
