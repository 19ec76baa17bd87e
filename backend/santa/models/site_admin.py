"""Site administrator credential and session models."""

from datetime import datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from santa.models.base import Base, CreatedAtMixin, IdentifierMixin, utcnow

# The credential table holds a single row with this id
SITE_ADMIN_CREDENTIAL_ID = 1


class SiteAdminCredential(Base):
    """bcrypt hash of the site admin password (single row)."""

    __tablename__ = "site_admin_credentials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class SiteAdminSession(Base, IdentifierMixin, CreatedAtMixin):
    """Bearer session issued at site admin login.

    Only the SHA-256 hash of the token is stored.

    Attributes:
        token_hash: SHA-256 hex of the bearer token.
        expires_at: Session expiry.
    """

    __tablename__ = "site_admin_sessions"

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
