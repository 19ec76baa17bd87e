"""Site administration - password, sessions and game moderation.

A single site admin account is protected by a bcrypt-hashed password. On
first start the password comes from SITE_ADMIN_PASSWORD, or is generated
and written to the log once. Login issues an opaque bearer token; only its
SHA-256 hash is stored, so a database leak does not leak live sessions.
"""

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from santa.core.errors import NotFoundError, UnauthorizedError, ValidationError
from santa.core.identifiers import hash_token, new_access_token
from santa.models.base import utcnow
from santa.models.game import Game
from santa.models.site_admin import SiteAdminSession
from santa.repositories.game_repository import GameRepository
from santa.repositories.participant_repository import ParticipantRepository
from santa.repositories.site_admin_repository import SiteAdminRepository
from santa.services.game_service import GameStatus

logger = logging.getLogger(__name__)

# bcrypt cost factor for the admin password
BCRYPT_ROUNDS = 12

# Compared against when no credential exists so login timing does not
# reveal whether bootstrap has run.
_DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

MIN_PASSWORD_LENGTH = 8
# bcrypt only accepts passwords up to 72 bytes
MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued admin session. ``token`` is shown once."""

    token: str
    expires_at: datetime


class SiteAdminService:
    """Site admin authentication and game moderation.

    Args:
        db: Async database session.
        session_lifetime: How long a login stays valid.
        clock: Returns the current aware UTC time.
        bcrypt_rounds: bcrypt cost factor (tests lower it).
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        session_lifetime: timedelta,
        clock: Callable[[], datetime] = utcnow,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._db = db
        self._session_lifetime = session_lifetime
        self._clock = clock
        self._bcrypt_rounds = bcrypt_rounds

    # -----------------------------------------------------------------
    # credential
    # -----------------------------------------------------------------

    async def bootstrap_password(self, configured_password: str) -> bool:
        """Store the initial password if none exists yet.

        Args:
            configured_password: SITE_ADMIN_PASSWORD, possibly empty.

        Returns:
            True if a credential was created by this call.
        """
        if await SiteAdminRepository.get_password_hash(self._db) is not None:
            return False

        password = configured_password
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            msg = f"SITE_ADMIN_PASSWORD must be at most {MAX_PASSWORD_BYTES} bytes"
            raise ValueError(msg)
        if not password:
            password = secrets.token_urlsafe(18)
            logger.warning(
                "SITE_ADMIN_PASSWORD is not set. Generated site admin password: %s "
                "(change it after first login)",
                password,
            )

        await SiteAdminRepository.set_password_hash(self._db, self._hash(password))
        await self._db.commit()
        logger.info("Site admin credential initialized")
        return True

    async def login(self, password: str) -> IssuedSession:
        """Exchange the admin password for a bearer session token.

        Raises:
            UnauthorizedError: Wrong password.
        """
        await self._verify_password(password)

        now = self._clock()
        token = new_access_token()
        expires_at = now + self._session_lifetime
        await SiteAdminRepository.create_session(
            self._db, token_hash=hash_token(token), now=now, expires_at=expires_at
        )
        await self._db.commit()
        logger.info("Site admin logged in")
        return IssuedSession(token=token, expires_at=expires_at)

    async def authenticate(self, token: str) -> SiteAdminSession:
        """Resolve a bearer token to a live session.

        Raises:
            UnauthorizedError: Unknown or expired token.
        """
        session = await SiteAdminRepository.get_session(
            self._db, token_hash=hash_token(token)
        )
        if session is None or session.expires_at <= self._clock():
            raise UnauthorizedError()
        return session

    async def change_password(self, current_password: str, new_password: str) -> None:
        """Replace the admin password and sign out every session.

        Raises:
            UnauthorizedError: Current password incorrect.
            ValidationError: New password too short or too long.
        """
        await self._verify_password(current_password, "Current password incorrect")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if len(new_password.encode()) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
            )

        await SiteAdminRepository.set_password_hash(self._db, self._hash(new_password))
        await SiteAdminRepository.delete_all_sessions(self._db)
        await self._db.commit()
        logger.info("Site admin password changed; all sessions revoked")

    # -----------------------------------------------------------------
    # games
    # -----------------------------------------------------------------

    async def search_games(
        self, *, query: str | None, offset: int, limit: int
    ) -> tuple[list[tuple[Game, int]], int]:
        """Page through games matching ``query`` with participant counts."""
        return await GameRepository.search(
            self._db, query=query, offset=offset, limit=limit
        )

    async def get_game(self, game_id: uuid.UUID) -> GameStatus:
        """Full game detail including participants.

        Raises:
            NotFoundError: Unknown game.
        """
        game = await GameRepository.get_by_id(self._db, game_id)
        if game is None:
            raise NotFoundError("Game", str(game_id))
        participants = await ParticipantRepository.list_for_game(self._db, game.id)
        return GameStatus(game=game, participants=participants)

    async def delete_game(self, game_id: uuid.UUID) -> None:
        """Delete any game.

        Raises:
            NotFoundError: Unknown game.
        """
        if not await GameRepository.delete(self._db, game_id):
            raise NotFoundError("Game", str(game_id))
        await self._db.commit()
        logger.info("Game %s deleted by site admin", game_id)

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(
            password.encode(), bcrypt.gensalt(rounds=self._bcrypt_rounds)
        ).decode()

    async def _verify_password(
        self, password: str, message: str = "Invalid password"
    ) -> None:
        stored = await SiteAdminRepository.get_password_hash(self._db)
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            raise UnauthorizedError(message)
        if stored is None:
            bcrypt.checkpw(password.encode(), _DUMMY_HASH)
            raise UnauthorizedError(message)
        if not bcrypt.checkpw(password.encode(), stored.encode()):
            raise UnauthorizedError(message)
