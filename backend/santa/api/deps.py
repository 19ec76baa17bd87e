"""Shared dependencies for API endpoints.

Services are built per request around the request's database session, so
one request sees one transaction across every service it touches.

Authorization comes in two shapes:
- Organizer endpoints take the game's admin token in the X-Admin-Token
  header; the game service checks it against the game.
- Site admin endpoints take a session token as ``Authorization: Bearer``.
"""

import random
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from santa.core.config import settings
from santa.core.database import get_db
from santa.core.email import EmailSender, get_email_sender
from santa.core.errors import UnauthorizedError
from santa.core.pagination import PaginationParams, pagination_params
from santa.models.site_admin import SiteAdminSession
from santa.services.game_service import GamePolicy, GameService
from santa.services.matching import MatchingEngine
from santa.services.site_admin_service import SiteAdminService
from santa.services.verification import VerificationPolicy, VerificationService

# Reusable type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Sender = Annotated[EmailSender, Depends(get_email_sender)]
Pagination = Annotated[PaginationParams, Depends(pagination_params)]

# Endpoints default this to "" so a missing header fails the token check (401)
AdminToken = Annotated[str, Header(alias="X-Admin-Token", max_length=64)]


def get_verification_service(db: DbSession, sender: Sender) -> VerificationService:
    """Verification engine backed by the OS CSPRNG."""
    return VerificationService(
        db,
        sender,
        policy=VerificationPolicy.from_settings(settings),
        rng=random.SystemRandom(),
    )


def get_game_service(db: DbSession, sender: Sender) -> GameService:
    """Game service whose draws shuffle with the OS CSPRNG."""
    return GameService(
        db,
        sender,
        policy=GamePolicy.from_settings(settings),
        matching=MatchingEngine(random.SystemRandom()),
    )


def get_site_admin_service(db: DbSession) -> SiteAdminService:
    """Site admin service with the configured session lifetime."""
    return SiteAdminService(
        db,
        session_lifetime=timedelta(hours=settings.site_admin_session_hours),
    )


VerificationServiceDep = Annotated[
    VerificationService, Depends(get_verification_service)
]
GameServiceDep = Annotated[GameService, Depends(get_game_service)]
SiteAdminServiceDep = Annotated[SiteAdminService, Depends(get_site_admin_service)]


async def require_site_admin(
    request: Request,
    service: SiteAdminServiceDep,
) -> SiteAdminSession:
    """Resolve the bearer token to a live site admin session.

    Raises:
        UnauthorizedError: Missing, malformed, unknown or expired token.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError()
    return await service.authenticate(token.strip())


SiteAdmin = Annotated[SiteAdminSession, Depends(require_site_admin)]
