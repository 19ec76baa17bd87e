"""Site administration endpoints.

Endpoints:
- POST /site-admin/login - password for a bearer session token
- POST /site-admin/change-password - change password, revoke all sessions
- GET /site-admin/games - search games by name or organizer email
- GET /site-admin/games/{id} - game detail with participants
- DELETE /site-admin/games/{id} - delete a game

Everything except login requires ``Authorization: Bearer <token>``.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from santa.api.deps import Pagination, SiteAdmin, SiteAdminServiceDep
from santa.core.rate_limiting import limiter
from santa.core.responses import DataResponse, ListResponse, PaginationMeta
from santa.schemas.games import GameStatusResponse, GameSummaryResponse

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class LoginRequest(BaseModel):
    """Request body for POST /site-admin/login."""

    model_config = ConfigDict(extra="forbid")

    password: str = Field(min_length=1, max_length=128)


class LoginResponse(BaseModel):
    """Session token, shown once."""

    token: str
    expires_at: datetime


class ChangePasswordRequest(BaseModel):
    """Request body for POST /site-admin/change-password."""

    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


# ===================================================================
# Authentication
# ===================================================================


@router.post("/login")
@limiter.limit("5/15minute")
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    service: SiteAdminServiceDep,
) -> DataResponse[LoginResponse]:
    """Exchange the admin password for a session token.

    Rate limit: 5 per 15 minutes per IP.
    """
    session = await service.login(body.password)
    return DataResponse(
        data=LoginResponse(token=session.token, expires_at=session.expires_at)
    )


@router.post("/change-password")
@limiter.limit("5/hour")
async def change_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ChangePasswordRequest,
    _admin: SiteAdmin,
    service: SiteAdminServiceDep,
) -> DataResponse[dict]:
    """Change the admin password. Every session, this one included, ends."""
    await service.change_password(body.current_password, body.new_password)
    return DataResponse(data={"message": "Password updated"})


# ===================================================================
# Games
# ===================================================================


@router.get("/games")
async def search_games(
    _admin: SiteAdmin,
    service: SiteAdminServiceDep,
    pagination: Pagination,
    q: str | None = Query(default=None, max_length=200),
) -> ListResponse[GameSummaryResponse]:
    """Search games by name or organizer email, newest first."""
    rows, total = await service.search_games(
        query=q,
        offset=pagination.offset,
        limit=pagination.limit,
    )
    return ListResponse(
        data=[GameSummaryResponse.from_model(game, count) for game, count in rows],
        meta=PaginationMeta(
            total=total,
            page=pagination.page,
            per_page=pagination.per_page,
        ),
    )


@router.get("/games/{game_id}")
async def get_game(
    game_id: uuid.UUID,
    _admin: SiteAdmin,
    service: SiteAdminServiceDep,
) -> DataResponse[GameStatusResponse]:
    """Full detail of any game."""
    game_status = await service.get_game(game_id)
    return DataResponse(data=GameStatusResponse.from_status(game_status))


@router.delete("/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: uuid.UUID,
    _admin: SiteAdmin,
    service: SiteAdminServiceDep,
) -> Response:
    """Delete any game with its participants."""
    await service.delete_game(game_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
