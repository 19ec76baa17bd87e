"""Email verification endpoints - the only way to create a game.

Endpoints:
- POST /verifications - start verification, email a 6-digit code
- GET /verifications/{id} - state, expiry, attempts left, resend wait
- POST /verifications/{id}/verify - submit the code; creates the game
- POST /verifications/{id}/resend - email a new code
"""

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, ConfigDict, EmailStr, StringConstraints

from santa.api.deps import DbSession, GameServiceDep, VerificationServiceDep
from santa.core.rate_limiting import limiter
from santa.core.responses import DataResponse
from santa.schemas.games import GameCreatedResponse
from santa.schemas.verification import (
    VerificationCreatedResponse,
    VerificationStatusResponse,
)
from santa.services.verification import PendingGame

router = APIRouter()

GameName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)
]


# ===================================================================
# Request models
# ===================================================================


class VerificationCreateRequest(BaseModel):
    """Request body for POST /verifications."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    game_name: GameName
    event_date: date


class VerifyCodeRequest(BaseModel):
    """Request body for POST /verifications/{id}/verify."""

    model_config = ConfigDict(extra="forbid")

    code: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=16)
    ]


# ===================================================================
# Endpoints
# ===================================================================


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/hour")
async def request_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerificationCreateRequest,
    verification: VerificationServiceDep,
) -> DataResponse[VerificationCreatedResponse]:
    """Store the pending game and email the organizer a code.

    Rate limit: 5 per hour per IP, plus 3 per hour per email address.
    """
    vr = await verification.request(
        PendingGame(
            name=body.game_name,
            event_date=body.event_date,
            organizer_email=body.email,
        )
    )
    return DataResponse(
        data=VerificationCreatedResponse(id=vr.id, expires_at=vr.expires_at)
    )


@router.get("/{verification_id}")
async def get_verification(
    verification_id: uuid.UUID,
    verification: VerificationServiceDep,
) -> DataResponse[VerificationStatusResponse]:
    """Describe a verification request without changing it."""
    result = await verification.status(verification_id)
    return DataResponse(data=VerificationStatusResponse.from_status(result))


@router.post("/{verification_id}/verify", status_code=status.HTTP_201_CREATED)
@limiter.limit("20/hour")
async def verify_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    verification_id: uuid.UUID,
    body: VerifyCodeRequest,
    db: DbSession,
    verification: VerificationServiceDep,
    games: GameServiceDep,
) -> DataResponse[GameCreatedResponse]:
    """Check the code and create the game.

    Consuming the request and creating the game commit together. The
    admin link is then emailed; if that email fails the token returned
    here is still the organizer's way in.
    """
    pending = await verification.verify(verification_id, body.code)
    game = await games.create_game(pending)
    await verification.link_game(verification_id, game.id)
    await db.commit()

    await games.send_admin_welcome(game)
    return DataResponse(
        data=GameCreatedResponse(game_id=game.id, admin_token=game.admin_token)
    )


@router.post("/{verification_id}/resend")
@limiter.limit("10/hour")
async def resend_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    verification_id: uuid.UUID,
    verification: VerificationServiceDep,
) -> DataResponse[VerificationCreatedResponse]:
    """Email a new code for an existing request."""
    vr = await verification.resend(verification_id)
    return DataResponse(
        data=VerificationCreatedResponse(id=vr.id, expires_at=vr.expires_at)
    )
